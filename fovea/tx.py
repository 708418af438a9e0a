import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from .call_work import start_call
from .create_work import start_create
from .errors import InvalidTransaction
from .exec_mode import ExecMode, is_error
from .external import Precompile, StateSource
from .interpreter import EVM
from .journal import Journal
from .params import (
    REFUND_QUOTIENT_EIP3529, TX_ACCESS_LIST_ADDRESS_GAS, TX_ACCESS_LIST_STORAGE_KEY_GAS,
    TX_DATA_NON_ZERO_GAS_EIP2028, TX_DATA_ZERO_GAS, TX_GAS, TX_GAS_CONTRACT_CREATION, UINT64_MAX,
)
from .scope import Address, BlockScope, CallResult, Log, Transaction, TxScope
from .state import WorldState
from .substate import SubState
from .trace import Tracer
from .util import compute_contract_address

logger = logging.getLogger(__name__)


class TxStatus(IntEnum):
    FAILURE = 0
    SUCCESS = 1
    REVERT = 2


@dataclass
class TxResult:
    status: TxStatus
    # the exceptional halt of the top-level frame, if any
    error: Optional[ExecMode] = None
    # after the refund
    gas_used: int = 0
    refund: int = 0
    output: bytes = b""
    logs: List[Log] = field(default_factory=list)
    created_address: Optional[Address] = None
    self_destructed: List[Address] = field(default_factory=list)


def intrinsic_gas(data: bytes, access_list: tuple, is_contract_creation: bool) -> int:
    # Set the starting gas for the raw transaction
    if is_contract_creation:
        gas = TX_GAS_CONTRACT_CREATION
    else:
        gas = TX_GAS

    # Bump the required gas by the amount of transactional data
    # Zero and non-zero bytes are priced differently
    nz = sum(1 for byt in data if byt != 0)
    gas += nz * TX_DATA_NON_ZERO_GAS_EIP2028
    gas += (len(data) - nz) * TX_DATA_ZERO_GAS

    if len(access_list) > 0:
        gas += len(access_list) * TX_ACCESS_LIST_ADDRESS_GAS
        total_storage_keys = sum(len(entry.storage_keys) for entry in access_list)
        gas += total_storage_keys * TX_ACCESS_LIST_STORAGE_KEY_GAS
    return gas


def fee_caps(tx: Transaction) -> Tuple[int, int]:
    """The max fee and max priority fee per gas. A legacy gas price is both."""
    if tx.max_fee_per_gas is None:
        return tx.gas_price, tx.gas_price
    priority = tx.max_priority_fee_per_gas if tx.max_priority_fee_per_gas is not None else 0
    return tx.max_fee_per_gas, priority


def effective_gas_price(tx: Transaction, base_fee: int) -> int:
    max_fee, max_priority_fee = fee_caps(tx)
    return min(max_fee, base_fee + max_priority_fee)


def validate_transaction(world: WorldState, tx: Transaction, block: BlockScope) -> int:
    """Check if the transaction can be included, returns the intrinsic gas"""
    if tx.chain_id is not None and tx.chain_id != block.chain_id:
        raise InvalidTransaction("chain id mismatch: tx: %d, block: %d" % (tx.chain_id, block.chain_id))
    max_fee, max_priority_fee = fee_caps(tx)
    if max_priority_fee > max_fee:
        raise InvalidTransaction("max priority fee per gas higher than max fee per gas: %d > %d"
                                 % (max_priority_fee, max_fee))
    if max_fee < block.base_fee:
        raise InvalidTransaction("max fee per gas less than block base fee: %d < %d" % (max_fee, block.base_fee))
    if tx.gas_limit > block.gas_limit:
        raise InvalidTransaction("gas limit reached: %d > %d" % (tx.gas_limit, block.gas_limit))
    gas = intrinsic_gas(tx.data, tx.access_list, tx.is_contract_creation)
    if tx.gas_limit < gas:
        raise InvalidTransaction("intrinsic gas too low: have %d, want %d" % (tx.gas_limit, gas))

    nonce = world.get_nonce(tx.sender)
    if tx.nonce != nonce:
        raise InvalidTransaction("nonce mismatch: tx: %d, state: %d" % (tx.nonce, nonce))
    if nonce >= UINT64_MAX:
        raise InvalidTransaction("nonce has max value")
    balance = world.get_balance(tx.sender)
    cost = tx.gas_limit * max_fee + tx.value
    if balance < cost:
        raise InvalidTransaction("insufficient funds for gas * price + value: have %d, want %d" % (balance, cost))
    return gas


def apply_transaction(source: StateSource, tx: Transaction, block: BlockScope,
                      precompiles: Optional[Dict[bytes, Precompile]] = None,
                      tracer: Optional[Tracer] = None) -> TxResult:
    """Apply the transaction to the state of the source, and write the resulting state back to it.

    An invalid transaction raises InvalidTransaction, and leaves the source untouched.
    A failing execution is not an error: the transaction is included, and pays for its gas.
    """
    journal = Journal()
    world = WorldState(source, journal)
    substate = SubState(journal)

    intrinsic = validate_transaction(world, tx, block)
    gas_price = effective_gas_price(tx, block.base_fee)
    sender = tx.sender

    # buy gas, this and the other pre-execution changes are never reverted
    world.sub_balance(sender, tx.gas_limit * gas_price)

    evm = EVM(world, substate, block, TxScope(origin=sender, gas_price=gas_price), precompiles, tracer)

    substate.access_account(sender)
    for addr in evm.precompiles.keys():
        substate.access_account(Address(addr))
    for entry in tx.access_list:
        substate.access_account(entry.address)
        for key in entry.storage_keys:
            substate.access_storage(entry.address, key)

    gas = tx.gas_limit - intrinsic
    if tx.is_contract_creation:
        # the nonce is incremented by the creation itself
        created = Address(compute_contract_address(sender, tx.nonce))
        substate.access_account(created)
        entry = start_create(evm, sender, created, tx.data, gas, tx.value, depth=0)
    else:
        world.increment_nonce(sender)
        substate.access_account(tx.to)
        entry = start_call(evm, sender, tx.to, tx.to, tx.value, gas, tx.data, depth=0)

    if isinstance(entry, CallResult):
        result = entry
    else:
        result = evm.execute(entry)

    # refund the unused gas, and a capped share of the used gas (EIP-3529)
    gas_used = tx.gas_limit - result.gas_left
    refund = min(substate.refund, gas_used // REFUND_QUOTIENT_EIP3529)
    gas_used -= refund
    world.add_balance(sender, (tx.gas_limit - gas_used) * gas_price)

    # the burnt base fee is not paid to anyone
    world.add_balance(block.coinbase, gas_used * (gas_price - block.base_fee))
    substate.touch(block.coinbase)

    self_destructed = [Address(addr) for addr in sorted(substate.self_destruct_set)]
    for addr in self_destructed:
        world.delete_account(addr)
    for key in sorted(substate.touched_accounts):
        addr = Address(key)
        if world.account_exists(addr) and world.is_empty(addr):
            world.delete_account(addr)

    world.flush()

    if result.success:
        status = TxStatus.SUCCESS
    elif result.reverted:
        status = TxStatus.REVERT
    else:
        status = TxStatus.FAILURE
    logger.info("applied tx from %s nonce %d: %s, gas used %d, refund %d",
                sender.hex(), tx.nonce, status.name, gas_used, refund)
    return TxResult(
        status=status,
        error=result.exec_mode if is_error(result.exec_mode) else None,
        gas_used=gas_used,
        refund=refund,
        output=result.output,
        logs=list(substate.logs),
        created_address=result.created_address,
        self_destructed=self_destructed,
    )
