import logging
from typing import TYPE_CHECKING, Union

from .exec_mode import ExecMode
from .instructions import progress
from .opcodes import OpCode
from .params import CALL_CREATE_DEPTH, CREATE_DATA_GAS, MAX_CODE_SIZE, UINT64_MAX
from .scope import Address, CallResult, Code, ContractScope
from .util import compute_contract_address, compute_create2_contract_address

if TYPE_CHECKING:
    from .interpreter import EVM

logger = logging.getLogger(__name__)

# Deployed code may not start with this byte (EIP-3541)
RESERVED_CODE_PREFIX = 0xEF


def create_work_setup_proc(evm: "EVM", frame: ContractScope) -> Union[ContractScope, CallResult]:
    """Set up the contract creation requested by CREATE or CREATE2"""
    work = frame.create_work
    frame.ret_data = b""
    init_code = frame.memory.read(work.input_offset, work.input_size)

    # all but one 64th of the remaining gas goes to the init code
    gas = frame.gas - frame.gas // 64
    frame.use_gas(gas)

    if work.op == OpCode.CREATE2:
        addr = compute_create2_contract_address(frame.self_addr, work.salt, init_code)
    else:
        addr = compute_contract_address(frame.self_addr, evm.world.get_nonce(frame.self_addr))

    return start_create(evm, frame.self_addr, Address(addr), init_code, gas, work.value, depth=frame.call_depth + 1)


def start_create(evm: "EVM", caller: Address, addr: Address, init_code: bytes, gas: int, value: int,
                 depth: int = 0) -> Union[ContractScope, CallResult]:
    # Depth check execution. Fail if we're trying to execute above the limit.
    if depth > CALL_CREATE_DEPTH:
        return CallResult(ExecMode.ErrDepth, gas)
    if evm.world.get_balance(caller) < value:
        return CallResult(ExecMode.ErrInsufficientBalance, gas)
    nonce = evm.world.get_nonce(caller)
    if nonce + 1 > UINT64_MAX:
        return CallResult(ExecMode.ErrNonceUintOverflow, gas)
    # the nonce is spent also if the creation fails below
    evm.world.set_nonce(caller, nonce + 1)
    # the address is warm even if the creation fails
    evm.substate.access_account(addr)

    # Ensure there's no existing contract already at the designated address.
    # A balance alone does not count, funds may be sent to an address before its creation.
    if evm.world.get_nonce(addr) != 0 or len(evm.world.get_code(addr)) != 0 or evm.world.has_storage(addr):
        logger.debug("create at %s failed: address collision", addr.hex())
        return CallResult(ExecMode.ErrContractAddressCollision, 0)

    evm.world.checkpoint()
    evm.world.create_account(addr)
    if value > 0:
        evm.world.transfer(caller, addr, value)

    logger.debug("enter init frame: depth %d, creating %s, gas %d", depth, addr.hex(), gas)
    return ContractScope(
        self_addr=addr,
        caller=caller,
        code_addr=addr,
        code=Code(init_code),
        input=b"",
        gas=gas,
        value=value,
        is_init_code=True,
        call_depth=depth,
    )


def deposit_code(evm: "EVM", frame: ContractScope) -> None:
    """Store the output of completed init code as the code of the new account,
    or turn the halt into an error if the code cannot be deployed."""
    code = frame.output
    if len(code) > MAX_CODE_SIZE:
        frame.exec_mode = ExecMode.ErrMaxCodeSizeExceeded
        return
    if len(code) > 0 and code[0] == RESERVED_CODE_PREFIX:
        frame.exec_mode = ExecMode.ErrInvalidCode
        return
    if not frame.use_gas(len(code) * CREATE_DATA_GAS):
        frame.exec_mode = ExecMode.ErrCodeStoreOutOfGas
        return
    evm.world.set_code(frame.self_addr, code)


def create_work_post(evm: "EVM", frame: ContractScope, result: CallResult) -> None:
    """Continue the creating frame with the result of the init code"""
    frame.create_work = None
    frame.return_gas(result.gas_left)
    if result.success:
        frame.stack.push_u256(result.created_address.to_u256())
    else:
        frame.stack.push_u256(0)
    # only a reverting init code leaves return data behind
    frame.ret_data = result.output if result.reverted else b""
    frame.exec_mode = ExecMode.Running
    progress(frame)
