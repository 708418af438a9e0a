from dataclasses import replace

import pytest

from fovea.errors import InvalidTransaction
from fovea.exec_mode import ExecMode
from fovea.external import MemorySource
from fovea.opcodes import OpCode
from fovea.scope import AccessListEntry, BlockScope, Transaction
from fovea.state import Account
from fovea.tx import TxStatus, apply_transaction, intrinsic_gas
from fovea.util import compute_contract_address

from .helpers import CHILD, COINBASE, CONTRACT, ONE_ETHER, SENDER, compile_test_ops, push_addr

BLOCK = BlockScope(coinbase=COINBASE)


def make_tx(**kwargs) -> Transaction:
    tx = Transaction(sender=SENDER, nonce=0, gas_limit=100_000, to=CONTRACT, gas_price=1)
    return replace(tx, **kwargs)


def make_source(code: bytes = b"") -> MemorySource:
    source = MemorySource({SENDER: Account(balance=ONE_ETHER)})
    if code:
        source.accounts[bytes(CONTRACT)] = Account(code=code)
    return source


def test_intrinsic_gas():
    assert intrinsic_gas(b"", (), False) == 21000
    assert intrinsic_gas(b"\x00\x01", (), False) == 21000 + 4 + 16
    assert intrinsic_gas(b"", (), True) == 53000
    access_list = (AccessListEntry(CONTRACT, (1, 2)), AccessListEntry(CHILD))
    assert intrinsic_gas(b"", access_list, False) == 21000 + 2 * 2400 + 2 * 1900


def test_value_transfer():
    source = make_source()
    tx = make_tx(to=CHILD, value=1000, gas_limit=21000, gas_price=10)
    result = apply_transaction(source, tx, BLOCK)
    assert result.status == TxStatus.SUCCESS
    assert result.error is None
    assert result.gas_used == 21000
    assert source.accounts[bytes(SENDER)] == Account(nonce=1, balance=ONE_ETHER - 1000 - 21000 * 10)
    assert source.accounts[bytes(CHILD)].balance == 1000
    assert source.accounts[bytes(COINBASE)].balance == 21000 * 10


def test_dynamic_fee():
    source = make_source()
    block = replace(BLOCK, base_fee=7)
    tx = make_tx(to=CHILD, gas_limit=21000, gas_price=0, max_fee_per_gas=20, max_priority_fee_per_gas=2)
    result = apply_transaction(source, tx, block)
    assert result.gas_used == 21000
    # the base fee is burned, the coinbase only gets the priority fee
    assert source.accounts[bytes(SENDER)].balance == ONE_ETHER - 21000 * 9
    assert source.accounts[bytes(COINBASE)].balance == 21000 * 2


def test_dynamic_fee_capped():
    source = make_source()
    block = replace(BLOCK, base_fee=7)
    tx = make_tx(to=CHILD, gas_limit=21000, gas_price=0, max_fee_per_gas=8, max_priority_fee_per_gas=5)
    apply_transaction(source, tx, block)
    assert source.accounts[bytes(SENDER)].balance == ONE_ETHER - 21000 * 8
    assert source.accounts[bytes(COINBASE)].balance == 21000


def test_touched_empty_accounts_are_deleted():
    source = make_source()
    source.accounts[bytes(CHILD)] = Account()
    # a zero gas price leaves the coinbase empty as well
    result = apply_transaction(source, make_tx(to=CHILD, gas_limit=21000, gas_price=0), BLOCK)
    assert result.status == TxStatus.SUCCESS
    assert bytes(CHILD) not in source.accounts
    assert bytes(COINBASE) not in source.accounts
    assert source.accounts[bytes(SENDER)].nonce == 1


def test_untouched_empty_account_is_kept():
    source = make_source()
    source.accounts[bytes(CHILD)] = Account()
    apply_transaction(source, make_tx(to=COINBASE, gas_limit=21000), BLOCK)
    assert source.accounts[bytes(CHILD)] == Account()


def test_self_destruct():
    source = make_source(compile_test_ops(push_addr(CHILD) + [OpCode.SELFDESTRUCT]))
    source.accounts[bytes(CONTRACT)].balance = 50
    result = apply_transaction(source, make_tx(), BLOCK)
    assert result.status == TxStatus.SUCCESS
    assert result.self_destructed == [CONTRACT]
    assert bytes(CONTRACT) not in source.accounts
    assert source.accounts[bytes(CHILD)].balance == 50
    # push, selfdestruct, cold beneficiary, and funding a new account
    assert result.gas_used == 21000 + 3 + 5000 + 2600 + 25000


def test_read_does_not_touch():
    source = make_source(compile_test_ops(push_addr(CHILD) + [OpCode.BALANCE, OpCode.POP]))
    source.accounts[bytes(CHILD)] = Account()
    result = apply_transaction(source, make_tx(), BLOCK)
    assert result.status == TxStatus.SUCCESS
    assert source.accounts[bytes(CHILD)] == Account()


def test_self_destruct_reverted():
    code = compile_test_ops(push_addr(CHILD) + [OpCode.SELFDESTRUCT])
    source = make_source(compile_test_ops([
        OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.PUSH1, 0,
    ] + push_addr(CHILD) + [OpCode.GAS, OpCode.DELEGATECALL, OpCode.INVALID]))
    source.accounts[bytes(CHILD)] = Account(code=code)
    result = apply_transaction(source, make_tx(), BLOCK)
    assert result.status == TxStatus.FAILURE
    assert result.self_destructed == []
    assert bytes(CONTRACT) in source.accounts


@pytest.mark.parametrize("tx,block", [
    (make_tx(nonce=1), BLOCK),
    (make_tx(value=ONE_ETHER), BLOCK),
    (make_tx(gas_limit=20999), BLOCK),
    (make_tx(gas_limit=40_000_000), BLOCK),
    (make_tx(gas_price=5), replace(BLOCK, base_fee=10)),
    (make_tx(gas_price=0, max_fee_per_gas=10, max_priority_fee_per_gas=11), BLOCK),
    (make_tx(chain_id=5), BLOCK),
])
def test_invalid_transaction(tx, block):
    source = make_source(b"\x00")
    before = {k: v.copy() for k, v in source.accounts.items()}
    with pytest.raises(InvalidTransaction):
        apply_transaction(source, tx, block)
    assert source.accounts == before


def test_failure_uses_all_gas():
    source = make_source(compile_test_ops([OpCode.INVALID]))
    result = apply_transaction(source, make_tx(gas_limit=50_000), BLOCK)
    assert result.status == TxStatus.FAILURE
    assert result.error == ExecMode.ErrInvalidOpcode
    assert result.gas_used == 50_000
    assert source.accounts[bytes(SENDER)] == Account(nonce=1, balance=ONE_ETHER - 50_000)


def test_revert_output():
    source = make_source(compile_test_ops([
        OpCode.PUSH1, 0x2a, OpCode.PUSH1, 0, OpCode.MSTORE8,
        OpCode.PUSH1, 1, OpCode.PUSH1, 0, OpCode.REVERT,
    ]))
    result = apply_transaction(source, make_tx(), BLOCK)
    assert result.status == TxStatus.REVERT
    assert result.error is None
    assert result.output == b"\x2a"
    assert result.gas_used == 21000 + 5 * 3 + 3
    assert source.accounts[bytes(SENDER)].nonce == 1


def test_logs():
    log_code = [OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.LOG0]
    result = apply_transaction(make_source(compile_test_ops(log_code)), make_tx(), BLOCK)
    assert len(result.logs) == 1
    assert result.logs[0].address == CONTRACT

    reverting = log_code + [OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.REVERT]
    result = apply_transaction(make_source(compile_test_ops(reverting)), make_tx(), BLOCK)
    assert result.status == TxStatus.REVERT
    assert result.logs == []


def test_access_list():
    source = make_source(compile_test_ops([OpCode.PUSH1, 0, OpCode.SLOAD]))
    tx = make_tx(access_list=(AccessListEntry(CONTRACT, (0,)),))
    result = apply_transaction(source, tx, BLOCK)
    assert result.status == TxStatus.SUCCESS
    # the slot is warm: 100 instead of 2100
    assert result.gas_used == 21000 + 2400 + 1900 + 3 + 100


def test_refund():
    source = make_source(compile_test_ops([OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.SSTORE]))
    source.accounts[bytes(CONTRACT)].storage[0] = 1
    result = apply_transaction(source, make_tx(), BLOCK)
    assert result.refund == 4800
    assert result.gas_used == 21000 + 6 + 2100 + 2900 - 4800
    assert source.accounts[bytes(CONTRACT)].storage == {}


def test_refund_cap():
    source = make_source(compile_test_ops([
        OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.SSTORE,
        OpCode.PUSH1, 0, OpCode.PUSH1, 1, OpCode.SSTORE,
    ]))
    source.accounts[bytes(CONTRACT)].storage.update({0: 1, 1: 1})
    result = apply_transaction(source, make_tx(), BLOCK)
    # a fifth of the used gas
    assert result.refund == 31012 // 5
    assert result.gas_used == 24810


def test_contract_creation():
    source = make_source()
    init_code = bytes.fromhex("602a60005360016000f3")
    result = apply_transaction(source, make_tx(to=None, data=init_code), BLOCK)
    created = compute_contract_address(SENDER, 0)
    assert result.status == TxStatus.SUCCESS
    assert result.created_address == created
    assert result.output == b""
    assert result.gas_used == 53000 + 8 * 16 + 2 * 4 + 4 * 3 + 3 + 3 + 200
    assert result.gas_used == 53354
    assert source.accounts[bytes(created)] == Account(nonce=0, code=b"\x2a")
    assert source.accounts[bytes(SENDER)].nonce == 1


def test_failed_contract_creation():
    source = make_source()
    result = apply_transaction(source, make_tx(to=None, data=b"\xfe"), BLOCK)
    assert result.status == TxStatus.FAILURE
    assert result.created_address is None
    assert compute_contract_address(SENDER, 0) not in source.accounts
    assert source.accounts[bytes(SENDER)].nonce == 1


def test_contract_creation_with_value_and_empty_code():
    source = make_source()
    # PUSH1 0 PUSH1 0 RETURN
    result = apply_transaction(source, make_tx(to=None, value=5, data=bytes.fromhex("60006000f3")), BLOCK)
    created = compute_contract_address(SENDER, 0)
    assert result.status == TxStatus.SUCCESS
    assert result.created_address == created
    assert source.accounts[bytes(created)] == Account(nonce=0, balance=5, code=b"")
    assert source.accounts[bytes(SENDER)].nonce == 1
