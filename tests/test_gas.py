from fovea.exec_mode import ExecMode
from fovea.gas_table import call_gas, memory_cost, sstore_cost_and_refund
from fovea.memory_table import calc_mem_size_64
from fovea.opcodes import OpCode
from fovea.scope import Address
from fovea.state import Account

from .helpers import CONTRACT, compile_test_ops, make_evm, push32, run_frame


def test_memory_cost():
    assert memory_cost(0) == 0
    assert memory_cost(1) == 3
    assert memory_cost(32) == 32 * 3 + 2
    assert memory_cost(1024) == 1024 * 3 + 2048


def test_memory_size_overflow():
    assert calc_mem_size_64(0, 0) == (0, False)
    # zero length never requires memory
    assert calc_mem_size_64(1 << 200, 0) == (0, False)
    assert calc_mem_size_64(1 << 64, 1) == (0, True)
    assert calc_mem_size_64(0, 1 << 64) == (0, True)
    assert calc_mem_size_64(10, 22) == (32, False)


def test_memory_expansion_gas():
    code = compile_test_ops([OpCode.PUSH1, 1, OpCode.PUSH2, 0x03, 0xe0, OpCode.MSTORE])
    frame, result = run_frame(make_evm(), code, gas=1000)
    assert result.success
    assert frame.active_words == 32
    assert len(frame.memory) == 1024
    assert result.gas_left == 1000 - (3 + 3 + 3 + 98)


def test_memory_expansion_only_charges_new_words():
    code = compile_test_ops([
        OpCode.PUSH1, 1, OpCode.PUSH1, 0, OpCode.MSTORE,
        OpCode.PUSH1, 1, OpCode.PUSH1, 0, OpCode.MSTORE,
        OpCode.PUSH1, 1, OpCode.PUSH1, 32, OpCode.MSTORE,
    ])
    frame, result = run_frame(make_evm(), code, gas=1000)
    assert result.success
    assert result.gas_left == 1000 - (9 * 3 + 3 + 3)


def test_huge_memory_offset():
    code = compile_test_ops([OpCode.PUSH1, 1] + push32(1 << 70) + [OpCode.MSTORE])
    frame, result = run_frame(make_evm(), code)
    assert result.exec_mode == ExecMode.ErrInvalidMemoryAccess
    assert result.gas_left == 0


def test_memory_out_of_gas():
    # 4 MB of memory costs far more than the available gas
    code = compile_test_ops([OpCode.PUSH1, 1, OpCode.PUSH4, 0x00, 0x40, 0x00, 0x00, OpCode.MSTORE])
    frame, result = run_frame(make_evm(), code, gas=100_000)
    assert result.exec_mode == ExecMode.ErrOutOfGas
    assert len(frame.memory) == 0


def test_sload_cold_then_warm():
    code = compile_test_ops([OpCode.PUSH1, 0, OpCode.SLOAD, OpCode.PUSH1, 0, OpCode.SLOAD])
    evm = make_evm({CONTRACT: Account(storage={0: 5})})
    frame, result = run_frame(evm, code, gas=10_000)
    assert result.success
    assert list(frame.stack) == [5, 5]
    assert result.gas_left == 10_000 - (3 + 2100 + 3 + 100)


def test_sstore_new_slot():
    code = compile_test_ops([OpCode.PUSH1, 1, OpCode.PUSH1, 0, OpCode.SSTORE])
    evm = make_evm()
    frame, result = run_frame(evm, code, gas=30_000)
    assert result.success
    assert result.gas_left == 30_000 - (3 + 3 + 2100 + 20000)
    assert evm.world.get_storage(CONTRACT, 0) == 1


def test_sstore_sentry():
    code = compile_test_ops([OpCode.PUSH1, 1, OpCode.PUSH1, 0, OpCode.SSTORE])
    frame, result = run_frame(make_evm(), code, gas=2306)
    assert result.exec_mode == ExecMode.ErrOutOfGas


def test_sstore_cost_and_refund():
    # noop
    assert sstore_cost_and_refund(1, 1, 1, False) == (100, 0)
    # create slot, cold
    assert sstore_cost_and_refund(0, 0, 1, True) == (22100, 0)
    # clear slot
    assert sstore_cost_and_refund(1, 1, 0, False) == (2900, 4800)
    # modify existing slot
    assert sstore_cost_and_refund(1, 1, 2, False) == (2900, 0)
    # reset a created slot to its original zero
    assert sstore_cost_and_refund(0, 1, 0, False) == (100, 19900)
    # recreate a cleared slot, with its original value
    assert sstore_cost_and_refund(1, 0, 1, False) == (100, -2000)
    # clear a dirty slot
    assert sstore_cost_and_refund(1, 2, 0, False) == (100, 4800)


def test_sstore_refund_counter():
    code = compile_test_ops([OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.SSTORE])
    evm = make_evm({CONTRACT: Account(storage={0: 1})})
    frame, result = run_frame(evm, code)
    assert result.success
    assert evm.substate.refund == 4800


def test_refund_dropped_with_failed_frame():
    code = compile_test_ops([OpCode.PUSH1, 0, OpCode.PUSH1, 0, OpCode.SSTORE, OpCode.INVALID])
    evm = make_evm({CONTRACT: Account(storage={0: 1})})
    frame, result = run_frame(evm, code)
    assert result.exec_mode == ExecMode.ErrInvalidOpcode
    assert evm.substate.refund == 0
    assert evm.world.get_storage(CONTRACT, 0) == 1


def test_exp_gas():
    # exponent 0x0100 is 2 bytes long
    code = compile_test_ops([OpCode.PUSH2, 0x01, 0x00, OpCode.PUSH1, 2, OpCode.EXP])
    frame, result = run_frame(make_evm(), code, gas=1000)
    assert result.success
    assert list(frame.stack) == [0]
    assert result.gas_left == 1000 - (3 + 3 + 10 + 2 * 50)


def test_account_access_cold_then_warm():
    code = compile_test_ops([OpCode.PUSH1, 0xaa, OpCode.BALANCE, OpCode.PUSH1, 0xaa, OpCode.BALANCE])
    evm = make_evm({bytes(Address.from_hex("0xaa")): Account(balance=42)})
    frame, result = run_frame(evm, code, gas=10_000)
    assert result.success
    assert list(frame.stack) == [42, 42]
    assert result.gas_left == 10_000 - (3 + 2600 + 3 + 100)
    assert evm.substate.is_account_warm(Address.from_hex("0xaa"))


def test_log_gas():
    code = compile_test_ops([
        OpCode.PUSH1, 0x77,  # topic
        OpCode.PUSH1, 32,  # size
        OpCode.PUSH1, 0,  # offset
        OpCode.LOG1,
    ])
    evm = make_evm()
    frame, result = run_frame(evm, code, gas=10_000)
    assert result.success
    assert result.gas_left == 10_000 - (3 * 3 + 3 + 375 + 375 + 8 * 32)
    assert len(evm.substate.logs) == 1
    log = evm.substate.logs[0]
    assert log.address == CONTRACT
    assert log.topics == ((0x77).to_bytes(32, byteorder='big'),)
    assert log.data == bytes(32)


def test_call_gas():
    # all but one 64th
    assert call_gas(64_000, 0, 1 << 200) == (63_000, False)
    # capped by the request
    assert call_gas(6400, 100, 10) == (10, False)
    assert call_gas(100, 200, 0) == (0, True)
