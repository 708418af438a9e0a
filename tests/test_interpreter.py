from fovea.exec_mode import ExecMode
from fovea.jump_table import lookup
from fovea.opcodes import OpCode
from fovea.params import STACK_LIMIT
from fovea.scope import Code, Stack
from fovea.trace import StepsTrace

from .helpers import CONTRACT, compile_test_ops, make_evm, run_frame


def test_pop_empty_stack():
    evm = make_evm()
    code = compile_test_ops([OpCode.POP])
    frame, result = run_frame(evm, code, gas=1000)
    assert result.exec_mode == ExecMode.ErrStackUnderflow
    assert result.gas_left == 0
    assert frame.gas == 0


def test_underflow_discards_state_changes():
    evm = make_evm()
    code = compile_test_ops([
        OpCode.PUSH1, 1,
        OpCode.PUSH1, 0,
        OpCode.SSTORE,
        OpCode.POP,
    ])
    frame, result = run_frame(evm, code)
    assert result.exec_mode == ExecMode.ErrStackUnderflow
    assert evm.world.get_storage(CONTRACT, 0) == 0
    assert not evm.world.account_exists(CONTRACT)


def test_stack_overflow():
    code = compile_test_ops([OpCode.PUSH1, 0] * (STACK_LIMIT + 1))
    frame, result = run_frame(make_evm(), code)
    assert result.exec_mode == ExecMode.ErrStackOverflow
    assert len(frame.stack) == STACK_LIMIT


def test_stack_full_is_fine():
    code = compile_test_ops([OpCode.PUSH1, 0] * STACK_LIMIT)
    frame, result = run_frame(make_evm(), code)
    assert result.success
    assert len(frame.stack) == STACK_LIMIT


def test_out_of_gas_after_first_op():
    code = compile_test_ops([
        OpCode.PUSH1, 0x2a,
        OpCode.PUSH1, 0,
        OpCode.MSTORE,
        OpCode.PUSH1, 32,
        OpCode.PUSH1, 0,
        OpCode.RETURN,
    ])
    frame, result = run_frame(make_evm(), code, gas=3)
    assert result.exec_mode == ExecMode.ErrOutOfGas
    assert result.output == b""
    assert result.gas_left == 0


def test_invalid_jump():
    code = compile_test_ops([OpCode.PUSH1, 3, OpCode.JUMP, OpCode.STOP, OpCode.STOP])
    frame, result = run_frame(make_evm(), code)
    assert result.exec_mode == ExecMode.ErrInvalidJump
    assert result.gas_left == 0


def test_jump_into_push_data():
    # the 0x5b at offset 1 is push data, not a JUMPDEST
    code = compile_test_ops([OpCode.PUSH1, OpCode.JUMPDEST, OpCode.PUSH1, 1, OpCode.JUMP])
    assert Code(code).jump_dests == frozenset()
    frame, result = run_frame(make_evm(), code)
    assert result.exec_mode == ExecMode.ErrInvalidJump


def test_jump():
    code = compile_test_ops([
        OpCode.PUSH1, 4,
        OpCode.JUMP,
        OpCode.INVALID,
        OpCode.JUMPDEST,
        OpCode.PUSH1, 7,
    ])
    frame, result = run_frame(make_evm(), code, gas=1000)
    assert result.success
    assert list(frame.stack) == [7]
    assert result.gas_left == 1000 - (3 + 8 + 1 + 3)


def test_jumpi_not_taken():
    code = compile_test_ops([
        OpCode.PUSH1, 0,  # condition
        OpCode.PUSH1, 9,  # destination, not a JUMPDEST, but not taken either
        OpCode.JUMPI,
        OpCode.PUSH1, 1,
    ])
    frame, result = run_frame(make_evm(), code)
    assert result.success
    assert list(frame.stack) == [1]


def test_implicit_stop():
    code = compile_test_ops([OpCode.PUSH1, 1])
    frame, result = run_frame(make_evm(), code)
    assert result.exec_mode == ExecMode.Halted
    assert result.output == b""
    assert list(frame.stack) == [1]


def test_undefined_opcodes():
    for op in (0x0c, 0x21, 0xef, OpCode.INVALID):
        frame, result = run_frame(make_evm(), bytes([op]))
        assert result.exec_mode == ExecMode.ErrInvalidOpcode
        assert result.gas_left == 0


def test_static_write_violation():
    code = compile_test_ops([OpCode.PUSH1, 1, OpCode.PUSH1, 0, OpCode.SSTORE])
    frame, result = run_frame(make_evm(), code, read_only=True)
    assert result.exec_mode == ExecMode.ErrStaticCallViolation


def test_revert_keeps_gas():
    evm = make_evm()
    code = compile_test_ops([
        OpCode.PUSH1, 1,
        OpCode.PUSH1, 1,
        OpCode.SSTORE,
        OpCode.PUSH1, 0x2a,
        OpCode.PUSH1, 0,
        OpCode.MSTORE,
        OpCode.PUSH1, 32,
        OpCode.PUSH1, 0,
        OpCode.REVERT,
    ])
    frame, result = run_frame(evm, code, gas=100_000)
    assert result.reverted
    assert result.output == b"\x00" * 31 + b"\x2a"
    # pushes, cold SSTORE of a new slot, and one word of memory
    assert result.gas_left == 100_000 - (6 * 3 + 22100 + 3 + 3)
    assert evm.world.get_storage(CONTRACT, 1) == 0
    # warm slots survive the revert
    assert evm.substate.is_storage_warm(CONTRACT, 1)


def test_tracer_sees_every_step():
    tracer = StepsTrace()
    evm = make_evm(tracer=tracer)
    code = compile_test_ops([OpCode.PUSH1, 1, OpCode.PUSH1, 1, OpCode.ADD])
    run_frame(evm, code, gas=1000)
    ops = [step.op for step in tracer.steps]
    assert ops == [OpCode.PUSH1, OpCode.PUSH1, OpCode.ADD, OpCode.STOP]
    assert [step.gas for step in tracer.steps] == [1000, 997, 994, 991]
    assert tracer.last().op_name() == "STOP"


def test_operation_stack_bounds():
    add = lookup(OpCode.ADD)
    assert (add.op, add.delta, add.alpha) == (0x01, 2, 1)
    assert (add.min_stack, add.max_stack) == (2, STACK_LIMIT + 1)
    dup1 = lookup(OpCode.DUP1)
    assert (dup1.op, dup1.delta, dup1.alpha) == (0x80, 1, 2)
    assert dup1.max_stack == STACK_LIMIT - 1
    swap16 = lookup(OpCode.SWAP16)
    assert (swap16.op, swap16.delta, swap16.alpha) == (0x9f, 17, 17)
    log4 = lookup(OpCode.LOG4)
    assert (log4.min_stack, log4.alpha) == (6, 0)


def test_stack_pop_n():
    stack = Stack([1, 2, 3, 4])
    stack.pop_n(3)
    assert stack == [1]
