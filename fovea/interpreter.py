import logging
from typing import Dict, List, Optional

from .call_work import call_work_post, call_work_proc
from .create_work import create_work_post, create_work_setup_proc, deposit_code
from .exec_mode import ExecMode, is_error
from .external import Precompile
from .gas_table import to_word_size
from .jump_table import Operation, lookup
from .opcodes import OpCode
from .scope import BlockScope, CallResult, ContractScope, TxScope
from .state import WorldState
from .substate import SubState
from .trace import Tracer

logger = logging.getLogger(__name__)


class EVM(object):
    """Runs call frames against the world state of a single transaction.

    Frames are kept on an explicit stack: a frame that requests a call or creation waits in
    CallSetup/CreateSetup mode while its child runs on top of it.
    """

    world: WorldState
    substate: SubState
    block: BlockScope
    tx_scope: TxScope
    precompiles: Dict[bytes, Precompile]
    tracer: Optional[Tracer]

    def __init__(self, world: WorldState, substate: SubState, block: BlockScope, tx_scope: TxScope,
                 precompiles: Optional[Dict[bytes, Precompile]] = None, tracer: Optional[Tracer] = None):
        self.world = world
        self.substate = substate
        self.block = block
        self.tx_scope = tx_scope
        self.precompiles = {bytes(k): v for k, v in precompiles.items()} if precompiles else dict()
        self.tracer = tracer

    def execute(self, entry: ContractScope) -> CallResult:
        """Run the entry frame, and every frame it calls into, until the entry frame halts.
        The world state must have a checkpoint for the entry frame."""
        frames: List[ContractScope] = [entry]
        while True:
            frame = frames[-1]
            mode = frame.exec_mode
            if mode == ExecMode.Running:
                self.step(frame)
                continue
            if mode == ExecMode.CallSetup or mode == ExecMode.CreateSetup:
                if mode == ExecMode.CallSetup:
                    child = call_work_proc(self, frame)
                else:
                    child = create_work_setup_proc(self, frame)
                if isinstance(child, ContractScope):
                    frames.append(child)
                else:
                    # resolved without running any code
                    self.resume(frame, child)
                continue

            # the frame halted
            result = exit_frame(self, frame)
            frames.pop()
            if len(frames) == 0:
                return result
            self.resume(frames[-1], result)

    def resume(self, frame: ContractScope, result: CallResult) -> None:
        if frame.exec_mode == ExecMode.CallSetup:
            call_work_post(self, frame, result)
        elif frame.exec_mode == ExecMode.CreateSetup:
            create_work_post(self, frame, result)
        else:
            raise Exception("frame %d is not waiting for a child, mode: %s" % (frame.call_depth, frame.exec_mode.name))

    def step(self, frame: ContractScope) -> None:
        operation = exec_opcode_load(self, frame)
        if operation is None:
            return
        if self.tracer is not None:
            self.tracer.capture_step(frame)
        for phase in (exec_validate_stack, exec_read_only_check, exec_constant_gas,
                      exec_calc_memory_size, exec_dynamic_gas, exec_update_memory_size):
            phase(self, frame, operation)
            if frame.exec_mode != ExecMode.Running:
                return
        exec_opcode_run(self, frame, operation)


def exit_frame(evm: EVM, frame: ContractScope) -> CallResult:
    """Commit or revert the world state changes of a halted frame, and produce its result"""
    if frame.is_init_code and frame.exec_mode == ExecMode.Halted:
        deposit_code(evm, frame)

    mode = frame.exec_mode
    if mode == ExecMode.Halted:
        evm.world.commit()
        created = frame.self_addr if frame.is_init_code else None
        logger.debug("exit frame: depth %d, success, gas left %d", frame.call_depth, frame.gas)
        output = b"" if frame.is_init_code else frame.output
        return CallResult(mode, frame.gas, output, created_address=created)
    evm.world.revert()
    if mode == ExecMode.Reverted:
        logger.debug("exit frame: depth %d, reverted, gas left %d", frame.call_depth, frame.gas)
        return CallResult(mode, frame.gas, frame.output)
    if not is_error(mode):
        raise Exception("frame exits in non-halting mode %s" % mode.name)
    # This is an error, not a revert, so consume all gas and don't return data
    logger.debug("exit frame: depth %d, error %s", frame.call_depth, mode.name)
    frame.gas = 0
    return CallResult(mode, 0)


def exec_opcode_load(evm: EVM, frame: ContractScope) -> Optional[Operation]:
    # To avoid reading the code every phase, we just cache the current opcode
    # Reading past the end of the code gives STOP.
    frame.op = frame.code.get_op(frame.pc)
    operation = lookup(frame.op)
    if operation is None:
        frame.exec_mode = ExecMode.ErrInvalidOpcode
    return operation


def exec_validate_stack(evm: EVM, frame: ContractScope, operation: Operation) -> None:
    stack_len = len(frame.stack)
    # ensure there are enough stack items available to perform the operation
    if stack_len < operation.min_stack:
        frame.exec_mode = ExecMode.ErrStackUnderflow
    elif stack_len > operation.max_stack:
        frame.exec_mode = ExecMode.ErrStackOverflow


def exec_read_only_check(evm: EVM, frame: ContractScope, operation: Operation) -> None:
    # If the interpreter is operating in readonly mode, make sure no
    # state-modifying operation is performed. The 3rd stack item
    # for a call operation is the value. Transferring value from one
    # account to the others means the state is modified and should also
    # return with an error.
    if frame.read_only:
        if operation.writes:
            frame.exec_mode = ExecMode.ErrStaticCallViolation
        elif frame.op == OpCode.CALL and frame.stack.back_u256(2) != 0:
            frame.exec_mode = ExecMode.ErrStaticCallViolation


def exec_constant_gas(evm: EVM, frame: ContractScope, operation: Operation) -> None:
    # Static portion of gas
    if not frame.use_gas(operation.constant_gas):
        frame.exec_mode = ExecMode.ErrOutOfGas


def exec_calc_memory_size(evm: EVM, frame: ContractScope, operation: Operation) -> None:
    memory_size = 0
    # calculate the new memory size and expand the memory to fit
    # the operation
    # Memory check needs to be done prior to evaluating the dynamic gas portion,
    # to detect calculation overflows
    if operation.memory_size is not None:
        mem_op, overflow = operation.memory_size(frame.stack)
        if overflow:
            frame.exec_mode = ExecMode.ErrInvalidMemoryAccess
            return
        # memory is expanded in words of 32 bytes. Gas is also calculated in words.
        memory_size = to_word_size(mem_op) * 32
    frame.memory_desired = memory_size


def exec_dynamic_gas(evm: EVM, frame: ContractScope, operation: Operation) -> None:
    if operation.dynamic_gas is None:
        return
    gas, oog = operation.dynamic_gas(evm, frame, frame.memory_desired)
    if oog or not frame.use_gas(gas):
        frame.exec_mode = ExecMode.ErrOutOfGas


def exec_update_memory_size(evm: EVM, frame: ContractScope, operation: Operation) -> None:
    # the expansion was paid for by the dynamic gas
    if frame.memory_desired > len(frame.memory):
        frame.memory.resize(frame.memory_desired)
        frame.active_words = frame.memory_desired // 32


def exec_opcode_run(evm: EVM, frame: ContractScope, operation: Operation) -> None:
    # when done running, continue with the next opcode. Or any halt
    operation.proc(evm, frame)
