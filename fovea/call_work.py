import logging
from typing import TYPE_CHECKING, Union

from .exec_mode import ExecMode
from .instructions import progress
from .params import CALL_CREATE_DEPTH
from .scope import Address, CallResult, Code, ContractScope

if TYPE_CHECKING:
    from .interpreter import EVM

logger = logging.getLogger(__name__)


def call_work_proc(evm: "EVM", frame: ContractScope) -> Union[ContractScope, CallResult]:
    """Set up the message call requested by one of the CALL opcodes of the frame.
    Returns the child frame to run, or the result right away if there is no code to run."""
    work = frame.call_work
    # the return data of a previous call is replaced, also if this call fails
    frame.ret_data = b""
    # memory was already expanded to fit the input
    input_data = frame.memory.read(work.input_offset, work.input_size)
    return start_call(
        evm,
        caller=work.caller,
        addr=work.addr,
        code_addr=work.code_addr,
        value=work.value,
        gas=work.gas,
        input_data=input_data,
        read_only=work.read_only,
        transfer_value=work.transfer_value,
        depth=frame.call_depth + 1,
    )


def start_call(evm: "EVM", caller: Address, addr: Address, code_addr: Address, value: int, gas: int,
               input_data: bytes, read_only: bool = False, transfer_value: bool = True,
               depth: int = 0) -> Union[ContractScope, CallResult]:
    # Fail if we're trying to execute above the call depth limit
    if depth > CALL_CREATE_DEPTH:
        logger.debug("call to %s failed: depth %d", addr.hex(), depth)
        return CallResult(ExecMode.ErrDepth, gas)
    # Fail if we're trying to transfer more than the available balance
    if transfer_value and value > 0 and evm.world.get_balance(caller) < value:
        logger.debug("call to %s failed: insufficient balance for value %d", addr.hex(), value)
        return CallResult(ExecMode.ErrInsufficientBalance, gas)

    precompile = evm.precompiles.get(bytes(code_addr))
    if transfer_value and not evm.world.account_exists(code_addr):
        if precompile is None and value == 0:
            # Calling a non existing account, don't do anything
            return CallResult(ExecMode.Halted, gas)

    evm.world.checkpoint()
    if transfer_value:
        # also a zero-value transfer touches the account, making it a candidate for pruning
        evm.world.touch(addr)
        evm.substate.touch(addr)
        if value > 0:
            evm.world.transfer(caller, addr, value)

    if precompile is not None:
        output, cost = precompile(input_data, gas)
        if cost > gas:
            evm.world.revert()
            return CallResult(ExecMode.ErrOutOfGas, 0)
        evm.world.commit()
        return CallResult(ExecMode.Halted, gas - cost, output)

    code = evm.world.get_code(code_addr)
    if len(code) == 0:
        evm.world.commit()
        return CallResult(ExecMode.Halted, gas)

    logger.debug("enter call frame: depth %d, to %s, code %s, gas %d", depth, addr.hex(), code_addr.hex(), gas)
    return ContractScope(
        self_addr=addr,
        caller=caller,
        code_addr=code_addr,
        code=Code(code),
        input=input_data,
        gas=gas,
        value=value,
        read_only=read_only,
        call_depth=depth,
    )


def call_work_post(evm: "EVM", frame: ContractScope, result: CallResult) -> None:
    """Continue the calling frame with the result of the child call"""
    work = frame.call_work
    frame.call_work = None
    # unused gas, including any unused stipend, is returned to the caller
    frame.return_gas(result.gas_left)
    frame.stack.push_u256(1 if result.success else 0)
    if result.success or result.reverted:
        frame.ret_data = result.output
        size = min(work.return_size, len(result.output))
        # memory was already expanded to fit the return data
        frame.memory.write(work.return_offset, result.output[:size])
    else:
        frame.ret_data = b""
    frame.exec_mode = ExecMode.Running
    progress(frame)
