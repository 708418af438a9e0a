from enum import IntEnum


class ExecMode(IntEnum):
    # Interpreter loop consists of stack/memory/gas checks, and then opcode execution.
    Running = 0x11

    # Every call opcode shares a setup, the frame waits in this mode while the child runs
    CallSetup = 0x30
    # Sets up the state, runs init code, the frame waits in this mode while the init code runs
    CreateSetup = 0x34

    # Normal halt: STOP, RETURN, SELFDESTRUCT or running past the end of the code.
    # World state changes of the frame are committed upwards.
    Halted = 0x32
    # Normal but reverting halt: output is returned, unused gas is returned,
    # but world state changes of the frame are discarded.
    Reverted = 0x33

    # Exceptional halts: all gas of the frame is consumed and all changes are discarded
    ErrStackUnderflow = 0x41
    ErrStackOverflow = 0x42
    ErrStaticCallViolation = 0x43
    ErrOutOfGas = 0x44
    ErrInvalidMemoryAccess = 0x45
    ErrInvalidJump = 0x46
    ErrInvalidOpcode = 0x47

    # Contract creation failures, after the init code completed
    ErrMaxCodeSizeExceeded = 0x48
    ErrInvalidCode = 0x49
    ErrCodeStoreOutOfGas = 0x4a

    # Call failures: resolved before any child step runs
    ErrDepth = 0x50
    ErrInsufficientBalance = 0x51
    ErrNonceUintOverflow = 0x52
    ErrContractAddressCollision = 0x53


exec_mode_err_range = (ExecMode.ErrStackUnderflow, ExecMode.ErrContractAddressCollision)


def is_error(mode: ExecMode) -> bool:
    return exec_mode_err_range[0] <= mode <= exec_mode_err_range[1]
