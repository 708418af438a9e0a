from typing import Callable, Dict, Optional, Tuple

from .gas_table import (
    GasFunc, gas_account_check, gas_call, gas_call_code, gas_call_data_copy, gas_code_copy,
    gas_create, gas_create2, gas_delegate_call, gas_exp, gas_ext_code_copy, gas_mload, gas_mstore,
    gas_mstore8, gas_return, gas_return_data_copy, gas_revert, gas_self_destruct, gas_sha3,
    gas_sload, gas_sstore, gas_static_call, make_gas_log,
)
from .instructions import *
from .memory_table import *
from .opcodes import OpCode
from .params import (
    GAS_ZERO, GAS_QUICK_STEP, GAS_FASTEST_STEP, GAS_FAST_STEP, GAS_MID_STEP, GAS_SLOW_STEP,
    GAS_EXT_STEP, SHA3_GAS, EXP_GAS, JUMPDEST_GAS, BLOCKHASH_GAS, CREATE_GAS, CREATE2_GAS,
    SELFDESTRUCT_GAS_EIP150, WARM_STORAGE_READ_COST_EIP2929,
)
from .scope import Stack
from .stack_table import *

MemoryCalculator = Callable[[Stack], Tuple[int, bool]]


class Operation(object):
    # the opcode byte, set once the table is built
    op: int
    proc: Processor
    constant_gas: int
    # charged after the constant gas, and after the memory size is known
    dynamic_gas: Optional[GasFunc]
    # items popped (delta) and pushed (alpha)
    delta: int
    alpha: int
    min_stack: int
    max_stack: int
    # stack -> size, overflow flag
    memory_size: Optional[MemoryCalculator]
    # state-modifying, not allowed in a static context
    writes: bool

    def __init__(self,
                 proc: Processor,
                 constant_gas=0,
                 dynamic_gas=None,
                 delta=0,
                 alpha=0,
                 memory_size=None,
                 writes=False):
        self.proc = proc
        self.constant_gas = constant_gas
        self.dynamic_gas = dynamic_gas
        self.delta = delta
        self.alpha = alpha
        self.min_stack = min_stack(delta, alpha)
        self.max_stack = max_stack(delta, alpha)
        self.memory_size = memory_size
        self.writes = writes


def _binary(proc: Processor, gas: int) -> Operation:
    return Operation(proc=proc, constant_gas=gas, delta=2, alpha=1)


def _unary(proc: Processor, gas: int) -> Operation:
    return Operation(proc=proc, constant_gas=gas, delta=1, alpha=1)


def _env(proc: Processor, gas: int = GAS_QUICK_STEP) -> Operation:
    # pushes a single value from the environment
    return Operation(proc=proc, constant_gas=gas, delta=0, alpha=1)


LONDON: Dict[int, Operation] = {
    OpCode.STOP: Operation(
        proc=op_stop,
        constant_gas=GAS_ZERO,
        delta=0, alpha=0,
        # halting property is part of the processing.
    ),
    OpCode.ADD: _binary(op_add, GAS_FASTEST_STEP),
    OpCode.MUL: _binary(op_mul, GAS_FAST_STEP),
    OpCode.SUB: _binary(op_sub, GAS_FASTEST_STEP),
    OpCode.DIV: _binary(op_div, GAS_FAST_STEP),
    OpCode.SDIV: _binary(op_sdiv, GAS_FAST_STEP),
    OpCode.MOD: _binary(op_mod, GAS_FAST_STEP),
    OpCode.SMOD: _binary(op_smod, GAS_FAST_STEP),
    OpCode.ADDMOD: Operation(
        proc=op_addmod,
        constant_gas=GAS_MID_STEP,
        delta=3, alpha=1,
    ),
    OpCode.MULMOD: Operation(
        proc=op_mulmod,
        constant_gas=GAS_MID_STEP,
        delta=3, alpha=1,
    ),
    OpCode.EXP: Operation(
        proc=op_exp,
        constant_gas=EXP_GAS,
        dynamic_gas=gas_exp,
        delta=2, alpha=1,
    ),
    OpCode.SIGNEXTEND: _binary(op_sign_extend, GAS_FAST_STEP),
    OpCode.LT: _binary(op_lt, GAS_FASTEST_STEP),
    OpCode.GT: _binary(op_gt, GAS_FASTEST_STEP),
    OpCode.SLT: _binary(op_slt, GAS_FASTEST_STEP),
    OpCode.SGT: _binary(op_sgt, GAS_FASTEST_STEP),
    OpCode.EQ: _binary(op_eq, GAS_FASTEST_STEP),
    OpCode.ISZERO: _unary(op_iszero, GAS_FASTEST_STEP),
    OpCode.AND: _binary(op_and, GAS_FASTEST_STEP),
    OpCode.OR: _binary(op_or, GAS_FASTEST_STEP),
    OpCode.XOR: _binary(op_xor, GAS_FASTEST_STEP),
    OpCode.NOT: _unary(op_not, GAS_FASTEST_STEP),
    OpCode.BYTE: _binary(op_byte, GAS_FASTEST_STEP),
    OpCode.SHL: _binary(op_shl, GAS_FASTEST_STEP),
    OpCode.SHR: _binary(op_shr, GAS_FASTEST_STEP),
    OpCode.SAR: _binary(op_sar, GAS_FASTEST_STEP),
    OpCode.SHA3: Operation(
        proc=op_sha3,
        constant_gas=SHA3_GAS,
        dynamic_gas=gas_sha3,
        delta=2, alpha=1,
        memory_size=memory_sha3,
    ),
    OpCode.ADDRESS: _env(op_address),
    OpCode.BALANCE: Operation(
        proc=op_balance,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_account_check,
        delta=1, alpha=1,
    ),
    OpCode.ORIGIN: _env(op_origin),
    OpCode.CALLER: _env(op_caller),
    OpCode.CALLVALUE: _env(op_call_value),
    OpCode.CALLDATALOAD: _unary(op_call_data_load, GAS_FASTEST_STEP),
    OpCode.CALLDATASIZE: _env(op_call_data_size),
    OpCode.CALLDATACOPY: Operation(
        proc=op_call_data_copy,
        constant_gas=GAS_FASTEST_STEP,
        dynamic_gas=gas_call_data_copy,
        delta=3, alpha=0,
        memory_size=memory_call_data_copy,
    ),
    OpCode.CODESIZE: _env(op_code_size),
    OpCode.CODECOPY: Operation(
        proc=op_code_copy,
        constant_gas=GAS_FASTEST_STEP,
        dynamic_gas=gas_code_copy,
        delta=3, alpha=0,
        memory_size=memory_code_copy,
    ),
    OpCode.GASPRICE: _env(op_gas_price),
    OpCode.EXTCODESIZE: Operation(
        proc=op_ext_code_size,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_account_check,
        delta=1, alpha=1,
    ),
    OpCode.EXTCODECOPY: Operation(
        proc=op_ext_code_copy,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_ext_code_copy,
        delta=4, alpha=0,
        memory_size=memory_ext_code_copy,
    ),
    OpCode.RETURNDATASIZE: _env(op_return_data_size),
    OpCode.RETURNDATACOPY: Operation(
        proc=op_return_data_copy,
        constant_gas=GAS_FASTEST_STEP,
        dynamic_gas=gas_return_data_copy,
        delta=3, alpha=0,
        memory_size=memory_return_data_copy,
    ),
    OpCode.EXTCODEHASH: Operation(
        proc=op_ext_code_hash,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_account_check,
        delta=1, alpha=1,
    ),
    OpCode.BLOCKHASH: _unary(op_block_hash, BLOCKHASH_GAS),
    OpCode.COINBASE: _env(op_coinbase),
    OpCode.TIMESTAMP: _env(op_timestamp),
    OpCode.NUMBER: _env(op_number),
    OpCode.DIFFICULTY: _env(op_difficulty),
    OpCode.GASLIMIT: _env(op_gas_limit),
    OpCode.CHAINID: _env(op_chain_id),
    OpCode.SELFBALANCE: _env(op_self_balance, GAS_FAST_STEP),
    OpCode.BASEFEE: _env(op_base_fee),
    OpCode.POP: Operation(
        proc=op_pop,
        constant_gas=GAS_QUICK_STEP,
        delta=1, alpha=0,
    ),
    OpCode.MLOAD: Operation(
        proc=op_mload,
        constant_gas=GAS_FASTEST_STEP,
        dynamic_gas=gas_mload,
        delta=1, alpha=1,
        memory_size=memory_mload,
    ),
    OpCode.MSTORE: Operation(
        proc=op_mstore,
        constant_gas=GAS_FASTEST_STEP,
        dynamic_gas=gas_mstore,
        delta=2, alpha=0,
        memory_size=memory_mstore,
    ),
    OpCode.MSTORE8: Operation(
        proc=op_mstore8,
        constant_gas=GAS_FASTEST_STEP,
        dynamic_gas=gas_mstore8,
        delta=2, alpha=0,
        memory_size=memory_mstore8,
    ),
    OpCode.SLOAD: Operation(
        proc=op_sload,
        constant_gas=0,
        dynamic_gas=gas_sload,
        delta=1, alpha=1,
    ),
    OpCode.SSTORE: Operation(
        proc=op_sstore,
        dynamic_gas=gas_sstore,
        delta=2, alpha=0,
        writes=True,
    ),
    OpCode.JUMP: Operation(
        proc=op_jump,
        constant_gas=GAS_MID_STEP,
        delta=1, alpha=0,
    ),
    OpCode.JUMPI: Operation(
        proc=op_jump_i,
        constant_gas=GAS_SLOW_STEP,
        delta=2, alpha=0,
    ),
    OpCode.PC: _env(op_pc),
    OpCode.MSIZE: _env(op_msize),
    OpCode.GAS: _env(op_gas),
    OpCode.JUMPDEST: Operation(
        proc=op_jump_dest,
        constant_gas=JUMPDEST_GAS,
        delta=0, alpha=0,
    ),
    OpCode.CREATE: Operation(
        proc=op_create,
        constant_gas=CREATE_GAS,
        dynamic_gas=gas_create,
        delta=3, alpha=1,
        memory_size=memory_create,
        writes=True,
    ),
    OpCode.CALL: Operation(
        proc=op_call,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_call,
        delta=7, alpha=1,
        memory_size=memory_call,
    ),
    OpCode.CALLCODE: Operation(
        proc=op_call_code,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_call_code,
        delta=7, alpha=1,
        memory_size=memory_call,
    ),
    OpCode.RETURN: Operation(
        proc=op_return,
        dynamic_gas=gas_return,
        delta=2, alpha=0,
        memory_size=memory_return,
    ),
    OpCode.DELEGATECALL: Operation(
        proc=op_delegate_call,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_delegate_call,
        delta=6, alpha=1,
        memory_size=memory_delegate_call,
    ),
    OpCode.CREATE2: Operation(
        proc=op_create2,
        constant_gas=CREATE2_GAS,
        dynamic_gas=gas_create2,
        delta=4, alpha=1,
        memory_size=memory_create2,
        writes=True,
    ),
    OpCode.STATICCALL: Operation(
        proc=op_static_call,
        constant_gas=WARM_STORAGE_READ_COST_EIP2929,
        dynamic_gas=gas_static_call,
        delta=6, alpha=1,
        memory_size=memory_static_call,
    ),
    OpCode.REVERT: Operation(
        proc=op_revert,
        dynamic_gas=gas_revert,
        delta=2, alpha=0,
        memory_size=memory_revert,
    ),
    OpCode.SELFDESTRUCT: Operation(
        proc=op_self_destruct,
        constant_gas=SELFDESTRUCT_GAS_EIP150,
        dynamic_gas=gas_self_destruct,
        delta=1, alpha=0,
        writes=True,
    ),
}

for _i in range(1, 33):
    LONDON[OpCode.PUSH1 + _i - 1] = Operation(
        proc=make_push(_i),
        constant_gas=GAS_FASTEST_STEP,
        delta=0, alpha=1,
    )

for _i in range(1, 17):
    LONDON[OpCode.DUP1 + _i - 1] = Operation(
        proc=make_dup(_i),
        constant_gas=GAS_FASTEST_STEP,
        delta=_i,
        alpha=_i + 1,
    )
    LONDON[OpCode.SWAP1 + _i - 1] = Operation(
        proc=make_swap(_i),
        constant_gas=GAS_FASTEST_STEP,
        delta=_i + 1,
        alpha=_i + 1,
    )

for _i in range(0, 5):
    LONDON[OpCode.LOG0 + _i] = Operation(
        proc=make_log(_i),
        dynamic_gas=make_gas_log(_i),
        delta=2 + _i,
        alpha=0,
        memory_size=memory_log,
        writes=True,
    )


for _op, _operation in LONDON.items():
    _operation.op = int(_op)


def lookup(op: int) -> Optional[Operation]:
    """The operation of an opcode byte, None if the opcode is undefined (including INVALID)"""
    return LONDON.get(op)
