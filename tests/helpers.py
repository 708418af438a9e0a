from typing import Dict, Optional, Tuple

from fovea.external import MemorySource
from fovea.interpreter import EVM
from fovea.journal import Journal
from fovea.opcodes import OpCode
from fovea.scope import Address, BlockScope, CallResult, Code, ContractScope, Stack, TxScope, to_unsigned
from fovea.state import Account, WorldState
from fovea.substate import SubState

ONE_ETHER = 1_000_000_000_000_000_000

SENDER = Address(b"\x5e" * 20)
CONTRACT = Address(b"\xc0" * 20)
CHILD = Address(b"\xc1" * 20)
COINBASE = Address(b"\xcb" * 20)


def compile_test_ops(ops: list) -> bytes:
    return bytes(map(lambda x: int(x.value) if isinstance(x, OpCode) else int(x), ops))


def push32(v: int) -> list:
    return [OpCode.PUSH32] + list(to_unsigned(v).to_bytes(32, byteorder='big'))


def push_addr(addr: Address) -> list:
    return [OpCode.PUSH20] + list(addr)


def call_ops(op: OpCode, addr: Address, value: int = 0, in_offset: int = 0, in_size: int = 0,
             ret_offset: int = 0, ret_size: int = 0) -> list:
    # forwards all available gas
    ops = [
        OpCode.PUSH1, ret_size,
        OpCode.PUSH1, ret_offset,
        OpCode.PUSH1, in_size,
        OpCode.PUSH1, in_offset,
    ]
    if op in (OpCode.CALL, OpCode.CALLCODE):
        ops += [OpCode.PUSH1, value]
    return ops + push_addr(addr) + [OpCode.GAS, op]


def make_evm(accounts: Optional[Dict[bytes, Account]] = None, block: Optional[BlockScope] = None,
             precompiles=None, tracer=None) -> EVM:
    journal = Journal()
    world = WorldState(MemorySource(accounts), journal)
    return EVM(world, SubState(journal), block or BlockScope(coinbase=COINBASE),
               TxScope(origin=SENDER, gas_price=1), precompiles, tracer)


def run_frame(evm: EVM, code: bytes, gas: int = 100_000, value: int = 0, input_data: bytes = b"",
              self_addr: Address = CONTRACT, read_only: bool = False) -> Tuple[ContractScope, CallResult]:
    frame = ContractScope(
        self_addr=self_addr,
        caller=SENDER,
        code_addr=self_addr,
        code=Code(code),
        input=input_data,
        gas=gas,
        value=value,
        read_only=read_only,
    )
    evm.world.checkpoint()
    result = evm.execute(frame)
    return frame, result


def run_op(proc, *stack_items: int) -> Stack:
    """Run a single opcode function against a stack, listed bottom to top"""
    frame = ContractScope(
        self_addr=CONTRACT,
        caller=SENDER,
        code_addr=CONTRACT,
        code=Code(b""),
        input=b"",
        gas=0,
        stack=Stack(stack_items),
    )
    proc(make_evm(), frame)
    return frame.stack
