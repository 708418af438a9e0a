from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, FrozenSet, Optional, Tuple

from .exec_mode import ExecMode
from .opcodes import OpCode
from .params import CHAIN_ID

UINT256_MASK = (1 << 256) - 1
UINT160_MASK = (1 << 160) - 1


class Address(bytes):
    """A 20-byte account address. Compares and hashes like the plain bytes it wraps."""

    def __new__(cls, v: bytes = b"\x00" * 20):
        if len(v) != 20:
            raise ValueError("address must be 20 bytes, got %d" % len(v))
        return super().__new__(cls, v)

    def to_u256(self) -> int:
        return int.from_bytes(self, byteorder='big')

    @staticmethod
    def from_u256(v: int) -> "Address":
        # ignore other bytes.
        # E.g. when reading an address from the stack we ignore every byte outside of the address
        # just like 'toAddr := common.Address(addr.Bytes20())' in geth
        return Address((v & UINT160_MASK).to_bytes(20, byteorder='big'))

    @staticmethod
    def from_hex(v: str) -> "Address":
        if v.startswith('0x'):
            v = v[2:]
        return Address(bytes.fromhex(v.rjust(40, '0')))

    def __repr__(self) -> str:
        return "Address(0x%s)" % self.hex()


def u256_to_b32(v: int) -> bytes:
    return v.to_bytes(32, byteorder='big')


def to_signed(v: int) -> int:
    return v - (1 << 256) if v >> 255 else v


def to_unsigned(v: int) -> int:
    return v & UINT256_MASK


# EVM stack is max 1024 words, the top of the stack is the end of the list
class Stack(list):

    def push_u256(self, v: int) -> None:
        self.append(v)

    def pop_u256(self) -> int:
        return self.pop()

    def pop_b32(self) -> bytes:
        return u256_to_b32(self.pop())

    def pop_n(self, n: int):
        del self[len(self) - n:]

    def dup(self, n: int) -> None:
        self.append(self[len(self) - n])

    def swap(self, n: int) -> None:
        l = len(self)
        self[l - 1], self[l - n] = self[l - n], self[l - 1]

    def peek_u256(self) -> int:
        return self[len(self) - 1]

    # like peek, but write instead of read, to avoid pop/push overhead
    def tweak_u256(self, v: int):
        self[len(self) - 1] = v

    def back_u256(self, n: int) -> int:
        length = len(self)
        if n + 1 > length:
            raise Exception("bad stack access, interpreter bug")
        return self[length - n - 1]

    def back_address(self, n: int) -> Address:
        return Address.from_u256(self.back_u256(n))


# Memory is grown in 32 byte words by the interpreter, after the expansion has been paid for.
class Memory(bytearray):

    def resize(self, size: int) -> None:
        if size > len(self):
            self.extend(bytes(size - len(self)))

    def get_ptr_32_bytes(self, offset: int) -> bytes:
        return bytes(self[offset:offset + 32])

    def set_32_bytes(self, offset: int, val: bytes):
        if offset + 32 > len(self):
            raise Exception("invalid memory access, must be a bug")
        self[offset:offset + 32] = val

    def read(self, offset: int, size: int) -> bytes:
        if size == 0:
            return b""
        return bytes(self[offset:offset + size])

    def write(self, offset: int, data: bytes) -> None:
        if len(data) == 0:
            return
        if offset + len(data) > len(self):
            raise Exception("invalid memory access, must be a bug")
        self[offset:offset + len(data)] = data


def pad_slice(data: bytes, start: int, size: int) -> bytes:
    # returns a slice from the data based on the start and size and pads
    # up to size with zero's.
    if start >= len(data):
        return bytes(size)
    chunk = data[start:start + size]
    return bytes(chunk) + bytes(size - len(chunk))


class Code(bytes):

    def get_op(self, pc: int) -> int:
        if pc >= len(self):
            return OpCode.STOP
        return self[pc]

    @cached_property
    def jump_dests(self) -> FrozenSet[int]:
        # PUSH immediates are data, not instructions: a 0x5b inside of them is not a JUMPDEST
        dests = set()
        pc = 0
        while pc < len(self):
            op = self[pc]
            if op == OpCode.JUMPDEST:
                dests.add(pc)
            elif OpCode.PUSH1 <= op <= OpCode.PUSH32:
                pc += op - OpCode.PUSH1 + 1
            pc += 1
        return frozenset(dests)

    def valid_jump_dest(self, dest: int) -> bool:
        # PC cannot go beyond len(code). Don't bother checking for JUMPDEST in that case.
        if dest >= len(self):
            return False
        return dest in self.jump_dests


@dataclass(frozen=True)
class Log:
    # address of the contract that generated the event
    address: Address
    # list of topics provided by the contract.
    topics: Tuple[bytes, ...]
    # supplied by the contract, usually ABI-encoded
    data: bytes


@dataclass(frozen=True)
class AccessListEntry:
    address: Address
    storage_keys: Tuple[int, ...] = ()


# based on definition in EIP 1559, legacy transactions only set gas_price
@dataclass(frozen=True)
class Transaction:
    sender: Address
    nonce: int
    gas_limit: int
    # absent for contract creation
    to: Optional[Address] = None
    value: int = 0
    data: bytes = b""
    gas_price: int = 0
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    access_list: Tuple[AccessListEntry, ...] = ()
    chain_id: Optional[int] = None

    @property
    def is_contract_creation(self) -> bool:
        return self.to is None


@dataclass
class BlockScope:
    coinbase: Address = field(default_factory=Address)
    gas_limit: int = 30_000_000
    block_number: int = 0
    time: int = 0
    difficulty: int = 0
    base_fee: int = 0
    chain_id: int = CHAIN_ID
    # Most recent 256 block hashes, by block number
    block_hashes: Dict[int, bytes] = field(default_factory=dict)


@dataclass
class TxScope:
    origin: Address
    gas_price: int


# When entering a contract via one of the CALL opcodes
@dataclass
class CallWorkScope:
    op: OpCode
    caller: Address
    # address of the account whose storage and balance are used, which differs
    # from code_addr for CALLCODE and DELEGATECALL
    addr: Address
    code_addr: Address
    value: int
    # gas supplied to the callee, already deducted from the caller
    gas: int
    read_only: bool
    transfer_value: bool
    # the below are untrusted offsets/sizes, memory was already expanded and paid for
    input_offset: int
    input_size: int
    return_offset: int
    return_size: int


@dataclass
class CreateWorkScope:
    op: OpCode
    value: int
    input_offset: int
    input_size: int
    # Used in create2 only
    salt: Optional[int] = None


# The machine state of a single call frame
@dataclass
class ContractScope:
    self_addr: Address
    caller: Address
    # address of the *code*, used for code opcodes.
    # Not of the self contract, which may have a delegated address
    code_addr: Address
    code: Code
    input: bytes
    gas: int
    value: int = 0
    # Make storage read-only, to support STATIC-CALL
    read_only: bool = False
    # If init-code, then the call continues with contract-creation
    is_init_code: bool = False
    call_depth: int = 0

    pc: int = 0
    stack: Stack = field(default_factory=Stack)
    memory: Memory = field(default_factory=Memory)
    # expanding memory costs quadratically more gas, charged for the difference in words
    active_words: int = 0
    # We compute the memory size, charge for it first, and only then allocate it.
    memory_desired: int = 0
    # output of the last completed child call
    ret_data: bytes = b""
    # output of this frame, set by RETURN and REVERT
    output: bytes = b""

    exec_mode: ExecMode = ExecMode.Running
    # The opcode read from the code at PC, cached for the phases of the step
    op: int = 0
    # gas the CALL dynamic gas computed for the callee, read by the CALL opcode
    call_gas_temp: int = 0

    call_work: Optional[CallWorkScope] = None
    create_work: Optional[CreateWorkScope] = None

    # return false if out of gas
    def use_gas(self, delta: int) -> bool:
        pre_gas = self.gas
        if delta > pre_gas:
            return False
        self.gas = pre_gas - delta
        return True

    def return_gas(self, delta: int) -> None:
        self.gas += delta


# Outcome of a message call or contract creation, as seen by its caller
@dataclass
class CallResult:
    exec_mode: ExecMode
    gas_left: int
    output: bytes = b""
    created_address: Optional[Address] = None

    @property
    def success(self) -> bool:
        return self.exec_mode == ExecMode.Halted

    @property
    def reverted(self) -> bool:
        return self.exec_mode == ExecMode.Reverted
