from typing import TYPE_CHECKING, Callable

from .exec_mode import ExecMode
from .gas_table import sstore_cost_and_refund
from .opcodes import OpCode
from .params import CALL_STIPEND
from .scope import (
    UINT256_MASK, Address, ContractScope, Log, CallWorkScope, CreateWorkScope,
    pad_slice, to_signed, to_unsigned,
)
from .util import keccak_256

if TYPE_CHECKING:
    from .interpreter import EVM

Processor = Callable[["EVM", ContractScope], None]


def progress(frame: ContractScope) -> None:
    # progress to the next opcode. Common between a lot of opcodes
    frame.pc += 1


def op_add(evm: "EVM", frame: ContractScope) -> None:
    # leave 1 top stack slot in place,
    # more efficient to not change length more than necessary
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256((x + y) & UINT256_MASK)
    progress(frame)


def op_sub(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256((x - y) & UINT256_MASK)
    progress(frame)


def op_mul(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256((x * y) & UINT256_MASK)
    progress(frame)


def op_div(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(0 if y == 0 else x // y)
    progress(frame)


# SDiv interprets x and y as two's complement signed integers,
# does a signed division on the two operands, rounding towards zero.
# If y == 0, the result is 0
def op_sdiv(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    z = 0
    if y != 0:
        sx, sy = to_signed(x), to_signed(y)
        z = abs(sx) // abs(sy)
        if (sx < 0) != (sy < 0):
            z = -z
    frame.stack.tweak_u256(to_unsigned(z))
    progress(frame)


def op_mod(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(0 if y == 0 else x % y)
    progress(frame)


# SMod interprets x and y as two's complement signed integers,
# sets z to (sign x) * { abs(x) modulus abs(y) }
# If y == 0, z is set to 0
def op_smod(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    z = 0
    if y != 0:
        sx, sy = to_signed(x), to_signed(y)
        z = abs(sx) % abs(sy)
        if sx < 0:
            z = -z
    frame.stack.tweak_u256(to_unsigned(z))
    progress(frame)


def op_addmod(evm: "EVM", frame: ContractScope) -> None:
    x, y, m = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(0 if m == 0 else (x + y) % m)
    progress(frame)


def op_mulmod(evm: "EVM", frame: ContractScope) -> None:
    x, y, m = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(0 if m == 0 else (x * y) % m)
    progress(frame)


def op_exp(evm: "EVM", frame: ContractScope) -> None:
    base, exponent = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(pow(base, exponent, 1 << 256))
    progress(frame)


# extends the sign bit of the (back+1)-th lowest byte to the full word
def op_sign_extend(evm: "EVM", frame: ContractScope) -> None:
    back, num = frame.stack.pop_u256(), frame.stack.peek_u256()
    if back < 31:
        bit = back * 8 + 7
        mask = (1 << bit) - 1
        if (num >> bit) & 1:
            num = num | (UINT256_MASK ^ mask)
        else:
            num = num & mask
        frame.stack.tweak_u256(num)
    progress(frame)


def op_not(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.tweak_u256(frame.stack.peek_u256() ^ UINT256_MASK)
    progress(frame)


def op_lt(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(1 if x < y else 0)
    progress(frame)


def op_gt(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(1 if x > y else 0)
    progress(frame)


def op_slt(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(1 if to_signed(x) < to_signed(y) else 0)
    progress(frame)


def op_sgt(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(1 if to_signed(x) > to_signed(y) else 0)
    progress(frame)


def op_eq(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(1 if x == y else 0)
    progress(frame)


def op_iszero(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.tweak_u256(1 if frame.stack.peek_u256() == 0 else 0)
    progress(frame)


def op_and(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(x & y)
    progress(frame)


def op_or(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(x | y)
    progress(frame)


def op_xor(evm: "EVM", frame: ContractScope) -> None:
    x, y = frame.stack.pop_u256(), frame.stack.peek_u256()
    frame.stack.tweak_u256(x ^ y)
    progress(frame)


# byte i of x, counting from the most significant byte
def op_byte(evm: "EVM", frame: ContractScope) -> None:
    th, val = frame.stack.pop_u256(), frame.stack.peek_u256()
    if th < 32:
        frame.stack.tweak_u256((val >> (8 * (31 - th))) & 0xff)
    else:
        frame.stack.tweak_u256(0)
    progress(frame)


# Shift Left: pops 2 values from the stack, first arg1 and then arg2,
# and pushes on the stack arg2 shifted to the left by arg1 number of bits.
def op_shl(evm: "EVM", frame: ContractScope) -> None:
    shift, value = frame.stack.pop_u256(), frame.stack.peek_u256()
    if shift < 256:
        frame.stack.tweak_u256((value << shift) & UINT256_MASK)
    else:
        frame.stack.tweak_u256(0)
    progress(frame)


# Logical Shift Right: like shl, but shifting to the right and filling with zeroes.
def op_shr(evm: "EVM", frame: ContractScope) -> None:
    shift, value = frame.stack.pop_u256(), frame.stack.peek_u256()
    if shift < 256:
        frame.stack.tweak_u256(value >> shift)
    else:
        frame.stack.tweak_u256(0)
    progress(frame)


# Arithmetic Shift Right: like shr, but filling with the sign bit.
def op_sar(evm: "EVM", frame: ContractScope) -> None:
    shift, value = frame.stack.pop_u256(), frame.stack.peek_u256()
    signed = to_signed(value)
    if shift >= 256:
        frame.stack.tweak_u256(0 if signed >= 0 else UINT256_MASK)
    else:
        frame.stack.tweak_u256(to_unsigned(signed >> shift))
    progress(frame)


def op_sha3(evm: "EVM", frame: ContractScope) -> None:
    offset, size = frame.stack.pop_u256(), frame.stack.peek_u256()
    data = frame.memory.read(offset, size)
    frame.stack.tweak_u256(int.from_bytes(keccak_256(data), byteorder='big'))
    progress(frame)


def op_address(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(frame.self_addr.to_u256())
    progress(frame)


def op_balance(evm: "EVM", frame: ContractScope) -> None:
    addr = Address.from_u256(frame.stack.peek_u256())
    frame.stack.tweak_u256(evm.world.get_balance(addr))
    progress(frame)


def op_self_balance(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.world.get_balance(frame.self_addr))
    progress(frame)


def op_origin(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.tx_scope.origin.to_u256())
    progress(frame)


def op_caller(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(frame.caller.to_u256())
    progress(frame)


def op_call_value(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(frame.value)
    progress(frame)


def op_call_data_load(evm: "EVM", frame: ContractScope) -> None:
    # reading beyond the input is allowed, it just results in zeroes
    x = frame.stack.peek_u256()
    frame.stack.tweak_u256(int.from_bytes(pad_slice(frame.input, x, 32), byteorder='big'))
    progress(frame)


def op_call_data_size(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(len(frame.input))
    progress(frame)


def op_call_data_copy(evm: "EVM", frame: ContractScope) -> None:
    mem_offset, data_offset, length = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.pop_u256()
    if length > 0:
        # the memory was already expanded by the interpreter
        frame.memory.write(mem_offset, pad_slice(frame.input, data_offset, length))
    progress(frame)


def op_return_data_size(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(len(frame.ret_data))
    progress(frame)


def op_return_data_copy(evm: "EVM", frame: ContractScope) -> None:
    mem_offset, data_offset, length = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.pop_u256()
    # Different than other copy instructions:
    # check bounds of the copy (memory is checked by interpreter, return data is not)
    if data_offset + length > len(frame.ret_data):
        frame.exec_mode = ExecMode.ErrInvalidMemoryAccess
        return
    frame.memory.write(mem_offset, frame.ret_data[data_offset:data_offset + length])
    progress(frame)


def op_ext_code_size(evm: "EVM", frame: ContractScope) -> None:
    addr = Address.from_u256(frame.stack.peek_u256())
    frame.stack.tweak_u256(len(evm.world.get_code(addr)))
    progress(frame)


def op_code_size(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(len(frame.code))
    progress(frame)


def op_code_copy(evm: "EVM", frame: ContractScope) -> None:
    mem_offset, code_offset, length = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.pop_u256()
    if length > 0:
        frame.memory.write(mem_offset, pad_slice(frame.code, code_offset, length))
    progress(frame)


def op_ext_code_copy(evm: "EVM", frame: ContractScope) -> None:
    addr = Address.from_u256(frame.stack.pop_u256())
    mem_offset, code_offset, length = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.pop_u256()
    if length > 0:
        frame.memory.write(mem_offset, pad_slice(evm.world.get_code(addr), code_offset, length))
    progress(frame)


# Empty accounts (EIP-161) have a zero code hash, other accounts the hash of their code,
# which is the empty-code hash for accounts without code.
def op_ext_code_hash(evm: "EVM", frame: ContractScope) -> None:
    addr = Address.from_u256(frame.stack.peek_u256())
    if evm.world.is_empty(addr):
        frame.stack.tweak_u256(0)
    else:
        frame.stack.tweak_u256(int.from_bytes(evm.world.get_code_hash(addr), byteorder='big'))
    progress(frame)


def op_gas_price(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.tx_scope.gas_price)
    progress(frame)


def op_block_hash(evm: "EVM", frame: ContractScope) -> None:
    num = frame.stack.peek_u256()
    # upper bound (excl.) current block number
    upper = evm.block.block_number
    # lower bound (incl.): ensure 256 history, or clip to 0 genesis
    lower = upper - 256 if upper > 256 else 0
    if lower <= num < upper:
        frame.stack.tweak_u256(int.from_bytes(evm.block.block_hashes.get(num, bytes(32)), byteorder='big'))
    else:
        frame.stack.tweak_u256(0)
    progress(frame)


def op_coinbase(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.block.coinbase.to_u256())
    progress(frame)


def op_timestamp(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.block.time)
    progress(frame)


def op_number(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.block.block_number)
    progress(frame)


def op_difficulty(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.block.difficulty)
    progress(frame)


def op_gas_limit(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.block.gas_limit)
    progress(frame)


def op_chain_id(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.block.chain_id)
    progress(frame)


def op_base_fee(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(evm.block.base_fee)
    progress(frame)


def op_pop(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.pop_u256()
    progress(frame)


def op_mload(evm: "EVM", frame: ContractScope) -> None:
    offset = frame.stack.peek_u256()
    frame.stack.tweak_u256(int.from_bytes(frame.memory.get_ptr_32_bytes(offset), byteorder='big'))
    progress(frame)


def op_mstore(evm: "EVM", frame: ContractScope) -> None:
    m_start, val = frame.stack.pop_u256(), frame.stack.pop_b32()
    frame.memory.set_32_bytes(m_start, val)
    progress(frame)


def op_mstore8(evm: "EVM", frame: ContractScope) -> None:
    off, val = frame.stack.pop_u256(), frame.stack.pop_u256()
    # safe, memory-size and gas funcs check this already
    frame.memory[off] = val & 0xff
    progress(frame)


def op_sload(evm: "EVM", frame: ContractScope) -> None:
    key = frame.stack.peek_u256()
    frame.stack.tweak_u256(evm.world.get_storage(frame.self_addr, key))
    progress(frame)


def op_sstore(evm: "EVM", frame: ContractScope) -> None:
    key, value = frame.stack.pop_u256(), frame.stack.pop_u256()
    current = evm.world.get_storage(frame.self_addr, key)
    original = evm.world.get_original_storage(frame.self_addr, key)
    # the cost was charged as dynamic gas already, only the refund is left to apply
    _, refund = sstore_cost_and_refund(original, current, value, False)
    if refund > 0:
        evm.substate.add_refund(refund)
    elif refund < 0:
        evm.substate.sub_refund(-refund)
    evm.world.set_storage(frame.self_addr, key, value)
    progress(frame)


def op_jump(evm: "EVM", frame: ContractScope) -> None:
    pos = frame.stack.pop_u256()
    if not frame.code.valid_jump_dest(pos):
        frame.exec_mode = ExecMode.ErrInvalidJump
        return
    frame.pc = pos


def op_jump_i(evm: "EVM", frame: ContractScope) -> None:
    pos, cond = frame.stack.pop_u256(), frame.stack.pop_u256()
    if cond != 0:
        if not frame.code.valid_jump_dest(pos):
            frame.exec_mode = ExecMode.ErrInvalidJump
            return
        # perform jump
        frame.pc = pos
    else:
        # just go to next opcode, jump conditional was false
        progress(frame)


def op_jump_dest(evm: "EVM", frame: ContractScope) -> None:
    # no-op, except for moving onto the next opcode
    progress(frame)


def op_pc(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(frame.pc)
    progress(frame)


def op_msize(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(len(frame.memory))
    progress(frame)


def op_gas(evm: "EVM", frame: ContractScope) -> None:
    frame.stack.push_u256(frame.gas)
    progress(frame)


def op_create(evm: "EVM", frame: ContractScope) -> None:
    value, offset, size = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.pop_u256()
    frame.create_work = CreateWorkScope(
        op=OpCode.CREATE,
        value=value,
        input_offset=offset,
        input_size=size,
    )
    # stack result push and gas return is all part of create work
    frame.exec_mode = ExecMode.CreateSetup


def op_create2(evm: "EVM", frame: ContractScope) -> None:
    value, offset, size = frame.stack.pop_u256(), frame.stack.pop_u256(), frame.stack.pop_u256()
    salt = frame.stack.pop_u256()
    frame.create_work = CreateWorkScope(
        op=OpCode.CREATE2,
        value=value,
        input_offset=offset,
        input_size=size,
        salt=salt,
    )
    frame.exec_mode = ExecMode.CreateSetup


def op_call(evm: "EVM", frame: ContractScope) -> None:
    value = frame.stack.back_u256(2)
    # the gas argument was replaced by the amount the dynamic gas function computed
    gas = frame.call_gas_temp
    if value != 0:
        gas += CALL_STIPEND
    addr = frame.stack.back_address(1)
    input_offset = frame.stack.back_u256(3)
    input_size = frame.stack.back_u256(4)
    return_offset = frame.stack.back_u256(5)
    return_size = frame.stack.back_u256(6)
    # pop it all at once
    frame.stack.pop_n(7)

    frame.call_work = CallWorkScope(
        op=OpCode.CALL,
        caller=frame.self_addr,
        addr=addr,
        code_addr=addr,
        value=value,
        gas=gas,
        read_only=frame.read_only,  # inherit readonly mode
        transfer_value=True,
        input_offset=input_offset,
        input_size=input_size,
        return_offset=return_offset,
        return_size=return_size,
    )
    # stack result push, return data memory copy and gas return is all part of call work
    frame.exec_mode = ExecMode.CallSetup


def op_call_code(evm: "EVM", frame: ContractScope) -> None:
    gas = frame.call_gas_temp
    code_addr = frame.stack.back_address(1)
    value = frame.stack.back_u256(2)
    if value != 0:
        gas += CALL_STIPEND
    input_offset = frame.stack.back_u256(3)
    input_size = frame.stack.back_u256(4)
    return_offset = frame.stack.back_u256(5)
    return_size = frame.stack.back_u256(6)
    frame.stack.pop_n(7)

    # runs the code of another account in the context (storage and balance) of this account
    frame.call_work = CallWorkScope(
        op=OpCode.CALLCODE,
        caller=frame.self_addr,
        addr=frame.self_addr,
        code_addr=code_addr,
        value=value,
        gas=gas,
        read_only=frame.read_only,
        transfer_value=True,
        input_offset=input_offset,
        input_size=input_size,
        return_offset=return_offset,
        return_size=return_size,
    )
    frame.exec_mode = ExecMode.CallSetup


def op_delegate_call(evm: "EVM", frame: ContractScope) -> None:
    gas = frame.call_gas_temp
    code_addr = frame.stack.back_address(1)
    input_offset = frame.stack.back_u256(2)
    input_size = frame.stack.back_u256(3)
    return_offset = frame.stack.back_u256(4)
    return_size = frame.stack.back_u256(5)
    frame.stack.pop_n(6)

    # caller and value are inherited, no value is transferred
    frame.call_work = CallWorkScope(
        op=OpCode.DELEGATECALL,
        caller=frame.caller,
        addr=frame.self_addr,
        code_addr=code_addr,
        value=frame.value,
        gas=gas,
        read_only=frame.read_only,
        transfer_value=False,
        input_offset=input_offset,
        input_size=input_size,
        return_offset=return_offset,
        return_size=return_size,
    )
    frame.exec_mode = ExecMode.CallSetup


def op_static_call(evm: "EVM", frame: ContractScope) -> None:
    gas = frame.call_gas_temp
    addr = frame.stack.back_address(1)
    input_offset = frame.stack.back_u256(2)
    input_size = frame.stack.back_u256(3)
    return_offset = frame.stack.back_u256(4)
    return_size = frame.stack.back_u256(5)
    frame.stack.pop_n(6)

    frame.call_work = CallWorkScope(
        op=OpCode.STATICCALL,
        caller=frame.self_addr,
        addr=addr,
        code_addr=addr,
        value=0,
        gas=gas,
        read_only=True,
        transfer_value=True,
        input_offset=input_offset,
        input_size=input_size,
        return_offset=return_offset,
        return_size=return_size,
    )
    frame.exec_mode = ExecMode.CallSetup


def op_return(evm: "EVM", frame: ContractScope) -> None:
    offset, size = frame.stack.pop_u256(), frame.stack.pop_u256()
    # interpreter already did gas check and memory expansion
    frame.output = frame.memory.read(offset, size)
    frame.exec_mode = ExecMode.Halted


def op_revert(evm: "EVM", frame: ContractScope) -> None:
    offset, size = frame.stack.pop_u256(), frame.stack.pop_u256()
    frame.output = frame.memory.read(offset, size)
    frame.exec_mode = ExecMode.Reverted


def op_stop(evm: "EVM", frame: ContractScope) -> None:
    # halting opcode
    frame.exec_mode = ExecMode.Halted


# The balance moves to the beneficiary right away, the account itself
# is only deleted when the transaction settles.
def op_self_destruct(evm: "EVM", frame: ContractScope) -> None:
    beneficiary = Address.from_u256(frame.stack.pop_u256())
    balance = evm.world.get_balance(frame.self_addr)
    evm.world.add_balance(beneficiary, balance)
    evm.substate.touch(beneficiary)
    # when the beneficiary is the account itself, the balance is burned
    evm.world.set_balance(frame.self_addr, 0)
    evm.substate.add_self_destruct(frame.self_addr)
    frame.exec_mode = ExecMode.Halted


def make_log(size: int) -> Processor:
    def op_log(evm: "EVM", frame: ContractScope) -> None:
        m_start, m_size = frame.stack.pop_u256(), frame.stack.pop_u256()
        topics = []
        for i in range(size):
            topics.append(frame.stack.pop_b32())

        evm.substate.add_log(Log(
            address=frame.self_addr,
            topics=tuple(topics),
            data=frame.memory.read(m_start, m_size),
        ))
        progress(frame)
    return op_log


def make_push(size: int) -> Processor:
    assert 1 <= size <= 32

    def op_push(evm: "EVM", frame: ContractScope) -> None:
        # don't read any code out of bounds, missing bytes are right-padded zeroes
        start = frame.pc + 1
        content = frame.code[start:start + size]
        if len(content) < size:
            content = bytes(content) + bytes(size - len(content))
        frame.stack.push_u256(int.from_bytes(content, byteorder='big'))
        # continue after pushed bytes (will be STOP if already beyond code length)
        frame.pc = start + size
    return op_push


def make_dup(size: int) -> Processor:
    def op_dup(evm: "EVM", frame: ContractScope) -> None:
        frame.stack.dup(size)
        progress(frame)
    return op_dup


def make_swap(size: int) -> Processor:
    # switch n + 1 otherwise n would be swapped with n
    size += 1

    def op_swap(evm: "EVM", frame: ContractScope) -> None:
        frame.stack.swap(size)
        progress(frame)
    return op_swap
