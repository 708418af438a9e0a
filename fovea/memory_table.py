from typing import Tuple

from .scope import Stack

UINT64_LIMIT = 1 << 64


# calc_mem_size_64 calculates the required memory size (offset + length), and returns
# the size and whether the result overflowed uint64. A zero length never requires memory,
# regardless of the offset.
def calc_mem_size_64(off: int, l: int) -> Tuple[int, bool]:
    if l >= UINT64_LIMIT:
        return 0, True
    return calc_mem_size_64_with_uint(off, l)


def calc_mem_size_64_with_uint(off: int, l: int) -> Tuple[int, bool]:
    if l == 0:
        return 0, False
    if off >= UINT64_LIMIT:
        return 0, True
    val = off + l
    if val >= UINT64_LIMIT:
        return 0, True
    return val, False


def memory_sha3(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(0), stack.back_u256(1))


def memory_call_data_copy(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(0), stack.back_u256(2))


def memory_return_data_copy(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(0), stack.back_u256(2))


def memory_code_copy(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(0), stack.back_u256(2))


def memory_ext_code_copy(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(1), stack.back_u256(3))


def memory_mload(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64_with_uint(stack.back_u256(0), 32)


def memory_mstore8(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64_with_uint(stack.back_u256(0), 1)


def memory_mstore(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64_with_uint(stack.back_u256(0), 32)


def memory_create(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(1), stack.back_u256(2))


def memory_create2(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(1), stack.back_u256(2))


def _max_in_out(stack: Stack, in_pos: int) -> Tuple[int, bool]:
    # The return data size
    x, overflow = calc_mem_size_64(stack.back_u256(in_pos + 2), stack.back_u256(in_pos + 3))
    if overflow:
        return 0, True
    # The input data size
    y, overflow = calc_mem_size_64(stack.back_u256(in_pos), stack.back_u256(in_pos + 1))
    if overflow:
        return 0, True
    return max(x, y), False


def memory_call(stack: Stack) -> Tuple[int, bool]:
    # gas, addr, value, in_offset, in_size, out_offset, out_size
    return _max_in_out(stack, 3)


def memory_delegate_call(stack: Stack) -> Tuple[int, bool]:
    # gas, addr, in_offset, in_size, out_offset, out_size
    return _max_in_out(stack, 2)


def memory_static_call(stack: Stack) -> Tuple[int, bool]:
    return _max_in_out(stack, 2)


def memory_return(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(0), stack.back_u256(1))


def memory_revert(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(0), stack.back_u256(1))


def memory_log(stack: Stack) -> Tuple[int, bool]:
    return calc_mem_size_64(stack.back_u256(0), stack.back_u256(1))
