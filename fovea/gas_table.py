from typing import TYPE_CHECKING, Callable, Tuple

from .params import (
    MEMORY_GAS, QUAD_COEFF_DIV, COPY_GAS, SHA3_WORD_GAS, EXP_BYTE_EIP158,
    LOG_GAS, LOG_TOPIC_GAS, LOG_DATA_GAS,
    CALL_VALUE_TRANSFER_GAS, CALL_NEW_ACCOUNT_GAS, CREATE_BY_SELFDESTRUCT_GAS,
    SSTORE_SENTRY_GAS_EIP2200, SSTORE_SET_GAS_EIP2200, SSTORE_RESET_GAS_EIP2200,
    SSTORE_CLEARS_SCHEDULE_REFUND_EIP3529,
    COLD_ACCOUNT_ACCESS_COST_EIP2929, COLD_SLOAD_COST_EIP2929, WARM_STORAGE_READ_COST_EIP2929,
)
from .scope import Address, ContractScope

if TYPE_CHECKING:
    from .interpreter import EVM

# (evm, frame, new memory size in bytes, rounded up to words) -> (gas, out of gas)
GasFunc = Callable[["EVM", ContractScope, int], Tuple[int, bool]]

# The largest memory size that does not overflow the gas computation
MAX_MEMORY_SIZE = 0x1FFFFFFFE0


def to_word_size(size: int) -> int:
    return (size + 31) // 32


def memory_cost(words: int) -> int:
    return words * MEMORY_GAS + (words * words) // QUAD_COEFF_DIV


# memory_gas_cost calculates the quadratic gas for memory expansion. It does so
# only for the memory region that is expanded, not the total memory.
def memory_gas_cost(frame: ContractScope, new_mem_size: int) -> Tuple[int, bool]:
    if new_mem_size == 0:
        return 0, False
    if new_mem_size > MAX_MEMORY_SIZE:
        return 0, True
    new_words = to_word_size(new_mem_size)
    if new_words <= frame.active_words:
        return 0, False
    return memory_cost(new_words) - memory_cost(frame.active_words), False


def gas_pure_memory_gas_cost(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    return memory_gas_cost(frame, mem_size)


gas_return = gas_pure_memory_gas_cost
gas_revert = gas_pure_memory_gas_cost
gas_mload = gas_pure_memory_gas_cost
gas_mstore8 = gas_pure_memory_gas_cost
gas_mstore = gas_pure_memory_gas_cost
gas_create = gas_pure_memory_gas_cost


def memory_copier_gas(stack_pos: int) -> GasFunc:
    """Memory expansion plus a per-word copy cost, the copied size is taken from the stack"""
    def gas_copy(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
        gas, oog = memory_gas_cost(frame, mem_size)
        if oog:
            return 0, True
        words = to_word_size(frame.stack.back_u256(stack_pos))
        return gas + words * COPY_GAS, False
    return gas_copy


gas_call_data_copy = memory_copier_gas(2)
gas_code_copy = memory_copier_gas(2)
gas_return_data_copy = memory_copier_gas(2)
_gas_ext_code_copy_memory = memory_copier_gas(3)


def gas_sha3(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    gas, oog = memory_gas_cost(frame, mem_size)
    if oog:
        return 0, True
    words = to_word_size(frame.stack.back_u256(1))
    return gas + words * SHA3_WORD_GAS, False


def gas_create2(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    gas, oog = memory_gas_cost(frame, mem_size)
    if oog:
        return 0, True
    # the init code is hashed for the address
    words = to_word_size(frame.stack.back_u256(2))
    return gas + words * SHA3_WORD_GAS, False


def gas_exp(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    exp_byte_len = (frame.stack.back_u256(1).bit_length() + 7) // 8
    return exp_byte_len * EXP_BYTE_EIP158, False


def make_gas_log(n: int) -> GasFunc:
    def gas_log(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
        gas, oog = memory_gas_cost(frame, mem_size)
        if oog:
            return 0, True
        size = frame.stack.back_u256(1)
        return gas + LOG_GAS + n * LOG_TOPIC_GAS + size * LOG_DATA_GAS, False
    return gas_log


# The warm cost is the constant gas of the account-accessing opcodes,
# the cold surcharge is charged dynamically, and warms the account regardless of the outcome.
def cold_account_surcharge(evm: "EVM", addr: Address) -> int:
    if evm.substate.access_account(addr):
        return 0
    return COLD_ACCOUNT_ACCESS_COST_EIP2929 - WARM_STORAGE_READ_COST_EIP2929


def gas_account_check(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    # BALANCE, EXTCODESIZE, EXTCODEHASH
    return cold_account_surcharge(evm, frame.stack.back_address(0)), False


def gas_ext_code_copy(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    gas, oog = _gas_ext_code_copy_memory(evm, frame, mem_size)
    if oog:
        return 0, True
    return gas + cold_account_surcharge(evm, frame.stack.back_address(0)), False


def gas_sload(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    slot = frame.stack.back_u256(0)
    if evm.substate.access_storage(frame.self_addr, slot):
        return WARM_STORAGE_READ_COST_EIP2929, False
    return COLD_SLOAD_COST_EIP2929, False


def sstore_cost_and_refund(original: int, current: int, value: int, cold: bool) -> Tuple[int, int]:
    """Net gas metering of SSTORE (EIP-2200), with access costs (EIP-2929) and reduced refunds (EIP-3529).
    Returns the gas cost and the change to the refund counter."""
    cost = COLD_SLOAD_COST_EIP2929 if cold else 0
    refund = 0
    if current == value:  # noop (1)
        return cost + WARM_STORAGE_READ_COST_EIP2929, refund
    if original == current:
        if original == 0:  # create slot (2.1.1)
            return cost + SSTORE_SET_GAS_EIP2200, refund
        if value == 0:  # delete slot (2.1.2b)
            refund += SSTORE_CLEARS_SCHEDULE_REFUND_EIP3529
        # write existing slot (2.1.2)
        return cost + (SSTORE_RESET_GAS_EIP2200 - COLD_SLOAD_COST_EIP2929), refund
    if original != 0:
        if current == 0:  # recreate slot (2.2.1.1)
            refund -= SSTORE_CLEARS_SCHEDULE_REFUND_EIP3529
        elif value == 0:  # delete slot (2.2.1.2)
            refund += SSTORE_CLEARS_SCHEDULE_REFUND_EIP3529
    if original == value:
        if original == 0:  # reset to original inexistent slot (2.2.2.1)
            refund += SSTORE_SET_GAS_EIP2200 - WARM_STORAGE_READ_COST_EIP2929
        else:  # reset to original existing slot (2.2.2.2)
            refund += (SSTORE_RESET_GAS_EIP2200 - COLD_SLOAD_COST_EIP2929) - WARM_STORAGE_READ_COST_EIP2929
    return cost + WARM_STORAGE_READ_COST_EIP2929, refund  # dirty update (2.2)


def gas_sstore(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    # If we fail the minimum gas availability invariant, fail (0)
    if frame.gas <= SSTORE_SENTRY_GAS_EIP2200:
        return 0, True
    slot = frame.stack.back_u256(0)
    value = frame.stack.back_u256(1)
    cold = not evm.substate.access_storage(frame.self_addr, slot)
    current = evm.world.get_storage(frame.self_addr, slot)
    original = evm.world.get_original_storage(frame.self_addr, slot)
    cost, _ = sstore_cost_and_refund(original, current, value, cold)
    return cost, False


def gas_self_destruct(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    beneficiary = frame.stack.back_address(0)
    gas = 0
    if not evm.substate.access_account(beneficiary):
        gas += COLD_ACCOUNT_ACCESS_COST_EIP2929
    if evm.world.is_empty(beneficiary) and evm.world.get_balance(frame.self_addr) != 0:
        gas += CREATE_BY_SELFDESTRUCT_GAS
    return gas, False


# call_gas returns the gas forwarded to the callee: all but one 64th of what is left
# after the base cost, capped at what the caller requested (EIP-150).
def call_gas(available: int, base: int, requested: int) -> Tuple[int, bool]:
    if base > available:
        return 0, True
    gas = available - base
    gas = gas - gas // 64
    return min(gas, requested), False


def _finish_call_gas(frame: ContractScope, base: int) -> Tuple[int, bool]:
    gas, oog = call_gas(frame.gas, base, frame.stack.back_u256(0))
    if oog:
        return 0, True
    frame.call_gas_temp = gas
    return base + gas, False


def gas_call(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    addr = frame.stack.back_address(1)
    transfers_value = frame.stack.back_u256(2) != 0
    gas = cold_account_surcharge(evm, addr)
    if transfers_value and evm.world.is_empty(addr):
        gas += CALL_NEW_ACCOUNT_GAS
    mem_gas, oog = memory_gas_cost(frame, mem_size)
    if oog:
        return 0, True
    gas += mem_gas
    if transfers_value:
        gas += CALL_VALUE_TRANSFER_GAS
    return _finish_call_gas(frame, gas)


def gas_call_code(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    gas = cold_account_surcharge(evm, frame.stack.back_address(1))
    mem_gas, oog = memory_gas_cost(frame, mem_size)
    if oog:
        return 0, True
    gas += mem_gas
    if frame.stack.back_u256(2) != 0:
        gas += CALL_VALUE_TRANSFER_GAS
    return _finish_call_gas(frame, gas)


def gas_delegate_call(evm: "EVM", frame: ContractScope, mem_size: int) -> Tuple[int, bool]:
    gas = cold_account_surcharge(evm, frame.stack.back_address(1))
    mem_gas, oog = memory_gas_cost(frame, mem_size)
    if oog:
        return 0, True
    return _finish_call_gas(frame, gas + mem_gas)


gas_static_call = gas_delegate_call
