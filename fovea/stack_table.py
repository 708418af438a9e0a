from .params import STACK_LIMIT


# An operation that pops `pops` items and pushes `push` items needs at least `pops` items,
# and may not start with more than max_stack items, or the result would exceed the limit.

def max_stack(pops: int, push: int) -> int:
    return STACK_LIMIT + pops - push


def min_stack(pops: int, push: int) -> int:
    return pops
