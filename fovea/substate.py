from functools import partial
from typing import List, Set, Tuple

from .journal import Journal
from .scope import Address, Log


class SubState(object):
    """Side effects accrued over the whole transaction, shared by every frame.

    The self-destruct set, the logs, the touched accounts and the refund counter are journaled together
    with the world state, so they are dropped with a failed frame.
    The access sets only ever grow: warming an account or slot is never undone.

    Touching follows EIP-161: only calls, value transfers and the coinbase payment touch an account.
    Reading an account (BALANCE, EXTCODESIZE, EXTCODECOPY, EXTCODEHASH) does not, so an empty account
    that is only read survives settlement.
    """

    def __init__(self, journal: Journal):
        self.journal = journal
        self.self_destruct_set: Set[bytes] = set()
        self.logs: List[Log] = []
        self.touched_accounts: Set[bytes] = set()
        self.refund: int = 0
        self.accessed_accounts: Set[bytes] = set()
        self.accessed_storage: Set[Tuple[bytes, int]] = set()

    def add_self_destruct(self, addr: Address) -> None:
        key = bytes(addr)
        if key in self.self_destruct_set:
            return
        self.self_destruct_set.add(key)
        self.journal.record(partial(self.self_destruct_set.discard, key))

    def has_self_destructed(self, addr: Address) -> bool:
        return bytes(addr) in self.self_destruct_set

    def add_log(self, log: Log) -> None:
        self.logs.append(log)
        self.journal.record(self.logs.pop)

    def touch(self, addr: Address) -> None:
        key = bytes(addr)
        if key in self.touched_accounts:
            return
        self.touched_accounts.add(key)
        self.journal.record(partial(self.touched_accounts.discard, key))

    def add_refund(self, gas: int) -> None:
        self.refund += gas
        self.journal.record(partial(self._sub_refund_raw, gas))

    def sub_refund(self, gas: int) -> None:
        if gas > self.refund:
            raise Exception("refund counter below zero (gas: %d > refund: %d)" % (gas, self.refund))
        self.refund -= gas
        self.journal.record(partial(self._add_refund_raw, gas))

    def _add_refund_raw(self, gas: int) -> None:
        self.refund += gas

    def _sub_refund_raw(self, gas: int) -> None:
        self.refund -= gas

    # returns True if the account was already warm
    def access_account(self, addr: Address) -> bool:
        key = bytes(addr)
        warm = key in self.accessed_accounts
        self.accessed_accounts.add(key)
        return warm

    # returns True if the slot was already warm
    def access_storage(self, addr: Address, slot: int) -> bool:
        key = (bytes(addr), slot)
        warm = key in self.accessed_storage
        self.accessed_storage.add(key)
        return warm

    def is_account_warm(self, addr: Address) -> bool:
        return bytes(addr) in self.accessed_accounts

    def is_storage_warm(self, addr: Address, slot: int) -> bool:
        return (bytes(addr), slot) in self.accessed_storage
