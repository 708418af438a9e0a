import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, Optional, Set

from .errors import FatalInconsistency
from .external import StateSource
from .journal import Journal
from .params import CREATED_ACCOUNT_NONCE
from .scope import Address
from .util import EMPTY_CODE_HASH, keccak_256

logger = logging.getLogger(__name__)


@dataclass
class Account:
    nonce: int = 0
    balance: int = 0
    code: bytes = b""
    # zero values are never stored
    storage: Dict[int, int] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return self.nonce == 0 and self.balance == 0 and len(self.code) == 0 and len(self.storage) == 0

    def copy(self) -> "Account":
        return Account(nonce=self.nonce, balance=self.balance, code=self.code, storage=dict(self.storage))


class WorldState(object):
    """The account mapping during a transaction.

    Accounts are loaded lazily from the external StateSource, and every mutation after that is made
    to the local cache and recorded in the journal, so a frame can be rolled back without cloning state.
    Nothing is written back to the source until flush().
    """

    source: StateSource
    journal: Journal
    # None marks an account known to be absent
    accounts: Dict[bytes, Optional[Account]]
    # storage as it was at the start of the transaction, per account
    original_storage: Dict[bytes, Dict[int, int]]
    # accounts created in this transaction, their original storage is empty
    created: Set[bytes]
    dirty: Set[bytes]

    def __init__(self, source: StateSource, journal: Optional[Journal] = None):
        self.source = source
        self.journal = journal if journal is not None else Journal()
        self.accounts = dict()
        self.original_storage = dict()
        self.created = set()
        self.dirty = set()

    def _load(self, addr: Address) -> Optional[Account]:
        key = bytes(addr)
        if key in self.accounts:
            return self.accounts[key]
        try:
            acc = self.source.read(Address(key))
        except Exception as e:
            raise FatalInconsistency("failed to read account %s" % key.hex()) from e
        if acc is not None:
            acc = acc.copy()
            self.original_storage[key] = dict(acc.storage)
        self.accounts[key] = acc
        return acc

    def _put(self, addr: Address, acc: Optional[Account]) -> None:
        key = bytes(addr)
        prev = self.accounts.get(key)
        was_dirty = key in self.dirty
        self.journal.record(partial(self._restore, key, prev, was_dirty))
        self.accounts[key] = acc
        self.dirty.add(key)

    def _restore(self, key: bytes, acc: Optional[Account], was_dirty: bool) -> None:
        self.accounts[key] = acc
        if not was_dirty:
            self.dirty.discard(key)

    def _mutable(self, addr: Address) -> Account:
        # accounts are created lazily on first write
        acc = self._load(addr)
        if acc is None:
            acc = Account()
        else:
            acc = acc.copy()
        return acc

    def get_account(self, addr: Address) -> Optional[Account]:
        return self._load(addr)

    def account_exists(self, addr: Address) -> bool:
        return self._load(addr) is not None

    def is_empty(self, addr: Address) -> bool:
        acc = self._load(addr)
        return acc is None or acc.is_empty()

    def is_alive(self, addr: Address) -> bool:
        """Exists and is not empty (EIP-161)"""
        return not self.is_empty(addr)

    def get_balance(self, addr: Address) -> int:
        acc = self._load(addr)
        return 0 if acc is None else acc.balance

    def get_nonce(self, addr: Address) -> int:
        acc = self._load(addr)
        return 0 if acc is None else acc.nonce

    def get_code(self, addr: Address) -> bytes:
        acc = self._load(addr)
        return b"" if acc is None else acc.code

    def get_code_hash(self, addr: Address) -> bytes:
        acc = self._load(addr)
        if acc is None:
            return bytes(32)
        if len(acc.code) == 0:
            return EMPTY_CODE_HASH
        return keccak_256(acc.code)

    def get_storage(self, addr: Address, key: int) -> int:
        acc = self._load(addr)
        return 0 if acc is None else acc.storage.get(key, 0)

    def get_original_storage(self, addr: Address, key: int) -> int:
        k = bytes(addr)
        self._load(addr)
        if k in self.created:
            return 0
        return self.original_storage.get(k, {}).get(key, 0)

    def has_storage(self, addr: Address) -> bool:
        acc = self._load(addr)
        return acc is not None and len(acc.storage) > 0

    def set_balance(self, addr: Address, v: int) -> None:
        if v < 0:
            raise Exception("negative balance, must be a bug")
        acc = self._mutable(addr)
        acc.balance = v
        self._put(addr, acc)

    def add_balance(self, addr: Address, v: int) -> None:
        self.set_balance(addr, self.get_balance(addr) + v)

    def sub_balance(self, addr: Address, v: int) -> None:
        self.set_balance(addr, self.get_balance(addr) - v)

    def transfer(self, sender: Address, to: Address, value: int) -> None:
        self.sub_balance(sender, value)
        self.add_balance(to, value)

    def set_nonce(self, addr: Address, v: int) -> None:
        acc = self._mutable(addr)
        acc.nonce = v
        self._put(addr, acc)

    def increment_nonce(self, addr: Address) -> None:
        self.set_nonce(addr, self.get_nonce(addr) + 1)

    def set_code(self, addr: Address, code: bytes) -> None:
        acc = self._mutable(addr)
        acc.code = bytes(code)
        self._put(addr, acc)

    def set_storage(self, addr: Address, key: int, value: int) -> None:
        acc = self._mutable(addr)
        if value == 0:
            acc.storage.pop(key, None)
        else:
            acc.storage[key] = value
        self._put(addr, acc)

    def touch(self, addr: Address) -> None:
        # materialize the account, an empty account may be pruned later
        if self._load(addr) is None:
            self._put(addr, Account())

    def create_account(self, addr: Address) -> None:
        """Start a fresh contract account. A balance sent to the address before its creation is kept."""
        key = bytes(addr)
        acc = Account(nonce=CREATED_ACCOUNT_NONCE, balance=self.get_balance(addr))
        self._put(addr, acc)
        if key not in self.created:
            self.created.add(key)
            self.journal.record(partial(self.created.discard, key))

    def delete_account(self, addr: Address) -> None:
        self._load(addr)
        self._put(addr, None)

    def checkpoint(self) -> int:
        return self.journal.checkpoint()

    def commit(self) -> None:
        self.journal.commit()

    def revert(self) -> None:
        self.journal.revert()

    def flush(self) -> None:
        """Write every changed account back to the source"""
        for key in sorted(self.dirty):
            acc = self.accounts[key]
            addr = Address(key)
            try:
                if acc is None:
                    self.source.delete(addr)
                else:
                    self.source.write(addr, acc.copy())
            except Exception as e:
                raise FatalInconsistency("failed to write account %s" % key.hex()) from e
        logger.debug("flushed %d accounts", len(self.dirty))
        self.dirty.clear()
