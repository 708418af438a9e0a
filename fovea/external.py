from typing import TYPE_CHECKING, Callable, Dict, Optional, Protocol, Tuple

from .scope import Address

if TYPE_CHECKING:
    from .state import Account


class StateSource(Protocol):
    """Storage backend of the world state, e.g. a trie over a key-value database.
    The commitment (state root) computation is the business of the backend."""

    def read(self, address: Address) -> Optional["Account"]:
        raise NotImplementedError

    def write(self, address: Address, account: "Account") -> None:
        raise NotImplementedError

    def delete(self, address: Address) -> None:
        raise NotImplementedError


class MemorySource(StateSource):
    """Dict-backed state, for tests and the CLI."""

    accounts: Dict[bytes, "Account"]

    def __init__(self, accounts: Optional[Dict[bytes, "Account"]] = None):
        self.accounts = dict(accounts) if accounts is not None else dict()

    def read(self, address: Address) -> Optional["Account"]:
        return self.accounts.get(bytes(address))

    def write(self, address: Address, account: "Account") -> None:
        self.accounts[bytes(address)] = account

    def delete(self, address: Address) -> None:
        self.accounts.pop(bytes(address), None)


# A precompiled contract: takes the call input and the gas available,
# returns the output and the gas it costs. A cost above the available gas fails the call.
Precompile = Callable[[bytes, int], Tuple[bytes, int]]

