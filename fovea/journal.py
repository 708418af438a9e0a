from typing import Callable, List

Undo = Callable[[], None]


class Journal(object):
    """Reversible record of state mutations, one layer per active call frame.

    Every mutation appends an undo entry to the innermost layer. When the frame halts the layer is
    either flattened into the parent layer (commit) or replayed in reverse order (revert).
    The root layer holds changes made outside of any frame (e.g. buying gas), it is never reverted.
    """

    layers: List[List[Undo]]

    def __init__(self):
        self.layers = [[]]

    @property
    def depth(self) -> int:
        return len(self.layers) - 1

    def record(self, undo: Undo) -> None:
        self.layers[-1].append(undo)

    def checkpoint(self) -> int:
        self.layers.append([])
        return self.depth

    def commit(self) -> None:
        if self.depth == 0:
            raise Exception("journal commit without checkpoint")
        entries = self.layers.pop()
        self.layers[-1].extend(entries)

    def revert(self) -> None:
        if self.depth == 0:
            raise Exception("journal revert without checkpoint")
        entries = self.layers.pop()
        for undo in reversed(entries):
            undo()
