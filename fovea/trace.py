from dataclasses import dataclass
from typing import List, Protocol

from .opcodes import OpCode
from .scope import ContractScope


class Tracer(Protocol):
    # called before each opcode runs, after it is loaded
    def capture_step(self, frame: ContractScope) -> None: ...


@dataclass(frozen=True)
class TraceEntry:
    depth: int
    pc: int
    op: int
    gas: int
    stack_len: int

    def op_name(self) -> str:
        try:
            return OpCode(self.op).name
        except ValueError:
            return "0x%02x" % self.op

    def to_obj(self) -> dict:
        return {
            'depth': self.depth,
            'pc': self.pc,
            'op': self.op_name(),
            'gas': self.gas,
            'stack': self.stack_len,
        }


class StepsTrace(Tracer):
    """Keeps every step of every frame, in execution order"""

    steps: List[TraceEntry]

    def __init__(self):
        self.steps = []

    def capture_step(self, frame: ContractScope) -> None:
        self.steps.append(TraceEntry(
            depth=frame.call_depth,
            pc=frame.pc,
            op=frame.op,
            gas=frame.gas,
            stack_len=len(frame.stack),
        ))

    def last(self) -> TraceEntry:
        return self.steps[-1]
