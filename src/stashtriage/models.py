from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass
class StashEntry:
    index: int
    ref: str  # stash@{N}
    subject: str


class Decision(Enum):
    DROP = "d"
    BRANCH = "b"
    SKIP = "s"
    APPLY = "a"
    QUIT = "q"
    HELP = "?"
    UNRECOGNIZED = ""


def parse_decision(line: str) -> Decision:
    """Map the first character of an input line to a Decision.

    Leading whitespace is not skipped: "  d" and an empty line are unrecognized.
    """
    first = line[:1]
    for decision in Decision:
        if decision is not Decision.UNRECOGNIZED and decision.value == first:
            return decision
    return Decision.UNRECOGNIZED


@dataclass
class TriageState:
    cursor: int = 0  # backend index of the stash under consideration
    running: bool = True


@dataclass
class TriageResult:
    dropped: int = 0
    branched: int = 0
    skipped: int = 0
    applied: int = 0
    quit: bool = False
    branches: list[str] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return self.dropped + self.branched

    def summary(self) -> str:
        parts = [
            f"dropped: {self.dropped}",
            f"branched: {self.branched}",
            f"skipped: {self.skipped}",
            f"applied: {self.applied}",
        ]
        return ", ".join(parts)
