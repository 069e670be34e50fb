"""
ABOUTME: Data models for the ZorkScaffold memory system - snapshots, room records, outcomes and leads.
ABOUTME: Defines the structures WorldMemory owns and ExplorationPolicy reads.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional


class OutcomeKind(str, Enum):
    """Classification of what a command achieved."""

    PROGRESS = "progress"
    NO_CHANGE = "no-change"
    FAILURE = "failure"

    @property
    def marker(self) -> str:
        """Single-character marker used in the prompt block."""
        return {"progress": "+", "failure": "X"}.get(self.value, "-")

    @property
    def symbol(self) -> str:
        """Marker used in summarisation history."""
        return {"progress": "✓", "failure": "✗"}.get(self.value, "—")


class LeadType(str, Enum):
    """Kinds of unresolved opportunity a room can hold."""

    LOCKED = "locked"
    CONTAINER = "container"
    PUZZLE = "puzzle"
    HAZARD = "hazard"
    NOTABLE = "notable"


LoopPattern = Literal["repeat", "alternation", "stuck"]


@dataclass
class GameSnapshot:
    """
    Structured per-turn interpretation of raw game text.

    Recomputed every turn; the previous snapshot is kept only to compute
    deltas such as a room change.
    """

    current_room: str
    exits: List[str]
    visible_objects: List[str]
    inventory: List[str] = field(default_factory=list)
    score: Optional[int] = None
    moves: Optional[int] = None
    notable_clues: List[str] = field(default_factory=list)


@dataclass
class RoomRecord:
    """
    Everything known about one room, keyed by room name.

    The list fields are ordered sets: insertion order is preserved and
    entries are never duplicated.
    """

    name: str
    exits: List[str] = field(default_factory=list)
    tried_exits: List[str] = field(default_factory=list)
    objects: List[str] = field(default_factory=list)
    examined_objects: List[str] = field(default_factory=list)
    taken_objects: List[str] = field(default_factory=list)
    description: Optional[str] = None
    visit_count: int = 0

    def untried_exits(self) -> List[str]:
        return [e for e in self.exits if e not in self.tried_exits]

    def unexamined_objects(self) -> List[str]:
        return [
            o
            for o in self.objects
            if o not in self.examined_objects and o not in self.taken_objects
        ]


@dataclass(frozen=True)
class CommandOutcome:
    """One entry in the rolling window of recent commands."""

    command: str
    result: OutcomeKind
    turn: int


@dataclass(frozen=True)
class UnresolvedLead:
    """An opportunity detected in a room; at most one per (room, type)."""

    room: str
    description: str
    type: LeadType


@dataclass(frozen=True)
class LoopReport:
    """Result of loop detection over the recent outcome window."""

    is_looping: bool
    pattern: Optional[LoopPattern] = None
    suggestion: str = ""
    # Commands implicated in the pattern (repeated command, or both alternating ones)
    commands: tuple = ()

    @classmethod
    def none(cls) -> "LoopReport":
        return cls(is_looping=False)


@dataclass
class ActionCandidate:
    """A scored, reasoned proposal for the next command."""

    command: str
    score: int
    reason: str


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a proposed command against the policy."""

    valid: bool
    adjusted: str
    reason: str
