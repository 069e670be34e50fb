"""
ABOUTME: Memory system module for ZorkScaffold - exports data models, command vocabulary and text triggers.
ABOUTME: Provides clean imports for GameSnapshot, RoomRecord, CommandOutcome, UnresolvedLead and related types.
"""

from .commands import Direction, GameCommand, Verb, normalize_command
from .models import (
    ActionCandidate,
    CommandOutcome,
    GameSnapshot,
    LeadType,
    LoopReport,
    OutcomeKind,
    RoomRecord,
    UnresolvedLead,
    ValidationResult,
)
from .formatting import MemoryFormatter
from .triggers import classify_outcome, detect_lead_types, is_failure_text

__all__ = [
    "Direction",
    "GameCommand",
    "Verb",
    "normalize_command",
    "ActionCandidate",
    "CommandOutcome",
    "GameSnapshot",
    "LeadType",
    "LoopReport",
    "OutcomeKind",
    "RoomRecord",
    "UnresolvedLead",
    "ValidationResult",
    "MemoryFormatter",
    "classify_outcome",
    "detect_lead_types",
    "is_failure_text",
]
