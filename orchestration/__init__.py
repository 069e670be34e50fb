"""
Orchestration package for ZorkScaffold.

Contains the turn-sequencing control loop and the presentation events it emits.
"""

from .events import EventSink, GameLogEntry, LogEntryType
from .turn_orchestrator import TurnError, TurnOrchestrator

__all__ = [
    "EventSink",
    "GameLogEntry",
    "LogEntryType",
    "TurnError",
    "TurnOrchestrator",
]
