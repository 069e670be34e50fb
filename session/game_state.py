"""
GameState dataclass for ZorkScaffold orchestration.

Holds the per-session orchestration state the TurnOrchestrator and managers
share: which phase the control loop is in, the engine turn counter, and the
latest game text. World knowledge (rooms, leads, outcomes) is owned by
WorldMemory, not by this object.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class OrchestratorPhase(str, Enum):
    """Phases of the turn-sequencing state machine."""

    UNINITIALIZED = "uninitialized"
    AWAITING_COMMAND = "awaiting-command"
    COMMAND_SENT = "command-sent"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass
class GameState:
    """
    Central shared state for one play session.

    Managers read turn_count for structured logging; only the orchestrator
    mutates the phase and game text fields.
    """

    episode_id: str = ""
    phase: OrchestratorPhase = OrchestratorPhase.UNINITIALIZED
    turn_count: int = 0

    # Latest text produced by the game engine (initial boot text on turn 0)
    last_game_output: str = ""
    last_command: Optional[str] = None
    last_advice: str = ""

    # Rooms for which the orchestrator has already handed out new-area advice
    rooms_seen: List[str] = field(default_factory=list)

    last_error: Optional[str] = None
    game_over_flag: bool = False

    # Set once the engine has produced its intro text; a failed boot leaves it False
    engine_ready: bool = False

    def reset_episode(self, episode_id: str = None) -> None:
        """
        Reset all session state.

        Args:
            episode_id: Episode ID to use (if None, generates a timestamp ID)
        """
        if episode_id:
            self.episode_id = episode_id
        else:
            self.episode_id = datetime.now().strftime("%Y-%m-%dT%H:%M:%S")
        self.phase = OrchestratorPhase.UNINITIALIZED
        self.turn_count = 0
        self.last_game_output = ""
        self.last_command = None
        self.last_advice = ""
        self.rooms_seen.clear()
        self.last_error = None
        self.game_over_flag = False
        self.engine_ready = False

    def get_export_data(self) -> Dict[str, Any]:
        """Dictionary representation for diagnostics."""
        return {
            "episode_id": self.episode_id,
            "phase": self.phase.value,
            "turn_count": self.turn_count,
            "last_command": self.last_command,
            "last_advice": self.last_advice,
            "rooms_seen": list(self.rooms_seen),
            "last_error": self.last_error,
            "game_over": self.game_over_flag,
            "engine_ready": self.engine_ready,
            "export_timestamp": datetime.now().isoformat(),
        }
