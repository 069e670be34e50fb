"""
Base manager interface for ZorkScaffold orchestration.

This module defines the common interface that all managers implement,
enabling clean composition and coordination in the orchestrator.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

from session.game_state import GameState
from session.game_configuration import GameConfiguration


class BaseManager(ABC):
    """
    Abstract base class providing common functionality for all managers.

    Handles common dependencies (logger, config, game_state) and provides
    a foundation for manager-specific implementations.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger],
        config: GameConfiguration,
        game_state: Optional[GameState],
        component_name: str,
    ):
        """
        Initialize base manager with common dependencies.

        Args:
            logger: Shared logger instance for structured logging (may be None)
            config: Game configuration object
            game_state: Shared session state (may be None for standalone use)
            component_name: Name for logging component field (e.g., "world_memory")
        """
        self.logger = logger
        self.config = config
        self.game_state = game_state
        self.component_name = component_name

    @property
    def current_turn(self) -> int:
        """Turn number attached to structured log records."""
        return self.game_state.turn_count if self.game_state else 0

    def log_info(self, message: str, **kwargs) -> None:
        """Log an info message with structured fields."""
        if self.logger:
            self.logger.info(message, extra={
                "event_type": "info",
                "component": self.component_name,
                "turn": self.current_turn,
                **kwargs
            })

    def log_debug(self, message: str, **kwargs) -> None:
        """Log a debug message with structured fields."""
        if self.logger:
            self.logger.debug(message, extra={
                "event_type": "debug",
                "component": self.component_name,
                "turn": self.current_turn,
                **kwargs
            })

    def log_warning(self, message: str, **kwargs) -> None:
        """Log a warning message with structured fields."""
        if self.logger:
            self.logger.warning(message, extra={
                "event_type": "warning",
                "component": self.component_name,
                "turn": self.current_turn,
                **kwargs
            })

    def log_error(self, message: str, **kwargs) -> None:
        """Log an error message with structured fields."""
        if self.logger:
            self.logger.error(message, extra={
                "event_type": "error",
                "component": self.component_name,
                "turn": self.current_turn,
                **kwargs
            })

    @abstractmethod
    def reset_episode(self) -> None:
        """
        Reset manager state for a new session.

        Called on a full reset to clean up any session-specific
        state in the manager.
        """
        pass

    def get_status(self) -> Dict[str, Any]:
        """
        Get current manager status for debugging and monitoring.

        Returns:
            Dictionary with manager status information
        """
        return {
            "component": self.component_name,
            "turn": self.current_turn,
            "episode_id": self.game_state.episode_id if self.game_state else None,
        }
