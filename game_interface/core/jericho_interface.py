# ABOUTME: Interface for playing a Z-machine story file through the Jericho library
# ABOUTME: Blocking calls for scripts and tests, async calls with a settle timeout for the orchestrator

import asyncio
import os
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from jericho import FrotzEnv
from jericho.util import clean


@dataclass
class EngineState:
    """Snapshot of the engine's run state."""

    is_waiting_for_input: bool
    is_running: bool
    turn_count: int


GAME_ENDING_PHRASES = {
    "you have died": "Player death",
    "you are dead": "Player death",
    "game over": "Game over",
    "****  you have won  ****": "Victory",
}


def _join_output(first: str, second: str) -> str:
    return "\n".join(part for part in (first, second) if part)


class JerichoInterface:
    """
    Interface for interacting with a Z-machine game using the Jericho library.

    The engine is the authority on game state; this class only exchanges text.
    Async methods run the blocking Frotz step in a worker thread and wait at
    most settle_timeout seconds. Output that arrives after the deadline is
    held back and prepended to the next response.
    """

    def __init__(
        self,
        game_file_path: Optional[str] = None,
        settle_timeout: float = 5.0,
        logger=None,
    ):
        """
        Initialize the Jericho interface.

        Args:
            game_file_path: Path to the story file (.z3/.z5/.z8)
            settle_timeout: Seconds the async methods wait for engine output
            logger: Optional logger instance for debugging
        """
        self.game_file_path = game_file_path
        self.settle_timeout = settle_timeout
        self.logger = logger
        self.env: Optional[FrotzEnv] = None

        self.turn_count = 0
        self._done = False
        self._in_flight = False
        self._pending_output = ""
        self._step_lock = threading.Lock()

    def __enter__(self):
        """Support for context manager protocol."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Clean up when exiting the context manager."""
        self.close()
        return False

    # ------------------------------------------------------------------
    # Blocking API
    # ------------------------------------------------------------------

    def initialize(self, game_file_path: Optional[str] = None) -> str:
        """
        Load the story file and return the game intro text.

        Calling this again restarts the game from a fresh environment.

        Raises:
            ValueError: If no story file path was given
            FileNotFoundError: If the game file doesn't exist
            RuntimeError: If the environment cannot be initialized
        """
        if game_file_path:
            self.game_file_path = game_file_path
        if not self.game_file_path:
            raise ValueError("No game file path configured")
        if not os.path.exists(self.game_file_path):
            raise FileNotFoundError(f"Game file not found: {self.game_file_path}")

        self.close()
        try:
            with self._step_lock:
                self.env = FrotzEnv(self.game_file_path)
                intro, _ = self.env.reset()
        except Exception as e:
            self.env = None
            if self.logger:
                self.logger.error(f"Failed to start Jericho environment: {e}")
            raise RuntimeError(f"Failed to initialize Jericho: {e}") from e

        self.turn_count = 0
        self._done = False
        self._pending_output = ""
        intro_text = clean(intro)

        if self.logger:
            self.logger.info(
                f"Jericho environment started successfully - intro length: {len(intro_text)}",
                extra={"event_type": "engine_initialized", "game_file": self.game_file_path},
            )
        return intro_text

    def send_command(self, cmd: str) -> str:
        """
        Execute a game command and return the text response.

        Raises:
            RuntimeError: If the environment is not initialized
        """
        return _join_output(self._take_pending_output(), self._step(cmd))

    def get_state(self) -> EngineState:
        is_running = self.env is not None and not self._done
        return EngineState(
            is_waiting_for_input=is_running and not self._in_flight,
            is_running=is_running,
            turn_count=self.turn_count,
        )

    def reset(self) -> str:
        """
        Restart the story in the existing environment.

        Raises:
            RuntimeError: If the environment is not initialized
        """
        self._require_env()
        with self._step_lock:
            intro, _ = self.env.reset()
        self.turn_count = 0
        self._done = False
        self._pending_output = ""
        return clean(intro)

    def is_game_over(self, text: str) -> Tuple[bool, Optional[str]]:
        """
        Check if the game has ended, from Jericho's done flag or the response text.

        Returns:
            Tuple of (is_over, reason)
        """
        if self._done:
            return True, "Game ended"

        text_lower = text.lower()
        for phrase, reason in GAME_ENDING_PHRASES.items():
            if phrase in text_lower:
                return True, reason
        return False, None

    def close(self) -> None:
        """Cleanup and close the environment."""
        if self.env is not None:
            try:
                self.env.close()
            except Exception as e:
                if self.logger:
                    self.logger.warning(f"Error closing Jericho environment: {e}")
            finally:
                self.env = None
                if self.logger:
                    self.logger.debug("Jericho environment closed")

    # ------------------------------------------------------------------
    # Async API
    # ------------------------------------------------------------------

    async def ainitialize(self, game_file_path: Optional[str] = None) -> str:
        return await self._settle(self.initialize, game_file_path, label="initialize")

    async def asend_command(self, cmd: str) -> str:
        text = await self._settle(self._step, cmd, label=cmd)
        # Taken after the step so output stashed while it waited for the lock is included
        return _join_output(self._take_pending_output(), text)

    async def _settle(self, func: Callable[..., str], *args, label: str) -> str:
        """
        Run a blocking engine call in a worker thread, waiting at most settle_timeout.

        On timeout the call keeps running; its output is stashed for the next
        response and an empty string is returned now.
        """
        task = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.settle_timeout)
        except asyncio.TimeoutError:
            if self.logger:
                self.logger.warning(
                    f"Engine did not settle within {self.settle_timeout}s for '{label}'",
                    extra={
                        "event_type": "engine_timeout",
                        "command": label,
                        "settle_timeout": self.settle_timeout,
                    },
                )
            task.add_done_callback(self._stash_late_output)
            return ""

    def _stash_late_output(self, task: "asyncio.Future") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            if self.logger:
                self.logger.error(
                    f"Late engine call failed: {error}",
                    extra={"event_type": "engine_late_failure", "error": str(error)},
                )
            return
        self._pending_output = _join_output(self._pending_output, task.result())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_env(self) -> None:
        if self.env is None:
            raise RuntimeError("Environment not started. Call initialize() first.")

    def _take_pending_output(self) -> str:
        pending, self._pending_output = self._pending_output, ""
        return pending

    def _step(self, cmd: str) -> str:
        self._require_env()
        with self._step_lock:
            self._in_flight = True
            try:
                observation, _reward, done, _info = self.env.step(cmd)
            finally:
                self._in_flight = False

        self.turn_count += 1
        self._done = bool(done)
        observation_text = clean(observation)

        if self.logger:
            self.logger.debug(
                f"Command '{cmd}' executed - response length: {len(observation_text)}"
            )
        return observation_text

    def __repr__(self) -> str:
        status = "running" if self.env is not None else "not started"
        return f"JerichoInterface(game_file='{self.game_file_path}', status='{status}')"
