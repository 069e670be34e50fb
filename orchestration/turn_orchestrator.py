"""
TurnOrchestrator for ZorkScaffold.

The control loop tying WorldMemory, ExplorationPolicy, the LLM calls and the
game engine together. One logical thread of play: every await completes
before the next step starts, and a single cancellation flag is checked at
each suspension point.

Per turn:
1. Classify the previous command against the text it produced
2. Break loops by forbidding the implicated commands
3. Refresh the progress summary when due (best-effort)
4. Rank candidates, pick or request advice (best-effort)
5. Ask the decision call for a command (fatal on failure)
6. Validate, apply the format backstop, send to the engine
"""

import asyncio
import re
import threading
from typing import Optional

from llm_client import CompletionCancelled
from managers.context_manager import ContextManager
from managers.exploration_policy import FALLBACK_COMMAND, ExplorationPolicy
from managers.memory.commands import normalize_command
from managers.memory.models import LoopReport
from managers.world_memory import WorldMemory
from orchestration.events import EventSink, LogEntryType
from session.game_configuration import GameConfiguration
from session.game_state import GameState, OrchestratorPhase
from zork_advisor import NEW_AREA_ADVICE, ZorkAdvisor
from zork_agent import ZorkAgent
from zork_extractor import UNKNOWN_ROOM

COMMAND_CHARSET_PATTERN = re.compile(r"^[A-Z0-9 ,'-]+$")


class TurnError(Exception):
    """A primary decision or game engine failure; fatal to the current session."""

    pass


class TurnOrchestrator:
    """
    Turn-sequencing state machine.

    uninitialized -> awaiting-command -> command-sent -> awaiting-command ...
    `stopped` and `error` are left by an explicit step, start or reset.
    """

    def __init__(
        self,
        config: GameConfiguration,
        engine,
        agent: ZorkAgent,
        advisor: ZorkAdvisor,
        memory: WorldMemory,
        policy: ExplorationPolicy,
        context_manager: ContextManager,
        game_state: Optional[GameState] = None,
        logger=None,
        events: Optional[EventSink] = None,
    ):
        """
        Args:
            config: Scaffold configuration
            engine: Game engine with ainitialize/asend_command/get_state/is_game_over/reset
            agent: Primary decision caller
            advisor: Advisory tip caller
            memory: World memory for this session
            policy: Exploration policy reading `memory`
            context_manager: Prompt assembly and summary refresh
            game_state: Shared session state
            logger: Logger instance
            events: Presentation event sink
        """
        self.config = config
        self.engine = engine
        self.agent = agent
        self.advisor = advisor
        self.memory = memory
        self.policy = policy
        self.context_manager = context_manager
        self.game_state = game_state or GameState()
        self.logger = logger
        self.events = events or EventSink()

        self.cancel_event = threading.Event()
        self.current_output = ""
        self._pending_command: Optional[str] = None
        self._pending_snapshot = None

    # ------------------------------------------------------------------
    # Logging helpers
    # ------------------------------------------------------------------

    def _log(self, level: str, message: str, event_type: str, exc_info: bool = False, **kwargs) -> None:
        if self.logger:
            getattr(self.logger, level)(
                message,
                exc_info=exc_info,
                extra={
                    "event_type": event_type,
                    "component": "turn_orchestrator",
                    "episode_id": self.game_state.episode_id,
                    "turn": self.game_state.turn_count,
                    **kwargs,
                },
            )

    @property
    def phase(self) -> OrchestratorPhase:
        return self.game_state.phase

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    async def initialize(self, episode_id: Optional[str] = None) -> str:
        """
        Boot the engine and seed memory from the intro text.

        Raises:
            TurnError: the engine could not be initialized
        """
        self._reset_session(episode_id)
        self.cancel_event.clear()

        try:
            intro = await self.engine.ainitialize()
        except Exception as e:
            self._fail(e, "Game engine failed to initialize")

        return self._begin_session(intro, "session_initialization")

    async def reset(self, episode_id: Optional[str] = None) -> str:
        """
        Restart the story and clear all memory and state.

        Never called mid-turn: the caller stops autoplay first. An engine that
        never booted is initialized instead.

        Raises:
            TurnError: the engine could not be reset
        """
        if not self.game_state.engine_ready:
            return await self.initialize(episode_id)

        self.stop()
        self._reset_session(episode_id)

        try:
            intro = await asyncio.to_thread(self.engine.reset)
        except Exception as e:
            self._fail(e, "Game engine failed to reset")

        self.cancel_event.clear()
        return self._begin_session(intro, "session_reset")

    def _reset_session(self, episode_id: Optional[str]) -> None:
        self.game_state.reset_episode(episode_id)
        for manager in (self.memory, self.policy, self.context_manager):
            manager.reset_episode()
        self.events.clear()
        self._pending_command = None
        self._pending_snapshot = None

    def _begin_session(self, intro: str, stage: str) -> str:
        snapshot = self.memory.extract_state(intro)
        self.current_output = intro
        self.game_state.last_game_output = intro
        self.game_state.engine_ready = True
        self.game_state.phase = OrchestratorPhase.AWAITING_COMMAND
        self.events.emit(LogEntryType.GAME_TEXT, intro, 0)

        self._log(
            "info",
            f"Session {self.game_state.episode_id} initialized in {snapshot.current_room}",
            "session_initialized",
            room=snapshot.current_room,
            stage=stage,
        )
        return intro

    def stop(self) -> None:
        """Request a stop at the next suspension point."""
        self.cancel_event.set()
        if self.game_state.phase not in (
            OrchestratorPhase.UNINITIALIZED,
            OrchestratorPhase.ERROR,
        ):
            self.game_state.phase = OrchestratorPhase.STOPPED

    async def step(self) -> Optional[str]:
        """
        Play exactly one turn, initializing first when needed.

        Returns:
            The command sent, or None when the turn was cancelled
        """
        self.cancel_event.clear()
        if not self.game_state.engine_ready:
            await self.initialize()
        return await self.play_turn()

    async def start(self, max_turns: Optional[int] = None) -> int:
        """
        Autoplay until stop(), an error, game over or the turn limit.

        Returns:
            Number of turns played by this call

        Raises:
            TurnError: a turn failed fatally
        """
        self.cancel_event.clear()
        if not self.game_state.engine_ready:
            await self.initialize()

        limit = max_turns if max_turns is not None else self.config.max_turns_per_episode
        played = 0
        reason = "max_turns"

        while self.game_state.turn_count < limit:
            if self.is_cancelled:
                reason = "stopped"
                break
            command = await self.play_turn()
            if command is None:
                reason = "stopped"
                break
            played += 1
            if self.game_state.game_over_flag:
                reason = "game_over"
                break
            if self.config.turn_delay_seconds > 0:
                await asyncio.sleep(self.config.turn_delay_seconds)

        if reason == "stopped":
            self.game_state.phase = OrchestratorPhase.STOPPED
        self._log(
            "info",
            f"Autoplay ended after {played} turns ({reason})",
            "session_stopped",
            reason=reason,
            turns_played=played,
        )
        return played

    async def send_manual_command(self, text: str) -> str:
        """
        Send a user-typed command through the same memory path, bypassing the LLM.

        Returns:
            The game response

        Raises:
            TurnError: the engine failed
        """
        if not self.game_state.engine_ready:
            await self.initialize()

        command = normalize_command(text)
        self._absorb_previous_command()
        return await self._send(command, self.game_state.turn_count + 1)

    def get_session_report(self) -> dict:
        """Session state, memory status and exploration summary for end-of-session logging."""
        return {
            "session": self.game_state.get_export_data(),
            "memory": self.memory.get_status(),
            "context": self.context_manager.get_status(),
            "exploration": self.policy.get_exploration_summary(),
        }

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def play_turn(self) -> Optional[str]:
        """
        Run one full turn.

        Returns:
            The command sent to the engine, or None if cancelled before sending

        Raises:
            TurnError: the decision call or the engine failed
        """
        if not self.game_state.engine_ready:
            raise TurnError("Orchestrator is not initialized; call initialize() first")

        turn = self.game_state.turn_count + 1
        self.game_state.phase = OrchestratorPhase.AWAITING_COMMAND
        self.game_state.last_error = None
        game_output = self.current_output

        self._absorb_previous_command()

        loop = self.memory.detect_loops()
        if loop.is_looping:
            self._break_loop(loop)

        if self._cancelled_at("summary"):
            return None
        await self.context_manager.refresh_summary_if_due(self.cancel_event)

        candidates = self.policy.get_top_candidates(self.config.top_candidate_count)

        if self._cancelled_at("advice"):
            return None
        advice = await self._get_advice(loop, game_output, turn)

        prompt = self.context_manager.build_decision_prompt(game_output, candidates, advice)

        if self._cancelled_at("decision"):
            return None
        self.events.emit(LogEntryType.THINKING, "Thinking...", turn)
        try:
            decision = await self.agent.decide(
                prompt,
                on_chunk=self._chunk_forwarder(),
                cancel_event=self.cancel_event,
            )
        except CompletionCancelled:
            self.events.discard_stream()
            self._cancelled_at("decision")
            return None
        except Exception as e:
            self.events.discard_stream()
            self._fail(e, "Decision call failed")
        self.events.end_stream()

        command = self._finalize_command(decision.command)

        if self._cancelled_at("send"):
            return None
        await self._send(command, turn)
        return command

    def _absorb_previous_command(self) -> None:
        """Classify the last sent command against the text it produced."""
        if self._pending_command is None:
            return

        command, self._pending_command = self._pending_command, None
        outcome = self.memory.update_after_command(
            command, self.current_output, self._pending_snapshot
        )
        self._pending_snapshot = None

        state = self.memory.get_state()
        self._log(
            "info",
            f"'{command}' -> {outcome.value}",
            "turn_completed",
            command=command,
            outcome=outcome.value,
            room=state.current_room if state else UNKNOWN_ROOM,
        )

    def _break_loop(self, loop: LoopReport) -> None:
        for command in loop.commands:
            # Keep a longer failure countdown intact
            if self.memory.forbidden_commands.get(command, 0) < self.config.loop_forbid_turns:
                self.memory.forbid_command(command, self.config.loop_forbid_turns)

        self._log(
            "warning" if loop.pattern == "stuck" else "info",
            f"Loop detected ({loop.pattern}): {loop.suggestion}",
            "loop_detected",
            pattern=loop.pattern,
            commands=list(loop.commands),
        )

    async def _get_advice(self, loop: LoopReport, game_output: str, turn: int) -> Optional[str]:
        """
        Pick the advisory tip for this turn.

        New room (unless the last command was LOOK) -> fixed LOOK advice;
        active loop -> the loop's own suggestion; every advisory_interval
        turns -> an advisory call. Failed calls and trivial tips yield None.
        """
        advice: Optional[str] = None
        state = self.memory.get_state()
        room = state.current_room if state else UNKNOWN_ROOM

        is_new_room = room != UNKNOWN_ROOM and room not in self.game_state.rooms_seen
        if is_new_room:
            self.game_state.rooms_seen.append(room)

        if is_new_room and self.game_state.last_command != "LOOK":
            advice = NEW_AREA_ADVICE
        elif loop.is_looping:
            advice = loop.suggestion
        elif turn % self.config.advisory_interval == 0:
            try:
                advice = await self.advisor.get_tip(
                    self.memory.to_prompt_format(),
                    self.context_manager.loop_status(loop),
                    game_output,
                    cancel_event=self.cancel_event,
                )
            except Exception as e:
                self._log(
                    "warning",
                    f"Advisory call failed, continuing without advice: {e}",
                    "advisory_failed",
                    error=str(e),
                )
                return None

        if ZorkAdvisor.is_trivial(advice):
            return None

        self.game_state.last_advice = advice
        self.events.emit(LogEntryType.THINKING, f"[Guide]: {advice}", turn)
        self._log("info", f"Advice: {advice}", "advisory_tip", advice=advice)
        return advice

    def _finalize_command(self, proposed: str) -> str:
        """Policy validation, then the hard format backstop."""
        validation = self.policy.validate_command(proposed)
        command = validation.adjusted
        if not validation.valid:
            self._log(
                "info",
                validation.reason,
                "command_adjusted",
                proposed=proposed,
                adjusted=command,
            )

        if not self._is_well_formed(command):
            best = self.policy.get_best_action()
            fallback = best.command if best else FALLBACK_COMMAND
            if not self._is_well_formed(fallback):
                fallback = FALLBACK_COMMAND
            self._log(
                "warning",
                f"Command '{command}' failed format check, using {fallback}",
                "command_adjusted",
                proposed=command,
                adjusted=fallback,
            )
            command = fallback

        return command

    def _is_well_formed(self, command: str) -> bool:
        return (
            bool(command)
            and len(command) <= self.config.max_command_length
            and len(command.split()) <= self.config.max_command_words
            and bool(COMMAND_CHARSET_PATTERN.match(command))
        )

    async def _send(self, command: str, turn: int) -> str:
        """Record the command as pending, send it, and take in the response."""
        self._pending_command = command
        self._pending_snapshot = self.memory.get_state()

        self.game_state.phase = OrchestratorPhase.COMMAND_SENT
        self.events.emit(LogEntryType.COMMAND_SENT, command, turn)
        self._log("info", f"Sending '{command}'", "command_sent", command=command)

        try:
            response = await self.engine.asend_command(command)
        except Exception as e:
            self._pending_command = None
            self._pending_snapshot = None
            self._fail(e, f"Game engine failed on '{command}'")

        self.game_state.turn_count = turn
        self.game_state.last_command = command
        self.game_state.last_game_output = response
        self.current_output = response
        self.events.emit(LogEntryType.GAME_TEXT, response, turn)

        is_over, reason = self.engine.is_game_over(response)
        if is_over or not self.engine.get_state().is_running:
            self.game_state.game_over_flag = True
            self._log(
                "info",
                f"Game over: {reason or 'engine stopped'}",
                "game_over",
                reason=reason or "engine stopped",
            )

        self.game_state.phase = (
            OrchestratorPhase.STOPPED if self.is_cancelled else OrchestratorPhase.AWAITING_COMMAND
        )
        return response

    def _chunk_forwarder(self):
        """Marshal streamed chunks from the worker thread onto the event loop."""
        loop = asyncio.get_running_loop()

        def forward(chunk: str) -> None:
            loop.call_soon_threadsafe(self.events.stream_chunk, chunk)

        return forward

    def _cancelled_at(self, point: str) -> bool:
        if not self.is_cancelled:
            return False
        self.game_state.phase = OrchestratorPhase.STOPPED
        self._log("info", f"Turn cancelled before {point}", "turn_cancelled", point=point)
        return True

    def _fail(self, error: Exception, message: str) -> None:
        """Enter the error phase and raise TurnError."""
        self.game_state.phase = OrchestratorPhase.ERROR
        self.game_state.last_error = f"{message}: {error}"
        self.events.emit(LogEntryType.ERROR, self.game_state.last_error, self.game_state.turn_count)
        self._log(
            "error",
            self.game_state.last_error,
            "turn_failed",
            error=str(error),
            error_type=type(error).__name__,
            exc_info=True,
        )
        raise TurnError(self.game_state.last_error) from error
