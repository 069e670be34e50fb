"""
ContextManager for ZorkScaffold orchestration.

Handles prompt context responsibilities:
- Decision prompt assembly (summary, memory block, game excerpt, candidates, advice)
- Advisory context (memory block plus loop status)
- Periodic progress-summary refresh through the summary completion call
"""

import threading
from typing import List, Optional

from llm_client import LLMClient
from managers.base_manager import BaseManager
from managers.memory.models import ActionCandidate, LoopReport
from managers.world_memory import WorldMemory
from session.game_configuration import GameConfiguration
from session.game_state import GameState


class ContextManager(BaseManager):
    """
    Builds the text handed to the decision, advisory and summary calls.

    Reads WorldMemory; the only memory write is storing a refreshed summary.
    """

    def __init__(
        self,
        logger,
        config: GameConfiguration,
        game_state: Optional[GameState],
        memory: WorldMemory,
        client: Optional[LLMClient] = None,
        summary_prompt_file: str = "summarizer.md",
        summary_system_prompt: Optional[str] = None,
    ):
        super().__init__(logger, config, game_state, "context_manager")
        self.memory = memory
        self.client = client or LLMClient.for_role(config, "summary", logger=logger)

        if summary_system_prompt is not None:
            self.summary_system_prompt = summary_system_prompt
        else:
            try:
                with open(summary_prompt_file) as fh:
                    self.summary_system_prompt = fh.read()
            except FileNotFoundError as e:
                self.log_error(f"Failed to load summary prompt file: {e}")
                raise

    def reset_episode(self) -> None:
        """Context is derived from memory on demand; nothing to clear."""
        self.log_debug("Context manager reset for new session")

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    def excerpt(self, game_output: str) -> str:
        return game_output.strip()[: self.config.game_output_excerpt_chars]

    @staticmethod
    def format_candidates(candidates: List[ActionCandidate]) -> str:
        return "\n".join(
            f"{i}. {candidate.command} (score {candidate.score}) - {candidate.reason}"
            for i, candidate in enumerate(candidates, start=1)
        )

    @staticmethod
    def loop_status(loop: LoopReport) -> str:
        if not loop.is_looping:
            return "not looping"
        return f"LOOPING ({loop.pattern}): {loop.suggestion}"

    def build_decision_prompt(
        self,
        game_output: str,
        candidates: List[ActionCandidate],
        advice: Optional[str] = None,
    ) -> str:
        """
        Assemble the primary decision prompt.

        Sections, in order: progress summary (when one exists), the memory
        state block, a game-output excerpt, the scored candidates, and the
        advisory tip when present.
        """
        parts: List[str] = []

        if self.memory.game_summary:
            parts.append(f"PROGRESS SUMMARY: {self.memory.game_summary}")
            parts.append("")

        parts.append(self.memory.to_prompt_format())
        parts.append("")

        parts.append("GAME OUTPUT:")
        parts.append(self.excerpt(game_output))

        if candidates:
            parts.append("")
            parts.append("SUGGESTED ACTIONS:")
            parts.append(self.format_candidates(candidates))

        if advice:
            parts.append("")
            parts.append(f"[Guide]: {advice}")

        parts.append("")
        parts.append("Your command:")
        return "\n".join(parts)

    def build_summary_prompt(self) -> str:
        parts = [f"Recent turns:\n{self.memory.get_recent_history(self.config.recent_outcome_window)}"]

        stats = self.memory.get_exploration_stats()
        if stats:
            parts.append(f"Exploration:\n{stats}")
        if self.memory.game_summary:
            parts.append(f"Previous summary:\n{self.memory.game_summary}")

        parts.append("Summarize progress in 2-3 sentences:")
        return "\n\n".join(parts)

    # ------------------------------------------------------------------
    # Summary refresh
    # ------------------------------------------------------------------

    async def refresh_summary_if_due(
        self, cancel_event: Optional[threading.Event] = None
    ) -> Optional[str]:
        """
        Regenerate the progress summary when the refresh interval has elapsed.

        Best-effort: a failed call is logged and the turn continues with the
        stale summary.

        Returns:
            The new summary, or None when no refresh happened
        """
        if not self.memory.needs_summary_refresh(self.config.summary_interval):
            return None
        if not self.memory.recent_outcomes:
            return None

        sampling = self.config.summary_sampling
        try:
            result = await self.client.acomplete(
                self.summary_system_prompt,
                [{"role": "user", "content": self.build_summary_prompt()}],
                temperature=sampling.get("temperature"),
                max_tokens=sampling.get("max_tokens"),
                cancel_event=cancel_event,
                name="progress-summary",
            )
        except Exception as e:
            self.log_warning(
                f"Summary refresh failed, continuing with previous summary: {e}",
                event_type="summary_failed",
                error=str(e),
            )
            return None

        summary = " ".join(result.text.split())
        if not summary:
            return None

        self.memory.set_game_summary(summary)
        self.log_info(
            "Progress summary refreshed",
            event_type="summary_refreshed",
            summary=summary,
        )
        return summary

    def get_status(self) -> dict:
        status = super().get_status()
        status["has_summary"] = bool(self.memory.game_summary)
        status["last_summary_turn"] = self.memory.last_summary_turn
        return status
