"""
ZorkAdvisor module for short tactical tips.

A secondary, cheap completion call: given the memory block, loop status and a
game-output excerpt, it returns one short tip for the decision call. The call
is best-effort; the orchestrator proceeds without a tip when it fails.
"""

import re
import threading
from typing import Optional

from langfuse import observe

from llm_client import LLMClient
from session.game_configuration import GameConfiguration

TRIVIAL_TIP_PATTERN = re.compile(r"^\s*good\W*\s*$", re.IGNORECASE)

NEW_AREA_ADVICE = "New area! Use LOOK to see what is here."


class ZorkAdvisor:
    """
    Produces advisory tips for the decision call.
    """

    def __init__(
        self,
        config: GameConfiguration,
        client: Optional[LLMClient] = None,
        logger=None,
        prompt_file: str = "advisor.md",
        system_prompt: Optional[str] = None,
    ):
        self.config = config
        self.logger = logger
        self.client = client or LLMClient.for_role(config, "advisor", logger=logger)

        self.temperature = self.config.advisor_sampling.get("temperature")
        self.max_tokens = self.config.advisor_sampling.get("max_tokens")

        if system_prompt is not None:
            self.system_prompt = system_prompt
        else:
            try:
                with open(prompt_file) as fh:
                    self.system_prompt = fh.read()
            except FileNotFoundError as e:
                if self.logger:
                    self.logger.error(f"Failed to load advisor prompt file: {e}")
                raise

    @staticmethod
    def is_trivial(tip: str) -> bool:
        """True for empty tips and bare "Good." acknowledgments."""
        return not tip or bool(TRIVIAL_TIP_PATTERN.match(tip))

    def build_prompt(self, memory_block: str, loop_status: str, game_output: str) -> str:
        excerpt = game_output[: self.config.game_output_excerpt_chars]
        return (
            f"{memory_block}\n\n"
            f"Loop status: {loop_status}\n\n"
            f"Current output:\n{excerpt}"
        )

    @observe(name="advisor-tip")
    async def get_tip(
        self,
        memory_block: str,
        loop_status: str,
        game_output: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Request one short tip.

        Returns:
            The tip text, stripped; may be trivial ("Good.")

        Raises:
            Whatever the completion call raises; callers treat it as best-effort.
        """
        result = await self.client.acomplete(
            self.system_prompt,
            [{"role": "user", "content": self.build_prompt(memory_block, loop_status, game_output)}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            cancel_event=cancel_event,
            name="advisor-tip",
        )
        tip = result.text.strip().splitlines()[0].strip() if result.text.strip() else ""
        return tip
