"""
ZorkAgent module for the primary decision call.

The agent sees the assembled decision prompt and answers with one game
command. Its raw text is reduced to a bare command here; policy validation
and the format backstop happen in the orchestrator.
"""

import re
import threading
from typing import Callable, Optional

from langfuse import observe
from pydantic import BaseModel, Field

from llm_client import LLMClient
from session.game_configuration import GameConfiguration

# Leading chatter small models put in front of the command
FILLER_WORDS_PATTERN = re.compile(
    r"^(?:I|YOU|THE|MY|LET'?S|LETS?|OKAY|OK|SURE|NOW|THEN|SO|WELL)\s+"
)
COMMAND_LABEL_PATTERN = re.compile(r"^(?:COMMAND|ACTION|ANSWER)\s*:\s*")
LEADING_JUNK = "\"'`>:-.*_ \t"
TRAILING_JUNK = "\"'`<.!?*_ \t"


class AgentDecision(BaseModel):
    """Result of one decision call."""

    command: str = Field(description="Cleaned, uppercased command ('' if nothing usable)")
    raw_response: str = Field(description="Unmodified model output")


class ZorkAgent:
    """
    Handles the primary decision completion for Zork gameplay.
    """

    def __init__(
        self,
        config: GameConfiguration,
        client: Optional[LLMClient] = None,
        logger=None,
        prompt_file: str = "agent.md",
        system_prompt: Optional[str] = None,
    ):
        """
        Initialize the ZorkAgent.

        Args:
            config: GameConfiguration instance
            client: LLM client (if None, creates one for the agent role)
            logger: Logger instance for tracking
            prompt_file: Markdown file holding the system prompt
            system_prompt: Prompt text, overriding prompt_file
        """
        self.config = config
        self.logger = logger
        self.client = client or LLMClient.for_role(config, "agent", logger=logger)

        self.temperature = self.config.actor_sampling.get("temperature")
        self.max_tokens = self.config.actor_sampling.get("max_tokens")

        if system_prompt is not None:
            self.system_prompt = system_prompt
        else:
            self._load_system_prompt(prompt_file)

    def _load_system_prompt(self, prompt_file: str) -> None:
        try:
            with open(prompt_file) as fh:
                self.system_prompt = fh.read()
        except FileNotFoundError as e:
            if self.logger:
                self.logger.error(f"Failed to load agent prompt file: {e}")
            raise

    @observe(name="agent-decide")
    async def decide(
        self,
        prompt: str,
        on_chunk: Optional[Callable[[str], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AgentDecision:
        """
        Ask the model for the next command.

        Errors from the completion call propagate; a failed decision is fatal
        to the turn.

        Args:
            prompt: Assembled decision prompt
            on_chunk: Streaming callback for partial output
            cancel_event: Cancellation flag checked while streaming

        Returns:
            AgentDecision with the cleaned command and raw text
        """
        result = await self.client.acomplete(
            self.system_prompt,
            [{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            on_chunk=on_chunk,
            cancel_event=cancel_event,
            name="agent-decision",
        )
        command = self.extract_command(result.text)

        if self.logger:
            self.logger.debug(
                f"Agent raw response: {result.text!r} -> {command!r}",
                extra={"event_type": "agent_response", "raw_response": result.text, "command": command},
            )
        return AgentDecision(command=command, raw_response=result.text)

    @staticmethod
    def extract_command(text: str) -> str:
        """
        Reduce raw model output to a bare uppercase command.

        Takes the first non-empty line, drops code fences and backticks, strips
        quotes and punctuation, a leading "COMMAND:" label and leading filler
        words.

        >>> ZorkAgent.extract_command('Command: "open mailbox."')
        'OPEN MAILBOX'
        """
        cleaned = re.sub(r"```[a-zA-Z]*", "", text or "")
        lines = [line.strip() for line in cleaned.splitlines() if line.strip()]
        if not lines:
            return ""

        command = lines[0].upper().strip(LEADING_JUNK)
        command = COMMAND_LABEL_PATTERN.sub("", command).strip(LEADING_JUNK)

        previous = None
        while previous != command:
            previous = command
            command = FILLER_WORDS_PATTERN.sub("", command)

        command = command.rstrip(TRAILING_JUNK).lstrip(LEADING_JUNK)
        return " ".join(command.split())
