# ABOUTME: Global pytest configuration for all tests
# ABOUTME: Disables Langfuse tracing and provides fake LLM clients and engines

from typing import List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from game_interface.core.jericho_interface import EngineState
from llm_client import CompletionResult
from managers.exploration_policy import ExplorationPolicy
from managers.memory.models import GameSnapshot
from managers.world_memory import WorldMemory
from session.game_configuration import GameConfiguration
from session.game_state import GameState


@pytest.fixture(autouse=True)
def disable_langfuse_for_tests(monkeypatch):
    """
    Disable Langfuse tracing for all tests by default.

    This prevents test data from polluting production Langfuse
    and consuming quota. Individual tests can opt-in to Langfuse
    by explicitly setting environment variables using monkeypatch.
    """
    monkeypatch.delenv("LANGFUSE_PUBLIC_KEY", raising=False)
    monkeypatch.delenv("LANGFUSE_SECRET_KEY", raising=False)
    monkeypatch.delenv("LANGFUSE_HOST", raising=False)


@pytest.fixture
def test_config():
    """
    Provide a GameConfiguration instance for tests.

    Built from field defaults (not pyproject.toml) with the turn delay
    disabled so autoplay tests run instantly.
    """
    return GameConfiguration(turn_delay_seconds=0.0)


@pytest.fixture
def game_state():
    return GameState(episode_id="test-episode")


@pytest.fixture
def memory(test_config, game_state):
    return WorldMemory(config=test_config, game_state=game_state)


@pytest.fixture
def policy(memory):
    return ExplorationPolicy(memory)


class ScriptedExtractor:
    """Extraction strategy that replays prepared snapshots in order."""

    def __init__(self, snapshots: List[GameSnapshot]):
        self.snapshots = list(snapshots)
        self.calls: List[str] = []

    def extract(self, raw_text: str, previous_snapshot: Optional[GameSnapshot] = None) -> GameSnapshot:
        self.calls.append(raw_text)
        snapshot = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
        # Fresh lists each call, the way a real extractor builds them
        return GameSnapshot(
            current_room=snapshot.current_room,
            exits=list(snapshot.exits),
            visible_objects=list(snapshot.visible_objects),
            inventory=list(snapshot.inventory),
            notable_clues=list(snapshot.notable_clues),
        )


@pytest.fixture
def scripted_memory(test_config, game_state):
    """Factory for a WorldMemory whose extractor returns the given snapshots."""

    def build(*snapshots: GameSnapshot) -> WorldMemory:
        return WorldMemory(
            config=test_config,
            game_state=game_state,
            extractor=ScriptedExtractor(list(snapshots)),
        )

    return build


def make_completion(text: str, model: str = "test-model") -> CompletionResult:
    return CompletionResult(text=text, model=model, usage=None)


@pytest.fixture
def fake_llm_client():
    """LLM client double whose acomplete returns queued texts in order."""
    client = Mock()
    client.acomplete = AsyncMock(return_value=make_completion("LOOK"))

    def queue(*texts: str):
        client.acomplete.side_effect = [make_completion(text) for text in texts]

    client.queue = queue
    return client


WEST_OF_HOUSE = (
    "West of House\n"
    "You are standing in an open field west of a white house, with a boarded front door.\n"
    "There is a small mailbox here."
)


@pytest.fixture
def fake_engine():
    """Game engine double with a scripted intro and per-command responses."""
    engine = Mock()
    engine.ainitialize = AsyncMock(return_value=WEST_OF_HOUSE)
    engine.asend_command = AsyncMock(return_value="Nothing happens.")
    engine.reset = Mock(return_value=WEST_OF_HOUSE)
    engine.is_game_over = Mock(return_value=(False, None))
    engine.get_state = Mock(
        return_value=EngineState(is_waiting_for_input=True, is_running=True, turn_count=0)
    )
    engine.close = Mock()
    return engine


@pytest.fixture
def west_of_house():
    return WEST_OF_HOUSE
