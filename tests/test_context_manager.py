# ABOUTME: Tests for ContextManager prompt assembly and summary refresh
# ABOUTME: Section ordering, candidate formatting, excerpt length and best-effort summaries

import pytest

from llm_client import LLMResponseError
from managers.context_manager import ContextManager
from managers.memory.models import ActionCandidate, LoopReport


@pytest.fixture
def context_manager(test_config, game_state, memory, fake_llm_client):
    return ContextManager(
        None,
        test_config,
        game_state,
        memory,
        client=fake_llm_client,
        summary_system_prompt="Summarize the session.",
    )


def advance(memory, turns):
    for i in range(turns):
        memory.update_after_command(f"EXAMINE THING{i}", "You see an ordinary thing.", memory.get_state())


class TestDecisionPrompt:
    def test_sections_in_order(self, context_manager, memory, west_of_house):
        memory.extract_state(west_of_house)
        memory.set_game_summary("Reached the house.")
        candidates = [ActionCandidate("N", 2, "Untried exit: N")]

        prompt = context_manager.build_decision_prompt(west_of_house, candidates, "Try north.")

        order = [
            prompt.index("PROGRESS SUMMARY: Reached the house."),
            prompt.index("CURRENT STATE:"),
            prompt.index("GAME OUTPUT:"),
            prompt.index("SUGGESTED ACTIONS:\n1. N (score 2) - Untried exit: N"),
            prompt.index("[Guide]: Try north."),
        ]
        assert order == sorted(order)
        assert prompt.endswith("Your command:")

    def test_optional_sections_are_omitted(self, context_manager, memory, west_of_house):
        memory.extract_state(west_of_house)

        prompt = context_manager.build_decision_prompt(west_of_house, [], None)

        assert "PROGRESS SUMMARY" not in prompt
        assert "SUGGESTED ACTIONS" not in prompt
        assert "[Guide]" not in prompt

    def test_game_output_is_truncated(self, context_manager, test_config):
        text = "x" * 1000
        assert context_manager.excerpt(text) == "x" * test_config.game_output_excerpt_chars

    def test_candidates_are_numbered(self):
        text = ContextManager.format_candidates(
            [ActionCandidate("OPEN MAILBOX", 3, "lead"), ActionCandidate("LOOK", 1, "info")]
        )
        assert text == "1. OPEN MAILBOX (score 3) - lead\n2. LOOK (score 1) - info"

    def test_loop_status(self):
        assert ContextManager.loop_status(LoopReport.none()) == "not looping"
        report = LoopReport(is_looping=True, pattern="repeat", suggestion="Try something else")
        assert ContextManager.loop_status(report) == "LOOPING (repeat): Try something else"


class TestSummaryRefresh:
    @pytest.mark.asyncio
    async def test_not_due(self, context_manager, fake_llm_client, memory, west_of_house):
        memory.extract_state(west_of_house)
        advance(memory, 2)

        result = await context_manager.refresh_summary_if_due()

        assert result is None
        fake_llm_client.acomplete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_due_refresh_stores_summary(self, context_manager, fake_llm_client, memory, west_of_house):
        memory.extract_state(west_of_house)
        advance(memory, 5)
        fake_llm_client.queue("  The explorer examined\n several things. ")

        result = await context_manager.refresh_summary_if_due()

        assert result == "The explorer examined several things."
        assert memory.game_summary == result
        assert memory.last_summary_turn == 5
        kwargs = fake_llm_client.acomplete.call_args.kwargs
        assert kwargs["name"] == "progress-summary"
        user_prompt = fake_llm_client.acomplete.call_args.args[1][0]["content"]
        assert user_prompt.startswith("Recent turns:\nTurn 1: EXAMINE THING0")
        assert user_prompt.endswith("Summarize progress in 2-3 sentences:")

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_summary(
        self, context_manager, fake_llm_client, memory, west_of_house
    ):
        memory.extract_state(west_of_house)
        memory.set_game_summary("Old summary.")
        advance(memory, 5)
        fake_llm_client.acomplete.side_effect = LLMResponseError("model offline")

        result = await context_manager.refresh_summary_if_due()

        assert result is None
        assert memory.game_summary == "Old summary."

    def test_summary_prompt_includes_previous_summary(self, context_manager, memory, west_of_house):
        memory.extract_state(west_of_house)
        advance(memory, 1)
        memory.set_game_summary("Arrived at the house.")

        prompt = context_manager.build_summary_prompt()

        assert "Exploration:\nRooms visited (1): West of House" in prompt
        assert "Previous summary:\nArrived at the house." in prompt
