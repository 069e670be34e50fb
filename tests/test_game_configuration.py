# ABOUTME: Tests for GameConfiguration defaults, TOML loading and environment overrides
# ABOUTME: Uses temporary pyproject files so the repository config is never read

from pathlib import Path

import pytest
from pydantic import ValidationError

from session.game_configuration import GameConfiguration

SAMPLE_TOML = """
[tool.zorkscaffold.llm]
client_base_url = "http://llm.local:8000/v1"
agent_model = "tiny-actor"
advisor_base_url = "http://advisor.local/v1"

[tool.zorkscaffold.orchestrator]
summary_interval = 8
advisory_interval = 4

[tool.zorkscaffold.memory]
failure_forbid_turns = 12

[tool.zorkscaffold.gameplay]
turn_delay_seconds = 0.5

[tool.zorkscaffold.files]
game_file_path = "stories/zork1.z5"

[tool.zorkscaffold.retry]
max_retries = 5

[tool.zorkscaffold.actor_sampling]
temperature = 0.0
max_tokens = 12
"""


def write_toml(tmp_path, text):
    path = tmp_path / "pyproject.toml"
    path.write_text(text)
    return path


class TestDefaults:
    def test_defaults(self):
        config = GameConfiguration()

        assert config.summary_interval == 5
        assert config.advisory_interval == 3
        assert config.recent_outcome_window == 10
        assert config.failure_forbid_turns == 10
        assert config.loop_forbid_turns == 6
        assert config.game_output_excerpt_chars == 300
        assert config.actor_sampling == {"temperature": 0.2, "max_tokens": 20}
        assert config.retry["max_retries"] == 2

    def test_loop_window_cannot_exceed_outcome_window(self):
        with pytest.raises(ValidationError):
            GameConfiguration(loop_window=8, recent_outcome_window=6)

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            GameConfiguration(sumary_interval=4)

    def test_base_url_fallback(self):
        config = GameConfiguration(agent_base_url="http://actor.local/v1")

        assert config.get_llm_base_url_for_model("agent") == "http://actor.local/v1"
        assert config.get_llm_base_url_for_model("summary") == config.client_base_url


class TestEnvironment:
    def test_prefixed_variables_override_defaults(self, monkeypatch):
        monkeypatch.setenv("ZORKSCAFFOLD_SUMMARY_INTERVAL", "7")
        monkeypatch.setenv("ZORKSCAFFOLD_AGENT_MODEL", "env-model")

        config = GameConfiguration()

        assert config.summary_interval == 7
        assert config.agent_model == "env-model"

    def test_legacy_api_key_variable(self, monkeypatch):
        monkeypatch.setenv("CLIENT_API_KEY", "sk-test")
        assert GameConfiguration().get_effective_api_key() == "sk-test"


class TestFromToml:
    def test_loads_sections(self, tmp_path):
        config = GameConfiguration.from_toml(write_toml(tmp_path, SAMPLE_TOML))

        assert config.client_base_url == "http://llm.local:8000/v1"
        assert config.agent_model == "tiny-actor"
        assert config.get_llm_base_url_for_model("advisor") == "http://advisor.local/v1"
        assert config.summary_interval == 8
        assert config.advisory_interval == 4
        assert config.failure_forbid_turns == 12
        assert config.turn_delay_seconds == 0.5
        assert config.game_file_path == "stories/zork1.z5"
        assert config.actor_sampling == {"temperature": 0.0, "max_tokens": 12}

    def test_absent_keys_keep_defaults(self, tmp_path):
        config = GameConfiguration.from_toml(write_toml(tmp_path, SAMPLE_TOML))

        assert config.loop_window == 6
        assert config.advisor_sampling == {"temperature": 0.2, "max_tokens": 30}

    def test_partial_retry_table_is_merged(self, tmp_path):
        config = GameConfiguration.from_toml(write_toml(tmp_path, SAMPLE_TOML))

        assert config.retry["max_retries"] == 5
        assert config.retry["initial_delay"] == 1.0
        assert config.retry["circuit_breaker_enabled"] is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            GameConfiguration.from_toml(tmp_path / "nope.toml")

    def test_missing_section(self, tmp_path):
        path = write_toml(tmp_path, '[project]\nname = "other"\n')
        with pytest.raises(KeyError):
            GameConfiguration.from_toml(path)

    def test_repository_config_loads(self):
        config = GameConfiguration.from_toml(Path(__file__).parent.parent / "pyproject.toml")
        assert config.loop_window <= config.recent_outcome_window
