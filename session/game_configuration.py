"""
Game configuration management for ZorkScaffold.

This module provides a clean, typed interface to scaffold configuration,
loading directly from pyproject.toml and environment variables.
"""

import os
import tomllib
from typing import Optional
from pathlib import Path
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv


def _default_retry_config() -> dict:
    """
    Provide default retry configuration values.

    These defaults are used when retry config is not explicitly provided
    (e.g., in tests or when creating GameConfiguration instances directly).
    """
    return {
        "max_retries": 2,
        "initial_delay": 1.0,
        "max_delay": 20.0,
        "exponential_base": 2.0,
        "jitter_factor": 0.1,
        "retry_on_timeout": True,
        "retry_on_rate_limit": True,
        "retry_on_server_error": True,
        "timeout_seconds": 60.0,
        "circuit_breaker_enabled": True,
        "circuit_breaker_failure_threshold": 10,
        "circuit_breaker_recovery_timeout": 300.0,
        "circuit_breaker_success_threshold": 3,
    }


def _default_actor_sampling() -> dict:
    return {"temperature": 0.2, "max_tokens": 20}


def _default_advisor_sampling() -> dict:
    return {"temperature": 0.2, "max_tokens": 30}


def _default_summary_sampling() -> dict:
    return {"temperature": 0.3, "max_tokens": 100}


class GameConfiguration(BaseSettings):
    """
    Typed configuration object for ZorkScaffold.

    Loads configuration directly from pyproject.toml and environment variables.
    Every field has a default so tests can build instances directly.
    """

    # Core session settings
    max_turns_per_episode: int = Field(
        default=200, description="Maximum number of turns allowed per autoplay session"
    )
    turn_delay_seconds: float = Field(
        default=2.0, description="Delay in seconds between autoplay turns"
    )
    engine_settle_timeout_seconds: float = Field(
        default=5.0,
        description="How long to wait for the game engine to become ready for input",
        gt=0.0,
    )

    # File paths
    game_file_path: str = Field(
        default="game_files/zork1.z5", description="Path to game story file"
    )
    episode_log_file: str = Field(
        default="zork_episode_log.txt", description="Path to human-readable log file"
    )
    json_log_file: str = Field(
        default="zork_episode_log.jsonl", description="Path to JSON log file"
    )

    # LLM client settings
    client_base_url: str = Field(
        default="http://localhost:1234/v1", description="Base URL for LLM client"
    )
    client_api_key: Optional[str] = Field(
        default=None, description="API key for LLM client"
    )

    # Model specifications
    agent_model: str = Field(
        default="SmolLM2-360M-Instruct", description="Model name for command decisions"
    )
    advisor_model: str = Field(
        default="SmolLM2-360M-Instruct", description="Model name for advisory tips"
    )
    summary_model: str = Field(
        default="SmolLM2-360M-Instruct", description="Model name for progress summaries"
    )

    # Per-model base URLs (optional)
    agent_base_url: Optional[str] = Field(
        default=None, description="Optional base URL for agent model"
    )
    advisor_base_url: Optional[str] = Field(
        default=None, description="Optional base URL for advisor model"
    )
    summary_base_url: Optional[str] = Field(
        default=None, description="Optional base URL for summary model"
    )

    # Retry configuration
    retry: dict = Field(
        default_factory=_default_retry_config,
        description="Retry and exponential backoff configuration",
    )

    # Orchestration intervals
    summary_interval: int = Field(
        default=5, description="Refresh the progress summary every N turns", ge=1
    )
    advisory_interval: int = Field(
        default=3, description="Request an advisory tip every N turns", ge=1
    )
    top_candidate_count: int = Field(
        default=5, description="Number of policy candidates shown to the model", ge=1
    )
    game_output_excerpt_chars: int = Field(
        default=300, description="Characters of raw game output included in prompts", ge=50
    )

    # Memory settings
    recent_outcome_window: int = Field(
        default=10, description="Command outcomes retained in short-term memory", ge=4
    )
    loop_window: int = Field(
        default=6, description="Recent outcomes scanned for exact repeats", ge=2
    )
    stuck_threshold: int = Field(
        default=3, description="No-change streak that counts as stuck", ge=1
    )
    failure_forbid_turns: int = Field(
        default=10, description="Turns a failed command stays forbidden", ge=1
    )
    loop_forbid_turns: int = Field(
        default=6, description="Turns a looping command stays forbidden", ge=1
    )

    # Policy settings
    max_command_length: int = Field(
        default=50, description="Longest command accepted from the model", ge=1
    )
    max_command_words: int = Field(
        default=6, description="Most words accepted in a model command", ge=1
    )

    # Sampling parameters (loaded from TOML)
    actor_sampling: dict = Field(
        default_factory=_default_actor_sampling,
        description="Sampling parameters for command decisions",
    )
    advisor_sampling: dict = Field(
        default_factory=_default_advisor_sampling,
        description="Sampling parameters for advisory tips",
    )
    summary_sampling: dict = Field(
        default_factory=_default_summary_sampling,
        description="Sampling parameters for progress summaries",
    )

    model_config = SettingsConfigDict(
        env_prefix="ZORKSCAFFOLD_",
        env_file=None,  # Don't auto-load .env to avoid validation errors from unrelated vars
        case_sensitive=False,
        extra="forbid",  # Catch typos in config early
    )

    @model_validator(mode="after")
    def validate_loop_window(self) -> "GameConfiguration":
        """The repeat scan cannot look further back than the outcome window."""
        if self.loop_window > self.recent_outcome_window:
            raise ValueError(
                f"loop_window ({self.loop_window}) must be <= "
                f"recent_outcome_window ({self.recent_outcome_window})"
            )
        return self

    def model_post_init(self, __context) -> None:
        """Handle legacy env vars."""
        if self.client_api_key is None:
            self.client_api_key = os.environ.get("CLIENT_API_KEY")

    @classmethod
    def from_toml(cls, config_file: Optional[Path] = None) -> "GameConfiguration":
        """
        Create GameConfiguration by loading directly from pyproject.toml.

        Args:
            config_file: Path to TOML file (defaults to pyproject.toml)

        Returns:
            GameConfiguration instance loaded from TOML

        Raises:
            FileNotFoundError: If config file doesn't exist
            KeyError: If the [tool.zorkscaffold] section is missing
        """
        # Load .env file if it exists to populate environment variables
        load_dotenv()

        config_file = config_file or Path("pyproject.toml")

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        with open(config_file, "rb") as f:
            toml_data = tomllib.load(f)

        try:
            scaffold_config = toml_data["tool"]["zorkscaffold"]
        except KeyError:
            raise KeyError("Missing [tool.zorkscaffold] section in pyproject.toml")

        llm_config = scaffold_config.get("llm", {})
        orchestrator_config = scaffold_config.get("orchestrator", {})
        memory_config = scaffold_config.get("memory", {})
        policy_config = scaffold_config.get("policy", {})
        gameplay_config = scaffold_config.get("gameplay", {})
        files_config = scaffold_config.get("files", {})

        config_dict = {
            # Core session settings
            "max_turns_per_episode": orchestrator_config.get("max_turns_per_episode"),
            "turn_delay_seconds": gameplay_config.get("turn_delay_seconds"),
            "engine_settle_timeout_seconds": gameplay_config.get("engine_settle_timeout_seconds"),
            # File paths
            "game_file_path": files_config.get("game_file_path"),
            "episode_log_file": files_config.get("episode_log_file"),
            "json_log_file": files_config.get("json_log_file"),
            # LLM client settings
            "client_base_url": llm_config.get("client_base_url"),
            "agent_model": llm_config.get("agent_model"),
            "advisor_model": llm_config.get("advisor_model"),
            "summary_model": llm_config.get("summary_model"),
            "agent_base_url": llm_config.get("agent_base_url"),
            "advisor_base_url": llm_config.get("advisor_base_url"),
            "summary_base_url": llm_config.get("summary_base_url"),
            # Orchestration intervals
            "summary_interval": orchestrator_config.get("summary_interval"),
            "advisory_interval": orchestrator_config.get("advisory_interval"),
            "top_candidate_count": orchestrator_config.get("top_candidate_count"),
            "game_output_excerpt_chars": orchestrator_config.get("game_output_excerpt_chars"),
            # Memory settings
            "recent_outcome_window": memory_config.get("recent_outcome_window"),
            "loop_window": memory_config.get("loop_window"),
            "stuck_threshold": memory_config.get("stuck_threshold"),
            "failure_forbid_turns": memory_config.get("failure_forbid_turns"),
            "loop_forbid_turns": memory_config.get("loop_forbid_turns"),
            # Policy settings
            "max_command_length": policy_config.get("max_command_length"),
            "max_command_words": policy_config.get("max_command_words"),
        }

        # Merge table-valued settings over the defaults so partial tables are fine
        if scaffold_config.get("retry"):
            config_dict["retry"] = {**_default_retry_config(), **scaffold_config["retry"]}
        if scaffold_config.get("actor_sampling"):
            config_dict["actor_sampling"] = scaffold_config["actor_sampling"]
        if scaffold_config.get("advisor_sampling"):
            config_dict["advisor_sampling"] = scaffold_config["advisor_sampling"]
        if scaffold_config.get("summary_sampling"):
            config_dict["summary_sampling"] = scaffold_config["summary_sampling"]

        # Absent keys fall back to field defaults
        config_dict = {key: value for key, value in config_dict.items() if value is not None}

        return cls.model_validate(config_dict)

    def get_effective_api_key(self) -> Optional[str]:
        """Get the effective API key from environment or instance."""
        return self.client_api_key

    def get_llm_base_url_for_model(self, model_type: str) -> str:
        """
        Get the effective base URL for a specific model type.

        Args:
            model_type: One of 'agent', 'advisor', 'summary'

        Returns:
            Base URL for the model type
        """
        base_url_map = {
            "agent": self.agent_base_url,
            "advisor": self.advisor_base_url,
            "summary": self.summary_base_url,
        }

        # Return model-specific URL if available, otherwise fall back to client_base_url
        return base_url_map.get(model_type) or self.client_base_url
