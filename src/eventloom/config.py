"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `EVENTLOOM_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """eventloom settings.

    All fields are environment-configurable. Prefix is `EVENTLOOM_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="EVENTLOOM_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    log_level: str = Field(default="INFO")

    # Workflow runtime
    workflow_timeout_s: float = Field(default=60.0, ge=0.0)
    queue_capacity: int = Field(default=1000, ge=1)
    tick_interval_s: float = Field(default=0.1, gt=0.0, le=10.0)
    idle_grace_s: float = Field(default=0.05, ge=0.0, le=10.0)
    stream_buffer: int = Field(default=100, ge=1)

    # Agent
    agent_max_iterations: int = Field(default=10, ge=1, le=100)
    memory_token_limit: int = Field(default=3000, ge=1)

    # LLM
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    openai_timeout_s: float = Field(default=120.0)


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("EVENTLOOM_ENV_FILE")
    if env_file_override:
        return Settings(_env_file=Path(env_file_override))

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()


@lru_cache(maxsize=1)
def default_settings() -> Settings:
    """Settings used for defaults when a caller does not pass explicit values."""

    return load_settings()
