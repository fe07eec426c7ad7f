"""Runtime settings, loaded from TASKCHAT_* environment variables or a .env file."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from taskchat.memory import DEFAULT_MAX_TURNS, DEFAULT_SUMMARY_KEYWORDS


class Settings(BaseSettings):
    # Ollama connection
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama2"
    temperature: float = 0.1  # low, for more consistent JSON

    # Tool gateway
    gateway_url: str = "http://localhost:6000"

    # Conversation window
    max_turns: int = DEFAULT_MAX_TURNS
    summary_keywords: list[str] = list(DEFAULT_SUMMARY_KEYWORDS)

    # Timeouts (seconds)
    request_timeout: float = 30.0

    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="TASKCHAT_",
        env_file=".env",
        extra="ignore",
    )


def get_settings() -> Settings:
    return Settings()
