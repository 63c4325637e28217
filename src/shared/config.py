from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}
_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmg]?b)?\s*$", re.IGNORECASE)


def parse_size(value: str | int) -> int:
    """Parse a body-size limit such as ``"10mb"`` or ``512`` into bytes."""
    if isinstance(value, int):
        return value
    match = _SIZE_RE.match(value)
    if match is None:
        raise ValueError(f"invalid size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COPILOT_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_host: str = "0.0.0.0"
    api_port: int = 5005

    # development | production | test
    environment: str = "development"
    log_level: str = ""

    request_timeout: float = 30.0
    provider_timeout: float = 25.0
    max_request_size: int = 10 * 1024 * 1024
    cors_origin: str = "*"
    shutdown_grace: float = 30.0

    # ============== LLM provider ==============
    llm_provider_type: str = "openai_compatible"
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str = ""
    llm_base_url: str = ""
    llm_ollama_base_url: str = "http://localhost:11434"

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, value: str) -> str:
        return value.strip().lower() or "development"

    @field_validator("max_request_size", mode="before")
    @classmethod
    def _parse_max_request_size(cls, value):
        return parse_size(value)

    @model_validator(mode="after")
    def _default_log_level(self) -> "Settings":
        # Debug output only in development, as with the original server.
        if not self.log_level:
            self.log_level = "DEBUG" if self.is_development else "INFO"
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()] or ["*"]


_settings: Settings | None = None

DOTENV_PATH = Path(".env")


def get_settings() -> Settings:
    """Settings from the environment, with `.env` as a lower-priority source.

    `COPILOT_DISABLE_DOTENV=1` skips the file so tests and deployments do not
    pick up a developer's local one.
    """
    global _settings
    if _settings is None:
        env_file = None if os.getenv("COPILOT_DISABLE_DOTENV") == "1" else DOTENV_PATH
        _settings = Settings(_env_file=env_file)
    return _settings


def reset_settings_for_tests() -> None:
    """Test-only: drop the cached settings so monkeypatched env vars apply."""
    global _settings
    _settings = None
