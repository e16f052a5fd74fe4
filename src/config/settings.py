"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # AGI wire format
    agi_env_prefix: str = Field(
        default="agi_",
        description="Prefix stripped from environment header keys.",
    )
    agi_encoding: str = Field(default="utf-8")
    agi_line_terminator: str = Field(
        default="\n",
        description="Terminator appended to outbound command lines.",
    )
    agi_max_line_length: int = Field(
        default=8192,
        gt=0,
        description="Longest inbound line accepted before the connection is dropped.",
    )

    # Diagnostics
    agi_trace: bool = Field(
        default=False,
        description="If true, logs every outbound and inbound protocol line.",
    )

    # Optional bound on the wait for a single command response (seconds).
    agi_response_timeout: float | None = Field(default=None, gt=0)

    @field_validator("agi_line_terminator")
    @classmethod
    def check_terminator(cls, value: str) -> str:
        if value not in ("\n", "\r\n"):
            raise ValueError("agi_line_terminator must be LF or CRLF")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
