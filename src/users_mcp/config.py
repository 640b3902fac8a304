"""Runtime configuration from environment variables.

    GEMINI_API_KEY               Gemini credential (driver only)
    USERS_MCP_MODEL              Model id, default gemini-2.0-flash
    USERS_MCP_DATA_FILE          User data file, default data/users.json
    USERS_MCP_REQUEST_TIMEOUT    Request bound in seconds, default 60
    USERS_MCP_SAMPLING_TIMEOUT   Sampling bound in seconds, default 120
    USERS_MCP_MAX_STEPS          Autonomous task step ceiling, default 5
    USERS_MCP_LOG_LEVEL          Log level, default WARNING
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace
from typing import Any

from .driver.agent import DEFAULT_MAX_STEPS
from .driver.llm import DEFAULT_MODEL

DEFAULT_DATA_FILE = "data/users.json"
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_SAMPLING_TIMEOUT = 120.0
DEFAULT_LOG_LEVEL = "WARNING"


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Effective configuration for host and driver."""

    gemini_api_key: str | None = None
    model: str = DEFAULT_MODEL
    data_file: str = DEFAULT_DATA_FILE
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    sampling_timeout: float = DEFAULT_SAMPLING_TIMEOUT
    max_steps: int = DEFAULT_MAX_STEPS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment.

        Raises:
            ValueError: If a numeric variable does not parse; the message
                names the variable
        """
        env = os.environ if environ is None else environ
        return cls(
            gemini_api_key=env.get("GEMINI_API_KEY") or None,
            model=env.get("USERS_MCP_MODEL") or DEFAULT_MODEL,
            data_file=env.get("USERS_MCP_DATA_FILE") or DEFAULT_DATA_FILE,
            request_timeout=_float(env, "USERS_MCP_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            sampling_timeout=_float(env, "USERS_MCP_SAMPLING_TIMEOUT", DEFAULT_SAMPLING_TIMEOUT),
            max_steps=_int(env, "USERS_MCP_MAX_STEPS", DEFAULT_MAX_STEPS),
            log_level=(env.get("USERS_MCP_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )

    def override(self, **values: Any) -> Settings:
        """Copy with the given values replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})

    def to_display(self) -> dict[str, Any]:
        """Settings as a dict with the API key masked."""
        data = asdict(self)
        data["gemini_api_key"] = "set" if self.gemini_api_key else "not set"
        return data
