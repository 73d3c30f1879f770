"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TOKENS = 100
DEFAULT_BACKEND_TIMEOUT_S = 30.0


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class Settings:
    default_tokens: int = DEFAULT_TOKENS
    backend_timeout_s: float = DEFAULT_BACKEND_TIMEOUT_S
    provider: str = "openai"
    openai_model: str = "gpt-4"
    gemini_model: str = "gemini-2.0-flash"
    stripe_webhook_secret: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``KOLONI_*`` and provider environment variables.

        API keys are not stored here; providers resolve them on construction
        so an explicit key can still override the environment.
        """
        return cls(
            default_tokens=_env_int("KOLONI_DEFAULT_TOKENS", DEFAULT_TOKENS),
            backend_timeout_s=_env_float("KOLONI_BACKEND_TIMEOUT", DEFAULT_BACKEND_TIMEOUT_S),
            provider=os.environ.get("KOLONI_PROVIDER", "openai").strip() or "openai",
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-4").strip() or "gpt-4",
            gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.0-flash").strip() or "gemini-2.0-flash",
            stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET", "").strip(),
            log_level=os.environ.get("KOLONI_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
