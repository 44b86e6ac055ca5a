"""Environment configuration for the completion providers and HTTP layer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

APP_NAME = "ClinicalAI"

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
GATEWAY_CHAT_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_REQUEST_TIMEOUT = 60


@dataclass(frozen=True)
class AppConfig:
    """Resolved process-level configuration.

    Which provider serves a request is decided by the stored AI settings;
    this object only carries the credentials and endpoints for each.
    """

    openai_api_key: Optional[str] = None
    gateway_api_key: Optional[str] = None
    openai_url: str = OPENAI_CHAT_URL
    gateway_url: str = GATEWAY_CHAT_URL
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    allowed_origins: Tuple[str, ...] = ("*",)


def get_int_env(name: str, default: Optional[int] = None) -> Optional[int]:
    """Read an integer environment variable; blank or unset yields ``default``."""

    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer; got {raw!r}") from exc


def _get_origins() -> Tuple[str, ...]:
    raw = os.getenv("ALLOWED_ORIGINS", "*")
    origins = tuple(o.strip() for o in raw.split(",") if o.strip())
    return origins or ("*",)


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Return the active configuration derived from the environment."""

    return AppConfig(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        gateway_api_key=os.getenv("LOVABLE_API_KEY") or None,
        openai_url=os.getenv("OPENAI_CHAT_URL", OPENAI_CHAT_URL),
        gateway_url=os.getenv("AI_GATEWAY_URL", GATEWAY_CHAT_URL),
        request_timeout=get_int_env("AI_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        allowed_origins=_get_origins(),
    )


__all__ = ["APP_NAME", "AppConfig", "get_app_config", "get_int_env"]
