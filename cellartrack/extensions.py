from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

__all__ = ["limiter"]

FALLBACK_RATE_LIMITS = ("5000 per hour", "1000 per minute")


def _default_rate_limits() -> str:
    """Resolve default rate limits from config or fall back to safe defaults."""
    config_value = current_app.config.get("RATELIMIT_DEFAULT")
    if isinstance(config_value, str) and config_value.strip():
        normalized = (
            config_value.replace(",", ";")
            .replace("|", ";")
            .split(";")
        )
        limits = [entry.strip() for entry in normalized if entry.strip()]
        if limits:
            return "; ".join(limits)
    return "; ".join(FALLBACK_RATE_LIMITS)


limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_default_rate_limits],
)
