from __future__ import annotations

"""Simple in-memory rate limiting primitives."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from ..core.config import Settings
from ..domain.errors import OrchestratorError


@dataclass
class _RateLimitEntry:
    count: int
    window_end: datetime


_LIMIT_STORE: Dict[Tuple[str, str], _RateLimitEntry] = {}

APP_CREATION_KEY = "app_creation"


class RateLimitExceeded(OrchestratorError):
    status_code = 429

    def __init__(self, retry_after_seconds: int, message: Optional[str] = None) -> None:
        super().__init__(message or "Rate limit exceeded")
        self.retry_after_seconds = retry_after_seconds


def rate_limit_action(
    key: str,
    identifier: str,
    *,
    limit: int,
    window_seconds: int,
    now: Optional[datetime] = None,
) -> None:
    """Track a rate-limited action.

    Raises:
        RateLimitExceeded if the action should be blocked. retry_after_seconds
        indicates when the caller may retry.
    """

    now = now or datetime.now(timezone.utc)
    store_key = (key, identifier)
    entry = _LIMIT_STORE.get(store_key)

    if entry and entry.window_end > now:
        if entry.count >= limit:
            retry_after = int((entry.window_end - now).total_seconds())
            raise RateLimitExceeded(
                max(retry_after, 1),
                f"App creation rate limit exceeded: {limit} per {window_seconds}s, retry in {max(retry_after, 1)}s",
            )
        entry.count += 1
        return

    _LIMIT_STORE[store_key] = _RateLimitEntry(count=1, window_end=now + timedelta(seconds=window_seconds))


def enforce_app_creation_limit(settings: Settings, user_id: str) -> None:
    """Apply the per-user app creation budget. Callers skip this for anonymous users."""

    if settings.rate_limit_disabled:
        return
    rate_limit_action(
        APP_CREATION_KEY,
        user_id,
        limit=settings.app_creation_limit,
        window_seconds=settings.app_creation_window_seconds,
    )


def reset_rate_limits() -> None:
    """Clear in-memory counters (useful for tests)."""

    _LIMIT_STORE.clear()
