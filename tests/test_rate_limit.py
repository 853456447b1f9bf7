from datetime import datetime, timedelta, timezone

import pytest

from src.forge.core.config import Settings
from src.forge.security.rate_limit import (
    RateLimitExceeded,
    enforce_app_creation_limit,
    rate_limit_action,
)


def test_rate_limit_blocks_after_limit():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    rate_limit_action("app_creation", "u1", limit=2, window_seconds=60, now=now)
    rate_limit_action("app_creation", "u1", limit=2, window_seconds=60, now=now)
    with pytest.raises(RateLimitExceeded) as exc:
        rate_limit_action("app_creation", "u1", limit=2, window_seconds=60, now=now + timedelta(seconds=10))
    assert exc.value.status_code == 429
    assert exc.value.retry_after_seconds == 50


def test_rate_limit_window_resets():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    rate_limit_action("app_creation", "u1", limit=1, window_seconds=60, now=now)
    rate_limit_action("app_creation", "u1", limit=1, window_seconds=60, now=now + timedelta(seconds=61))


def test_rate_limit_is_per_identifier():
    rate_limit_action("app_creation", "u1", limit=1, window_seconds=60)
    rate_limit_action("app_creation", "u2", limit=1, window_seconds=60)


def test_disabled_rate_limit_never_raises():
    settings = Settings(app_creation_limit=1, rate_limit_disabled=True)
    for _ in range(5):
        enforce_app_creation_limit(settings, "u1")
