from __future__ import annotations

"""Runtime settings for the Forge orchestrator.

All knobs are environment variables (a local ``.env`` is honoured by the API
entrypoint). Values are read once into an immutable :class:`Settings`; the
FastAPI layer caches the instance, tests build their own with
``Settings.from_env(env={...})``.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

DEFAULT_ALLOWED_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _env_list(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = env.get(name)
    if not raw:
        return default
    items = tuple(part.strip() for part in raw.split(",") if part.strip())
    return items or default


@dataclass(frozen=True)
class Settings:
    actor_namespace: str = "CodeGenObject"
    location_hint: str = "enam"
    jurisdictions: Tuple[str, ...] = ("default", "eu")
    allowed_origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    preview_domain: str = "localhost"
    sandbox_url: Optional[str] = None
    sandbox_timeout: int = 15
    stream_buffer: int = 256
    template_selection_max_tokens: int = 2000
    blueprint_max_tokens: int = 8000
    app_creation_limit: int = 10
    app_creation_window_seconds: int = 3600
    rate_limit_disabled: bool = False
    global_user_message: str = ""
    change_logs: str = ""

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        disabled = (env.get("FORGE_RATE_LIMIT_DISABLED") or "").strip().lower() in ("1", "true", "yes", "on")
        return Settings(
            actor_namespace=env.get("FORGE_ACTOR_NAMESPACE", "CodeGenObject"),
            location_hint=env.get("FORGE_LOCATION_HINT", "enam"),
            jurisdictions=_env_list(env, "FORGE_JURISDICTIONS", ("default", "eu")),
            allowed_origins=_env_list(env, "FORGE_ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS),
            preview_domain=env.get("FORGE_PREVIEW_DOMAIN", "localhost"),
            sandbox_url=env.get("FORGE_SANDBOX_URL") or None,
            sandbox_timeout=_env_int(env, "FORGE_SANDBOX_TIMEOUT", 15),
            stream_buffer=_env_int(env, "FORGE_STREAM_BUFFER", 256),
            template_selection_max_tokens=_env_int(env, "FORGE_TEMPLATE_SELECTION_MAX_TOKENS", 2000),
            blueprint_max_tokens=_env_int(env, "FORGE_BLUEPRINT_MAX_TOKENS", 8000),
            app_creation_limit=_env_int(env, "FORGE_APP_CREATION_LIMIT", 10),
            app_creation_window_seconds=_env_int(env, "FORGE_APP_CREATION_WINDOW", 3600),
            rate_limit_disabled=disabled,
            global_user_message=env.get("FORGE_GLOBAL_USER_MESSAGE", ""),
            change_logs=env.get("FORGE_CHANGE_LOGS", ""),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""

    global _settings
    _settings = None
