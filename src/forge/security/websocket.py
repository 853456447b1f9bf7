from __future__ import annotations

"""Origin checks for agent WebSocket upgrades."""

from typing import Iterable, Optional
from urllib.parse import urlparse


def _normalize(origin: str) -> str:
    parsed = urlparse(origin.strip())
    if not parsed.scheme or not parsed.hostname:
        return ""
    host = parsed.hostname.lower()
    default_port = 443 if parsed.scheme in ("https", "wss") else 80
    port = parsed.port or default_port
    if port == default_port:
        return f"{parsed.scheme}://{host}"
    return f"{parsed.scheme}://{host}:{port}"


def validate_websocket_origin(origin: Optional[str], allowed_origins: Iterable[str]) -> bool:
    """Return True when ``origin`` is on the allow-list.

    Requests without an Origin header are rejected; ``*`` in the allow-list
    accepts any well-formed origin.
    """
    if not origin:
        return False
    normalized = _normalize(origin)
    if not normalized:
        return False
    for allowed in allowed_origins:
        if allowed == "*":
            return True
        if _normalize(allowed) == normalized:
            return True
    return False
