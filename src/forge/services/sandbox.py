from __future__ import annotations

"""Client for the sandbox service.

The sandbox service owns the template catalogue and the execution
environments that generated projects run in. Calls report failure through the
``success``/``error`` fields of their responses instead of raising, so the
orchestrator can decide how to surface them. HTTP is done with ``requests``
on a worker thread to keep the event loop free.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..core.config import Settings
from ..domain.agent_models import (
    DeploymentResponse,
    TemplateDetailsResponse,
    TemplateFile,
    TemplateListResponse,
)

logger = logging.getLogger("forge.sandbox")


class SandboxSession(Protocol):
    session_id: str

    async def get_template_details(self, name: str) -> TemplateDetailsResponse: ...

    async def deploy(self, files: List[TemplateFile]) -> DeploymentResponse: ...


class SandboxService(Protocol):
    async def list_templates(self) -> TemplateListResponse: ...

    async def acquire_session(self, session_id: str) -> SandboxSession: ...


def _build_http_session() -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(["POST", "GET"]),
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class _HttpTransport:
    def __init__(self, base_url: str, timeout: int) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = _build_http_session()

    def request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        resp = self._http.request(method, url, json=payload, timeout=self.timeout)
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            return {"success": False, "error": message or f"HTTP {resp.status_code} from {url}"}
        return data if isinstance(data, dict) else {"success": False, "error": "Malformed sandbox response"}

    async def call(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            return await asyncio.to_thread(self.request, method, path, payload)
        except requests.RequestException as exc:
            logger.warning("Sandbox request %s %s failed: %s", method, path, exc)
            return {"success": False, "error": str(exc)}


class HttpSandboxSession:
    def __init__(self, transport: _HttpTransport, session_id: str) -> None:
        self._transport = transport
        self.session_id = session_id

    async def get_template_details(self, name: str) -> TemplateDetailsResponse:
        data = await self._transport.call("GET", f"/sessions/{self.session_id}/templates/{name}")
        return TemplateDetailsResponse.model_validate(data)

    async def deploy(self, files: List[TemplateFile]) -> DeploymentResponse:
        payload = {"files": [f.model_dump(by_alias=True) for f in files]}
        data = await self._transport.call("POST", f"/sessions/{self.session_id}/deploy", payload)
        return DeploymentResponse.model_validate(data)


class HttpSandboxService:
    """Sandbox service reached over HTTP at ``FORGE_SANDBOX_URL``."""

    def __init__(self, base_url: str, timeout: int = 15) -> None:
        self._transport = _HttpTransport(base_url, timeout)

    async def list_templates(self) -> TemplateListResponse:
        data = await self._transport.call("GET", "/templates")
        return TemplateListResponse.model_validate(data)

    async def acquire_session(self, session_id: str) -> HttpSandboxSession:
        data = await self._transport.call("POST", "/sessions", {"sessionId": session_id})
        if not data.get("success", False):
            logger.warning("Sandbox session %s not acknowledged: %s", session_id, data.get("error"))
        return HttpSandboxSession(self._transport, session_id)


class UnconfiguredSandboxService:
    """Stand-in used when no sandbox URL is configured; every call reports failure."""

    ERROR = "Sandbox service not configured (set FORGE_SANDBOX_URL)"

    async def list_templates(self) -> TemplateListResponse:
        return TemplateListResponse(success=False, error=self.ERROR)

    async def acquire_session(self, session_id: str) -> "UnconfiguredSandboxSession":
        return UnconfiguredSandboxSession(session_id)


class UnconfiguredSandboxSession:
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id

    async def get_template_details(self, name: str) -> TemplateDetailsResponse:
        return TemplateDetailsResponse(success=False, error=UnconfiguredSandboxService.ERROR)

    async def deploy(self, files: List[TemplateFile]) -> DeploymentResponse:
        return DeploymentResponse(success=False, error=UnconfiguredSandboxService.ERROR)


def build_sandbox_service(settings: Settings) -> SandboxService:
    if settings.sandbox_url:
        return HttpSandboxService(settings.sandbox_url, timeout=settings.sandbox_timeout)
    return UnconfiguredSandboxService()
