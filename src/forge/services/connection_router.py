from __future__ import annotations

"""Route an upgraded WebSocket to the actor that owns the agent."""

from typing import Optional

from fastapi import WebSocket, status

from ..agents.constants import WebSocketMessageResponses as Resp
from ..agents.locator import ActorLocator
from ..domain.errors import WebSocketUpgradeError
from ..infrastructure.actor_registry import ActorRegistry
from ..observability.structured import StructuredLogger, get_logger


class ConnectionRouter:
    """Primary path is the registry's own routing; the locator is the fallback.

    The socket must already have passed the Origin check. Failures after that
    point are reported over the socket itself, since the HTTP response is
    already committed to an upgrade.
    """

    def __init__(self, registry: Optional[ActorRegistry], locator: ActorLocator) -> None:
        self._registry = registry
        self._locator = locator

    async def connect(self, websocket: WebSocket, agent_id: str, logger: Optional[StructuredLogger] = None) -> None:
        log = (logger or get_logger("connection_router")).bind(agent_id=agent_id)

        if self._registry is not None:
            routed = await self._registry.route_request(
                websocket, namespace=self._registry.namespace, room=agent_id
            )
            if routed:
                log.debug("Connection routed by registry")
                return

        try:
            lookup = await self._locator.locate(agent_id, True, log)
            handle = lookup.require()
        except Exception as exc:
            log.error("WebSocket connection error", extra={"error": str(exc)})
            await self._reject(websocket, WebSocketUpgradeError(f"Failed to get agent instance: {exc}"))
            return

        log.info("Forwarding connection to agent", extra={"jurisdiction": lookup.jurisdiction.value if lookup.jurisdiction else None})
        await handle.fetch(websocket, {"namespace": self._registry.namespace if self._registry else "", "room": agent_id})

    @staticmethod
    async def _reject(websocket: WebSocket, error: WebSocketUpgradeError) -> None:
        await websocket.accept()
        await websocket.send_json({"type": Resp.ERROR, "error": error.message})
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
