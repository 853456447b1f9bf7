from __future__ import annotations

"""In-process actor registry.

Maps (agent identity, jurisdiction) to exactly one actor instance, created on
first lookup. It stands in for a platform that provides durable
single-instance actors: callers go through :meth:`ActorRegistry.id_from_name`
and :meth:`ActorRegistry.get` the same way they would through a platform
namespace binding, and never hold on to handles across requests.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Protocol, Tuple

from fastapi import WebSocket

from ..domain.agent_models import AgentMode, AgentPreviewResponse, CodeGenState, Jurisdiction

logger = logging.getLogger("forge.actor_registry")


class ActorHandle(Protocol):
    agent_id: str

    async def is_initialized(self) -> bool: ...

    async def get_full_state(self) -> CodeGenState: ...

    async def set_state(self, state: CodeGenState) -> None: ...

    async def initialize(self, args, mode: AgentMode = AgentMode.DETERMINISTIC) -> CodeGenState: ...

    async def deploy_to_sandbox(self) -> Optional[AgentPreviewResponse]: ...

    async def fetch(self, websocket: WebSocket, headers: Optional[Mapping[str, str]] = None) -> None: ...


ActorFactory = Callable[[str, Jurisdiction], ActorHandle]


@dataclass(frozen=True)
class ActorId:
    name: str
    hex: str

    @classmethod
    def from_name(cls, name: str) -> "ActorId":
        return cls(name=name, hex=hashlib.sha256(name.encode("utf-8")).hexdigest())


class ActorRegistry:
    def __init__(self, namespace: str, factory: ActorFactory) -> None:
        self.namespace = namespace
        self._factory = factory
        self._actors: Dict[Tuple[str, Jurisdiction], ActorHandle] = {}

    def id_from_name(self, name: str) -> ActorId:
        return ActorId.from_name(name)

    def get(
        self,
        actor_id: ActorId,
        *,
        location_hint: Optional[str] = None,
        jurisdiction: Optional[Jurisdiction] = None,
    ) -> ActorHandle:
        key = (actor_id.hex, jurisdiction or Jurisdiction.DEFAULT)
        actor = self._actors.get(key)
        if actor is None:
            actor = self._factory(actor_id.name, key[1])
            self._actors[key] = actor
            logger.debug("Created actor %s in %s (hint=%s)", actor_id.name, key[1].value, location_hint)
        return actor

    def peek(self, name: str, jurisdiction: Jurisdiction = Jurisdiction.DEFAULT) -> Optional[ActorHandle]:
        """Return the actor if it has already been created, without creating it."""

        return self._actors.get((ActorId.from_name(name).hex, jurisdiction))

    def discard(self, name: str, jurisdiction: Jurisdiction, actor: ActorHandle) -> None:
        """Drop ``actor`` if it is still the one registered for ``name``."""

        key = (ActorId.from_name(name).hex, jurisdiction)
        if self._actors.get(key) is actor:
            del self._actors[key]
            logger.debug("Discarded actor %s in %s", name, jurisdiction.value)

    async def route_request(self, websocket: WebSocket, *, namespace: str, room: str) -> bool:
        """Hand a connection to the live actor for ``room``.

        Returns False (declines) when the namespace is not this registry's or
        no initialized actor for the room exists in the default jurisdiction.
        """
        if namespace != self.namespace:
            return False
        actor = self.peek(room)
        if actor is None or not await actor.is_initialized():
            return False
        await actor.fetch(websocket, {"namespace": namespace, "room": room})
        return True

    def __len__(self) -> int:
        return len(self._actors)
