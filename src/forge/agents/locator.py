from __future__ import annotations

"""Resolve an agent id to a single reachable actor handle."""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..domain.agent_models import Jurisdiction
from ..domain.errors import AgentNotFound, NamespaceUnavailable
from ..infrastructure.actor_registry import ActorHandle, ActorRegistry
from ..observability.structured import StructuredLogger, get_logger


@dataclass(frozen=True)
class ActorLookup:
    """Outcome of a lookup; ``handle`` is None when no live actor was found."""

    agent_id: str
    handle: Optional[ActorHandle] = None
    jurisdiction: Optional[Jurisdiction] = None

    @property
    def found(self) -> bool:
        return self.handle is not None

    def require(self) -> ActorHandle:
        if self.handle is None:
            raise AgentNotFound(self.agent_id)
        return self.handle


def parse_jurisdictions(values: Iterable[str]) -> Sequence[Jurisdiction]:
    ordered = []
    for value in values:
        try:
            jurisdiction = Jurisdiction(value.strip().lower())
        except ValueError:
            continue
        if jurisdiction not in ordered:
            ordered.append(jurisdiction)
    if Jurisdiction.DEFAULT in ordered:
        ordered.remove(Jurisdiction.DEFAULT)
    return [Jurisdiction.DEFAULT, *ordered]


class ActorLocator:
    def __init__(
        self,
        registry: Optional[ActorRegistry],
        *,
        jurisdictions: Iterable[str] = ("default", "eu"),
        location_hint: str = "enam",
    ) -> None:
        self._registry = registry
        self._jurisdictions = parse_jurisdictions(jurisdictions)
        self._location_hint = location_hint

    @property
    def jurisdictions(self) -> Sequence[Jurisdiction]:
        return tuple(self._jurisdictions)

    def _namespace(self) -> ActorRegistry:
        if self._registry is None:
            raise NamespaceUnavailable("Agent actor namespace not available in environment")
        return self._registry

    def _resolve(self, agent_id: str, jurisdiction: Optional[Jurisdiction]) -> ActorHandle:
        registry = self._namespace()
        actor_id = registry.id_from_name(agent_id)
        if jurisdiction is Jurisdiction.DEFAULT:
            jurisdiction = None
        return registry.get(actor_id, location_hint=self._location_hint, jurisdiction=jurisdiction)

    async def locate(
        self,
        agent_id: str,
        search_other_jurisdictions: bool = False,
        logger: Optional[StructuredLogger] = None,
    ) -> ActorLookup:
        """Find the actor for ``agent_id``.

        Without a search the default-jurisdiction handle is returned at once
        (the actor is created lazily). With a search, jurisdictions are tried
        in order and the first one whose actor reports initialized wins; if
        none does, the lookup comes back empty instead of raising.
        """
        log = (logger or get_logger("locator")).bind(agent_id=agent_id)
        registry = self._namespace()

        if not search_other_jurisdictions:
            handle = self._resolve(agent_id, Jurisdiction.DEFAULT)
            log.debug("Agent handle resolved directly")
            return ActorLookup(agent_id, handle, Jurisdiction.DEFAULT)

        for jurisdiction in self._jurisdictions:
            try:
                existed = registry.peek(agent_id, jurisdiction) is not None
                handle = self._resolve(agent_id, jurisdiction)
                if await handle.is_initialized():
                    log.info("Agent found", extra={"jurisdiction": jurisdiction.value})
                    return ActorLookup(agent_id, handle, jurisdiction)
                log.debug("Agent not initialized", extra={"jurisdiction": jurisdiction.value})
                # Actors created only for this check are not kept.
                if not existed:
                    registry.discard(agent_id, jurisdiction, handle)
            except NamespaceUnavailable:
                raise
            except Exception as exc:
                log.info("Agent lookup failed", extra={"jurisdiction": jurisdiction.value, "error": str(exc)})
        log.warning("Agent not found in any jurisdiction")
        return ActorLookup(agent_id)
