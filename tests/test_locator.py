import pytest

from src.forge.agents.actor import CodeGenActor
from src.forge.agents.locator import ActorLocator, parse_jurisdictions
from src.forge.domain.agent_models import CodeGenState, Jurisdiction
from src.forge.domain.errors import AgentNotFound, NamespaceUnavailable
from src.forge.infrastructure.actor_registry import ActorRegistry


async def _initialize(registry, name, jurisdiction):
    actor = registry.get(registry.id_from_name(name), jurisdiction=jurisdiction)
    await actor.set_state(CodeGenState(session_id=name, query=f"in {jurisdiction.value}"))
    return actor


def test_parse_jurisdictions_puts_default_first():
    assert parse_jurisdictions(["eu", "bogus", "DEFAULT", "eu"]) == [Jurisdiction.DEFAULT, Jurisdiction.EU]
    assert parse_jurisdictions([]) == [Jurisdiction.DEFAULT]


@pytest.mark.asyncio
async def test_missing_namespace_raises():
    locator = ActorLocator(None)
    with pytest.raises(NamespaceUnavailable) as exc:
        await locator.locate("agent-1")
    assert exc.value.message == "Agent actor namespace not available in environment"


@pytest.mark.asyncio
async def test_direct_lookup_returns_default_handle(locator, registry):
    lookup = await locator.locate("fresh")
    assert lookup.found
    assert lookup.jurisdiction is Jurisdiction.DEFAULT
    assert lookup.require() is registry.peek("fresh")
    assert not await lookup.require().is_initialized()


@pytest.mark.asyncio
async def test_search_finds_agent_in_eu(locator, registry):
    eu_actor = await _initialize(registry, "agent-eu", Jurisdiction.EU)
    lookup = await locator.locate("agent-eu", True)
    assert lookup.jurisdiction is Jurisdiction.EU
    assert lookup.require() is eu_actor


@pytest.mark.asyncio
async def test_search_prefers_default_when_both_exist(locator, registry):
    default_actor = await _initialize(registry, "agent-both", Jurisdiction.DEFAULT)
    await _initialize(registry, "agent-both", Jurisdiction.EU)
    for _ in range(3):
        lookup = await locator.locate("agent-both", True)
        assert lookup.require() is default_actor


@pytest.mark.asyncio
async def test_search_without_match_is_empty(locator):
    lookup = await locator.locate("ghost", True)
    assert not lookup.found
    with pytest.raises(AgentNotFound) as exc:
        lookup.require()
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_failing_jurisdiction_is_skipped(settings, sandbox, inference):
    def factory(agent_id, jurisdiction):
        if jurisdiction is Jurisdiction.DEFAULT:
            raise RuntimeError("region unavailable")
        return CodeGenActor(agent_id, jurisdiction, sandbox=sandbox, inference=inference, settings=settings)

    registry = ActorRegistry(settings.actor_namespace, factory)
    await _initialize(registry, "agent-x", Jurisdiction.EU)
    lookup = await ActorLocator(registry).locate("agent-x", True)
    assert lookup.jurisdiction is Jurisdiction.EU


@pytest.mark.asyncio
async def test_failed_searches_do_not_grow_registry(locator, registry):
    for i in range(50):
        lookup = await locator.locate(f"ghost-{i}", True)
        assert not lookup.found
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_search_keeps_existing_uninitialized_actor(locator, registry):
    pending = registry.get(registry.id_from_name("agent-pending"))
    lookup = await locator.locate("agent-pending", True)
    assert not lookup.found
    assert registry.peek("agent-pending") is pending
    assert registry.peek("agent-pending", Jurisdiction.EU) is None
