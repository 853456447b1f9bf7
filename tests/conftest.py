import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from src.forge.agents.actor import CodeGenActor  # noqa: E402
from src.forge.agents.locator import ActorLocator  # noqa: E402
from src.forge.agents.orchestrator import AgentOrchestrator  # noqa: E402
from src.forge.agents.template_selector import TemplateSelector  # noqa: E402
from src.forge.core.config import Settings, reset_settings  # noqa: E402
from src.forge.domain.agent_models import TemplateSelection  # noqa: E402
from src.forge.infrastructure.actor_registry import ActorRegistry  # noqa: E402
from src.forge.infrastructure.model_config_store import InMemoryModelConfigStore  # noqa: E402
from src.forge.security.rate_limit import reset_rate_limits  # noqa: E402
from tests.utils import FakeInference, FakeSandbox, sequential_ids  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_state():
    reset_rate_limits()
    reset_settings()
    yield
    reset_rate_limits()
    reset_settings()


@pytest.fixture
def settings():
    return Settings(app_creation_limit=2, stream_buffer=64)


@pytest.fixture
def sandbox():
    return FakeSandbox()


@pytest.fixture
def game_selection():
    return TemplateSelection(
        selected_template_name="react-game-starter",
        reasoning="Game starter provides canvas setup and scoring.",
        use_case="Other",
        complexity="simple",
        style_selection="Retro",
        project_name="tile-puzzle",
    )


@pytest.fixture
def inference(game_selection):
    return FakeInference(selection=game_selection)


@pytest.fixture
def registry(settings, sandbox, inference):
    def factory(agent_id, jurisdiction):
        return CodeGenActor(agent_id, jurisdiction, sandbox=sandbox, inference=inference, settings=settings)

    return ActorRegistry(settings.actor_namespace, factory)


@pytest.fixture
def locator(registry, settings):
    return ActorLocator(registry, jurisdictions=settings.jurisdictions, location_hint=settings.location_hint)


@pytest.fixture
def model_configs():
    return InMemoryModelConfigStore()


@pytest.fixture
def orchestrator(locator, sandbox, inference, model_configs, settings):
    return AgentOrchestrator(
        locator=locator,
        sandbox=sandbox,
        selector=TemplateSelector(inference, settings.template_selection_max_tokens),
        model_configs=model_configs,
        settings=settings,
        id_factory=sequential_ids(),
    )


@pytest.fixture
def client(orchestrator, locator, registry, settings):
    """TestClient wired to the fake collaborators above."""

    from fastapi.testclient import TestClient

    from src.forge.api import dependencies as deps
    from src.forge.api.main import app
    from src.forge.core.config import get_settings
    from src.forge.services.connection_router import ConnectionRouter

    app.dependency_overrides[deps.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[deps.get_locator] = lambda: locator
    app.dependency_overrides[deps.get_connection_router] = lambda: ConnectionRouter(registry, locator)
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
