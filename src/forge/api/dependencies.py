from __future__ import annotations

"""Process-wide collaborators for the API layer.

Each getter builds its object on first use; tests swap them out with
``app.dependency_overrides`` or by calling :func:`reset_dependencies`.
"""

from typing import Optional

from ..agents.actor import CodeGenActor
from ..agents.locator import ActorLocator
from ..agents.orchestrator import AgentOrchestrator
from ..agents.template_selector import TemplateSelector
from ..core.config import Settings, get_settings
from ..domain.agent_models import Jurisdiction
from ..infrastructure.actor_registry import ActorRegistry
from ..infrastructure.model_config_store import get_model_config_store
from ..services.connection_router import ConnectionRouter
from ..services.inference import get_inference_client
from ..services.sandbox import SandboxService, build_sandbox_service

_sandbox: Optional[SandboxService] = None
_registry: Optional[ActorRegistry] = None
_locator: Optional[ActorLocator] = None
_orchestrator: Optional[AgentOrchestrator] = None
_router: Optional[ConnectionRouter] = None


def get_sandbox_service() -> SandboxService:
    global _sandbox
    if _sandbox is None:
        _sandbox = build_sandbox_service(get_settings())
    return _sandbox


def build_registry(settings: Settings, sandbox: SandboxService) -> ActorRegistry:
    def factory(agent_id: str, jurisdiction: Jurisdiction) -> CodeGenActor:
        return CodeGenActor(
            agent_id,
            jurisdiction,
            sandbox=sandbox,
            inference=get_inference_client(),
            settings=settings,
        )

    return ActorRegistry(settings.actor_namespace, factory)


def get_registry() -> ActorRegistry:
    global _registry
    if _registry is None:
        _registry = build_registry(get_settings(), get_sandbox_service())
    return _registry


def get_locator() -> ActorLocator:
    global _locator
    if _locator is None:
        settings = get_settings()
        _locator = ActorLocator(
            get_registry(),
            jurisdictions=settings.jurisdictions,
            location_hint=settings.location_hint,
        )
    return _locator


def get_orchestrator() -> AgentOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        settings = get_settings()
        _orchestrator = AgentOrchestrator(
            locator=get_locator(),
            sandbox=get_sandbox_service(),
            selector=TemplateSelector(get_inference_client(), settings.template_selection_max_tokens),
            model_configs=get_model_config_store(),
            settings=settings,
        )
    return _orchestrator


def get_connection_router() -> ConnectionRouter:
    global _router
    if _router is None:
        _router = ConnectionRouter(get_registry(), get_locator())
    return _router


def reset_dependencies() -> None:
    global _sandbox, _registry, _locator, _orchestrator, _router
    _sandbox = _registry = _locator = _orchestrator = _router = None
