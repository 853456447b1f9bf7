from __future__ import annotations

"""Agent lifecycle: create, clone, resolve a template, start generation."""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Set, Tuple
from urllib.parse import urlsplit

from ..core.config import Settings
from ..domain.agent_models import (
    DEFAULT_FRAMEWORKS,
    DEFAULT_LANGUAGE,
    AgentMode,
    CodeGenArgs,
    CodeGenState,
    DevState,
    InferenceContext,
    TemplateDetails,
    TemplateSelection,
)
from ..domain.errors import (
    AgentNotFound,
    OrchestratorError,
    SecurityError,
    TemplateFetchFailure,
    TemplateSelectionRejected,
)
from ..infrastructure.actor_registry import ActorHandle
from ..infrastructure.model_config_store import InMemoryModelConfigStore, user_overrides
from ..observability.metrics import AGENTS_CLONED, GENERATIONS_FAILED, GENERATIONS_STARTED
from ..observability.structured import StructuredLogger, get_logger
from ..security.auth import User
from ..security.rate_limit import RateLimitExceeded, enforce_app_creation_limit
from ..services.sandbox import SandboxService
from ..services.streaming import TERMINATE, EventStream
from .actor import AgentInitArgs
from .locator import ActorLocator
from .template_selector import TemplateSelector


def generate_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TemplateResolution:
    sandbox_session_id: str
    template_details: TemplateDetails
    selection: TemplateSelection


@dataclass
class AgentUrls:
    websocket_url: str
    http_status_url: str


@dataclass
class GenerationSession:
    agent_id: str
    stream: EventStream
    initial_response: Dict[str, Any]
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)


def agent_urls(request_url: str, agent_id: str) -> AgentUrls:
    parts = urlsplit(request_url)
    ws_scheme = "wss" if parts.scheme == "https" else "ws"
    return AgentUrls(
        websocket_url=f"{ws_scheme}://{parts.netloc}/api/agent/{agent_id}/ws",
        http_status_url=f"{parts.scheme}://{parts.netloc}/api/agent/{agent_id}",
    )


def preview_hostname(request_url: str, preview_domain: str) -> str:
    parts = urlsplit(request_url)
    if parts.hostname == "localhost":
        return f"localhost:{parts.port}" if parts.port else "localhost"
    return preview_domain


class AgentOrchestrator:
    def __init__(
        self,
        *,
        locator: ActorLocator,
        sandbox: SandboxService,
        selector: TemplateSelector,
        model_configs: InMemoryModelConfigStore,
        settings: Settings,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self._locator = locator
        self._sandbox = sandbox
        self._selector = selector
        self._model_configs = model_configs
        self._settings = settings
        self._id_factory = id_factory
        self._background: Set["asyncio.Task[None]"] = set()

    # ------------------------------------------------------------------
    # Actor lifecycle
    # ------------------------------------------------------------------
    async def create_agent(self, agent_id: str, logger: Optional[StructuredLogger] = None) -> ActorHandle:
        """New ids always live in the default jurisdiction; no search needed."""

        lookup = await self._locator.locate(agent_id, False, logger)
        return lookup.require()

    async def find_agent(self, agent_id: str, logger: Optional[StructuredLogger] = None) -> ActorHandle:
        """Locate an existing, initialized agent in any jurisdiction."""

        lookup = await self._locator.locate(agent_id, True, logger)
        return lookup.require()

    async def get_agent_state(self, agent_id: str, logger: Optional[StructuredLogger] = None) -> CodeGenState:
        handle = await self.find_agent(agent_id, logger)
        return await handle.get_full_state()

    async def clone_agent(self, source_id: str, logger: Optional[StructuredLogger] = None) -> Tuple[str, ActorHandle]:
        log = (logger or get_logger("orchestrator")).bind(source_agent_id=source_id)
        lookup = await self._locator.locate(source_id, True, log)
        if not lookup.found or not await lookup.require().is_initialized():
            raise AgentNotFound(source_id)
        source = lookup.require()

        new_id = self._id_factory()
        new_agent = await self.create_agent(new_id, log)
        original = await source.get_full_state()
        # Runtime state bound to the source's sandbox session is not carried over.
        new_state = original.model_copy(
            deep=True,
            update={
                "session_id": new_id,
                "sandbox_instance_id": None,
                "preview_url": None,
                "pending_user_inputs": [],
                "current_dev_state": DevState.IDLE,
                "generation_id": None,
                "should_be_generating": False,
                "client_reported_errors": [],
            },
        )
        await new_agent.set_state(new_state)
        AGENTS_CLONED.inc()
        log.info("Agent cloned", extra={"agent_id": new_id})
        return new_id, new_agent

    # ------------------------------------------------------------------
    # Template resolution
    # ------------------------------------------------------------------
    async def resolve_template(
        self,
        query: str,
        inference_context: InferenceContext,
        logger: Optional[StructuredLogger] = None,
    ) -> TemplateResolution:
        log = (logger or get_logger("orchestrator")).bind(agent_id=inference_context.agent_id)
        listing = await self._sandbox.list_templates()
        log.info("Templates response received", extra={"success": listing.success, "count": len(listing.templates)})
        if not listing.success:
            raise TemplateFetchFailure(
                f"Failed to fetch templates from sandbox service: {listing.error or 'Unknown error'}"
            )

        sandbox_session_id = self._id_factory()
        selection, session = await asyncio.gather(
            self._selector.select(query, listing.templates, inference_context, log),
            self._sandbox.acquire_session(sandbox_session_id),
        )

        if not selection.selected_template_name:
            log.error("No suitable template found", extra={"reasoning": selection.reasoning})
            raise TemplateSelectionRejected("No suitable template found for code generation")

        chosen = next((t for t in listing.templates if t.name == selection.selected_template_name), None)
        if chosen is None:
            log.error(
                "Selected template not offered",
                extra={"selected": selection.selected_template_name, "available": [t.name for t in listing.templates]},
            )
            raise TemplateSelectionRejected(
                f"Selected template '{selection.selected_template_name}' not found in available templates"
            )

        details = await session.get_template_details(chosen.name)
        if not details.success or details.template_details is None:
            raise TemplateFetchFailure(f"Failed to fetch template details: {details.error or 'Unknown error'}")

        log.info(
            "Template resolved",
            extra={"template": chosen.name, "files": len(details.template_details.files), "sandbox_session_id": sandbox_session_id},
        )
        return TemplateResolution(sandbox_session_id, details.template_details, selection)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def start_generation(
        self,
        args: CodeGenArgs,
        *,
        request_url: str,
        user: Optional[User] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> GenerationSession:
        """Create an agent and launch its initialization in the background.

        Returns once the initial event is queued; the caller streams the
        session's events while the agent keeps running.
        """
        query = args.query or ""
        agent_id = self._id_factory()
        log = (logger or get_logger("orchestrator")).bind(agent_id=agent_id, user_id=user.id if user else "anonymous")

        if user is not None:
            enforce_app_creation_limit(self._settings, user.id)
        else:
            log.info("Anonymous user - skipping rate limiting")

        try:
            records, handle = await asyncio.gather(
                self._model_configs.get_user_model_configs(user.id) if user else _empty_configs(),
                self.create_agent(agent_id, log),
            )
        except Exception as exc:
            log.error("Failed to initialize agent", extra={"error": str(exc)})
            raise OrchestratorError(f"Failed to initialize agent: {exc}", 500) from exc

        inference_context = InferenceContext(
            user_model_configs=user_overrides(records),
            agent_id=agent_id,
            user_id=user.id if user else "anonymous",
            enable_realtime_code_fix=True,
        )

        try:
            resolution = await self.resolve_template(query, inference_context, log)
        except (RateLimitExceeded, SecurityError):
            raise
        except Exception as exc:
            log.error("Error getting template for query", extra={"error": str(exc)})
            raise OrchestratorError(f"Failed to get template for query: {exc}", 500) from exc

        urls = agent_urls(request_url, agent_id)
        details = resolution.template_details
        initial_response = {
            "message": "Code generation started",
            "agentId": agent_id,
            "websocketUrl": urls.websocket_url,
            "httpStatusUrl": urls.http_status_url,
            "template": {
                "name": details.name,
                "files": [f.model_dump(by_alias=True) for f in details.files],
            },
        }

        stream = EventStream(maxsize=self._settings.stream_buffer)
        await stream.write(initial_response)

        async def on_blueprint_chunk(chunk: str) -> None:
            await stream.write({"chunk": chunk})

        init_args = AgentInitArgs(
            query=query,
            language=args.language or DEFAULT_LANGUAGE,
            frameworks=list(args.frameworks or DEFAULT_FRAMEWORKS),
            hostname=preview_hostname(request_url, self._settings.preview_domain),
            inference_context=inference_context,
            template_details=details,
            selection=resolution.selection,
            sandbox_session_id=resolution.sandbox_session_id,
            on_blueprint_chunk=on_blueprint_chunk,
        )
        mode = args.agent_mode or AgentMode.DETERMINISTIC
        task = asyncio.create_task(self._run_initialization(handle, init_args, mode, stream, log))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        GENERATIONS_STARTED.inc()
        log.info("Agent initialization launched", extra={"mode": mode.value, "template": details.name})
        return GenerationSession(agent_id=agent_id, stream=stream, initial_response=initial_response, task=task)

    async def _run_initialization(
        self,
        handle: ActorHandle,
        init_args: AgentInitArgs,
        mode: AgentMode,
        stream: EventStream,
        log: StructuredLogger,
    ) -> None:
        try:
            await handle.initialize(init_args, mode)
        except Exception as exc:
            GENERATIONS_FAILED.inc()
            log.error("Agent initialization failed", extra={"error": str(exc)})
            await stream.fail(f"Agent initialization failed: {exc}")
            return
        log.info("Agent completed successfully")
        await stream.write(TERMINATE)


async def _empty_configs() -> Dict[str, Any]:
    return {}
