from __future__ import annotations

"""The code generation actor.

One ``CodeGenActor`` exists per (agent id, jurisdiction). It is the only
writer of its :class:`CodeGenState`; every mutation happens inside the
actor's mailbox lock, and callers only ever receive copies.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from ..core.config import Settings
from ..domain.agent_models import (
    AgentMode,
    AgentPreviewResponse,
    ClientReportedError,
    CodeGenState,
    DevState,
    GeneratedFile,
    InferenceContext,
    Jurisdiction,
    TemplateDetails,
    TemplateFile,
    TemplateSelection,
)
from ..services.inference import InferenceClient
from ..services.sandbox import SandboxService
from .blueprint import generate_blueprint
from .constants import WebSocketMessageRequests as Req
from .constants import WebSocketMessageResponses as Resp

logger = logging.getLogger("forge.actor")


@dataclass
class AgentInitArgs:
    query: str
    language: str
    frameworks: List[str]
    hostname: str
    inference_context: InferenceContext
    template_details: TemplateDetails
    selection: TemplateSelection
    sandbox_session_id: str
    on_blueprint_chunk: Callable[[str], Awaitable[None]]


class CodeGenActor:
    def __init__(
        self,
        agent_id: str,
        jurisdiction: Jurisdiction,
        *,
        sandbox: SandboxService,
        inference: InferenceClient,
        settings: Settings,
    ) -> None:
        self.agent_id = agent_id
        self.jurisdiction = jurisdiction
        self._sandbox = sandbox
        self._inference = inference
        self._settings = settings
        self._state: Optional[CodeGenState] = None
        self._mailbox = asyncio.Lock()
        self._connections: Set[WebSocket] = set()

    # ------------------------------------------------------------------
    # RPC surface
    # ------------------------------------------------------------------
    async def is_initialized(self) -> bool:
        return self._state is not None and bool(self._state.session_id)

    async def get_full_state(self) -> CodeGenState:
        if self._state is None:
            return CodeGenState()
        return self._state.model_copy(deep=True)

    async def set_state(self, state: CodeGenState) -> None:
        async with self._mailbox:
            self._state = state.model_copy(deep=True)

    async def initialize(self, args: AgentInitArgs, mode: AgentMode = AgentMode.DETERMINISTIC) -> CodeGenState:
        generation_id = uuid.uuid4().hex
        files = {
            f.file_path: GeneratedFile(file_path=f.file_path, file_contents=f.file_contents, purpose="template")
            for f in args.template_details.files
        }
        async with self._mailbox:
            self._state = CodeGenState(
                session_id=self.agent_id,
                query=args.query,
                language=args.language,
                frameworks=list(args.frameworks),
                hostname=args.hostname,
                agent_mode=mode,
                template_details=args.template_details,
                selection=args.selection,
                inference_context=args.inference_context,
                generated_files=files,
                sandbox_session_id=args.sandbox_session_id,
                current_dev_state=DevState.BLUEPRINT_GENERATING,
                generation_id=generation_id,
                should_be_generating=True,
            )
        await self._broadcast({"type": Resp.GENERATION_STARTED, "generationId": generation_id})

        async def forward(chunk: str) -> None:
            await args.on_blueprint_chunk(chunk)
            await self._broadcast({"type": Resp.BLUEPRINT_CHUNK, "chunk": chunk})

        try:
            blueprint = await generate_blueprint(
                self._inference,
                query=args.query,
                language=args.language,
                frameworks=list(args.frameworks),
                template=args.template_details,
                context=args.inference_context,
                on_chunk=forward,
                project_name=args.selection.project_name,
                max_tokens=self._settings.blueprint_max_tokens,
            )
        except Exception as exc:
            async with self._mailbox:
                self._finish_generation(generation_id)
            await self._broadcast({"type": Resp.ERROR, "error": f"Blueprint generation failed: {exc}"})
            raise

        async with self._mailbox:
            if self._state is not None and self._state.generation_id == generation_id:
                self._state.blueprint = blueprint
            self._finish_generation(generation_id)
            snapshot = self._state.model_copy(deep=True) if self._state else CodeGenState()
        await self._broadcast({"type": Resp.GENERATION_COMPLETE, "generationId": generation_id})
        return snapshot

    def _finish_generation(self, generation_id: str) -> None:
        if self._state is None or self._state.generation_id != generation_id:
            return
        self._state.generation_id = None
        self._state.should_be_generating = False
        self._state.current_dev_state = DevState.IDLE

    async def deploy_to_sandbox(self) -> Optional[AgentPreviewResponse]:
        state = self._state
        if state is None or not state.sandbox_session_id:
            logger.warning("Agent %s has no sandbox session to deploy to", self.agent_id)
            return None
        session = await self._sandbox.acquire_session(state.sandbox_session_id)
        files = [
            TemplateFile(file_path=f.file_path, file_contents=f.file_contents)
            for f in state.generated_files.values()
        ]
        result = await session.deploy(files)
        if not result.success or not result.run_id:
            logger.warning("Deployment for agent %s failed: %s", self.agent_id, result.error)
            return None
        async with self._mailbox:
            if self._state is not None:
                self._state.sandbox_instance_id = result.run_id
                self._state.preview_url = result.preview_url
        return AgentPreviewResponse(run_id=result.run_id, preview_url=result.preview_url, tunnel_url=result.tunnel_url)

    async def fetch(self, websocket: WebSocket, headers: Optional[Mapping[str, str]] = None) -> None:
        """Serve a client connection until it disconnects."""

        await websocket.accept()
        self._connections.add(websocket)
        logger.info(
            "Client connected to agent %s (room=%s)",
            self.agent_id,
            (headers or {}).get("room", self.agent_id),
        )
        try:
            await websocket.send_json({"type": Resp.AGENT_CONNECTED, "state": await self._state_payload()})
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    await websocket.send_json({"type": Resp.ERROR, "error": "Invalid JSON message"})
                    continue
                if not isinstance(message, dict):
                    await websocket.send_json({"type": Resp.ERROR, "error": "Message must be a JSON object"})
                    continue
                await websocket.send_json(await self._handle_message(message))
        except WebSocketDisconnect:
            logger.info("Client disconnected from agent %s", self.agent_id)
        finally:
            self._connections.discard(websocket)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _state_payload(self) -> Dict[str, Any]:
        state = await self.get_full_state()
        return state.model_dump(mode="json", by_alias=True)

    async def _handle_message(self, message: Dict[str, Any]) -> Dict[str, Any]:
        kind = message.get("type")
        if kind == Req.GET_STATE:
            return {"type": Resp.AGENT_STATE, "state": await self._state_payload()}
        if kind == Req.USER_SUGGESTION:
            text = str(message.get("message") or "").strip()
            if not text:
                return {"type": Resp.ERROR, "error": "Empty suggestion"}
            async with self._mailbox:
                if self._state is None:
                    return {"type": Resp.ERROR, "error": "Agent not initialized"}
                self._state.pending_user_inputs.append(text)
                pending = len(self._state.pending_user_inputs)
            return {"type": Resp.USER_SUGGESTION_QUEUED, "pending": pending}
        if kind == Req.CLIENT_ERROR:
            async with self._mailbox:
                if self._state is None:
                    return {"type": Resp.ERROR, "error": "Agent not initialized"}
                self._state.client_reported_errors.append(
                    ClientReportedError(
                        message=str(message.get("message") or "Unknown client error"),
                        stack=message.get("stack"),
                        url=message.get("url"),
                    )
                )
                count = len(self._state.client_reported_errors)
            return {"type": Resp.CLIENT_ERROR_RECORDED, "count": count}
        if kind == Req.PREVIEW:
            preview = await self.deploy_to_sandbox()
            if preview is None:
                return {"type": Resp.ERROR, "error": "Failed to deploy preview"}
            return {"type": Resp.DEPLOYMENT_COMPLETED, "preview": preview.model_dump(by_alias=True)}
        return {"type": Resp.ERROR, "error": f"Unknown message type: {kind}"}

    async def _broadcast(self, message: Dict[str, Any]) -> None:
        for connection in list(self._connections):
            try:
                await connection.send_json(message)
            except Exception:
                logger.info("Dropping closed connection on agent %s", self.agent_id)
                self._connections.discard(connection)
