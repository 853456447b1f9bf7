from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, status
from pydantic import ValidationError

from ...agents.locator import ActorLocator
from ...agents.orchestrator import AgentOrchestrator, agent_urls
from ...core.config import Settings, get_settings
from ...domain.agent_models import AgentCloneResponse, AgentConnectionData, CodeGenArgs
from ...observability.structured import get_logger
from ...security.auth import User, get_optional_user
from ...security.websocket import validate_websocket_origin
from ...services.connection_router import ConnectionRouter
from ...services.streaming import ndjson_response
from ..dependencies import get_connection_router, get_locator, get_orchestrator

router = APIRouter(prefix="/api/agent", tags=["agent"])


async def _parse_codegen_args(request: Request) -> CodeGenArgs:
    raw = await request.body()
    try:
        body = json.loads(raw or b"null")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON in request body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON in request body")
    if not body.get("query"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Missing "query" field in request body')
    try:
        return CodeGenArgs.model_validate(body)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid request body: {exc.errors()[0]['msg']}")


@router.post("")
async def start_code_generation(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
):
    """Start a generation and stream its progress as newline-delimited JSON."""

    log = get_logger("api.agent", path=request.url.path)
    args = await _parse_codegen_args(request)
    session = await orchestrator.start_generation(args, request_url=str(request.url), user=user, logger=log)
    return ndjson_response(session.stream)


@router.get("/{agent_id}/ws")
def websocket_upgrade_required(agent_id: str):
    raise HTTPException(status_code=status.HTTP_426_UPGRADE_REQUIRED, detail="Expected WebSocket upgrade")


@router.websocket("/{agent_id}/ws")
async def agent_websocket(
    websocket: WebSocket,
    agent_id: str,
    connections: ConnectionRouter = Depends(get_connection_router),
    settings: Settings = Depends(get_settings),
):
    log = get_logger("api.websocket", agent_id=agent_id)
    origin = websocket.headers.get("origin")
    if not validate_websocket_origin(origin, settings.allowed_origins):
        log.warning("WebSocket connection rejected due to invalid origin", extra={"origin": origin})
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await connections.connect(websocket, agent_id, log)


@router.get("/{agent_id}/connect", response_model=AgentConnectionData, response_model_by_alias=True)
async def connect_to_existing_agent(
    agent_id: str,
    request: Request,
    locator: ActorLocator = Depends(get_locator),
):
    lookup = await locator.locate(agent_id, True, get_logger("api.agent", agent_id=agent_id))
    if not lookup.found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent instance not found or not initialized")
    urls = agent_urls(str(request.url), agent_id)
    return AgentConnectionData(websocket_url=urls.websocket_url, agent_id=agent_id)


@router.get("/{agent_id}/preview")
async def deploy_preview(agent_id: str, locator: ActorLocator = Depends(get_locator)):
    log = get_logger("api.agent", agent_id=agent_id)
    lookup = await locator.locate(agent_id, True, log)
    if not lookup.found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agent instance not found or not initialized")
    preview = await lookup.require().deploy_to_sandbox()
    if preview is None:
        log.error("Preview deployment failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to deploy preview")
    return preview.model_dump(by_alias=True)


@router.get("/{agent_id}")
async def get_agent_state(agent_id: str, orchestrator: AgentOrchestrator = Depends(get_orchestrator)):
    state = await orchestrator.get_agent_state(agent_id, get_logger("api.agent", agent_id=agent_id))
    return state.model_dump(mode="json", by_alias=True)


@router.post("/{agent_id}/clone", response_model=AgentCloneResponse, response_model_by_alias=True)
async def clone_agent(
    agent_id: str,
    request: Request,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
):
    new_id, _ = await orchestrator.clone_agent(agent_id, get_logger("api.agent", agent_id=agent_id))
    urls = agent_urls(str(request.url), new_id)
    return AgentCloneResponse(
        agent_id=new_id,
        source_agent_id=agent_id,
        websocket_url=urls.websocket_url,
        http_status_url=urls.http_status_url,
    )
