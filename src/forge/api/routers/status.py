from __future__ import annotations

from fastapi import APIRouter, Depends

from ...core.config import Settings, get_settings
from ...domain.agent_models import PlatformStatus

router = APIRouter(prefix="/api", tags=["status"])


@router.get("/status", response_model=PlatformStatus, response_model_by_alias=True)
def platform_status(settings: Settings = Depends(get_settings)):
    message = settings.global_user_message.strip()
    return PlatformStatus(
        global_user_message=message,
        change_logs=settings.change_logs,
        has_active_message=bool(message),
    )
