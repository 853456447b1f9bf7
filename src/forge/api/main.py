from __future__ import annotations

from datetime import UTC, datetime
from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .routers.agent import router as agent_router
from .routers.status import router as status_router
from ..core.config import get_settings
from ..domain.errors import OrchestratorError
from ..observability.metrics import metrics_middleware_factory
from ..observability.structured import get_logger
from ..security.rate_limit import RateLimitExceeded

load_dotenv()  # Provider keys and FORGE_* settings from .env if present

app = FastAPI(title="Forge Orchestrator API", version="0.1.0")
log = get_logger("api")

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

app.include_router(agent_router)
app.include_router(status_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrchestratorError)
async def orchestrator_error_handler(request: Request, exc: OrchestratorError) -> JSONResponse:
    log.error("Request failed", extra={"path": request.url.path, "status": exc.status_code, "error": exc.message})
    headers = None
    if isinstance(exc, RateLimitExceeded):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.get("/")
def root():
    return {"name": "Forge Orchestrator API", "version": "0.1.0"}


@app.get("/health")
def health():
    settings = get_settings()
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "actors": "in-process",
            "sandbox": "configured" if settings.sandbox_url else "unconfigured",
        },
    }


@app.get("/metrics")
def metrics() -> Response:
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
