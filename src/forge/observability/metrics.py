from __future__ import annotations

"""Prometheus metrics for the Forge API.

Adds an HTTP middleware that records request latency per method/route/status
and exposes counters for the agent lifecycle.
"""

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

REQUEST_LATENCY = Histogram(
    "forge_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

GENERATIONS_STARTED = Counter(
    "forge_generations_started_total",
    "Code generation sessions handed to a new agent",
)

GENERATIONS_FAILED = Counter(
    "forge_generations_failed_total",
    "Agent initializations that ended with an error event",
)

AGENTS_CLONED = Counter(
    "forge_agents_cloned_total",
    "Agents created by cloning an existing agent's state",
)

SELECTION_FALLBACKS = Counter(
    "forge_template_selection_fallbacks_total",
    "Template selections that fell back to the empty result",
    labelnames=("reason",),
)


def sanitize_path(path: str) -> str:
    """Collapse agent ids out of the path to keep label cardinality low.

    ``/api/agent/<id>/ws`` becomes ``/api/agent/:id/ws``; other paths keep
    their first two segments.
    """
    if not path:
        return "/"
    segs = [s for s in path.split("?")[0].split("/") if s]
    if not segs:
        return "/"
    if len(segs) >= 3 and segs[0] == "api" and segs[1] == "agent":
        tail = "/".join(segs[3:])
        return "/api/agent/:id" + (f"/{tail}" if tail else "")
    return "/" + "/".join(segs[:2])


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(elapsed)
        return response

    return middleware
