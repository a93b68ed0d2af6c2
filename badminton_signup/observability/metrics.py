from __future__ import annotations
import time
from fastapi import Response, Request
from prometheus_client import (
    Counter, Histogram, CollectorRegistry,
    CONTENT_TYPE_LATEST, generate_latest
)
from ..config import get_settings

S = get_settings()

REGISTRY = CollectorRegistry(auto_describe=True)

# ---------- HTTP ----------
HTTP_REQS = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"], registry=REGISTRY)
HTTP_LATENCY = Histogram(
    "http_request_duration_seconds", "HTTP request latency", ["method", "path"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

# ---------- roster ----------
SIGNUPS       = Counter("roster_signups_total",       "Sign-ups by landing list",   ["list"], registry=REGISTRY)
CANCELED      = Counter("roster_canceled_total",      "Registrants removed",        ["list", "by"], registry=REGISTRY)
PROMOTED      = Counter("roster_promoted_total",      "Waitlist promotions",        ["reason"], registry=REGISTRY)
AUTH_FAILURES = Counter("roster_auth_failures_total", "Cancel code mismatches",      registry=REGISTRY)

# ---------- sessions ----------
SESSIONS_ARCHIVED = Counter("sessions_archived_total", "Sessions archived by rollover", registry=REGISTRY)
SESSIONS_CREATED  = Counter("sessions_created_total",  "Sessions created",             ["source"], registry=REGISTRY)

# not counted in HTTP metrics
_UNTRACKED = ("/metrics", "/health")


def metrics_app():
    async def _metrics(_: Request):
        if not S.METRICS_ENABLED:
            return Response(status_code=404)
        return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
    return _metrics


class MetricsHTTPMiddleware:
    """Pure ASGI middleware; labels use the matched route template, never raw ids."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"].startswith(_UNTRACKED):
            await self.app(scope, receive, send)
            return
        method = scope["method"]
        started = time.perf_counter()

        async def record(message):
            if message["type"] == "http.response.start":
                route = scope.get("route")
                path = getattr(route, "path", None) or "unmatched"
                HTTP_REQS.labels(method=method, path=path, status=str(message["status"])).inc()
                HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - started)
            await send(message)

        await self.app(scope, receive, record)
