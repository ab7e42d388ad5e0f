"""
Feedback Bridge API

Thin FastAPI backend that files user feedback as OpenProject work packages.
"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import feedback_api.services.http_client as http_client
from feedback_api.config import get_settings
from feedback_api.middleware import RequestIDMiddleware
from feedback_api.routers import feedback
from feedback_api.services.work_packages import get_work_package_service

logger = logging.getLogger(__name__)

settings = get_settings()

VERSION = "0.1.0"

# Health check cache: (result_dict, timestamp)
_health_cache: tuple[dict[str, Any], float] | None = None
_HEALTH_CACHE_TTL = 30  # seconds


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: close the shared OpenProject client on shutdown."""
    yield
    if http_client._client is not None:
        await http_client._client.aclose()
        http_client._client = None


app = FastAPI(
    title="Feedback Bridge API",
    description="Files end-user feedback as OpenProject work packages",
    version=VERSION,
    lifespan=lifespan,
)

# Request ID
app.add_middleware(RequestIDMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routers
app.include_router(feedback.router, prefix=settings.feedback_route_prefix)


async def _run_health_checks() -> dict[str, Any]:
    """Run all health checks, returning the full response body."""
    global _health_cache
    now = time.time()
    if _health_cache is not None:
        cached_result, cached_at = _health_cache
        if now - cached_at < _HEALTH_CACHE_TTL:
            return cached_result

    service = get_work_package_service()
    config_status = "ok" if service.is_configured() else "fail"
    if config_status == "ok":
        probe = await service.test_connection()
        remote_status = "ok" if probe.success else "fail"
    else:
        remote_status = "skipped"

    checks = {"config": config_status, "openproject": remote_status}
    failed = [k for k, v in checks.items() if v != "ok"]

    if failed:
        overall = "degraded"
        logger.warning("Health check degraded, failed: %s", ", ".join(failed))
    else:
        overall = "ok"

    result: dict[str, Any] = {
        "status": overall,
        "service": "feedback-bridge-api",
        "version": VERSION,
        "checks": checks,
    }
    _health_cache = (result, now)
    return result


@app.get("/api/health")
async def health_check() -> JSONResponse:
    """Health check verifying configuration and OpenProject reachability."""
    result = await _run_health_checks()
    # An unreachable OpenProject means submissions cannot be filed
    status_code = 503 if result["checks"]["openproject"] == "fail" else 200
    return JSONResponse(content=result, status_code=status_code)
