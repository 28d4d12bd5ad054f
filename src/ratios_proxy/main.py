# src/ratios_proxy/main.py
# Copyright (c) Ratios.
# SPDX-License-Identifier: MIT
"""
Application Entry (Adapters Bootstrap)

Synopsis:
    FastAPI bootstrap that wires middleware, exception handlers and routers.
    Provides an application factory (`create_app`) and a module-level eager
    app (`app`) for ASGI servers and tooling.

Design:
    • Bootstrap only (no business logic): routers + middleware + handlers.
    • Lifespan opens the proxy context (cache, HTTP client, in-flight
      registry) and tears it down after pending refreshes drain.
    • Every response, including framework and unhandled errors, carries the
      CORS headers.
    • Root JSON logging configured at import time.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.responses import Response as StarletteResponse

from ratios_proxy.adapters.presenters.proxy_presenter import ProxyPresenter, cors_headers
from ratios_proxy.adapters.routers.alpha_router import router as alpha_router
from ratios_proxy.adapters.routers.health_router import router as health_router
from ratios_proxy.adapters.routers.metrics_router import router as metrics_router
from ratios_proxy.adapters.schemas.proxy import ProxyErrorBody
from ratios_proxy.config.settings import Settings, get_settings
from ratios_proxy.dependencies.proxy import open_proxy_context
from ratios_proxy.infrastructure.logging.logger import (
    configure_root_logging,
    get_json_logger,
)
from ratios_proxy.infrastructure.middleware.request_id import RequestIdMiddleware

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
configure_root_logging()
logger = get_json_logger(__name__)


def _stable_operation_id(route: APIRoute) -> str:
    """Deterministic operationId, e.g. ``get__api_alpha``."""
    methods = ",".join(sorted(route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "")
    return f"{methods.lower()}_{path.lower()}"


@asynccontextmanager
async def runtime_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the proxy context for the lifetime of the app.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to FastAPI to serve requests.
    """
    settings: Settings = app.state.settings
    async with open_proxy_context(settings) as ctx:
        app.state.proxy_context = ctx
        try:
            yield
        finally:
            app.state.proxy_context = None


def _origin(request: Request) -> str:
    settings: Settings | None = getattr(request.app.state, "settings", None)
    return settings.cors_allow_origin if settings is not None else "*"


def _patch_exception_handlers(app: FastAPI) -> None:
    """Install handlers that keep the error body shape and CORS headers."""

    async def _http_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        if not isinstance(exc, StarletteHTTPException):
            raise exc
        body = ProxyErrorBody(error="HTTP error", detail=str(exc.detail), kind="http_error")
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(),
            headers={**(exc.headers or {}), **cors_headers(_origin(request))},
        )

    async def _unhandled_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        logger.exception(
            "unhandled_exception",
            extra={"extra": {"path": request.url.path, "error": type(exc).__name__}},
        )
        return ProxyPresenter(_origin(request)).present_unhandled()

    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------
def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Explicit settings; resolved from the environment if omitted.

    Returns:
        FastAPI: Fully configured application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Ratios Proxy",
        version=settings.service_version,
        description="Caching proxy for Alpha Vantage financial statements.",
        lifespan=runtime_lifespan,
        generate_unique_id_function=_stable_operation_id,
    )
    app.state.settings = settings
    app.state.proxy_context = None

    _patch_exception_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(alpha_router)
    app.include_router(health_router)
    app.include_router(metrics_router)

    logger.info(
        "service_startup",
        extra={
            "extra": {
                "env": settings.environment.value,
                "version": settings.service_version,
                "cache_generation": settings.cache_generation,
            }
        },
    )
    return app


# Eager app for ASGI servers (``uvicorn ratios_proxy.main:app``).
app: FastAPI = create_app()


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(
        "ratios_proxy.main:create_app",
        factory=True,
        host="127.0.0.1",
        port=int(os.getenv("PORT", "8080")),
    )
