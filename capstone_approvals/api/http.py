"""HTTP API for the Capstone Approvals service.

Builds the FastAPI application: approval request routes, correlation id
propagation, health and Prometheus metrics endpoints, and a uniform
``{"message": ...}`` error body.
"""

import logging
from collections.abc import Mapping
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from capstone_approvals import __version__
from capstone_approvals.api.approvals import router as approvals_router
from capstone_approvals.config import Settings
from capstone_approvals.domain.services.actions import ActionRunner, ApprovalAction
from capstone_approvals.infra.observability import get_metrics_text
from capstone_approvals.infra.observability.logging import get_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)


def _validation_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by field name."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [
            str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")
        ]
        field = ".".join(location) or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value."))
    return errors


def create_http_app(
    settings: Settings,
    actions: Mapping[str, str | ApprovalAction] | None = None,
) -> FastAPI:
    """Create FastAPI application for HTTP API.

    Args:
        settings: Application settings
        actions: Extra resolution handlers, by action key, registered on top of
            ``settings.approval_actions`` (a key present in both is replaced)

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Capstone Approvals Service",
        description="Multi-approver decision workflow for approval requests",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    action_runner = ActionRunner(settings.approval_actions)
    for action_key, handler in (actions or {}).items():
        action_runner.register(action_key, handler)
    app.state.action_runner = action_runner

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware for correlation ID
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next: Any) -> Any:
        """Add correlation ID to request context."""
        correlation_id = request.headers.get("X-Correlation-ID", get_correlation_id())
        set_correlation_id(correlation_id)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Render HTTP errors as ``{"message": ...}``."""
        body = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Render payload validation failures with field-level detail."""
        return JSONResponse(
            status_code=422,
            content=jsonable_encoder(
                {"message": "The given data was invalid.", "errors": _validation_errors(exc)}
            ),
        )

    # Health check endpoint
    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint.

        Returns:
            Service health status
        """
        return {
            "status": "healthy",
            "environment": settings.environment,
            "version": __version__,
        }

    # Metrics endpoint (Prometheus format)
    @app.get("/metrics")
    async def metrics() -> PlainTextResponse:
        """Prometheus metrics endpoint.

        Returns:
            Metrics in Prometheus text format
        """
        return PlainTextResponse(get_metrics_text())

    app.include_router(approvals_router, prefix=settings.api_prefix)

    return app


__all__ = ["create_http_app"]
