"""FastAPI application — entry point, middleware, and health endpoint.

Creates the game progress API with:
- API versioning via router prefix (/api/v1/)
- CORS middleware (origins from settings)
- Request logging middleware (raw ASGI — no response body buffering)
- Global exception handlers (HTTPException, validation, game data,
  store outages, catch-all)
- Health endpoint

Run with: uvicorn gameprogress.main:app --reload

Tier 3 orchestration module: imports from config (Tier 2), api/* (Tier 3),
schemas and errors (Tier 1).
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gameprogress.config import get_settings
from gameprogress.errors import TransientStoreError, ValidationError
from gameprogress.schemas import ApiError, ApiResponse

logger = logging.getLogger("gameprogress")


# ---------------------------------------------------------------------------
# Request logging middleware (raw ASGI)
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware:
    """Logs method, path, status code, and duration for every request.

    Uses raw ASGI to avoid response body buffering. Does NOT log
    request/response bodies, query params, or auth headers.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Wraps the ASGI call to measure timing and capture status code."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "?")
        path = scope.get("path", "?")
        start = time.monotonic()
        status_code = 0

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, receive, logging_send)
        finally:
            duration_ms = (time.monotonic() - start) * 1000
            logger.info("%s %s %d %.1fms", method, path, status_code, duration_ms)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _envelope(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(ok=False, error=ApiError(code=code, message=message)).model_dump(),
    )


def _http_exception_response(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wraps HTTPException in ApiResponse envelope.

    If the detail is already an ApiResponse dict (from route helpers),
    returns it directly. Otherwise wraps in a generic error.
    """
    if isinstance(exc.detail, dict) and "ok" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return _envelope(exc.status_code, "HTTP_ERROR", str(exc.detail))


def _validation_error_response(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Wraps request validation errors in ApiResponse envelope.

    Returns a human-readable summary of the first error.
    """
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = " -> ".join(str(part) for part in first.get("loc", []))
        msg = first.get("msg", "Validation error")
        detail = f"{loc}: {msg}" if loc else msg
    else:
        detail = "Request validation failed."
    return _envelope(422, "VALIDATION_ERROR", detail)


def _game_data_error_response(request: Request, exc: ValidationError) -> JSONResponse:
    """Malformed board content, snapshot, or attempt — the caller's fault."""
    return _envelope(422, "INVALID_GAME_DATA", str(exc))


def _store_unavailable_response(request: Request, exc: TransientStoreError) -> JSONResponse:
    """Progress store still failing after retries."""
    logger.warning("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return _envelope(503, "STORE_UNAVAILABLE", "Progress storage is temporarily unavailable.")


def _unhandled_exception_response(request: Request, exc: Exception) -> JSONResponse:
    """Catches all unhandled exceptions — never leaks internals to client.

    Logs the full traceback server-side. Returns a generic 500 response.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "INTERNAL_ERROR", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# App creation
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Creates and configures the FastAPI application."""
    settings = get_settings()

    # Configure logging level
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    application = FastAPI(
        title="Game Progress",
        description="Progress persistence and leaderboard reconciliation for learning games",
        version="0.1.0",
    )

    # -- Middleware (order matters: last added = first executed) --

    # CORS must be outermost to handle preflight before auth
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging, raw ASGI
    application.add_middleware(RequestLoggingMiddleware)

    # -- Exception handlers --
    application.add_exception_handler(StarletteHTTPException, _http_exception_response)
    application.add_exception_handler(RequestValidationError, _validation_error_response)
    application.add_exception_handler(ValidationError, _game_data_error_response)
    application.add_exception_handler(TransientStoreError, _store_unavailable_response)
    application.add_exception_handler(Exception, _unhandled_exception_response)

    # -- Routers --
    _register_routes(application)

    logger.info("Game progress API ready (env=%s)", settings.app_env)
    return application


def _register_routes(application: FastAPI) -> None:
    """Registers all API routers on the application."""
    v1 = APIRouter(prefix="/api/v1")

    @v1.get("/health")
    async def health() -> dict[str, Any]:
        return ApiResponse(ok=True, data={"status": "healthy"}).model_dump()

    # Sub-routers (BEFORE including v1 into the app):
    from gameprogress.api.progress import leaderboard_router, router as progress_router

    v1.include_router(progress_router, prefix="/progress", tags=["progress"])
    v1.include_router(leaderboard_router, prefix="/leaderboard", tags=["leaderboard"])

    from gameprogress.api.bingo import router as bingo_router

    v1.include_router(bingo_router, prefix="/bingo", tags=["bingo"])

    application.include_router(v1)


app = create_app()
