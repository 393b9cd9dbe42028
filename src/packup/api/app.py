# src/packup/api/app.py

"""
FastAPI application factory.

    uvicorn packup.api.app:create_app --factory

Every error leaves as `{"error": message}` with the status carried by the
PackupError subclass. Anything unexpected is logged and reported as
"internal error" unless expose_internal_errors is set.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..cli.bootstrap import create_initial_state
from ..core.state import AppState
from ..errors import PackupError
from .routes import admin_router, router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _internal(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
    state: AppState = request.app.state.packup
    if getattr(state.settings, "expose_internal_errors", False):
        return _error(500, str(exc))
    return _error(500, "internal error")


async def _packup_error(request: Request, exc: PackupError) -> JSONResponse:
    if exc.status_code >= 500:
        return _internal(request, exc)
    logger.debug("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
    return _error(exc.status_code, exc.message)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return _error(400, "invalid json")
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = str(first.get("msg", "invalid request"))
    return _error(400, f"{field}: {message}" if field else message)


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail).lower())


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    return _internal(request, exc)


def create_app(state: AppState | None = None) -> FastAPI:
    """Build the API around `state` (or a freshly bootstrapped one)."""
    if state is None:
        state = create_initial_state()

    app = FastAPI(title=str(getattr(state.settings, "app_name", "packup")))
    app.state.packup = state

    app.add_exception_handler(PackupError, _packup_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(Exception, _unhandled)

    app.include_router(router)
    app.include_router(admin_router)
    return app
