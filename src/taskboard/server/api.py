"""FastAPI application for the taskboard REST surface."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import resolve_state_dir
from ..errors import TaskboardError
from ..service import TaskboardServices
from .board_api import create_board_router
from .collaboration_api import create_collaboration_router
from .task_api import create_task_router


def _error_body(code: str, message: str, details: Optional[Any] = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "message": message, "error": error}


def create_app(
    state_dir: Optional[Path] = None,
    services: Optional[TaskboardServices] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        state_dir: The ``.taskboard`` directory; resolved from the
            environment or the working directory when omitted.
        services: Pre-built services (tests inject their own).
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    app = FastAPI(
        title="Taskboard",
        description="Collaborative task boards with ordered columns and task history",
        version="1.0.0",
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.services = services or TaskboardServices(state_dir or resolve_state_dir())

    def _get_services() -> TaskboardServices:
        return app.state.services

    # ------------------------------------------------------------------
    # Error envelope
    # ------------------------------------------------------------------

    @app.exception_handler(TaskboardError)
    async def taskboard_error(request: Request, exc: TaskboardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("{} {} failed: {} ({})", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_body("VALIDATION_FAILED", "Request validation failed", {"errors": errors}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
        return JSONResponse(status_code=exc.status_code, content=_error_body(code, str(exc.detail)))

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on {} {}", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_error_body("INTERNAL_ERROR", "Internal server error"))

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {"success": True, "data": {"name": "taskboard", "version": app.version}}

    app.include_router(create_board_router(_get_services))
    app.include_router(create_task_router(_get_services))
    app.include_router(create_collaboration_router(_get_services))

    return app
