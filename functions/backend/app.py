"""
FastAPI application entry point for the board backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import get_settings
from backend.db import RepositoryError
from backend.routes import router

logger = logging.getLogger(__name__)


def _operation_name(request: Request) -> str:
    # Route endpoints are named after the operation, e.g. `create_note`.
    route = request.scope.get("route")
    name = getattr(route, "name", None)
    return name.replace("_", " ") if name else "process request"


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    operation = _operation_name(request)
    logger.exception("Repository error during %s", operation, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": f"Failed to {operation}"})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Pinboard Backend", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RepositoryError, repository_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
