"""
FastAPI application entry point for the artist management backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from artist_backend.config import get_settings
from artist_backend.dependencies import close_change_feed
from artist_backend.errors import ArtistBackendError, UpstreamError
from artist_backend.routes import (
    artists_router,
    maintenance_router,
    stream_router,
    users_router,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_change_feed()


async def handle_backend_error(request: Request, exc: ArtistBackendError):
    if isinstance(exc, UpstreamError):
        logger.error(
            "Upstream failure on %s %s: %s",
            request.method,
            request.url.path,
            exc.detail or exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


async def handle_request_validation(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())},
    )


async def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title="Artist Management API", version="0.1.0", lifespan=lifespan
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ArtistBackendError, handle_backend_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    app.include_router(artists_router, prefix=settings.api_prefix)
    app.include_router(users_router, prefix=settings.api_prefix)
    app.include_router(maintenance_router, prefix=settings.api_prefix)
    app.include_router(stream_router)

    @app.get("/")
    def root():
        return {"ok": True, "service": "artist-management"}

    return app


app = create_app()
