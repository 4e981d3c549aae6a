"""FastAPI application factory."""
from __future__ import annotations

from typing import List

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from pushadmin.api.v1 import api_router
from pushadmin.config import settings
from pushadmin.services.runtime import get_push_sender as build_push_sender
from pushadmin.utils.exceptions import PushAdminException, to_http_exception


tags_metadata: List[dict[str, str]] = [
    {"name": "subscriptions", "description": "Register browser push subscriptions."},
    {"name": "step-sequences", "description": "Manage drip sequences and inspect progress."},
    {"name": "notifications", "description": "Schedule and send one-shot broadcasts."},
    {"name": "segments", "description": "Save and preview user filters."},
    {"name": "tracking", "description": "Record delivery and engagement events."},
    {"name": "cron", "description": "Scheduler triggers guarded by the cron secret."},
]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Multi-tenant web push administration and step sequences.",
        version="0.1.0",
        openapi_tags=tags_metadata,
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc",
    )

    # one sender per process; routes read it from app.state
    try:
        app.state.push_sender = build_push_sender(settings)
    except ValueError as exc:
        logger.warning("Web Push is not configured", error=str(exc))
        app.state.push_sender = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_encoder(exc.errors()), "message": "Validation failed"},
        )

    @app.exception_handler(PushAdminException)
    async def application_exception_handler(
        request: Request, exc: PushAdminException
    ) -> JSONResponse:
        http_exc = to_http_exception(exc)
        return JSONResponse(
            status_code=http_exc.status_code,
            content={"detail": http_exc.detail},
            headers=http_exc.headers,
        )

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
