"""FastAPI application factory."""
from __future__ import annotations

from typing import List

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers

from lampatrack import __version__
from lampatrack.api.v1 import api_router
from lampatrack.config import settings
from lampatrack.utils.exceptions import (
    LampaTrackException,
    handle_lampatrack_exception,
    handle_unexpected_exception,
)

# Headers sent by the browser SDK of the hosted backend, kept so existing clients keep working.
CORS_ALLOW_HEADERS: List[str] = [
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    "x-supabase-client-platform",
    "x-supabase-client-platform-version",
    "x-supabase-client-runtime",
    "x-supabase-client-runtime-version",
]

tags_metadata: List[dict[str, str]] = [
    {"name": "notifications", "description": "Register browsers and push report status changes."},
]


class PreflightCORSMiddleware(CORSMiddleware):
    """``CORSMiddleware`` that answers accepted preflight requests with an empty body."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=response.status_code, headers=headers)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Web Push dispatch for streetlight outage reports.",
        version=__version__,
        openapi_tags=tags_metadata,
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc",
    )

    app.add_middleware(
        PreflightCORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    app.add_exception_handler(LampaTrackException, handle_lampatrack_exception)
    app.add_exception_handler(Exception, handle_unexpected_exception)

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
