"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class LampaTrackException(Exception):
    """Base exception for the application."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(LampaTrackException):
    """Missing or malformed trigger fields."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnknownStatusError(LampaTrackException):
    """No notification content is defined for a status value."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConfigurationError(LampaTrackException):
    """Delivery credentials are absent or unusable."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InternalServiceError(LampaTrackException):
    """Unexpected failure while serving a request."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_lampatrack_exception(request: Request, exc: LampaTrackException) -> JSONResponse:
    """Render application errors as ``{"error": message}``."""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message)
    else:
        logger.warning("Request rejected", path=request.url.path, error=exc.message, **exc.details)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Hide internal diagnostics from callers while keeping them in the log."""
    logger.opt(exception=exc).error("Unhandled error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
