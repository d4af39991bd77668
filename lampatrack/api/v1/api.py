"""API router for version 1."""
from fastapi import APIRouter

from lampatrack.api.v1.endpoints import notifications

api_router = APIRouter()
api_router.include_router(notifications.router)
