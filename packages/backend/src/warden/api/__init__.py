"""API route aggregation.

All routers registered here get mounted in main.py. Every route is
open: callers authenticate by presenting credentials to /auth/login,
not by bearer token.
"""

from fastapi import APIRouter

from warden.api.auth import router as auth_router
from warden.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
