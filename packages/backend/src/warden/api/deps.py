"""FastAPI dependencies.

The lifespan builds one AuthService and one engine per process and
parks them on app.state; handlers pull them out through these so tests
can swap them with app.dependency_overrides.
"""

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from warden.services.auth import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_engine(request: Request) -> AsyncEngine:
    return request.app.state.engine
