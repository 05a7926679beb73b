"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. They pull the pieces
of a request the session service needs (bearer string, client IP, request
id) and build the service itself from the process-wide session factory.
Tests override get_session_service to point at a throwaway database.
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jwtauth.config import settings
from jwtauth.db.engine import get_session_factory
from jwtauth.services.session_service import SessionService, TokenConfig


def get_session_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SessionService:
    return SessionService(session_factory, TokenConfig.from_settings(settings))


def get_request_id(request: Request) -> Optional[str]:
    """Request id assigned by RequestIdMiddleware, if it ran."""
    return getattr(request.state, "request_id", None)


def get_client_ip(request: Request) -> str:
    """Best-effort client address. Untrusted; only ever logged or embedded."""
    return request.client.host if request.client else "unknown"


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Returns None when the header is missing, empty, or uses another scheme.
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token
