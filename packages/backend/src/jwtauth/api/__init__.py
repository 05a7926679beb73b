"""API route aggregation.

All routers registered here get mounted in main.py. None of them sit behind
an auth dependency: the auth routes are how callers get credentials in the
first place, and /auth/current-user checks its own bearer token.
"""

from fastapi import APIRouter

from jwtauth.api.auth import router as auth_router
from jwtauth.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
