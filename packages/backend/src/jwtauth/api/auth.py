"""Auth API — identity creation, token issuance, refresh, current user.

Learn: Routes for the credential lifecycle:
- POST /auth/create → create an identity (email only)
- GET /auth/tokens/:id → access + refresh token for an identity
- GET /auth/refresh-tokens → redeem the refresh token in Authorization
- GET /auth/current-user → identity behind the access token in Authorization

Routes only translate. Service errors map to status codes in _raise_http();
on the two bearer routes a missing identity is reported as 401, same as a
bad signature, so the response never says which check failed.
"""

import uuid
from typing import NoReturn, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException

from jwtauth.auth.dependencies import (
    get_bearer_token,
    get_client_ip,
    get_request_id,
    get_session_service,
)
from jwtauth.errors import (
    AuthServiceError,
    DuplicateIdentityError,
    NotFoundError,
    OperationTimeoutError,
    UnauthorizedError,
    ValidationFailureError,
)
from jwtauth.schemas.auth import (
    CreateUserRequest,
    CreateUserResponse,
    CurrentUserResponse,
    TokenPairResponse,
)
from jwtauth.services.session_service import SessionService

router = APIRouter(prefix="/auth")

logger = structlog.get_logger(__name__)


def _raise_http(e: AuthServiceError) -> NoReturn:
    """Map a service error to an HTTPException without leaking internals."""
    if isinstance(e, UnauthorizedError):
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    if isinstance(e, ValidationFailureError):
        raise HTTPException(status_code=400, detail=e.message) from e
    if isinstance(e, DuplicateIdentityError):
        raise HTTPException(status_code=409, detail=e.message) from e
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=e.message) from e
    if isinstance(e, OperationTimeoutError):
        raise HTTPException(status_code=503, detail="Service unavailable") from e
    raise HTTPException(status_code=500, detail="Internal server error") from e


# ─── Create identity ─────────────────────────────────────


@router.post("/create", response_model=CreateUserResponse, status_code=201)
async def create_user(
    body: CreateUserRequest,
    svc: SessionService = Depends(get_session_service),
    ip_address: str = Depends(get_client_ip),
    request_id: Optional[str] = Depends(get_request_id),
):
    """Create a new identity for an email address."""
    try:
        user_id = await svc.create_identity(
            body.email, ip_address, request_id=request_id
        )
    except AuthServiceError as e:
        logger.warning("api.auth.create_failed", error=str(e))
        _raise_http(e)

    return CreateUserResponse(detail="new user was successfully created", id=user_id)


# ─── Issue tokens ────────────────────────────────────────


@router.get("/tokens/{user_id}", response_model=TokenPairResponse)
async def get_tokens(
    user_id: str,
    svc: SessionService = Depends(get_session_service),
    ip_address: str = Depends(get_client_ip),
    request_id: Optional[str] = Depends(get_request_id),
):
    """Issue an access/refresh pair for an existing identity."""
    try:
        try:
            parsed = uuid.UUID(user_id)
        except ValueError:
            raise ValidationFailureError("api.auth.get_tokens", "invalid user id")
        pair = await svc.issue_token_pair(parsed, ip_address, request_id=request_id)
    except AuthServiceError as e:
        logger.warning("api.auth.tokens_failed", error=str(e))
        _raise_http(e)

    return TokenPairResponse(
        access_token=pair.access_token, refresh_token=pair.refresh_token
    )


# ─── Refresh ─────────────────────────────────────────────


@router.get("/refresh-tokens", response_model=TokenPairResponse)
async def refresh_tokens(
    token: Optional[str] = Depends(get_bearer_token),
    svc: SessionService = Depends(get_session_service),
    ip_address: str = Depends(get_client_ip),
    request_id: Optional[str] = Depends(get_request_id),
):
    """Exchange a refresh token for a new pair. Each refresh token works once."""
    op = "api.auth.refresh_tokens"
    try:
        if not token:
            raise ValidationFailureError(op, "refresh token is required")
        try:
            pair = await svc.refresh_token_pair(
                token, ip_address, request_id=request_id
            )
        except NotFoundError as e:
            raise UnauthorizedError(op) from e
    except AuthServiceError as e:
        logger.warning("api.auth.refresh_failed", error=str(e))
        _raise_http(e)

    return TokenPairResponse(
        access_token=pair.access_token, refresh_token=pair.refresh_token
    )


# ─── Current user ────────────────────────────────────────


@router.get("/current-user", response_model=CurrentUserResponse)
async def current_user(
    token: Optional[str] = Depends(get_bearer_token),
    svc: SessionService = Depends(get_session_service),
    request_id: Optional[str] = Depends(get_request_id),
):
    """Return the identity behind the bearer access token."""
    op = "api.auth.current_user"
    try:
        if not token:
            raise UnauthorizedError(op)
        try:
            identity = await svc.resolve_identity(token, request_id=request_id)
        except NotFoundError as e:
            raise UnauthorizedError(op) from e
    except AuthServiceError as e:
        logger.warning("api.auth.current_user_failed", error=str(e))
        _raise_http(e)

    return CurrentUserResponse(id=identity.id, email=identity.email)
