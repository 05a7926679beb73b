"""JWT token creation and verification.

Learn: Access and refresh tokens carry the same claims:
- sub: the owner's user id
- ip_address: client IP at issuance (advisory, never enforced)
- generation_id: the owner's refresh generation at issuance
- iss / iat / exp: registered claims

What makes a refresh token a refresh token is the secret it was signed with.
The session service verifies refresh tokens with the refresh secret and
access tokens with the access secret, and nothing else tells them apart.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

DEFAULT_ALGORITHM = "HS512"
DEFAULT_ISSUER = "jwt-auth"

_REQUIRED_CLAIMS = ["sub", "iss", "iat", "exp", "ip_address", "generation_id"]


class TokenError(Exception):
    """Raised when a token cannot be decoded or verified."""


@dataclass(frozen=True)
class BearerClaims:
    """Verified claims of a decoded token."""

    owner_id: uuid.UUID
    ip_address: str
    generation_id: int
    expires_at: datetime
    issued_at: datetime
    issuer: str


def issue_token(
    owner_id: uuid.UUID,
    ip_address: str,
    generation_id: int,
    secret: str,
    lifetime: timedelta,
    *,
    algorithm: str = DEFAULT_ALGORITHM,
    issuer: str = DEFAULT_ISSUER,
) -> str:
    """Create a signed token that expires ``lifetime`` from now."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(owner_id),
        "iss": issuer,
        "iat": now,
        "exp": now + lifetime,
        "ip_address": ip_address,
        "generation_id": generation_id,
    }
    try:
        return jwt.encode(payload, secret, algorithm=algorithm)
    except (jwt.PyJWTError, NotImplementedError, TypeError) as e:
        raise TokenError(f"Failed to sign token: {e}") from e


def decode_token(
    token: str,
    secret: str,
    *,
    algorithm: str = DEFAULT_ALGORITHM,
    issuer: str = DEFAULT_ISSUER,
) -> BearerClaims:
    """Verify and decode a token.

    Checks signature, algorithm, issuer, expiry and the presence and type of
    every claim. Raises TokenError on any failure.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            issuer=issuer,
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}") from e

    try:
        owner_id = uuid.UUID(payload["sub"])
    except (TypeError, ValueError, AttributeError) as e:
        raise TokenError("Invalid token: malformed subject") from e

    generation_id = payload["generation_id"]
    if not isinstance(generation_id, int) or isinstance(generation_id, bool):
        raise TokenError("Invalid token: malformed generation_id")

    ip_address = payload["ip_address"]
    if not isinstance(ip_address, str):
        raise TokenError("Invalid token: malformed ip_address")

    return BearerClaims(
        owner_id=owner_id,
        ip_address=ip_address,
        generation_id=generation_id,
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        issuer=payload["iss"],
    )
