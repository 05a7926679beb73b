"""Token codec tests.

Learn: The codec is pure, so these run without a database. Tests cover:
1. Claims survive an issue → decode round trip
2. Every verification failure surfaces as the same TokenError
3. The access/refresh secrets do not accept each other's tokens
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from jwtauth.auth.tokens import BearerClaims, TokenError, decode_token, issue_token

ACCESS_SECRET = "codec-access-secret-" + "x" * 64
REFRESH_SECRET = "codec-refresh-secret-" + "y" * 64


def _issue(**overrides) -> str:
    kwargs = {
        "owner_id": uuid.uuid4(),
        "ip_address": "192.0.2.10",
        "generation_id": 7,
        "secret": ACCESS_SECRET,
        "lifetime": timedelta(minutes=15),
    }
    kwargs.update(overrides)
    return issue_token(**kwargs)


# ═══════════════════════════════════════════════════════════
# Round trip
# ═══════════════════════════════════════════════════════════


def test_round_trip_preserves_claims():
    owner = uuid.uuid4()
    before = datetime.now(timezone.utc).replace(microsecond=0)
    token = _issue(owner_id=owner, ip_address="198.51.100.4", generation_id=42)

    claims = decode_token(token, ACCESS_SECRET)

    assert isinstance(claims, BearerClaims)
    assert claims.owner_id == owner
    assert claims.ip_address == "198.51.100.4"
    assert claims.generation_id == 42
    assert claims.issuer == "jwt-auth"
    assert claims.expires_at > datetime.now(timezone.utc)
    assert before <= claims.issued_at <= claims.expires_at
    assert claims.expires_at - claims.issued_at == timedelta(minutes=15)


def test_registered_claims_in_payload():
    owner = uuid.uuid4()
    token = _issue(owner_id=owner)

    payload = jwt.decode(token, options={"verify_signature": False})
    assert payload["sub"] == str(owner)
    assert payload["iss"] == "jwt-auth"
    assert {"iat", "exp", "ip_address", "generation_id"} <= payload.keys()
    assert jwt.get_unverified_header(token)["alg"] == "HS512"


def test_custom_algorithm_and_issuer():
    token = _issue(algorithm="HS256", issuer="auth.example.com")
    claims = decode_token(token, ACCESS_SECRET, algorithm="HS256", issuer="auth.example.com")
    assert claims.issuer == "auth.example.com"


# ═══════════════════════════════════════════════════════════
# Rejections
# ═══════════════════════════════════════════════════════════


def test_expired_token_rejected():
    token = _issue(lifetime=timedelta(seconds=-1))
    with pytest.raises(TokenError, match="expired"):
        decode_token(token, ACCESS_SECRET)


def test_wrong_secret_rejected():
    token = _issue(secret=ACCESS_SECRET)
    with pytest.raises(TokenError):
        decode_token(token, REFRESH_SECRET)


def test_refresh_secret_does_not_verify_access_token_and_vice_versa():
    access = _issue(secret=ACCESS_SECRET)
    refresh = _issue(secret=REFRESH_SECRET)

    with pytest.raises(TokenError):
        decode_token(access, REFRESH_SECRET)
    with pytest.raises(TokenError):
        decode_token(refresh, ACCESS_SECRET)


def test_tampered_payload_rejected():
    header, payload, signature = _issue().split(".")
    forged = _issue(generation_id=999).split(".")[1]
    with pytest.raises(TokenError):
        decode_token(f"{header}.{forged}.{signature[:-4]}AAAA", ACCESS_SECRET)
    with pytest.raises(TokenError):
        decode_token(f"{header}.{forged}.{signature}", ACCESS_SECRET)


def test_algorithm_mismatch_rejected():
    token = _issue(algorithm="HS256")
    with pytest.raises(TokenError):
        decode_token(token, ACCESS_SECRET, algorithm="HS512")


def test_wrong_issuer_rejected():
    token = _issue(issuer="someone-else")
    with pytest.raises(TokenError):
        decode_token(token, ACCESS_SECRET)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "Bearer x.y.z"])
def test_malformed_token_rejected(garbage):
    with pytest.raises(TokenError):
        decode_token(garbage, ACCESS_SECRET)


def test_missing_generation_claim_rejected():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "iss": "jwt-auth",
            "iat": now,
            "exp": now + timedelta(minutes=5),
            "ip_address": "192.0.2.1",
        },
        ACCESS_SECRET,
        algorithm="HS512",
    )
    with pytest.raises(TokenError):
        decode_token(token, ACCESS_SECRET)


def test_missing_ip_address_claim_rejected():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "iss": "jwt-auth",
            "iat": now,
            "exp": now + timedelta(minutes=5),
            "generation_id": 3,
        },
        ACCESS_SECRET,
        algorithm="HS512",
    )
    with pytest.raises(TokenError, match="ip_address"):
        decode_token(token, ACCESS_SECRET)


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "not-a-uuid", "generation_id": 1, "ip_address": "192.0.2.1"},
        {"sub": str(uuid.UUID(int=1)), "generation_id": "1", "ip_address": "192.0.2.1"},
        {"sub": str(uuid.UUID(int=1)), "generation_id": True, "ip_address": "192.0.2.1"},
        {"sub": str(uuid.UUID(int=1)), "generation_id": 1, "ip_address": 12},
    ],
)
def test_ill_typed_claims_rejected(claims):
    now = datetime.now(timezone.utc)
    payload = {"iss": "jwt-auth", "iat": now, "exp": now + timedelta(minutes=5)}
    payload.update(claims)
    token = jwt.encode(payload, ACCESS_SECRET, algorithm="HS512")
    with pytest.raises(TokenError):
        decode_token(token, ACCESS_SECRET)


def test_unsupported_algorithm_raises_token_error():
    with pytest.raises(TokenError):
        _issue(algorithm="none-such")
