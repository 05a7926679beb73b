"""Session service — identity creation, token issuance, refresh rotation.

Learn: This is where the credential lifecycle lives. The stores know how to
read and write rows; this service decides what a token is worth and owns
the transaction around every operation:

    create_identity     user row + first refresh generation, atomically
    issue_token_pair    access + refresh token for the current generation
    refresh_token_pair  redeem a refresh token: verify, check generation,
                        rotate (delete + insert), issue a new pair
    resolve_identity    access token → {id, email}

Replay protection: a refresh token embeds the generation it was issued
under. Redeeming it replaces that generation inside the same transaction,
so a second redemption finds a newer generation and is refused.

Every operation runs in exactly one session/transaction and under a
deadline. Any exception (including cancellation at the deadline) leaves the
``session.begin()`` block, which rolls back; commit only happens when the
block completes.

Scope limits, on purpose:
- The client IP is recorded in tokens but a mismatch on refresh is only
  logged, never rejected.
- resolve_identity does not compare the access token's generation with the
  live one. Rotating a generation does not revoke outstanding access tokens.
- No row lock is taken before read-then-rotate. The rotation deletes the
  old generation with a compare-and-swap (user_id AND generation_id), so of
  two racing refreshes of the same token only one deletes a row; the other
  is refused as UnauthorizedError and rolls back.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, Awaitable, Optional, Protocol, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jwtauth.auth.tokens import (
    DEFAULT_ALGORITHM,
    DEFAULT_ISSUER,
    TokenError,
    decode_token,
    issue_token,
)
from jwtauth.config import Settings
from jwtauth.errors import (
    AuthServiceError,
    CredentialError,
    OperationTimeoutError,
    StorageError,
    UnauthorizedError,
)
from jwtauth.storage import RefreshStore, UserStore, UserWithGeneration

logger = structlog.get_logger(__name__)

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════
# Storage contracts
# ═══════════════════════════════════════════════════════════


class UserRepository(Protocol):
    async def create(
        self, tx: AsyncSession, email: str, request_id: Optional[str] = None
    ) -> uuid.UUID: ...

    async def get_with_generation(
        self, tx: AsyncSession, user_id: uuid.UUID, request_id: Optional[str] = None
    ) -> UserWithGeneration: ...


class RefreshRepository(Protocol):
    async def create(
        self, tx: AsyncSession, user_id: uuid.UUID, request_id: Optional[str] = None
    ) -> int: ...

    async def delete(
        self, tx: AsyncSession, user_id: uuid.UUID, request_id: Optional[str] = None
    ) -> None: ...

    async def delete_generation(
        self,
        tx: AsyncSession,
        user_id: uuid.UUID,
        generation_id: int,
        request_id: Optional[str] = None,
    ) -> bool: ...


# ═══════════════════════════════════════════════════════════
# Value types
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Identity:
    id: uuid.UUID
    email: str


@dataclass(frozen=True)
class TokenConfig:
    """Signing material and deadlines for the session service.

    Learn: Kept apart from Settings so tests (and anything embedding the
    service) can build one directly without touching the environment.
    """

    access_secret: str
    refresh_secret: str
    access_token_lifetime: timedelta
    refresh_token_lifetime: timedelta
    algorithm: str = DEFAULT_ALGORITHM
    issuer: str = DEFAULT_ISSUER
    operation_timeout_seconds: Optional[float] = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            access_secret=settings.access_secret,
            refresh_secret=settings.refresh_secret,
            access_token_lifetime=settings.access_token_lifetime,
            refresh_token_lifetime=settings.refresh_token_lifetime,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            operation_timeout_seconds=settings.operation_timeout_seconds,
        )


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


class SessionService:
    """Credential lifecycle over a transactional database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: TokenConfig,
        users: Optional[UserRepository] = None,
        refresh: Optional[RefreshRepository] = None,
    ):
        self.session_factory = session_factory
        self.config = config
        self.users = users or UserStore()
        self.refresh = refresh or RefreshStore()

    # ─── Plumbing ───────────────────────────────────────

    @asynccontextmanager
    async def _transaction(self, op: str) -> AsyncIterator[AsyncSession]:
        """One session, one transaction. Commits on success, rolls back otherwise."""
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    yield db
        except SQLAlchemyError as e:
            # begin/commit failures; store-level errors arrive already wrapped
            raise StorageError(op, "transaction failed") from e

    async def _with_deadline(
        self, op: str, work: Awaitable[T], timeout: Optional[float]
    ) -> T:
        if timeout is None:
            timeout = self.config.operation_timeout_seconds
        try:
            return await asyncio.wait_for(work, timeout)
        except asyncio.TimeoutError as e:
            logger.error("session.timeout", op=op, timeout=timeout)
            raise OperationTimeoutError(op, f"timed out after {timeout}s") from e

    def _issue_pair(
        self, op: str, user_id: uuid.UUID, ip_address: str, generation_id: int
    ) -> TokenPair:
        try:
            access = issue_token(
                user_id,
                ip_address,
                generation_id,
                self.config.access_secret,
                self.config.access_token_lifetime,
                algorithm=self.config.algorithm,
                issuer=self.config.issuer,
            )
            refresh = issue_token(
                user_id,
                ip_address,
                generation_id,
                self.config.refresh_secret,
                self.config.refresh_token_lifetime,
                algorithm=self.config.algorithm,
                issuer=self.config.issuer,
            )
        except TokenError as e:
            raise CredentialError(op, "failed to sign tokens") from e
        return TokenPair(access_token=access, refresh_token=refresh)

    # ─── Create identity ────────────────────────────────

    async def create_identity(
        self,
        email: str,
        ip_address: str,
        *,
        request_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> uuid.UUID:
        """Create a user and its first refresh generation in one transaction.

        Raises DuplicateIdentityError if the email is taken, StorageError on
        database failure. Either way nothing is left behind.
        """
        op = "services.session.create_identity"
        return await self._with_deadline(
            op, self._create_identity(op, email, ip_address, request_id), timeout
        )

    async def _create_identity(
        self, op: str, email: str, ip_address: str, request_id: Optional[str]
    ) -> uuid.UUID:
        log = logger.bind(op=op, request_id=request_id)
        try:
            async with self._transaction(op) as tx:
                user_id = await self.users.create(tx, email, request_id)
                generation_id = await self.refresh.create(tx, user_id, request_id)
        except AuthServiceError as e:
            log.warning("session.create_identity.failed", error=str(e))
            raise

        log.info(
            "session.identity_created",
            user_id=str(user_id),
            generation_id=generation_id,
            ip_address=ip_address,
        )
        return user_id

    # ─── Issue tokens ───────────────────────────────────

    async def issue_token_pair(
        self,
        user_id: uuid.UUID,
        ip_address: str,
        *,
        request_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> TokenPair:
        """Issue tokens for the user's current generation.

        Raises NotFoundError if the user (or its generation) does not exist.
        """
        op = "services.session.issue_token_pair"
        return await self._with_deadline(
            op, self._issue_token_pair(op, user_id, ip_address, request_id), timeout
        )

    async def _issue_token_pair(
        self,
        op: str,
        user_id: uuid.UUID,
        ip_address: str,
        request_id: Optional[str],
    ) -> TokenPair:
        log = logger.bind(op=op, request_id=request_id, user_id=str(user_id))
        try:
            async with self._transaction(op) as tx:
                user = await self.users.get_with_generation(tx, user_id, request_id)
                pair = self._issue_pair(op, user.id, ip_address, user.generation_id)
        except AuthServiceError as e:
            log.warning("session.issue.failed", error=str(e))
            raise

        log.info("session.issued", generation_id=user.generation_id)
        return pair

    # ─── Refresh (rotate) ───────────────────────────────

    async def refresh_token_pair(
        self,
        refresh_token: str,
        ip_address: str,
        *,
        request_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> TokenPair:
        """Redeem a refresh token for a new pair and rotate the generation.

        Raises UnauthorizedError for a bad, expired or already-redeemed token.
        NotFoundError/StorageError propagate from storage. If anything fails
        the old generation stays current.
        """
        op = "services.session.refresh_token_pair"
        return await self._with_deadline(
            op,
            self._refresh_token_pair(op, refresh_token, ip_address, request_id),
            timeout,
        )

    async def _refresh_token_pair(
        self,
        op: str,
        refresh_token: str,
        ip_address: str,
        request_id: Optional[str],
    ) -> TokenPair:
        log = logger.bind(op=op, request_id=request_id)

        try:
            claims = decode_token(
                refresh_token,
                self.config.refresh_secret,
                algorithm=self.config.algorithm,
                issuer=self.config.issuer,
            )
        except TokenError as e:
            log.warning("session.refresh.invalid_token", reason=str(e))
            raise UnauthorizedError(op) from e

        log = log.bind(user_id=str(claims.owner_id))
        try:
            async with self._transaction(op) as tx:
                user = await self.users.get_with_generation(
                    tx, claims.owner_id, request_id
                )

                if claims.ip_address != ip_address:
                    # Advisory only: clients roam between networks.
                    log.warning(
                        "session.refresh.ip_mismatch",
                        token_ip=claims.ip_address,
                        client_ip=ip_address,
                    )

                if claims.generation_id != user.generation_id:
                    log.warning(
                        "session.refresh.stale_generation",
                        presented=claims.generation_id,
                        current=user.generation_id,
                    )
                    raise UnauthorizedError(op)

                if not await self.refresh.delete_generation(
                    tx, user.id, claims.generation_id, request_id
                ):
                    # A concurrent redemption rotated it after our read
                    log.warning(
                        "session.refresh.lost_race",
                        presented=claims.generation_id,
                    )
                    raise UnauthorizedError(op)
                generation_id = await self.refresh.create(tx, user.id, request_id)
                pair = self._issue_pair(op, user.id, ip_address, generation_id)
        except UnauthorizedError:
            raise
        except AuthServiceError as e:
            log.warning("session.refresh.failed", error=str(e))
            raise

        log.info(
            "session.refresh.rotated",
            previous_generation_id=claims.generation_id,
            generation_id=generation_id,
        )
        return pair

    # ─── Resolve identity ───────────────────────────────

    async def resolve_identity(
        self,
        access_token: str,
        *,
        request_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Identity:
        """Return the identity an access token belongs to.

        Raises UnauthorizedError for a bad or expired token, NotFoundError if
        the identity is gone.
        """
        op = "services.session.resolve_identity"
        return await self._with_deadline(
            op, self._resolve_identity(op, access_token, request_id), timeout
        )

    async def _resolve_identity(
        self, op: str, access_token: str, request_id: Optional[str]
    ) -> Identity:
        log = logger.bind(op=op, request_id=request_id)

        try:
            claims = decode_token(
                access_token,
                self.config.access_secret,
                algorithm=self.config.algorithm,
                issuer=self.config.issuer,
            )
        except TokenError as e:
            log.warning("session.resolve.invalid_token", reason=str(e))
            raise UnauthorizedError(op) from e

        log = log.bind(user_id=str(claims.owner_id))
        try:
            async with self._transaction(op) as tx:
                user = await self.users.get_with_generation(
                    tx, claims.owner_id, request_id
                )
        except AuthServiceError as e:
            log.warning("session.resolve.failed", error=str(e))
            raise

        log.debug("session.resolved")
        return Identity(id=user.id, email=user.email)
