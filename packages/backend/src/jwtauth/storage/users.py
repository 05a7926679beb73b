"""Identity store — users joined with their current refresh generation."""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jwtauth.db.models import RefreshGeneration, User
from jwtauth.errors import DuplicateIdentityError, NotFoundError, StorageError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UserWithGeneration:
    id: uuid.UUID
    email: str
    generation_id: int


class UserStore:
    """Reads and writes the users table."""

    async def create(
        self,
        tx: AsyncSession,
        email: str,
        request_id: Optional[str] = None,
    ) -> uuid.UUID:
        """Insert a user and return its id.

        Learn: No SELECT-before-INSERT. Two concurrent signups for the same
        email would both pass a pre-check; the unique constraint lets exactly
        one of them through.
        """
        op = "storage.users.create"
        log = logger.bind(op=op, request_id=request_id)

        user = User(email=email)
        tx.add(user)
        try:
            await tx.flush()
        except IntegrityError as e:
            log.debug("storage.users.duplicate_email")
            raise DuplicateIdentityError(
                op, "user with this email already exists"
            ) from e
        except SQLAlchemyError as e:
            log.error("storage.users.create_failed", error=str(e))
            raise StorageError(op, "failed to create user") from e

        log.debug("storage.users.created", user_id=str(user.id))
        return user.id

    async def get_with_generation(
        self,
        tx: AsyncSession,
        user_id: uuid.UUID,
        request_id: Optional[str] = None,
    ) -> UserWithGeneration:
        """Fetch a user and its current generation id.

        Inner join: a user without a generation row is reported as not found.
        """
        op = "storage.users.get_with_generation"
        log = logger.bind(op=op, request_id=request_id)

        q = (
            select(User.id, User.email, RefreshGeneration.generation_id)
            .join(RefreshGeneration, RefreshGeneration.user_id == User.id)
            .where(User.id == user_id)
        )
        try:
            result = await tx.execute(q)
            row = result.first()
        except SQLAlchemyError as e:
            log.error("storage.users.fetch_failed", error=str(e))
            raise StorageError(op, "failed to get user") from e

        if row is None:
            log.debug("storage.users.not_found", user_id=str(user_id))
            raise NotFoundError(op, "user not found")

        log.debug("storage.users.fetched", user_id=str(user_id))
        return UserWithGeneration(
            id=row.id, email=row.email, generation_id=row.generation_id
        )
