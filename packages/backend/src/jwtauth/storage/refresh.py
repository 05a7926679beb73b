"""Refresh generation store — one current generation row per user."""

import uuid
from typing import Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jwtauth.db.models import RefreshGeneration
from jwtauth.errors import StorageError

logger = structlog.get_logger(__name__)


class RefreshStore:
    """Reads and writes the refresh_generations table."""

    async def create(
        self,
        tx: AsyncSession,
        user_id: uuid.UUID,
        request_id: Optional[str] = None,
    ) -> int:
        """Insert a new generation for the user and return its id.

        The caller must have deleted the previous generation in the same
        transaction; otherwise the unique constraint on user_id fails.
        """
        op = "storage.refresh.create"
        log = logger.bind(op=op, request_id=request_id)

        generation = RefreshGeneration(user_id=user_id)
        tx.add(generation)
        try:
            await tx.flush()
        except SQLAlchemyError as e:
            log.error("storage.refresh.create_failed", error=str(e))
            raise StorageError(op, "failed to create refresh generation") from e

        log.debug(
            "storage.refresh.created", generation_id=generation.generation_id
        )
        return generation.generation_id

    async def delete(
        self,
        tx: AsyncSession,
        user_id: uuid.UUID,
        request_id: Optional[str] = None,
    ) -> None:
        """Delete every generation row of the user. Deleting nothing is fine."""
        op = "storage.refresh.delete"
        log = logger.bind(op=op, request_id=request_id)

        try:
            await tx.execute(
                delete(RefreshGeneration).where(RefreshGeneration.user_id == user_id)
            )
        except SQLAlchemyError as e:
            log.error("storage.refresh.delete_failed", error=str(e))
            raise StorageError(op, "failed to delete refresh generation") from e

        log.debug("storage.refresh.deleted", user_id=str(user_id))

    async def delete_generation(
        self,
        tx: AsyncSession,
        user_id: uuid.UUID,
        generation_id: int,
        request_id: Optional[str] = None,
    ) -> bool:
        """Delete the user's generation only if it is still ``generation_id``.

        Learn: Compare-and-swap on the row itself. When two redemptions of the
        same refresh token race, both may have read the same generation, but
        only one DELETE can match it; the other sees zero rows and returns
        False. Works the same on PostgreSQL and SQLite.
        """
        op = "storage.refresh.delete_generation"
        log = logger.bind(op=op, request_id=request_id)

        try:
            result = await tx.execute(
                delete(RefreshGeneration)
                .where(
                    RefreshGeneration.user_id == user_id,
                    RefreshGeneration.generation_id == generation_id,
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            log.error("storage.refresh.delete_failed", error=str(e))
            raise StorageError(op, "failed to delete refresh generation") from e

        deleted = result.rowcount == 1
        log.debug(
            "storage.refresh.generation_deleted",
            user_id=str(user_id),
            generation_id=generation_id,
            deleted=deleted,
        )
        return deleted
