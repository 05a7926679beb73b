"""users and refresh_generations tables

Learn: refresh_generations.user_id is unique — a user has at most one
current generation, and rotation deletes the old row before inserting the
new one in the same transaction. The FK cascades so that removing a user
(outside this service) never strands a generation row.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("email", name="users_email_key"),
    )

    op.create_table(
        "refresh_generations",
        sa.Column("generation_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", name="uq_refresh_generations_user"),
        sqlite_autoincrement=True,
    )


def downgrade() -> None:
    op.drop_table("refresh_generations")
    op.drop_table("users")
