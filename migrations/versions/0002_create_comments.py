"""create comments table

Revision ID: 0002_create_comments
Revises: 0001_create_events
Create Date: 2026-01-12 09:41:05.112394+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0002_create_comments"
down_revision: Union[str, Sequence[str], None] = "0001_create_events"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "comments",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=255), nullable=False, server_default="Anonymous"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("actor_address", sa.String(length=45), nullable=True),
        sa.Column("actor_agent", sa.Text(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_comments_created_at", "comments", ["created_at"])
    op.create_index("ix_comments_username", "comments", ["username"])


def downgrade():
    op.drop_index("ix_comments_username", table_name="comments")
    op.drop_index("ix_comments_created_at", table_name="comments")
    op.drop_table("comments")
