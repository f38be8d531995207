# migrations/versions/0001_create_events.py
from alembic import op
import sqlalchemy as sa

# revision identifiers:
revision = "0001_create_events"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False, server_default=""),
        sa.Column("actor_address", sa.String(length=45), nullable=False, server_default=""),
        sa.Column("actor_agent", sa.Text(), nullable=False, server_default=""),
        sa.Column("session_id", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("severity", sa.String(length=16), nullable=False, server_default="low"),
        sa.Column("tag", sa.String(length=32), nullable=False, server_default="none"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')", name="ck_events_severity"
        ),
    )
    op.create_index("ix_events_created_at", "events", ["created_at"])
    op.create_index("ix_events_category", "events", ["category"])
    op.create_index("ix_events_action", "events", ["action"])
    op.create_index("ix_events_severity", "events", ["severity"])
    op.create_index("ix_events_actor_created", "events", ["actor_address", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_events_actor_created", table_name="events")
    op.drop_index("ix_events_severity", table_name="events")
    op.drop_index("ix_events_action", table_name="events")
    op.drop_index("ix_events_category", table_name="events")
    op.drop_index("ix_events_created_at", table_name="events")
    op.drop_table("events")
