"""Create events table with dedup indexes

Revision ID: 0001_create_events
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_create_events"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("ts_utc", sa.Integer, nullable=False),
        sa.Column("ts_iso", sa.Text, nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("type", sa.Text, nullable=False),
        sa.Column("data_json", sa.Text, nullable=False),
        sa.Column("session_id", sa.Text, nullable=True),
        sa.Column("field_id", sa.Text, nullable=True),
        sa.CheckConstraint(
            "type IN ('navigate','visible_text','click','input','focus')",
            name="ck_events_type",
        ),
        sa.CheckConstraint("json_valid(data_json)", name="ck_events_data_json"),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_events_ts", "events", ["ts_utc"])
    op.create_index("idx_events_type", "events", ["type"])
    op.create_index("idx_events_url", "events", ["url"])
    op.create_index(
        "idx_input_field_session",
        "events",
        ["url", "field_id", "session_id"],
        unique=True,
        sqlite_where=sa.text("type = 'input'"),
    )
    op.create_index(
        "idx_input_lookup",
        "events",
        ["session_id", "field_id"],
        sqlite_where=sa.text("type = 'input'"),
    )
    op.create_index(
        "idx_visible_text_session",
        "events",
        ["url", "session_id"],
        unique=True,
        sqlite_where=sa.text("type = 'visible_text'"),
    )


def downgrade() -> None:
    op.drop_index("idx_visible_text_session", table_name="events")
    op.drop_index("idx_input_lookup", table_name="events")
    op.drop_index("idx_input_field_session", table_name="events")
    op.drop_index("idx_events_url", table_name="events")
    op.drop_index("idx_events_type", table_name="events")
    op.drop_index("idx_events_ts", table_name="events")
    op.drop_table("events")
