"""Logbook tables.

Revision ID: 001_logbook
Revises:
Create Date: 2026-10-18

Adds voyages, log entries, their environmental readings and the
per-entry distance records.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001_logbook"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "voyages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("start_timestamp", sa.Integer(), nullable=False),
        sa.Column("end_timestamp", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_voyages_start_timestamp", "voyages", ["start_timestamp"])
    op.create_index("ix_voyages_is_active", "voyages", ["is_active"])

    op.create_table(
        "log_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("voyage_id", sa.Integer(), sa.ForeignKey("voyages.id", ondelete="CASCADE"), nullable=True),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.Column("date_key", sa.String(10), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("log_text", sa.Text(), nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_auto_track", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_log_entries_voyage_id", "log_entries", ["voyage_id"])
    op.create_index("ix_log_entries_timestamp", "log_entries", ["timestamp"])
    op.create_index("ix_log_entries_date_key", "log_entries", ["date_key"])
    op.create_index("ix_log_entries_voyage_timestamp", "log_entries", ["voyage_id", "timestamp"])

    op.create_table(
        "log_readings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entry_id", sa.Integer(), sa.ForeignKey("log_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("path", sa.String(255), nullable=False),
        sa.Column("label", sa.String(255), nullable=True),
        sa.Column("value", sa.String(64), nullable=True),
        sa.Column("unit", sa.String(16), nullable=True),
    )
    op.create_index("ix_log_readings_entry_id", "log_readings", ["entry_id"])

    op.create_table(
        "distance_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entry_id", sa.Integer(), sa.ForeignKey("log_entries.id", ondelete="CASCADE"), nullable=False),
        sa.Column("distance_since_last", sa.Float(), nullable=False),
        sa.Column("total_distance", sa.Float(), nullable=False),
        sa.UniqueConstraint("entry_id", name="uq_distance_records_entry"),
    )


def downgrade() -> None:
    op.drop_table("distance_records")
    op.drop_index("ix_log_readings_entry_id", table_name="log_readings")
    op.drop_table("log_readings")
    op.drop_index("ix_log_entries_voyage_timestamp", table_name="log_entries")
    op.drop_index("ix_log_entries_date_key", table_name="log_entries")
    op.drop_index("ix_log_entries_timestamp", table_name="log_entries")
    op.drop_index("ix_log_entries_voyage_id", table_name="log_entries")
    op.drop_table("log_entries")
    op.drop_index("ix_voyages_is_active", table_name="voyages")
    op.drop_index("ix_voyages_start_timestamp", table_name="voyages")
    op.drop_table("voyages")
