"""Email recipients.

Revision ID: 002_email_recipients
Revises: 001_logbook
Create Date: 2026-10-18

Report recipients managed through the API instead of only EMAIL_RECIPIENTS.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002_email_recipients"
down_revision = "001_logbook"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "email_recipients",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("email", name="uq_email_recipients_email"),
    )


def downgrade() -> None:
    op.drop_table("email_recipients")
