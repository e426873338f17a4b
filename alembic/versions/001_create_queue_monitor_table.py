"""Create queue monitor table

Revision ID: 001_create_queue_monitor
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op
from queue_monitor.config import get_settings

# revision identifiers, used by Alembic.
revision: str = "001_create_queue_monitor"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TABLE = get_settings().monitor_table


def upgrade() -> None:
    op.create_table(
        TABLE,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_uuid", sa.String(64), nullable=True),
        sa.Column("job_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("queue", sa.String(255), nullable=True),
        sa.Column("queued_at", sa.DateTime(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("started_at_exact", sa.String(32), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("finished_at_exact", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="queued"),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("progress", sa.Integer(), nullable=True),
        sa.Column("exception_class", sa.String(255), nullable=True),
        sa.Column("exception_message", sa.Text(), nullable=True),
        sa.Column("exception", sa.Text(), nullable=True),
        sa.Column("data", sa.Text(), nullable=True),
        sa.Column("retried", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(f"ix_{TABLE}_job_id", TABLE, ["job_id"])
    op.create_index(f"ix_{TABLE}_job_uuid", TABLE, ["job_uuid"])
    op.create_index(f"ix_{TABLE}_started_at", TABLE, ["started_at"])
    op.create_index(f"ix_{TABLE}_status", TABLE, ["status"])


def downgrade() -> None:
    op.drop_index(f"ix_{TABLE}_status", table_name=TABLE)
    op.drop_index(f"ix_{TABLE}_started_at", table_name=TABLE)
    op.drop_index(f"ix_{TABLE}_job_uuid", table_name=TABLE)
    op.drop_index(f"ix_{TABLE}_job_id", table_name=TABLE)
    op.drop_table(TABLE)
