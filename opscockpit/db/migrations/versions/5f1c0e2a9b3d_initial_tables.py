"""initial tables

Revision ID: 5f1c0e2a9b3d
Revises:
Create Date: 2025-06-02 10:12:31.417262

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "5f1c0e2a9b3d"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "jobs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("command", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column(
            "started_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("type IN ('local', 'ssh')", name="ck_jobs_type"),
        sa.CheckConstraint(
            "status IN ('running', 'success', 'failed')", name="ck_jobs_status"
        ),
    )
    op.create_table(
        "job_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "job_id",
            sa.String(length=36),
            sa.ForeignKey("jobs.id", ondelete="cascade"),
            nullable=False,
        ),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("stream", sa.String(length=16), nullable=False),
        sa.Column("data", sa.Text(), nullable=False),
        sa.CheckConstraint("stream IN ('stdout', 'stderr')", name="ck_job_logs_stream"),
    )
    op.create_index(
        "idx_job_logs_job_timestamp", "job_logs", ["job_id", "timestamp"]
    )


def downgrade() -> None:
    op.drop_index("idx_job_logs_job_timestamp", table_name="job_logs")
    op.drop_table("job_logs")
    op.drop_table("jobs")
