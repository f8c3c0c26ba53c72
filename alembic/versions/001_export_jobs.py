"""Export jobs table

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates: export_jobs
Enums: exporttype, exportjobstatus
Requires: mst_user (owned by the master-data schema)
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ── 1. Create enum types ──────────────────────────────────────────────
    op.execute("""
        CREATE TYPE exporttype AS ENUM (
            'assets', 'scan_logs', 'status_history'
        );
    """)
    op.execute("""
        CREATE TYPE exportjobstatus AS ENUM (
            'PENDING', 'COMPLETED', 'FAILED'
        );
    """)

    # ── 2. Create export_jobs table ───────────────────────────────────────
    op.execute("""
        CREATE TABLE export_jobs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            requested_by VARCHAR(20) NOT NULL REFERENCES mst_user(user_id) ON DELETE CASCADE,
            export_type exporttype NOT NULL,
            config JSONB NOT NULL DEFAULT '{}',
            status exportjobstatus NOT NULL DEFAULT 'PENDING',
            error_message TEXT,
            file_path VARCHAR(500),
            file_name VARCHAR(255),
            file_size BIGINT,
            total_records INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ NOT NULL,
            completed_at TIMESTAMPTZ
        );
    """)
    op.execute("CREATE INDEX ix_export_jobs_requested_by ON export_jobs (requested_by);")
    op.execute("CREATE INDEX ix_export_jobs_status ON export_jobs (status);")
    op.execute("CREATE INDEX ix_export_jobs_created_at ON export_jobs (created_at);")
    op.execute("CREATE INDEX ix_export_jobs_expires_at ON export_jobs (expires_at);")
    op.execute("CREATE INDEX ix_export_jobs_file_name ON export_jobs (file_name);")

    # ── 3. One PENDING job per owner ─────────────────────────────────────
    op.execute("""
        CREATE UNIQUE INDEX uq_export_jobs_pending_owner
            ON export_jobs (requested_by)
            WHERE status = 'PENDING';
    """)


def downgrade() -> None:
    # ── Drop table ─────────────────────────────────────────────────────────
    op.execute("DROP INDEX IF EXISTS uq_export_jobs_pending_owner;")
    op.execute("DROP INDEX IF EXISTS ix_export_jobs_file_name;")
    op.execute("DROP INDEX IF EXISTS ix_export_jobs_expires_at;")
    op.execute("DROP INDEX IF EXISTS ix_export_jobs_created_at;")
    op.execute("DROP INDEX IF EXISTS ix_export_jobs_status;")
    op.execute("DROP INDEX IF EXISTS ix_export_jobs_requested_by;")
    op.execute("DROP TABLE IF EXISTS export_jobs;")

    # ── Drop enum types ────────────────────────────────────────────────────
    op.execute("DROP TYPE IF EXISTS exportjobstatus;")
    op.execute("DROP TYPE IF EXISTS exporttype;")
