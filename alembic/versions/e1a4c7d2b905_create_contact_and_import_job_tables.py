"""create_contact_and_import_job_tables

Revision ID: e1a4c7d2b905
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "e1a4c7d2b905"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Apply migration - create contact and import_job tables."""
    op.create_table(
        "contact",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("meta", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        # Natural key: the upsert classification depends on it
        sa.UniqueConstraint("email", name="uq_contact_email"),
        sa.CheckConstraint("char_length(name) > 0", name="ck_contact_name_not_empty"),
        sa.CheckConstraint("char_length(email) > 0", name="ck_contact_email_not_empty"),
    )

    op.create_table(
        "import_job",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(length=32), nullable=False),
        sa.Column("token", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("summary", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error_type", sa.String(length=100), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        # One ledger row per idempotency token
        sa.UniqueConstraint("token", name="uq_import_job_token"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_import_job_valid_status",
        ),
        sa.CheckConstraint("total >= 0", name="ck_import_job_total_non_negative"),
    )

    op.create_index(op.f("ix_import_job_job_id"), "import_job", ["job_id"], unique=True)
    op.create_index(op.f("ix_import_job_status"), "import_job", ["status"], unique=False)
    op.create_index(
        "ix_import_job_status_created_at",
        "import_job",
        ["status", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration - drop import_job and contact tables."""
    op.drop_index("ix_import_job_status_created_at", table_name="import_job")
    op.drop_index(op.f("ix_import_job_status"), table_name="import_job")
    op.drop_index(op.f("ix_import_job_job_id"), table_name="import_job")
    op.drop_table("import_job")
    op.drop_table("contact")
