"""Initial schema: concepts, monthly dues, workers, payroll payments, audit logs.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-11-12 13:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def upgrade() -> None:
    # Concept catalog
    op.create_table(
        "concepts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=50), nullable=False),
        sa.Column("label", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_concepts_key", "concepts", ["key"], unique=True)

    # Monthly dues
    op.create_table(
        "monthly_dues",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("resident_id", sa.String(length=100), nullable=False),
        sa.Column("resident_name", sa.String(length=255), nullable=True),
        sa.Column("resident_email", sa.String(length=255), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("base_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("surcharge_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("surcharge_percent", sa.Numeric(5, 2), nullable=False, server_default="10"),
        sa.Column(
            "state",
            sa.Enum("PENDING", "OVERDUE", "DELINQUENT", "PAID", name="duestate"),
            nullable=False,
        ),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("grace_date", sa.DateTime(), nullable=False),
        sa.Column("delinquency_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_session_id", sa.String(length=255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("resident_id", "year", "month", name="uq_monthly_due_resident_period"),
    )
    op.create_index("ix_monthly_dues_resident_id", "monthly_dues", ["resident_id"])
    op.create_index("ix_monthly_dues_state", "monthly_dues", ["state"])
    op.create_index("ix_monthly_dues_payment_session_id", "monthly_dues", ["payment_session_id"])
    op.create_index("idx_monthly_due_period", "monthly_dues", ["year", "month"])
    op.create_index("idx_monthly_due_state_grace", "monthly_dues", ["state", "grace_date"])

    # Workers
    op.create_table(
        "workers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("worker_type", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Payroll payments
    op.create_table(
        "payroll_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("state", sa.Enum("COMPLETED", name="payrollstate"), nullable=False),
        sa.Column("reference", sa.String(length=100), nullable=False),
        sa.Column("paid_by", sa.String(length=255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reference"),
        sa.UniqueConstraint("worker_id", "year", "month", name="uq_payroll_worker_period"),
    )
    op.create_index("ix_payroll_payments_worker_id", "payroll_payments", ["worker_id"])

    # Audit trail
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("payroll_payments")
    op.drop_table("workers")
    op.drop_table("monthly_dues")
    op.drop_table("concepts")
