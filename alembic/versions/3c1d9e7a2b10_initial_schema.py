"""Initial SideLedger schema.

Creates principals, the project roster, the per-day attendance ledger and the
expense/invoice ledgers. Enum columns store member names, matching
SQLAlchemy's default `Enum(PyEnum)` persistence.

Revision ID: 3c1d9e7a2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1d9e7a2b10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


role = sa.Enum("ADMIN", "WORKER", name="role")
worker_status = sa.Enum("ACTIVE", "INACTIVE", name="workerstatus")
attendance_status = sa.Enum("PRESENT", "ABSENT", "HALF_DAY", "LEAVE", "PENDING", name="attendancestatus")
project_status = sa.Enum("ACTIVE", "COMPLETED", "ON_HOLD", name="projectstatus")
expense_category = sa.Enum("MATERIALS", "LABOR", "EQUIPMENT", "MISCELLANEOUS", name="expensecategory")
expense_status = sa.Enum("PENDING", "PAID", name="expensestatus")
invoice_status = sa.Enum("DRAFT", "SENT", "PAID", name="invoicestatus")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", role, nullable=False),
        sa.Column("status", worker_status, nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("worker_role", sa.String(length=80), nullable=True),
        sa.Column("specialty", sa.String(length=120), nullable=True),
        sa.Column("daily_rate", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=140), nullable=False),
        sa.Column("client", sa.String(length=140), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("budget", sa.Float(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", project_status, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "project_workers",
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), primary_key=True),
    )

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("worker_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("time_in", sa.DateTime(), nullable=True),
        sa.Column("time_out", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("worker_id", "date", name="uq_attendance_worker_date"),
    )
    op.create_index("ix_attendance_worker_id", "attendance", ["worker_id"])
    op.create_index("ix_attendance_date", "attendance", ["date"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor", sa.String(length=200), nullable=False),
        sa.Column("category", expense_category, nullable=False),
        sa.Column("sub_category", sa.String(length=120), nullable=True),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("total_gst", sa.Float(), nullable=False),
        sa.Column("invoice_number", sa.String(length=80), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("invoice_url", sa.String(length=500), nullable=True),
        sa.Column("status", expense_status, nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_expenses_invoice_date", "expenses", ["invoice_date"])

    op.create_table(
        "expense_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("expense_id", sa.Integer(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("gst_rate", sa.Float(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_number", sa.String(length=80), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("company_name", sa.String(length=200), nullable=False),
        sa.Column("company_address", sa.Text(), nullable=True),
        sa.Column("company_email", sa.String(length=255), nullable=True),
        sa.Column("company_phone", sa.String(length=40), nullable=True),
        sa.Column("client_name", sa.String(length=200), nullable=False),
        sa.Column("client_address", sa.Text(), nullable=True),
        sa.Column("client_email", sa.String(length=255), nullable=True),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("status", invoice_status, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_invoices_date", "invoices", ["date"])

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=300), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("invoice_items")
    op.drop_index("ix_invoices_date", table_name="invoices")
    op.drop_table("invoices")
    op.drop_table("expense_items")
    op.drop_index("ix_expenses_invoice_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_attendance_date", table_name="attendance")
    op.drop_index("ix_attendance_worker_id", table_name="attendance")
    op.drop_table("attendance")
    op.drop_table("project_workers")
    op.drop_table("projects")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (invoice_status, expense_status, expense_category, attendance_status, project_status, worker_status, role):
        enum_type.drop(bind, checkfirst=True)
