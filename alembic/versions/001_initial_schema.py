"""initial schema: users, projects, categories, requests, approvals, stock ledger, audit

Revision ID: 001
Revises:
Create Date: 2026-03-02

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("designation", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("must_change_password", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("password_changed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'user')", name="chk_user_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        *_timestamps(),
        sa.CheckConstraint("status IN ('active', 'completed')", name="chk_project_status"),
    )
    op.create_index("ix_projects_name", "projects", ["name"])

    op.create_table(
        "material_categories",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_material_categories_slug", "material_categories", ["slug"], unique=True)

    op.create_table(
        "counters",
        sa.Column("name", sa.String(length=50), primary_key=True, nullable=False),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "material_requests",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("request_number", sa.String(length=32), nullable=False),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("request_type", sa.String(length=50), nullable=False, server_default="stock_request"),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("required_date", sa.Date(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("requester_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected', 'closed')",
            name="chk_material_request_status",
        ),
        sa.CheckConstraint("priority IN ('normal', 'urgent')", name="chk_material_request_priority"),
    )
    op.create_index("ix_material_requests_request_number", "material_requests", ["request_number"], unique=True)
    op.create_index("ix_material_requests_project_id", "material_requests", ["project_id"])
    op.create_index("ix_material_requests_requester_id", "material_requests", ["requester_id"])
    op.create_index("ix_material_requests_status", "material_requests", ["status"])
    op.create_index("ix_material_requests_created_at", "material_requests", ["created_at"])

    op.create_table(
        "material_request_items",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("material_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("specification", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=False),
        sa.Column("preferred_brand", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="chk_request_item_quantity_positive"),
        sa.CheckConstraint("unit IN ('nos', 'bags', 'kg', 'ton', 'm3')", name="chk_request_item_unit"),
    )
    op.create_index("ix_material_request_items_request_id", "material_request_items", ["request_id"])

    op.create_table(
        "approvals",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("material_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("action IN ('approved', 'rejected')", name="chk_approval_action"),
    )
    op.create_index("ix_approvals_request_id", "approvals", ["request_id"])

    op.create_table(
        "stock_items",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("date", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("item", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("qty", sa.Float(), nullable=False, server_default="0"),
        sa.Column("unit", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=255), nullable=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("material_requests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("request_id IS NULL OR qty <= 0", name="ck_stock_items_request_on_issue_only"),
    )
    op.create_index("ix_stock_items_request_id", "stock_items", ["request_id"])
    op.create_index("ix_stock_items_created_at", "stock_items", ["created_at"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=True),
        sa.Column("entity_name", sa.String(length=255), nullable=True),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("user_name", sa.String(length=255), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_user_id", "audit_events", ["user_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("idx_audit_entity", "audit_events", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("stock_items")
    op.drop_table("approvals")
    op.drop_table("material_request_items")
    op.drop_table("material_requests")
    op.drop_table("counters")
    op.drop_table("material_categories")
    op.drop_table("projects")
    op.drop_table("users")
