"""Deliverables and compliance steps"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_compliance_workflow"
down_revision = None
branch_labels = None
depends_on = None


deliverable_version = sa.Enum("v1", "v2", "v3", name="deliverable_version")
deliverable_status = sa.Enum("pending", "submitted", "approved", "rejected", name="deliverable_status")
step_type = sa.Enum(
    "form_text",
    "form_textarea",
    "checklist",
    "dynamic_list",
    "file_upload",
    "approval",
    "correction_list",
    name="compliance_step_type",
)
step_status = sa.Enum(
    "locked",
    "pending",
    "draft",
    "submitted",
    "approved",
    "rejected",
    "completed",
    name="compliance_step_status",
)


def upgrade() -> None:
    op.create_table(
        "deliverables",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("org_id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("version", deliverable_version, nullable=False, server_default="v1"),
        sa.Column("status", deliverable_status, nullable=False, server_default="pending"),
        sa.Column("compliance_progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_deliverables_org_project", "deliverables", ["org_id", "project_id"])

    op.create_table(
        "compliance_steps",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "deliverable_id",
            sa.Uuid(),
            sa.ForeignKey("deliverables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("step_type", step_type, nullable=False),
        sa.Column("status", step_status, nullable=False, server_default="pending"),
        sa.Column("form_schema", sa.JSON(), nullable=True),
        sa.Column("form_data", sa.JSON(), nullable=True),
        sa.Column("checklist_items", sa.JSON(), nullable=True),
        sa.Column("dynamic_list_data", sa.JSON(), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("admin_feedback", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("deliverable_id", "position", name="uq_compliance_steps_deliverable_position"),
    )
    op.create_index("idx_compliance_steps_status", "compliance_steps", ["status"])


def downgrade() -> None:
    op.drop_index("idx_compliance_steps_status", table_name="compliance_steps")
    op.drop_table("compliance_steps")
    op.drop_index("idx_deliverables_org_project", table_name="deliverables")
    op.drop_table("deliverables")
    bind = op.get_bind()
    for enum_type in (step_status, step_type, deliverable_status, deliverable_version):
        enum_type.drop(bind, checkfirst=True)
