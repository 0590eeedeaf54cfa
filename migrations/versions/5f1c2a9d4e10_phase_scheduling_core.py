"""phase_scheduling_core

Create projects, phases, phase_dependencies, work_logs, audit_logs and
notifications tables.

Revision ID: 5f1c2a9d4e10
Revises:
Create Date: 2026-10-18 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5f1c2a9d4e10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("planned_total_weeks", sa.Float(), nullable=True),
            sa.Column("predicted_hours", sa.Float(), nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )

    if "phases" not in existing_tables:
        op.create_table(
            "phases",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("phase_order", sa.Integer(), nullable=False),
            sa.Column("phase_name", sa.String(length=200), nullable=False),
            sa.Column("is_custom", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="not_started"),
            sa.Column("planned_weeks", sa.Float(), nullable=False, server_default="0"),
            sa.Column("predicted_hours", sa.Float(), nullable=True),
            sa.Column("actual_hours", sa.Float(), nullable=False, server_default="0"),
            sa.Column("planned_start_date", sa.Date(), nullable=True),
            sa.Column("planned_end_date", sa.Date(), nullable=True),
            sa.Column("actual_start_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("actual_end_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("submitted_date", sa.Date(), nullable=True),
            sa.Column("approved_date", sa.Date(), nullable=True),
            sa.Column("warning_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("delay_reason", sa.String(length=10), nullable=False, server_default="none"),
            sa.Column("early_access_granted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("early_access_status", sa.String(length=20), nullable=False, server_default="not_accessible"),
            sa.Column("early_access_granted_by", sa.Integer(), nullable=True),
            sa.Column("early_access_granted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("early_access_note", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "phase_order", name="uq_phases_project_order"),
        )
        op.create_index("ix_phases_project_id", "phases", ["project_id"])
        op.create_index("ix_phases_project_status", "phases", ["project_id", "status"])

    if "phase_dependencies" not in existing_tables:
        op.create_table(
            "phase_dependencies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("predecessor_phase_id", sa.Integer(), nullable=False),
            sa.Column("successor_phase_id", sa.Integer(), nullable=False),
            sa.Column("dependency_type", sa.String(length=20), nullable=False, server_default="finish_to_start"),
            sa.Column("lag_days", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("weight_factor", sa.Float(), nullable=False, server_default="1.0"),
            sa.Column("is_critical_path", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["predecessor_phase_id"], ["phases.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["successor_phase_id"], ["phases.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("predecessor_phase_id", "successor_phase_id", name="uq_phase_dependency_pair"),
            sa.CheckConstraint("predecessor_phase_id != successor_phase_id", name="ck_phase_dependency_no_self"),
        )
        op.create_index("ix_phase_dependencies_project_id", "phase_dependencies", ["project_id"])
        op.create_index("ix_phase_dependencies_predecessor_phase_id", "phase_dependencies", ["predecessor_phase_id"])
        op.create_index("ix_phase_dependencies_successor_phase_id", "phase_dependencies", ["successor_phase_id"])

    if "work_logs" not in existing_tables:
        op.create_table(
            "work_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("phase_id", sa.Integer(), nullable=False),
            sa.Column("engineer_id", sa.Integer(), nullable=False),
            sa.Column("hours", sa.Float(), nullable=False, server_default="0"),
            sa.Column("work_date", sa.Date(), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["phase_id"], ["phases.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_work_logs_project_id", "work_logs", ["project_id"])
        op.create_index("ix_work_logs_phase_id", "work_logs", ["phase_id"])
        op.create_index("ix_work_logs_engineer_id", "work_logs", ["engineer_id"])
        op.create_index("ix_work_logs_phase_engineer", "work_logs", ["phase_id", "engineer_id"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor_id", sa.Integer(), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_project", "audit_logs", ["project_id"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=True),
            sa.Column("recipient", sa.String(length=150), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_project_id", "notifications", ["project_id"])
        op.create_index("ix_notifications_recipient", "notifications", ["recipient"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "notifications" in existing_tables:
        op.drop_index("ix_notifications_recipient", table_name="notifications")
        op.drop_index("ix_notifications_project_id", table_name="notifications")
        op.drop_table("notifications")

    if "audit_logs" in existing_tables:
        op.drop_index("idx_audit_ts", table_name="audit_logs")
        op.drop_index("idx_audit_action", table_name="audit_logs")
        op.drop_index("idx_audit_actor", table_name="audit_logs")
        op.drop_index("idx_audit_project", table_name="audit_logs")
        op.drop_index("idx_audit_entity", table_name="audit_logs")
        op.drop_table("audit_logs")

    if "work_logs" in existing_tables:
        op.drop_index("ix_work_logs_phase_engineer", table_name="work_logs")
        op.drop_index("ix_work_logs_engineer_id", table_name="work_logs")
        op.drop_index("ix_work_logs_phase_id", table_name="work_logs")
        op.drop_index("ix_work_logs_project_id", table_name="work_logs")
        op.drop_table("work_logs")

    if "phase_dependencies" in existing_tables:
        op.drop_index("ix_phase_dependencies_successor_phase_id", table_name="phase_dependencies")
        op.drop_index("ix_phase_dependencies_predecessor_phase_id", table_name="phase_dependencies")
        op.drop_index("ix_phase_dependencies_project_id", table_name="phase_dependencies")
        op.drop_table("phase_dependencies")

    if "phases" in existing_tables:
        op.drop_index("ix_phases_project_status", table_name="phases")
        op.drop_index("ix_phases_project_id", table_name="phases")
        op.drop_table("phases")

    if "projects" in existing_tables:
        op.drop_table("projects")
