"""create pipeline tables

Revision ID: 202610180003
Revises: 202610180002
Create Date: 2026-10-18 00:03:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610180003"
down_revision: str | None = "202610180002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "pipeline_stages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=16), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_won", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_lost", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_pipeline_stages_company_id", "pipeline_stages", ["company_id"])

    op.create_table(
        "pipeline_leads",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("stage_id", sa.Uuid(), sa.ForeignKey("pipeline_stages.id"), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("partner_first_name", sa.Text(), nullable=True),
        sa.Column("partner_last_name", sa.Text(), nullable=True),
        sa.Column("partner_email", sa.Text(), nullable=True),
        sa.Column("partner_phone", sa.String(length=64), nullable=True),
        sa.Column("wedding_date", sa.Date(), nullable=True),
        sa.Column("venue", sa.Text(), nullable=True),
        sa.Column("estimated_guest_count", sa.Integer(), nullable=True),
        sa.Column("estimated_budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("wedding_type", sa.String(length=32), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=True),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("assignee_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="new"),
        sa.Column("last_contacted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_follow_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("converted_to_client_id", sa.Uuid(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("converted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lost_reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_pipeline_leads_company_id", "pipeline_leads", ["company_id"])
    op.create_index("ix_pipeline_leads_stage_id", "pipeline_leads", ["stage_id"])

    op.create_table(
        "pipeline_activities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
        sa.Column("lead_id", sa.Uuid(), sa.ForeignKey("pipeline_leads.id"), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("previous_stage_id", sa.Uuid(), nullable=True),
        sa.Column("new_stage_id", sa.Uuid(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_pipeline_activities_company_id", "pipeline_activities", ["company_id"])
    op.create_index("ix_pipeline_activities_lead_id", "pipeline_activities", ["lead_id"])


def downgrade() -> None:
    op.drop_index("ix_pipeline_activities_lead_id", table_name="pipeline_activities")
    op.drop_index("ix_pipeline_activities_company_id", table_name="pipeline_activities")
    op.drop_table("pipeline_activities")
    op.drop_index("ix_pipeline_leads_stage_id", table_name="pipeline_leads")
    op.drop_index("ix_pipeline_leads_company_id", table_name="pipeline_leads")
    op.drop_table("pipeline_leads")
    op.drop_index("ix_pipeline_stages_company_id", table_name="pipeline_stages")
    op.drop_table("pipeline_stages")
