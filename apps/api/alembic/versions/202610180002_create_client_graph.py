"""create client graph

Revision ID: 202610180002
Revises: 202610180001
Create Date: 2026-10-18 00:02:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "202610180002"
down_revision: str | None = "202610180001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

def _tenant_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_id", sa.Uuid(), sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
    ]

def _client_column() -> sa.Column:
    return sa.Column("client_id", sa.Uuid(), sa.ForeignKey("clients.id"), nullable=False)

def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)

def _indexed(table: str, *columns: str) -> None:
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column])

CLIENT_CHILD_TABLES = (
    "events",
    "timeline",
    "vendors",
    "budget",
    "client_vendors",
    "guests",
    "hotels",
    "guest_transport",
    "guest_gifts",
    "floor_plans",
    "floor_plan_tables",
    "floor_plan_guests",
    "documents",
    "gifts",
    "gifts_enhanced",
    "messages",
    "payments",
    "wedding_websites",
    "activity",
    "client_users",
)

def upgrade() -> None:
    op.create_table(
        "clients",
        *_tenant_columns(),
        sa.Column("partner1_first_name", sa.Text(), nullable=False),
        sa.Column("partner1_last_name", sa.Text(), nullable=True),
        sa.Column("partner1_email", sa.Text(), nullable=True),
        sa.Column("partner1_phone", sa.String(length=64), nullable=True),
        sa.Column("partner1_father_name", sa.Text(), nullable=True),
        sa.Column("partner1_mother_name", sa.Text(), nullable=True),
        sa.Column("partner2_first_name", sa.Text(), nullable=True),
        sa.Column("partner2_last_name", sa.Text(), nullable=True),
        sa.Column("partner2_email", sa.Text(), nullable=True),
        sa.Column("partner2_phone", sa.String(length=64), nullable=True),
        sa.Column("partner2_father_name", sa.Text(), nullable=True),
        sa.Column("partner2_mother_name", sa.Text(), nullable=True),
        sa.Column("wedding_name", sa.Text(), nullable=True),
        sa.Column("wedding_date", sa.Date(), nullable=True),
        sa.Column("venue", sa.Text(), nullable=True),
        sa.Column("budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="planning"),
        sa.Column("planning_side", sa.String(length=16), nullable=False, server_default="both"),
        sa.Column("wedding_type", sa.String(length=32), nullable=False, server_default="traditional"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    _indexed("clients", "company_id")

    op.create_table(
        "events",
        *_tenant_columns(),
        _client_column(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("venue_name", sa.Text(), nullable=True),
        sa.Column("guest_count", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "timeline",
        *_tenant_columns(),
        _client_column(),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "vendors",
        *_tenant_columns(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("contact_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("is_preferred", sa.Boolean(), nullable=False, server_default="false"),
        _created_at(),
    )
    op.create_table(
        "budget",
        *_tenant_columns(),
        _client_column(),
        sa.Column("vendor_id", sa.Uuid(), sa.ForeignKey("vendors.id"), nullable=True),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("segment", sa.String(length=32), nullable=True),
        sa.Column("item", sa.Text(), nullable=False),
        sa.Column("estimated_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("actual_cost", sa.Numeric(14, 2), nullable=True),
        sa.Column("paid_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("payment_status", sa.String(length=32), nullable=False),
        sa.Column("client_visible", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "client_vendors",
        *_tenant_columns(),
        _client_column(),
        sa.Column("vendor_id", sa.Uuid(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("contract_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("payment_status", sa.String(length=32), nullable=False),
        sa.Column("approval_status", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "guests",
        *_tenant_columns(),
        _client_column(),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("rsvp_status", sa.String(length=32), nullable=False),
        sa.Column("party_size", sa.Integer(), nullable=False),
        _created_at(),
    )
    op.create_table(
        "hotels",
        *_tenant_columns(),
        _client_column(),
        sa.Column("guest_id", sa.Uuid(), sa.ForeignKey("guests.id"), nullable=True),
        sa.Column("hotel_name", sa.Text(), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=True),
        sa.Column("check_out_date", sa.Date(), nullable=True),
        sa.Column("room_type", sa.String(length=64), nullable=True),
        _created_at(),
    )
    op.create_table(
        "guest_transport",
        *_tenant_columns(),
        _client_column(),
        sa.Column("guest_id", sa.Uuid(), sa.ForeignKey("guests.id"), nullable=True),
        sa.Column("pickup_location", sa.Text(), nullable=True),
        sa.Column("pickup_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vehicle", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "guest_gifts",
        *_tenant_columns(),
        _client_column(),
        sa.Column("guest_id", sa.Uuid(), sa.ForeignKey("guests.id"), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        _created_at(),
    )
    op.create_table(
        "floor_plans",
        *_tenant_columns(),
        _client_column(),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_table(
        "floor_plan_tables",
        *_tenant_columns(),
        sa.Column("floor_plan_id", sa.Uuid(), sa.ForeignKey("floor_plans.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
    )
    op.create_table(
        "floor_plan_guests",
        *_tenant_columns(),
        sa.Column("table_id", sa.Uuid(), sa.ForeignKey("floor_plan_tables.id"), nullable=False),
        sa.Column("guest_id", sa.Uuid(), sa.ForeignKey("guests.id"), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=True),
    )
    op.create_table(
        "documents",
        *_tenant_columns(),
        _client_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("document_type", sa.String(length=64), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "gifts",
        *_tenant_columns(),
        _client_column(),
        sa.Column("gift_name", sa.Text(), nullable=False),
        sa.Column("from_name", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "gifts_enhanced",
        *_tenant_columns(),
        _client_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("guest_name", sa.Text(), nullable=True),
        sa.Column("value", sa.Numeric(14, 2), nullable=True),
        sa.Column("thank_you_sent", sa.Boolean(), nullable=False, server_default="false"),
        _created_at(),
    )
    op.create_table(
        "messages",
        *_tenant_columns(),
        _client_column(),
        sa.Column("sender_user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        _created_at(),
    )
    op.create_table(
        "payments",
        *_tenant_columns(),
        _client_column(),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("gateway_reference", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "wedding_websites",
        *_tenant_columns(),
        _client_column(),
        sa.Column("subdomain", sa.String(length=63), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default="false"),
        _created_at(),
        sa.UniqueConstraint("client_id", name="uq_wedding_websites_client"),
    )
    op.create_table(
        "activity",
        *_tenant_columns(),
        _client_column(),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        _created_at(),
    )
    op.create_table(
        "client_users",
        *_tenant_columns(),
        _client_column(),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("relationship", sa.String(length=32), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default="false"),
        _created_at(),
        sa.UniqueConstraint("client_id", "user_id", name="uq_client_users_client_user"),
    )

    for table in CLIENT_CHILD_TABLES:
        _indexed(table, "company_id")
        if table not in {"vendors", "floor_plan_tables", "floor_plan_guests"}:
            _indexed(table, "client_id")
    _indexed("floor_plan_tables", "floor_plan_id")
    _indexed("floor_plan_guests", "table_id")


def downgrade() -> None:
    for table in reversed(CLIENT_CHILD_TABLES):
        op.drop_table(table)
    op.drop_table("clients")
