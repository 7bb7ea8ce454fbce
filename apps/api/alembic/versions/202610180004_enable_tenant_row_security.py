"""enable tenant row security

Revision ID: 202610180004
Revises: 202610180003
Create Date: 2026-10-18 00:04:00
"""

from collections.abc import Sequence

from alembic import op


revision: str = "202610180004"
down_revision: str | None = "202610180003"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


TENANT_TABLES = (
    "clients",
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
    "pipeline_stages",
    "pipeline_leads",
    "pipeline_activities",
)


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    if not _is_postgres():
        return

    op.execute(
        """
        CREATE OR REPLACE FUNCTION current_company_id() RETURNS text
        LANGUAGE sql STABLE AS $$
            SELECT NULLIF(current_setting('app.current_company_id', true), '')
        $$
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION current_app_role() RETURNS text
        LANGUAGE sql STABLE AS $$
            SELECT NULLIF(current_setting('app.current_role', true), '')
        $$
        """
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION is_super_admin() RETURNS boolean
        LANGUAGE sql STABLE AS $$
            SELECT coalesce(current_app_role() = 'super_admin', false)
        $$
        """
    )

    for table in TENANT_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} FORCE ROW LEVEL SECURITY")
        op.execute(
            f"""
            CREATE POLICY tenant_isolation ON {table}
            USING (company_id::text = current_company_id() OR is_super_admin())
            WITH CHECK (company_id::text = current_company_id() OR is_super_admin())
            """
        )


def downgrade() -> None:
    if not _is_postgres():
        return

    for table in reversed(TENANT_TABLES):
        op.execute(f"DROP POLICY IF EXISTS tenant_isolation ON {table}")
        op.execute(f"ALTER TABLE {table} NO FORCE ROW LEVEL SECURITY")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")

    op.execute("DROP FUNCTION IF EXISTS is_super_admin()")
    op.execute("DROP FUNCTION IF EXISTS current_app_role()")
    op.execute("DROP FUNCTION IF EXISTS current_company_id()")
