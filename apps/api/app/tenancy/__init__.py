from app.tenancy.context import CLIENT_USER, COMPANY_ADMIN, ROLES, STAFF, SUPER_ADMIN, Principal, TenantBinding
from app.tenancy.rls import TenantScoped, validate_tenant_write
from app.tenancy.scope import (
    clear_tenant_scope,
    get_binding,
    rebind_tenant,
    tenant_scope,
    tenant_session_scope,
    with_tenant_scope,
)

__all__ = [
    "CLIENT_USER",
    "COMPANY_ADMIN",
    "ROLES",
    "STAFF",
    "SUPER_ADMIN",
    "Principal",
    "TenantBinding",
    "TenantScoped",
    "clear_tenant_scope",
    "get_binding",
    "rebind_tenant",
    "tenant_scope",
    "tenant_session_scope",
    "validate_tenant_write",
    "with_tenant_scope",
]
