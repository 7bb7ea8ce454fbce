from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Uuid, event
from sqlalchemy.orm import Mapped, ORMExecuteState, Session, declared_attr, mapped_column, with_loader_criteria

from app import audit
from app.core.errors import ConfigurationError, ForbiddenError
from app.metrics import observe_tenant_denied_write
from app.tenancy.context import TenantBinding
from app.tenancy.scope import get_binding


class TenantScoped:
    """Mixin for rows partitioned by company; mirrored by the tenant_isolation policy."""

    @declared_attr
    def company_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(as_uuid=True),
            ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


def _resource_name(obj: Any) -> str:
    return getattr(obj, "__tablename__", type(obj).__name__)


def _emit_tenant_denied(obj: Any, binding: TenantBinding) -> None:
    resource = _resource_name(obj)
    observe_tenant_denied_write(resource)
    audit.record(
        actor_user_id="system",
        entity_type="tenancy.write",
        entity_id=str(getattr(obj, "id", "") or ""),
        action="denied",
        before=None,
        after={
            "resource": resource,
            "row_company_id": str(obj.company_id),
            "bound_company_id": str(binding.company_id) if binding.company_id else None,
        },
    )


def validate_tenant_write(obj: TenantScoped, binding: TenantBinding) -> None:
    """Stamp the bound company on new rows and reject rows of another company."""

    if obj.company_id is None:
        if binding.company_id is None:
            raise ConfigurationError(f"Cannot write '{_resource_name(obj)}' without a company")
        obj.company_id = binding.company_id
        return

    if binding.bypass:
        return

    if obj.company_id != binding.company_id:
        _emit_tenant_denied(obj, binding)
        raise ForbiddenError(f"Out-of-scope company for resource '{_resource_name(obj)}'")


@event.listens_for(Session, "do_orm_execute")
def _filter_tenant_rows(state: ORMExecuteState) -> None:
    if not state.is_select or state.is_column_load or state.is_relationship_load:
        return
    binding = get_binding(state.session)
    if binding is None or binding.bypass:
        return

    company_id = binding.company_id
    state.statement = state.statement.options(
        with_loader_criteria(
            TenantScoped,
            lambda cls: cls.company_id == company_id,
            include_aliases=True,
        )
    )


@event.listens_for(Session, "before_flush")
def _guard_tenant_writes(session: Session, flush_context: Any, instances: Any) -> None:
    binding = get_binding(session)
    if binding is None:
        return
    for obj in [*session.new, *session.dirty]:
        if isinstance(obj, TenantScoped):
            validate_tenant_write(obj, binding)
