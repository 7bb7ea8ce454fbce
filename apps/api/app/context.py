from __future__ import annotations

from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
company_id_var: ContextVar[str | None] = ContextVar("company_id", default=None)


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def set_company_id(value: str | None) -> Token[str | None]:
    return company_id_var.set(value)


def reset_company_id(token: Token[str | None]) -> None:
    company_id_var.reset(token)


def get_company_id() -> str | None:
    return company_id_var.get()


def get_log_context() -> dict[str, str | None]:
    return {"correlation_id": get_correlation_id(), "company_id": get_company_id()}
