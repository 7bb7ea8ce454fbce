from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


PlanningSide = Literal["bride", "groom", "both"]


class ClientFields(BaseModel):
    partner1_last_name: str | None = None
    partner1_email: EmailStr | None = None
    partner1_phone: str | None = None
    partner1_father_name: str | None = None
    partner1_mother_name: str | None = None
    partner2_first_name: str | None = None
    partner2_last_name: str | None = None
    partner2_email: EmailStr | None = None
    partner2_phone: str | None = None
    partner2_father_name: str | None = None
    partner2_mother_name: str | None = None
    wedding_name: str | None = None
    wedding_date: date | None = None
    venue: str | None = None
    budget: Decimal | None = Field(default=None, ge=0)
    guest_count: int | None = Field(default=None, ge=0)
    notes: str | None = None
    planning_side: PlanningSide = "both"
    wedding_type: str = "traditional"
    vendors: str | None = None


class ClientCreate(ClientFields):
    partner1_first_name: str = Field(min_length=1)


class ClientOverrides(ClientFields):
    partner1_first_name: str | None = Field(default=None, min_length=1)


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    partner1_first_name: str
    partner1_last_name: str | None
    partner1_email: str | None
    partner2_first_name: str | None
    partner2_last_name: str | None
    wedding_name: str | None
    wedding_date: date | None
    venue: str | None
    budget: Decimal | None
    guest_count: int | None
    status: str
    planning_side: str
    wedding_type: str
    notes: str | None
    metadata_json: dict[str, Any] = Field(serialization_alias="metadata")
    created_at: datetime
    deleted_at: datetime | None


class StepResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step: str
    ok: bool
    entry: str | None
    detail: str | None
    error: str | None


class ClientCreateResponse(BaseModel):
    client: ClientRead
    report: list[StepResultRead]
    credentials_stale: bool = False


class ClientDeleteResponse(BaseModel):
    client_id: UUID
    counts: dict[str, int]
