from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.clients.schemas import ClientOverrides, ClientRead, StepResultRead


ActivityType = Literal["note", "call", "email", "meeting", "task", "proposal_sent", "follow_up"]


class StageCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    color: str = "#6B7280"
    sort_order: int | None = None
    is_default: bool = False
    is_won: bool = False
    is_lost: bool = False


class StageUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    color: str | None = None
    sort_order: int | None = None
    is_default: bool | None = None
    is_won: bool | None = None
    is_lost: bool | None = None


class StageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    color: str
    sort_order: int
    is_default: bool
    is_won: bool
    is_lost: bool
    is_active: bool


class LeadCreate(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    partner_first_name: str | None = None
    partner_last_name: str | None = None
    partner_email: EmailStr | None = None
    partner_phone: str | None = None
    wedding_date: date | None = None
    venue: str | None = None
    estimated_guest_count: int | None = Field(default=None, ge=0)
    estimated_budget: Decimal | None = Field(default=None, ge=0)
    wedding_type: str | None = None
    source: str | None = None
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    stage_id: UUID | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    stage_id: UUID | None
    first_name: str
    last_name: str | None
    email: str | None
    partner_first_name: str | None
    wedding_date: date | None
    estimated_budget: Decimal | None
    status: str
    converted_to_client_id: UUID | None
    converted_at: datetime | None
    lost_reason: str | None
    created_at: datetime


class MoveStageRequest(BaseModel):
    stage_id: UUID
    lost_reason: str | None = None


class ActivityCreate(BaseModel):
    type: ActivityType = "note"
    title: str = Field(min_length=1)
    description: str | None = None


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    actor_id: str | None
    type: str
    title: str
    description: str | None
    previous_stage_id: UUID | None
    new_stage_id: UUID | None
    metadata_json: dict[str, Any] = Field(serialization_alias="metadata")
    created_at: datetime


class LeadConversionResponse(BaseModel):
    lead: LeadRead
    client: ClientRead
    report: list[StepResultRead]


class LeadConvertRequest(ClientOverrides):
    pass
