"""Data release request schemas."""
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, field_validator

ReleaseDecision = Literal["approved", "denied"]


class ReleaseRequestCreate(BaseModel):
    deceased_name: str
    death_certificate: str | None = None  # reference to an uploaded document

    @field_validator("deceased_name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Name of the deceased is required.")
        return v


class ReleaseRequestResponse(BaseModel):
    id: int
    vault_id: int
    requester_id: int
    deceased_name: str
    death_certificate: str | None = None
    status: str
    request_date: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: int | None = None

    class Config:
        from_attributes = True
