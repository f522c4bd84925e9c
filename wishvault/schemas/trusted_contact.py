"""Trusted contact schemas. The invite token is never part of a response."""
from datetime import datetime
from pydantic import BaseModel, EmailStr, field_validator


class TrustedContactCreate(BaseModel):
    contact_email: EmailStr
    contact_name: str

    @field_validator("contact_name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Contact name is required.")
        return v


class TrustedContactResponse(BaseModel):
    id: int
    vault_id: int
    contact_email: str
    contact_name: str
    status: str
    invited_at: datetime | None = None
    confirmed_at: datetime | None = None
    denied_at: datetime | None = None

    class Config:
        from_attributes = True


class Nomination(BaseModel):
    """A vault in which the caller is nominated (shown on the contact's dashboard)."""
    contact_id: int
    vault_id: int
    owner_name: str | None = None
    owner_email: str
    status: str
    release_approved: bool = False
