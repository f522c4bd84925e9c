"""Vault payloads. Everything here is plaintext; ciphertext never leaves the store."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class FuneralAttendees(BaseModel):
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


class FuneralVisuals(BaseModel):
    photos: bool = False
    slideshow: bool = False
    videos: bool = False


class FuneralPlan(BaseModel):
    """Structured funeral wishes captured by the planning wizard. Stored encrypted as one blob."""
    religious_orientation: str | None = None
    denomination: str = ""
    spiritual_elements: bool = False
    faith_leader: str = ""
    service_location: str = ""
    readings: list[str] = Field(default_factory=list)
    traditions: list[str] = Field(default_factory=list)
    dress_code: str = ""
    nature_preferences: str = ""
    poems: list[str] = Field(default_factory=list)
    music: list[str] = Field(default_factory=list)
    service_type: str | None = None
    disposal_method: str | None = None
    disposal_details: str = ""
    remains_location: str = ""
    attendees: FuneralAttendees = Field(default_factory=FuneralAttendees)
    tone: str | None = None
    speakers: list[str] = Field(default_factory=list)
    visuals: FuneralVisuals = Field(default_factory=FuneralVisuals)
    family_notes: str = ""


class VaultPatch(BaseModel):
    """Partial vault update. Only fields that were explicitly set are written;
    an explicit None or empty string clears the stored value."""
    model_config = ConfigDict(extra="forbid")

    funeral_wishes: str | None = None
    funeral_data: FuneralPlan | None = None
    life_insurance: str | None = None
    banking: str | None = None
    personal_messages: str | None = None
    special_requests: str | None = None

    def provided(self) -> dict:
        """Field name -> value for every field the caller set, including explicit clears."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class DecryptedVault(BaseModel):
    id: int
    user_id: int
    funeral_wishes: str | None = None
    funeral_data: FuneralPlan | None = None
    life_insurance: str | None = None
    banking: str | None = None
    personal_messages: str | None = None
    special_requests: str | None = None
    is_complete: bool = False
    completion_percentage: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
