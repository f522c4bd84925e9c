"""Users, credentials and the explicit caller identity passed into every gateway call."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, model_validator


class CallerContext(BaseModel):
    """Who is calling. Built by the web layer from its session, never read from ambient state."""
    model_config = ConfigDict(frozen=True)

    user_id: int
    is_admin: bool = False

    @classmethod
    def for_user(cls, user) -> "CallerContext":
        return cls(user_id=user.id, is_admin=bool(user.is_admin))


class UserCreate(BaseModel):
    full_name: str
    email: EmailStr
    password: str
    confirm_password: str = ""

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str | None = None
    is_admin: bool = False
    email_verified: bool = False
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class VerifyEmailRequest(BaseModel):
    """Verify email with the code sent after registration."""
    email: EmailStr
    code: str


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class AcceptInvite(BaseModel):
    """Credentials supplied with an invitation token. full_name is used only when a new account is created."""
    password: str
    confirm_password: str = ""
    full_name: str | None = None

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self
