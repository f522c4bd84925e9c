"""A person nominated by a vault owner; may read the vault once a release is approved."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from wishvault.database import Base

CONTACT_PENDING = "pending"
CONTACT_CONFIRMED = "confirmed"
CONTACT_DENIED = "denied"


class TrustedContact(Base):
    __tablename__ = "trusted_contacts"

    id = Column(Integer, primary_key=True, index=True)
    vault_id = Column(Integer, ForeignKey("vaults.id", ondelete="CASCADE"), nullable=False, index=True)

    contact_email = Column(String(255), nullable=False, index=True)
    contact_name = Column(String(255), nullable=False)

    status = Column(String(20), nullable=False, default=CONTACT_PENDING)  # pending, confirmed, denied

    # Single use: consumed as soon as status leaves pending
    invite_token = Column(String(64), unique=True, nullable=False, index=True)

    # Account that accepted the invite; authorization checks use this, not the email
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    invited_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    denied_at = Column(DateTime(timezone=True), nullable=True)
