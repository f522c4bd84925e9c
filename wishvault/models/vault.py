"""One encrypted vault per user. Content columns hold Field Cipher envelopes, never plaintext."""
from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from wishvault.database import Base

# Order matters only for display; completion counts all of them equally
VAULT_CONTENT_FIELDS = (
    "funeral_wishes",
    "funeral_data",
    "life_insurance",
    "banking",
    "personal_messages",
    "special_requests",
)
STRUCTURED_FIELDS = frozenset({"funeral_data"})


class Vault(Base):
    __tablename__ = "vaults"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    funeral_wishes = Column(Text, nullable=True)
    funeral_data = Column(Text, nullable=True)  # structured plan, canonical JSON before encryption
    life_insurance = Column(Text, nullable=True)
    banking = Column(Text, nullable=True)
    personal_messages = Column(Text, nullable=True)
    special_requests = Column(Text, nullable=True)

    is_complete = Column(Boolean, nullable=False, default=False)
    completion_percentage = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
