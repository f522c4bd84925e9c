"""Declaration of death submitted by a trusted contact, pending admin review."""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime
from sqlalchemy.sql import func
from wishvault.database import Base

RELEASE_PENDING = "pending"
RELEASE_APPROVED = "approved"
RELEASE_DENIED = "denied"


class DataReleaseRequest(Base):
    __tablename__ = "data_release_requests"

    id = Column(Integer, primary_key=True, index=True)
    vault_id = Column(Integer, ForeignKey("vaults.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    deceased_name = Column(String(255), nullable=False)
    death_certificate = Column(Text, nullable=True)  # document reference (storage key or URL)

    status = Column(String(20), nullable=False, default=RELEASE_PENDING)  # pending, approved, denied

    request_date = Column(DateTime(timezone=True), server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
