"""Append-only audit log for vault access and state changes.
No updates or deletes - every record is permanent. Never holds plaintext vault content."""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from wishvault.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # SET NULL so cascading user deletion does not fail; message/meta keep the context
    vault_id = Column(Integer, ForeignKey("vaults.id", ondelete="SET NULL"), nullable=True, index=True)
    trusted_contact_id = Column(Integer, ForeignKey("trusted_contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    release_request_id = Column(Integer, ForeignKey("data_release_requests.id", ondelete="SET NULL"), nullable=True, index=True)

    # category: status_change | vault_access | failed_attempt
    category = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Optional structured data (e.g. changed field names, old/new status)
    meta = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    # Who did it (if applicable)
    actor_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_email = Column(String(255), nullable=True)

    # UTC only - server_default
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
