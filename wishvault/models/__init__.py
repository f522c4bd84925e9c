"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table.
"""
from wishvault.models.user import User
from wishvault.models.vault import Vault
from wishvault.models.trusted_contact import TrustedContact
from wishvault.models.release_request import DataReleaseRequest
from wishvault.models.audit_log import AuditLog

__all__ = [
    "User",
    "Vault",
    "TrustedContact",
    "DataReleaseRequest",
    "AuditLog",
]
