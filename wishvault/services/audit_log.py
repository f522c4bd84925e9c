"""Append-only audit trail for vault state changes, non-owner reads and refused attempts.

Rows are only ever inserted. Entries name fields, ids and statuses; vault content
(plaintext or envelope) must never reach message or meta.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from wishvault.models.audit_log import AuditLog
from wishvault.services.crypto import is_envelope

CATEGORY_STATUS_CHANGE = "status_change"
CATEGORY_VAULT_ACCESS = "vault_access"
CATEGORY_FAILED_ATTEMPT = "failed_attempt"
CATEGORIES = frozenset({CATEGORY_STATUS_CHANGE, CATEGORY_VAULT_ACCESS, CATEGORY_FAILED_ATTEMPT})

REDACTED = "[redacted]"

# Column limits (match model)
_TITLE_LEN = 255
_ACTOR_EMAIL_LEN = 255
_MESSAGE_LEN = 10_000


def _clip(value: str | None, limit: int) -> str | None:
    value = (value or "").strip()
    return value[:limit] or None


def _meta_value(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float)):
        return v
    if isinstance(v, str):
        return REDACTED if is_envelope(v) else v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, dict):
        return {str(k): _meta_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_meta_value(x) for x in v]
    return str(v)


def create_log(
    db: Session,
    category: str,
    title: str,
    message: str,
    *,
    vault_id: int | None = None,
    trusted_contact_id: int | None = None,
    release_request_id: int | None = None,
    actor_user_id: int | None = None,
    actor_email: str | None = None,
    meta: dict[str, Any] | None = None,
) -> AuditLog:
    """Add one entry to the caller's transaction and flush it; the caller commits.

    Raises ValueError for an unknown category.
    """
    if category not in CATEGORIES:
        raise ValueError(f"Unknown audit category: {category!r}")
    entry = AuditLog(
        category=category,
        title=_clip(title, _TITLE_LEN) or "-",
        message=_clip(message, _MESSAGE_LEN) or "-",
        vault_id=vault_id,
        trusted_contact_id=trusted_contact_id,
        release_request_id=release_request_id,
        actor_user_id=actor_user_id,
        actor_email=_clip(actor_email, _ACTOR_EMAIL_LEN),
        meta=_meta_value(meta) if meta is not None else None,
    )
    db.add(entry)
    db.flush()
    return entry
