"""Vault record store: one encrypted vault per user.

Content columns are encrypted on the way in and decrypted on the way out; callers only
ever see DecryptedVault. Completion fields are recomputed from the merged state on every
write, inside the same transaction, so they are never stale.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wishvault.database import transaction
from wishvault.errors import ConflictError, NotFoundError
from wishvault.models.user import User
from wishvault.models.vault import Vault, VAULT_CONTENT_FIELDS, STRUCTURED_FIELDS
from wishvault.schemas.vault import DecryptedVault, FuneralPlan, VaultPatch
from wishvault.services.audit_log import create_log, CATEGORY_STATUS_CHANGE
from wishvault.services.crypto import decrypt_field, deserialize_structured, encrypt_field, serialize_structured

logger = logging.getLogger("wishvault.vault_store")


def completion_percentage(populated: int, total: int = len(VAULT_CONTENT_FIELDS)) -> int:
    return round(100 * populated / total)


def _is_populated(value) -> bool:
    # Only None and "" clear a field; any other text, whitespace included, is stored
    return value is not None and value != ""


def _encrypt_value(name: str, value) -> str | None:
    """Plaintext (or structured plan) -> envelope. None or "" clears the column."""
    if not _is_populated(value):
        return None
    if name in STRUCTURED_FIELDS:
        plan = value if isinstance(value, FuneralPlan) else FuneralPlan.model_validate(value)
        return encrypt_field(serialize_structured(plan.model_dump(mode="json")))
    return encrypt_field(value)


def _decrypt_value(name: str, envelope: str | None):
    if not envelope:
        return None
    plaintext = decrypt_field(envelope)
    if name in STRUCTURED_FIELDS:
        return FuneralPlan.model_validate(deserialize_structured(plaintext))
    return plaintext


def _refresh_completion(vault: Vault) -> None:
    # A stored envelope means the field is populated; cleared fields are NULL
    populated = sum(1 for name in VAULT_CONTENT_FIELDS if getattr(vault, name))
    vault.completion_percentage = completion_percentage(populated)
    vault.is_complete = vault.completion_percentage == 100


def _apply_patch(vault: Vault, patch: VaultPatch) -> list[str]:
    """Merge provided fields into the row; omitted fields keep their ciphertext. Returns changed field names."""
    changed = []
    for name, value in patch.provided().items():
        new = _encrypt_value(name, value)
        if new is None and getattr(vault, name) is None:
            continue
        setattr(vault, name, new)
        changed.append(name)
    return sorted(changed)


def decrypt_vault(vault: Vault) -> DecryptedVault:
    """Decrypt every populated field. CryptoIntegrityError propagates; nothing is substituted."""
    values = {name: _decrypt_value(name, getattr(vault, name)) for name in VAULT_CONTENT_FIELDS}
    return DecryptedVault(
        id=vault.id,
        user_id=vault.user_id,
        is_complete=bool(vault.is_complete),
        completion_percentage=vault.completion_percentage or 0,
        created_at=vault.created_at,
        updated_at=vault.updated_at,
        **values,
    )


def load_row(db: Session, vault_id: int) -> Vault | None:
    """The stored (encrypted) row, for callers that must authorize before decrypting."""
    return db.query(Vault).filter(Vault.id == vault_id).first()


def load_row_by_owner(db: Session, user_id: int) -> Vault | None:
    return db.query(Vault).filter(Vault.user_id == user_id).first()


def get(db: Session, vault_id: int) -> DecryptedVault | None:
    vault = load_row(db, vault_id)
    return decrypt_vault(vault) if vault else None


def get_by_owner(db: Session, user_id: int) -> DecryptedVault | None:
    vault = load_row_by_owner(db, user_id)
    return decrypt_vault(vault) if vault else None


def create(db: Session, owner_id: int, patch: VaultPatch | None = None) -> DecryptedVault:
    """Create the owner's vault. Each user has at most one."""
    if not db.query(User.id).filter(User.id == owner_id).first():
        raise NotFoundError(f"User {owner_id} not found")
    if load_row_by_owner(db, owner_id):
        raise ConflictError(f"User {owner_id} already has a vault", public_message="A vault already exists for this account.")
    vault = Vault(user_id=owner_id)
    changed = _apply_patch(vault, patch or VaultPatch())
    _refresh_completion(vault)
    vault.updated_at = datetime.now(timezone.utc)
    try:
        with transaction(db):
            db.add(vault)
            db.flush()
            create_log(
                db,
                CATEGORY_STATUS_CHANGE,
                "Vault created",
                f"Vault {vault.id} created with {len(changed)} populated field(s).",
                vault_id=vault.id,
                actor_user_id=owner_id,
                meta={"fields": changed, "completion_percentage": vault.completion_percentage},
            )
    except IntegrityError as e:
        raise ConflictError(f"User {owner_id} already has a vault", public_message="A vault already exists for this account.") from e
    db.refresh(vault)
    return decrypt_vault(vault)


def get_or_create_for_owner(db: Session, owner_id: int) -> Vault:
    """Return the owner's vault row, creating an empty one if needed.

    Two concurrent creators are resolved by the unique user_id constraint: the loser
    re-reads the winner's row.
    """
    vault = load_row_by_owner(db, owner_id)
    if vault:
        return vault
    try:
        create(db, owner_id)
    except ConflictError:
        logger.info("Vault for user %s created concurrently, reusing it", owner_id)
    vault = load_row_by_owner(db, owner_id)
    if vault is None:
        raise NotFoundError(f"Vault for user {owner_id} could not be created")
    return vault


def update(db: Session, vault_id: int, patch: VaultPatch, *, actor_user_id: int | None = None) -> DecryptedVault | None:
    """Partial update under a row lock: read, merge, recompute and write in one transaction."""
    with transaction(db):
        vault = db.query(Vault).filter(Vault.id == vault_id).with_for_update().populate_existing().first()
        if not vault:
            return None
        changed = _apply_patch(vault, patch)
        _refresh_completion(vault)
        vault.updated_at = datetime.now(timezone.utc)
        if changed:
            create_log(
                db,
                CATEGORY_STATUS_CHANGE,
                "Vault updated",
                f"Vault {vault.id} updated: {', '.join(changed)}.",
                vault_id=vault.id,
                actor_user_id=actor_user_id,
                meta={"fields": changed, "completion_percentage": vault.completion_percentage},
            )
    db.refresh(vault)
    return decrypt_vault(vault)
