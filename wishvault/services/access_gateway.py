"""Access gateway: every read or write of vault content goes through here.

Read is allowed for the owner, an administrator, or a confirmed trusted contact of the
vault once an approved release request exists for it. Write is allowed for the owner or
an administrator only; release never grants write access.

Authorization is decided on the stored (encrypted) row before any decryption. Denials
are logged and audited, then raised.
"""
import logging

from sqlalchemy.orm import Session

from wishvault.database import transaction
from wishvault.errors import AuthorizationError, NotFoundError
from wishvault.models.trusted_contact import TrustedContact, CONTACT_DENIED
from wishvault.models.user import User
from wishvault.models.vault import Vault
from wishvault.schemas.auth import CallerContext
from wishvault.schemas.trusted_contact import Nomination
from wishvault.schemas.vault import DecryptedVault, VaultPatch
from wishvault.services import vault_store
from wishvault.services.audit_log import create_log, CATEGORY_FAILED_ATTEMPT, CATEGORY_VAULT_ACCESS
from wishvault.services.auth import normalize_email
from wishvault.services.release_requests import has_approved_release
from wishvault.services.trusted_contacts import is_confirmed_contact
from wishvault.services.users import is_admin, load_caller

logger = logging.getLogger("wishvault.access")

# One message for "no such vault" and "not yours" so vault ids cannot be enumerated
VAULT_UNAVAILABLE = "Vault not found"

ACCESS_OWNER = "owner"
ACCESS_ADMIN = "admin"
ACCESS_RELEASED = "released"


def _deny(db: Session, user: User, vault_id: int, action: str, vault: Vault | None) -> AuthorizationError:
    with transaction(db):
        create_log(
            db,
            CATEGORY_FAILED_ATTEMPT,
            f"Vault {action} denied",
            f"User {user.id} was denied {action} access to vault {vault_id}.",
            vault_id=vault.id if vault else None,
            actor_user_id=user.id,
            actor_email=user.email,
            meta={"action": action, "vault_exists": vault is not None},
        )
    logger.warning("Vault %s denied: user=%s vault=%s", action, user.id, vault_id)
    return AuthorizationError(f"User {user.id} may not {action} vault {vault_id}", public_message=VAULT_UNAVAILABLE)


def read_access(db: Session, caller: CallerContext, user: User, vault: Vault) -> str | None:
    """Why the caller may read this vault, or None if they may not."""
    if vault.user_id == user.id:
        return ACCESS_OWNER
    if is_admin(caller, user):
        return ACCESS_ADMIN
    if is_confirmed_contact(db, vault.id, user.id) and has_approved_release(db, vault.id):
        return ACCESS_RELEASED
    return None


def write_access(caller: CallerContext, user: User, vault: Vault) -> str | None:
    if vault.user_id == user.id:
        return ACCESS_OWNER
    if is_admin(caller, user):
        return ACCESS_ADMIN
    return None


def read_vault(db: Session, caller: CallerContext, vault_id: int) -> DecryptedVault:
    user = load_caller(db, caller)
    vault = vault_store.load_row(db, vault_id)
    if vault is None:
        # Admins get a real lookup failure; everyone else is treated as unauthorized
        if is_admin(caller, user):
            raise NotFoundError(f"Vault {vault_id} not found", public_message=VAULT_UNAVAILABLE)
        raise _deny(db, user, vault_id, "read", None)
    access = read_access(db, caller, user, vault)
    if access is None:
        raise _deny(db, user, vault_id, "read", vault)
    if access != ACCESS_OWNER:
        with transaction(db):
            create_log(
                db,
                CATEGORY_VAULT_ACCESS,
                "Vault read",
                f"Vault {vault.id} read by user {user.id} ({access}).",
                vault_id=vault.id,
                actor_user_id=user.id,
                actor_email=user.email,
                meta={"access": access},
            )
    return vault_store.decrypt_vault(vault)


def write_vault(db: Session, caller: CallerContext, vault_id: int, patch: VaultPatch) -> DecryptedVault:
    user = load_caller(db, caller)
    vault = vault_store.load_row(db, vault_id)
    if vault is None:
        if is_admin(caller, user):
            raise NotFoundError(f"Vault {vault_id} not found", public_message=VAULT_UNAVAILABLE)
        raise _deny(db, user, vault_id, "write", None)
    if write_access(caller, user, vault) is None:
        raise _deny(db, user, vault_id, "write", vault)
    updated = vault_store.update(db, vault.id, patch, actor_user_id=user.id)
    if updated is None:
        raise NotFoundError(f"Vault {vault_id} disappeared during update", public_message=VAULT_UNAVAILABLE)
    return updated


def read_own_vault(db: Session, caller: CallerContext) -> DecryptedVault | None:
    """The caller's own vault, or None if they have not written anything yet."""
    user = load_caller(db, caller)
    return vault_store.get_by_owner(db, user.id)


def write_own_vault(db: Session, caller: CallerContext, patch: VaultPatch) -> DecryptedVault:
    """Create the caller's vault on first write, merge into it afterwards."""
    user = load_caller(db, caller)
    vault = vault_store.get_or_create_for_owner(db, user.id)
    return vault_store.update(db, vault.id, patch, actor_user_id=user.id)


def list_nominations(db: Session, caller: CallerContext) -> list[Nomination]:
    """Vaults where the caller has been nominated (excluding removed nominations)."""
    user = load_caller(db, caller)
    rows = (
        db.query(TrustedContact, Vault, User)
        .join(Vault, Vault.id == TrustedContact.vault_id)
        .join(User, User.id == Vault.user_id)
        .filter(
            TrustedContact.contact_email == normalize_email(user.email),
            TrustedContact.status != CONTACT_DENIED,
        )
        .order_by(TrustedContact.id)
        .all()
    )
    return [
        Nomination(
            contact_id=contact.id,
            vault_id=vault.id,
            owner_name=owner.full_name,
            owner_email=owner.email,
            status=contact.status,
            release_approved=has_approved_release(db, vault.id),
        )
        for contact, vault, owner in rows
    ]
