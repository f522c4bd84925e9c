"""Trusted contact registry: nomination, invitation tokens and the contact status machine.

    pending --accept(token)--> confirmed
    pending | confirmed --deny--> denied   (terminal)

Status changes are conditional UPDATEs on the current status, so two racing callers
cannot both win.
"""
import logging
import secrets

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wishvault.database import transaction
from wishvault.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from wishvault.models.trusted_contact import TrustedContact, CONTACT_PENDING, CONTACT_CONFIRMED, CONTACT_DENIED
from wishvault.models.user import User
from wishvault.models.vault import Vault
from wishvault.schemas.auth import AcceptInvite, CallerContext
from wishvault.schemas.trusted_contact import TrustedContactCreate
from wishvault.services import notifications
from wishvault.services.audit_log import create_log, CATEGORY_STATUS_CHANGE, CATEGORY_FAILED_ATTEMPT
from wishvault.services.auth import get_password_hash, normalize_email, validate_password_strength, verify_password
from wishvault.services.users import get_user, get_user_by_email, is_admin, load_caller, utcnow
from wishvault.services.vault_store import get_or_create_for_owner

logger = logging.getLogger("wishvault.trusted_contacts")

CONTACT_NOT_FOUND = "Trusted contact not found"
INVALID_INVITE = "Invalid invite token"
INVITE_USED = "This invitation has already been used."


def _generate_invite_token(db: Session) -> str:
    for _ in range(10):
        token = secrets.token_urlsafe(32)
        if db.query(TrustedContact.id).filter(TrustedContact.invite_token == token).first() is None:
            return token
    raise ConflictError("Could not allocate a unique invite token")


def _display_name(user: User | None) -> str:
    if not user:
        return "A Wishkeepers member"
    return (user.full_name or "").strip() or user.email


def list_contacts(db: Session, vault_id: int) -> list[TrustedContact]:
    return (
        db.query(TrustedContact)
        .filter(TrustedContact.vault_id == vault_id)
        .order_by(TrustedContact.id)
        .all()
    )


def list_by_email(db: Session, email: str) -> list[TrustedContact]:
    """Every nomination addressed to this email, across all vaults."""
    return (
        db.query(TrustedContact)
        .filter(TrustedContact.contact_email == normalize_email(email))
        .order_by(TrustedContact.id)
        .all()
    )


def list_all_contacts(db: Session, caller: CallerContext, status: str | None = None) -> list[TrustedContact]:
    """Admin overview of every nomination across all vaults, newest first."""
    user = load_caller(db, caller)
    if not is_admin(caller, user):
        raise AuthorizationError(f"User {user.id} is not an administrator", public_message="Admin access required")
    q = db.query(TrustedContact)
    if status is not None:
        if status not in (CONTACT_PENDING, CONTACT_CONFIRMED, CONTACT_DENIED):
            raise ValidationError(f"Unknown status filter: {status}")
        q = q.filter(TrustedContact.status == status)
    return q.order_by(TrustedContact.id.desc()).all()


def get_contact(db: Session, contact_id: int) -> TrustedContact | None:
    return db.query(TrustedContact).filter(TrustedContact.id == contact_id).first()


def is_confirmed_contact(db: Session, vault_id: int, user_id: int) -> bool:
    return (
        db.query(TrustedContact.id)
        .filter(
            TrustedContact.vault_id == vault_id,
            TrustedContact.user_id == user_id,
            TrustedContact.status == CONTACT_CONFIRMED,
        )
        .first()
        is not None
    )


def invite(db: Session, caller: CallerContext, data: TrustedContactCreate) -> TrustedContact:
    """Nominate a trusted contact on the caller's vault (created empty if it does not exist yet).

    The invitation email is sent after commit; a failed send leaves the contact pending.
    """
    owner = load_caller(db, caller)
    email = normalize_email(data.contact_email)
    if email == normalize_email(owner.email):
        raise ValidationError("You cannot nominate yourself as a trusted contact.")
    vault = get_or_create_for_owner(db, owner.id)
    existing = (
        db.query(TrustedContact)
        .filter(
            TrustedContact.vault_id == vault.id,
            TrustedContact.contact_email == email,
            TrustedContact.status.in_([CONTACT_PENDING, CONTACT_CONFIRMED]),
        )
        .first()
    )
    if existing:
        raise ConflictError(
            f"{email} is already a {existing.status} contact on vault {vault.id}",
            public_message="This person is already one of your trusted contacts.",
        )
    with transaction(db):
        contact = TrustedContact(
            vault_id=vault.id,
            contact_email=email,
            contact_name=data.contact_name,
            status=CONTACT_PENDING,
            invite_token=_generate_invite_token(db),
            invited_at=utcnow(),
        )
        db.add(contact)
        db.flush()
        create_log(
            db,
            CATEGORY_STATUS_CHANGE,
            "Trusted contact invited",
            f"Owner nominated contact id={contact.id} on vault {vault.id}.",
            vault_id=vault.id,
            trusted_contact_id=contact.id,
            actor_user_id=owner.id,
            actor_email=owner.email,
            meta={"status": CONTACT_PENDING},
        )
    db.refresh(contact)
    notifications.dispatch(
        notifications.send_trusted_contact_invite,
        contact.contact_email,
        contact.contact_name,
        _display_name(owner),
        contact.invite_token,
    )
    return contact


def resend_invite(db: Session, caller: CallerContext, contact_id: int) -> bool:
    """Send the invitation again. Owner only, and only while the contact is pending."""
    owner = load_caller(db, caller)
    contact = get_contact(db, contact_id)
    vault = db.query(Vault).filter(Vault.id == contact.vault_id).first() if contact else None
    if not contact or not vault or vault.user_id != owner.id:
        raise NotFoundError(f"Contact {contact_id} not found for user {owner.id}", public_message=CONTACT_NOT_FOUND)
    if contact.status != CONTACT_PENDING:
        raise ValidationError("Can only resend invitations for pending contacts.")
    return notifications.dispatch(
        notifications.send_trusted_contact_invite,
        contact.contact_email,
        contact.contact_name,
        _display_name(owner),
        contact.invite_token,
    )


def resolve_by_token(db: Session, token: str) -> TrustedContact:
    contact = None
    if token:
        contact = db.query(TrustedContact).filter(TrustedContact.invite_token == token).first()
    if not contact:
        raise NotFoundError("Unknown invite token", public_message=INVALID_INVITE)
    return contact


def accept(db: Session, token: str, credentials: AcceptInvite) -> User:
    """Consume an invitation token: confirm the contact and create or reuse the invitee's account.

    The returned user is the session identity for the web layer
    (CallerContext.for_user). A token can be consumed exactly once; later calls
    raise ConflictError and change nothing.
    """
    contact = resolve_by_token(db, token)
    if contact.status != CONTACT_PENDING:
        raise ConflictError(f"Invite token for contact {contact.id} already consumed", public_message=INVITE_USED)

    user = get_user_by_email(db, contact.contact_email)
    if user:
        if not verify_password(credentials.password, user.hashed_password):
            with transaction(db):
                create_log(
                    db,
                    CATEGORY_FAILED_ATTEMPT,
                    "Invite acceptance failed",
                    f"Wrong password for existing account on contact id={contact.id}.",
                    vault_id=contact.vault_id,
                    trusted_contact_id=contact.id,
                    actor_user_id=user.id,
                    actor_email=user.email,
                )
            raise AuthorizationError("Invalid credentials for existing account", public_message="Invalid credentials")
    else:
        validate_password_strength(credentials.password)

    try:
        with transaction(db):
            if user is None:
                user = User(
                    email=contact.contact_email,
                    hashed_password=get_password_hash(credentials.password),
                    full_name=(credentials.full_name or "").strip() or contact.contact_name,
                    is_admin=False,
                    # The token arrived by email, so the address is proven
                    email_verified=True,
                )
                db.add(user)
                db.flush()
            consumed = (
                db.query(TrustedContact)
                .filter(TrustedContact.id == contact.id, TrustedContact.status == CONTACT_PENDING)
                .update(
                    {"status": CONTACT_CONFIRMED, "confirmed_at": utcnow(), "user_id": user.id},
                    synchronize_session=False,
                )
            )
            if consumed != 1:
                # Lost the race to a concurrent acceptance; roll back the account as well
                raise ConflictError(f"Invite token for contact {contact.id} already consumed", public_message=INVITE_USED)
            create_log(
                db,
                CATEGORY_STATUS_CHANGE,
                "Trusted contact confirmed",
                f"Contact id={contact.id} accepted the invitation.",
                vault_id=contact.vault_id,
                trusted_contact_id=contact.id,
                actor_user_id=user.id,
                actor_email=user.email,
                meta={"old_status": CONTACT_PENDING, "new_status": CONTACT_CONFIRMED},
            )
    except IntegrityError as e:
        # A concurrent acceptance created the account for this email first
        raise ConflictError(f"Invite token for contact {contact.id} accepted concurrently", public_message=INVITE_USED) from e
    db.refresh(user)
    db.refresh(contact)
    return user


def deny(db: Session, caller: CallerContext, contact_id: int) -> TrustedContact:
    """Move a contact to denied: self-removal by the contact, revocation by the owner, or admin action."""
    actor = load_caller(db, caller)
    contact = get_contact(db, contact_id)
    if not contact:
        raise NotFoundError(f"Contact {contact_id} not found", public_message=CONTACT_NOT_FOUND)
    vault = db.query(Vault).filter(Vault.id == contact.vault_id).first()
    is_self = contact.user_id == actor.id or normalize_email(actor.email) == contact.contact_email
    is_owner = vault is not None and vault.user_id == actor.id
    if not (is_self or is_owner or is_admin(caller, actor)):
        # Same message as a missing contact so ids cannot be probed
        raise AuthorizationError(f"User {actor.id} may not remove contact {contact_id}", public_message=CONTACT_NOT_FOUND)
    if contact.status == CONTACT_DENIED:
        raise ConflictError(f"Contact {contact_id} already denied", public_message="This contact has already been removed.")

    old_status = contact.status
    with transaction(db):
        changed = (
            db.query(TrustedContact)
            .filter(
                TrustedContact.id == contact.id,
                TrustedContact.status.in_([CONTACT_PENDING, CONTACT_CONFIRMED]),
            )
            .update({"status": CONTACT_DENIED, "denied_at": utcnow()}, synchronize_session=False)
        )
        if changed != 1:
            raise ConflictError(f"Contact {contact_id} already denied", public_message="This contact has already been removed.")
        create_log(
            db,
            CATEGORY_STATUS_CHANGE,
            "Trusted contact removed",
            f"Contact id={contact.id} removed from vault {contact.vault_id}.",
            vault_id=contact.vault_id,
            trusted_contact_id=contact.id,
            actor_user_id=actor.id,
            actor_email=actor.email,
            meta={"old_status": old_status, "new_status": CONTACT_DENIED, "by": "self" if is_self else ("owner" if is_owner else "admin")},
        )
    db.refresh(contact)

    owner = get_user(db, vault.user_id) if vault else None
    if owner:
        notifications.dispatch(notifications.send_contact_removed_to_owner, owner.email, owner.full_name, contact.contact_name)
    notifications.dispatch(
        notifications.send_contact_removed_to_contact,
        contact.contact_email,
        contact.contact_name,
        owner.full_name if owner else None,
    )
    return contact
