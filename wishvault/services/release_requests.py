"""Release authorization workflow: declarations of death and their single-shot admin review.

    pending --review(approved)--> approved   (terminal)
    pending --review(denied)-->   denied     (terminal)

A request on its own grants nothing; only an approved request opens the vault to the
vault's confirmed contacts (see access_gateway).
"""
import logging
from typing import get_args

from sqlalchemy.orm import Session

from wishvault.database import transaction
from wishvault.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from wishvault.models.release_request import DataReleaseRequest, RELEASE_PENDING, RELEASE_APPROVED, RELEASE_DENIED
from wishvault.models.vault import Vault
from wishvault.schemas.auth import CallerContext
from wishvault.schemas.release_request import ReleaseDecision, ReleaseRequestCreate
from wishvault.services import notifications
from wishvault.services.audit_log import create_log, CATEGORY_STATUS_CHANGE, CATEGORY_FAILED_ATTEMPT
from wishvault.services.trusted_contacts import is_confirmed_contact
from wishvault.services.users import get_user, is_admin, load_caller, utcnow

logger = logging.getLogger("wishvault.release_requests")

REVIEW_DECISIONS = get_args(ReleaseDecision)
REQUEST_NOT_FOUND = "Request not found"


def get_request(db: Session, request_id: int) -> DataReleaseRequest | None:
    return db.query(DataReleaseRequest).filter(DataReleaseRequest.id == request_id).first()


def has_approved_release(db: Session, vault_id: int) -> bool:
    return (
        db.query(DataReleaseRequest.id)
        .filter(DataReleaseRequest.vault_id == vault_id, DataReleaseRequest.status == RELEASE_APPROVED)
        .first()
        is not None
    )


def request_release(db: Session, caller: CallerContext, vault_id: int, data: ReleaseRequestCreate) -> DataReleaseRequest:
    """Record a pending declaration of death. Only confirmed contacts of the vault may file one."""
    requester = load_caller(db, caller)
    vault = db.query(Vault).filter(Vault.id == vault_id).first()
    if not vault or not is_confirmed_contact(db, vault_id, requester.id):
        with transaction(db):
            create_log(
                db,
                CATEGORY_FAILED_ATTEMPT,
                "Release request rejected",
                f"User {requester.id} is not a confirmed contact of vault {vault_id}.",
                vault_id=vault.id if vault else None,
                actor_user_id=requester.id,
                actor_email=requester.email,
            )
        logger.warning("Release request rejected: user %s is not a confirmed contact of vault %s", requester.id, vault_id)
        # Missing vault and missing nomination look the same to the caller
        raise AuthorizationError(
            f"User {requester.id} is not a confirmed contact of vault {vault_id}",
            public_message="You are not a confirmed trusted contact for this vault.",
        )
    open_request = (
        db.query(DataReleaseRequest.id)
        .filter(
            DataReleaseRequest.vault_id == vault_id,
            DataReleaseRequest.requester_id == requester.id,
            DataReleaseRequest.status == RELEASE_PENDING,
        )
        .first()
    )
    if open_request:
        raise ConflictError(
            f"User {requester.id} already has a pending request on vault {vault_id}",
            public_message="You already have a request awaiting review for this vault.",
        )
    with transaction(db):
        req = DataReleaseRequest(
            vault_id=vault_id,
            requester_id=requester.id,
            deceased_name=data.deceased_name,
            death_certificate=data.death_certificate,
            status=RELEASE_PENDING,
            request_date=utcnow(),
        )
        db.add(req)
        db.flush()
        create_log(
            db,
            CATEGORY_STATUS_CHANGE,
            "Release requested",
            f"Release request {req.id} filed for vault {vault_id}.",
            vault_id=vault_id,
            release_request_id=req.id,
            actor_user_id=requester.id,
            actor_email=requester.email,
            meta={"status": RELEASE_PENDING, "has_document": bool(data.death_certificate)},
        )
    db.refresh(req)
    return req


def list_requests(
    db: Session,
    caller: CallerContext,
    status: str | None = None,
    vault_id: int | None = None,
) -> list[DataReleaseRequest]:
    """Admins see every request; anyone else sees only the requests they filed."""
    user = load_caller(db, caller)
    q = db.query(DataReleaseRequest)
    if not is_admin(caller, user):
        q = q.filter(DataReleaseRequest.requester_id == user.id)
    if status is not None:
        if status not in (RELEASE_PENDING, RELEASE_APPROVED, RELEASE_DENIED):
            raise ValidationError(f"Unknown status filter: {status}")
        q = q.filter(DataReleaseRequest.status == status)
    if vault_id is not None:
        q = q.filter(DataReleaseRequest.vault_id == vault_id)
    return q.order_by(DataReleaseRequest.request_date.desc(), DataReleaseRequest.id.desc()).all()


def review(db: Session, caller: CallerContext, request_id: int, decision: ReleaseDecision) -> DataReleaseRequest:
    """Approve or deny a pending request, exactly once.

    Guarded by a conditional UPDATE on status='pending': of two racing reviewers only
    one succeeds, the other gets ConflictError and the first decision stands.
    """
    reviewer = load_caller(db, caller)
    if not is_admin(caller, reviewer):
        raise AuthorizationError(f"User {reviewer.id} is not an administrator", public_message="Admin access required")
    if decision not in REVIEW_DECISIONS:
        raise ValidationError("Decision must be 'approved' or 'denied'.")

    with transaction(db):
        changed = (
            db.query(DataReleaseRequest)
            .filter(DataReleaseRequest.id == request_id, DataReleaseRequest.status == RELEASE_PENDING)
            .update(
                {"status": decision, "reviewed_at": utcnow(), "reviewed_by": reviewer.id},
                synchronize_session=False,
            )
        )
        if changed != 1:
            req = get_request(db, request_id)
            if not req:
                raise NotFoundError(f"Release request {request_id} not found", public_message=REQUEST_NOT_FOUND)
            raise ConflictError(
                f"Release request {request_id} already reviewed ({req.status})",
                public_message="This request has already been reviewed.",
            )
        req = get_request(db, request_id)
        create_log(
            db,
            CATEGORY_STATUS_CHANGE,
            "Release request reviewed",
            f"Release request {request_id} {decision}.",
            vault_id=req.vault_id,
            release_request_id=request_id,
            actor_user_id=reviewer.id,
            actor_email=reviewer.email,
            meta={"old_status": RELEASE_PENDING, "new_status": decision},
        )
    db.refresh(req)
    logger.info("Release request %s %s by admin %s", request_id, decision, reviewer.id)

    requester = get_user(db, req.requester_id)
    if requester:
        notifications.dispatch(
            notifications.send_release_decision,
            requester.email,
            requester.full_name,
            req.deceased_name,
            decision == RELEASE_APPROVED,
        )
    return req
