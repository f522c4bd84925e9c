"""Tests for release requests and the single-shot admin review."""
import pydantic
import pytest

from wishvault.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from wishvault.models.audit_log import AuditLog
from wishvault.models.release_request import DataReleaseRequest
from wishvault.schemas.auth import AcceptInvite, CallerContext
from wishvault.schemas.release_request import ReleaseRequestCreate, ReleaseRequestResponse
from wishvault.schemas.trusted_contact import TrustedContactCreate
from wishvault.services import release_requests, trusted_contacts
from wishvault.services.audit_log import CATEGORY_FAILED_ATTEMPT


@pytest.fixture
def confirmed(db, owner):
    """A confirmed trusted contact (Jane) on the owner's vault. Returns (contact, jane)."""
    contact = trusted_contacts.invite(
        db, CallerContext.for_user(owner), TrustedContactCreate(contact_email="jane@x.com", contact_name="Jane Doe")
    )
    jane = trusted_contacts.accept(db, contact.invite_token, AcceptInvite(password="Abcd1234"))
    return contact, jane


def _file(db, user, vault_id, name="Olive Owner", certificate="uploads/cert-1.pdf"):
    return release_requests.request_release(
        db, CallerContext.for_user(user), vault_id, ReleaseRequestCreate(deceased_name=name, death_certificate=certificate)
    )


class TestRequest:

    def test_confirmed_contact_files_pending_request(self, db, confirmed):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        assert req.status == "pending"
        assert req.requester_id == jane.id
        assert req.vault_id == contact.vault_id
        assert req.request_date is not None
        assert req.reviewed_at is None
        assert release_requests.has_approved_release(db, contact.vault_id) is False

    def test_pending_contact_rejected(self, db, owner, stranger):
        contact = trusted_contacts.invite(
            db, CallerContext.for_user(owner),
            TrustedContactCreate(contact_email=stranger.email, contact_name="Sam"),
        )
        with pytest.raises(AuthorizationError):
            _file(db, stranger, contact.vault_id)
        assert db.query(DataReleaseRequest).count() == 0

    def test_non_contact_rejected_and_audited(self, db, confirmed, stranger):
        contact, _ = confirmed
        with pytest.raises(AuthorizationError):
            _file(db, stranger, contact.vault_id)
        entry = db.query(AuditLog).filter(AuditLog.category == CATEGORY_FAILED_ATTEMPT).one()
        assert entry.actor_user_id == stranger.id
        assert entry.vault_id == contact.vault_id

    def test_unknown_vault_looks_like_non_contact(self, db, confirmed):
        _, jane = confirmed
        with pytest.raises(AuthorizationError):
            _file(db, jane, 9999)

    def test_denied_contact_rejected(self, db, confirmed):
        contact, jane = confirmed
        trusted_contacts.deny(db, CallerContext.for_user(jane), contact.id)
        with pytest.raises(AuthorizationError):
            _file(db, jane, contact.vault_id)

    def test_one_pending_request_per_requester(self, db, confirmed):
        contact, jane = confirmed
        _file(db, jane, contact.vault_id)
        with pytest.raises(ConflictError):
            _file(db, jane, contact.vault_id)

    def test_new_request_after_denial(self, db, confirmed, admin):
        contact, jane = confirmed
        first = _file(db, jane, contact.vault_id)
        release_requests.review(db, CallerContext.for_user(admin), first.id, "denied")
        second = _file(db, jane, contact.vault_id)
        assert second.id != first.id
        assert second.status == "pending"

    def test_deceased_name_required(self):
        with pytest.raises(pydantic.ValidationError):
            ReleaseRequestCreate(deceased_name="   ")


class TestReview:

    def test_approve(self, db, confirmed, admin, outbox):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        reviewed = release_requests.review(db, CallerContext.for_user(admin), req.id, "approved")
        assert reviewed.status == "approved"
        assert reviewed.reviewed_by == admin.id
        assert reviewed.reviewed_at is not None
        assert release_requests.has_approved_release(db, contact.vault_id) is True
        decision = [m for m in outbox.to("jane@x.com") if "approved" in m["subject"]]
        assert len(decision) == 1

    def test_deny(self, db, confirmed, admin, outbox):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        reviewed = release_requests.review(db, CallerContext.for_user(admin), req.id, "denied")
        assert reviewed.status == "denied"
        assert release_requests.has_approved_release(db, contact.vault_id) is False
        assert any("could not be approved" in m["subject"] for m in outbox.to("jane@x.com"))

    def test_review_is_single_shot(self, db, confirmed, admin):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        first = release_requests.review(db, CallerContext.for_user(admin), req.id, "approved")
        reviewed_at = first.reviewed_at
        with pytest.raises(ConflictError):
            release_requests.review(db, CallerContext.for_user(admin), req.id, "denied")
        db.refresh(req)
        assert req.status == "approved"
        assert req.reviewed_at == reviewed_at

    def test_non_admin_cannot_review(self, db, confirmed, owner):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        for user in (jane, owner):
            with pytest.raises(AuthorizationError):
                release_requests.review(db, CallerContext.for_user(user), req.id, "approved")
        db.refresh(req)
        assert req.status == "pending"

    def test_session_flag_alone_is_not_admin(self, db, confirmed):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        forged = CallerContext(user_id=jane.id, is_admin=True)
        with pytest.raises(AuthorizationError):
            release_requests.review(db, forged, req.id, "approved")

    def test_invalid_decision(self, db, confirmed, admin):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        with pytest.raises(ValidationError):
            release_requests.review(db, CallerContext.for_user(admin), req.id, "pending")

    def test_unknown_request(self, db, admin):
        with pytest.raises(NotFoundError):
            release_requests.review(db, CallerContext.for_user(admin), 777, "approved")

    def test_review_is_audited(self, db, confirmed, admin):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        release_requests.review(db, CallerContext.for_user(admin), req.id, "approved")
        entry = db.query(AuditLog).filter(AuditLog.title == "Release request reviewed").one()
        assert entry.release_request_id == req.id
        assert entry.vault_id == contact.vault_id
        assert entry.actor_user_id == admin.id
        assert entry.meta == {"old_status": "pending", "new_status": "approved"}


class TestListing:

    def test_requester_sees_own(self, db, confirmed, owner):
        contact, jane = confirmed
        mine = _file(db, jane, contact.vault_id)
        assert [r.id for r in release_requests.list_requests(db, CallerContext.for_user(jane))] == [mine.id]
        assert release_requests.list_requests(db, CallerContext.for_user(owner)) == []

    def test_admin_sees_all_and_filters(self, db, confirmed, admin):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        caller = CallerContext.for_user(admin)
        assert [r.id for r in release_requests.list_requests(db, caller)] == [req.id]
        assert [r.id for r in release_requests.list_requests(db, caller, status="pending")] == [req.id]
        assert release_requests.list_requests(db, caller, status="approved") == []
        assert [r.id for r in release_requests.list_requests(db, caller, vault_id=contact.vault_id)] == [req.id]
        assert release_requests.list_requests(db, caller, vault_id=contact.vault_id + 1) == []

    def test_unknown_status_filter(self, db, admin):
        with pytest.raises(ValidationError):
            release_requests.list_requests(db, CallerContext.for_user(admin), status="archived")

    def test_response_projection(self, db, confirmed, admin):
        contact, jane = confirmed
        req = _file(db, jane, contact.vault_id)
        reviewed = release_requests.review(db, CallerContext.for_user(admin), req.id, "approved")
        data = ReleaseRequestResponse.model_validate(reviewed)
        assert data.id == req.id
        assert data.status == "approved"
        assert data.reviewed_by == admin.id
        assert data.death_certificate == "uploads/cert-1.pdf"

    def test_review_decisions(self):
        assert release_requests.REVIEW_DECISIONS == ("approved", "denied")
