"""Registration, email verification and credential checks."""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wishvault.config import get_settings
from wishvault.database import transaction
from wishvault.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from wishvault.models.user import User
from wishvault.schemas.auth import CallerContext, ResendVerificationRequest, UserCreate, UserLogin, VerifyEmailRequest
from wishvault.services import notifications
from wishvault.services.audit_log import create_log, CATEGORY_FAILED_ATTEMPT, CATEGORY_STATUS_CHANGE
from wishvault.services.auth import (
    generate_verification_code,
    get_password_hash,
    normalize_email,
    normalize_verification_code,
    validate_password_strength,
    verify_password,
)

logger = logging.getLogger("wishvault.users")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Some backends (SQLite) return naive datetimes for timezone-aware columns."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def get_user(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def load_caller(db: Session, caller: CallerContext) -> User:
    """Resolve the caller to a stored user. Unknown callers are unauthorized, not 'not found'."""
    user = get_user(db, caller.user_id)
    if not user:
        raise AuthorizationError(f"Caller user_id={caller.user_id} does not exist")
    return user


def is_admin(caller: CallerContext, user: User) -> bool:
    """Admin rights need both the session flag and the stored flag."""
    return bool(caller.is_admin and user.is_admin)


def register_user(db: Session, data: UserCreate) -> User:
    """Create an unverified account and email a verification code."""
    email = normalize_email(data.email)
    validate_password_strength(data.password)
    if get_user_by_email(db, email):
        raise ConflictError(f"User already exists: {email}", public_message="An account with this email already exists.")
    settings = get_settings()
    code = generate_verification_code()
    user = User(
        email=email,
        hashed_password=get_password_hash(data.password),
        full_name=(data.full_name or "").strip() or None,
        is_admin=False,
        email_verified=False,
        email_verification_code=code,
        email_verification_expires_at=utcnow() + timedelta(minutes=settings.verification_code_expire_minutes),
    )
    try:
        with transaction(db):
            db.add(user)
            db.flush()
            create_log(
                db,
                CATEGORY_STATUS_CHANGE,
                "User registered",
                f"Account created for {email} (pending email verification).",
                actor_user_id=user.id,
                actor_email=email,
            )
    except IntegrityError as e:
        raise ConflictError(f"User already exists: {email}", public_message="An account with this email already exists.") from e
    db.refresh(user)
    notifications.dispatch(notifications.send_verification_email, user.email, user.full_name, code)
    return user


def verify_email(db: Session, data: VerifyEmailRequest) -> User:
    code = normalize_verification_code(data.code)
    if not code:
        raise ValidationError("Verification code must be exactly 6 digits.")
    user = get_user_by_email(db, data.email)
    if not user:
        raise ValidationError("Invalid or expired verification code.")
    if user.email_verified:
        return user
    stored = normalize_verification_code(user.email_verification_code)
    expires_at = as_utc(user.email_verification_expires_at)
    reason = None
    if not stored or stored != code:
        reason = "invalid_code"
    elif expires_at is None or expires_at < utcnow():
        reason = "expired_code"
    if reason:
        with transaction(db):
            create_log(
                db,
                CATEGORY_FAILED_ATTEMPT,
                "Email verification failed",
                f"Verification failed for user_id={user.id}.",
                actor_user_id=user.id,
                actor_email=user.email,
                meta={"reason": reason},
            )
        if reason == "expired_code":
            raise ValidationError("Verification code has expired. Please request a new one.")
        raise ValidationError("Invalid or expired verification code.")
    with transaction(db):
        user.email_verified = True
        user.email_verification_code = None
        user.email_verification_expires_at = None
    db.refresh(user)
    return user


def resend_verification(db: Session, data: ResendVerificationRequest) -> bool:
    """Issue a fresh code. Returns False when the account is already verified."""
    user = get_user_by_email(db, data.email)
    if not user:
        raise NotFoundError(f"No user for {normalize_email(data.email)}", public_message="Invalid request")
    if user.email_verified:
        return False
    code = generate_verification_code()
    with transaction(db):
        user.email_verification_code = code
        user.email_verification_expires_at = utcnow() + timedelta(minutes=get_settings().verification_code_expire_minutes)
    notifications.dispatch(notifications.send_verification_email, user.email, user.full_name, code)
    return True


def authenticate(db: Session, data: UserLogin) -> User:
    """Check credentials. The error does not reveal whether the email exists."""
    user = get_user_by_email(db, data.email)
    if not user or not verify_password(data.password, user.hashed_password):
        logger.info("Failed login attempt")
        raise AuthorizationError("Invalid credentials", public_message="Invalid credentials")
    return user
