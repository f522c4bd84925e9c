"""Seed administrator accounts from settings. Admins are created verified and never expire.

An existing non-admin account holding the admin address is left alone and reported.
"""
import logging

from sqlalchemy.orm import Session

from wishvault.config import get_settings
from wishvault.models.user import User
from wishvault.services.auth import get_password_hash, normalize_email

logger = logging.getLogger("wishvault.seed")


def seed_admin_users(db: Session) -> User | None:
    settings = get_settings()
    email = normalize_email(settings.admin_email)
    if not email or not settings.admin_password:
        logger.info("Admin seeding skipped: ADMIN_EMAIL or ADMIN_PASSWORD not set")
        return None
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        if not existing.is_admin:
            # Never promote: the row's password was chosen by whoever registered it
            logger.error(
                "Admin seeding refused: user id=%s already holds ADMIN_EMAIL without admin rights",
                existing.id,
            )
            return None
        return existing
    admin = User(
        email=email,
        hashed_password=get_password_hash(settings.admin_password),
        full_name=settings.admin_full_name,
        is_admin=True,
        email_verified=True,
        email_verification_code=None,
        email_verification_expires_at=None,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Seeded administrator account id=%s", admin.id)
    return admin
