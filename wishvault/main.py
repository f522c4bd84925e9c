"""Process startup: create tables, derive the field cipher key, seed administrators.

The web layer calls startup() once before serving; `python -m wishvault.main` runs it standalone.
"""
import logging

from wishvault.config import get_settings
from wishvault.database import Base, SessionLocal, engine
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from wishvault.models import User, Vault, TrustedContact, DataReleaseRequest, AuditLog  # noqa: F401
from wishvault.seed import seed_admin_users
from wishvault.services.crypto import get_master_key

logger = logging.getLogger("wishvault")


def startup() -> None:
    settings = get_settings()
    # Fail at startup, not on the first vault read, when ENCRYPTION_KEY is missing
    get_master_key()
    if not (settings.mailgun_api_key and settings.mailgun_domain):
        logger.warning("Mailgun not configured - invitation and verification emails will be skipped")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_admin_users(db)
    finally:
        db.close()
    logger.info("%s ready (env=%s)", settings.app_name, settings.app_env)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    startup()
