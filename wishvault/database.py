"""
Database connection and session.

Schema source of truth: wishvault.models. On startup, Base.metadata.create_all(bind=engine)
creates the users, vaults, trusted_contacts, data_release_requests and audit_logs tables.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from wishvault.config import get_settings
from wishvault.errors import DependencyError

logger = logging.getLogger("wishvault.database")

settings = get_settings()
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """Run one unit of work: commit on success, roll back on any error.

    Storage outages surface as DependencyError so callers can decide whether to retry.
    """
    try:
        yield db
        db.commit()
    except (OperationalError, InterfaceError) as e:
        db.rollback()
        logger.error("Database unavailable, transaction rolled back: %s", type(e).__name__)
        raise DependencyError("The vault store is temporarily unavailable.") from e
    except Exception:
        db.rollback()
        raise
