"""
Create a test vault owner and a test administrator (no email verification required).
Use when verification emails are not configured so you can log in and try the release flow.

Run from project root:
  python scripts/create_test_users.py

Credentials are printed at the end.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from wishvault.database import Base, SessionLocal, engine
from wishvault.models import User
from wishvault.services.auth import get_password_hash

# Default credentials (change if you want)
OWNER_EMAIL = "owner@wishkeepers.demo"
OWNER_PASSWORD = "Password123"
OWNER_FULL_NAME = "Test Owner"

ADMIN_EMAIL = "admin@wishkeepers.demo"
ADMIN_PASSWORD = "Password123"
ADMIN_FULL_NAME = "Test Admin"


def _ensure_user(db, email: str, password: str, full_name: str, is_admin: bool) -> None:
    user = db.query(User).filter(User.email == email).first()
    if user:
        print(f"Already exists: {email}")
        return
    db.add(User(
        email=email,
        hashed_password=get_password_hash(password),
        full_name=full_name,
        is_admin=is_admin,
        email_verified=True,
        email_verification_code=None,
        email_verification_expires_at=None,
    ))
    print(f"Created {'admin' if is_admin else 'owner'}: {email}")


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        _ensure_user(db, OWNER_EMAIL, OWNER_PASSWORD, OWNER_FULL_NAME, is_admin=False)
        _ensure_user(db, ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_FULL_NAME, is_admin=True)
        db.commit()

        print("\n--- Test users (use when verification email is not set up) ---")
        print("Owner:")
        print(f"  Email:    {OWNER_EMAIL}")
        print(f"  Password: {OWNER_PASSWORD}")
        print("\nAdmin:")
        print(f"  Email:    {ADMIN_EMAIL}")
        print(f"  Password: {ADMIN_PASSWORD}")
        print("\nDone.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
