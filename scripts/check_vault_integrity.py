"""
Verify that every stored vault field is a valid envelope that decrypts with the current key.
Reports vault ids and field names only; never prints content.

Run from project root (uses DATABASE_URL and ENCRYPTION_KEY from .env):
  python scripts/check_vault_integrity.py
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from wishvault.database import SessionLocal
from wishvault.errors import CryptoIntegrityError
from wishvault.models import Vault
from wishvault.models.vault import VAULT_CONTENT_FIELDS
from wishvault.services.crypto import decrypt_field, is_envelope


def main():
    db = SessionLocal()
    bad = 0
    try:
        vaults = db.query(Vault).order_by(Vault.id).all()
        for vault in vaults:
            for name in VAULT_CONTENT_FIELDS:
                value = getattr(vault, name)
                if not value:
                    continue
                if not is_envelope(value):
                    print(f"  vault {vault.id}: {name} is not an envelope")
                    bad += 1
                    continue
                try:
                    decrypt_field(value)
                except CryptoIntegrityError as e:
                    print(f"  vault {vault.id}: {name} failed integrity check ({e})")
                    bad += 1
        print(f"Checked {len(vaults)} vault(s); {bad} bad field(s).")
    finally:
        db.close()
    sys.exit(1 if bad else 0)


if __name__ == "__main__":
    main()
