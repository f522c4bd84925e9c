"""
Print a new random secret for ENCRYPTION_KEY.

Run from project root:
  python scripts/generate_encryption_key.py

Changing ENCRYPTION_KEY on an existing database makes every stored vault unreadable.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from wishvault.services.crypto import generate_encryption_key


def main():
    print(f"ENCRYPTION_KEY={generate_encryption_key()}")


if __name__ == "__main__":
    main()
