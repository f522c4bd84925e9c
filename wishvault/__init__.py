"""Wishkeepers vault core: encrypted end-of-life records and their release to trusted contacts."""

__version__ = "0.1.0"
