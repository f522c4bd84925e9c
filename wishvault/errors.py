"""Typed failures raised by the vault core.

The web layer maps ``status_code`` and ``public_message`` to its responses; ``str(exc)``
carries the internal detail and is meant for logs only.
"""


class VaultError(Exception):
    status_code = 500
    public_message = "Something went wrong."

    def __init__(self, message: str | None = None, *, public_message: str | None = None):
        super().__init__(message or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class ValidationError(VaultError):
    """Malformed input. Never retried, never partially applied."""
    status_code = 400
    public_message = "Invalid data."

    def __init__(self, message: str | None = None, *, public_message: str | None = None):
        # Validation details are safe to show the caller
        super().__init__(message, public_message=public_message or message)


class AuthorizationError(VaultError):
    status_code = 403
    public_message = "You do not have access to this resource."


class NotFoundError(VaultError):
    status_code = 404
    public_message = "Not found."


class ConflictError(VaultError):
    """A concurrent or repeated state transition was rejected."""
    status_code = 409
    public_message = "This request has already been processed."


class CryptoIntegrityError(VaultError):
    """Stored ciphertext could not be authenticated or decoded."""
    status_code = 500
    public_message = "Stored data could not be read."


class DependencyError(VaultError):
    """The persistent store is unavailable; safe to retry with backoff."""
    status_code = 503
    public_message = "Service temporarily unavailable. Please try again."
