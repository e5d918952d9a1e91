from __future__ import annotations

from dropbin.domain.access_policy import AccessKind


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""


class InvalidParameters(ServiceError):
    """Raised when a request is missing fields or carries invalid values."""


class PasteNotFoundError(ServiceError):
    """Raised when no paste exists for a slug."""


class PasteExpiredError(ServiceError):
    """Raised when a paste exists but its expiry has passed."""


class PasteLimitReachedError(ServiceError):
    """Raised when the view or download ceiling of a paste is consumed."""

    def __init__(self, message: str, *, limit: AccessKind) -> None:
        super().__init__(message)
        self.limit = limit


class PasswordRequiredError(ServiceError):
    """Raised when a protected paste is accessed without a password."""


class InvalidPasswordError(ServiceError):
    """Raised when the supplied password does not match."""


class PasteOwnershipError(ServiceError):
    """Raised when a caller acts on a paste it does not own."""


class StorageError(ServiceError):
    """Raised when the blob store fails."""


class PersistenceError(ServiceError):
    """Raised when the metadata store fails."""
