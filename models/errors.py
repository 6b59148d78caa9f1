"""Error kinds surfaced by the storefront core."""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for recoverable storefront failures."""


class Unauthenticated(StorefrontError):
    """Raised when a privileged action is attempted without a caller identity."""

    def __init__(self, message: str = "authentication required") -> None:
        super().__init__(message)


class ResourceUnavailable(StorefrontError):
    """Raised when the capture device cannot be acquired."""

    def __init__(self, message: str = "device unavailable") -> None:
        super().__init__(message)


class PersistenceFailure(StorefrontError):
    """Raised when a store cannot save or read a record."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class ValidationFailure(StorefrontError, ValueError):
    """Raised for malformed input outside the catalog engine."""


class SessionActiveError(StorefrontError):
    """Raised when a caller starts a capture while one is still running."""


class InvalidTransition(StorefrontError):
    """Raised when a capture operation is not allowed in the current state."""


__all__ = [
    "StorefrontError",
    "Unauthenticated",
    "ResourceUnavailable",
    "PersistenceFailure",
    "ValidationFailure",
    "SessionActiveError",
    "InvalidTransition",
]
