from __future__ import annotations

from typing import Any, Dict, Optional


class StorageError(Exception):
    """Base class for failures raised by a handler implementation."""

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ConstraintViolation(StorageError):
    """Raised when a storage-layer uniqueness or FK constraint is violated."""


class RecordNotFound(StorageError):
    """Raised when a token or user lookup finds nothing."""


class CredentialsRejected(StorageError):
    """Raised when a username/password pair does not authenticate."""


__all__ = ["StorageError", "ConstraintViolation", "RecordNotFound", "CredentialsRejected"]
