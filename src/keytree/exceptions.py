"""Custom exception hierarchy for the keytree storage layer."""

from __future__ import annotations

from typing import Any


class KeytreeError(Exception):
    """Base exception for all keytree errors."""


class InputValidationError(KeytreeError, ValueError):
    """Raised when arguments are rejected before any store call is made."""

    def __init__(self, message: str, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


class NodeAlreadyExistsError(InputValidationError):
    """Raised when a rename target already exists."""


class NodeNotFoundError(KeytreeError):
    """Raised when the source node of an operation does not exist."""


class StorageError(KeytreeError):
    """Raised on object store failures (DB connection, network I/O, etc.)."""


class ObjectNotFoundError(StorageError):
    """Raised by a store client when a key does not exist."""
