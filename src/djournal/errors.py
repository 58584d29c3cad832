"""Exceptions raised by daily journal operations."""

from __future__ import annotations


class JournalError(Exception):
    """Base exception for journal operations."""
    pass


class ValidationError(JournalError):
    """Raised when input is malformed or a required value is missing."""
    pass


class PayloadTooLargeError(ValidationError):
    """Raised when an attached image exceeds the configured size limit."""
    pass


class NotFoundError(JournalError):
    """Raised when an id or snapshot date does not exist."""
    pass


class ConflictError(JournalError):
    """Raised when a template field or counter name already exists."""
    pass


class InvalidStateError(JournalError):
    """Raised when an operation does not apply to the entity's current kind or state."""
    pass
