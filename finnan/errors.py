"""
Error Taxonomy

Every business-rule and validation failure leaves the core as one of the
exceptions below. Each carries a stable machine-checkable ``kind`` and a
human message; ``details`` holds optional structured context (never
stack traces or internal identifiers).

Store exceptions (``StorageError`` and subclasses) are translated to
``InternalError`` at operation boundaries via ``storage_errors``.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog

from finnan.services.storage.interface import StorageError


class FinnanError(Exception):
    """Base class for all errors surfaced by the core."""

    kind = "internal_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(FinnanError):
    """Malformed or out-of-range input, with field-level issues."""

    kind = "validation_error"

    def __init__(self, message: str, issues: Optional[list[dict[str, Any]]] = None):
        super().__init__(message, {"issues": issues or []})
        self.issues = issues or []


class NotFoundError(FinnanError):
    """
    Entity absent or not owned by the caller.

    The two cases are deliberately indistinguishable.
    """

    kind = "not_found"


class InvalidReferenceError(FinnanError):
    """A referenced foreign entity does not exist or is not owned by the caller."""

    kind = "invalid_reference"


class InvalidOperationError(FinnanError):
    """Business-rule violation."""

    kind = "invalid_operation"


class InternalError(FinnanError):
    """Unexpected failure (store unavailable, integrity fault, ...)."""

    kind = "internal_error"


class AuthenticationError(FinnanError):
    """Missing, invalid or expired credential, or unknown user."""

    kind = "authentication_error"

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """
    Translate store failures raised inside the block into InternalError.

    Usage:
        with storage_errors("create_transaction"):
            async with store.transaction() as session:
                ...
    """
    try:
        yield
    except StorageError as e:
        structlog.get_logger().error(
            "storage_failure",
            operation=operation,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise InternalError("Internal server error") from e
