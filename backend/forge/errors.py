"""Error taxonomy for the ingestion and moderation pipeline.

Every error carries a human-readable message plus an optional ``details``
dict that ends up in structured log records.
"""

from typing import Any, Literal


class ForgeError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(ForgeError):
    """Generation options failed validation; raised before any side effect."""


class MissingOperationError(ConfigurationError):
    """No operation was supplied."""

    def __init__(self) -> None:
        super().__init__("operation is required")


class InvalidOperationError(ConfigurationError):
    """Operation is not one of the recognized operations."""

    def __init__(self, operation: str, valid_operations: tuple[str, ...]) -> None:
        super().__init__(
            f"invalid operation '{operation}', must be one of: {', '.join(valid_operations)}",
            {"operation": operation, "valid_operations": list(valid_operations)},
        )
        self.operation = operation
        self.valid_operations = valid_operations


class MissingUserIdError(ConfigurationError):
    """Usage tracking is enabled but no user_id was supplied."""

    def __init__(self) -> None:
        super().__init__("user_id is required when track_usage is enabled")


class ExtractionError(ForgeError):
    """Text extraction failed permanently for a document."""

    def __init__(self, message: str, document_id: str | None = None) -> None:
        details = {"document_id": document_id} if document_id else {}
        super().__init__(message, details)


class ServiceError(ForgeError):
    """A generative-text or content-analysis call failed.

    ``transient`` marks failures expected to succeed on retry
    (timeout, rate limit, connection loss, upstream 5xx).
    """

    def __init__(
        self,
        message: str,
        *,
        transient: bool,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.transient = transient
        self.reason = reason or ("transient" if transient else "permanent")


class MalformedResponseError(ForgeError):
    """A service response could not be parsed into the expected structure."""


GenerationErrorKind = Literal["transient", "permanent", "malformed", "validation"]


class GenerationError(ForgeError):
    """Diagram generation failed for a single chunk."""

    def __init__(
        self,
        message: str,
        kind: GenerationErrorKind,
        field_errors: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(message, {"kind": kind, "field_errors": field_errors or {}})
        self.kind = kind
        self.field_errors = field_errors or {}


class PersistenceError(ForgeError):
    """A store write failed; surfaced to the scheduler for retry."""
