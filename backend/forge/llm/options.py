"""Validated per-call options for generative AI requests.

Options are checked before any external call is made so that a bad
configuration (unknown operation, usage tracking without a user) fails
fast instead of producing untracked or misattributed usage.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from backend.forge.errors import (
    ConfigurationError,
    InvalidOperationError,
    MissingOperationError,
    MissingUserIdError,
)

if TYPE_CHECKING:
    from backend.forge.llm.client import ChatClient

# "syntax_fix" is accepted for callers that repair diagram source outside the
# ingestion and moderation pipelines; nothing in this package issues it.
VALID_OPERATIONS: tuple[str, ...] = ("diagram_generation", "syntax_fix", "content_moderation")


@dataclass(frozen=True)
class GenerationOptions:
    """Immutable, validated options for one generative AI call."""

    operation: str
    user_id: str | None = None
    track_usage: bool = True
    ai_client: "ChatClient | None" = None

    def as_request_kwargs(self) -> dict[str, Any]:
        """Flatten to keyword arguments for a chat client call.

        The client override is not part of the request and is left out.
        """
        return {
            "operation": self.operation,
            "user_id": self.user_id,
            "track_usage": self.track_usage,
        }


@dataclass(frozen=True)
class OptionsResult:
    """Outcome of non-strict validation: either options or an error."""

    options: GenerationOptions | None = None
    error: ConfigurationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_options(
    operation: str | None,
    *,
    user_id: str | None = None,
    track_usage: bool = True,
    ai_client: "ChatClient | None" = None,
) -> GenerationOptions:
    """Validate inputs and build options, raising on invalid configuration.

    Checks run in a fixed order: operation present, operation recognized,
    then user_id present when usage tracking is on.

    Raises:
        MissingOperationError: operation is None or empty
        InvalidOperationError: operation is not a recognized operation
        MissingUserIdError: track_usage is set and user_id is None or empty
    """
    if not operation:
        raise MissingOperationError()

    if operation not in VALID_OPERATIONS:
        raise InvalidOperationError(operation, VALID_OPERATIONS)

    if track_usage and not user_id:
        raise MissingUserIdError()

    return GenerationOptions(
        operation=operation,
        user_id=user_id,
        track_usage=track_usage,
        ai_client=ai_client,
    )


def validate_options(
    operation: str | None,
    *,
    user_id: str | None = None,
    track_usage: bool = True,
    ai_client: "ChatClient | None" = None,
) -> OptionsResult:
    """Non-strict variant of build_options returning a result value."""
    try:
        options = build_options(
            operation, user_id=user_id, track_usage=track_usage, ai_client=ai_client
        )
    except ConfigurationError as e:
        return OptionsResult(error=e)
    return OptionsResult(options=options)
