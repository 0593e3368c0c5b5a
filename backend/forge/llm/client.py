"""Chat client for generative AI calls with OpenAI integration.

Security: Reads API key from settings only, never hardcoded.
Provides a deterministic stub when no key is present for testing.
"""

import hashlib
import json
import logging
from typing import TYPE_CHECKING, Protocol

from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.forge.config import Settings, get_settings
from backend.forge.errors import MalformedResponseError, ServiceError
from backend.forge.llm.usage import PrometheusUsageTracker, SqlUsageTracker, UsageTracker
from backend.forge.utils.metrics import PipelineMetrics

if TYPE_CHECKING:
    from backend.forge.llm.options import GenerationOptions

logger = logging.getLogger(__name__)

# Failures expected to succeed on a later attempt
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    RateLimitError,
    APITimeoutError,
    APIConnectionError,
    InternalServerError,
)


class ChatClient(Protocol):
    """Protocol for chat completion capabilities."""

    async def chat(self, messages: list[dict[str, str]], options: "GenerationOptions") -> str:
        """Send messages and return the raw text of the reply.

        Args:
            messages: Chat messages as role/content dicts
            options: Validated per-call options (operation, user, usage tracking)

        Returns:
            Reply content, expected to be a JSON object

        Raises:
            ServiceError: The call failed; ``transient`` tells whether a retry may help
            MalformedResponseError: The service returned no content
        """
        ...


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required)."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[dict[str, str]], "GenerationOptions"]] = []

    async def chat(self, messages: list[dict[str, str]], options: "GenerationOptions") -> str:
        """Generate a deterministic JSON reply for the requested operation."""
        self.calls.append((messages, options))
        content = messages[-1]["content"] if messages else ""
        digest = hashlib.sha256(content.encode()).hexdigest()[:8]

        if options.operation == "content_moderation":
            return json.dumps(
                {
                    "decision": "approve",
                    "confidence": 0.9,
                    "reason": "Technical content with no policy violations (stub)",
                    "flags": [],
                }
            )

        return json.dumps(
            {
                "title": f"Stub Diagram {digest}",
                "tags": ["stub"],
                "mermaid": "flowchart TD\n  A[Input] --> B[Process]\n  B --> C[Output]",
                "summary": f"Placeholder diagram for {len(content)} characters of input.",
                "notes_md": "- generated without an AI provider",
            }
        )


class OpenAIChatClient:
    """OpenAI-backed chat client with error classification and usage tracking."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        *,
        timeout_seconds: float = 60.0,
        usage_tracker: UsageTracker | None = None,
        metrics: PipelineMetrics | None = None,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            timeout_seconds: Per-request timeout; timeouts are classified transient
            usage_tracker: Where token usage is recorded when tracking is on
            metrics: Request counters
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.usage_tracker = usage_tracker or PrometheusUsageTracker()
        self.metrics = metrics or PipelineMetrics()

    async def chat(self, messages: list[dict[str, str]], options: "GenerationOptions") -> str:
        """Call chat completions in JSON mode."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                response_format={"type": "json_object"},
                timeout=self.timeout_seconds,
            )
        except TRANSIENT_ERRORS as e:
            self.metrics.ai_request(options.operation, "transient_error")
            logger.warning(f"OpenAI call failed transiently ({type(e).__name__}): {e}")
            raise ServiceError(
                f"AI service unavailable: {e}",
                transient=True,
                reason=type(e).__name__,
            ) from e
        except OpenAIError as e:
            self.metrics.ai_request(options.operation, "error")
            logger.error(f"OpenAI call failed ({type(e).__name__}): {e}")
            raise ServiceError(
                f"AI service request failed: {e}",
                transient=False,
                reason=type(e).__name__,
            ) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            self.metrics.ai_request(options.operation, "empty")
            raise MalformedResponseError("AI service returned an empty response")

        self.metrics.ai_request(options.operation, "success")

        if options.track_usage and response.usage is not None:
            await self.usage_tracker.record(
                user_id=options.user_id,
                operation=options.operation,
                model=self.model,
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )

        return content


def get_chat_client(
    settings: Settings | None = None,
    usage_tracker: UsageTracker | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> ChatClient:
    """Factory function to get appropriate chat client based on config.

    Usage goes to ``usage_tracker`` when given, otherwise to the token_usage
    table when a session factory is available, otherwise to Prometheus only.

    Returns:
        OpenAIChatClient if API key is configured, DeterministicStubClient otherwise
    """
    settings = settings or get_settings()
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI chat client")
        if usage_tracker is None and session_factory is not None:
            usage_tracker = SqlUsageTracker(session_factory)
        return OpenAIChatClient(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            timeout_seconds=settings.ai_timeout_seconds,
            usage_tracker=usage_tracker,
        )

    logger.warning("No OpenAI API key configured, using deterministic stub client")
    return DeterministicStubClient()
