"""Diagram generation stage - one text unit to one validated diagram draft.

The stage never persists anything. Every outcome is returned as a
GenerationResult so callers can keep going after a single bad chunk.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from backend.forge.content.sanitizer import ContentSanitizer
from backend.forge.errors import (
    GenerationError,
    GenerationErrorKind,
    MalformedResponseError,
    ServiceError,
)
from backend.forge.llm import prompts
from backend.forge.llm.client import ChatClient
from backend.forge.llm.options import GenerationOptions, build_options
from backend.forge.llm.parsing import parse_json_object

logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


class DiagramDraft(BaseModel):
    """Unsaved diagram produced from one generation call."""

    title: str = Field(..., min_length=1, max_length=500)
    slug: str
    tags: list[str] = Field(default_factory=list)
    diagram_source: str = Field(..., min_length=1, description="Mermaid markup")
    format: Literal["mermaid", "plantuml"] = "mermaid"
    summary: str | None = None
    notes_md: str | None = None


@dataclass(frozen=True)
class GenerationFailure:
    """Why a generation call produced no draft."""

    kind: GenerationErrorKind
    message: str
    field_errors: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerationResult:
    """Either a draft or a failure, never both."""

    draft: DiagramDraft | None = None
    failure: GenerationFailure | None = None

    @property
    def ok(self) -> bool:
        return self.draft is not None

    def unwrap(self) -> DiagramDraft:
        """Return the draft or raise GenerationError describing the failure."""
        if self.draft is not None:
            return self.draft
        assert self.failure is not None
        raise GenerationError(self.failure.message, self.failure.kind, self.failure.field_errors)

    @classmethod
    def failed(
        cls,
        kind: GenerationErrorKind,
        message: str,
        field_errors: dict[str, list[str]] | None = None,
    ) -> "GenerationResult":
        return cls(failure=GenerationFailure(kind, message, field_errors or {}))


def slugify(title: str | None) -> str:
    """Lowercase the title and collapse non-alphanumeric runs into hyphens.

    A missing title, or one with no letters or digits, gets a time-based
    placeholder.
    """
    slug = _SLUG_RE.sub("-", title.lower()).strip("-") if title is not None else ""
    return slug or f"diagram-{int(time.time() * 1000)}"


def _field_errors(error: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in error.errors():
        name = ".".join(str(part) for part in item["loc"]) or "__root__"
        errors.setdefault(name, []).append(item["msg"])
    return errors


class DiagramGenerator:
    """Turns a chunk of text into a DiagramDraft via a chat client."""

    def __init__(self, client: ChatClient, sanitizer: ContentSanitizer | None = None) -> None:
        """Initialize generator.

        Args:
            client: Default chat client, used unless options carry an override
            sanitizer: Applied to title, summary and diagram source before validation
        """
        self.client = client
        self.sanitizer = sanitizer or ContentSanitizer()

    async def generate(self, chunk_text: str, options: GenerationOptions) -> GenerationResult:
        """Generate one diagram draft for a chunk of document text."""
        messages = [
            {"role": "system", "content": prompts.DIAGRAM_SYSTEM_PROMPT},
            {"role": "user", "content": prompts.diagram_from_chunk_user_prompt(chunk_text)},
        ]
        return await self._run(messages, options)

    async def generate_from_prompt(
        self,
        prompt: str,
        *,
        user_id: str | None,
        track_usage: bool = True,
        ai_client: ChatClient | None = None,
    ) -> GenerationResult:
        """Generate an ad hoc diagram from a free-form description.

        Raises:
            ConfigurationError: Options are invalid; raised before any AI call
        """
        options = build_options(
            "diagram_generation",
            user_id=user_id,
            track_usage=track_usage,
            ai_client=ai_client,
        )
        messages = [
            {"role": "system", "content": prompts.DIAGRAM_SYSTEM_PROMPT},
            {"role": "user", "content": prompts.diagram_from_prompt_user_prompt(prompt)},
        ]
        return await self._run(messages, options)

    async def _run(
        self, messages: list[dict[str, str]], options: GenerationOptions
    ) -> GenerationResult:
        client = options.ai_client or self.client

        try:
            raw = await client.chat(messages, options)
        except ServiceError as e:
            kind: GenerationErrorKind = "transient" if e.transient else "permanent"
            return GenerationResult.failed(kind, e.message)
        except MalformedResponseError as e:
            return GenerationResult.failed("malformed", e.message)

        try:
            data = parse_json_object(raw)
        except MalformedResponseError as e:
            logger.warning(f"Unparseable diagram response: {e.message}")
            return GenerationResult.failed("malformed", e.message)

        return self._build_draft(data)

    def _build_draft(self, data: dict[str, Any]) -> GenerationResult:
        title = data.get("title")
        title = self.sanitizer.sanitize(title) if isinstance(title, str) else title
        summary = data.get("summary")
        summary = self.sanitizer.sanitize(summary) if isinstance(summary, str) else summary
        source = data.get("mermaid")
        source = self.sanitizer.sanitize_diagram(source) if isinstance(source, str) else source

        attrs = {
            "title": title,
            "slug": slugify(title if isinstance(title, str) else None),
            "tags": data.get("tags") or [],
            "diagram_source": source,
            "format": "mermaid",
            "summary": summary,
            "notes_md": data.get("notes_md"),
        }

        try:
            draft = DiagramDraft.model_validate(attrs)
        except ValidationError as e:
            field_errors = _field_errors(e)
            return GenerationResult.failed(
                "validation",
                f"Generated diagram failed validation: {', '.join(sorted(field_errors))}",
                field_errors,
            )

        return GenerationResult(draft=draft)
