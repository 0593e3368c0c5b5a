"""AI content analysis for diagram moderation.

User content is embedded in the prompt between explicit untrusted-input
delimiters, and the model's verdict is checked for signs that embedded
instructions steered it. Suspicious verdicts are downgraded to manual
review.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Literal, Protocol

from backend.forge.db.models import Diagram
from backend.forge.errors import MalformedResponseError
from backend.forge.llm.client import ChatClient
from backend.forge.llm.options import build_options
from backend.forge.llm.parsing import parse_json_object
from backend.forge.llm.prompts import moderation_prompt

logger = logging.getLogger(__name__)

Decision = Literal["approve", "reject", "manual_review"]
DECISIONS: tuple[str, ...] = ("approve", "reject", "manual_review")

DEFAULT_CONFIDENCE = 0.5
SUSPICIOUS_FLAG = "suspicious_output"

_INSTRUCTION_FOLLOWING = [
    re.compile(r"as\s+(you\s+)?instructed", re.IGNORECASE),
    re.compile(r"following\s+your\s+instructions", re.IGNORECASE),
    re.compile(r"as\s+requested", re.IGNORECASE),
    re.compile(r"per\s+your\s+(instructions|request)", re.IGNORECASE),
]

_OVERRIDE_LANGUAGE = [
    re.compile(r"ignoring\s+(the\s+)?(previous|above|system)", re.IGNORECASE),
    re.compile(r"overrid(e|ing)\s+(the\s+)?instructions", re.IGNORECASE),
    re.compile(r"disregard(ed|ing)\s+(the\s+)?", re.IGNORECASE),
]


@dataclass(frozen=True)
class ModerationVerdict:
    """Content analysis outcome for one diagram."""

    decision: Decision
    confidence: float
    reason: str
    flags: list[str] = field(default_factory=list)


class ContentAnalyzer(Protocol):
    """Protocol for content analysis capabilities."""

    async def analyze(self, diagram: Diagram) -> ModerationVerdict:
        """Score a diagram against content policies.

        Raises:
            ServiceError: The analysis call failed
            MalformedResponseError: The verdict could not be parsed
        """
        ...


def parse_confidence(value: Any) -> float:
    """Clamp to [0, 1]; missing or non-numeric values become 0.5."""
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    if isinstance(value, int | float):
        return min(1.0, max(0.0, float(value)))
    if isinstance(value, str):
        match = re.match(r"\s*[-+]?(\d+(\.\d*)?|\.\d+)", value)
        if match:
            return min(1.0, max(0.0, float(match.group(0))))
    return DEFAULT_CONFIDENCE


def parse_moderation_response(raw: str) -> ModerationVerdict:
    """Parse the analyzer's JSON reply into a verdict.

    Raises:
        MalformedResponseError: Not JSON, or the decision is not recognized
    """
    data = parse_json_object(raw)

    decision = data.get("decision")
    if decision not in DECISIONS:
        raise MalformedResponseError(
            "Invalid moderation response format - unexpected decision value",
            {"decision": decision},
        )

    flags = data.get("flags") or []
    if not isinstance(flags, list):
        flags = [flags]

    return ModerationVerdict(
        decision=decision,
        confidence=parse_confidence(data.get("confidence")),
        reason=str(data.get("reason") or ""),
        flags=[str(flag) for flag in flags],
    )


def suspicious_reasons(verdict: ModerationVerdict, diagram: Diagram) -> list[str]:
    """Signs that the verdict was manipulated by the content it judged."""
    reasons: list[str] = []

    if verdict.decision == "approve" and verdict.confidence >= 0.99 and len(verdict.reason) < 10:
        reasons.append("suspiciously certain approval with minimal explanation")

    for text in (diagram.title, diagram.summary):
        if text is not None and len(text) > 20 and text in verdict.reason:
            reasons.append("reason appears to parrot user input")
            break

    if any(pattern.search(verdict.reason) for pattern in _INSTRUCTION_FOLLOWING):
        reasons.append("reason contains instruction-following language")

    if any(pattern.search(verdict.reason) for pattern in _OVERRIDE_LANGUAGE):
        reasons.append("reason mentions ignoring/overriding instructions")

    return reasons


class LLMContentAnalyzer:
    """Content analyzer backed by a chat client."""

    def __init__(self, client: ChatClient, *, enabled: bool = True) -> None:
        self.client = client
        self.enabled = enabled

    async def analyze(self, diagram: Diagram) -> ModerationVerdict:
        if not self.enabled:
            return ModerationVerdict(
                decision="approve", confidence=1.0, reason="Moderation disabled"
            )

        prompt = moderation_prompt(
            title=diagram.title or "",
            summary=diagram.summary or "",
            diagram_format=diagram.format,
            source=diagram.diagram_source or "",
        )
        # System-initiated call, not billed to a user
        options = build_options("content_moderation", track_usage=False)

        raw = await self.client.chat([{"role": "user", "content": prompt}], options)
        verdict = parse_moderation_response(raw)

        reasons = suspicious_reasons(verdict, diagram)
        if reasons:
            logger.warning(
                f"Suspicious moderation result for diagram {diagram.id}: {'; '.join(reasons)}",
                extra={
                    "structured": {
                        "diagram_id": str(diagram.id),
                        "decision": verdict.decision,
                        "reasons": reasons,
                    }
                },
            )
            return replace(
                verdict,
                decision="manual_review",
                flags=[*verdict.flags, SUSPICIOUS_FLAG],
            )

        return verdict
