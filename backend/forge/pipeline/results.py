"""Outcome of one background work item."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TaskResult:
    """What a work item reports back to the scheduler.

    ``retryable`` is only meaningful on failures: it asks the scheduler to
    run the item again. ``skipped`` marks successes that did no work.
    """

    ok: bool
    skipped: bool = False
    retryable: bool = False
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, *, skipped: bool = False, **details: Any) -> "TaskResult":
        return cls(ok=True, skipped=skipped, details=details)

    @classmethod
    def failure(cls, error: str, *, retryable: bool = False, **details: Any) -> "TaskResult":
        return cls(ok=False, retryable=retryable, error=error, details=details)
