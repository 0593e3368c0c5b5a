"""Prometheus metrics for ingestion, generation, moderation and AI usage."""

from prometheus_client import Counter

documents_processed_total = Counter(
    "documents_processed_total",
    "Documents that reached a terminal status",
    ["status"],
)

chunks_generated_total = Counter(
    "chunks_generated_total",
    "Chunk generation attempts by outcome",
    ["outcome"],
)

moderation_decisions_total = Counter(
    "moderation_decisions_total",
    "Moderation decisions by action tag",
    ["action"],
)

ai_requests_total = Counter(
    "ai_requests_total",
    "Generative AI requests by operation and outcome",
    ["operation", "outcome"],
)

ai_tokens_total = Counter(
    "ai_tokens_total",
    "Generative AI tokens consumed by operation",
    ["operation", "kind"],
)


class PipelineMetrics:
    """Prometheus-backed pipeline metrics."""

    def document_finished(self, status: str) -> None:
        documents_processed_total.labels(status=status).inc()

    def chunk_outcome(self, outcome: str) -> None:
        chunks_generated_total.labels(outcome=outcome).inc()

    def moderation_decision(self, action: str) -> None:
        moderation_decisions_total.labels(action=action).inc()

    def ai_request(self, operation: str, outcome: str) -> None:
        ai_requests_total.labels(operation=operation, outcome=outcome).inc()

    def ai_tokens(self, operation: str, input_tokens: int, output_tokens: int) -> None:
        ai_tokens_total.labels(operation=operation, kind="input").inc(input_tokens)
        ai_tokens_total.labels(operation=operation, kind="output").inc(output_tokens)
