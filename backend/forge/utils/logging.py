"""Logging setup and structured pipeline logging."""

import logging
import sys
from typing import Any

logger = logging.getLogger("backend.forge")


def configure_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.setLevel(level.upper())
    root_logger.addHandler(handler)

    # Quiet chatty client libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


class StructuredPipelineLogger:
    """Structured logger for pipeline stage outcomes."""

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def log_stage(
        self,
        stage: str,
        outcome: str,
        *,
        level: int | None = None,
        **fields: Any,
    ) -> None:
        """Log a stage outcome with structured data.

        Success-like outcomes log at INFO, everything else at WARNING unless
        ``level`` is given.
        """
        log_data: dict[str, Any] = {"stage": stage, "outcome": outcome}
        log_data.update({key: value for key, value in fields.items() if value is not None})

        if level is None:
            level = logging.INFO if outcome in ("started", "success", "skipped") else logging.WARNING

        details = " ".join(f"{key}={value}" for key, value in log_data.items() if key != "stage")
        self._logger.log(level, f"{stage}: {details}", extra={"structured": log_data})
