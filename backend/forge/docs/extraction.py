"""Raw text extraction for uploaded documents."""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from backend.forge.db.models import Document, SourceType
from backend.forge.errors import ExtractionError

logger = logging.getLogger(__name__)


class TextExtractor(Protocol):
    """Protocol for per-format text extraction."""

    async def extract_text(self, document: Document) -> str:
        """Return the document's full text.

        Raises:
            ExtractionError: The text cannot be obtained; retrying will not help
        """
        ...


class FileTextExtractor:
    """Reads text and markdown documents from disk.

    Text already stored on the document (pasted uploads) is returned as-is.
    PDF parsing is not available and is reported as an extraction error.
    """

    def __init__(self, base_dir: Path | None = None, encoding: str = "utf-8") -> None:
        self.base_dir = base_dir
        self.encoding = encoding

    async def extract_text(self, document: Document) -> str:
        if document.raw_text is not None:
            return document.raw_text

        document_id = str(document.id)

        if document.source_type == SourceType.PDF.value:
            raise ExtractionError("PDF text extraction is not supported", document_id)

        if not document.path:
            raise ExtractionError("Document has neither a file path nor text", document_id)

        path = Path(document.path)
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path

        try:
            return await asyncio.to_thread(path.read_text, encoding=self.encoding)
        except FileNotFoundError as e:
            raise ExtractionError(f"File not found: {path.name}", document_id) from e
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read document {document_id} from {path}: {e}")
            raise ExtractionError(f"Could not read file: {e}", document_id) from e
