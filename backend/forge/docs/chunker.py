"""Text segmenter - deterministic, lossless splitting of extracted text."""

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MAX_CHARS = 4000

_SENTENCE_ENDS = (". ", "! ", "? ")


class TextChunk(BaseModel):
    """One bounded unit of document text. Not persisted."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1, description="1-based position in the document")
    text: str = Field(..., min_length=1)


def segment_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> list[TextChunk]:
    """Split text into ordered chunks of at most max_chars characters.

    Pure function with no I/O or randomness. Unlike a whitespace-normalizing
    chunker, the chunks reproduce the input exactly:
    ``"".join(c.text for c in chunks) == text``.

    Within each window the cut goes after the last paragraph break, else
    the last line break, else the last sentence end, else the last
    whitespace character, else hard at the bound. Line endings are kept
    as-is.

    Args:
        text: Extracted document text
        max_chars: Upper bound on chunk length

    Returns:
        Chunks numbered from 1; empty list for empty text

    Raises:
        ValueError: If max_chars is not positive
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")

    chunks: list[TextChunk] = []
    start = 0
    length = len(text)

    while start < length:
        if length - start <= max_chars:
            end = length
        else:
            end = start + _find_breakpoint(text[start : start + max_chars])
        chunks.append(TextChunk(index=len(chunks) + 1, text=text[start:end]))
        start = end

    return chunks


def _find_breakpoint(window: str) -> int:
    """Return the cut offset inside window (always >= 1)."""
    pos = window.rfind("\n\n")
    if pos != -1:
        return pos + 2

    pos = window.rfind("\n")
    if pos != -1:
        return pos + 1

    pos = max(window.rfind(end) for end in _SENTENCE_ENDS)
    if pos != -1:
        return pos + 2

    for i in range(len(window) - 1, -1, -1):
        if window[i].isspace():
            return i + 1

    return len(window)
