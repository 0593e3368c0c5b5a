"""Sanitizes generated diagram content.

Titles and summaries lose HTML and URLs; Mermaid source loses directives
that can open links or run scripts in the renderer.
"""

import re

_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_URL_RE = re.compile(r"https?://[^\s<>\"]+", re.IGNORECASE)

# Mermaid directives that enable external links or JavaScript execution
MERMAID_DANGEROUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"click\s+\w+\s+(?:href|call)\s*[^\n]*", re.IGNORECASE),
    re.compile(r"%%\{[^\n]*\}%%\n?"),
    re.compile(r'href\s+"[^"]*"', re.IGNORECASE),
    re.compile(r'callback\s+\w+\s+"[^"]*"', re.IGNORECASE),
)

LINK_PLACEHOLDER = "[link removed]"


def strip_html(text: str | None) -> str | None:
    """Remove script/style blocks and all tags, keeping plain text."""
    if text is None:
        return None
    text = _SCRIPT_RE.sub("", text)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    return text.strip()


def strip_urls(text: str | None) -> tuple[str | None, list[str]]:
    """Replace URLs with a placeholder. Returns (sanitized_text, removed_urls)."""
    if text is None:
        return None, []
    urls = _URL_RE.findall(text)
    return _URL_RE.sub(LINK_PLACEHOLDER, text), urls


def sanitize_mermaid(source: str | None) -> str | None:
    """Remove click handlers, init directives, href links and callbacks."""
    if source is None:
        return None
    for pattern in MERMAID_DANGEROUS_PATTERNS:
        source = pattern.sub("", source)
    return source.strip()


class ContentSanitizer:
    """Configurable sanitizer applied to generated titles, summaries and diagram source."""

    def __init__(self, *, enabled: bool = True, strip_links: bool = True) -> None:
        self.enabled = enabled
        self.strip_links = strip_links

    def sanitize(self, text: str | None) -> str | None:
        if not self.enabled or text is None:
            return text
        cleaned = strip_html(text)
        if self.strip_links:
            cleaned, _ = strip_urls(cleaned)
        return cleaned

    def sanitize_diagram(self, source: str | None) -> str | None:
        if not self.enabled:
            return source
        return sanitize_mermaid(source)
