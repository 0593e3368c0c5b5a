"""Tests for the text segmenter."""

import pytest

from backend.forge.docs.chunker import segment_text


def _joined(chunks: list) -> str:
    return "".join(chunk.text for chunk in chunks)


def test_empty_text_returns_no_chunks() -> None:
    assert segment_text("", 100) == []


def test_short_text_is_one_chunk() -> None:
    chunks = segment_text("Hello world.", 100)

    assert len(chunks) == 1
    assert chunks[0].index == 1
    assert chunks[0].text == "Hello world."


def test_text_exactly_at_bound_is_one_chunk() -> None:
    text = "a" * 50
    assert [c.text for c in segment_text(text, 50)] == [text]


def test_whitespace_only_text_is_reproduced() -> None:
    chunks = segment_text("   \n\n  ", 100)

    assert len(chunks) == 1
    assert chunks[0].text == "   \n\n  "


def test_non_positive_bound_rejected() -> None:
    with pytest.raises(ValueError, match="max_chars"):
        segment_text("text", 0)
    with pytest.raises(ValueError):
        segment_text("text", -5)


def test_prefers_paragraph_break() -> None:
    text = "First paragraph.\nstill first.\n\nSecond paragraph here."
    chunks = segment_text(text, 35)

    assert chunks[0].text == "First paragraph.\nstill first.\n\n"
    assert _joined(chunks) == text


def test_falls_back_to_line_break() -> None:
    text = "line one is here\nline two is here\nline three"
    chunks = segment_text(text, 30)

    assert chunks[0].text == "line one is here\n"
    assert _joined(chunks) == text


def test_falls_back_to_sentence_end() -> None:
    text = "One sentence. Another one! A third? And more words follow"
    chunks = segment_text(text, 40)

    assert chunks[0].text == "One sentence. Another one! A third? "
    assert _joined(chunks) == text


def test_falls_back_to_whitespace() -> None:
    text = "alpha beta gamma delta epsilon"
    chunks = segment_text(text, 12)

    assert chunks[0].text == "alpha beta "
    assert all(len(c.text) <= 12 for c in chunks)
    assert _joined(chunks) == text


def test_hard_cut_without_any_breakpoint() -> None:
    text = "x" * 25
    chunks = segment_text(text, 10)

    assert [c.text for c in chunks] == ["x" * 10, "x" * 10, "x" * 5]


def test_line_endings_are_not_normalized() -> None:
    text = "line one\r\nline two\r\n\r\nline three " * 5
    chunks = segment_text(text, 20)

    assert _joined(chunks) == text


def test_indexes_are_one_based_and_sequential() -> None:
    text = "word " * 200
    chunks = segment_text(text, 37)

    assert [c.index for c in chunks] == list(range(1, len(chunks) + 1))


def test_bounds_and_reproduction_on_mixed_text() -> None:
    text = (
        "# Title\n\n"
        "Intro paragraph with a few sentences. It keeps going! Does it stop? Not yet.\n"
        "A list:\n- one\n- two\n\n"
        + "averyveryverylongwordwithoutanybreaks" * 3
        + "\n\nClosing words."
    )
    for bound in (1, 7, 16, 50, 500):
        chunks = segment_text(text, bound)
        assert _joined(chunks) == text
        assert all(0 < len(c.text) <= bound for c in chunks)


def test_deterministic() -> None:
    text = "Paragraph one.\n\nParagraph two is longer. It has two sentences.\n" * 10
    assert segment_text(text, 60) == segment_text(text, 60)
