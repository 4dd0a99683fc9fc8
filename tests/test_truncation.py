from __future__ import annotations

from core.messages import MAX_MESSAGE_BYTES, SNIP_MARKER, TOO_LONG_NOTICE, truncate_message


def test_short_message_is_unchanged() -> None:
    text = "<b>FIRING</b>\n\nsecond alert"
    assert truncate_message(text) == text


def test_message_at_the_limit_is_unchanged() -> None:
    text = "a" * MAX_MESSAGE_BYTES
    assert truncate_message(text) == text


def test_cut_at_last_paragraph_break() -> None:
    block = "x" * 999
    text = "\n\n".join([block] * 6)
    result = truncate_message(text)

    assert result.endswith(SNIP_MARKER)
    assert len(result.encode("utf-8")) <= MAX_MESSAGE_BYTES
    body = result[: -len(SNIP_MARKER)]
    assert text.startswith(body)
    assert body.count(block) == 4


def test_without_paragraph_break_the_notice_is_returned() -> None:
    assert truncate_message("x" * (MAX_MESSAGE_BYTES + 1)) == TOO_LONG_NOTICE


def test_limit_is_counted_in_bytes() -> None:
    text = "é" * 1500 + "\n\n" + "é" * 1000
    assert len(text) < MAX_MESSAGE_BYTES
    assert truncate_message(text) == "é" * 1500 + SNIP_MARKER


def test_custom_limit() -> None:
    text = "first\n\n" + "y" * 30
    result = truncate_message(text, limit=len("first\n\n") + len(SNIP_MARKER))
    assert result == "first" + SNIP_MARKER


def test_one_character_first_paragraph_is_kept() -> None:
    assert truncate_message("x\n\n" + "y" * MAX_MESSAGE_BYTES) == "x" + SNIP_MARKER


def test_leading_paragraph_break_yields_the_notice() -> None:
    assert truncate_message("\n\n" + "y" * MAX_MESSAGE_BYTES) == TOO_LONG_NOTICE
