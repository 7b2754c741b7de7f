"""Tests for canned chat replies."""

import pytest

from voicechat.web.replies import (
    DEFAULT_REPLY,
    FAREWELL_REPLY,
    GREETING_REPLY,
    HELP_REPLY,
    HOW_ARE_YOU_REPLY,
    THANKS_REPLY,
    reply_to,
)


@pytest.mark.parametrize(
    "message, expected",
    [
        ("hi", GREETING_REPLY),
        ("Hello", GREETING_REPLY),
        ("HEY", GREETING_REPLY),
        ("how are you", HOW_ARE_YOU_REPLY),
        ("bye", FAREWELL_REPLY),
        ("Goodbye", FAREWELL_REPLY),
        ("thanks", THANKS_REPLY),
        ("Thank you very much", THANKS_REPLY),
        ("help", HELP_REPLY),
        ("hi there", DEFAULT_REPLY),
        ("how are you?", DEFAULT_REPLY),
        ("can you help me", DEFAULT_REPLY),
    ],
)
def test_reply_to(message, expected):
    """Test exact matches, the thanks substring and the fallback."""
    assert reply_to(message) == expected
