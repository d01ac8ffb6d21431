"""
tests/test_parsing.py — Unit Tests for Text & Input Helpers
============================================================

Covers the small helpers slash commands and modals lean on: text clamping,
duration rendering, user/bug reference parsing and the tri-state assignee
field.
"""

from __future__ import annotations

import pytest

from aurora.bot.checks import parse_bug_id
from aurora.bot.views import parse_assignee
from aurora.constants import (
    ELLIPSIS,
    bug_status_emoji,
    clamp_text,
    format_duration,
    message_link,
    parse_user_id,
)
from aurora.services.bug_service import KEEP

USER_ID = 123456789012345678


class TestClampText:
    def test_short_text_untouched(self):
        assert clamp_text("hello", 10) == "hello"

    def test_exact_limit_untouched(self):
        assert clamp_text("x" * 10, 10) == "x" * 10

    def test_long_text_ends_in_ellipsis(self):
        out = clamp_text("x" * 20, 10)
        assert len(out) == 10
        assert out.endswith(ELLIPSIS)

    def test_none_becomes_empty(self):
        assert clamp_text(None, 5) == ""


class TestFormatDuration:
    @pytest.mark.parametrize("seconds, expected", [
        (0, "0s"),
        (59, "59s"),
        (61, "1m 1s"),
        (3600, "1h 0s"),
        (3 * 3600 + 2 * 60 + 1, "3h 2m 1s"),
        (-5, "0s"),
    ])
    def test_render(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestParseUserId:
    @pytest.mark.parametrize("text", [
        str(USER_ID), f"<@{USER_ID}>", f"<@!{USER_ID}>", f"  {USER_ID}  ",
    ])
    def test_accepts_ids_and_mentions(self, text):
        assert parse_user_id(text) == USER_ID

    @pytest.mark.parametrize("text", [None, "", "abc", "12", f"<#{USER_ID}>"])
    def test_rejects_everything_else(self, text):
        assert parse_user_id(text) is None


class TestParseBugId:
    def test_plain_and_hashed(self):
        assert parse_bug_id("12") == 12
        assert parse_bug_id("#12") == 12
        assert parse_bug_id(" #7 ") == 7

    @pytest.mark.parametrize("text", [None, "", "#", "twelve", "-3"])
    def test_invalid(self, text):
        assert parse_bug_id(text) is None


class TestParseAssignee:
    def test_blank_keeps(self):
        assert parse_assignee("") == (True, KEEP)
        assert parse_assignee(None) == (True, KEEP)
        assert parse_assignee("   ") == (True, KEEP)

    @pytest.mark.parametrize("word", ["none", "NONE", "clear", "-", "nobody"])
    def test_clear_words(self, word):
        assert parse_assignee(word) == (True, None)

    def test_mention_sets(self):
        assert parse_assignee(f"<@{USER_ID}>") == (True, USER_ID)

    def test_garbage_rejected(self):
        ok, _ = parse_assignee("somebody")
        assert ok is False


class TestPresentationHelpers:
    def test_message_link(self):
        assert message_link(1, 2, 3) == "https://discord.com/channels/1/2/3"

    def test_unknown_status_emoji(self):
        assert bug_status_emoji("OPEN") != bug_status_emoji("MYSTERY")
