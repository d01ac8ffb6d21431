"""
tests/test_bug_board.py — Unit Tests for the Live Bug Board
============================================================

Tests board reconciliation (idempotent render, message reuse), update
announcements (channel fallback, reporter mention on RESOLVED only) and
input-channel ingestion.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
from conftest import GUILD_ID, make_guild, make_member, make_text_channel

from aurora.constants import ACK_EMOJI
from aurora.database.models import BugStatus
from aurora.services import bug_board
from aurora.services.bug_service import board_snapshot, create_bug, get_bug
from aurora.services.settings_service import get_settings, update_settings

INPUT, BOARD, UPDATES = 300, 301, 302


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _configured(bot, *, updates: bool = True, board: bool = True, input_: bool = True):
    """Configure bug channels and return (guild, channels)."""
    channels = {}
    patch = {}
    if input_:
        channels[INPUT] = make_text_channel(INPUT)
        patch["bug_input_channel_id"] = INPUT
    if board:
        channels[BOARD] = make_text_channel(BOARD)
        patch["bug_board_channel_id"] = BOARD
    if updates:
        channels[UPDATES] = make_text_channel(UPDATES)
        patch["bug_updates_channel_id"] = UPDATES
    if patch:
        update_settings(bot.engine, GUILD_ID, **patch)
    return make_guild(channels), channels


def _input_message(guild, content: str, *, author_bot: bool = False, channel_id: int = INPUT,
                   attachments: tuple[str, ...] = ()):
    author = make_member(10)
    author.bot = author_bot
    return SimpleNamespace(
        id=777,
        guild=guild,
        author=author,
        channel=SimpleNamespace(id=channel_id),
        content=content,
        attachments=[SimpleNamespace(url=u) for u in attachments],
        add_reaction=AsyncMock(),
        reply=AsyncMock(),
    )


# ===========================================================================
# Test: board rendering & reconciliation
# ===========================================================================
class TestRenderBoard:
    def test_render_is_deterministic(self, db_engine):
        create_bug(db_engine, GUILD_ID, 10, "A", "a")
        create_bug(db_engine, GUILD_ID, 11, "B", "b")
        first = bug_board.render_board(*board_snapshot(db_engine, GUILD_ID))
        second = bug_board.render_board(*board_snapshot(db_engine, GUILD_ID))
        assert first.to_dict() == second.to_dict()

    def test_newest_first_with_counts(self, db_engine):
        create_bug(db_engine, GUILD_ID, 10, "Older", "a")
        create_bug(db_engine, GUILD_ID, 11, "Newer", "b")
        embed = bug_board.render_board(*board_snapshot(db_engine, GUILD_ID))
        assert "#2" in embed.fields[0].name and "Newer" in embed.fields[0].name
        assert "**Open:** 2" in embed.description

    def test_empty_board(self, db_engine):
        embed = bug_board.render_board(*board_snapshot(db_engine, GUILD_ID))
        assert embed.fields[0].name == "No bugs yet"


class TestRefreshBoard:
    def test_no_board_channel(self, bot):
        guild, _ = _configured(bot, board=False)
        assert run_async(bug_board.refresh_bug_board(bot, guild)) is None

    def test_first_refresh_posts_and_stores(self, bot):
        guild, channels = _configured(bot)
        message = run_async(bug_board.refresh_bug_board(bot, guild))
        channels[BOARD].send.assert_awaited_once()
        assert get_settings(bot.engine, GUILD_ID).bug_board_message_id == message.id

    def test_second_refresh_edits_same_message(self, bot):
        guild, channels = _configured(bot)
        create_bug(bot.engine, GUILD_ID, 10, "A", "a")
        posted = run_async(bug_board.refresh_bug_board(bot, guild))
        channels[BOARD].fetch_message = AsyncMock(return_value=posted)

        again = run_async(bug_board.refresh_bug_board(bot, guild))

        assert again is posted
        assert channels[BOARD].send.await_count == 1
        sent_embed = channels[BOARD].send.call_args.kwargs["embed"]
        edited_embed = posted.edit.call_args.kwargs["embed"]
        assert sent_embed.to_dict() == edited_embed.to_dict()

    def test_deleted_board_message_is_reposted(self, bot):
        guild, channels = _configured(bot)
        update_settings(bot.engine, GUILD_ID, bug_board_message_id=123)
        message = run_async(bug_board.refresh_bug_board(bot, guild))
        assert channels[BOARD].send.await_count == 1
        assert get_settings(bot.engine, GUILD_ID).bug_board_message_id == message.id != 123

    def test_concurrent_first_refreshes_post_one_board(self, bot):
        guild, channels = _configured(bot)
        posted = {}
        send = channels[BOARD].send.side_effect

        async def _send(*args, **kwargs):
            message = await send(*args, **kwargs)
            posted[message.id] = message
            return message

        channels[BOARD].send = AsyncMock(side_effect=_send)
        channels[BOARD].fetch_message = AsyncMock(side_effect=lambda mid: posted[mid])

        async def _both():
            return await asyncio.gather(
                bug_board.refresh_bug_board(bot, guild),
                bug_board.refresh_bug_board(bot, guild),
            )

        first, second = run_async(_both())
        assert channels[BOARD].send.await_count == 1
        assert first is second
        assert get_settings(bot.engine, GUILD_ID).bug_board_message_id == first.id


# ===========================================================================
# Test: announcements
# ===========================================================================
class TestAnnounceUpdate:
    def test_prefers_updates_channel(self, bot):
        guild, channels = _configured(bot)
        bug = create_bug(bot.engine, GUILD_ID, 10, "A", "a")
        run_async(bug_board.announce_bug_update(bot, guild, bug, 1))
        channels[UPDATES].send.assert_awaited_once()
        channels[BOARD].send.assert_not_awaited()

    def test_falls_back_to_board_then_input(self, bot):
        guild, channels = _configured(bot, updates=False)
        bug = create_bug(bot.engine, GUILD_ID, 10, "A", "a")
        run_async(bug_board.announce_bug_update(bot, guild, bug, 1))
        channels[BOARD].send.assert_awaited_once()

        guild, channels = _configured(bot, updates=False, board=False)
        update_settings(bot.engine, GUILD_ID, bug_updates_channel_id=None, bug_board_channel_id=None)
        run_async(bug_board.announce_bug_update(bot, guild, bug, 1))
        channels[INPUT].send.assert_awaited_once()

    def test_no_channels_is_noop(self, bot):
        guild, _ = _configured(bot, updates=False, board=False, input_=False)
        bug = create_bug(bot.engine, GUILD_ID, 10, "A", "a")
        assert run_async(bug_board.announce_bug_update(bot, guild, bug, 1)) is None

    def test_reporter_mentioned_only_when_resolved(self, bot):
        guild, channels = _configured(bot)
        create_bug(bot.engine, GUILD_ID, 10, "A", "a")

        run_async(bug_board.change_bug_status(bot, guild, make_member(1), 1, BugStatus.IN_PROGRESS))
        kwargs = channels[UPDATES].send.call_args.kwargs
        assert kwargs["content"] is None
        assert kwargs["allowed_mentions"].users is False

        run_async(bug_board.change_bug_status(bot, guild, make_member(1), 1, BugStatus.RESOLVED))
        kwargs = channels[UPDATES].send.call_args.kwargs
        assert kwargs["content"] == "<@10> your bug report was resolved."
        assert kwargs["allowed_mentions"].users is True

    def test_note_and_link_in_update(self, bot):
        guild, channels = _configured(bot)
        create_bug(bot.engine, GUILD_ID, 10, "A", "a")
        run_async(bug_board.change_bug_status(
            bot, guild, make_member(1), 1, BugStatus.WAITING, note="need logs",
        ))
        embed = channels[UPDATES].send.call_args.kwargs["embed"]
        assert "**Note:** need logs" in embed.description
        assert "WAITING" in embed.description

    def test_unknown_bug_announces_nothing(self, bot):
        guild, channels = _configured(bot)
        assert run_async(bug_board.change_bug_status(
            bot, guild, make_member(1), 42, BugStatus.RESOLVED,
        )) is None
        channels[UPDATES].send.assert_not_awaited()

    def test_comment_and_reopen(self, bot):
        guild, channels = _configured(bot)
        create_bug(bot.engine, GUILD_ID, 10, "A", "a")
        run_async(bug_board.change_bug_status(bot, guild, make_member(1), 1, BugStatus.RESOLVED))
        run_async(bug_board.comment_on_bug(bot, guild, make_member(2), 1, "still broken"))
        bug = run_async(bug_board.reopen_and_announce(bot, guild, make_member(2), 1))
        assert bug.status == BugStatus.OPEN
        assert len(get_bug(bot.engine, GUILD_ID, 1).comments) == 1
        assert "Reopened" in channels[UPDATES].send.call_args.kwargs["embed"].description


# ===========================================================================
# Test: ingestion & reports
# ===========================================================================
class TestIngestion:
    def test_message_becomes_bug(self, bot):
        guild, channels = _configured(bot)
        message = _input_message(guild, "Crash on login\nHappens every time.")

        bug = run_async(bug_board.ingest_bug_message(bot, message))

        assert bug.id == 1
        assert bug.title == "Crash on login"
        assert bug.description == "Happens every time."
        assert bug.permalink == f"https://discord.com/channels/{GUILD_ID}/{INPUT}/777"
        message.add_reaction.assert_awaited_once_with(ACK_EMOJI)
        assert "Bug #1" in message.reply.call_args.args[0]
        channels[BOARD].send.assert_awaited_once()

    def test_single_line_report(self, bot):
        guild, _ = _configured(bot)
        bug = run_async(bug_board.ingest_bug_message(bot, _input_message(guild, "Just a title")))
        assert bug.title == "Just a title"
        assert bug.description == "(no description)"

    def test_without_content_intent(self, bot):
        bot.cfg.message_content_intent = False
        guild, _ = _configured(bot)
        bug = run_async(bug_board.ingest_bug_message(bot, _input_message(guild, "hidden text")))
        assert bug.title == "Report from user10"
        assert bug.description == bug_board.UNAVAILABLE_CONTENT

    def test_attachment_only_post(self, bot):
        guild, _ = _configured(bot)
        bug = run_async(bug_board.ingest_bug_message(
            bot, _input_message(guild, "", attachments=("https://cdn.example/shot.png",)),
        ))
        assert bug.title == "Report from user10"
        assert bug.description == f"{bug_board.ATTACHMENT_ONLY}\nhttps://cdn.example/shot.png"
        assert bug_board.UNAVAILABLE_CONTENT not in bug.description

    def test_attachments_appended(self, bot):
        guild, _ = _configured(bot)
        bug = run_async(bug_board.ingest_bug_message(
            bot, _input_message(guild, "Broken icon", attachments=("https://cdn.example/a.png",)),
        ))
        assert bug.description.endswith("https://cdn.example/a.png")

    def test_bot_messages_ignored(self, bot):
        guild, _ = _configured(bot)
        msg = _input_message(guild, "beep", author_bot=True)
        assert run_async(bug_board.ingest_bug_message(bot, msg)) is None
        assert get_bug(bot.engine, GUILD_ID, 1) is None

    def test_other_channels_ignored(self, bot):
        guild, _ = _configured(bot)
        msg = _input_message(guild, "chatter", channel_id=999)
        assert run_async(bug_board.ingest_bug_message(bot, msg)) is None
        msg.add_reaction.assert_not_awaited()

    def test_reaction_failure_does_not_lose_bug(self, bot):
        guild, _ = _configured(bot)
        msg = _input_message(guild, "Crash")
        msg.add_reaction = AsyncMock(side_effect=discord.HTTPException(
            SimpleNamespace(status=500, reason="boom"), "boom",
        ))
        assert run_async(bug_board.ingest_bug_message(bot, msg)).id == 1


class TestFileReport:
    def test_report_copy_becomes_source(self, bot):
        guild, channels = _configured(bot)
        bug = run_async(bug_board.file_bug_report(bot, guild, make_member(10), "Title", "Body"))
        channels[INPUT].send.assert_awaited_once()
        assert bug.source_channel_id == INPUT
        assert get_bug(bot.engine, GUILD_ID, 1).permalink is not None

    def test_report_without_input_channel(self, bot):
        guild, _ = _configured(bot, input_=False)
        bug = run_async(bug_board.file_bug_report(bot, guild, make_member(10), "Title", "Body"))
        assert bug.permalink is None

    def test_report_copy_follows_status_changes(self, bot):
        guild, channels = _configured(bot)
        bug = run_async(bug_board.file_bug_report(bot, guild, make_member(10), "Title", "Body"))
        sent = {}

        async def _fetch(message_id):
            message = MagicMock()
            message.id = message_id
            message.author.id = bot.user.id
            message.edit = AsyncMock(return_value=message)
            sent["message"] = message
            return message

        channels[INPUT].fetch_message = AsyncMock(side_effect=_fetch)
        run_async(bug_board.change_bug_status(
            bot, guild, make_member(1, elevated=True), bug.id, BugStatus.IN_PROGRESS, assignee=1,
        ))

        channels[INPUT].fetch_message.assert_awaited_once_with(bug.source_message_id)
        embed = sent["message"].edit.call_args.kwargs["embed"]
        assert "IN_PROGRESS" in embed.description
        assert "<@1>" in embed.description

    def test_member_message_source_not_edited(self, bot):
        guild, channels = _configured(bot)
        run_async(bug_board.ingest_bug_message(bot, _input_message(guild, "Crash")))
        member_message = MagicMock()
        member_message.author.id = 10
        member_message.edit = AsyncMock()
        channels[INPUT].fetch_message = AsyncMock(return_value=member_message)

        run_async(bug_board.comment_on_bug(bot, guild, make_member(1), 1, "looking"))

        member_message.edit.assert_not_awaited()
