"""
tests/test_ticket_channels.py — Unit Tests for Ticket Channel Workflow
=======================================================================

Drives :mod:`aurora.services.ticket_channels` against a real SQLite
database and mocked Discord guild/channel objects.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from conftest import GUILD_ID, http_error, make_guild, make_member, make_text_channel

from aurora.constants import TRANSCRIPT_MAX, TRANSCRIPT_MIN
from aurora.database.models import ParticipantKind
from aurora.services import ticket_channels
from aurora.services.settings_service import get_settings, update_settings
from aurora.services.ticket_service import add_participant, create_ticket_record, get_ticket


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _ticket_guild(ticket_channel: MagicMock | None = None) -> MagicMock:
    guild = make_guild()
    guild.me = MagicMock(id=9999)
    guild.default_role = MagicMock(id=GUILD_ID)
    guild.categories = []
    guild.create_category = AsyncMock(return_value=SimpleNamespace(id=4000, name="Tickets"))
    guild.get_role = MagicMock(side_effect=lambda rid: MagicMock(id=rid, mention=f"<@&{rid}>"))
    guild.create_text_channel = AsyncMock(return_value=ticket_channel or make_text_channel(600))
    return guild


def _open_record(bot, channel_id: int = 600, owner_id: int = 10) -> None:
    create_ticket_record(
        bot.engine, guild_id=GUILD_ID, channel_id=channel_id, number=1, owner_id=owner_id,
    )


def _message(ts: datetime, author: str, content: str, attachments: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        created_at=ts,
        author=author,
        content=content,
        attachments=[SimpleNamespace(url=f"https://cdn.example/{i}.png") for i in range(attachments)],
    )


def _history_channel(messages: list[SimpleNamespace]) -> MagicMock:
    seen: dict[str, int] = {}

    def _history(limit):
        seen["limit"] = limit

        async def _gen():
            for m in messages[:limit]:
                yield m

        return _gen()

    ch = MagicMock()
    ch.history = _history
    ch.seen = seen
    return ch


# ===========================================================================
# Test: overwrites
# ===========================================================================
class TestBuildOverwrites:
    def test_private_to_owner_bot_and_staff(self):
        guild = _ticket_guild()
        owner, me, role = MagicMock(id=10), MagicMock(id=9999), MagicMock(id=77)
        overwrites = ticket_channels.build_ticket_overwrites(guild, owner, me, role)

        assert overwrites[guild.default_role].view_channel is False
        assert overwrites[owner].view_channel is True
        assert overwrites[owner].attach_files is True
        assert overwrites[me].manage_channels is True
        assert overwrites[me].manage_messages is True
        assert overwrites[role].send_messages is True

    def test_without_staff_role(self):
        guild = _ticket_guild()
        overwrites = ticket_channels.build_ticket_overwrites(
            guild, MagicMock(id=10), MagicMock(id=9999),
        )
        assert len(overwrites) == 3


# ===========================================================================
# Test: creation
# ===========================================================================
class TestCreateTicket:
    def test_creates_channel_record_and_category(self, bot):
        guild = _ticket_guild()
        owner = make_member(10)

        channel = run_async(ticket_channels.create_ticket(bot, guild, owner, "  help me  "))

        kwargs = guild.create_text_channel.call_args.kwargs
        assert kwargs["name"] == "ticket-0001"
        assert kwargs["category"].id == 4000
        ticket = get_ticket(bot.engine, channel.id)
        assert ticket.owner_id == 10
        assert ticket.reason == "help me"
        assert get_settings(bot.engine, GUILD_ID).ticket_category_id == 4000
        channel.send.assert_awaited_once()

    def test_numbers_increase(self, bot):
        guild = _ticket_guild()
        run_async(ticket_channels.create_ticket(bot, guild, make_member(10)))
        guild.create_text_channel = AsyncMock(return_value=make_text_channel(601))
        run_async(ticket_channels.create_ticket(bot, guild, make_member(11)))
        assert guild.create_text_channel.call_args.kwargs["name"] == "ticket-0002"

    def test_staff_role_mentioned_and_overwritten(self, bot):
        update_settings(bot.engine, GUILD_ID, ticket_staff_role_id=77)
        guild = _ticket_guild()
        channel = run_async(ticket_channels.create_ticket(bot, guild, make_member(10)))
        content = channel.send.call_args.kwargs["content"]
        assert "<@10>" in content and "<@&77>" in content
        overwrites = guild.create_text_channel.call_args.kwargs["overwrites"]
        assert any(getattr(k, "id", None) == 77 for k in overwrites)

    def test_rejected_channel_raises_and_consumes_number(self, bot):
        guild = _ticket_guild()
        guild.create_text_channel = AsyncMock(side_effect=http_error())
        with pytest.raises(ticket_channels.TicketCreationError):
            run_async(ticket_channels.create_ticket(bot, guild, make_member(10)))
        assert get_settings(bot.engine, GUILD_ID).ticket_counter == 1

    def test_welcome_failure_does_not_fail_creation(self, bot):
        channel = make_text_channel(600)
        channel.send = AsyncMock(side_effect=http_error())
        guild = _ticket_guild(channel)
        created = run_async(ticket_channels.create_ticket(bot, guild, make_member(10)))
        assert get_ticket(bot.engine, created.id) is not None

    def test_existing_category_reused(self, bot):
        guild = _ticket_guild()
        existing = MagicMock(spec=discord.CategoryChannel)
        existing.id = 4100
        existing.name = "tickets"
        guild.categories = [existing]
        run_async(ticket_channels.create_ticket(bot, guild, make_member(10)))
        guild.create_category.assert_not_awaited()
        assert guild.create_text_channel.call_args.kwargs["category"] is existing


# ===========================================================================
# Test: closing & deletion
# ===========================================================================
class TestCloseAndDelete:
    def test_close_with_zero_delay_deletes_channel(self, bot):
        bot.cfg.ticket_delete_delay_seconds = 0
        channel = make_text_channel(600)
        bot.get_channel = MagicMock(return_value=channel)
        _open_record(bot)

        async def _inner():
            ok, reason = await ticket_channels.close_ticket(bot, make_guild(), channel, make_member(10))
            await asyncio.gather(*list(bot.pending_deletions))
            return ok, reason

        assert run_async(_inner()) == (True, None)
        channel.delete.assert_awaited_once()
        assert get_ticket(bot.engine, 600).channel_deleted is True
        assert not bot.pending_deletions

    def test_second_close_refused(self, bot):
        bot.cfg.ticket_delete_delay_seconds = 0
        channel = make_text_channel(600)
        bot.get_channel = MagicMock(return_value=channel)
        _open_record(bot)

        async def _inner():
            await ticket_channels.close_ticket(bot, make_guild(), channel, make_member(10))
            await asyncio.gather(*list(bot.pending_deletions))
            return await ticket_channels.close_ticket(bot, make_guild(), channel, make_member(10))

        ok, reason = run_async(_inner())
        assert not ok
        assert reason == ticket_channels.NOT_A_TICKET

    def test_close_from_other_guild_refused(self, bot):
        _open_record(bot)
        ok, _ = run_async(ticket_channels.close_ticket(
            bot, make_guild(guild_id=GUILD_ID + 1), make_text_channel(600), make_member(10),
        ))
        assert not ok
        assert get_ticket(bot.engine, 600).is_open

    def test_missing_channel_counts_as_deleted(self, bot):
        _open_record(bot)
        bot.fetch_channel = AsyncMock(side_effect=http_error(discord.NotFound, 404))
        assert run_async(ticket_channels.delete_ticket_channel(bot, 600)) is True
        assert get_ticket(bot.engine, 600).channel_deleted is True

    def test_forbidden_delete_stays_pending(self, bot):
        _open_record(bot)
        channel = make_text_channel(600)
        channel.delete = AsyncMock(side_effect=http_error())
        bot.get_channel = MagicMock(return_value=channel)
        assert run_async(ticket_channels.delete_ticket_channel(bot, 600)) is False
        assert get_ticket(bot.engine, 600).channel_deleted is False

    def test_sweep_deletes_overdue_only(self, bot):
        from aurora.services.ticket_service import close_ticket_record

        channels = {600: make_text_channel(600), 601: make_text_channel(601)}
        bot.get_channel = MagicMock(side_effect=lambda cid: channels.get(cid))
        now = datetime.now(UTC)
        for cid, delay in ((600, -60), (601, 3600)):
            _open_record(bot, cid)
            close_ticket_record(
                bot.engine, guild_id=GUILD_ID, channel_id=cid, closed_by=1,
                delete_delay=timedelta(seconds=delay), now=now,
            )

        assert run_async(ticket_channels.sweep_pending_deletions(bot)) == 1
        channels[600].delete.assert_awaited_once()
        channels[601].delete.assert_not_awaited()
        # A second sweep finds nothing left to do
        assert run_async(ticket_channels.sweep_pending_deletions(bot)) == 0


# ===========================================================================
# Test: access edits
# ===========================================================================
class TestAccessEdits:
    def test_add_user_grants_and_records(self, bot):
        _open_record(bot)
        channel = make_text_channel(600)
        ok, msg = run_async(ticket_channels.add_user(
            bot, make_guild(), channel, make_member(1, elevated=True), make_member(20),
        ))
        assert ok and "<@20>" in msg
        channel.set_permissions.assert_awaited_once()
        assert get_ticket(bot.engine, 600).added_ids == {20}

    def test_non_staff_refused(self, bot):
        _open_record(bot)
        channel = make_text_channel(600)
        ok, msg = run_async(ticket_channels.add_user(
            bot, make_guild(), channel, make_member(10), make_member(20),
        ))
        assert not ok and msg == ticket_channels.STAFF_ONLY
        channel.set_permissions.assert_not_awaited()

    def test_not_a_ticket(self, bot):
        ok, msg = run_async(ticket_channels.claim(
            bot, make_guild(), make_text_channel(700), make_member(1, elevated=True),
        ))
        assert not ok and msg == ticket_channels.NOT_A_TICKET

    def test_owner_cannot_be_removed(self, bot):
        _open_record(bot, owner_id=10)
        ok, _ = run_async(ticket_channels.remove_user(
            bot, make_guild(), make_text_channel(600), make_member(1, elevated=True), make_member(10),
        ))
        assert not ok

    def test_remove_drops_both_sets(self, bot):
        _open_record(bot)
        add_participant(bot.engine, 600, 20, ParticipantKind.ADDED)
        add_participant(bot.engine, 600, 20, ParticipantKind.ASSIGNED)
        ok, _ = run_async(ticket_channels.remove_user(
            bot, make_guild(), make_text_channel(600), make_member(1, elevated=True), make_member(20),
        ))
        ticket = get_ticket(bot.engine, 600)
        assert ok
        assert 20 not in ticket.added_ids and 20 not in ticket.assigned_ids

    def test_failed_overwrite_still_records(self, bot):
        _open_record(bot)
        channel = make_text_channel(600)
        channel.set_permissions = AsyncMock(side_effect=http_error())
        ok, _ = run_async(ticket_channels.add_user(
            bot, make_guild(), channel, make_member(1, elevated=True), make_member(20),
        ))
        assert ok
        assert get_ticket(bot.engine, 600).added_ids == {20}

    def test_assign_requires_staff_target(self, bot):
        _open_record(bot)
        ok, msg = run_async(ticket_channels.assign(
            bot, make_guild(), make_text_channel(600), make_member(1, elevated=True), make_member(20),
        ))
        assert not ok and "isn't ticket staff" in msg

    def test_staff_role_holder_can_claim(self, bot):
        update_settings(bot.engine, GUILD_ID, ticket_staff_role_id=77)
        _open_record(bot)
        ok, _ = run_async(ticket_channels.claim(
            bot, make_guild(), make_text_channel(600), make_member(30, role_ids=(77,)),
        ))
        assert ok
        assert get_ticket(bot.engine, 600).assigned_ids == {30}

    def test_unassign_keeps_access_for_added_user(self, bot):
        _open_record(bot)
        staff = make_member(20, elevated=True)
        add_participant(bot.engine, 600, 20, ParticipantKind.ADDED)
        add_participant(bot.engine, 600, 20, ParticipantKind.ASSIGNED)
        channel = make_text_channel(600)
        ok, _ = run_async(ticket_channels.unassign(
            bot, make_guild(), channel, make_member(1, elevated=True), staff,
        ))
        assert ok
        channel.set_permissions.assert_not_awaited()
        assert get_ticket(bot.engine, 600).assigned_ids == set()

    def test_unassign_revokes_plain_assignee(self, bot):
        _open_record(bot)
        add_participant(bot.engine, 600, 20, ParticipantKind.ASSIGNED)
        channel = make_text_channel(600)
        ok, _ = run_async(ticket_channels.unassign(
            bot, make_guild(), channel, make_member(1, elevated=True), make_member(20, elevated=True),
        ))
        assert ok
        assert channel.set_permissions.call_args.kwargs["overwrite"] is None

    def test_unassign_not_assigned(self, bot):
        _open_record(bot)
        ok, msg = run_async(ticket_channels.unassign(
            bot, make_guild(), make_text_channel(600), make_member(1, elevated=True), make_member(20),
        ))
        assert not ok and "isn't assigned" in msg


# ===========================================================================
# Test: transcript
# ===========================================================================
class TestTranscript:
    T = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)

    def test_limit_clamped(self):
        assert ticket_channels.clamp_transcript_limit(1) == TRANSCRIPT_MIN
        assert ticket_channels.clamp_transcript_limit(10_000) == TRANSCRIPT_MAX
        assert ticket_channels.clamp_transcript_limit(75) == 75

    def test_oldest_first(self):
        # history() yields newest first
        msgs = [
            _message(self.T + timedelta(minutes=2), "bob", "third"),
            _message(self.T + timedelta(minutes=1), "amy", "second"),
            _message(self.T, "amy", "first"),
        ]
        text = run_async(ticket_channels.build_transcript(_history_channel(msgs), 50))
        lines = text.splitlines()
        assert lines[0].endswith("amy: first")
        assert lines[-1].endswith("bob: third")
        assert lines[0].startswith(f"[{self.T.isoformat()}]")

    def test_attachments_capped(self):
        msgs = [_message(self.T, "amy", "pics", attachments=15)]
        text = run_async(ticket_channels.build_transcript(_history_channel(msgs)))
        assert text.count("[attachment]") == 10

    def test_requested_limit_passed_through_clamped(self):
        ch = _history_channel([])
        run_async(ticket_channels.build_transcript(ch, 5000))
        assert ch.seen["limit"] == TRANSCRIPT_MAX

    def test_empty_channel(self):
        assert run_async(ticket_channels.build_transcript(_history_channel([]))) == "(no messages)"

    def test_forbidden_history(self):
        ch = MagicMock()
        ch.history = MagicMock(side_effect=http_error())
        assert run_async(ticket_channels.build_transcript(ch)) == ticket_channels.TRANSCRIPT_FORBIDDEN

    def test_transcript_file_name(self):
        f = ticket_channels.transcript_file("hello", 7)
        assert f.filename == "ticket-0007-transcript.txt"
