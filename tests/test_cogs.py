"""
tests/test_cogs.py — Unit Tests for Command-Layer Rules
========================================================

Rules enforced by the cogs themselves rather than the services: who may
run the staff bug commands, which vouch targets are refused, and that slow
ticket actions acknowledge the interaction before doing any work.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import GUILD_ID, make_member, make_text_channel

from aurora.bot.cogs import tickets as tickets_cog
from aurora.bot.cogs.bugs import Bugs
from aurora.bot.cogs.tickets import Tickets
from aurora.bot.cogs.vouches import Vouches
from aurora.services.vouch_service import count_received


# Helper to run async tests without pytest-asyncio
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _interaction(user) -> MagicMock:
    interaction = MagicMock()
    interaction.user = user
    interaction.guild_id = GUILD_ID
    interaction.response.is_done = MagicMock(return_value=False)
    interaction.response.send_message = AsyncMock()
    interaction.followup.send = AsyncMock()
    return interaction


async def _passes_checks(command, interaction) -> bool:
    for check in command.checks:
        if not await check(interaction):
            return False
    return True


# ===========================================================================
# Test: staff-only bug commands
# ===========================================================================
class TestBugCommandGate:
    @pytest.mark.parametrize("name", ["status", "comment", "reopen", "board"])
    def test_members_refused(self, name):
        command = getattr(Bugs, name)
        assert not run_async(_passes_checks(command, _interaction(make_member(1))))

    @pytest.mark.parametrize("name", ["status", "comment", "reopen", "board"])
    def test_elevated_allowed(self, name):
        command = getattr(Bugs, name)
        assert run_async(_passes_checks(command, _interaction(make_member(1, elevated=True))))

    @pytest.mark.parametrize("name", ["view", "list_bugs", "search", "report"])
    def test_reads_and_reports_open_to_everyone(self, name):
        command = getattr(Bugs, name)
        assert run_async(_passes_checks(command, _interaction(make_member(1))))


# ===========================================================================
# Test: vouch targets
# ===========================================================================
class TestVouchTargets:
    def test_self_vouch_refused(self, bot):
        cog = Vouches(bot)
        voucher = make_member(5)
        interaction = _interaction(voucher)

        run_async(Vouches.vouch.callback(cog, interaction, make_member(5), "me!"))

        assert "yourself" in interaction.response.send_message.call_args.args[0]
        assert count_received(bot.engine, GUILD_ID, 5) == 0

    def test_bot_target_refused(self, bot):
        cog = Vouches(bot)
        target = make_member(6)
        target.bot = True
        interaction = _interaction(make_member(5))

        run_async(Vouches.vouch.callback(cog, interaction, target, None))

        assert "bot" in interaction.response.send_message.call_args.args[0]
        assert count_received(bot.engine, GUILD_ID, 6) == 0


# ===========================================================================
# Test: ticket actions acknowledge first
# ===========================================================================
class TestTicketActionsDefer:
    def _deferring_interaction(self, calls: list[str]) -> MagicMock:
        interaction = _interaction(make_member(1, elevated=True))
        interaction.channel = make_text_channel(500)
        interaction.response.defer = AsyncMock(side_effect=lambda **kw: calls.append("defer"))
        interaction.response.is_done = MagicMock(side_effect=lambda: "defer" in calls)
        return interaction

    def test_add_defers_before_work(self, bot, monkeypatch):
        calls: list[str] = []

        async def _add_user(*args):
            calls.append("add")
            return True, "Added <@2> to this ticket."

        monkeypatch.setattr(tickets_cog.ticket_channels, "add_user", _add_user)
        interaction = self._deferring_interaction(calls)

        run_async(Tickets.add.callback(Tickets(bot), interaction, make_member(2)))

        assert calls == ["defer", "add"]
        interaction.channel.send.assert_awaited_once_with("✅ Added <@2> to this ticket.")
        interaction.followup.send.assert_awaited_once_with("✅ Done.", ephemeral=True)

    def test_refusal_stays_private(self, bot, monkeypatch):
        calls: list[str] = []

        async def _claim(*args):
            calls.append("claim")
            return False, "Only ticket staff can do that."

        monkeypatch.setattr(tickets_cog.ticket_channels, "claim", _claim)
        interaction = self._deferring_interaction(calls)

        run_async(Tickets.claim.callback(Tickets(bot), interaction))

        assert calls == ["defer", "claim"]
        interaction.channel.send.assert_not_awaited()
        interaction.followup.send.assert_awaited_once_with("❌ Only ticket staff can do that.", ephemeral=True)
