"""
aurora.bot.views — Persistent Buttons & Modals
===============================================

Three persistent views (``timeout=None`` with fixed ``custom_id`` values)
are registered once in :meth:`AuroraBot.setup_hook`, so buttons on old
messages keep working after a restart:

- :class:`SupportPanelView` — posted by ``/panel``
- :class:`BugBoardView` — attached to the live bug board
- :class:`TicketControlView` — attached to each ticket's welcome message

Every view and modal routes unexpected errors to
:func:`~aurora.bot.checks.report_failure`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord

from aurora.bot.checks import (
    ELEVATED_ONLY,
    GUILD_ONLY,
    parse_bug_id,
    reply,
    report_failure,
    run_ticket_action,
)
from aurora.constants import (
    BUG_COMMENT_MAX,
    BUG_DESCRIPTION_MAX,
    BUG_NOTE_MAX,
    BUG_TITLE_MAX,
    TICKET_REASON_MAX,
    message_link,
    parse_user_id,
)
from aurora.database.engine import run_db
from aurora.database.models import BugStatus
from aurora.services import bug_board, ticket_channels
from aurora.services.bug_service import KEEP, get_bug
from aurora.services.embeds import (
    build_bug_embed,
    build_top_vouches_embed,
    build_vouch_profile_embed,
)
from aurora.services.settings_service import get_settings
from aurora.services.ticket_service import can_manage_ticket, get_ticket, is_elevated
from aurora.services.vouch_service import get_vouch_stats, top_vouched

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)

CLEAR_WORDS = frozenset({"none", "clear", "-", "nobody"})


def _bug_not_found(bug_id: int) -> str:
    return f"❌ Bug `#{bug_id}` not found."


def parse_assignee(text: str | None):
    """Tri-state assignee input: blank keeps, ``none`` clears, an id sets.

    Returns ``(ok, value)``; ``ok`` is False for unparseable input.
    """
    raw = (text or "").strip()
    if not raw:
        return True, KEEP
    if raw.lower() in CLEAR_WORDS:
        return True, None
    user_id = parse_user_id(raw)
    return (user_id is not None), user_id


class _ErrorReportingModal(discord.ui.Modal):
    async def on_error(self, interaction: discord.Interaction, error: Exception) -> None:
        await report_failure(interaction, error, f"modal {type(self).__name__}")


class _ErrorReportingView(discord.ui.View):
    def __init__(self) -> None:
        super().__init__(timeout=None)

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item
    ) -> None:
        await report_failure(interaction, error, f"component {getattr(item, 'custom_id', item)}")


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------
class TicketOpenModal(_ErrorReportingModal, title="Open a Support Ticket"):
    reason = discord.ui.TextInput(
        label="What do you need help with?",
        style=discord.TextStyle.long,
        required=False,
        max_length=TICKET_REASON_MAX,
    )

    async def on_submit(self, interaction: discord.Interaction) -> None:
        await open_ticket_for(interaction, self.reason.value)


class BugReportModal(_ErrorReportingModal, title="Report a Bug"):
    bug_title = discord.ui.TextInput(label="Title", max_length=BUG_TITLE_MAX)
    description = discord.ui.TextInput(
        label="Description",
        style=discord.TextStyle.long,
        required=False,
        max_length=BUG_DESCRIPTION_MAX,
    )

    async def on_submit(self, interaction: discord.Interaction) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        await interaction.response.defer(ephemeral=True, thinking=True)
        bug = await bug_board.file_bug_report(
            bot, interaction.guild, interaction.user, self.bug_title.value, self.description.value,
        )
        await reply(interaction, f"✅ Thanks! Filed as **Bug #{bug.id}**.")


class BugLookupModal(_ErrorReportingModal, title="View a Bug"):
    bug_id = discord.ui.TextInput(label="Bug ID", placeholder="e.g. 12", max_length=10)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        bug_id = parse_bug_id(self.bug_id.value)
        if bug_id is None:
            await reply(interaction, "❌ Bug ID must be a number.")
            return
        bug = await run_db(get_bug, bot.engine, interaction.guild_id, bug_id)
        if bug is None:
            await reply(interaction, _bug_not_found(bug_id))
            return
        await reply(interaction, embed=build_bug_embed(bug))


class BugCommentModal(_ErrorReportingModal, title="Comment on a Bug"):
    bug_id = discord.ui.TextInput(label="Bug ID", placeholder="e.g. 12", max_length=10)
    comment = discord.ui.TextInput(
        label="Comment", style=discord.TextStyle.long, max_length=BUG_COMMENT_MAX,
    )

    async def on_submit(self, interaction: discord.Interaction) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        bug_id = parse_bug_id(self.bug_id.value)
        if bug_id is None:
            await reply(interaction, "❌ Bug ID must be a number.")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        bug = await bug_board.comment_on_bug(
            bot, interaction.guild, interaction.user, bug_id, self.comment.value,
        )
        if bug is None:
            await reply(interaction, _bug_not_found(bug_id))
            return
        await reply(interaction, f"\U0001f4ac Comment added to **Bug #{bug.id}**.")


class BugActionModal(_ErrorReportingModal):
    """Status change (``status`` given) or reopen (``status=None``)."""

    bug_id = discord.ui.TextInput(label="Bug ID", placeholder="e.g. 12", max_length=10)
    assignee = discord.ui.TextInput(
        label="Assignee (user ID or mention, 'none' clears)",
        required=False,
        max_length=32,
    )
    note = discord.ui.TextInput(
        label="Note", style=discord.TextStyle.long, required=False, max_length=BUG_NOTE_MAX,
    )

    def __init__(self, status: BugStatus | None) -> None:
        title = f"Set Bug → {status.value}" if status else "Reopen Bug"
        super().__init__(title=title)
        self.status = status
        if status is None:
            self.remove_item(self.assignee)

    async def on_submit(self, interaction: discord.Interaction) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        bug_id = parse_bug_id(self.bug_id.value)
        if bug_id is None:
            await reply(interaction, "❌ Bug ID must be a number.")
            return
        note = self.note.value or None

        if self.status is None:
            await interaction.response.defer(ephemeral=True, thinking=True)
            bug = await bug_board.reopen_and_announce(bot, interaction.guild, interaction.user, bug_id, note)
        else:
            ok, assignee = parse_assignee(self.assignee.value)
            if not ok:
                await reply(interaction, "❌ Assignee must be a user ID, a mention, or `none`.")
                return
            await interaction.response.defer(ephemeral=True, thinking=True)
            bug = await bug_board.change_bug_status(
                bot, interaction.guild, interaction.user, bug_id, self.status, assignee, note,
            )

        if bug is None:
            await reply(interaction, _bug_not_found(bug_id))
            return
        await reply(interaction, f"✅ **Bug #{bug.id}** is now **{bug.status}**.")


# ---------------------------------------------------------------------------
# Shared actions
# ---------------------------------------------------------------------------
async def open_ticket_for(interaction: discord.Interaction, reason: str | None) -> None:
    """Create a ticket for the interacting member and point them at it."""
    bot: AuroraBot = interaction.client  # type: ignore[assignment]
    if interaction.guild is None or not isinstance(interaction.user, discord.Member):
        await reply(interaction, GUILD_ONLY)
        return
    await interaction.response.defer(ephemeral=True, thinking=True)
    try:
        channel = await ticket_channels.create_ticket(bot, interaction.guild, interaction.user, reason)
    except ticket_channels.TicketCreationError as exc:
        await reply(interaction, f"❌ Couldn't open a ticket: {exc}")
        return
    await reply(interaction, f"\U0001f3ab Your ticket is ready: {channel.mention}")


async def _require_elevated(interaction: discord.Interaction) -> bool:
    if is_elevated(interaction.user):
        return True
    await reply(interaction, ELEVATED_ONLY)
    return False


# ---------------------------------------------------------------------------
# Support panel
# ---------------------------------------------------------------------------
class SupportPanelView(_ErrorReportingView):
    @discord.ui.button(
        label="Create Ticket", emoji="\U0001f3ab",
        style=discord.ButtonStyle.success, custom_id="aurora:panel:ticket",
    )
    async def create_ticket(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(TicketOpenModal())

    @discord.ui.button(
        label="Report Bug", emoji="\U0001f41e",
        style=discord.ButtonStyle.danger, custom_id="aurora:panel:bug",
    )
    async def report_bug(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(BugReportModal())

    @discord.ui.button(
        label="Bug Board", emoji="\U0001f4cb",
        style=discord.ButtonStyle.secondary, custom_id="aurora:panel:board",
    )
    async def bug_board_link(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        settings = await run_db(get_settings, bot.engine, interaction.guild_id)
        if not (settings.bug_board_channel_id and settings.bug_board_message_id):
            await reply(interaction, "The bug board isn't set up yet.")
            return
        link = message_link(interaction.guild_id, settings.bug_board_channel_id, settings.bug_board_message_id)
        await reply(interaction, f"\U0001f4cb Bug board: {link}")

    @discord.ui.button(
        label="My Vouches", emoji="\U0001f4cc",
        style=discord.ButtonStyle.secondary, custom_id="aurora:panel:myvouches",
    )
    async def my_vouches(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        stats = await run_db(get_vouch_stats, bot.engine, interaction.guild_id, interaction.user.id)
        await reply(
            interaction,
            embed=build_vouch_profile_embed(interaction.user.id, stats.received, len(stats.given)),
        )

    @discord.ui.button(
        label="Top Vouches", emoji="\U0001f3c6",
        style=discord.ButtonStyle.secondary, custom_id="aurora:panel:topvouches",
    )
    async def top_vouches(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        rows = await run_db(top_vouched, bot.engine, interaction.guild_id)
        await reply(interaction, embed=build_top_vouches_embed(rows))


# ---------------------------------------------------------------------------
# Bug board
# ---------------------------------------------------------------------------
class BugBoardView(_ErrorReportingView):
    @discord.ui.button(
        label="Refresh", emoji="\U0001f504",
        style=discord.ButtonStyle.secondary, custom_id="aurora:board:refresh", row=0,
    )
    async def refresh(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if not await _require_elevated(interaction):
            return
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        await interaction.response.defer(ephemeral=True, thinking=True)
        message = await bug_board.refresh_bug_board(bot, interaction.guild)
        await reply(interaction, "✅ Board refreshed." if message else "❌ The board channel isn't reachable.")

    @discord.ui.button(
        label="View", emoji="\U0001f50d",
        style=discord.ButtonStyle.secondary, custom_id="aurora:board:view", row=0,
    )
    async def view_bug(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await interaction.response.send_modal(BugLookupModal())

    @discord.ui.button(
        label="Comment", emoji="\U0001f4ac",
        style=discord.ButtonStyle.secondary, custom_id="aurora:board:comment", row=0,
    )
    async def comment(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if await _require_elevated(interaction):
            await interaction.response.send_modal(BugCommentModal())

    @discord.ui.button(
        label="Reopen", emoji="\U0001f7e5",
        style=discord.ButtonStyle.danger, custom_id="aurora:board:reopen", row=0,
    )
    async def reopen(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        if await _require_elevated(interaction):
            await interaction.response.send_modal(BugActionModal(None))

    async def _quick_set(self, interaction: discord.Interaction, status: BugStatus) -> None:
        if await _require_elevated(interaction):
            await interaction.response.send_modal(BugActionModal(status))

    @discord.ui.button(label="In Progress", emoji="\U0001f7e8", custom_id="aurora:board:in_progress", row=1)
    async def set_in_progress(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._quick_set(interaction, BugStatus.IN_PROGRESS)

    @discord.ui.button(label="Waiting", emoji="\U0001f7e6", custom_id="aurora:board:waiting", row=1)
    async def set_waiting(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._quick_set(interaction, BugStatus.WAITING)

    @discord.ui.button(label="Can't Fix", emoji="⬛", custom_id="aurora:board:cant_fix", row=1)
    async def set_cant_fix(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._quick_set(interaction, BugStatus.CANT_FIX)

    @discord.ui.button(label="Can't Reproduce", emoji="\U0001f7ea", custom_id="aurora:board:cant_reproduce", row=1)
    async def set_cant_reproduce(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._quick_set(interaction, BugStatus.CANT_REPRODUCE)

    @discord.ui.button(
        label="Resolved", emoji="\U0001f7e9",
        style=discord.ButtonStyle.success, custom_id="aurora:board:resolved", row=1,
    )
    async def set_resolved(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._quick_set(interaction, BugStatus.RESOLVED)


# ---------------------------------------------------------------------------
# Ticket controls
# ---------------------------------------------------------------------------
class TicketControlView(_ErrorReportingView):
    @discord.ui.button(
        label="Close Ticket", emoji="\U0001f512",
        style=discord.ButtonStyle.danger, custom_id="aurora:ticket:close",
    )
    async def close(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        ticket = await run_db(get_ticket, bot.engine, interaction.channel_id)
        if ticket is None or not ticket.is_open:
            await reply(interaction, f"❌ {ticket_channels.NOT_A_TICKET}")
            return
        settings = await run_db(get_settings, bot.engine, interaction.guild_id)
        if not can_manage_ticket(interaction.user, ticket, settings):
            await reply(interaction, "\U0001f512 You can't close this ticket.")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        ok, reason = await ticket_channels.close_ticket(
            bot, interaction.guild, interaction.channel, interaction.user,
        )
        await reply(interaction, "✅ Ticket closed." if ok else f"❌ {reason}")

    @discord.ui.button(
        label="Claim", emoji="\U0001f64b",
        style=discord.ButtonStyle.primary, custom_id="aurora:ticket:claim",
    )
    async def claim(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        bot: AuroraBot = interaction.client  # type: ignore[assignment]
        await run_ticket_action(
            interaction, ticket_channels.claim(bot, interaction.guild, interaction.channel, interaction.user),
        )
