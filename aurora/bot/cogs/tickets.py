"""
aurora.bot.cogs.tickets — /ticket Command Group
================================================

create · close · info · add · remove · claim · assign · unassign · transcript

Close and transcript are open to staff, the owner and assigned staff; the
membership commands need ticket staff (staff role or Manage Server).  The
rules themselves live in :mod:`aurora.services.ticket_service`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from aurora.bot.checks import reply, run_ticket_action
from aurora.bot.views import open_ticket_for
from aurora.constants import TICKET_REASON_MAX
from aurora.database.engine import run_db
from aurora.services import ticket_channels
from aurora.services.embeds import build_ticket_info_embed
from aurora.services.settings_service import get_settings
from aurora.services.ticket_service import can_manage_ticket, get_ticket

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)


@app_commands.guild_only()
class Tickets(commands.GroupCog, group_name="ticket", group_description="Support tickets"):
    """Private support channels."""

    def __init__(self, bot: AuroraBot) -> None:
        self.bot = bot
        super().__init__()

    async def _ticket_here(self, interaction: discord.Interaction):
        ticket = await run_db(get_ticket, self.bot.engine, interaction.channel_id)
        if ticket is None or ticket.guild_id != interaction.guild_id:
            await reply(interaction, "❌ This channel is not a ticket.")
            return None
        return ticket

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    @app_commands.command(name="create", description="Open a private support ticket.")
    @app_commands.describe(reason="What you need help with")
    async def create(
        self,
        interaction: discord.Interaction,
        reason: app_commands.Range[str, 1, TICKET_REASON_MAX] | None = None,
    ) -> None:
        await open_ticket_for(interaction, reason)

    @app_commands.command(name="close", description="Close this ticket.")
    async def close(self, interaction: discord.Interaction) -> None:
        ticket = await self._ticket_here(interaction)
        if ticket is None:
            return
        settings = await run_db(get_settings, self.bot.engine, interaction.guild_id)
        if not can_manage_ticket(interaction.user, ticket, settings):
            await reply(interaction, "\U0001f512 Only staff, the owner or assigned staff can close this ticket.")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        ok, reason = await ticket_channels.close_ticket(
            self.bot, interaction.guild, interaction.channel, interaction.user,
        )
        await reply(interaction, "✅ Ticket closed." if ok else f"❌ {reason}")

    @app_commands.command(name="info", description="Show details about this ticket.")
    async def info(self, interaction: discord.Interaction) -> None:
        ticket = await self._ticket_here(interaction)
        if ticket is not None:
            await reply(interaction, embed=build_ticket_info_embed(ticket))

    # -------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------
    @app_commands.command(name="add", description="Give a member access to this ticket.")
    async def add(self, interaction: discord.Interaction, user: discord.Member) -> None:
        await run_ticket_action(interaction, ticket_channels.add_user(
            self.bot, interaction.guild, interaction.channel, interaction.user, user,
        ))

    @app_commands.command(name="remove", description="Remove a member from this ticket.")
    async def remove(self, interaction: discord.Interaction, user: discord.Member) -> None:
        await run_ticket_action(interaction, ticket_channels.remove_user(
            self.bot, interaction.guild, interaction.channel, interaction.user, user,
        ))

    @app_commands.command(name="claim", description="Assign yourself to this ticket.")
    async def claim(self, interaction: discord.Interaction) -> None:
        await run_ticket_action(interaction, ticket_channels.claim(
            self.bot, interaction.guild, interaction.channel, interaction.user,
        ))

    @app_commands.command(name="assign", description="Assign a staff member to this ticket.")
    async def assign(self, interaction: discord.Interaction, staff: discord.Member) -> None:
        await run_ticket_action(interaction, ticket_channels.assign(
            self.bot, interaction.guild, interaction.channel, interaction.user, staff,
        ))

    @app_commands.command(name="unassign", description="Unassign a staff member from this ticket.")
    async def unassign(self, interaction: discord.Interaction, staff: discord.Member) -> None:
        await run_ticket_action(interaction, ticket_channels.unassign(
            self.bot, interaction.guild, interaction.channel, interaction.user, staff,
        ))

    # -------------------------------------------------------------------
    # Transcript
    # -------------------------------------------------------------------
    @app_commands.command(name="transcript", description="Export recent messages as a text file.")
    @app_commands.describe(limit="How many messages (10–200, default 50)")
    async def transcript(self, interaction: discord.Interaction, limit: int = 50) -> None:
        ticket = await self._ticket_here(interaction)
        if ticket is None:
            return
        settings = await run_db(get_settings, self.bot.engine, interaction.guild_id)
        if not can_manage_ticket(interaction.user, ticket, settings):
            await reply(interaction, "\U0001f512 You can't export this ticket.")
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        text = await ticket_channels.build_transcript(interaction.channel, limit)
        await reply(
            interaction,
            f"\U0001f4dc Transcript for ticket #{ticket.number:04d}",
            file=ticket_channels.transcript_file(text, ticket.number),
        )


async def setup(bot: AuroraBot) -> None:
    await bot.add_cog(Tickets(bot))
