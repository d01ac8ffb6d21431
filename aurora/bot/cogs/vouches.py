"""
aurora.bot.cogs.vouches — Peer Reputation Commands
===================================================

/vouch · /checkvouch · /topvouches · /vouchremove

Self-vouches and vouches for bots are refused here; the ledger itself
accepts any pair.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from aurora.bot.checks import reply
from aurora.constants import VOUCH_MESSAGE_MAX
from aurora.database.engine import run_db
from aurora.services.embeds import (
    build_log_embed,
    build_new_vouch_embed,
    build_top_vouches_embed,
    build_vouch_profile_embed,
)
from aurora.services.log_sink import send_log
from aurora.services.ticket_service import is_elevated
from aurora.services.vouch_service import (
    add_vouch,
    count_received,
    get_vouch_stats,
    remove_vouch_by_id,
    top_vouched,
)

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)


class Vouches(commands.Cog, name="Vouches"):
    """Vouch for members and look up reputation."""

    def __init__(self, bot: AuroraBot) -> None:
        self.bot = bot

    @app_commands.command(name="vouch", description="Vouch for a member.")
    @app_commands.guild_only()
    @app_commands.describe(user="Who you're vouching for", message="What they did well")
    async def vouch(
        self,
        interaction: discord.Interaction,
        user: discord.Member,
        message: app_commands.Range[str, 1, VOUCH_MESSAGE_MAX] | None = None,
    ) -> None:
        if user.id == interaction.user.id:
            await reply(interaction, "❌ You can't vouch for yourself.")
            return
        if user.bot:
            await reply(interaction, "❌ You can't vouch for a bot.")
            return

        vouch = await run_db(add_vouch, self.bot.engine, interaction.guild_id, interaction.user.id, user.id, message)
        total = await run_db(count_received, self.bot.engine, interaction.guild_id, user.id)
        await interaction.response.send_message(
            embed=build_new_vouch_embed(vouch, total),
            allowed_mentions=discord.AllowedMentions.none(),
        )
        await send_log(self.bot, interaction.guild, build_log_embed(
            "\U0001f91d Vouch Added",
            vouch.message or None,
            id=f"#{vouch.id}",
            by=interaction.user.mention,
            to=user.mention,
        ))

    @app_commands.command(name="checkvouch", description="Show a member's vouches.")
    @app_commands.guild_only()
    async def checkvouch(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        target = user or interaction.user
        stats = await run_db(get_vouch_stats, self.bot.engine, interaction.guild_id, target.id)
        await interaction.response.send_message(
            embed=build_vouch_profile_embed(target.id, stats.received, len(stats.given)),
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @app_commands.command(name="topvouches", description="Most vouched members.")
    @app_commands.guild_only()
    async def topvouches(self, interaction: discord.Interaction) -> None:
        rows = await run_db(top_vouched, self.bot.engine, interaction.guild_id)
        await interaction.response.send_message(
            embed=build_top_vouches_embed(rows),
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @app_commands.command(name="vouchremove", description="Remove a vouch by its ID.")
    @app_commands.guild_only()
    @app_commands.describe(vouch_id="The vouch ID shown as #N")
    async def vouchremove(self, interaction: discord.Interaction, vouch_id: app_commands.Range[int, 1]) -> None:
        ok, message = await run_db(
            remove_vouch_by_id,
            self.bot.engine,
            interaction.guild_id,
            vouch_id,
            interaction.user.id,
            is_elevated(interaction.user),
        )
        await reply(interaction, f"✅ {message}" if ok else f"❌ {message}")
        if ok:
            await send_log(self.bot, interaction.guild, build_log_embed(
                "\U0001f5d1️ Vouch Removed", id=f"#{vouch_id}", by=interaction.user.mention,
            ))


async def setup(bot: AuroraBot) -> None:
    await bot.add_cog(Vouches(bot))
