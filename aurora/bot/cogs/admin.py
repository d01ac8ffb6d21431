"""
aurora.bot.cogs.admin — Server Setup Commands
==============================================

Slash commands for server admins:
- /ping — latency check (open to everyone)
- /settings — show the guild's channel and role bindings
- /set-log-channel, /set-ticket-staff-role, /clear-ticket-staff-role
- /set-bug-channels — input, board and optional updates channel
- /panel — post the support panel

Everything except /ping requires Manage Server.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from aurora.bot.checks import elevated_only, reply
from aurora.database.engine import run_db
from aurora.services.bug_board import refresh_bug_board
from aurora.services.embeds import build_settings_embed, build_support_panel_embed
from aurora.services.settings_service import get_settings, update_settings

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)


def _text_only(*channels) -> bool:
    return all(c is None or isinstance(c, discord.TextChannel) for c in channels)


class Admin(commands.Cog, name="Admin"):
    """Server setup and diagnostics."""

    def __init__(self, bot: AuroraBot) -> None:
        self.bot = bot

    @app_commands.command(name="ping", description="Check the bot's latency.")
    async def ping(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(
            f"\U0001f3d3 Pong! `{round(self.bot.latency * 1000)}ms`", ephemeral=True,
        )

    @app_commands.command(name="settings", description="Show this server's bot settings.")
    @app_commands.guild_only()
    @elevated_only()
    async def settings(self, interaction: discord.Interaction) -> None:
        settings = await run_db(get_settings, self.bot.engine, interaction.guild_id)
        embed = build_settings_embed(settings, message_content=self.bot.cfg.message_content_intent)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="set-log-channel", description="Set the channel for bot log posts.")
    @app_commands.describe(channel="Text channel that receives log events")
    @app_commands.guild_only()
    @elevated_only()
    async def set_log_channel(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        if not _text_only(channel):
            await reply(interaction, "❌ Please pick a text channel.")
            return
        await run_db(update_settings, self.bot.engine, interaction.guild_id, log_channel_id=channel.id)
        await reply(interaction, f"✅ Log channel set to {channel.mention}.")

    @app_commands.command(name="set-ticket-staff-role", description="Set the role that handles tickets.")
    @app_commands.describe(role="Members with this role can see and manage tickets")
    @app_commands.guild_only()
    @elevated_only()
    async def set_ticket_staff_role(self, interaction: discord.Interaction, role: discord.Role) -> None:
        await run_db(update_settings, self.bot.engine, interaction.guild_id, ticket_staff_role_id=role.id)
        await reply(interaction, f"✅ Ticket staff role set to {role.mention}.")

    @app_commands.command(name="clear-ticket-staff-role", description="Remove the ticket staff role.")
    @app_commands.guild_only()
    @elevated_only()
    async def clear_ticket_staff_role(self, interaction: discord.Interaction) -> None:
        await run_db(update_settings, self.bot.engine, interaction.guild_id, ticket_staff_role_id=None)
        await reply(interaction, "✅ Ticket staff role cleared. Only Manage Server members count as staff now.")

    @app_commands.command(name="set-bug-channels", description="Configure the bug tracker channels.")
    @app_commands.describe(
        input="Where members post bug reports",
        board="Where the live bug board lives",
        updates="Where status updates are announced (optional)",
    )
    @app_commands.guild_only()
    @elevated_only()
    async def set_bug_channels(
        self,
        interaction: discord.Interaction,
        input: discord.TextChannel,
        board: discord.TextChannel,
        updates: discord.TextChannel | None = None,
    ) -> None:
        if not _text_only(input, board, updates):
            await reply(interaction, "❌ Bug channels must be text channels.")
            return

        settings = await run_db(get_settings, self.bot.engine, interaction.guild_id)
        patch = {
            "bug_input_channel_id": input.id,
            "bug_board_channel_id": board.id,
            "bug_updates_channel_id": updates.id if updates else None,
        }
        if settings.bug_board_channel_id != board.id:
            patch["bug_board_message_id"] = None
        await run_db(update_settings, self.bot.engine, interaction.guild_id, **patch)

        await interaction.response.defer(ephemeral=True, thinking=True)
        await refresh_bug_board(self.bot, interaction.guild)
        await reply(
            interaction,
            "✅ Bug channels saved.\n"
            f"Input: {input.mention}\nBoard: {board.mention}\n"
            f"Updates: {updates.mention if updates else '(board/input fallback)'}",
        )

    @app_commands.command(name="panel", description="Post the support panel in this channel.")
    @app_commands.guild_only()
    @elevated_only()
    async def panel(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(
            embed=build_support_panel_embed(self.bot.cfg.community_name),
            view=self.bot.panel_view,
        )
        logger.info("Support panel posted in channel %s", interaction.channel_id)


async def setup(bot: AuroraBot) -> None:
    await bot.add_cog(Admin(bot))
