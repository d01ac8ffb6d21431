"""
aurora.bot.cogs.moderation — Kick, Ban, Purge & Member Log
===========================================================

Each command needs the matching Discord permission (checked for both the
invoker and, by Discord, the bot).  Every action is journaled in
``moderation_actions`` and posted to the log channel.

With the members intent enabled, joins and leaves are posted to the log
channel too.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from aurora.bot.checks import reply
from aurora.constants import PURGE_MAX, PURGE_MIN
from aurora.database.engine import run_db
from aurora.database.models import ModerationActionType, as_utc
from aurora.services.embeds import build_log_embed
from aurora.services.log_sink import send_log
from aurora.services.moderation_service import recent_actions, record_moderation_action

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)


def _outranks(actor: discord.Member, target: discord.Member) -> bool:
    """Role hierarchy check; the guild owner outranks everyone."""
    if actor.guild.owner_id == actor.id:
        return True
    return actor.top_role > target.top_role


class Moderation(commands.Cog, name="Moderation"):
    """Moderation commands and membership logging."""

    def __init__(self, bot: AuroraBot) -> None:
        self.bot = bot

    async def _journal(
        self,
        interaction: discord.Interaction,
        action: ModerationActionType,
        target: discord.abc.User | None,
        reason: str | None,
        **fields: str,
    ) -> None:
        await run_db(
            record_moderation_action,
            self.bot.engine,
            interaction.guild_id,
            action,
            interaction.user.id,
            target.id if target else None,
            reason,
        )
        await send_log(self.bot, interaction.guild, build_log_embed(
            f"\U0001f6e1️ {action.value.title()}",
            reason,
            moderator=interaction.user.mention,
            **({"target": target.mention} if target else {}),
            **fields,
        ))

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    @app_commands.command(name="kick", description="Kick a member.")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(kick_members=True)
    async def kick(
        self, interaction: discord.Interaction, user: discord.Member, reason: str | None = None,
    ) -> None:
        if user.id == interaction.user.id or not _outranks(interaction.user, user):
            await reply(interaction, "❌ You can't kick that member.")
            return
        try:
            await user.kick(reason=reason)
        except discord.Forbidden:
            await reply(interaction, "❌ I don't have permission to kick that member.")
            return
        await reply(interaction, f"\U0001f462 Kicked {user.mention}.", ephemeral=False)
        await self._journal(interaction, ModerationActionType.KICK, user, reason)

    @app_commands.command(name="ban", description="Ban a member.")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(ban_members=True)
    async def ban(
        self, interaction: discord.Interaction, user: discord.Member, reason: str | None = None,
    ) -> None:
        if user.id == interaction.user.id or not _outranks(interaction.user, user):
            await reply(interaction, "❌ You can't ban that member.")
            return
        try:
            await user.ban(reason=reason, delete_message_seconds=0)
        except discord.Forbidden:
            await reply(interaction, "❌ I don't have permission to ban that member.")
            return
        await reply(interaction, f"\U0001f528 Banned {user.mention}.", ephemeral=False)
        await self._journal(interaction, ModerationActionType.BAN, user, reason)

    @app_commands.command(name="purge", description="Bulk-delete recent messages in this channel.")
    @app_commands.describe(amount=f"How many messages ({PURGE_MIN}–{PURGE_MAX})")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_messages=True)
    async def purge(
        self, interaction: discord.Interaction, amount: app_commands.Range[int, PURGE_MIN, PURGE_MAX],
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            deleted = await interaction.channel.purge(limit=amount)
        except discord.Forbidden:
            await reply(interaction, "❌ I don't have permission to delete messages here.")
            return
        await reply(interaction, f"\U0001f9f9 Deleted **{len(deleted)}** messages.")
        await self._journal(
            interaction, ModerationActionType.PURGE, None, None,
            channel=interaction.channel.mention, deleted=str(len(deleted)),
        )

    @app_commands.command(name="modlog", description="Show recent moderation actions.")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def modlog(self, interaction: discord.Interaction) -> None:
        actions = await run_db(recent_actions, self.bot.engine, interaction.guild_id, 15)
        lines = [
            f"{discord.utils.format_dt(as_utc(a.created_at), 'R')} **{a.action_type}** "
            + (f"<@{a.target_id}> " if a.target_id else "")
            + f"by <@{a.moderator_id}>"
            + (f": {a.reason}" if a.reason else "")
            for a in actions
        ]
        embed = discord.Embed(
            title="\U0001f6e1️ Moderation Log",
            description="\n".join(lines) or "*No actions recorded.*",
            color=discord.Color.dark_red(),
        )
        await reply(interaction, embed=embed)

    # -------------------------------------------------------------------
    # Membership log (members intent)
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        logger.info("Member joined: %s (ID: %d)", member.display_name, member.id)
        await send_log(self.bot, member.guild, build_log_embed(
            "\U0001f4e5 Member Joined",
            member=f"{member.mention} ({member.id})",
            account_created=discord.utils.format_dt(member.created_at, "R"),
        ))

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        logger.info("Member left: %s (ID: %d)", member.display_name, member.id)
        await send_log(self.bot, member.guild, build_log_embed(
            "\U0001f4e4 Member Left", member=f"{member} ({member.id})",
        ))


async def setup(bot: AuroraBot) -> None:
    await bot.add_cog(Moderation(bot))
