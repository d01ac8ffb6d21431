"""
aurora.bot.cogs.economy — XP, Levels & Coins
=============================================

Message XP
    Every non-bot guild message is worth 15–25 XP, at most once per
    60 seconds per member (:class:`~aurora.engine.leveling.XpCooldown`).
    Level-ups are announced in the message's channel and the log channel.

Commands
    /daily · /balance · /pay · /rank · /level · /leaderboard
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from aurora.bot.checks import reply
from aurora.constants import format_duration
from aurora.database.engine import run_db
from aurora.engine.leveling import roll_message_xp
from aurora.services.economy_service import (
    add_xp,
    claim_daily,
    get_progress,
    level_leaderboard,
    transfer_balance,
)
from aurora.services.embeds import (
    build_balance_embed,
    build_daily_embed,
    build_leaderboard_embed,
    build_level_up_embed,
    build_log_embed,
    build_rank_embed,
)
from aurora.services.log_sink import attempt, send_log

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)


class Economy(commands.Cog, name="Economy"):
    """Leveling from chat activity and a simple coin economy."""

    def __init__(self, bot: AuroraBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # Message XP
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        if not self.bot.xp_cooldown.try_acquire(message.guild.id, message.author.id):
            return

        try:
            result = await run_db(
                add_xp, self.bot.engine, message.guild.id, message.author.id, roll_message_xp(),
            )
        except Exception:
            logger.exception("XP grant failed for %s", message.author.id)
            return

        if result.leveled_up:
            await attempt(
                message.channel.send(
                    embed=build_level_up_embed(message.author.id, result.level),
                    allowed_mentions=discord.AllowedMentions.none(),
                ),
                action="level-up announcement",
            )
            await send_log(self.bot, message.guild, build_log_embed(
                "\U0001f389 Level Up", user=message.author.mention, level=str(result.level),
            ))

    # -------------------------------------------------------------------
    # Coins
    # -------------------------------------------------------------------
    @app_commands.command(name="daily", description="Claim your daily coins.")
    @app_commands.guild_only()
    async def daily(self, interaction: discord.Interaction) -> None:
        result = await run_db(claim_daily, self.bot.engine, interaction.guild_id, interaction.user.id)
        if not result.ok:
            await reply(
                interaction,
                f"⏳ You already claimed today. Try again in **{format_duration(result.remaining.total_seconds())}**.",
            )
            return
        await interaction.response.send_message(embed=build_daily_embed(result.reward, result.balance))

    @app_commands.command(name="balance", description="Show a coin balance.")
    @app_commands.guild_only()
    async def balance(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        target = user or interaction.user
        progress = await run_db(get_progress, self.bot.engine, interaction.guild_id, target.id)
        await interaction.response.send_message(
            embed=build_balance_embed(target.id, progress.balance),
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @app_commands.command(name="pay", description="Send coins to another member.")
    @app_commands.guild_only()
    async def pay(
        self,
        interaction: discord.Interaction,
        user: discord.Member,
        amount: int,
    ) -> None:
        if user.bot:
            await reply(interaction, "❌ You can't pay a bot.")
            return
        result = await run_db(
            transfer_balance, self.bot.engine, interaction.guild_id, interaction.user.id, user.id, amount,
        )
        if not result.ok:
            await reply(interaction, f"❌ {result.reason}")
            return
        await interaction.response.send_message(
            f"\U0001f4b8 {interaction.user.mention} paid {user.mention} **{amount}** coins. "
            f"Your balance: **{result.from_balance}**",
            allowed_mentions=discord.AllowedMentions.none(),
        )

    # -------------------------------------------------------------------
    # Levels
    # -------------------------------------------------------------------
    async def _show_rank(self, interaction: discord.Interaction, user: discord.Member | None) -> None:
        target = user or interaction.user
        progress = await run_db(get_progress, self.bot.engine, interaction.guild_id, target.id)
        await interaction.response.send_message(
            embed=build_rank_embed(target.id, progress),
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @app_commands.command(name="rank", description="Show level and XP.")
    @app_commands.guild_only()
    async def rank(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._show_rank(interaction, user)

    @app_commands.command(name="level", description="Show level and XP.")
    @app_commands.guild_only()
    async def level(self, interaction: discord.Interaction, user: discord.Member | None = None) -> None:
        await self._show_rank(interaction, user)

    @app_commands.command(name="leaderboard", description="Top members by level.")
    @app_commands.guild_only()
    async def leaderboard(self, interaction: discord.Interaction) -> None:
        rows = await run_db(level_leaderboard, self.bot.engine, interaction.guild_id, 10)
        await interaction.response.send_message(
            embed=build_leaderboard_embed(rows),
            allowed_mentions=discord.AllowedMentions.none(),
        )


async def setup(bot: AuroraBot) -> None:
    await bot.add_cog(Economy(bot))
