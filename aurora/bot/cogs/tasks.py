"""
aurora.bot.cogs.tasks — Periodic Background Tasks
==================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Ticket deletion sweep** — every minute, deletes closed ticket channels
  whose delayed deletion is overdue (e.g. because the bot restarted while
  the timer was pending).
- **XP cooldown prune** — every 10 minutes, drops expired cooldown entries
  so the map does not grow with every member who ever chatted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from aurora.services.ticket_channels import sweep_pending_deletions

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: AuroraBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Start task loops when the cog is loaded."""
        self.deletion_sweep_loop.start()
        self.cooldown_prune_loop.start()

    async def cog_unload(self) -> None:
        """Cancel task loops on unload."""
        self.deletion_sweep_loop.cancel()
        self.cooldown_prune_loop.cancel()

    # -------------------------------------------------------------------
    # Ticket deletion sweep
    # -------------------------------------------------------------------
    @tasks.loop(minutes=1)
    async def deletion_sweep_loop(self):
        try:
            await sweep_pending_deletions(self.bot)
        except Exception:
            logger.exception("Deletion sweep failed", extra={"task": "deletion_sweep"})

    @deletion_sweep_loop.before_loop
    async def _wait_sweep(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # XP cooldown prune
    # -------------------------------------------------------------------
    @tasks.loop(minutes=10)
    async def cooldown_prune_loop(self):
        removed = self.bot.xp_cooldown.prune()
        if removed:
            logger.debug("Pruned %d expired XP cooldowns", removed)

    @cooldown_prune_loop.before_loop
    async def _wait_prune(self):
        await self.bot.wait_until_ready()


async def setup(bot: AuroraBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
