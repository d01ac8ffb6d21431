"""
aurora.bot.core — Bot Instance & Cog Loader
============================================

Defines :class:`AuroraBot`, the ``commands.Bot`` subclass every cog hangs
off.  It:

1. Stores the shared config (``bot.cfg``) and DB engine (``bot.engine``)
   so cogs and services reach them via ``bot.cfg`` / ``bot.engine``.
2. Loads every cog listed in :data:`EXTENSIONS`.
3. Registers the persistent views (support panel, bug board, ticket
   controls) so their buttons keep working across restarts.
4. Syncs the slash-command tree on ready (guild-scoped when ``guild_id``
   is configured, global otherwise).
5. Sweeps ticket channels whose deletion a restart interrupted.
"""

from __future__ import annotations

import asyncio
import logging

import discord
from discord import app_commands
from discord.ext import commands
from sqlalchemy import Engine

from aurora.bot.checks import ELEVATED_ONLY, GUILD_ONLY, report_failure, reply
from aurora.bot.views import BugBoardView, SupportPanelView, TicketControlView
from aurora.config import AuroraConfig
from aurora.engine.leveling import XpCooldown
from aurora.services.ticket_channels import sweep_pending_deletions

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "aurora.bot.cogs.admin",
    "aurora.bot.cogs.tickets",
    "aurora.bot.cogs.bugs",
    "aurora.bot.cogs.vouches",
    "aurora.bot.cogs.economy",
    "aurora.bot.cogs.moderation",
    "aurora.bot.cogs.tasks",
]


class AuroraBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`AuroraConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` (PostgreSQL, or SQLite in memory).
    """

    def __init__(self, cfg: AuroraConfig, engine: Engine) -> None:
        # Privileged intents must also be enabled in the Developer Portal.
        intents = discord.Intents.default()
        intents.message_content = cfg.message_content_intent
        intents.members = cfg.members_intent
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} community bot",
        )

        self.cfg = cfg
        self.engine = engine
        self.xp_cooldown = XpCooldown()

        # Persistent views, shared by every message that carries them.
        # Built in setup_hook: View() needs a running event loop.
        self.panel_view: SupportPanelView | None = None
        self.board_view: BugBoardView | None = None
        self.ticket_view: TicketControlView | None = None

        # Running delayed ticket deletions
        self.pending_deletions: set[asyncio.Task] = set()

        # One bug-board refresh at a time per guild
        self.board_locks: dict[int, asyncio.Lock] = {}

        self.tree.error(self.on_app_command_error)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load cogs and register persistent views before connecting.

        A cog that fails to load is logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        self.panel_view = SupportPanelView()
        self.board_view = BugBoardView()
        self.ticket_view = TicketControlView()
        for view in (self.panel_view, self.board_view, self.ticket_view):
            self.add_view(view)
        logger.info("Persistent views registered.")

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        # --- Slash-command sync ---------------------------------------------
        try:
            if self.cfg.guild_id:
                guild = discord.Object(id=self.cfg.guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info("Synced %d commands to guild %s", len(synced), self.cfg.guild_id)
            else:
                synced = await self.tree.sync()
                logger.info("Synced %d commands globally", len(synced))
        except discord.HTTPException:
            logger.exception("Slash-command sync failed")

        # --- Overdue ticket deletions ---------------------------------------
        await sweep_pending_deletions(self)

    async def close(self) -> None:
        """Graceful shutdown."""
        logger.info("Bot shutting down…")
        for task in list(self.pending_deletions):
            task.cancel()
        await super().close()

    # -----------------------------------------------------------------------
    # Outermost dispatch boundary
    # -----------------------------------------------------------------------
    async def on_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        """Turn any error that reached the tree into an ephemeral reply."""
        if isinstance(error, app_commands.NoPrivateMessage):
            await reply(interaction, GUILD_ONLY)
            return
        if isinstance(error, app_commands.MissingPermissions):
            missing = ", ".join(p.replace("_", " ").title() for p in error.missing_permissions)
            await reply(interaction, f"\U0001f512 You need the {missing} permission to use this command.")
            return
        if isinstance(error, app_commands.CheckFailure):
            await reply(interaction, ELEVATED_ONLY)
            return
        name = interaction.command.qualified_name if interaction.command else "?"
        await report_failure(interaction, error, f"/{name}")
