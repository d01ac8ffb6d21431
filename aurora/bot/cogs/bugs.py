"""
aurora.bot.cogs.bugs — Bug Tracker Commands & Input Channel
============================================================

/bug board · view · list · search · status · comment · reopen · report

Reads (view, list, search) and filing a report are open to everyone;
status, comment, reopen and forcing a board refresh need Manage Server.

The cog also watches the configured input channel and turns every member
message posted there into a bug.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from aurora.bot.checks import elevated_only, reply
from aurora.constants import (
    BUG_COMMENT_MAX,
    BUG_DESCRIPTION_MAX,
    BUG_LIST_SIZE,
    BUG_NOTE_MAX,
    BUG_TITLE_MAX,
)
from aurora.database.engine import run_db
from aurora.database.models import BugStatus
from aurora.services import bug_board
from aurora.services.bug_service import KEEP, get_bug, list_recent_bugs, search_bugs
from aurora.services.embeds import build_bug_embed, build_bug_list_embed

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)

STATUS_CHOICES = [
    app_commands.Choice(name=s.value.replace("_", " ").title(), value=s.value) for s in BugStatus
]


def _not_found(bug_id: int) -> str:
    return f"❌ Bug `#{bug_id}` not found."


@app_commands.guild_only()
class Bugs(commands.GroupCog, group_name="bug", group_description="Bug tracker"):
    """Bug reports, statuses and the live board."""

    def __init__(self, bot: AuroraBot) -> None:
        self.bot = bot
        super().__init__()

    # -------------------------------------------------------------------
    # Input channel ingestion
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        try:
            bug = await bug_board.ingest_bug_message(self.bot, message)
        except Exception:
            logger.exception("Bug ingestion failed for message %s", message.id)
            return
        if bug is not None:
            logger.info("Ingested bug #%d from message %d", bug.id, message.id)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    @app_commands.command(name="view", description="Show a bug in detail.")
    async def view(self, interaction: discord.Interaction, bug_id: app_commands.Range[int, 1]) -> None:
        bug = await run_db(get_bug, self.bot.engine, interaction.guild_id, bug_id)
        if bug is None:
            await reply(interaction, _not_found(bug_id))
            return
        await reply(interaction, embed=build_bug_embed(bug))

    @app_commands.command(name="list", description="List the most recent bugs.")
    async def list_bugs(self, interaction: discord.Interaction) -> None:
        bugs = await run_db(list_recent_bugs, self.bot.engine, interaction.guild_id, BUG_LIST_SIZE)
        await reply(interaction, embed=build_bug_list_embed("\U0001f41e Recent Bugs", bugs))

    @app_commands.command(name="search", description="Search bug titles and descriptions.")
    async def search(self, interaction: discord.Interaction, query: app_commands.Range[str, 1, 100]) -> None:
        bugs = await run_db(search_bugs, self.bot.engine, interaction.guild_id, query, BUG_LIST_SIZE)
        await reply(interaction, embed=build_bug_list_embed(f"\U0001f50d Bugs matching “{query}”", bugs))

    # -------------------------------------------------------------------
    # Filing
    # -------------------------------------------------------------------
    @app_commands.command(name="report", description="File a bug report.")
    async def report(
        self,
        interaction: discord.Interaction,
        title: app_commands.Range[str, 1, BUG_TITLE_MAX],
        description: app_commands.Range[str, 1, BUG_DESCRIPTION_MAX] | None = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        bug = await bug_board.file_bug_report(
            self.bot, interaction.guild, interaction.user, title, description or "",
        )
        await reply(interaction, f"✅ Filed as **Bug #{bug.id}**.")

    # -------------------------------------------------------------------
    # Staff actions
    # -------------------------------------------------------------------
    @app_commands.command(name="board", description="Create or refresh the live bug board.")
    @elevated_only()
    async def board(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        message = await bug_board.refresh_bug_board(self.bot, interaction.guild)
        if message is None:
            await reply(interaction, "❌ No reachable board channel. Run `/set-bug-channels` first.")
            return
        await reply(interaction, f"✅ Board refreshed: {message.jump_url}")

    @app_commands.command(name="status", description="Set a bug's status.")
    @app_commands.describe(
        assign="Assign this member",
        clear_assignee="Remove the current assignee",
        note="Note shown on the bug and in the update",
    )
    @app_commands.choices(status=STATUS_CHOICES)
    @elevated_only()
    async def status(
        self,
        interaction: discord.Interaction,
        bug_id: app_commands.Range[int, 1],
        status: app_commands.Choice[str],
        assign: discord.Member | None = None,
        clear_assignee: bool = False,
        note: app_commands.Range[str, 1, BUG_NOTE_MAX] | None = None,
    ) -> None:
        if assign is not None and clear_assignee:
            await reply(interaction, "❌ Choose either `assign` or `clear_assignee`, not both.")
            return
        assignee = assign.id if assign else (None if clear_assignee else KEEP)

        await interaction.response.defer(ephemeral=True, thinking=True)
        bug = await bug_board.change_bug_status(
            self.bot, interaction.guild, interaction.user, bug_id, BugStatus(status.value), assignee, note,
        )
        if bug is None:
            await reply(interaction, _not_found(bug_id))
            return
        await reply(interaction, f"✅ **Bug #{bug.id}** is now **{bug.status}**.")

    @app_commands.command(name="comment", description="Add a comment to a bug.")
    @elevated_only()
    async def comment(
        self,
        interaction: discord.Interaction,
        bug_id: app_commands.Range[int, 1],
        text: app_commands.Range[str, 1, BUG_COMMENT_MAX],
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        bug = await bug_board.comment_on_bug(self.bot, interaction.guild, interaction.user, bug_id, text)
        if bug is None:
            await reply(interaction, _not_found(bug_id))
            return
        await reply(interaction, f"\U0001f4ac Comment added to **Bug #{bug.id}**.")

    @app_commands.command(name="reopen", description="Reopen a bug.")
    @elevated_only()
    async def reopen(
        self,
        interaction: discord.Interaction,
        bug_id: app_commands.Range[int, 1],
        note: app_commands.Range[str, 1, BUG_NOTE_MAX] | None = None,
    ) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        bug = await bug_board.reopen_and_announce(self.bot, interaction.guild, interaction.user, bug_id, note)
        if bug is None:
            await reply(interaction, _not_found(bug_id))
            return
        await reply(interaction, f"\U0001f7e5 **Bug #{bug.id}** reopened.")


async def setup(bot: AuroraBot) -> None:
    await bot.add_cog(Bugs(bot))
