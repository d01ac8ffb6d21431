"""
aurora.services.bug_board — Live Board, Announcements & Ingestion
==================================================================

Discord side of the bug tracker:

- :func:`refresh_bug_board` reconciles the single board message.  Its
  content is recomputed from the store on every call, so refreshing is
  idempotent.  Refreshes for one guild are serialized by a per-guild lock.
- :func:`sync_report_message` re-renders the report copy the bot posted
  into the input channel after every change to the bug.
- :func:`announce_bug_update` posts a one-off update notice to the updates
  channel, falling back to the board channel, then the input channel.
- :func:`ingest_bug_message` turns a message in the input channel into a bug.

The ``change_*`` helpers wrap a store mutation with its announcement and
board refresh so commands, buttons and modals behave identically.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord

from aurora.constants import ACK_EMOJI
from aurora.database.engine import run_db
from aurora.database.models import Bug, BugStatus
from aurora.services import bug_service
from aurora.services.bug_service import KEEP, SourceRef
from aurora.services.embeds import (
    build_bug_board_embed,
    build_bug_report_embed,
    build_bug_update_embed,
    build_log_embed,
)
from aurora.services.log_sink import attempt, resolve_text_channel, send_log
from aurora.services.settings_service import get_settings, update_settings

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)

UNAVAILABLE_CONTENT = "(message content unavailable: the bot cannot read message text)"
ATTACHMENT_ONLY = "(attachment only)"


def render_board(bugs: list[Bug], counts: dict[str, int]) -> discord.Embed:
    """Pure render of the board for a store snapshot."""
    return build_bug_board_embed(bugs, counts)


def split_report(content: str | None) -> tuple[str, str]:
    """First line becomes the title, the rest the description."""
    text = (content or "").strip()
    if not text:
        return "", ""
    first, _, rest = text.partition("\n")
    return first.strip(), rest.strip()


# ---------------------------------------------------------------------------
# Board reconciliation
# ---------------------------------------------------------------------------
def _board_lock(bot: AuroraBot, guild_id: int) -> asyncio.Lock:
    return bot.board_locks.setdefault(guild_id, asyncio.Lock())


async def refresh_bug_board(bot: AuroraBot, guild: discord.Guild) -> discord.Message | None:
    """Create or update the board message.  Returns it, or ``None`` if the
    board channel is unset or unreachable.

    Refreshes for one guild run one at a time, so a board posted by one
    refresh is reused by the next instead of posted twice.
    """
    async with _board_lock(bot, guild.id):
        return await _reconcile_board(bot, guild)


async def _reconcile_board(bot: AuroraBot, guild: discord.Guild) -> discord.Message | None:
    settings = await run_db(get_settings, bot.engine, guild.id)
    channel = await resolve_text_channel(guild, settings.bug_board_channel_id)
    if channel is None:
        return None

    bugs, counts = await run_db(bug_service.board_snapshot, bot.engine, guild.id)
    embed = render_board(bugs, counts)
    view = getattr(bot, "board_view", None)

    if settings.bug_board_message_id:
        message = await attempt(
            channel.fetch_message(settings.bug_board_message_id),
            action=f"fetch bug board {settings.bug_board_message_id}",
        )
        if message is not None:
            edited = await attempt(
                message.edit(content=None, embed=embed, view=view),
                action="edit bug board",
            )
            if edited is not None:
                return message

    message = await attempt(channel.send(embed=embed, view=view), action="post bug board")
    if message is None:
        return None
    await run_db(update_settings, bot.engine, guild.id, bug_board_message_id=message.id)
    logger.info("Posted new bug board %d in guild %d", message.id, guild.id)
    return message


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------
async def announce_bug_update(
    bot: AuroraBot,
    guild: discord.Guild,
    bug: Bug,
    actor_id: int,
    extra_text: str | None = None,
) -> discord.Message | None:
    """Post an update notice.  The reporter is mentioned only on RESOLVED."""
    settings = await run_db(get_settings, bot.engine, guild.id)
    channel = None
    for channel_id in (
        settings.bug_updates_channel_id,
        settings.bug_board_channel_id,
        settings.bug_input_channel_id,
    ):
        channel = await resolve_text_channel(guild, channel_id)
        if channel is not None:
            break
    if channel is None:
        return None

    embed = build_bug_update_embed(bug, actor_id, extra_text)
    if bug.status == BugStatus.RESOLVED:
        content = f"<@{bug.reporter_id}> your bug report was resolved."
        mentions = discord.AllowedMentions(everyone=False, roles=False, users=True)
    else:
        content = None
        mentions = discord.AllowedMentions.none()

    return await attempt(
        channel.send(content=content, embed=embed, allowed_mentions=mentions),
        action=f"announce bug #{bug.id}",
    )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
async def ingest_bug_message(bot: AuroraBot, message: discord.Message) -> Bug | None:
    """Convert a member's message in the bug input channel into a bug."""
    if message.author.bot or message.guild is None:
        return None
    settings = await run_db(get_settings, bot.engine, message.guild.id)
    if not settings.bug_input_channel_id or message.channel.id != settings.bug_input_channel_id:
        return None

    can_read = bot.cfg.message_content_intent
    title, description = split_report(message.content if can_read else "")
    if not title:
        title = f"Report from {message.author.display_name}"
        if not can_read:
            description = UNAVAILABLE_CONTENT
        elif message.attachments:
            description = ATTACHMENT_ONLY
    if message.attachments:
        urls = "\n".join(a.url for a in message.attachments)
        description = f"{description}\n{urls}".strip()

    bug = await run_db(
        bug_service.create_bug,
        bot.engine,
        message.guild.id,
        message.author.id,
        title,
        description,
        SourceRef(channel_id=message.channel.id, message_id=message.id),
    )
    await attempt(message.add_reaction(ACK_EMOJI), action=f"ack bug #{bug.id}")
    await attempt(
        message.reply(f"Logged as **Bug #{bug.id}**.", mention_author=False),
        action=f"reply bug #{bug.id}",
    )
    await refresh_bug_board(bot, message.guild)
    return bug


async def file_bug_report(
    bot: AuroraBot,
    guild: discord.Guild,
    reporter: discord.abc.User,
    title: str,
    description: str,
) -> Bug:
    """File a report from the modal or ``/bug report``.

    A copy is posted into the input channel (when set) and becomes the
    bug's source message.
    """
    bug = await run_db(bug_service.create_bug, bot.engine, guild.id, reporter.id, title, description)

    settings = await run_db(get_settings, bot.engine, guild.id)
    channel = await resolve_text_channel(guild, settings.bug_input_channel_id)
    if channel is not None:
        posted = await attempt(
            channel.send(
                embed=build_bug_report_embed(bug),
                allowed_mentions=discord.AllowedMentions.none(),
            ),
            action=f"post report for bug #{bug.id}",
        )
        if posted is not None:
            source = SourceRef(channel_id=channel.id, message_id=posted.id)
            bug = await run_db(bug_service.attach_source, bot.engine, guild.id, bug.id, source) or bug

    await refresh_bug_board(bot, guild)
    await send_log(bot, guild, build_log_embed(
        "\U0001f41e Bug Reported",
        bug.title,
        bug=f"#{bug.id}",
        reporter=reporter.mention,
    ))
    return bug


async def sync_report_message(bot: AuroraBot, guild: discord.Guild, bug: Bug) -> bool:
    """Re-render the report copy the bot posted for *bug*, if there is one.

    Member messages picked up from the input channel are left alone.
    """
    if not bug.source_channel_id or not bug.source_message_id:
        return False
    channel = await resolve_text_channel(guild, bug.source_channel_id)
    if channel is None:
        return False
    message = await attempt(
        channel.fetch_message(bug.source_message_id),
        action=f"fetch report for bug #{bug.id}",
    )
    if message is None or message.author.id != bot.user.id:
        return False
    edited = await attempt(
        message.edit(embed=build_bug_report_embed(bug), allowed_mentions=discord.AllowedMentions.none()),
        action=f"sync report for bug #{bug.id}",
    )
    return edited is not None


# ---------------------------------------------------------------------------
# Mutations with follow-up
# ---------------------------------------------------------------------------
async def change_bug_status(
    bot: AuroraBot,
    guild: discord.Guild,
    actor: discord.abc.User,
    bug_id: int,
    status: BugStatus,
    assignee: int | None | object = KEEP,
    note: str | None = None,
) -> Bug | None:
    bug = await run_db(
        bug_service.set_bug_status, bot.engine, guild.id, bug_id, status, assignee, note,
    )
    if bug is None:
        return None
    extra = f"**Note:** {note.strip()}" if note and note.strip() else None
    await announce_bug_update(bot, guild, bug, actor.id, extra)
    await sync_report_message(bot, guild, bug)
    await refresh_bug_board(bot, guild)
    return bug


async def comment_on_bug(
    bot: AuroraBot, guild: discord.Guild, actor: discord.abc.User, bug_id: int, text: str,
) -> Bug | None:
    bug = await run_db(bug_service.add_bug_comment, bot.engine, guild.id, bug_id, actor.id, text)
    if bug is None:
        return None
    await announce_bug_update(bot, guild, bug, actor.id, f"\U0001f4ac **Comment:** {text.strip()}")
    await sync_report_message(bot, guild, bug)
    await refresh_bug_board(bot, guild)
    return bug


async def reopen_and_announce(
    bot: AuroraBot,
    guild: discord.Guild,
    actor: discord.abc.User,
    bug_id: int,
    note: str | None = None,
) -> Bug | None:
    bug = await run_db(bug_service.reopen_bug, bot.engine, guild.id, bug_id, note)
    if bug is None:
        return None
    extra = "\U0001f504 **Reopened**"
    if note and note.strip():
        extra += f"\n**Note:** {note.strip()}"
    await announce_bug_update(bot, guild, bug, actor.id, extra)
    await sync_report_message(bot, guild, bug)
    await refresh_bug_board(bot, guild)
    return bug
