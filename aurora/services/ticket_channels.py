"""
aurora.services.ticket_channels — Ticket Channels & Permission Sync
====================================================================

Creates, edits and deletes the private channels behind support tickets.
Row bookkeeping goes through :mod:`aurora.services.ticket_service`.

Only the primary action of ticket creation can fail loudly
(:class:`TicketCreationError`).  Overwrite edits, notices and log posts go
through :func:`~aurora.services.log_sink.attempt`, so a failed overwrite can
leave the participant sets ahead of the real channel permissions.

Closed channels are deleted after ``ticket_delete_delay_seconds``.  The due
time is stored on the ticket row, and :func:`sweep_pending_deletions` picks
up any deletion a restart interrupted.
"""

from __future__ import annotations

import asyncio
import io
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

import discord

from aurora.constants import (
    TICKET_REASON_MAX,
    TRANSCRIPT_ATTACHMENTS_MAX,
    TRANSCRIPT_MAX,
    TRANSCRIPT_MIN,
    clamp_text,
)
from aurora.database.engine import run_db
from aurora.database.models import GuildSettings, ParticipantKind, Ticket
from aurora.services.embeds import (
    build_log_embed,
    build_ticket_closing_embed,
    build_ticket_welcome_embed,
)
from aurora.services.log_sink import attempt, attempt_ok, send_log
from aurora.services.settings_service import get_settings, next_ticket_number, update_settings
from aurora.services.ticket_service import (
    add_participant,
    close_ticket_record,
    create_ticket_record,
    get_ticket,
    is_ticket_staff,
    list_due_deletions,
    mark_channel_deleted,
    remove_participant,
)

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)

TICKET_CATEGORY_NAME = "Tickets"
NOT_A_TICKET = "This channel is not an open ticket."
STAFF_ONLY = "Only ticket staff can do that."
TRANSCRIPT_FORBIDDEN = "(Transcript unavailable: I don't have permission to read this channel's history.)"

TicketOutcome = tuple[bool, str]


class TicketCreationError(Exception):
    """The ticket channel itself could not be created."""


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------
def build_ticket_overwrites(
    guild: discord.Guild,
    owner: discord.abc.Snowflake,
    bot_member: discord.abc.Snowflake,
    staff_role: discord.Role | None = None,
) -> dict:
    """Channel overwrites for a fresh ticket: private to owner, bot and staff."""
    overwrites = {
        guild.default_role: discord.PermissionOverwrite(view_channel=False),
        owner: discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            read_message_history=True,
            attach_files=True,
        ),
        bot_member: discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            manage_channels=True,
            read_message_history=True,
            manage_messages=True,
        ),
    }
    if staff_role is not None:
        overwrites[staff_role] = discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            read_message_history=True,
            attach_files=True,
        )
    return overwrites


async def find_or_create_ticket_category(
    bot: AuroraBot, guild: discord.Guild, settings: GuildSettings
) -> discord.CategoryChannel | None:
    """Resolve the ticket category, creating it if needed.  Never raises."""
    if settings.ticket_category_id:
        existing = guild.get_channel(settings.ticket_category_id)
        if isinstance(existing, discord.CategoryChannel):
            return existing

    category = discord.utils.find(
        lambda c: c.name.lower() == TICKET_CATEGORY_NAME.lower(), guild.categories
    )
    if category is None:
        category = await attempt(
            guild.create_category(TICKET_CATEGORY_NAME, reason="AuroraHud: ticket category"),
            action="create ticket category",
        )
    if category is not None:
        await run_db(update_settings, bot.engine, guild.id, ticket_category_id=category.id)
    return category


async def create_ticket(
    bot: AuroraBot,
    guild: discord.Guild,
    owner: discord.Member,
    reason: str | None = None,
) -> discord.TextChannel:
    """Open a ticket channel for *owner* and return it.

    Raises
    ------
    TicketCreationError
        If the bot's own member can't be resolved or Discord rejects the
        channel.  The ticket number is consumed either way.
    """
    settings = await run_db(get_settings, bot.engine, guild.id)
    category = await find_or_create_ticket_category(bot, guild, settings)
    number = await run_db(next_ticket_number, bot.engine, guild.id)

    bot_member = guild.me or (guild.get_member(bot.user.id) if bot.user else None)
    if bot_member is None:
        raise TicketCreationError("I couldn't resolve my own member in this server.")

    staff_role = guild.get_role(settings.ticket_staff_role_id) if settings.ticket_staff_role_id else None
    reason = clamp_text(reason.strip(), TICKET_REASON_MAX) if reason and reason.strip() else None

    try:
        channel = await guild.create_text_channel(
            name=f"ticket-{number:04d}",
            category=category,
            overwrites=build_ticket_overwrites(guild, owner, bot_member, staff_role),
            topic=f"Support ticket #{number:04d} for {owner} ({owner.id})",
            reason=f"AuroraHud: ticket opened by {owner}",
        )
    except discord.HTTPException as exc:
        logger.warning("Ticket channel creation failed in guild %d: %s", guild.id, exc)
        raise TicketCreationError("Discord rejected the ticket channel.") from exc

    await run_db(
        create_ticket_record,
        bot.engine,
        guild_id=guild.id,
        channel_id=channel.id,
        number=number,
        owner_id=owner.id,
        reason=reason,
    )

    mentions = owner.mention + (f" {staff_role.mention}" if staff_role else "")
    await attempt(
        channel.send(
            content=mentions,
            embed=build_ticket_welcome_embed(owner.id, number, reason),
            view=getattr(bot, "ticket_view", None),
            allowed_mentions=discord.AllowedMentions(everyone=False, users=True, roles=True),
        ),
        action=f"ticket #{number} welcome",
    )
    await send_log(bot, guild, build_log_embed(
        "\U0001f3ab Ticket Opened",
        reason,
        ticket=channel.mention,
        owner=owner.mention,
        number=f"#{number:04d}",
    ))
    return channel


# ---------------------------------------------------------------------------
# Closing & deletion
# ---------------------------------------------------------------------------
async def close_ticket(
    bot: AuroraBot,
    guild: discord.Guild,
    channel: discord.abc.GuildChannel,
    closed_by: discord.abc.User,
) -> tuple[bool, str | None]:
    """Close the ticket behind *channel* and schedule the channel's deletion."""
    delay = bot.cfg.ticket_delete_delay_seconds
    ok, reason = await run_db(
        close_ticket_record,
        bot.engine,
        guild_id=guild.id,
        channel_id=channel.id,
        closed_by=closed_by.id,
        delete_delay=timedelta(seconds=delay),
    )
    if not ok:
        return False, reason

    await attempt(channel.send(embed=build_ticket_closing_embed(delay)), action="ticket closing notice")
    await send_log(bot, guild, build_log_embed(
        "\U0001f512 Ticket Closed",
        ticket=f"#{channel.name}",
        closed_by=closed_by.mention,
    ))
    schedule_ticket_deletion(bot, channel.id, delay)
    return True, None


def schedule_ticket_deletion(bot: AuroraBot, channel_id: int, delay: float) -> asyncio.Task:
    """Delete the channel after *delay* seconds in a background task."""

    async def _later() -> None:
        await asyncio.sleep(delay)
        await delete_ticket_channel(bot, channel_id)

    task = asyncio.create_task(_later(), name=f"ticket-delete-{channel_id}")
    bot.pending_deletions.add(task)
    task.add_done_callback(bot.pending_deletions.discard)
    return task


async def delete_ticket_channel(bot: AuroraBot, channel_id: int) -> bool:
    """Delete a closed ticket's channel and mark it done.

    A channel that no longer exists counts as deleted.
    """
    try:
        channel = bot.get_channel(channel_id) or await bot.fetch_channel(channel_id)
        await channel.delete(reason="AuroraHud: ticket closed")
    except discord.NotFound:
        pass
    except discord.HTTPException as exc:
        logger.warning("Could not delete ticket channel %d: %s", channel_id, exc)
        return False
    await run_db(mark_channel_deleted, bot.engine, channel_id)
    logger.info("Deleted ticket channel %d", channel_id)
    return True


async def sweep_pending_deletions(bot: AuroraBot) -> int:
    """Delete every closed ticket channel whose deletion is overdue."""
    due = await run_db(list_due_deletions, bot.engine)
    deleted = 0
    for ticket in due:
        if await delete_ticket_channel(bot, ticket.channel_id):
            deleted += 1
    if due:
        logger.info("Deletion sweep: %d/%d overdue ticket channels removed", deleted, len(due))
    return deleted


# ---------------------------------------------------------------------------
# Access edits
# ---------------------------------------------------------------------------
async def grant_access(channel: discord.abc.GuildChannel, user: discord.abc.Snowflake) -> bool:
    return await attempt_ok(
        channel.set_permissions(
            user,
            view_channel=True,
            send_messages=True,
            read_message_history=True,
            attach_files=True,
            reason="AuroraHud: ticket access granted",
        ),
        action=f"grant ticket access to {user.id}",
    )


async def revoke_access(channel: discord.abc.GuildChannel, user: discord.abc.Snowflake) -> bool:
    return await attempt_ok(
        channel.set_permissions(user, overwrite=None, reason="AuroraHud: ticket access revoked"),
        action=f"revoke ticket access from {user.id}",
    )


async def _staff_context(
    bot: AuroraBot, guild: discord.Guild, channel_id: int, actor: discord.Member
) -> tuple[GuildSettings, Ticket | None, str | None]:
    """Load settings and the open ticket; the third item is a refusal reason."""
    settings = await run_db(get_settings, bot.engine, guild.id)
    ticket = await run_db(get_ticket, bot.engine, channel_id)
    if ticket is None or ticket.guild_id != guild.id or not ticket.is_open:
        return settings, None, NOT_A_TICKET
    if not is_ticket_staff(actor, settings):
        return settings, ticket, STAFF_ONLY
    return settings, ticket, None


async def _log_access(bot: AuroraBot, guild: discord.Guild, title: str, channel, actor, target) -> None:
    await send_log(bot, guild, build_log_embed(
        title, ticket=channel.mention, by=actor.mention, user=target.mention,
    ))


async def add_user(
    bot: AuroraBot, guild: discord.Guild, channel, actor: discord.Member, user: discord.Member
) -> TicketOutcome:
    _, ticket, refusal = await _staff_context(bot, guild, channel.id, actor)
    if refusal:
        return False, refusal
    await grant_access(channel, user)
    await run_db(add_participant, bot.engine, channel.id, user.id, ParticipantKind.ADDED)
    await _log_access(bot, guild, "➕ Ticket User Added", channel, actor, user)
    return True, f"Added {user.mention} to this ticket."


async def remove_user(
    bot: AuroraBot, guild: discord.Guild, channel, actor: discord.Member, user: discord.Member
) -> TicketOutcome:
    _, ticket, refusal = await _staff_context(bot, guild, channel.id, actor)
    if refusal:
        return False, refusal
    if user.id == ticket.owner_id:
        return False, "You can't remove the ticket owner."
    await revoke_access(channel, user)
    await run_db(
        remove_participant, bot.engine, channel.id, user.id,
        (ParticipantKind.ADDED, ParticipantKind.ASSIGNED),
    )
    await _log_access(bot, guild, "➖ Ticket User Removed", channel, actor, user)
    return True, f"Removed {user.mention} from this ticket."


async def claim(bot: AuroraBot, guild: discord.Guild, channel, actor: discord.Member) -> TicketOutcome:
    _, ticket, refusal = await _staff_context(bot, guild, channel.id, actor)
    if refusal:
        return False, refusal
    await grant_access(channel, actor)
    await run_db(add_participant, bot.engine, channel.id, actor.id, ParticipantKind.ASSIGNED)
    await _log_access(bot, guild, "\U0001f64b Ticket Claimed", channel, actor, actor)
    return True, f"{actor.mention} claimed this ticket."


async def assign(
    bot: AuroraBot, guild: discord.Guild, channel, actor: discord.Member, staff: discord.Member
) -> TicketOutcome:
    settings, ticket, refusal = await _staff_context(bot, guild, channel.id, actor)
    if refusal:
        return False, refusal
    if not is_ticket_staff(staff, settings):
        return False, f"{staff.mention} isn't ticket staff."
    await grant_access(channel, staff)
    await run_db(add_participant, bot.engine, channel.id, staff.id, ParticipantKind.ASSIGNED)
    await _log_access(bot, guild, "\U0001f4cc Ticket Assigned", channel, actor, staff)
    return True, f"Assigned {staff.mention} to this ticket."


async def unassign(
    bot: AuroraBot, guild: discord.Guild, channel, actor: discord.Member, staff: discord.Member
) -> TicketOutcome:
    _, ticket, refusal = await _staff_context(bot, guild, channel.id, actor)
    if refusal:
        return False, refusal
    if staff.id not in ticket.assigned_ids:
        return False, f"{staff.mention} isn't assigned to this ticket."
    updated = await run_db(
        remove_participant, bot.engine, channel.id, staff.id, (ParticipantKind.ASSIGNED,),
    )
    if staff.id != updated.owner_id and staff.id not in updated.added_ids:
        await revoke_access(channel, staff)
    await _log_access(bot, guild, "\U0001f4e4 Ticket Unassigned", channel, actor, staff)
    return True, f"Unassigned {staff.mention} from this ticket."


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------
def clamp_transcript_limit(limit: int) -> int:
    return max(TRANSCRIPT_MIN, min(TRANSCRIPT_MAX, limit))


async def build_transcript(channel: discord.abc.Messageable, limit: int = 50) -> str:
    """Render the channel's recent history oldest-first as plain text."""
    try:
        messages = [m async for m in channel.history(limit=clamp_transcript_limit(limit))]
    except discord.Forbidden:
        return TRANSCRIPT_FORBIDDEN

    lines: list[str] = []
    for m in sorted(messages, key=lambda m: m.created_at):
        lines.append(f"[{m.created_at.isoformat()}] {m.author}: {m.content}")
        for a in m.attachments[:TRANSCRIPT_ATTACHMENTS_MAX]:
            lines.append(f"    [attachment] {a.url}")
    return "\n".join(lines) or "(no messages)"


def transcript_file(text: str, number: int) -> discord.File:
    return discord.File(io.BytesIO(text.encode("utf-8")), filename=f"ticket-{number:04d}-transcript.txt")
