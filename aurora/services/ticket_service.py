"""
aurora.services.ticket_service — Ticket Records & Access Rules
===============================================================

Database side of the ticket workflow.  Channel work (creating the channel,
editing overwrites, deleting it later) lives in
:mod:`aurora.services.ticket_channels`; this module only owns the rows and
the permission predicates both layers share.

Not-found and wrong-state outcomes are signalled with ``None`` or an
``(ok, reason)`` tuple, never with exceptions.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select

from aurora.database.engine import get_session
from aurora.database.models import (
    GuildSettings,
    ParticipantKind,
    Ticket,
    TicketParticipant,
    TicketStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Access rules (pure)
# ---------------------------------------------------------------------------
def is_elevated(member) -> bool:
    """True if *member* holds the guild-wide Manage Server permission."""
    perms = getattr(member, "guild_permissions", None)
    return bool(perms and perms.manage_guild)


def has_staff_role(member, settings: GuildSettings) -> bool:
    role_id = settings.ticket_staff_role_id
    if not role_id:
        return False
    return any(role.id == role_id for role in getattr(member, "roles", []))


def is_ticket_staff(member, settings: GuildSettings) -> bool:
    """Staff for ticket purposes: elevated, or holding the staff role."""
    return is_elevated(member) or has_staff_role(member, settings)


def can_manage_ticket(member, ticket: Ticket, settings: GuildSettings) -> bool:
    """Gate for close and transcript: staff, the owner, or assigned staff."""
    if is_ticket_staff(member, settings):
        return True
    return member.id == ticket.owner_id or member.id in ticket.assigned_ids


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_ticket(engine, channel_id: int) -> Ticket | None:
    with get_session(engine) as session:
        return session.get(Ticket, channel_id)


def list_due_deletions(engine, *, now: datetime | None = None) -> list[Ticket]:
    """Closed tickets whose channel deletion is due and not yet confirmed."""
    now = now or utcnow()
    with get_session(engine) as session:
        return list(session.scalars(
            select(Ticket)
            .where(
                Ticket.status == TicketStatus.CLOSED.value,
                Ticket.channel_deleted.is_(False),
                Ticket.delete_after.is_not(None),
                Ticket.delete_after <= now,
            )
            .order_by(Ticket.delete_after)
        ).all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def create_ticket_record(
    engine,
    *,
    guild_id: int,
    channel_id: int,
    number: int,
    owner_id: int,
    reason: str | None = None,
) -> Ticket:
    with get_session(engine) as session:
        ticket = Ticket(
            channel_id=channel_id,
            guild_id=guild_id,
            number=number,
            owner_id=owner_id,
            status=TicketStatus.OPEN.value,
            reason=reason or None,
            channel_deleted=False,
        )
        session.add(ticket)
        session.flush()
        logger.info("Ticket #%d opened in guild %d (channel %d)", number, guild_id, channel_id)
        return ticket


def close_ticket_record(
    engine,
    *,
    guild_id: int,
    channel_id: int,
    closed_by: int,
    delete_delay: timedelta,
    now: datetime | None = None,
) -> tuple[bool, str | None]:
    """Mark an open ticket closed and stamp its pending deletion time.

    Returns ``(False, reason)`` without touching anything when the channel
    is not an open ticket of *guild_id*.
    """
    now = now or utcnow()
    with get_session(engine) as session:
        ticket = session.get(Ticket, channel_id)
        if ticket is None or ticket.guild_id != guild_id or not ticket.is_open:
            return False, "This channel is not an open ticket."
        ticket.status = TicketStatus.CLOSED.value
        ticket.closed_at = now
        ticket.closed_by = closed_by
        ticket.delete_after = now + delete_delay
        logger.info("Ticket #%d closed by %d in guild %d", ticket.number, closed_by, guild_id)
        return True, None


def mark_channel_deleted(engine, channel_id: int) -> None:
    with get_session(engine) as session:
        ticket = session.get(Ticket, channel_id)
        if ticket is not None:
            ticket.channel_deleted = True


def _participant(session, channel_id: int, user_id: int, kind: ParticipantKind):
    return session.get(TicketParticipant, (channel_id, user_id, kind.value))


def add_participant(engine, channel_id: int, user_id: int, kind: ParticipantKind) -> Ticket | None:
    """Add *user_id* to the ticket's added or assigned set (idempotent)."""
    with get_session(engine) as session:
        ticket = session.get(Ticket, channel_id)
        if ticket is None:
            return None
        if _participant(session, channel_id, user_id, kind) is None:
            ticket.participants.append(
                TicketParticipant(channel_id=channel_id, user_id=user_id, kind=kind.value)
            )
        session.flush()
        return ticket


def remove_participant(
    engine, channel_id: int, user_id: int, kinds: tuple[ParticipantKind, ...]
) -> Ticket | None:
    """Drop *user_id* from each of the given participant sets."""
    with get_session(engine) as session:
        ticket = session.get(Ticket, channel_id)
        if ticket is None:
            return None
        wanted = {k.value for k in kinds}
        for p in list(ticket.participants):
            if p.user_id == user_id and p.kind in wanted:
                ticket.participants.remove(p)
        session.flush()
        return ticket
