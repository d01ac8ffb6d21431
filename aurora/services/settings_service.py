"""
aurora.services.settings_service — Per-Guild Settings & Counters
=================================================================

Typed read/write access to the ``guild_settings`` table.  A row is created
with defaults the first time a guild is touched and is never deleted.

Counters (tickets, bugs, vouches) live on the same row so that allocating a
number is a single-row update.
"""

from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from aurora.database.engine import get_session
from aurora.database.models import GuildSettings

logger = logging.getLogger(__name__)

# Fields an admin command may patch.  Counters are owned by the allocators.
MUTABLE_FIELDS: frozenset[str] = frozenset({
    "log_channel_id",
    "ticket_category_id",
    "ticket_staff_role_id",
    "bug_input_channel_id",
    "bug_board_channel_id",
    "bug_updates_channel_id",
    "bug_board_message_id",
})


def get_or_create_settings(session: Session, guild_id: int) -> GuildSettings:
    """Fetch or insert the settings row inside an open session."""
    settings = session.get(GuildSettings, guild_id)
    if settings is None:
        settings = GuildSettings(
            guild_id=guild_id,
            ticket_counter=0,
            bug_counter=0,
            vouch_counter=0,
        )
        session.add(settings)
        session.flush()
        logger.info("Created default settings for guild %d", guild_id)
    return settings


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_settings(engine, guild_id: int) -> GuildSettings:
    """Return the guild's settings, creating the defaults on first access."""
    with get_session(engine) as session:
        return get_or_create_settings(session, guild_id)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def update_settings(engine, guild_id: int, **patch) -> GuildSettings:
    """Merge *patch* into the guild's settings and return the updated row.

    Raises
    ------
    KeyError
        If *patch* names a field that is not admin-editable.
    """
    unknown = set(patch) - MUTABLE_FIELDS
    if unknown:
        raise KeyError(f"Unknown settings field(s): {', '.join(sorted(unknown))}")

    with get_session(engine) as session:
        settings = get_or_create_settings(session, guild_id)
        for key, value in patch.items():
            setattr(settings, key, value)
        session.flush()
        logger.info("Updated settings for guild %d: %s", guild_id, sorted(patch))
        return settings


def _bump_counter(session: Session, guild_id: int, column) -> int:
    """Increment one counter column in SQL and return its new value.

    The increment happens in a single UPDATE so two concurrent allocations
    can never read the same value.
    """
    get_or_create_settings(session, guild_id)
    return session.execute(
        update(GuildSettings)
        .where(GuildSettings.guild_id == guild_id)
        .values({column: column + 1})
        .returning(column)
    ).scalar_one()


def next_ticket_number(engine, guild_id: int) -> int:
    """Allocate the next ticket number.

    Commits on its own: the number stays consumed even if creating the
    ticket channel fails afterwards.
    """
    with get_session(engine) as session:
        return _bump_counter(session, guild_id, GuildSettings.ticket_counter)


def allocate_bug_id(session: Session, guild_id: int) -> int:
    """Allocate the next bug id inside the caller's transaction."""
    return _bump_counter(session, guild_id, GuildSettings.bug_counter)


def allocate_vouch_id(session: Session, guild_id: int) -> int:
    """Allocate the next vouch id inside the caller's transaction."""
    return _bump_counter(session, guild_id, GuildSettings.vouch_counter)
