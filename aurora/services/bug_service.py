"""
aurora.services.bug_service — Bug Records & Status Machine
===========================================================

Database side of the bug tracker.  Discord work (the live board, update
announcements, input-channel ingestion) lives in
:mod:`aurora.services.bug_board`.

Status transitions are unrestricted: any status may be set from any other,
and :func:`reopen_bug` forces a bug back to ``OPEN``.  Unknown ids return
``None`` and create nothing.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from sqlalchemy import func, or_, select

from aurora.constants import (
    BUG_BOARD_SIZE,
    BUG_COMMENT_MAX,
    BUG_DESCRIPTION_MAX,
    BUG_LIST_SIZE,
    BUG_NOTE_MAX,
    BUG_TITLE_MAX,
    clamp_text,
)
from aurora.database.engine import get_session
from aurora.database.models import Bug, BugComment, BugStatus, utcnow
from aurora.services.settings_service import allocate_bug_id

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
DEFAULT_DESCRIPTION = "(no description)"


class _Keep(enum.Enum):
    KEEP = "keep"


#: Sentinel for "leave the assignee as it is".  ``None`` clears it.
KEEP = _Keep.KEEP


@dataclass(frozen=True)
class SourceRef:
    """The Discord message a bug was filed from."""

    channel_id: int
    message_id: int


def normalize_title(title: str | None) -> str:
    return clamp_text(str(title or "").strip() or DEFAULT_TITLE, BUG_TITLE_MAX)


def normalize_description(description: str | None) -> str:
    return clamp_text(str(description or "").strip() or DEFAULT_DESCRIPTION, BUG_DESCRIPTION_MAX)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_bug(engine, guild_id: int, bug_id: int) -> Bug | None:
    with get_session(engine) as session:
        return session.get(Bug, (guild_id, bug_id))


def list_recent_bugs(engine, guild_id: int, limit: int = BUG_LIST_SIZE) -> list[Bug]:
    """Newest bugs first (by id)."""
    with get_session(engine) as session:
        return list(session.scalars(
            select(Bug).where(Bug.guild_id == guild_id).order_by(Bug.id.desc()).limit(limit)
        ).all())


def search_bugs(engine, guild_id: int, query: str, limit: int = BUG_LIST_SIZE) -> list[Bug]:
    """Case-insensitive substring match on title and description."""
    term = query.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    needle = f"%{term}%"
    with get_session(engine) as session:
        return list(session.scalars(
            select(Bug)
            .where(Bug.guild_id == guild_id)
            .where(or_(
                func.lower(Bug.title).like(needle, escape="\\"),
                func.lower(Bug.description).like(needle, escape="\\"),
            ))
            .order_by(Bug.id.desc())
            .limit(limit)
        ).all())


def bug_counts(engine, guild_id: int) -> dict[str, int]:
    """``open`` counts every bug not yet RESOLVED."""
    with get_session(engine) as session:
        rows = session.execute(
            select(Bug.status, func.count().label("cnt"))
            .where(Bug.guild_id == guild_id)
            .group_by(Bug.status)
        ).all()
    by_status = {row.status: row.cnt for row in rows}
    total = sum(by_status.values())
    resolved = by_status.get(BugStatus.RESOLVED.value, 0)
    return {"open": total - resolved, "resolved": resolved, "total": total}


def board_snapshot(engine, guild_id: int) -> tuple[list[Bug], dict[str, int]]:
    """Everything the board renders: the newest bugs and the counters."""
    return list_recent_bugs(engine, guild_id, BUG_BOARD_SIZE), bug_counts(engine, guild_id)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def create_bug(
    engine,
    guild_id: int,
    reporter_id: int,
    title: str | None,
    description: str | None,
    source: SourceRef | None = None,
) -> Bug:
    """File a new bug with the next sequential id for the guild."""
    with get_session(engine) as session:
        bug_id = allocate_bug_id(session, guild_id)
        now = utcnow()
        bug = Bug(
            guild_id=guild_id,
            id=bug_id,
            reporter_id=reporter_id,
            title=normalize_title(title),
            description=normalize_description(description),
            status=BugStatus.OPEN.value,
            source_channel_id=source.channel_id if source else None,
            source_message_id=source.message_id if source else None,
            created_at=now,
            updated_at=now,
        )
        session.add(bug)
        session.flush()
        logger.info("Bug #%d filed in guild %d by %d", bug_id, guild_id, reporter_id)
        return bug


def attach_source(engine, guild_id: int, bug_id: int, source: SourceRef) -> Bug | None:
    with get_session(engine) as session:
        bug = session.get(Bug, (guild_id, bug_id))
        if bug is None:
            return None
        bug.source_channel_id = source.channel_id
        bug.source_message_id = source.message_id
        return bug


def set_bug_status(
    engine,
    guild_id: int,
    bug_id: int,
    status: BugStatus | str,
    assignee: int | None | _Keep = KEEP,
    note: str | None = None,
) -> Bug | None:
    """Set a bug's status.

    *assignee* is tri-state: :data:`KEEP` leaves it, an id sets it, ``None``
    clears it.  *note* replaces ``last_note`` only when non-empty.
    """
    status = BugStatus(status)
    with get_session(engine) as session:
        bug = session.get(Bug, (guild_id, bug_id))
        if bug is None:
            return None
        bug.status = status.value
        bug.updated_at = utcnow()
        if assignee is not KEEP:
            bug.assignee_id = assignee
        if note and note.strip():
            bug.last_note = clamp_text(note.strip(), BUG_NOTE_MAX)
        session.flush()
        logger.info("Bug #%d in guild %d → %s", bug_id, guild_id, status.value)
        return bug


def add_bug_comment(engine, guild_id: int, bug_id: int, author_id: int, text: str) -> Bug | None:
    with get_session(engine) as session:
        bug = session.get(Bug, (guild_id, bug_id))
        if bug is None:
            return None
        now = utcnow()
        bug.comments.append(BugComment(
            guild_id=guild_id,
            bug_id=bug_id,
            author_id=author_id,
            text=clamp_text(text.strip(), BUG_COMMENT_MAX),
            created_at=now,
        ))
        bug.updated_at = now
        session.flush()
        return bug


def reopen_bug(engine, guild_id: int, bug_id: int, note: str | None = None) -> Bug | None:
    """Force a bug back to ``OPEN`` from any status."""
    return set_bug_status(engine, guild_id, bug_id, BugStatus.OPEN, note=note)
