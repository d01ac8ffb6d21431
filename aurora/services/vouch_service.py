"""
aurora.services.vouch_service — Vouch Ledger
=============================================

Append-only peer endorsements with point deletion by id.  The same
voucher may vouch for the same member any number of times; the count is
the reputation signal.

Self-vouching and vouching bots are refused by the ``/vouch`` command, not
here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, func, select

from aurora.constants import VOUCH_MESSAGE_MAX, clamp_text
from aurora.database.engine import get_session
from aurora.database.models import Vouch
from aurora.services.settings_service import allocate_vouch_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VouchStats:
    received: list[Vouch] = field(default_factory=list)
    given: list[Vouch] = field(default_factory=list)


def add_vouch(engine, guild_id: int, voucher_id: int, vouched_id: int, message: str | None = None) -> Vouch:
    with get_session(engine) as session:
        vouch = Vouch(
            guild_id=guild_id,
            id=allocate_vouch_id(session, guild_id),
            voucher_id=voucher_id,
            vouched_id=vouched_id,
            message=clamp_text((message or "").strip(), VOUCH_MESSAGE_MAX),
        )
        session.add(vouch)
        session.flush()
        logger.info("Vouch #%d in guild %d: %d → %d", vouch.id, guild_id, voucher_id, vouched_id)
        return vouch


def count_received(engine, guild_id: int, user_id: int) -> int:
    with get_session(engine) as session:
        return session.scalar(
            select(func.count()).select_from(Vouch)
            .where(Vouch.guild_id == guild_id, Vouch.vouched_id == user_id)
        ) or 0


def remove_vouch_by_id(
    engine, guild_id: int, vouch_id: int, actor_id: int, elevated: bool = False
) -> tuple[bool, str]:
    """Delete a vouch.  Only its voucher or an elevated member may."""
    with get_session(engine) as session:
        vouch = session.get(Vouch, (guild_id, vouch_id))
        if vouch is None:
            return False, f"Vouch `#{vouch_id}` not found."
        if vouch.voucher_id != actor_id and not elevated:
            return False, "You can only remove vouches you gave."
        session.execute(delete(Vouch).where(Vouch.guild_id == guild_id, Vouch.id == vouch_id))
        logger.info("Vouch #%d in guild %d removed by %d", vouch_id, guild_id, actor_id)
        return True, f"Removed vouch `#{vouch_id}`."


def get_vouch_stats(engine, guild_id: int, user_id: int) -> VouchStats:
    """Vouches *user_id* received and gave, newest first."""
    with get_session(engine) as session:
        def _query(column):
            return list(session.scalars(
                select(Vouch)
                .where(Vouch.guild_id == guild_id, column == user_id)
                .order_by(Vouch.id.desc())
            ).all())

        return VouchStats(received=_query(Vouch.vouched_id), given=_query(Vouch.voucher_id))


def top_vouched(engine, guild_id: int, limit: int = 10) -> list[tuple[int, int]]:
    """``(user_id, count)`` pairs by count descending.

    Ties go to whoever reached the count first (lowest latest-vouch id).
    """
    with get_session(engine) as session:
        total = func.count(Vouch.id).label("total")
        rows = session.execute(
            select(Vouch.vouched_id, total)
            .where(Vouch.guild_id == guild_id)
            .group_by(Vouch.vouched_id)
            .order_by(total.desc(), func.max(Vouch.id).asc())
            .limit(limit)
        ).all()
    return [(row.vouched_id, row.total) for row in rows]
