"""Journal of moderation actions (kick, ban, purge)."""

from __future__ import annotations

import logging

from sqlalchemy import select

from aurora.database.engine import get_session
from aurora.database.models import ModerationAction, ModerationActionType

logger = logging.getLogger(__name__)


def record_moderation_action(
    engine,
    guild_id: int,
    action_type: ModerationActionType,
    moderator_id: int,
    target_id: int | None = None,
    reason: str | None = None,
) -> ModerationAction:
    with get_session(engine) as session:
        action = ModerationAction(
            guild_id=guild_id,
            action_type=ModerationActionType(action_type).value,
            target_id=target_id,
            moderator_id=moderator_id,
            reason=reason or None,
        )
        session.add(action)
        session.flush()
        logger.info(
            "Moderation %s in guild %d by %d (target %s)",
            action.action_type, guild_id, moderator_id, target_id,
        )
        return action


def recent_actions(engine, guild_id: int, limit: int = 20) -> list[ModerationAction]:
    with get_session(engine) as session:
        return list(session.scalars(
            select(ModerationAction)
            .where(ModerationAction.guild_id == guild_id)
            .order_by(ModerationAction.id.desc())
            .limit(limit)
        ).all())
