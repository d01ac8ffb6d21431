"""
aurora.services.economy_service — XP, Daily Coins & Transfers
==============================================================

Persistence side of the leveling engine and the coin economy.  All
functions take an ``engine`` and are meant to be called through
:func:`~aurora.database.engine.run_db`.

Outcomes are returned as small result objects; nothing here raises for a
cooldown, a bad amount, or insufficient funds.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from aurora.database.engine import get_session
from aurora.database.models import UserProgress, as_utc, utcnow
from aurora.engine.leveling import LevelResult, apply_xp

logger = logging.getLogger(__name__)

DAILY_COOLDOWN = timedelta(hours=24)
DAILY_REWARD_MIN = 250
DAILY_REWARD_MAX = 500


@dataclass(frozen=True)
class DailyResult:
    ok: bool
    reward: int = 0
    balance: int = 0
    remaining: timedelta = timedelta(0)


@dataclass(frozen=True)
class TransferResult:
    ok: bool
    reason: str | None = None
    from_balance: int = 0
    to_balance: int = 0


def get_or_create_progress(session: Session, guild_id: int, user_id: int) -> UserProgress:
    """Fetch or insert the progress row for a guild member."""
    progress = session.get(UserProgress, (guild_id, user_id))
    if progress is None:
        progress = UserProgress(guild_id=guild_id, user_id=user_id, xp=0, level=0, balance=0)
        session.add(progress)
        session.flush()
    return progress


def get_progress(engine, guild_id: int, user_id: int) -> UserProgress:
    with get_session(engine) as session:
        return get_or_create_progress(session, guild_id, user_id)


# ---------------------------------------------------------------------------
# XP
# ---------------------------------------------------------------------------
def add_xp(engine, guild_id: int, user_id: int, amount: int) -> LevelResult:
    """Grant *amount* XP to a member and persist any level-ups."""
    with get_session(engine) as session:
        progress = get_or_create_progress(session, guild_id, user_id)
        result = apply_xp(progress.xp, progress.level, amount)
        progress.xp = result.xp
        progress.level = result.level
        if result.leveled_up:
            logger.info(
                "User %d in guild %d reached level %d (+%d)",
                user_id, guild_id, result.level, result.levels_gained,
            )
        return result


def level_leaderboard(engine, guild_id: int, limit: int = 10) -> list[UserProgress]:
    """Top members by level, then XP within the level."""
    with get_session(engine) as session:
        return list(session.scalars(
            select(UserProgress)
            .where(UserProgress.guild_id == guild_id)
            .where((UserProgress.level > 0) | (UserProgress.xp > 0))
            .order_by(UserProgress.level.desc(), UserProgress.xp.desc())
            .limit(limit)
        ).all())


# ---------------------------------------------------------------------------
# Coins
# ---------------------------------------------------------------------------
def claim_daily(
    engine,
    guild_id: int,
    user_id: int,
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> DailyResult:
    """Claim the daily reward once per 24 hours."""
    now = now or utcnow()
    with get_session(engine) as session:
        progress = get_or_create_progress(session, guild_id, user_id)
        last = as_utc(progress.last_daily_at)
        if last is not None and now - last < DAILY_COOLDOWN:
            return DailyResult(
                ok=False,
                balance=progress.balance,
                remaining=DAILY_COOLDOWN - (now - last),
            )

        reward = (rng or random).randint(DAILY_REWARD_MIN, DAILY_REWARD_MAX)
        progress.balance += reward
        progress.last_daily_at = now
        return DailyResult(ok=True, reward=reward, balance=progress.balance)


def transfer_balance(engine, guild_id: int, from_id: int, to_id: int, amount: int) -> TransferResult:
    """Move *amount* coins between two members in one transaction.

    The debit is a guarded SQL UPDATE, so concurrent transfers from the
    same member can never spend the same coins twice.
    """
    if amount <= 0:
        return TransferResult(ok=False, reason="Amount must be greater than zero.")
    if from_id == to_id:
        return TransferResult(ok=False, reason="You can't pay yourself.")

    with get_session(engine) as session:
        get_or_create_progress(session, guild_id, from_id)
        get_or_create_progress(session, guild_id, to_id)
        debited = session.execute(
            update(UserProgress)
            .where(
                UserProgress.guild_id == guild_id,
                UserProgress.user_id == from_id,
                UserProgress.balance >= amount,
            )
            .values(balance=UserProgress.balance - amount)
            .returning(UserProgress.balance)
        ).first()
        if debited is None:
            return TransferResult(
                ok=False,
                reason="Insufficient funds.",
                from_balance=_balance(session, guild_id, from_id),
                to_balance=_balance(session, guild_id, to_id),
            )
        credited = session.execute(
            update(UserProgress)
            .where(UserProgress.guild_id == guild_id, UserProgress.user_id == to_id)
            .values(balance=UserProgress.balance + amount)
            .returning(UserProgress.balance)
        ).scalar_one()
        logger.info("Transfer in guild %d: %d → %d (%d coins)", guild_id, from_id, to_id, amount)
        return TransferResult(ok=True, from_balance=debited[0], to_balance=credited)


def _balance(session: Session, guild_id: int, user_id: int) -> int:
    return session.scalar(
        select(UserProgress.balance)
        .where(UserProgress.guild_id == guild_id, UserProgress.user_id == user_id)
    ) or 0
