"""
aurora.engine.leveling — XP Curve & Level Resolution
=====================================================

Pure calculation, no Discord I/O and no DB I/O.

- :func:`xp_for_next` — XP needed to clear *level* (``5L² + 50L + 100``).
- :func:`apply_xp` — add XP and roll over as many levels as it covers.
- :func:`roll_message_xp` — random per-message grant.
- :class:`XpCooldown` — per-member gate between XP grants.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass

MESSAGE_XP_MIN = 15
MESSAGE_XP_MAX = 25
XP_COOLDOWN_SECONDS = 60.0


def xp_for_next(level: int) -> int:
    """XP required to advance from *level* to ``level + 1``."""
    return 5 * level * level + 50 * level + 100


@dataclass(frozen=True)
class LevelResult:
    """Outcome of an XP grant."""

    xp: int
    level: int
    levels_gained: int = 0

    @property
    def leveled_up(self) -> bool:
        return self.levels_gained > 0


def apply_xp(xp: int, level: int, amount: int) -> LevelResult:
    """Add *amount* XP and resolve level-ups.

    The threshold of the current level is subtracted for as long as the
    balance still meets it, so one large grant may clear several levels.
    Post-condition: ``result.xp < xp_for_next(result.level)``.
    """
    xp += amount
    gained = 0
    while xp >= xp_for_next(level):
        xp -= xp_for_next(level)
        level += 1
        gained += 1
    return LevelResult(xp=xp, level=level, levels_gained=gained)


def roll_message_xp(rng: random.Random | None = None) -> int:
    """Random XP for one eligible message, inclusive of both bounds."""
    return (rng or random).randint(MESSAGE_XP_MIN, MESSAGE_XP_MAX)


class XpCooldown:
    """Per-(guild, user) cooldown between XP grants.

    The first message from a member is always eligible.  Checking an
    eligible key also arms the cooldown for it.
    """

    def __init__(self, seconds: float = XP_COOLDOWN_SECONDS, clock=time.monotonic) -> None:
        self.seconds = seconds
        self._clock = clock
        self._last: dict[tuple[int, int], float] = {}

    def try_acquire(self, guild_id: int, user_id: int) -> bool:
        now = self._clock()
        key = (guild_id, user_id)
        last = self._last.get(key)
        if last is not None and now - last < self.seconds:
            return False
        self._last[key] = now
        return True

    def prune(self) -> int:
        """Drop expired entries; returns how many were removed."""
        cutoff = self._clock() - self.seconds
        before = len(self._last)
        self._last = {k: v for k, v in self._last.items() if v > cutoff}
        return before - len(self._last)

    def __len__(self) -> int:
        return len(self._last)
