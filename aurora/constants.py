"""
aurora.constants — Shared Constants & Helpers
==============================================

Single source of truth for text limits, status emoji and small text helpers.
Import from here instead of duplicating in cogs and services.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Text limits
# ---------------------------------------------------------------------------
BUG_TITLE_MAX = 100
BUG_DESCRIPTION_MAX = 900
BUG_COMMENT_MAX = 900
BUG_NOTE_MAX = 900
VOUCH_MESSAGE_MAX = 900
TICKET_REASON_MAX = 900

BUG_BOARD_SIZE = 20
BUG_LIST_SIZE = 10

TRANSCRIPT_MIN = 10
TRANSCRIPT_MAX = 200
TRANSCRIPT_ATTACHMENTS_MAX = 10

PURGE_MIN = 1
PURGE_MAX = 100

ELLIPSIS = "…"

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
BUG_STATUS_EMOJI: dict[str, str] = {
    "OPEN": "\U0001f7e5",            # 🟥
    "IN_PROGRESS": "\U0001f7e8",     # 🟨
    "WAITING": "\U0001f7e6",         # 🟦
    "CANT_FIX": "\u2b1b",            # ⬛
    "CANT_REPRODUCE": "\U0001f7ea",  # 🟪
    "RESOLVED": "\U0001f7e9",        # 🟩
}
UNKNOWN_STATUS_EMOJI = "\u2754"  # ❔

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

ACK_EMOJI = "\u2705"  # ✅


def bug_status_emoji(status: str) -> str:
    return BUG_STATUS_EMOJI.get(str(status), UNKNOWN_STATUS_EMOJI)


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------
def clamp_text(text: str | None, limit: int) -> str:
    """Truncate *text* to at most *limit* characters, ending in an ellipsis."""
    s = str(text or "")
    if len(s) <= limit:
        return s
    return s[: limit - 1] + ELLIPSIS


def message_link(guild_id: int, channel_id: int, message_id: int) -> str:
    """Build a Discord permalink to a message."""
    return f"https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"


def format_duration(seconds: float) -> str:
    """Render a duration as ``"3h 2m 1s"`` (hours/minutes only when non-zero)."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


_USER_REF_RE = re.compile(r"^(?:<@!?)?(\d{15,21})>?$")


def parse_user_id(text: str | None) -> int | None:
    """Extract a user snowflake from a raw id or a ``<@id>`` mention."""
    if not text:
        return None
    match = _USER_REF_RE.match(text.strip())
    return int(match.group(1)) if match else None
