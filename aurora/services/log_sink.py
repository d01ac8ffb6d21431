"""
aurora.services.log_sink — Best-Effort Side Effects & Log Channel
==================================================================

Secondary effects (log posts, board refreshes, reactions, welcome embeds)
must never block or fail the primary response.  Instead of wrapping every
call site in its own ``try``, they all go through :func:`attempt`, which is
the one place such failures are logged.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

import discord
from discord.abc import Messageable

from aurora.database.engine import run_db
from aurora.services.settings_service import get_settings

if TYPE_CHECKING:
    from aurora.bot.core import AuroraBot

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def attempt(awaitable: Awaitable[T], *, action: str) -> T | None:
    """Await *awaitable*; on failure log a warning and return ``None``."""
    try:
        return await awaitable
    except discord.HTTPException as exc:
        logger.warning("Best-effort %s failed: %s (status %s)", action, exc.text or exc, exc.status)
    except Exception:
        logger.exception("Best-effort %s failed", action)
    return None


async def _completed(awaitable: Awaitable[object]) -> bool:
    await awaitable
    return True


async def attempt_ok(awaitable: Awaitable[object], *, action: str) -> bool:
    """:func:`attempt` for calls that return nothing; ``True`` on success."""
    return bool(await attempt(_completed(awaitable), action=action))


async def resolve_text_channel(guild: discord.Guild, channel_id: int | None) -> Messageable | None:
    """Return the guild channel *channel_id* if it exists and accepts messages."""
    if not channel_id:
        return None
    channel = guild.get_channel(channel_id)
    if channel is None:
        channel = await attempt(guild.fetch_channel(channel_id), action=f"fetch channel {channel_id}")
    if isinstance(channel, Messageable):
        return channel
    return None


async def send_log(bot: AuroraBot, guild: discord.Guild, embed: discord.Embed) -> bool:
    """Post *embed* to the guild's log channel.  No-op when none is set."""
    settings = await run_db(get_settings, bot.engine, guild.id)
    channel = await resolve_text_channel(guild, settings.log_channel_id)
    if channel is None:
        return False
    sent = await attempt(
        channel.send(embed=embed, allowed_mentions=discord.AllowedMentions.none()),
        action=f"log post to {settings.log_channel_id}",
    )
    return sent is not None
