"""Shared app-command checks and interaction reply helpers."""

from __future__ import annotations

import logging

import discord
from discord import app_commands

from aurora.services.log_sink import attempt
from aurora.services.ticket_service import is_elevated

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "⚠️ Something went wrong while handling that. Please try again."
ELEVATED_ONLY = "\U0001f512 You need the Manage Server permission to do that."
GUILD_ONLY = "This only works inside a server."


def elevated_only():
    """Check: the invoking member has Manage Server."""
    async def predicate(interaction: discord.Interaction) -> bool:
        return is_elevated(interaction.user)
    return app_commands.check(predicate)


async def reply(
    interaction: discord.Interaction,
    content: str | None = None,
    *,
    ephemeral: bool = True,
    **kwargs,
) -> None:
    """Respond, or follow up if the interaction was already answered."""
    if interaction.response.is_done():
        send = interaction.followup.send(content, ephemeral=ephemeral, **kwargs)
    else:
        send = interaction.response.send_message(content, ephemeral=ephemeral, **kwargs)
    await attempt(send, action="interaction reply")


async def run_ticket_action(interaction: discord.Interaction, action) -> None:
    """Defer, await a ticket action, then report its ``(ok, message)`` outcome.

    Success is announced in the ticket channel; failures stay ephemeral.
    """
    await interaction.response.defer(ephemeral=True, thinking=True)
    ok, message = await action
    if not ok:
        await reply(interaction, f"❌ {message}")
        return
    await attempt(interaction.channel.send(f"✅ {message}"), action="ticket action notice")
    await reply(interaction, "✅ Done.")


async def report_failure(interaction: discord.Interaction, error: BaseException, where: str) -> None:
    """Log an unexpected error and give the user a generic reply."""
    logger.exception("Unhandled error in %s", where, exc_info=error)
    await reply(interaction, GENERIC_FAILURE)


def parse_bug_id(text: str | None) -> int | None:
    """Accept ``12`` or ``#12``."""
    value = (text or "").strip().lstrip("#")
    return int(value) if value.isdigit() else None
