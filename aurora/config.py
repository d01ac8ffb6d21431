"""
aurora.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for the bot's soft settings: identity, which guild to
sync slash commands to, and which privileged intents the deployment has
enabled in the Developer Portal.  Secrets (the bot token, the database URL)
stay in ``.env``.

Per-guild settings (log channel, ticket category, bug channels, …) are *not*
here — they live in the ``guild_settings`` table and are edited with slash
commands.

Usage::

    from aurora.config import load_config

    cfg = load_config()               # reads ./config.yaml by default
    print(cfg.community_name)         # "AuroraHud"
    print(cfg.message_content_intent) # False
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True, slots=True)
class AuroraConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # Discord
    bot_prefix: str
    guild_id: int | None = None  # Restrict slash-command sync to one guild

    # Privileged intents (must match the Developer Portal toggles)
    message_content_intent: bool = False
    members_intent: bool = False

    # Tickets
    ticket_delete_delay_seconds: int = 10


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_config(path: str | Path = "config.yaml") -> AuroraConfig:
    """Read *path* and return an :class:`AuroraConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return AuroraConfig(
        community_name=raw["community_name"],
        bot_prefix=raw.get("bot_prefix", "!"),
        guild_id=int(raw["guild_id"]) if raw.get("guild_id") else None,
        message_content_intent=_as_bool(raw.get("message_content_intent", False)),
        members_intent=_as_bool(raw.get("members_intent", False)),
        ticket_delete_delay_seconds=int(raw.get("ticket_delete_delay_seconds", 10)),
    )
