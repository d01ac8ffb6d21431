"""
aurora.bot.__main__ — Entry point for ``python -m aurora.bot``
==============================================================

Startup order:
1. Read secrets from ``.env`` (``DISCORD_TOKEN``, ``DATABASE_URL``).
2. Parse ``config.yaml`` (or ``$AURORA_CONFIG``).
3. Open the database and create any missing tables.
4. Build :class:`AuroraBot` and block on its event loop.

A missing token, config file, config key or database URL is fatal: the
process logs it and exits with status 1 before the bot is constructed.

Run with::

    python -m aurora.bot        # or the ``aurorahud`` console script
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from aurora.bot.core import AuroraBot
from aurora.config import AuroraConfig, load_config
from aurora.database.engine import create_db_engine, init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("aurora")

PLACEHOLDER_TOKEN = "your-discord-bot-token-here"


def _fatal(message: str, *args) -> None:
    logger.critical(message, *args)
    sys.exit(1)


def _read_token() -> str:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token or token == PLACEHOLDER_TOKEN:
        _fatal("DISCORD_TOKEN is missing.  Set it in .env (see .env.example).")
    return token


def _read_config() -> AuroraConfig:
    path = os.getenv("AURORA_CONFIG", "config.yaml")
    try:
        return load_config(path)
    except FileNotFoundError as exc:
        _fatal("%s", exc)
    except (KeyError, ValueError) as exc:
        _fatal("Invalid configuration in %s: %s", path, exc)


def main() -> None:
    """Bootstrap and run the AuroraHud bot."""
    load_dotenv()
    token = _read_token()

    cfg = _read_config()
    logger.info(
        "Config loaded: community=%s guild=%s message_content=%s",
        cfg.community_name, cfg.guild_id or "global", cfg.message_content_intent,
    )

    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        _fatal("%s", exc)
    init_db(engine)

    bot = AuroraBot(cfg=cfg, engine=engine)
    logger.info("Starting AuroraHud…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Interrupted; bot stopped.")


if __name__ == "__main__":
    main()
