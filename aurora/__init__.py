"""
AuroraHud — Community Management Bot for Discord
=================================================
Support tickets, a bug tracker with a live board, peer vouches, and a small
XP/coin economy for a Discord community.

Package layout::

    aurora/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Limits, emoji, text helpers
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (settings, tickets, bugs, vouches, …)
    ├── engine/
    │   └── leveling.py    # XP curve, level resolution, XP cooldown
    ├── services/
    │   ├── settings_service.py  # Per-guild settings + counters
    │   ├── ticket_service.py    # Ticket records & access rules
    │   ├── ticket_channels.py   # Ticket channel lifecycle on Discord
    │   ├── bug_service.py       # Bug records & status machine
    │   ├── bug_board.py         # Board reconciliation, announcements, ingest
    │   ├── vouch_service.py     # Vouch ledger
    │   ├── economy_service.py   # XP, daily coins, transfers
    │   ├── moderation_service.py # Moderation action journal
    │   ├── log_sink.py          # Best-effort log channel posts
    │   └── embeds.py            # Embed builders
    └── bot/
        ├── core.py        # Bot subclass, cog loader, error boundary
        ├── checks.py      # Permission predicates
        ├── views.py       # Persistent buttons + modals
        └── cogs/          # Slash commands & listeners
"""

__version__ = "0.1.0"
