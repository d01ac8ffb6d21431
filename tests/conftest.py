"""
tests/conftest.py — Shared Test Fixtures
=========================================

- ``db_engine`` — in-memory SQLite with every AuroraHud table.
- ``bot`` — a stand-in for :class:`AuroraBot` carrying the real engine and
  a plain config object; Discord objects are mocked per test.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from aurora.database.models import Base

GUILD_ID = 1001


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all AuroraHud tables.

    Uses StaticPool so every thread shares the same in-memory database
    (required by ``asyncio.to_thread`` inside ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def bot(db_engine: Engine) -> SimpleNamespace:
    """A lightweight bot: real engine, fake Discord client surface."""
    return SimpleNamespace(
        engine=db_engine,
        cfg=SimpleNamespace(
            community_name="Test Community",
            message_content_intent=True,
            members_intent=False,
            ticket_delete_delay_seconds=10,
        ),
        board_view=None,
        ticket_view=None,
        panel_view=None,
        pending_deletions=set(),
        board_locks={},
        user=SimpleNamespace(id=9999),
        get_channel=MagicMock(return_value=None),
        fetch_channel=AsyncMock(),
    )


# ---------------------------------------------------------------------------
# Discord object factories
# ---------------------------------------------------------------------------
def http_error(cls: type[discord.HTTPException] = discord.Forbidden, status: int = 403):
    """Build a discord.py HTTP error without a real response."""
    return cls(MagicMock(status=status, reason="Test"), "test error")


def make_text_channel(channel_id: int) -> MagicMock:
    """A mock text channel whose ``send`` returns a message with a fresh id."""
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = channel_id
    ch.name = f"channel-{channel_id}"
    ch.mention = f"<#{channel_id}>"
    counter = iter(range(channel_id * 100, channel_id * 100 + 1000))

    async def _send(*args, **kwargs):
        msg = MagicMock()
        msg.id = next(counter)
        msg.edit = AsyncMock(return_value=msg)
        msg.jump_url = f"https://discord.com/channels/{GUILD_ID}/{channel_id}/{msg.id}"
        return msg

    ch.send = AsyncMock(side_effect=_send)
    ch.fetch_message = AsyncMock(side_effect=http_error(discord.NotFound, 404))
    ch.set_permissions = AsyncMock()
    ch.delete = AsyncMock()
    return ch


def make_guild(channels: dict[int, object] | None = None, guild_id: int = GUILD_ID) -> MagicMock:
    channels = channels if channels is not None else {}
    guild = MagicMock(spec=discord.Guild)
    guild.id = guild_id
    guild.get_channel = MagicMock(side_effect=lambda cid: channels.get(cid))
    guild.fetch_channel = AsyncMock(side_effect=http_error(discord.NotFound, 404))
    return guild


class FakeMember:
    """Hashable member stand-in (usable as an overwrite key)."""

    def __init__(self, user_id: int, *, elevated: bool = False, role_ids: tuple[int, ...] = ()) -> None:
        self.id = user_id
        self.mention = f"<@{user_id}>"
        self.display_name = f"user{user_id}"
        self.bot = False
        self.guild_permissions = SimpleNamespace(manage_guild=elevated)
        self.roles = [SimpleNamespace(id=r) for r in role_ids]

    def __str__(self) -> str:
        return self.display_name


def make_member(user_id: int, *, elevated: bool = False, role_ids: tuple[int, ...] = ()) -> FakeMember:
    return FakeMember(user_id, elevated=elevated, role_ids=role_ids)
