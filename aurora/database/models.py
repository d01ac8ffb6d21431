"""
aurora.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- guild_settings      — Per-guild channel/role bindings and sequence counters
- user_progress       — Per-guild XP, level, coin balance, last daily claim
- tickets             — Support ticket channels (keyed by channel snowflake)
- ticket_participants — Added users and assigned staff per ticket
- bugs                — Bug reports with a status lifecycle
- bug_comments        — Ordered discussion thread per bug
- vouches             — Peer endorsements
- moderation_actions  — Append-only journal of kick/ban/purge

Every table is partitioned by ``guild_id``; nothing references another guild.
Timestamps are stamped in Python (UTC) so detached rows stay readable.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all AuroraHud ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TicketStatus(enum.StrEnum):
    """Tickets only ever move open → closed."""
    OPEN = "open"
    CLOSED = "closed"


class ParticipantKind(enum.StrEnum):
    """Why a user was granted access to a ticket channel."""
    ADDED = "added"
    ASSIGNED = "assigned"


class BugStatus(enum.StrEnum):
    """Bug lifecycle.  Any status may be set from any other."""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING = "WAITING"
    CANT_FIX = "CANT_FIX"
    CANT_REPRODUCE = "CANT_REPRODUCE"
    RESOLVED = "RESOLVED"


class ModerationActionType(enum.StrEnum):
    KICK = "kick"
    BAN = "ban"
    PURGE = "purge"


# ---------------------------------------------------------------------------
# GuildSettings — one row per guild, created lazily
# ---------------------------------------------------------------------------
class GuildSettings(Base):
    __tablename__ = "guild_settings"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    log_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)

    # Tickets
    ticket_category_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    ticket_staff_role_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    ticket_counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Bug tracker
    bug_input_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    bug_board_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    bug_updates_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    bug_board_message_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    bug_counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Vouches
    vouch_counter: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<GuildSettings guild={self.guild_id} tickets={self.ticket_counter}>"


# ---------------------------------------------------------------------------
# UserProgress — XP / level / coins per guild member
# ---------------------------------------------------------------------------
class UserProgress(Base):
    __tablename__ = "user_progress"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    xp: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    balance: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_daily_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_user_progress_guild_level", "guild_id", "level", "xp"),
    )

    def __repr__(self) -> str:
        return f"<UserProgress guild={self.guild_id} user={self.user_id} lvl={self.level}>"


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------
class Ticket(Base):
    """A private support channel.  The channel snowflake is the identity."""
    __tablename__ = "tickets"

    channel_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default=TicketStatus.OPEN.value)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    closed_by: Mapped[int | None] = mapped_column(BigInteger, default=None)

    # Durable pending-deletion marker (swept on startup and periodically)
    delete_after: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    channel_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    participants: Mapped[list[TicketParticipant]] = relationship(
        back_populates="ticket", cascade="all, delete-orphan", lazy="selectin",
    )

    __table_args__ = (
        Index("ix_tickets_guild_status", "guild_id", "status"),
        Index("ix_tickets_pending_delete", "channel_deleted", "delete_after"),
    )

    @property
    def is_open(self) -> bool:
        return self.status == TicketStatus.OPEN

    def user_ids(self, kind: ParticipantKind) -> set[int]:
        return {p.user_id for p in self.participants if p.kind == kind}

    @property
    def added_ids(self) -> set[int]:
        return self.user_ids(ParticipantKind.ADDED)

    @property
    def assigned_ids(self) -> set[int]:
        return self.user_ids(ParticipantKind.ASSIGNED)

    def __repr__(self) -> str:
        return f"<Ticket #{self.number} channel={self.channel_id} status={self.status}>"


class TicketParticipant(Base):
    __tablename__ = "ticket_participants"

    channel_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tickets.channel_id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    kind: Mapped[str] = mapped_column(String(10), primary_key=True)

    ticket: Mapped[Ticket] = relationship(back_populates="participants")

    def __repr__(self) -> str:
        return f"<TicketParticipant channel={self.channel_id} user={self.user_id} kind={self.kind}>"


# ---------------------------------------------------------------------------
# Bugs
# ---------------------------------------------------------------------------
class Bug(Base):
    """A tracked defect.  ``id`` is sequential per guild and never reused."""
    __tablename__ = "bugs"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    reporter_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=BugStatus.OPEN.value)
    assignee_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    last_note: Mapped[str | None] = mapped_column(Text, default=None)
    source_channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    source_message_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    comments: Mapped[list[BugComment]] = relationship(
        back_populates="bug",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BugComment.id",
    )

    __table_args__ = (
        Index("ix_bugs_guild_status", "guild_id", "status"),
    )

    @property
    def permalink(self) -> str | None:
        if self.source_channel_id and self.source_message_id:
            return (
                f"https://discord.com/channels/{self.guild_id}/"
                f"{self.source_channel_id}/{self.source_message_id}"
            )
        return None

    def __repr__(self) -> str:
        return f"<Bug guild={self.guild_id} id={self.id} status={self.status}>"


class BugComment(Base):
    __tablename__ = "bug_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    bug_id: Mapped[int] = mapped_column(Integer, nullable=False)
    author_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    bug: Mapped[Bug] = relationship(back_populates="comments")

    __table_args__ = (
        ForeignKeyConstraint(
            ["guild_id", "bug_id"], ["bugs.guild_id", "bugs.id"], ondelete="CASCADE",
        ),
        Index("ix_bug_comments_bug", "guild_id", "bug_id"),
    )

    def __repr__(self) -> str:
        return f"<BugComment bug={self.bug_id} author={self.author_id}>"


# ---------------------------------------------------------------------------
# Vouches — append-only with point deletion
# ---------------------------------------------------------------------------
class Vouch(Base):
    __tablename__ = "vouches"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    voucher_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vouched_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_vouches_guild_vouched", "guild_id", "vouched_id"),
        Index("ix_vouches_guild_voucher", "guild_id", "voucher_id"),
    )

    def __repr__(self) -> str:
        return f"<Vouch guild={self.guild_id} id={self.id} {self.voucher_id}→{self.vouched_id}>"


# ---------------------------------------------------------------------------
# ModerationAction — append-only journal
# ---------------------------------------------------------------------------
class ModerationAction(Base):
    __tablename__ = "moderation_actions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    target_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    moderator_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_mod_actions_guild_time", "guild_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ModerationAction id={self.id} type={self.action_type} target={self.target_id}>"
