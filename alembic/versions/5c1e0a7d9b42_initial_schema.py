"""Initial schema: settings, progress, tickets, bugs, vouches, moderation

Revision ID: 5c1e0a7d9b42
Revises:
Create Date: 2026-10-19 10:12:41.118204

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c1e0a7d9b42'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "guild_settings",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("log_channel_id", sa.BigInteger, nullable=True),
        sa.Column("ticket_category_id", sa.BigInteger, nullable=True),
        sa.Column("ticket_staff_role_id", sa.BigInteger, nullable=True),
        sa.Column("ticket_counter", sa.Integer, nullable=False, server_default="0"),
        sa.Column("bug_input_channel_id", sa.BigInteger, nullable=True),
        sa.Column("bug_board_channel_id", sa.BigInteger, nullable=True),
        sa.Column("bug_updates_channel_id", sa.BigInteger, nullable=True),
        sa.Column("bug_board_message_id", sa.BigInteger, nullable=True),
        sa.Column("bug_counter", sa.Integer, nullable=False, server_default="0"),
        sa.Column("vouch_counter", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "user_progress",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("xp", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("level", sa.Integer, nullable=False, server_default="0"),
        sa.Column("balance", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("last_daily_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_user_progress_guild_level", "user_progress", ["guild_id", "level", "xp"])

    op.create_table(
        "tickets",
        sa.Column("channel_id", sa.BigInteger, primary_key=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("number", sa.Integer, nullable=False),
        sa.Column("owner_id", sa.BigInteger, nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="open"),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.BigInteger, nullable=True),
        sa.Column("delete_after", sa.DateTime(timezone=True), nullable=True),
        sa.Column("channel_deleted", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_tickets_guild_status", "tickets", ["guild_id", "status"])
    op.create_index("ix_tickets_pending_delete", "tickets", ["channel_deleted", "delete_after"])

    op.create_table(
        "ticket_participants",
        sa.Column(
            "channel_id", sa.BigInteger,
            sa.ForeignKey("tickets.channel_id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.BigInteger, primary_key=True),
        sa.Column("kind", sa.String(10), primary_key=True),
    )

    op.create_table(
        "bugs",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("reporter_id", sa.BigInteger, nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
        sa.Column("assignee_id", sa.BigInteger, nullable=True),
        sa.Column("last_note", sa.Text, nullable=True),
        sa.Column("source_channel_id", sa.BigInteger, nullable=True),
        sa.Column("source_message_id", sa.BigInteger, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bugs_guild_status", "bugs", ["guild_id", "status"])

    op.create_table(
        "bug_comments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("bug_id", sa.Integer, nullable=False),
        sa.Column("author_id", sa.BigInteger, nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["guild_id", "bug_id"], ["bugs.guild_id", "bugs.id"], ondelete="CASCADE",
        ),
    )
    op.create_index("ix_bug_comments_bug", "bug_comments", ["guild_id", "bug_id"])

    op.create_table(
        "vouches",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("voucher_id", sa.BigInteger, nullable=False),
        sa.Column("vouched_id", sa.BigInteger, nullable=False),
        sa.Column("message", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_vouches_guild_vouched", "vouches", ["guild_id", "vouched_id"])
    op.create_index("ix_vouches_guild_voucher", "vouches", ["guild_id", "voucher_id"])

    op.create_table(
        "moderation_actions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("action_type", sa.String(20), nullable=False),
        sa.Column("target_id", sa.BigInteger, nullable=True),
        sa.Column("moderator_id", sa.BigInteger, nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_mod_actions_guild_time", "moderation_actions", ["guild_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_mod_actions_guild_time", table_name="moderation_actions")
    op.drop_table("moderation_actions")
    op.drop_index("ix_vouches_guild_voucher", table_name="vouches")
    op.drop_index("ix_vouches_guild_vouched", table_name="vouches")
    op.drop_table("vouches")
    op.drop_index("ix_bug_comments_bug", table_name="bug_comments")
    op.drop_table("bug_comments")
    op.drop_index("ix_bugs_guild_status", table_name="bugs")
    op.drop_table("bugs")
    op.drop_table("ticket_participants")
    op.drop_index("ix_tickets_pending_delete", table_name="tickets")
    op.drop_index("ix_tickets_guild_status", table_name="tickets")
    op.drop_table("tickets")
    op.drop_index("ix_user_progress_guild_level", table_name="user_progress")
    op.drop_table("user_progress")
    op.drop_table("guild_settings")
