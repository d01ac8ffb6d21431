"""
aurora.services.embeds — Discord embed builders
================================================

All embed construction lives here so services and cogs only supply data.
Builders are pure: the same inputs always produce the same embed, which is
what lets the bug board be re-rendered idempotently.
"""

from __future__ import annotations

from collections.abc import Sequence

import discord

from aurora.constants import (
    BUG_NOTE_MAX,
    RANK_BADGES,
    TICKET_REASON_MAX,
    VOUCH_MESSAGE_MAX,
    bug_status_emoji,
    clamp_text,
)
from aurora.database.models import Bug, BugStatus, GuildSettings, Ticket, UserProgress, Vouch, as_utc
from aurora.engine.leveling import xp_for_next


def _mention_or(value: int | None, placeholder: str, prefix: str = "<@") -> str:
    return f"{prefix}{value}>" if value else placeholder


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
def build_settings_embed(settings: GuildSettings, *, message_content: bool) -> discord.Embed:
    lines = [
        f"**Logs channel:** {_mention_or(settings.log_channel_id, '(not set)', '<#')}",
        f"**Ticket category:** {_mention_or(settings.ticket_category_id, '(auto)', '<#')}",
        f"**Ticket staff role:** {_mention_or(settings.ticket_staff_role_id, '(not set)', '<@&')}",
        f"**Tickets opened:** {settings.ticket_counter}",
        "",
        f"**Bug input channel:** {_mention_or(settings.bug_input_channel_id, '(not set)', '<#')}",
        f"**Bug board channel:** {_mention_or(settings.bug_board_channel_id, '(not set)', '<#')}",
        f"**Bug updates channel:** {_mention_or(settings.bug_updates_channel_id, '(board/input)', '<#')}",
        "",
        f"**Message content capture:** {'enabled' if message_content else 'disabled'}",
    ]
    return discord.Embed(
        title="⚙️ Server Settings",
        description="\n".join(lines),
        color=discord.Color.blurple(),
    )


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------
def build_ticket_welcome_embed(owner_id: int, number: int, reason: str | None) -> discord.Embed:
    lines = [f"**Owner:** <@{owner_id}>"]
    if reason:
        lines.append(f"**Reason:** {clamp_text(reason, TICKET_REASON_MAX)}")
    lines += [
        "",
        "A staff member will assist you soon.",
        "To close this ticket use `/ticket close` or the button below.",
    ]
    return discord.Embed(
        title=f"\U0001f3ab Support Ticket #{number:04d}",
        description="\n".join(lines),
        color=discord.Color.green(),
    )


def build_ticket_closing_embed(delay_seconds: int) -> discord.Embed:
    return discord.Embed(
        title="✅ Ticket Closed",
        description=f"This channel will be deleted in **{delay_seconds} seconds**.",
        color=discord.Color.greyple(),
    )


def build_ticket_info_embed(ticket: Ticket) -> discord.Embed:
    assigned = ", ".join(f"<@{uid}>" for uid in sorted(ticket.assigned_ids)) or "(none)"
    added = ", ".join(f"<@{uid}>" for uid in sorted(ticket.added_ids)) or "(none)"
    embed = discord.Embed(
        title=f"\U0001f3ab Ticket #{ticket.number:04d}",
        color=discord.Color.green() if ticket.is_open else discord.Color.greyple(),
    )
    embed.add_field(name="Owner", value=f"<@{ticket.owner_id}>", inline=True)
    embed.add_field(name="Status", value=ticket.status.upper(), inline=True)
    embed.add_field(name="Opened", value=discord.utils.format_dt(as_utc(ticket.created_at), "R"), inline=True)
    embed.add_field(name="Assigned staff", value=assigned, inline=False)
    embed.add_field(name="Added users", value=added, inline=False)
    if ticket.reason:
        embed.add_field(name="Reason", value=clamp_text(ticket.reason, 1024), inline=False)
    return embed


# ---------------------------------------------------------------------------
# Log sink events
# ---------------------------------------------------------------------------
def build_log_embed(title: str, description: str | None = None, **fields: str) -> discord.Embed:
    """Generic log-channel event: a title, optional text, inline fields."""
    embed = discord.Embed(
        title=title,
        description=description,
        color=discord.Color.dark_grey(),
        timestamp=discord.utils.utcnow(),
    )
    for name, value in fields.items():
        embed.add_field(name=name.replace("_", " ").title(), value=value, inline=True)
    return embed


# ---------------------------------------------------------------------------
# Bugs
# ---------------------------------------------------------------------------
def _bug_color(status: str) -> discord.Color:
    return {
        BugStatus.OPEN: discord.Color.red(),
        BugStatus.IN_PROGRESS: discord.Color.gold(),
        BugStatus.WAITING: discord.Color.blue(),
        BugStatus.CANT_FIX: discord.Color.dark_grey(),
        BugStatus.CANT_REPRODUCE: discord.Color.purple(),
        BugStatus.RESOLVED: discord.Color.green(),
    }.get(status, discord.Color.light_grey())


def build_bug_embed(bug: Bug, *, comments: int = 5) -> discord.Embed:
    """Detailed single-bug view (``/bug view``)."""
    lines = [
        f"**Title:** {bug.title}",
        f"**Reporter:** <@{bug.reporter_id}>",
        f"**Assigned:** {_mention_or(bug.assignee_id, '(none)')}",
        "",
        "**Description:**",
        bug.description,
    ]
    if bug.last_note:
        lines += ["", f"**Note:** {clamp_text(bug.last_note, BUG_NOTE_MAX)}"]
    lines += ["", f"**Link:** {bug.permalink}" if bug.permalink else "**Link:** (no source message)"]

    embed = discord.Embed(
        title=f"\U0001f41e Bug #{bug.id} — {bug_status_emoji(bug.status)} {bug.status}",
        description=clamp_text("\n".join(lines), 4096),
        color=_bug_color(bug.status),
        timestamp=as_utc(bug.updated_at),
    )
    recent = bug.comments[-comments:] if comments else []
    for c in recent:
        embed.add_field(
            name=f"\U0001f4ac {discord.utils.format_dt(as_utc(c.created_at), 'f')}",
            value=clamp_text(f"<@{c.author_id}>: {c.text}", 1024),
            inline=False,
        )
    if len(bug.comments) > len(recent):
        embed.set_footer(text=f"{len(bug.comments)} comments total")
    return embed


def build_bug_list_embed(title: str, bugs: Sequence[Bug]) -> discord.Embed:
    lines = [
        f"{bug_status_emoji(b.status)} **#{b.id}** {clamp_text(b.title, 60)} — **{b.status}**"
        + (f" — {b.permalink}" if b.permalink else "")
        for b in bugs
    ]
    return discord.Embed(
        title=title,
        description="\n".join(lines) or "*No bugs found.*",
        color=discord.Color.red(),
    )


def build_bug_board_embed(bugs: Sequence[Bug], counts: dict[str, int]) -> discord.Embed:
    """The live board: counters plus one card per recent bug.

    No timestamp: two renders of the same store state must be identical.
    """
    embed = discord.Embed(
        title="\U0001f41e Bug Board",
        description=(
            f"\U0001f7e5 **Open:** {counts.get('open', 0)}  •  "
            f"\U0001f7e9 **Resolved:** {counts.get('resolved', 0)}  •  "
            f"**Total:** {counts.get('total', 0)}"
        ),
        color=discord.Color.red() if counts.get("open") else discord.Color.green(),
    )
    if not bugs:
        embed.add_field(name="No bugs yet", value="Reports will show up here.", inline=False)
    for b in bugs:
        value_lines = [f"Status: **{b.status}**"]
        if b.assignee_id:
            value_lines.append(f"Assignee: <@{b.assignee_id}>")
        value_lines.append(b.permalink or "_no source link_")
        embed.add_field(
            name=clamp_text(f"{bug_status_emoji(b.status)} #{b.id} — {b.title}", 256),
            value="\n".join(value_lines),
            inline=False,
        )
    embed.set_footer(text="Use the buttons below to manage bugs.")
    return embed


def build_bug_update_embed(
    bug: Bug, actor_id: int, extra_text: str | None = None
) -> discord.Embed:
    lines = [
        f"**Status:** {bug_status_emoji(bug.status)} **{bug.status}**",
        f"**Updated by:** <@{actor_id}>",
    ]
    if bug.assignee_id:
        lines.append(f"**Assigned:** <@{bug.assignee_id}>")
    if extra_text:
        lines.append(clamp_text(extra_text, BUG_NOTE_MAX + 20))
    if bug.permalink:
        lines.append(f"**Bug Link:** {bug.permalink}")
    return discord.Embed(
        title=f"\U0001f41e Bug #{bug.id} Updated — {clamp_text(bug.title, 80)}",
        description="\n".join(lines),
        color=_bug_color(bug.status),
    )


def build_bug_report_embed(bug: Bug) -> discord.Embed:
    """Copy of a modal/command report posted into the input channel.

    Re-rendered whenever the bug changes, so it carries the current status.
    """
    lines = [
        bug.description,
        "",
        f"**Reporter:** <@{bug.reporter_id}>",
        f"**Status:** {bug_status_emoji(bug.status)} **{bug.status}**",
    ]
    if bug.assignee_id:
        lines.append(f"**Assignee:** <@{bug.assignee_id}>")
    return discord.Embed(
        title=f"\U0001f41e Bug #{bug.id} — {bug.title}",
        description=clamp_text("\n".join(lines), 4096),
        color=_bug_color(bug.status),
    )


# ---------------------------------------------------------------------------
# Vouches
# ---------------------------------------------------------------------------
def _vouch_lines(vouches: Sequence[Vouch]) -> list[str]:
    if not vouches:
        return ["*No vouches yet.*"]
    return [
        f"**{i}.** `#{v.id}` <@{v.voucher_id}> — "
        + (clamp_text(v.message, 120) if v.message else "*no message*")
        for i, v in enumerate(vouches, start=1)
    ]


def build_new_vouch_embed(vouch: Vouch, total_received: int) -> discord.Embed:
    return discord.Embed(
        title="\U0001f91d New Vouch",
        description="\n".join([
            f"**From:** <@{vouch.voucher_id}>",
            f"**To:** <@{vouch.vouched_id}>",
            f"**Message:** {clamp_text(vouch.message, VOUCH_MESSAGE_MAX)}" if vouch.message else "**Message:** (none)",
            "",
            f"⭐ **Total vouches for <@{vouch.vouched_id}>:** {total_received}",
            f"*Vouch ID:* `#{vouch.id}`",
        ]),
        color=discord.Color.teal(),
    )


def build_vouch_profile_embed(
    user_id: int, received: Sequence[Vouch], given_count: int, *, latest: int = 10
) -> discord.Embed:
    return discord.Embed(
        title="\U0001f4cc Vouch Profile",
        description="\n".join([
            f"**User:** <@{user_id}>",
            f"**Received:** {len(received)}",
            f"**Given:** {given_count}",
            "",
            f"**Latest (up to {latest}):**",
            *_vouch_lines(received[:latest]),
        ]),
        color=discord.Color.teal(),
    )


def build_top_vouches_embed(rows: Sequence[tuple[int, int]]) -> discord.Embed:
    lines = []
    for i, (user_id, count) in enumerate(rows):
        badge = RANK_BADGES[i] if i < len(RANK_BADGES) else f"**{i + 1}.**"
        lines.append(f"{badge} <@{user_id}> — **{count}** vouch{'es' if count != 1 else ''}")
    return discord.Embed(
        title="\U0001f3c6 Top Vouched",
        description="\n".join(lines) or "*No vouches yet.*",
        color=discord.Color.gold(),
    )


# ---------------------------------------------------------------------------
# Economy & levels
# ---------------------------------------------------------------------------
def build_rank_embed(user_id: int, progress: UserProgress) -> discord.Embed:
    embed = discord.Embed(title="\U0001f3c5 Rank", color=discord.Color.blurple())
    embed.description = "\n".join([
        f"**User:** <@{user_id}>",
        f"**Level:** {progress.level}",
        f"**XP:** {progress.xp} / {xp_for_next(progress.level)}",
    ])
    return embed


def build_level_up_embed(user_id: int, level: int) -> discord.Embed:
    return discord.Embed(
        title="\U0001f389 Level Up!",
        description=f"<@{user_id}> reached **Level {level}**!",
        color=discord.Color.gold(),
    )


def build_leaderboard_embed(rows: Sequence[UserProgress]) -> discord.Embed:
    lines = []
    for i, r in enumerate(rows):
        badge = RANK_BADGES[i] if i < len(RANK_BADGES) else f"**{i + 1}.**"
        lines.append(f"{badge} <@{r.user_id}> — **Lv {r.level}** (XP {r.xp})")
    return discord.Embed(
        title="\U0001f3c6 Leaderboard",
        description="\n".join(lines) or "*No leaderboard data yet.*",
        color=discord.Color.gold(),
    )


def build_daily_embed(reward: int, balance: int) -> discord.Embed:
    return discord.Embed(
        title="\U0001f4b0 Daily Claimed",
        description=f"You received **{reward}** coins.\nNew balance: **{balance}**",
        color=discord.Color.green(),
    )


def build_balance_embed(user_id: int, balance: int) -> discord.Embed:
    return discord.Embed(
        title="\U0001f4b3 Balance",
        description=f"**User:** <@{user_id}>\n**Coins:** {balance}",
        color=discord.Color.green(),
    )


# ---------------------------------------------------------------------------
# Panel
# ---------------------------------------------------------------------------
def build_support_panel_embed(community_name: str) -> discord.Embed:
    return discord.Embed(
        title=f"\U0001f30c {community_name} Support Panel",
        description="\n".join([
            "Use the buttons below to get help or report a problem.",
            "",
            "\U0001f3ab **Create Ticket** — private support channel",
            "\U0001f41e **Report Bug** — file a bug report",
            "\U0001f4cb **Bug Board** — jump to the live bug board",
            "\U0001f4cc **My Vouches** — your vouch stats",
            "\U0001f3c6 **Top Vouches** — most vouched members",
            "",
            "Public commands: `/vouch @user message`, `/checkvouch @user`",
        ]),
        color=discord.Color.blurple(),
    )

