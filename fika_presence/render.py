from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from .config import Config
from .models import (
    ACTIVITY_HIDEOUT,
    ACTIVITY_IN_RAID,
    ACTIVITY_MENU,
    ACTIVITY_STASH,
    ACTIVITY_TRADER,
    BLANK_FIELD_NAME,
    OUT_OF_WORLD_LOCATIONS,
    CategorizedRoster,
    OnlinePlayer,
    PresenceEntry,
    ReportDocument,
    WeeklyBoss,
)

FOOTER_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

ACTIVITY_ICONS = {
    ACTIVITY_HIDEOUT: "🏠",
    ACTIVITY_MENU: "📋",
    ACTIVITY_STASH: "🧰",
    ACTIVITY_TRADER: "🛒",
}
GENERIC_ACTIVITY_ICON = "🧩"
HIDEOUT_LINE = "🏠 Hideout"
MENU_LINE = "📋 Menu"


def format_since(started_ts: int, now: Optional[datetime] = None) -> str:
    """Humanize the time elapsed since a unix timestamp.

    Returns an empty string for unknown (non-positive), future or
    unrepresentable timestamps so the caller can simply omit the segment.
    """
    if started_ts <= 0:
        return ""
    try:
        started = datetime.fromtimestamp(started_ts)
        seconds = ((now or datetime.now()) - started).total_seconds()
    except (OverflowError, OSError, ValueError):
        return ""
    if seconds < 0:
        return ""
    minutes = int(seconds // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m"
    hours, rem = divmod(minutes, 60)
    return f"{hours}h{rem:02d}m"


def _presence_for(
    presence: Mapping[str, PresenceEntry], player: OnlinePlayer
) -> Optional[PresenceEntry]:
    if not player.nickname:
        return None
    return presence.get(player.nickname)


def is_in_raid(player: OnlinePlayer, presence: Mapping[str, PresenceEntry]) -> bool:
    entry = _presence_for(presence, player)
    if entry is not None:
        return entry.activity == ACTIVITY_IN_RAID
    return player.location_id not in OUT_OF_WORLD_LOCATIONS


def categorize_players(
    players: Iterable[OnlinePlayer], presence: Mapping[str, PresenceEntry]
) -> CategorizedRoster:
    roster = CategorizedRoster()
    for player in players:
        if is_in_raid(player, presence):
            roster.in_raid.append(player)
        else:
            roster.other.append(player)
    roster.in_raid.sort(key=lambda p: p.nickname.casefold())
    roster.other.sort(key=lambda p: p.nickname.casefold())
    return roster


def location_name(config: Config, location_id: int) -> str:
    return config.location_names.get(str(location_id), f"Unknown({location_id})")


def boss_text(config: Config, boss: WeeklyBoss) -> str:
    boss_label = config.boss_names.get(boss.boss_id, boss.boss_id)
    if not boss.map_id:
        return f"**{boss_label}**"
    map_label = config.map_names_log.get(boss.map_id, boss.map_id)
    return f"**{boss_label}** on **{map_label}**"


def in_raid_line(
    config: Config,
    player: OnlinePlayer,
    entry: Optional[PresenceEntry],
    now: Optional[datetime] = None,
) -> str:
    map_name = location_name(config, player.location_id)
    icon = config.map_emoji.get(map_name, config.icons.default_map)
    extra = ""
    if entry is not None:
        parts: List[str] = []
        if entry.activity == ACTIVITY_IN_RAID and entry.side is not None:
            parts.append(config.side_names.get(str(entry.side), "Unknown"))
        since = format_since(entry.activity_started_timestamp, now)
        if since:
            parts.append(since)
        if parts:
            extra = f" — _{' · '.join(parts)}_"
    return f"• **{player.nickname}** — {icon} {map_name}{extra}"


def other_line(
    config: Config,
    player: OnlinePlayer,
    entry: Optional[PresenceEntry],
    now: Optional[datetime] = None,
) -> str:
    if entry is None:
        if location_name(config, player.location_id) == "Hideout":
            detail = HIDEOUT_LINE
        else:
            detail = MENU_LINE
        return f"• **{player.nickname}** — {detail}"

    label = config.activity_names.get(str(entry.activity), f"Activity({entry.activity})")
    icon = ACTIVITY_ICONS.get(entry.activity, GENERIC_ACTIVITY_ICON)
    since = format_since(entry.activity_started_timestamp, now)
    detail = f"{label} · {since}" if since else label
    return f"• **{player.nickname}** — {icon} {detail}"


def render_report(
    config: Config,
    players: List[OnlinePlayer],
    presence: Mapping[str, PresenceEntry],
    weekly_boss: Optional[WeeklyBoss],
    now: Optional[datetime] = None,
) -> ReportDocument:
    now = now or datetime.now()
    text = config.text
    document = ReportDocument(title=text.title, color=config.embed_color)

    if weekly_boss is not None and weekly_boss.boss_id:
        document.add_section(text.boss_title, boss_text(config, weekly_boss))

    if not players:
        document.add_section(BLANK_FIELD_NAME, text.no_online_description)
    else:
        roster = categorize_players(players, presence)
        if roster.in_raid:
            value = "\n".join(
                in_raid_line(config, p, _presence_for(presence, p), now)
                for p in roster.in_raid
            )
        else:
            value = text.in_raid_empty
        document.add_section(text.in_raid_title, value)

        if roster.other:
            value = "\n".join(
                other_line(config, p, _presence_for(presence, p), now)
                for p in roster.other
            )
        else:
            value = text.out_of_raid_empty
        document.add_section(text.out_of_raid_title, value)

        summary = text.summary.format(
            online=len(players),
            in_raid=len(roster.in_raid),
            other=len(roster.other),
        )
        document.add_section(BLANK_FIELD_NAME, summary)

    document.footer = f"{text.footer_prefix} {now.strftime(FOOTER_TIME_FORMAT)}"
    return document
