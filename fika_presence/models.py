from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

import discord

ACTIVITY_MENU = 0
ACTIVITY_IN_RAID = 1
ACTIVITY_STASH = 2
ACTIVITY_HIDEOUT = 3
ACTIVITY_TRADER = 4

LOCATION_MENU = 0
LOCATION_HIDEOUT = 1
OUT_OF_WORLD_LOCATIONS = (LOCATION_MENU, LOCATION_HIDEOUT)

BLANK_FIELD_NAME = "\u200b"


@dataclass(frozen=True)
class OnlinePlayer:
    profile_id: str
    nickname: str
    location_id: int


@dataclass(frozen=True)
class PresenceEntry:
    nickname: str
    level: int = 0
    activity: int = 0
    activity_started_timestamp: int = 0
    side: Optional[int] = None


class PresenceIndex(Mapping[str, PresenceEntry]):
    """Nickname -> presence lookup with case-insensitive keys."""

    def __init__(self) -> None:
        self._entries: Dict[str, PresenceEntry] = {}

    def add(self, entry: PresenceEntry) -> None:
        self._entries[entry.nickname.casefold()] = entry

    def __getitem__(self, nickname: str) -> PresenceEntry:
        return self._entries[nickname.casefold()]

    def __contains__(self, nickname: object) -> bool:
        return isinstance(nickname, str) and nickname.casefold() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def build_presence_index(entries: Iterable[PresenceEntry]) -> PresenceIndex:
    index = PresenceIndex()
    for entry in entries:
        if not entry.nickname or not entry.nickname.strip():
            continue
        index.add(entry)
    return index


@dataclass
class CategorizedRoster:
    in_raid: List[OnlinePlayer] = field(default_factory=list)
    other: List[OnlinePlayer] = field(default_factory=list)


@dataclass(frozen=True)
class WeeklyBoss:
    boss_id: str
    map_id: Optional[str] = None


@dataclass(frozen=True)
class ReportSection:
    name: str
    value: str
    inline: bool = False


@dataclass
class ReportDocument:
    title: str
    color: int
    sections: List[ReportSection] = field(default_factory=list)
    footer: str = ""

    def add_section(self, name: str, value: str, inline: bool = False) -> None:
        self.sections.append(ReportSection(name=name, value=value, inline=inline))

    def to_embed(self) -> discord.Embed:
        embed = discord.Embed(title=self.title, color=self.color)
        for section in self.sections:
            embed.add_field(name=section.name, value=section.value, inline=section.inline)
        if self.footer:
            embed.set_footer(text=self.footer)
        return embed
