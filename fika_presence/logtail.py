"""Weekly boss detection from the SPT server log.

The newest ``spt*.log`` in the configured folder is scanned once in full and
then tailed by byte offset. The file is opened and closed on every poll so
rotation or deletion between polls is harmless.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, Optional

from .models import WeeklyBoss

LOGGER = logging.getLogger(__name__)

LOG_FILE_PATTERN = "spt*.log"

PLACEMENT_MARKER = "_botplacementsystem"
PLACEMENT_BOSS_MARKER = "Weekly Boss:"
PLACEMENT_RE = re.compile(r"Weekly Boss:\s+(boss\w+)\s+\|\s+\d+%\s+Chance\s+on\s+(\w+)")
CORE_BOSS_PHRASE = " is boss of the week"
CORE_BOSS_RE = re.compile(r"\b(boss\w+)\b\s+is\s+boss\s+of\s+the\s+week\b", re.IGNORECASE)

# Values must match the keys of map_names_log in the config.
BOSS_TO_MAP = {
    "bossbully": "bigmap",
    "bossgluhar": "rezervbase",
    "bosskilla": "interchange",
    "bosskojaniy": "woods",
    "bosssanitar": "shoreline",
    "bosskolontay": "tarkovstreets",
    "bossknight": "lighthouse",
    "bosstagilla": "factory4_day",
}


def find_latest_log(folder: str | Path) -> Optional[Path]:
    if not folder:
        return None
    root = Path(folder)
    if not root.is_dir():
        return None
    candidates = [p for p in root.glob(LOG_FILE_PATTERN) if p.is_file()]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


class WeeklyBossMonitor:
    def __init__(self, log_folder_path: str):
        self.log_folder_path = log_folder_path
        self.log_path: Optional[Path] = None
        self.offset = 0
        self.boss_id: Optional[str] = None
        self.map_id: Optional[str] = None
        self.initialize()

    @property
    def dormant(self) -> bool:
        return self.log_path is None

    @property
    def weekly_boss(self) -> Optional[WeeklyBoss]:
        if not self.boss_id:
            return None
        return WeeklyBoss(boss_id=self.boss_id, map_id=self.map_id)

    def initialize(self) -> None:
        self.log_path = None
        self.offset = 0
        self.boss_id = None
        self.map_id = None
        try:
            path = find_latest_log(self.log_folder_path)
            if path is None:
                LOGGER.debug("No %s found in %s", LOG_FILE_PATTERN, self.log_folder_path)
                return
            self.log_path = path
            for line in self._read_new_lines(path):
                self.process_line(line)
        except OSError as exc:
            LOGGER.debug("Log monitor going dormant: %s", exc)
            self.log_path = None
            return
        LOGGER.info("Watching %s for the weekly boss", self.log_path)

    def poll(self) -> None:
        if self.log_path is None:
            self.initialize()
            return
        if not self.log_path.exists():
            LOGGER.info("%s is gone, selecting a new log on the next poll", self.log_path)
            self.log_path = None
            return
        try:
            for line in self._read_new_lines(self.log_path):
                if line.strip():
                    self.process_line(line)
        except OSError as exc:
            LOGGER.debug("Log monitor going dormant: %s", exc)
            self.log_path = None

    def _read_new_lines(self, path: Path) -> Iterator[str]:
        """Yield complete lines past ``offset``, advancing it as each is read."""
        with path.open("rb") as fh:
            fh.seek(0, 2)
            if fh.tell() < self.offset:
                # Truncated in place
                self.offset = 0
            fh.seek(self.offset)
            for raw in fh:
                # A trailing line without newline is still being written
                if not raw.endswith(b"\n"):
                    return
                first = self.offset == 0
                self.offset += len(raw)
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if first:
                    line = line.lstrip("\ufeff")
                yield line

    def process_line(self, line: str) -> None:
        if PLACEMENT_BOSS_MARKER in line and PLACEMENT_MARKER in line:
            match = PLACEMENT_RE.search(line)
            if match:
                self.boss_id, self.map_id = match.group(1), match.group(2)
                LOGGER.info("Weekly boss from placement system: %s on %s", self.boss_id, self.map_id)
            return

        if CORE_BOSS_PHRASE not in line.lower():
            return
        match = CORE_BOSS_RE.search(line)
        if not match:
            return
        if self.boss_id and self.map_id:
            return
        self.boss_id = match.group(1)
        self.map_id = BOSS_TO_MAP.get(self.boss_id.lower())
        LOGGER.info("Weekly boss from server log: %s", self.boss_id)
