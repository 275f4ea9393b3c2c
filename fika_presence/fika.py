import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .models import OnlinePlayer, PresenceEntry

LOGGER = logging.getLogger(__name__)

PLAYERS_PATH = "/fika/api/players"
PRESENCE_PATH = "/fika/presence/get"


class FikaError(Exception):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class FikaTransportError(FikaError):
    """Timeout or connection failure; the server is unreachable."""


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    return int(value)


def parse_players(payload: Any) -> List[OnlinePlayer]:
    if not isinstance(payload, dict):
        return []
    players: List[OnlinePlayer] = []
    for raw in payload.get("players") or []:
        if not isinstance(raw, dict):
            continue
        players.append(
            OnlinePlayer(
                profile_id=str(raw.get("profileId") or ""),
                nickname=str(raw.get("nickname") or ""),
                location_id=_as_int(raw.get("location")),
            )
        )
    return players


def _parse_presence_entry(raw: Dict[str, Any]) -> PresenceEntry:
    side: Optional[int] = None
    raid_info = raw.get("raidInformation")
    if isinstance(raid_info, dict):
        raw_side = raid_info.get("side")
        if isinstance(raw_side, (int, float)) and not isinstance(raw_side, bool):
            side = int(raw_side)
    return PresenceEntry(
        nickname=str(raw.get("nickname") or ""),
        level=_as_int(raw.get("level")),
        activity=_as_int(raw.get("activity")),
        activity_started_timestamp=_as_int(raw.get("activityStartedTimestamp")),
        side=side,
    )


def parse_presence(payload: Any) -> List[PresenceEntry]:
    if not isinstance(payload, list):
        return []
    entries: List[PresenceEntry] = []
    for raw in payload:
        if not isinstance(raw, dict):
            continue
        try:
            entries.append(_parse_presence_entry(raw))
        except (TypeError, ValueError) as exc:
            LOGGER.debug("Skipping malformed presence entry %r: %s", raw, exc)
    return entries


class FikaClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        verify_ssl: bool = False,
        timeout_seconds: int = 10,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.strip().rstrip("/")
        self.api_key = api_key
        self.verify_ssl = verify_ssl
        self.timeout_seconds = max(1, int(timeout_seconds))
        self._session = session
        self._owns_session = session is None

    async def close(self):
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "responsecompressed": "0",
        }

    async def _request(self, method: str, path: str) -> Any:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(ssl=None if self.verify_ssl else False),
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
        url = f"{self.base_url}{path}"
        try:
            async with self._session.request(
                method, url, headers=self._headers()
            ) as resp:
                if resp.status >= 400:
                    raise FikaError(
                        f"Fika request {url} failed with HTTP {resp.status}",
                        status=resp.status,
                    )
                return await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise FikaTransportError(
                f"Fika request {url} timed out after {self.timeout_seconds}s"
            ) from exc
        except aiohttp.ClientConnectionError as exc:
            raise FikaTransportError(f"Cannot reach Fika at {url}: {exc}") from exc
        except (aiohttp.ContentTypeError, ValueError) as exc:
            raise FikaError(f"Fika returned an unreadable body for {url}: {exc}") from exc

    async def fetch_players(self) -> List[OnlinePlayer]:
        return parse_players(await self._request("GET", PLAYERS_PATH))

    async def fetch_presence(self) -> List[PresenceEntry]:
        return parse_presence(await self._request("GET", PRESENCE_PATH))
