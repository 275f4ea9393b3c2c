from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Tuple

import aiohttp
import discord

from .config import Config, ConfigError, config_path_from_env, load_config
from .fika import FikaClient, FikaTransportError
from .logtail import WeeklyBossMonitor
from .models import OnlinePlayer, PresenceEntry, build_presence_index
from .publisher import StatusPublisher, WebhookIdentity, WebhookLike
from .render import render_report

# Default to INFO until the configured level is applied at startup
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s"
)
LOGGER = logging.getLogger(__name__)

IDLE_SLEEP_SECONDS = 5


class FikaLike(Protocol):
    async def fetch_players(self) -> List[OnlinePlayer]: ...

    async def fetch_presence(self) -> List[PresenceEntry]: ...

    async def close(self) -> Any: ...


class PresenceBot:
    """Single background loop that keeps the Discord status message current."""

    def __init__(
        self,
        config: Config,
        config_path: str,
        client: FikaLike | None = None,
        webhook: WebhookLike | None = None,
    ):
        self.config = config
        self.config_path = config_path
        self.client: FikaLike | None = client
        self._owns_client = client is None
        self._client_key: Optional[Tuple[Any, ...]] = None
        self.webhook: WebhookLike | None = webhook
        self._owns_webhook = webhook is None
        self._webhook_url: Optional[str] = None
        self.webhook_session: aiohttp.ClientSession | None = None
        self.publisher: StatusPublisher | None = None
        self.boss_monitor: WeeklyBossMonitor | None = None
        self.sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    async def close(self) -> None:
        if self._owns_client and self.client:
            await self.client.close()
        if self.webhook_session:
            await self.webhook_session.close()
            self.webhook_session = None

    def reload_config(self) -> None:
        try:
            self.config = load_config(self.config_path, check_paths=False)
        except ConfigError as exc:
            LOGGER.warning("Failed to reload config, keeping previous config. (%s)", exc)
            return
        logging.getLogger().setLevel(self.config.log_level)

    async def _ensure_client(self) -> FikaLike:
        if self.client is not None and not self._owns_client:
            return self.client
        fika = self.config.fika
        key = (fika.base_url, fika.api_key, fika.ignore_ssl_errors, fika.timeout_seconds)
        if self.client is None or key != self._client_key:
            if self.client is not None:
                await self.client.close()
            self.client = FikaClient(
                base_url=fika.base_url,
                api_key=fika.api_key,
                verify_ssl=not fika.ignore_ssl_errors,
                timeout_seconds=fika.timeout_seconds,
            )
            self._client_key = key
        return self.client

    def _ensure_webhook(self) -> WebhookLike:
        if self.webhook is not None and not self._owns_webhook:
            return self.webhook
        url = self.config.discord.webhook_url
        if self.webhook is None or url != self._webhook_url:
            if self.webhook_session is None:
                self.webhook_session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(
                        total=max(1, self.config.fika.timeout_seconds)
                    )
                )
            self.webhook = discord.Webhook.from_url(url, session=self.webhook_session)
            self._webhook_url = url
        return self.webhook

    def _ensure_publisher(self) -> StatusPublisher:
        webhook = self._ensure_webhook()
        discord_settings = self.config.discord
        if self.publisher is None:
            self.publisher = StatusPublisher(
                webhook,
                self.config.state_path,
                fixed_message_id=discord_settings.status_message_id,
            )
        else:
            self.publisher.apply_config(
                webhook,
                self.config.state_path,
                fixed_message_id=discord_settings.status_message_id,
            )
        return self.publisher

    def sync_boss_monitor(self) -> None:
        settings = self.config.log_monitor
        if not settings.enabled:
            if self.boss_monitor is not None:
                LOGGER.info("Log monitoring disabled")
                self.boss_monitor = None
            return
        if (
            self.boss_monitor is None
            or self.boss_monitor.log_folder_path != settings.log_folder_path
        ):
            LOGGER.info("Log monitoring enabled for %s", settings.log_folder_path)
            self.boss_monitor = WeeklyBossMonitor(settings.log_folder_path)

    async def run_cycle(self) -> bool:
        self.reload_config()
        if not self.config.enabled:
            LOGGER.debug("Disabled via config; skipping update")
            return False

        self.sync_boss_monitor()
        weekly_boss = None
        if self.boss_monitor is not None:
            self.boss_monitor.poll()
            weekly_boss = self.boss_monitor.weekly_boss

        client = await self._ensure_client()
        players = await client.fetch_players()
        presence = build_presence_index(await client.fetch_presence())

        document = render_report(self.config, players, presence, weekly_boss)
        discord_settings = self.config.discord
        identity = WebhookIdentity(
            username=discord_settings.username,
            avatar_url=discord_settings.avatar_url,
            tts=discord_settings.tts,
        )
        await self._ensure_publisher().publish(document, identity)
        LOGGER.debug("Status cycle done: %s players online", len(players))
        return True

    def interval_seconds(self) -> int:
        if not self.config.enabled:
            return IDLE_SLEEP_SECONDS
        return max(1, self.config.interval_seconds)

    async def run(self) -> None:
        LOGGER.info("Status loop started (interval %ss)", self.interval_seconds())
        while True:
            try:
                await self.run_cycle()
            except FikaTransportError as exc:
                LOGGER.exception("Fika is unreachable, stopping the status loop: %s", exc)
                return
            except Exception as exc:
                LOGGER.exception("Update error: %s", exc)
            await self.sleep(self.interval_seconds())


async def main():
    config_path = config_path_from_env()
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        LOGGER.error("Fika Discord presence configuration error:")
        for error in exc.errors:
            LOGGER.error("  - %s", error)
        LOGGER.error("Fix %s and restart. The status loop will NOT start.", config_path)
        return
    logging.getLogger().setLevel(config.log_level)
    if not config.enabled:
        LOGGER.info("Disabled via %s", config_path)
        return
    bot = PresenceBot(config, config_path)
    try:
        await bot.run()
    finally:
        await bot.close()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
