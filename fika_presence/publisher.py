from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

import discord

from .models import ReportDocument
from .state import load_message_id, save_message_id

LOGGER = logging.getLogger(__name__)


class WebhookLike(Protocol):
    async def send(self, *args: Any, **kwargs: Any) -> Any: ...

    async def edit_message(self, message_id: int, **kwargs: Any) -> Any: ...


class PublishState(enum.Enum):
    UNKNOWN = "unknown"
    TRACKING = "tracking"


@dataclass(frozen=True)
class WebhookIdentity:
    username: str = ""
    avatar_url: str = ""
    tts: bool = False


class StatusPublisher:
    """Keeps exactly one status message alive on the webhook.

    UNKNOWN: no usable message id, the next publish creates a message.
    TRACKING: the next publish edits ``message_id``; if Discord reports the
    message gone we fall back to UNKNOWN and recreate on the following cycle.
    A fixed id from the config is never written to the state file.
    """

    def __init__(
        self,
        webhook: WebhookLike,
        state_path: str | Path,
        fixed_message_id: int = 0,
    ):
        self.webhook = webhook
        self.state_path = Path(state_path)
        self.fixed_message_id = 0
        self.state = PublishState.UNKNOWN
        self.message_id: Optional[int] = None
        if fixed_message_id > 0:
            self._apply_fixed_id(fixed_message_id)
        else:
            persisted = load_message_id(self.state_path)
            if persisted:
                LOGGER.info("Resuming status message %s from %s", persisted, self.state_path)
                self._track(persisted)

    def _track(self, message_id: int) -> None:
        self.message_id = message_id
        self.state = PublishState.TRACKING

    def _forget(self) -> None:
        self.message_id = None
        self.state = PublishState.UNKNOWN

    def _apply_fixed_id(self, fixed_message_id: int) -> None:
        self.fixed_message_id = fixed_message_id
        LOGGER.info("Using fixed status message id %s from config", fixed_message_id)
        self._track(fixed_message_id)

    def apply_config(
        self,
        webhook: WebhookLike,
        state_path: str | Path,
        fixed_message_id: int = 0,
    ) -> None:
        self.webhook = webhook
        self.state_path = Path(state_path)
        if fixed_message_id > 0 and fixed_message_id != self.fixed_message_id:
            self._apply_fixed_id(fixed_message_id)
        elif fixed_message_id <= 0:
            self.fixed_message_id = 0

    async def publish(
        self, document: ReportDocument, identity: WebhookIdentity
    ) -> Optional[int]:
        embed = document.to_embed()
        if self.state is PublishState.TRACKING and self.message_id:
            try:
                await self.webhook.edit_message(self.message_id, embed=embed)
            except discord.NotFound:
                LOGGER.warning(
                    "Status message %s no longer exists; a new one will be created",
                    self.message_id,
                )
                self._forget()
                return None
            LOGGER.debug("Updated status message %s", self.message_id)
            return self.message_id

        message = await self.webhook.send(
            embed=embed,
            username=identity.username or None,
            avatar_url=identity.avatar_url or None,
            tts=identity.tts,
            wait=True,
        )
        message_id = getattr(message, "id", None)
        try:
            message_id = int(message_id or 0)
        except (TypeError, ValueError):
            message_id = 0
        if message_id <= 0:
            LOGGER.warning("Webhook did not return a message id; will retry next cycle")
            self._forget()
            return None

        self._track(message_id)
        LOGGER.info("Created status message %s", message_id)
        if self.fixed_message_id <= 0:
            save_message_id(self.state_path, message_id)
        return message_id
