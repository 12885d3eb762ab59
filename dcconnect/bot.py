"""The bot's own account: presence, activity, nickname and direct-message channels."""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Callable
from typing import Any

from .ids import INVALID_CHANNEL_ID
from .jsonutil import dump_json
from .rest import Response

logger = logging.getLogger(__name__)


class PresenceStatus(enum.IntEnum):
    INVALID = 0
    ONLINE = 1
    IDLE = 2
    DO_NOT_DISTURB = 3
    INVISIBLE = 4
    OFFLINE = 5


_STATUS_NAMES = {
    PresenceStatus.ONLINE: "online",
    PresenceStatus.DO_NOT_DISTURB: "dnd",
    PresenceStatus.IDLE: "idle",
    PresenceStatus.INVISIBLE: "invisible",
    PresenceStatus.OFFLINE: "offline",
}


def presence_status_string(status: int) -> str:
    """Return the gateway name of ``status``, or an empty string if it has none."""
    try:
        return _STATUS_NAMES.get(PresenceStatus(status), "")
    except ValueError:
        return ""


class Bot:
    """Actions the bot performs on itself.

    ``network`` provides ``http`` (a REST client), ``dispatcher`` (where
    script callbacks are queued), ``channels`` (a channel cache with
    ``add_channel``) and ``update_status(status, activity)``.
    """

    def __init__(self, network: Any) -> None:
        self._network = network
        self.presence_status = PresenceStatus.ONLINE
        self.activity_name = ""
        self.created_private_channel_id = INVALID_CHANNEL_ID
        self.application_id = ""

    def trigger_typing_indicator(self, channel: Any) -> None:
        self._network.http.post(f"/channels/{channel.id}/typing", "")

    def set_nickname(self, guild: Any, nickname: str) -> None:
        body = dump_json({"nick": nickname})
        self._network.http.patch(f"/guilds/{guild.id}/members/@me/nick", body)

    def create_private_channel(
        self, user: Any, callback: Callable[[int], object] | None = None
    ) -> None:
        """Open a direct-message channel with ``user``.

        Once it exists it is cached and ``callback`` is queued with its
        handle; ``created_private_channel_id`` holds the handle meanwhile.
        """
        body = dump_json({"recipient_id": user.id})

        def on_response(response: Response) -> None:
            logger.debug(
                "DM channel create response: status %d; body: %s; add: %s",
                response.status, response.body, response.additional_data,
            )
            if response.status // 100 != 2:
                return
            channel_id = self._network.channels.add_channel(json.loads(response.body))
            if channel_id == INVALID_CHANNEL_ID or callback is None:
                return

            def run() -> None:
                self.created_private_channel_id = channel_id
                try:
                    callback(channel_id)
                finally:
                    self.created_private_channel_id = INVALID_CHANNEL_ID

            self._network.dispatcher.dispatch(run)

        self._network.http.post("/users/@me/channels", body, on_response)

    def set_presence_status(self, status: int) -> None:
        """Change the presence; raises ValueError for a status with no name."""
        name = presence_status_string(status)
        if not name:
            raise ValueError(f"invalid presence status: {status!r}")
        self.presence_status = PresenceStatus(status)
        self._network.update_status(name, self.activity_name)

    def set_activity(self, name: str) -> None:
        self.activity_name = name
        self._network.update_status(
            presence_status_string(self.presence_status), self.activity_name
        )