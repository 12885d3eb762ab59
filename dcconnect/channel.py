"""Text, voice, category and direct-message channels and their cache."""

from __future__ import annotations

import enum
import json
import logging
import threading
from collections.abc import Callable
from typing import Any

from .embed import Embed
from .ids import (
    INVALID_CHANNEL_ID,
    INVALID_GUILD_ID,
    INVALID_MESSAGE_ID,
    next_free_id,
)
from .jsonutil import dump_json, get_value, has_fields
from .rest import Response

logger = logging.getLogger(__name__)


class ChannelType(enum.IntEnum):
    GUILD_TEXT = 0
    DM = 1
    GUILD_VOICE = 2
    GROUP_DM = 3
    GUILD_CATEGORY = 4
    GUILD_NEWS = 5
    GUILD_STORE = 6


_GUILD_TYPES = frozenset(
    {ChannelType.GUILD_TEXT, ChannelType.GUILD_VOICE, ChannelType.GUILD_CATEGORY}
)


def _channel_type(raw: int) -> ChannelType | int:
    try:
        return ChannelType(raw)
    except ValueError:
        return raw


def _message_response_handler(
    network: Any, callback: Callable[[int], object] | None
) -> Callable[[Response], None] | None:
    """Build the response handler that caches a created message and runs ``callback``."""
    if callback is None:
        return None

    def on_response(response: Response) -> None:
        logger.debug(
            "channel message create response: status %d; body: %s; add: %s",
            response.status, response.body, response.additional_data,
        )
        if response.status // 100 != 2:
            return
        message_json = json.loads(response.body)

        def run() -> None:
            messages = network.messages
            message_id = messages.create(message_json)
            if message_id == INVALID_MESSAGE_ID:
                return
            messages.created_message_id = message_id
            try:
                callback(message_id)
                message = messages.find(message_id)
                if message is not None and not message.persistent:
                    messages.delete(message_id)
            finally:
                messages.created_message_id = INVALID_MESSAGE_ID

        network.dispatcher.dispatch(run)

    return on_response


class Channel:
    """A channel, identified by a small handle and by its snowflake.

    ``network`` provides ``http``, ``dispatcher``, ``messages`` and
    ``channels`` (the channel cache).
    """

    def __init__(
        self,
        network: Any,
        pawn_id: int,
        snowflake: str,
        channel_type: ChannelType | int | None,
    ) -> None:
        self._network = network
        self.pawn_id = pawn_id
        self.id = snowflake
        self.type = channel_type
        self.guild_id = INVALID_GUILD_ID
        self.name = ""
        self.topic = ""
        self.position = -1
        self.is_nsfw = False
        self.parent_id = INVALID_CHANNEL_ID

    @classmethod
    def from_json(
        cls,
        network: Any,
        pawn_id: int,
        data: dict[str, Any],
        guild_id: int = INVALID_GUILD_ID,
    ) -> Channel:
        """Build a channel from a channel object.

        Guild channels take ``guild_id`` if given, otherwise the guild named
        by the object's ``guild_id``, which is told about the new channel.
        """
        raw_type = get_value(data, int, "type")
        snowflake = get_value(data, str, "id") if raw_type is not None else None
        if raw_type is None or snowflake is None:
            logger.error('invalid JSON: expected "type" and "id" in "%s"', dump_json(data))
            return cls(network, pawn_id, "", None)

        channel = cls(network, pawn_id, snowflake, _channel_type(raw_type))
        if channel.type in _GUILD_TYPES:
            if guild_id != INVALID_GUILD_ID:
                channel.guild_id = guild_id
            else:
                guild_sfid = get_value(data, str, "guild_id")
                guild = (
                    network.guilds.find_guild_by_id(guild_sfid)
                    if guild_sfid is not None
                    else None
                )
                if guild_sfid is None:
                    logger.error('invalid JSON: expected "guild_id" in "%s"', dump_json(data))
                elif guild is None:
                    logger.error(
                        'can\'t assign channel to guild: guild id "%s" not cached', guild_sfid
                    )
                else:
                    channel.guild_id = guild.pawn_id
                    guild.add_channel(pawn_id)
            channel.update(data)
        return channel

    def update(self, data: dict[str, Any]) -> None:
        """Take over whichever of name, topic, position and nsfw the object holds."""
        for key, attr, kind in (
            ("name", "name", str),
            ("topic", "topic", str),
            ("position", "position", int),
            ("nsfw", "is_nsfw", bool),
        ):
            value = get_value(data, kind, key)
            if value is not None:
                setattr(self, attr, value)

    def update_parent_channel(self, parent_id: str) -> None:
        """Point at the cached parent category; an empty id clears the parent."""
        if not parent_id:
            self.parent_id = INVALID_CHANNEL_ID
            return
        parent = self._network.channels.find_channel_by_id(parent_id)
        if parent is None:
            logger.error(
                'can\'t update parent channel "parent_id" not cached "%s"', parent_id
            )
            return
        self.parent_id = parent.pawn_id

    def send_message(
        self, content: str, callback: Callable[[int], object] | None = None
    ) -> None:
        """Post a message; ``callback`` gets the created message's handle."""
        body = dump_json({"content": content})
        self._network.http.post(
            f"/channels/{self.id}/messages", body,
            _message_response_handler(self._network, callback),
        )

    def send_embedded_message(
        self,
        embed: Embed,
        content: str = "",
        callback: Callable[[int], object] | None = None,
    ) -> None:
        """Post a message carrying ``embed``; ``callback`` as for :meth:`send_message`."""
        body = dump_json({"content": content, "embeds": [embed.to_json()]})
        self._network.http.post(
            f"/channels/{self.id}/messages", body,
            _message_response_handler(self._network, callback),
        )

    def _modify(self, data: dict[str, Any]) -> None:
        self._network.http.patch(f"/channels/{self.id}", dump_json(data))

    def set_name(self, name: str) -> None:
        self._modify({"name": name})

    def set_topic(self, topic: str) -> None:
        self._modify({"topic": topic})

    def set_position(self, position: int) -> None:
        self._modify({"position": position})

    def set_nsfw(self, is_nsfw: bool) -> None:
        self._modify({"nsfw": is_nsfw})

    def set_parent_category(self, parent: Channel) -> None:
        """Move under ``parent``; nothing happens unless it is a category."""
        if parent.type != ChannelType.GUILD_CATEGORY:
            return
        self._modify({"parent_id": parent.id})

    def delete(self) -> None:
        self._network.http.delete(f"/channels/{self.id}")


class ChannelManager:
    """Cache of channels keyed by handle, kept current by gateway events.

    ``network`` provides ``http``, ``dispatcher``, ``emit(name, *args)``,
    ``guilds`` and ``messages``.
    """

    _READY_COUNT = 1

    def __init__(self, network: Any) -> None:
        self._network = network
        self._channels: dict[int, Channel] = {}
        self._ready = 0
        self._lock = threading.Lock()
        self.created_guild_channel_id = INVALID_CHANNEL_ID

    def on_ready(self, data: dict[str, Any]) -> None:
        """Handle READY: cache the private channels it lists."""
        key = "private_channels"
        if has_fields(data, key, list):
            for channel_data in data[key]:
                self.add_channel(channel_data)
        else:
            logger.error('invalid JSON: expected "%s" in "%s"', key, dump_json(data))
        with self._lock:
            self._ready += 1

    def on_channel_create(self, data: dict[str, Any]) -> None:
        def run() -> None:
            channel_id = self.add_channel(data)
            if channel_id == INVALID_CHANNEL_ID:
                return
            self._network.emit("DCC_OnChannelCreate", channel_id)

        self._network.dispatcher.dispatch(run)

    def on_channel_update(self, data: dict[str, Any]) -> None:
        def run() -> None:
            sfid = get_value(data, str, "id")
            if sfid is None:
                logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
                return
            channel = self.find_channel_by_id(sfid)
            if channel is None:
                logger.error('can\'t update channel: channel id "%s" not cached', sfid)
                return
            channel.update(data)
            if channel.type != ChannelType.GUILD_CATEGORY:
                channel.update_parent_channel(get_value(data, str, "parent_id") or "")
            self._network.emit("DCC_OnChannelUpdate", channel.pawn_id)

        self._network.dispatcher.dispatch(run)

    def on_channel_delete(self, data: dict[str, Any]) -> None:
        self.delete_channel(data)

    def is_initialized(self) -> bool:
        with self._lock:
            return self._ready == self._READY_COUNT

    def create_guild_channel(
        self,
        guild: Any,
        name: str,
        channel_type: ChannelType | int,
        callback: Callable[[int], object] | None = None,
    ) -> None:
        """Create a channel in ``guild``; ``callback`` gets the new channel's handle."""
        body = dump_json({"name": name, "type": int(channel_type)})

        def on_response(response: Response) -> None:
            logger.debug(
                "channel create response: status %d; body: %s; add: %s",
                response.status, response.body, response.additional_data,
            )
            if response.status // 100 != 2:
                return
            channel_id = self.add_channel(json.loads(response.body))
            if channel_id == INVALID_CHANNEL_ID or callback is None:
                return

            def run() -> None:
                self.created_guild_channel_id = channel_id
                try:
                    callback(channel_id)
                finally:
                    self.created_guild_channel_id = INVALID_CHANNEL_ID

            self._network.dispatcher.dispatch(run)

        self._network.http.post(f"/guilds/{guild.id}/channels", body, on_response)

    def _insert(self, make: Callable[[int], Channel]) -> int:
        channel_id = next_free_id(self._channels)
        self._channels[channel_id] = make(channel_id)
        logger.info("successfully added channel with id '%d'", channel_id)
        return channel_id

    def add_channel(self, data: dict[str, Any], guild_id: int = INVALID_GUILD_ID) -> int:
        """Cache a channel and return its handle; a cached channel keeps its handle."""
        sfid = get_value(data, str, "id")
        if sfid is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return INVALID_CHANNEL_ID
        existing = self.find_channel_by_id(sfid)
        if existing is not None:
            return existing.pawn_id
        return self._insert(
            lambda channel_id: Channel.from_json(self._network, channel_id, data, guild_id)
        )

    def add_dm_channel(self, data: dict[str, Any]) -> int:
        """Cache the direct-message channel named by ``channel_id`` in ``data``."""
        sfid = get_value(data, str, "channel_id")
        if sfid is None:
            logger.error('invalid JSON: expected "channel_id" in "%s"', dump_json(data))
            return INVALID_CHANNEL_ID
        existing = self.find_channel_by_id(sfid)
        if existing is not None:
            return existing.pawn_id
        return self._insert(
            lambda channel_id: Channel(self._network, channel_id, sfid, ChannelType.DM)
        )

    def delete_channel(self, data: dict[str, Any]) -> None:
        """Queue removal of the channel named in ``data`` from the cache and its guild."""
        sfid = get_value(data, str, "id")
        if sfid is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return

        def run() -> None:
            channel = self.find_channel_by_id(sfid)
            if channel is None:
                logger.error('can\'t delete channel: channel id "%s" not cached', sfid)
                return
            self._network.emit("DCC_OnChannelDelete", channel.pawn_id)
            guild = self._network.guilds.find_guild(channel.guild_id)
            if guild is not None:
                guild.remove_channel(channel.pawn_id)
            self._channels.pop(channel.pawn_id, None)

        self._network.dispatcher.dispatch(run)

    def find_channel(self, channel_id: int) -> Channel | None:
        return self._channels.get(channel_id)

    def find_channel_by_name(self, name: str) -> Channel | None:
        return next(
            (c for _, c in sorted(self._channels.items()) if c.name == name), None
        )

    def find_channel_by_id(self, sfid: str) -> Channel | None:
        return next(
            (c for _, c in sorted(self._channels.items()) if c.id == sfid), None
        )