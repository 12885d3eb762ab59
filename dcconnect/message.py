"""Chat messages, their reactions and the short-lived message cache."""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Callable
from typing import Any

from .embed import Embed
from .emoji import Emoji, encode_emoji
from .ids import (
    INVALID_CHANNEL_ID,
    INVALID_EMBED_ID,
    INVALID_EMOJI_ID,
    INVALID_MESSAGE_ID,
    INVALID_USER_ID,
    next_free_id,
)
from .jsonutil import dump_json, get_value, has_fields
from .rest import Response

logger = logging.getLogger(__name__)


class ReactionType(enum.IntEnum):
    REACTION_ADD = 0
    REACTION_REMOVE = 1
    REACTION_REMOVE_ALL = 2
    REACTION_REMOVE_EMOJI = 3


def _edit_embed_json(embed: Embed) -> dict[str, Any]:
    """The embed object sent when a message is edited; empty URLs are left out."""
    footer: dict[str, Any] = {"text": embed.footer_text}
    if embed.footer_icon_url:
        footer["icon_url"] = embed.footer_icon_url
    data: dict[str, Any] = {
        "title": embed.title,
        "description": embed.description,
        "url": embed.url,
        "timestamp": embed.timestamp,
        "color": embed.color,
        "footer": footer,
        "thumbnail": {},
        "image": {},
    }
    if embed.thumbnail_url:
        data["thumbnail"]["url"] = embed.thumbnail_url
    if embed.image_url:
        data["image"]["url"] = embed.image_url
    if embed.fields:
        data["fields"] = [
            {"name": f.name, "value": f.value, "inline": f.inline} for f in embed.fields
        ]
    return data


class Message:
    """A message, identified by a small handle and by its snowflake.

    ``network`` provides ``http``, ``channels``, ``users``, ``roles``,
    ``emojis`` and ``embeds``.
    """

    def __init__(self, network: Any, pawn_id: int, data: dict[str, Any]) -> None:
        self._network = network
        self.pawn_id = pawn_id
        self.id = ""
        self.channel = INVALID_CHANNEL_ID
        self.author = INVALID_USER_ID
        self.content = ""
        self.is_tts = False
        self.mentions_everyone = False
        self.user_mentions: list[int] = []
        self.role_mentions: list[int] = []
        self.persistent = False
        self.valid = False

        values = (
            get_value(data, str, "id"),
            get_value(data, str, "author", "id"),
            get_value(data, str, "channel_id"),
            get_value(data, str, "content"),
            get_value(data, bool, "tts"),
            get_value(data, bool, "mention_everyone"),
        )
        if any(value is None for value in values):
            logger.error(
                'can\'t construct message object: invalid JSON: "%s"', dump_json(data)
            )
            return
        (
            self.id,
            author_sfid,
            channel_sfid,
            self.content,
            self.is_tts,
            self.mentions_everyone,
        ) = values
        self.valid = True

        channels = network.channels
        channel = channels.find_channel_by_id(channel_sfid)
        if channel is None and get_value(data, str, "guild_id") is None:
            self.channel = channels.add_dm_channel(data)
        else:
            self.channel = channel.pawn_id if channel is not None else INVALID_CHANNEL_ID

        author = network.users.find_user_by_id(author_sfid)
        self.author = author.pawn_id if author is not None else INVALID_USER_ID

        if has_fields(data, "mentions", list):
            for mention in data["mentions"]:
                user_sfid = get_value(mention, str, "id") if isinstance(mention, dict) else None
                if user_sfid is None:
                    continue
                user = network.users.find_user_by_id(user_sfid)
                if user is not None:
                    self.user_mentions.append(user.pawn_id)

        if has_fields(data, "mention_roles", list):
            for mention in data["mention_roles"]:
                role_sfid = get_value(mention, str, "id") if isinstance(mention, dict) else None
                if role_sfid is None:
                    continue
                role = network.roles.find_role_by_id(role_sfid)
                if role is not None:
                    self.role_mentions.append(role.pawn_id)

    def __bool__(self) -> bool:
        return self.valid

    def _channel(self) -> Any:
        return self._network.channels.find_channel(self.channel)

    def delete(self) -> None:
        """Delete the message on the server; nothing happens if its channel is unknown."""
        channel = self._channel()
        if channel is None:
            return
        self._network.http.delete(f"/channels/{channel.id}/messages/{self.id}")

    def add_reaction(self, emoji: Emoji) -> None:
        """React to the message as the bot."""
        channel = self._channel()
        if channel is None:
            return
        self._network.http.put(
            f"/channels/{channel.id}/messages/{self.id}/reactions/{encode_emoji(emoji)}/@me"
        )

    def delete_reaction(self, emoji_id: int = INVALID_EMOJI_ID) -> bool:
        """Remove all reactions, or only those of one cached emoji."""
        channel = self._channel()
        if channel is None:
            return False
        url = f"/channels/{channel.id}/messages/{self.id}/reactions"
        if emoji_id != INVALID_EMOJI_ID:
            emoji = self._network.emojis.find_emoji(emoji_id)
            if emoji is None:
                logger.error("invalid emoji id '%d'", emoji_id)
                return False
            url += f"/{encode_emoji(emoji)}"
        self._network.http.delete(url)
        return True

    def edit(self, content: str, embed_id: int = INVALID_EMBED_ID) -> bool:
        """Replace the content and optionally attach a cached embed, which is then dropped."""
        channel = self._channel()
        if channel is None:
            return False
        data: dict[str, Any] = {"content": content}
        if embed_id != INVALID_EMBED_ID:
            embeds = self._network.embeds
            embed = embeds.find_embed(embed_id)
            if embed is None:
                logger.error("invalid embed id %d", embed_id)
                return False
            data["embed"] = _edit_embed_json(embed)
            embeds.delete_embed(embed_id)
        self._network.http.patch(
            f"/channels/{channel.id}/messages/{self.id}", dump_json(data)
        )
        return True


class MessageManager:
    """Cache of messages keyed by handle.

    Messages live only while the script handles them unless marked persistent.
    ``network`` provides ``http``, ``dispatcher``, ``emit(name, *args)``,
    ``users``, ``emojis`` and what :class:`Message` needs.
    """

    def __init__(self, network: Any) -> None:
        self._network = network
        self._messages: dict[int, Message] = {}
        self.created_message_id = INVALID_MESSAGE_ID

    # gateway events

    def on_message_create(self, data: dict[str, Any]) -> None:
        def run() -> None:
            message_id = self.create(data)
            if message_id == INVALID_MESSAGE_ID:
                return
            self._network.emit("DCC_OnMessageCreate", message_id)
            self._drop_unless_persistent(message_id)

        self._network.dispatcher.dispatch(run)

    def on_message_delete(self, data: dict[str, Any]) -> None:
        sfid = get_value(data, str, "id")
        if sfid is None:
            return

        def run() -> None:
            message = self.find_by_id(sfid)
            if message is None:
                return
            self._network.emit("DCC_OnMessageDelete", message.pawn_id)
            self.delete(message.pawn_id)

        self._network.dispatcher.dispatch(run)

    def _on_user_reaction(self, data: dict[str, Any], reaction: ReactionType) -> None:
        user_sfid = get_value(data, str, "user_id")
        if user_sfid is None:
            return
        message_sfid = get_value(data, str, "message_id")
        if message_sfid is None:
            return
        name = get_value(data, str, "emoji", "name")
        if name is None:
            return
        emoji_sfid = get_value(data, str, "emoji", "id") or ""

        def run() -> None:
            message = self.find_by_id(message_sfid)
            user = self._network.users.find_user_by_id(user_sfid)
            if message is None or user is None:
                return
            self._emit_with_emoji(
                emoji_sfid, name, message.pawn_id, user.pawn_id, reaction
            )

        self._network.dispatcher.dispatch(run)

    def _emit_with_emoji(
        self, emoji_sfid: str, name: str, message_id: int, user_id: int, reaction: ReactionType
    ) -> None:
        emojis = self._network.emojis
        emoji_id = emojis.add_emoji(emoji_sfid, name)
        try:
            self._network.emit(
                "DCC_OnMessageReaction", message_id, user_id, emoji_id, int(reaction)
            )
        finally:
            emojis.delete_emoji(emoji_id)

    def on_reaction_add(self, data: dict[str, Any]) -> None:
        self._on_user_reaction(data, ReactionType.REACTION_ADD)

    def on_reaction_remove(self, data: dict[str, Any]) -> None:
        self._on_user_reaction(data, ReactionType.REACTION_REMOVE)

    def on_reaction_remove_all(self, data: dict[str, Any]) -> None:
        message_sfid = get_value(data, str, "message_id")
        if message_sfid is None:
            return

        def run() -> None:
            message = self.find_by_id(message_sfid)
            if message is None:
                return
            self._network.emit(
                "DCC_OnMessageReaction",
                message.pawn_id,
                INVALID_USER_ID,
                INVALID_EMOJI_ID,
                int(ReactionType.REACTION_REMOVE_ALL),
            )

        self._network.dispatcher.dispatch(run)

    def on_reaction_remove_emoji(self, data: dict[str, Any]) -> None:
        message_sfid = get_value(data, str, "message_id")
        if message_sfid is None:
            return
        name = get_value(data, str, "emoji", "name")
        if name is None:
            return
        emoji_sfid = get_value(data, str, "emoji", "id") or ""

        def run() -> None:
            message = self.find_by_id(message_sfid)
            if message is None:
                return
            self._emit_with_emoji(
                emoji_sfid,
                name,
                message.pawn_id,
                INVALID_USER_ID,
                ReactionType.REACTION_REMOVE_EMOJI,
            )

        self._network.dispatcher.dispatch(run)

    # cache

    def _drop_unless_persistent(self, message_id: int) -> None:
        message = self.find(message_id)
        if message is not None and not message.persistent:
            self.delete(message_id)

    def create(self, data: dict[str, Any]) -> int:
        """Cache a message built from ``data`` and return its handle."""
        message_id = next_free_id(self._messages)
        self._messages[message_id] = Message(self._network, message_id, data)
        logger.debug("created message with id '%d'", message_id)
        return message_id

    def delete(self, message_id: int) -> bool:
        if self._messages.pop(message_id, None) is None:
            return False
        logger.debug("deleted message with id '%d'", message_id)
        return True

    def create_from_snowflake(
        self,
        channel: str,
        message: str,
        callback: Callable[[int], object] | None = None,
    ) -> None:
        """Fetch a message by channel and message snowflake; ``callback`` gets its handle."""

        def on_response(response: Response) -> None:
            logger.debug(
                "message fetch response: status %d; body: %s; add: %s",
                response.status, response.body, response.additional_data,
            )
            if response.status // 100 != 2:
                return
            message_id = self.create(json.loads(response.body))
            if callback is None:
                self._drop_unless_persistent(message_id)
                return

            def run() -> None:
                if message_id == INVALID_MESSAGE_ID:
                    return
                self.created_message_id = message_id
                try:
                    callback(message_id)
                finally:
                    self.created_message_id = INVALID_MESSAGE_ID
                    self._drop_unless_persistent(message_id)

            self._network.dispatcher.dispatch(run)

        self._network.http.get(f"/channels/{channel}/messages/{message}", on_response)

    def find(self, message_id: int) -> Message | None:
        return self._messages.get(message_id)

    def find_by_id(self, sfid: str) -> Message | None:
        return next(
            (m for _, m in sorted(self._messages.items()) if m.id == sfid), None
        )