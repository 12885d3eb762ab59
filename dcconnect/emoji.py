"""Emoji used in reactions and their short-lived cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .ids import next_free_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Emoji:
    """A custom emoji (with a snowflake) or a unicode emoji (empty snowflake)."""

    snowflake: str
    name: str


def encode_emoji(emoji: Emoji) -> str:
    """Write an emoji the way reaction URLs expect it.

    Custom emoji become ``name:id``; unicode emoji become their UTF-8 bytes,
    each written as ``%`` and lower-case hex.
    """
    if emoji.snowflake:
        return f"{emoji.name}:{emoji.snowflake}"
    return "".join(f"%{byte:x}" for byte in emoji.name.encode("utf-8"))


class EmojiManager:
    """Cache of emoji keyed by handle."""

    def __init__(self) -> None:
        self._emojis: dict[int, Emoji] = {}

    def add_emoji(self, snowflake: str, name: str) -> int:
        emoji_id = next_free_id(self._emojis)
        self._emojis[emoji_id] = Emoji(snowflake, name)
        logger.info("successfully created emoji with id '%d'", emoji_id)
        return emoji_id

    def delete_emoji(self, emoji_id: int) -> bool:
        """Forget an emoji; False if the handle was not in use."""
        if self._emojis.pop(emoji_id, None) is None:
            logger.warning(
                "attempted to delete emoji with id '%d' but it does not exist", emoji_id
            )
            return False
        logger.info("successfully deleted emoji with id '%d'", emoji_id)
        return True

    def find_emoji(self, emoji_id: int) -> Emoji | None:
        return self._emojis.get(emoji_id)