"""Rich embeds attached to messages and their cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .ids import next_free_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbedField:
    """One name/value pair shown inside an embed."""

    name: str
    value: str
    inline: bool = False


@dataclass
class Embed:
    """The contents of an embed, built up by the script before it is sent."""

    title: str = ""
    description: str = ""
    url: str = ""
    timestamp: str = ""
    footer_text: str = ""
    footer_icon_url: str = ""
    thumbnail_url: str = ""
    image_url: str = ""
    color: int = 0
    fields: list[EmbedField] = field(default_factory=list)

    def add_field(self, name: str, value: str, inline: bool = False) -> None:
        self.fields.append(EmbedField(name, value, inline))

    def to_json(self) -> dict[str, Any]:
        """Return the embed object as the message API expects it."""
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "timestamp": self.timestamp,
            "color": self.color,
            "footer": {"text": self.footer_text, "icon_url": self.footer_icon_url},
            "thumbnail": {},
            "image": {},
        }
        if self.thumbnail_url:
            data["thumbnail"]["url"] = self.thumbnail_url
        if self.image_url:
            data["image"]["url"] = self.image_url
        if self.fields:
            data["fields"] = [
                {"name": f.name, "value": f.value, "inline": f.inline} for f in self.fields
            ]
        return data


class EmbedManager:
    """Cache of embeds keyed by handle."""

    def __init__(self) -> None:
        self._embeds: dict[int, Embed] = {}

    def add_embed(
        self,
        title: str = "",
        description: str = "",
        url: str = "",
        timestamp: str = "",
        color: int = 0,
        footer_text: str = "",
        footer_icon_url: str = "",
        thumbnail_url: str = "",
        image_url: str = "",
    ) -> int:
        embed_id = next_free_id(self._embeds)
        self._embeds[embed_id] = Embed(
            title=title,
            description=description,
            url=url,
            timestamp=timestamp,
            footer_text=footer_text,
            footer_icon_url=footer_icon_url,
            thumbnail_url=thumbnail_url,
            image_url=image_url,
            color=color,
        )
        logger.info("successfully created embed with id '%d'", embed_id)
        return embed_id

    def delete_embed(self, embed_id: int) -> bool:
        """Forget an embed; False if the handle was not in use."""
        if self._embeds.pop(embed_id, None) is None:
            logger.warning(
                "attempted to delete embed with id '%d' but it does not exist", embed_id
            )
            return False
        logger.info("successfully deleted embed with id '%d'", embed_id)
        return True

    def find_embed(self, embed_id: int) -> Embed | None:
        return self._embeds.get(embed_id)