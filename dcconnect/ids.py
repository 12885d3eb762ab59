"""Numeric handles for cached objects and the sentinel that marks "no object"."""

from __future__ import annotations

from collections.abc import Container
from itertools import count

INVALID_GUILD_ID = 0
INVALID_USER_ID = 0
INVALID_CHANNEL_ID = 0
INVALID_MESSAGE_ID = 0
INVALID_ROLE_ID = 0
INVALID_EMBED_ID = 0
INVALID_EMOJI_ID = 0
INVALID_COMMAND_ID = 0
INVALID_COMMAND_INTERACTION_ID = 0


def next_free_id(mapping: Container[int]) -> int:
    """Return the smallest handle, starting at 1, that is not used in ``mapping``."""
    return next(candidate for candidate in count(1) if candidate not in mapping)