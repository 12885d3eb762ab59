"""Users and their cache."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .ids import INVALID_USER_ID, next_free_id
from .jsonutil import dump_json, get_value, has_fields

logger = logging.getLogger(__name__)


class User:
    """A user, identified by a small handle and by its snowflake."""

    def __init__(self, pawn_id: int, data: dict[str, Any]) -> None:
        self.pawn_id = pawn_id
        self.id = ""
        self.username = ""
        self.discriminator = ""
        self.is_bot = False
        self.is_verified = False
        self.valid = False

        snowflake = get_value(data, str, "id")
        if snowflake is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return
        self.id = snowflake
        self.update(data)

    def update(self, data: dict[str, Any]) -> None:
        """Refresh the user from a user object; username and discriminator are required."""
        username = get_value(data, str, "username")
        if username is not None:
            self.username = username
            discriminator = get_value(data, str, "discriminator")
            if discriminator is not None:
                self.discriminator = discriminator
        self.valid = username is not None and discriminator is not None

        if not self.valid:
            logger.error('can\'t update user: invalid JSON: "%s"', dump_json(data))
            return

        is_bot = get_value(data, bool, "bot")
        if is_bot is not None:
            self.is_bot = is_bot
        is_verified = get_value(data, bool, "verified")
        if is_verified is not None:
            self.is_verified = is_verified

    def __bool__(self) -> bool:
        return self.valid


class UserManager:
    """Cache of users keyed by handle."""

    _READY_COUNT = 1

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._ready = 0
        self._lock = threading.Lock()

    def on_ready(self, data: dict[str, Any]) -> None:
        """Handle the gateway READY event, which carries the bot's own user."""
        if not has_fields(data, "user", dict):
            logger.critical('invalid JSON: expected "user" in "%s"', dump_json(data))
            return
        self.add_user(data["user"])
        with self._lock:
            self._ready += 1

    def is_initialized(self) -> bool:
        with self._lock:
            return self._ready == self._READY_COUNT

    def add_user(self, data: dict[str, Any]) -> int:
        """Cache a user and return its handle; an already cached user keeps its handle."""
        snowflake = get_value(data, str, "id")
        if snowflake is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return INVALID_USER_ID

        existing = self.find_user_by_id(snowflake)
        if existing is not None:
            return existing.pawn_id

        user_id = next_free_id(self._users)
        self._users[user_id] = User(user_id, data)
        logger.info("successfully created user with id '%d'", user_id)
        return user_id

    def find_user(self, user_id: int) -> User | None:
        return self._users.get(user_id)

    def find_user_by_name(self, name: str, discriminator: str) -> User | None:
        return next(
            (
                user
                for _, user in sorted(self._users.items())
                if user.username == name and user.discriminator == discriminator
            ),
            None,
        )

    def find_user_by_id(self, sfid: str) -> User | None:
        return next(
            (user for _, user in sorted(self._users.items()) if user.id == sfid),
            None,
        )