"""Guild roles and their cache."""

from __future__ import annotations

import logging
from typing import Any

from .ids import INVALID_ROLE_ID, next_free_id
from .jsonutil import dump_json, get_value, parse_number

logger = logging.getLogger(__name__)


class Role:
    """A role, identified by a small handle and by its snowflake."""

    def __init__(self, pawn_id: int, data: dict[str, Any]) -> None:
        self.pawn_id = pawn_id
        self.id = ""
        self.name = ""
        self.color = 0
        self.hoist = False
        self.position = 0
        self.permissions = 0
        self.mentionable = False
        self.valid = False

        snowflake = get_value(data, str, "id")
        if snowflake is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return
        self.id = snowflake
        self.update(data)

    def update(self, data: dict[str, Any]) -> None:
        """Refresh the role from a role object.

        Fields are read in order and reading stops at the first one that is
        missing. Raises ValueError if no permission number could be read.
        """
        permissions = ""
        fields = (
            ("name", str),
            ("color", int),
            ("hoist", bool),
            ("position", int),
            ("permissions", str),
            ("mentionable", bool),
        )
        valid = True
        for key, kind in fields:
            value = get_value(data, kind, key)
            if value is None:
                valid = False
                break
            if key == "permissions":
                permissions = value
            else:
                setattr(self, key, value)
        self.valid = valid

        self.permissions = parse_number(permissions.lstrip(), int)
        if not self.valid:
            logger.error('can\'t update role: invalid JSON: "%s"', dump_json(data))

    def __bool__(self) -> bool:
        return self.valid


class RoleManager:
    """Cache of roles keyed by handle."""

    def __init__(self) -> None:
        self._roles: dict[int, Role] = {}

    def add_role(self, data: dict[str, Any]) -> int:
        """Cache a role and return its handle; an already cached role keeps its handle."""
        snowflake = get_value(data, str, "id")
        if snowflake is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return INVALID_ROLE_ID

        existing = self.find_role_by_id(snowflake)
        if existing is not None:
            return existing.pawn_id

        role_id = next_free_id(self._roles)
        self._roles[role_id] = Role(role_id, data)
        return role_id

    def remove_role(self, role: Role) -> None:
        self._roles.pop(role.pawn_id, None)

    def find_role(self, role_id: int) -> Role | None:
        return self._roles.get(role_id)

    def find_role_by_id(self, sfid: str) -> Role | None:
        return next(
            (role for _, role in sorted(self._roles.items()) if role.id == sfid),
            None,
        )