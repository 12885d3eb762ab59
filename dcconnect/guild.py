"""Guilds, their members, roles and channels."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from .channel import ChannelType
from .ids import INVALID_CHANNEL_ID, INVALID_USER_ID
from .jsonutil import dump_json, get_value, has_fields

logger = logging.getLogger(__name__)


class MemberStatus(enum.IntEnum):
    INVALID = 0
    ONLINE = 1
    IDLE = 2
    DO_NOT_DISTURB = 3
    OFFLINE = 4


_STATUS_BY_NAME = {
    "idle": MemberStatus.IDLE,
    "dnd": MemberStatus.DO_NOT_DISTURB,
    "online": MemberStatus.ONLINE,
    "offline": MemberStatus.OFFLINE,
}


@dataclass
class Member:
    """A user's membership in one guild."""

    user_id: int = INVALID_USER_ID
    nickname: str = ""
    roles: list[int] = field(default_factory=list)
    status: MemberStatus = MemberStatus.INVALID
    voice_channel: int = INVALID_CHANNEL_ID

    def update(self, data: dict[str, Any], roles: Any) -> None:
        """Take over the roles and nickname of a member object.

        ``roles`` is the role cache used to turn role snowflakes into handles.
        """
        if has_fields(data, "roles", list):
            self.roles.clear()
            for role_sfid in data["roles"]:
                if not isinstance(role_sfid, str):
                    logger.error('invalid JSON: not a string: "%s"', dump_json(role_sfid))
                    break
                role = roles.find_role_by_id(role_sfid)
                if role is not None:
                    self.roles.append(role.pawn_id)
                else:
                    logger.error(
                        'can\'t update member role: role id "%s" not cached', role_sfid
                    )

        if "nick" in data:
            nick = data["nick"]
            if isinstance(nick, str):
                self.nickname = nick
            elif nick is None:
                self.nickname = ""
            else:
                logger.error(
                    'invalid JSON: invalid datatype for "nick" in "%s"', dump_json(data)
                )

    def update_presence(self, status: str) -> None:
        """Set the presence from its gateway name; raises ValueError for others."""
        try:
            self.status = _STATUS_BY_NAME[status]
        except KeyError:
            raise ValueError(f"unknown presence status: {status!r}") from None


class Guild:
    """A guild, identified by a small handle and by its snowflake.

    ``network`` provides ``http``, ``channels``, ``users``, ``roles`` and
    ``request_guild_members(guild_snowflake)``.
    """

    def __init__(self, network: Any, pawn_id: int, data: dict[str, Any]) -> None:
        self._network = network
        self.pawn_id = pawn_id
        self.id = ""
        self.name = ""
        self.owner_id = ""
        self.roles: list[int] = []
        self.channels: list[int] = []
        self.members: list[Member] = []
        self._member_ids: set[int] = set()

        snowflake = get_value(data, str, "id")
        if snowflake is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return
        self.id = snowflake

        self.update(data)
        self._load_channels(data)
        self._load_members(data)
        self._load_voice_states(data)
        self._load_presences(data)

    def _load_channels(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "channels", list):
            return
        channels = self._network.channels
        for channel_data in data["channels"]:
            channel_id = channels.add_channel(channel_data, self.pawn_id)
            if channel_id != INVALID_CHANNEL_ID:
                self.add_channel(channel_id)

        # parents can only be resolved once every channel is cached
        for channel_data in data["channels"]:
            sfid = get_value(channel_data, str, "id")
            if sfid is None:
                logger.error('invalid JSON: expected "id" in "%s"', dump_json(channel_data))
                break
            channel = channels.find_channel_by_id(sfid)
            if channel is None or channel.type == ChannelType.GUILD_CATEGORY:
                continue
            channel.update_parent_channel(get_value(channel_data, str, "parent_id") or "")

    def _load_members(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "members", list):
            return
        for member_data in data["members"]:
            if not has_fields(member_data, "user", dict):
                logger.error('invalid JSON: expected "user" in "%s"', dump_json(member_data))
                break
            member = Member(user_id=self._network.users.add_user(member_data["user"]))
            member.update(member_data, self._network.roles)
            self.add_member(member)

        member_count = get_value(data, int, "member_count")
        if member_count is None or member_count != len(self.members):
            self._network.request_guild_members(self.id)

    def _find_member_by_snowflake(self, user_sfid: str) -> Member | None:
        users = self._network.users
        for member in self.members:
            user = users.find_user(member.user_id)
            if user is not None and user.id == user_sfid:
                return member
        return None

    def _load_voice_states(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "voice_states", list):
            return
        for state in data["voice_states"]:
            channel_sfid = get_value(state, str, "channel_id")
            if channel_sfid is None:
                logger.error('invalid JSON: expected "channel.id" in "%s"', dump_json(state))
                break
            user_sfid = get_value(state, str, "user_id")
            if user_sfid is None:
                logger.error('invalid JSON: expected "user.id" in "%s"', dump_json(state))
                break
            channel = self._network.channels.find_channel_by_id(channel_sfid)
            member = self._find_member_by_snowflake(user_sfid)
            if member is not None:
                member.voice_channel = (
                    channel.pawn_id if channel is not None else INVALID_CHANNEL_ID
                )

    def _load_presences(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "presences", list):
            return
        for presence in data["presences"]:
            user_sfid = get_value(presence, str, "user", "id")
            if user_sfid is None:
                logger.error('invalid JSON: expected "user.id" in "%s"', dump_json(presence))
                break
            status = get_value(presence, str, "status")
            if status is None:
                logger.error('invalid JSON: expected "status" in "%s"', dump_json(presence))
                break
            member = self._find_member_by_snowflake(user_sfid)
            if member is not None:
                member.update_presence(status)

    def add_channel(self, channel_id: int) -> None:
        self.channels.append(channel_id)

    def remove_channel(self, channel_id: int) -> None:
        if channel_id in self.channels:
            self.channels.remove(channel_id)

    def add_member(self, member: Member) -> None:
        """Add ``member`` unless its user is already a member."""
        if member.user_id in self._member_ids:
            return
        self._member_ids.add(member.user_id)
        self.members.append(member)

    def remove_member(self, user_id: int) -> None:
        for member in self.members:
            if member.user_id == user_id:
                self.members.remove(member)
                self._member_ids.discard(user_id)
                return

    def _member(self, user_id: int) -> Member | None:
        return next((m for m in self.members if m.user_id == user_id), None)

    def update_member(self, user_id: int, data: dict[str, Any]) -> None:
        member = self._member(user_id)
        if member is not None:
            member.update(data, self._network.roles)

    def update_member_presence(self, user_id: int, status: str) -> None:
        member = self._member(user_id)
        if member is not None:
            member.update_presence(status)

    def update_member_voice_channel(self, user_id: int, channel_id: int) -> None:
        member = self._member(user_id)
        if member is not None:
            member.voice_channel = channel_id

    def add_role(self, role_id: int) -> None:
        self.roles.append(role_id)

    def remove_role(self, role_id: int) -> None:
        if role_id in self.roles:
            self.roles.remove(role_id)

    def update(self, data: dict[str, Any]) -> None:
        """Take over name, owner and roles from a guild object."""
        name = get_value(data, str, "name")
        if name is not None:
            self.name = name
        owner_id = get_value(data, str, "owner_id")
        if owner_id is not None:
            self.owner_id = owner_id

        if not has_fields(data, "roles", list):
            return
        roles = self._network.roles
        for role_data in data["roles"]:
            role_sfid = get_value(role_data, str, "id")
            if role_sfid is None:
                logger.error('invalid JSON: expected "id" in "%s"', dump_json(role_data))
                break
            role = roles.find_role_by_id(role_sfid)
            if role is not None:
                role.update(role_data)
            else:
                self.roles.append(roles.add_role(role_data))

    def set_name(self, name: str) -> None:
        self._network.http.patch(f"/guilds/{self.id}", dump_json({"name": name}))

    def _is_member(self, user: Any) -> bool:
        return user.pawn_id in self._member_ids

    def set_member_nickname(self, user: Any, nickname: str) -> None:
        if not self._is_member(user):
            return
        self._network.http.patch(
            f"/guilds/{self.id}/members/{user.id}", dump_json({"nick": nickname})
        )

    def set_member_voice_channel(self, user: Any, channel_id: str) -> None:
        if not self._is_member(user):
            return
        self._network.http.patch(
            f"/guilds/{self.id}/members/{user.id}", dump_json({"channel_id": channel_id})
        )

    def add_member_role(self, user: Any, role: Any) -> None:
        if not self._is_member(user):
            return
        self._network.http.put(f"/guilds/{self.id}/members/{user.id}/roles/{role.id}")

    def remove_member_role(self, user: Any, role: Any) -> None:
        if not self._is_member(user):
            return
        self._network.http.delete(f"/guilds/{self.id}/members/{user.id}/roles/{role.id}")

    def kick_member(self, user: Any) -> None:
        if not self._is_member(user):
            return
        self._network.http.delete(f"/guilds/{self.id}/members/{user.id}")

    def create_member_ban(self, user: Any, reason: str) -> None:
        if not self._is_member(user):
            return
        self._network.http.put(f"/guilds/{self.id}/bans/{user.id}?reason={reason}")

    def remove_member_ban(self, user: Any) -> None:
        if not self._is_member(user):
            return
        self._network.http.delete(f"/guilds/{self.id}/bans/{user.id}")

    def set_role_position(self, role: Any, position: int) -> None:
        body = dump_json([{"id": role.id, "position": position}])
        self._network.http.patch(f"/guilds/{self.id}/roles", body)

    def _modify_role(self, role: Any, key: str, value: Any) -> None:
        self._network.http.patch(
            f"/guilds/{self.id}/roles/{role.id}", dump_json({key: value})
        )

    def set_role_name(self, role: Any, name: str) -> None:
        self._modify_role(role, "name", name)

    def set_role_permissions(self, role: Any, permissions: int) -> None:
        self._modify_role(role, "permissions", permissions)

    def set_role_color(self, role: Any, color: int) -> None:
        self._modify_role(role, "color", color)

    def set_role_hoist(self, role: Any, hoist: bool) -> None:
        self._modify_role(role, "hoist", hoist)

    def set_role_mentionable(self, role: Any, mentionable: bool) -> None:
        self._modify_role(role, "mentionable", mentionable)

    def delete_role(self, role: Any) -> None:
        self._network.http.delete(f"/guilds/{self.id}/roles/{role.id}")