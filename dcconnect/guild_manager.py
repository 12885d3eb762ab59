"""The guild cache, kept current by gateway events."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import Any

from .guild import Guild, Member
from .ids import (
    INVALID_CHANNEL_ID,
    INVALID_GUILD_ID,
    INVALID_ROLE_ID,
    next_free_id,
)
from .jsonutil import dump_json, get_value, has_fields
from .rest import Response

logger = logging.getLogger(__name__)


class GuildManager:
    """Cache of guilds keyed by handle.

    ``network`` provides ``http``, ``dispatcher``, ``emit(name, *args)``,
    ``channels``, ``users``, ``roles`` and ``request_guild_members``.
    """

    def __init__(self, network: Any) -> None:
        self._network = network
        self._guilds: dict[int, Guild] = {}
        self._lock = threading.Lock()
        self._init_value = 1
        self._initialized = 0
        self._is_initialized = False
        self.created_role_id = INVALID_ROLE_ID

    # gateway events

    def on_ready(self, data: dict[str, Any]) -> None:
        """Handle READY: expect one GUILD_CREATE for every guild it lists."""
        if not has_fields(data, "guilds", list):
            logger.critical('invalid JSON: expected "guilds" in "%s"', dump_json(data))
            return
        with self._lock:
            self._init_value += len(data["guilds"])
            self._initialized += 1

    def on_guild_create(self, data: dict[str, Any]) -> None:
        """Cache the guild; once startup is over, also tell the script."""
        if not self._is_initialized:
            self.add_guild(data)
            with self._lock:
                self._initialized += 1
            return

        def run() -> None:
            guild_id = self.add_guild(data)
            if guild_id == INVALID_GUILD_ID:
                return
            self._network.emit("DCC_OnGuildCreate", guild_id)

        self._network.dispatcher.dispatch(run)

    def on_guild_delete(self, data: dict[str, Any]) -> None:
        sfid = get_value(data, str, "id")
        if sfid is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return

        def run() -> None:
            guild = self.find_guild_by_id(sfid)
            if guild is None:
                logger.warning('can\'t delete guild: guild id "%s" not cached', sfid)
                return
            self._network.emit("DCC_OnGuildDelete", guild.pawn_id)
            self.delete_guild(guild)

        self._network.dispatcher.dispatch(run)

    def on_guild_update(self, data: dict[str, Any]) -> None:
        sfid = get_value(data, str, "id")
        if sfid is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return

        def run() -> None:
            guild = self.find_guild_by_id(sfid)
            if guild is None:
                logger.error('can\'t update guild: guild id "%s" not cached', sfid)
                return
            guild.update(data)
            self._network.emit("DCC_OnGuildUpdate", guild.pawn_id)

        self._network.dispatcher.dispatch(run)

    def _guild_for_event(self, data: dict[str, Any], action: str) -> Guild | None:
        guild_sfid = data["guild_id"]
        guild = self.find_guild_by_id(guild_sfid)
        if guild is None:
            logger.error('can\'t %s: guild id "%s" not cached', action, guild_sfid)
        return guild

    def _user_for_event(self, user_sfid: str, action: str) -> Any:
        user = self._network.users.find_user_by_id(user_sfid)
        if user is None:
            logger.error('can\'t %s: user id "%s" not cached', action, user_sfid)
        return user

    def on_guild_member_add(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "guild_id", str, "user", dict, "roles", list):
            logger.error(
                'invalid JSON: expected "guild_id", "user" and "roles" in "%s"',
                dump_json(data),
            )
            return

        def run() -> None:
            guild = self._guild_for_event(data, "add guild member")
            if guild is None:
                return
            user_id = self._network.users.add_user(data["user"])
            member = Member(user_id=user_id)
            member.update(data, self._network.roles)
            guild.add_member(member)
            self._network.emit("DCC_OnGuildMemberAdd", guild.pawn_id, user_id)

        self._network.dispatcher.dispatch(run)

    def on_guild_member_remove(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "guild_id", str, "user", "id", str):
            logger.error(
                'invalid JSON: expected "guild_id" and "user.id" in "%s"', dump_json(data)
            )
            return

        def run() -> None:
            guild = self._guild_for_event(data, "remove guild member")
            if guild is None:
                return
            user = self._user_for_event(data["user"]["id"], "remove guild member")
            if user is None:
                return
            self._network.emit("DCC_OnGuildMemberRemove", guild.pawn_id, user.pawn_id)
            guild.remove_member(user.pawn_id)

        self._network.dispatcher.dispatch(run)

    def on_guild_member_update(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "guild_id", str, "user", "id", str):
            logger.error(
                'invalid JSON: expected "guild_id" and "user.id" in "%s"', dump_json(data)
            )
            return

        def run() -> None:
            guild = self._guild_for_event(data, "update guild member")
            if guild is None:
                return
            user = self._user_for_event(data["user"]["id"], "update guild member")
            if user is None:
                return
            guild.update_member(user.pawn_id, data)
            user.update(data["user"])
            self._network.emit("DCC_OnGuildMemberUpdate", guild.pawn_id, user.pawn_id)

        self._network.dispatcher.dispatch(run)

    def on_guild_role_create(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "guild_id", str, "role", dict):
            logger.error(
                'invalid JSON: expected "guild_id" and "role" in "%s"', dump_json(data)
            )
            return

        def run() -> None:
            guild = self._guild_for_event(data, "add guild role")
            if guild is None:
                return
            role_id = self._network.roles.add_role(data["role"])
            guild.add_role(role_id)
            self._network.emit("DCC_OnGuildRoleCreate", guild.pawn_id, role_id)

        self._network.dispatcher.dispatch(run)

    def on_guild_role_delete(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "guild_id", str, "role_id", str):
            logger.error(
                'invalid JSON: expected "guild_id" and "role_id" in "%s"', dump_json(data)
            )
            return

        def run() -> None:
            guild = self._guild_for_event(data, "delete guild role")
            if guild is None:
                return
            roles = self._network.roles
            role = roles.find_role_by_id(data["role_id"])
            if role is None:
                logger.error(
                    'can\'t delete guild role: role id "%s" not cached', data["role_id"]
                )
                return
            self._network.emit("DCC_OnGuildRoleDelete", guild.pawn_id, role.pawn_id)
            guild.remove_role(role.pawn_id)
            roles.remove_role(role)

        self._network.dispatcher.dispatch(run)

    def on_guild_role_update(self, data: dict[str, Any]) -> None:
        if not has_fields(data, "guild_id", str, "role", "id", str):
            logger.error(
                'invalid JSON: expected "guild_id" and "role.id" in "%s"', dump_json(data)
            )
            return

        def run() -> None:
            guild = self._guild_for_event(data, "update guild role")
            if guild is None:
                return
            role_sfid = data["role"]["id"]
            role = self._network.roles.find_role_by_id(role_sfid)
            if role is None:
                logger.error('can\'t update guild role: role id "%s" not cached', role_sfid)
                return
            role.update(data["role"])
            self._network.emit("DCC_OnGuildRoleUpdate", guild.pawn_id, role.pawn_id)

        self._network.dispatcher.dispatch(run)

    def on_presence_update(self, data: dict[str, Any]) -> None:
        def run() -> None:
            guild_sfid = get_value(data, str, "guild_id")
            if guild_sfid is None:
                logger.error('invalid JSON: expected "guild_id" in "%s"', dump_json(data))
                return
            user_sfid = get_value(data, str, "user", "id")
            if user_sfid is None:
                logger.error('invalid JSON: expected "user.id" in "%s"', dump_json(data))
                return
            status = get_value(data, str, "status")
            if status is None:
                logger.error('invalid JSON: expected "status" in "%s"', dump_json(data))
                return
            guild = self.find_guild_by_id(guild_sfid)
            if guild is None:
                logger.error(
                    'can\'t update guild member presence: guild id "%s" not cached',
                    guild_sfid,
                )
                return
            user = self._user_for_event(user_sfid, "update guild member presence")
            if user is None:
                return
            guild.update_member_presence(user.pawn_id, status)
            self._network.emit("DCC_OnGuildMemberUpdate", guild.pawn_id, user.pawn_id)

        self._network.dispatcher.dispatch(run)

    def on_guild_members_chunk(self, data: dict[str, Any]) -> None:
        guild_sfid = get_value(data, str, "guild_id")
        if guild_sfid is None:
            logger.error('invalid JSON: expected "guild_id" in "%s"', dump_json(data))
            return
        if not has_fields(data, "members", list):
            logger.error('invalid JSON: expected array "members" in "%s"', dump_json(data))

        def run() -> None:
            guild = self.find_guild_by_id(guild_sfid)
            if guild is None:
                logger.error(
                    'can\'t sync offline guild members: guild id "%s" not cached', guild_sfid
                )
                return
            members = data.get("members")
            if not isinstance(members, list):
                return
            for member_data in members:
                if not has_fields(member_data, "user", dict):
                    logger.error(
                        'invalid JSON: expected "user" in "%s"', dump_json(member_data)
                    )
                    break
                member = Member(user_id=self._network.users.add_user(member_data["user"]))
                member.update(member_data, self._network.roles)
                guild.add_member(member)

        self._network.dispatcher.dispatch(run)

    def on_voice_state_update(self, data: dict[str, Any]) -> None:
        if not has_fields(
            data, "guild_id", str, "user_id", str, "channel_id", str, None
        ):
            logger.error(
                'invalid JSON: expected "guild_id", "user_id" and "channel_id" in "%s"',
                dump_json(data),
            )
            return

        def run() -> None:
            guild = self._guild_for_event(data, "update guild member voice channel")
            if guild is None:
                return
            user = self._user_for_event(data["user_id"], "update guild member voice channel")
            if user is None:
                return
            channel_sfid = data["channel_id"]
            channel_id = INVALID_CHANNEL_ID
            if channel_sfid is not None:
                channel = self._network.channels.find_channel_by_id(channel_sfid)
                if channel is None:
                    logger.error(
                        'can\'t update guild member voice channel: channel id "%s" not cached',
                        channel_sfid,
                    )
                    return
                channel_id = channel.pawn_id
            guild.update_member_voice_channel(user.pawn_id, channel_id)
            self._network.emit(
                "DCC_OnGuildMemberVoiceUpdate", guild.pawn_id, user.pawn_id, channel_id
            )

        self._network.dispatcher.dispatch(run)

    # state

    def is_initialized(self) -> bool:
        """Whether READY and every startup GUILD_CREATE have arrived."""
        with self._lock:
            if not self._is_initialized and self._initialized == self._init_value:
                self._is_initialized = True
            return self._is_initialized

    def create_guild_role(
        self,
        guild: Guild,
        name: str,
        callback: Callable[[int], object] | None = None,
    ) -> None:
        """Create a role in ``guild``; ``callback`` gets the new role's handle."""
        body = dump_json({"name": name})
        guild_id = guild.pawn_id

        def on_response(response: Response) -> None:
            logger.debug(
                "role create response: status %d; body: %s; add: %s",
                response.status, response.body, response.additional_data,
            )
            if response.status // 100 != 2:
                return
            target = self.find_guild(guild_id)
            if target is None:
                logger.error("lost cached guild between network calls")
                return
            role_id = self._network.roles.add_role(json.loads(response.body))
            target.add_role(role_id)
            if callback is None:
                return

            def run() -> None:
                self.created_role_id = role_id
                try:
                    callback(role_id)
                finally:
                    self.created_role_id = INVALID_ROLE_ID

            self._network.dispatcher.dispatch(run)

        self._network.http.post(f"/guilds/{guild.id}/roles", body, on_response)

    def add_guild(self, data: dict[str, Any]) -> int:
        """Cache a guild; returns the invalid handle if it has no id or is cached."""
        sfid = get_value(data, str, "id")
        if sfid is None:
            logger.error('invalid JSON: expected "id" in "%s"', dump_json(data))
            return INVALID_GUILD_ID
        if self.find_guild_by_id(sfid) is not None:
            # expected after a gateway reconnect, so not an error
            return INVALID_GUILD_ID
        guild_id = next_free_id(self._guilds)
        self._guilds[guild_id] = Guild(self._network, guild_id, data)
        logger.info("successfully created guild with id '%d'", guild_id)
        return guild_id

    def delete_guild(self, guild: Guild) -> None:
        self._guilds.pop(guild.pawn_id, None)

    def guild_ids(self) -> list[int]:
        return sorted(self._guilds)

    def find_guild(self, guild_id: int) -> Guild | None:
        return self._guilds.get(guild_id)

    def find_guild_by_name(self, name: str) -> Guild | None:
        return next((g for _, g in sorted(self._guilds.items()) if g.name == name), None)

    def find_guild_by_id(self, sfid: str) -> Guild | None:
        return next((g for _, g in sorted(self._guilds.items()) if g.id == sfid), None)