"""The hub that ties the REST client, the caches and gateway events together."""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from .channel import ChannelManager
from .dispatcher import Dispatcher
from .embed import EmbedManager
from .emoji import EmojiManager
from .guild_manager import GuildManager
from .message import MessageManager
from .rest import Response
from .role import RoleManager
from .user import UserManager

logger = logging.getLogger(__name__)

_GATEWAY_PROTOCOL = "wss://"

EmitCallback = Callable[..., object]


def strip_gateway_protocol(url: str) -> str:
    """Remove the first ``wss://`` from a gateway URL."""
    return url.replace(_GATEWAY_PROTOCOL, "", 1)


class Network:
    """Owns the caches and routes gateway events to them.

    Script callbacks are raised through ``emit(name, *args)``. Commands meant
    for the gateway connection are queued in ``gateway_commands`` as
    ``(kind, payload)`` pairs for that connection to send.
    """

    def __init__(self, http: Any, emit: EmitCallback | None = None) -> None:
        self.http = http
        self._emit_callback = emit
        self.dispatcher = Dispatcher()
        self.roles = RoleManager()
        self.users = UserManager()
        self.emojis = EmojiManager()
        self.embeds = EmbedManager()
        self.channels = ChannelManager(self)
        self.guilds = GuildManager(self)
        self.messages = MessageManager(self)
        self.status = "online"
        self.activity = ""
        self.gateway_commands: deque[tuple[str, dict[str, Any]]] = deque()
        self._handlers: dict[str, tuple[Callable[[dict[str, Any]], None], ...]] = {
            "READY": (self.users.on_ready, self.channels.on_ready, self.guilds.on_ready),
            "CHANNEL_CREATE": (self.channels.on_channel_create,),
            "CHANNEL_UPDATE": (self.channels.on_channel_update,),
            "CHANNEL_DELETE": (self.channels.on_channel_delete,),
            "GUILD_CREATE": (self.guilds.on_guild_create,),
            "GUILD_DELETE": (self.guilds.on_guild_delete,),
            "GUILD_UPDATE": (self.guilds.on_guild_update,),
            "GUILD_MEMBER_ADD": (self.guilds.on_guild_member_add,),
            "GUILD_MEMBER_REMOVE": (self.guilds.on_guild_member_remove,),
            "GUILD_MEMBER_UPDATE": (self.guilds.on_guild_member_update,),
            "GUILD_ROLE_CREATE": (self.guilds.on_guild_role_create,),
            "GUILD_ROLE_DELETE": (self.guilds.on_guild_role_delete,),
            "GUILD_ROLE_UPDATE": (self.guilds.on_guild_role_update,),
            "PRESENCE_UPDATE": (self.guilds.on_presence_update,),
            "GUILD_MEMBERS_CHUNK": (self.guilds.on_guild_members_chunk,),
            "VOICE_STATE_UPDATE": (self.guilds.on_voice_state_update,),
            "MESSAGE_CREATE": (self.messages.on_message_create,),
            "MESSAGE_DELETE": (self.messages.on_message_delete,),
            "MESSAGE_REACTION_ADD": (self.messages.on_reaction_add,),
            "MESSAGE_REACTION_REMOVE": (self.messages.on_reaction_remove,),
            "MESSAGE_REACTION_REMOVE_ALL": (self.messages.on_reaction_remove_all,),
            "MESSAGE_REACTION_REMOVE_EMOJI": (self.messages.on_reaction_remove_emoji,),
        }

    def set_emit(self, emit: EmitCallback | None) -> None:
        """Replace the callback that receives script events."""
        self._emit_callback = emit

    def emit(self, name: str, *args: Any) -> None:
        """Raise the script callback ``name`` with ``args``."""
        if self._emit_callback is not None:
            self._emit_callback(name, *args)

    def initialize(self, on_gateway: Callable[[str], object]) -> None:
        """Ask the API for the gateway address and pass it, without protocol, on."""

        def on_response(response: Response) -> None:
            if response.status != 200:
                logger.error(
                    "Can't retrieve Discord gateway URL: %s (%d)",
                    response.reason, response.status,
                )
                return
            url = json.loads(response.body)["url"]
            on_gateway(strip_gateway_protocol(url))

        self.http.get("/gateway", on_response)

    def update_status(self, status: str, activity: str) -> None:
        """Record the bot's presence and queue it for the gateway."""
        self.status = status
        self.activity = activity
        self.gateway_commands.append(
            ("update_status", {"status": status, "activity": activity})
        )

    def request_guild_members(self, guild_id: str) -> None:
        """Queue a request for the full member list of a guild."""
        self.gateway_commands.append(("request_guild_members", {"guild_id": guild_id}))

    def handle_event(self, name: str, data: dict[str, Any]) -> bool:
        """Route a gateway event to its handlers; False if none is registered."""
        handlers = self._handlers.get(name)
        if handlers is None:
            return False
        for handler in handlers:
            handler(data)
        return True