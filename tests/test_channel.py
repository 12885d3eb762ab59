import json

import pytest

from dcconnect.channel import Channel, ChannelManager, ChannelType
from dcconnect.dispatcher import Dispatcher
from dcconnect.embed import Embed
from dcconnect.ids import INVALID_CHANNEL_ID, INVALID_GUILD_ID, INVALID_MESSAGE_ID
from dcconnect.rest import Response


class FakeHttp:
    def __init__(self):
        self.calls = []

    def post(self, url, content, callback=None):
        self.calls.append(("POST", url, content, callback))

    def patch(self, url, content):
        self.calls.append(("PATCH", url, content, None))

    def delete(self, url):
        self.calls.append(("DELETE", url, "", None))


class FakeGuild:
    def __init__(self, pawn_id, snowflake):
        self.pawn_id = pawn_id
        self.id = snowflake
        self.channels = []

    def add_channel(self, channel_id):
        self.channels.append(channel_id)

    def remove_channel(self, channel_id):
        self.channels.remove(channel_id)


class FakeGuilds:
    def __init__(self, guilds):
        self.guilds = guilds

    def find_guild_by_id(self, sfid):
        return next((g for g in self.guilds if g.id == sfid), None)

    def find_guild(self, pawn_id):
        return next((g for g in self.guilds if g.pawn_id == pawn_id), None)


class FakeMessage:
    def __init__(self, data, persistent):
        self.data = data
        self.persistent = persistent


class FakeMessages:
    def __init__(self):
        self.items = {}
        self.created_message_id = INVALID_MESSAGE_ID
        self.persistent = False

    def create(self, data):
        message_id = len(self.items) + 1
        self.items[message_id] = FakeMessage(data, self.persistent)
        return message_id

    def find(self, message_id):
        return self.items.get(message_id)

    def delete(self, message_id):
        return self.items.pop(message_id, None) is not None


class FakeNetwork:
    def __init__(self):
        self.http = FakeHttp()
        self.dispatcher = Dispatcher()
        self.emitted = []
        self.guild = FakeGuild(3, "g1")
        self.guilds = FakeGuilds([self.guild])
        self.messages = FakeMessages()
        self.channels = None

    def emit(self, name, *args):
        self.emitted.append((name, *args))


@pytest.fixture
def network():
    net = FakeNetwork()
    net.channels = ChannelManager(net)
    return net


def text_channel(sfid="123", **extra):
    return {"id": sfid, "type": 0, "name": "general", "topic": "talk", "position": 2,
            "nsfw": False, **extra}


def test_guild_channel_with_given_guild(network):
    channel = Channel.from_json(network, 1, text_channel(), 9)
    assert channel.guild_id == 9
    assert channel.type is ChannelType.GUILD_TEXT
    assert (channel.name, channel.topic, channel.position) == ("general", "talk", 2)
    assert network.guild.channels == []


def test_guild_channel_looks_up_guild(network):
    channel = Channel.from_json(network, 4, text_channel(guild_id="g1"))
    assert channel.guild_id == network.guild.pawn_id
    assert network.guild.channels == [4]


def test_dm_channel_is_not_updated(network):
    channel = Channel.from_json(network, 1, {"id": "5", "type": 1, "name": "x"})
    assert channel.type is ChannelType.DM
    assert channel.name == ""
    assert channel.guild_id == INVALID_GUILD_ID


def test_channel_without_type_is_empty(network):
    channel = Channel.from_json(network, 1, {"id": "5"})
    assert channel.id == ""
    assert channel.type is None


def test_add_channel_keeps_handle_for_same_snowflake(network):
    manager = network.channels
    first = manager.add_channel(text_channel("a"), 3)
    again = manager.add_channel(text_channel("a"), 3)
    other = manager.add_channel(text_channel("b"), 3)
    assert first == again
    assert other != first
    assert manager.find_channel(other).id == "b"


def test_add_channel_without_id_is_invalid(network):
    assert network.channels.add_channel({"type": 0}) == INVALID_CHANNEL_ID


def test_add_dm_channel(network):
    manager = network.channels
    channel_id = manager.add_dm_channel({"channel_id": "dm1"})
    channel = manager.find_channel(channel_id)
    assert channel.type is ChannelType.DM
    assert manager.add_dm_channel({"channel_id": "dm1"}) == channel_id
    assert manager.add_dm_channel({}) == INVALID_CHANNEL_ID


def test_find_by_name(network):
    manager = network.channels
    channel_id = manager.add_channel(text_channel("a"), 3)
    assert manager.find_channel_by_name("general").pawn_id == channel_id
    assert manager.find_channel_by_name("missing") is None


def test_set_name_sends_patch(network):
    channel = Channel(network, 1, "123", ChannelType.GUILD_TEXT)
    channel.set_name("new")
    method, url, content, _ = network.http.calls[-1]
    assert (method, url) == ("PATCH", "/channels/123")
    assert json.loads(content) == {"name": "new"}


@pytest.mark.parametrize(
    "call, expected",
    [
        (lambda c: c.set_topic("t"), {"topic": "t"}),
        (lambda c: c.set_position(4), {"position": 4}),
        (lambda c: c.set_nsfw(True), {"nsfw": True}),
    ],
)
def test_modifications(network, call, expected):
    channel = Channel(network, 1, "123", ChannelType.GUILD_TEXT)
    call(channel)
    assert json.loads(network.http.calls[-1][2]) == expected


def test_parent_category_only_for_categories(network):
    channel = Channel(network, 1, "123", ChannelType.GUILD_TEXT)
    channel.set_parent_category(Channel(network, 2, "77", ChannelType.GUILD_TEXT))
    assert network.http.calls == []
    channel.set_parent_category(Channel(network, 3, "78", ChannelType.GUILD_CATEGORY))
    assert json.loads(network.http.calls[-1][2]) == {"parent_id": "78"}


def test_delete_sends_delete(network):
    Channel(network, 1, "123", ChannelType.GUILD_TEXT).delete()
    assert network.http.calls[-1][:2] == ("DELETE", "/channels/123")


def test_send_message_callback_sees_created_message(network):
    channel = Channel(network, 1, "123", ChannelType.GUILD_TEXT)
    seen = []
    channel.send_message("hi", lambda mid: seen.append((mid, network.messages.created_message_id)))
    method, url, content, on_response = network.http.calls[-1]
    assert (method, url) == ("POST", "/channels/123/messages")
    assert json.loads(content) == {"content": "hi"}
    on_response(Response(200, "OK", json.dumps({"id": "m"})))
    network.dispatcher.process()
    assert len(seen) == 1
    assert seen[0][0] == seen[0][1]
    assert network.messages.created_message_id == INVALID_MESSAGE_ID
    assert network.messages.items == {}


def test_send_message_failure_dispatches_nothing(network):
    channel = Channel(network, 1, "123", ChannelType.GUILD_TEXT)
    channel.send_message("hi", lambda mid: None)
    network.http.calls[-1][3](Response(404, "Not Found", "{}"))
    assert len(network.dispatcher) == 0


def test_send_message_without_callback(network):
    Channel(network, 1, "123", ChannelType.GUILD_TEXT).send_message("hi")
    assert network.http.calls[-1][3] is None


def test_send_embedded_message_body(network):
    embed = Embed(title="t")
    Channel(network, 1, "123", ChannelType.GUILD_TEXT).send_embedded_message(embed, "hi")
    body = json.loads(network.http.calls[-1][2])
    assert body == {"content": "hi", "embeds": [embed.to_json()]}


def test_update_parent_channel(network):
    manager = network.channels
    category_id = manager.add_channel({"id": "cat", "type": 4, "name": "c"}, 3)
    channel = manager.find_channel(manager.add_channel(text_channel("a"), 3))
    channel.update_parent_channel("cat")
    assert channel.parent_id == category_id
    channel.update_parent_channel("unknown")
    assert channel.parent_id == category_id
    channel.update_parent_channel("")
    assert channel.parent_id == INVALID_CHANNEL_ID


def test_on_ready(network):
    manager = network.channels
    assert manager.is_initialized() is False
    manager.on_ready({"private_channels": [{"id": "p", "type": 1}]})
    assert manager.is_initialized() is True
    assert manager.find_channel_by_id("p").type is ChannelType.DM


def test_on_ready_without_private_channels_still_counts(network):
    network.channels.on_ready({})
    assert network.channels.is_initialized() is True
    assert network.channels.find_channel_by_id("p") is None


def test_on_channel_create_emits(network):
    network.channels.on_channel_create(text_channel("a", guild_id="g1"))
    assert network.emitted == []
    network.dispatcher.process()
    channel = network.channels.find_channel_by_id("a")
    assert network.emitted == [("DCC_OnChannelCreate", channel.pawn_id)]


def test_on_channel_update(network):
    manager = network.channels
    category_id = manager.add_channel({"id": "cat", "type": 4}, 3)
    channel_id = manager.add_channel(text_channel("a"), 3)
    manager.on_channel_update({"id": "a", "name": "renamed", "parent_id": "cat"})
    network.dispatcher.process()
    channel = manager.find_channel(channel_id)
    assert channel.name == "renamed"
    assert channel.parent_id == category_id
    assert network.emitted == [("DCC_OnChannelUpdate", channel_id)]


def test_on_channel_delete_removes_from_guild(network):
    manager = network.channels
    manager.on_channel_create(text_channel("a", guild_id="g1"))
    network.dispatcher.process()
    channel_id = manager.find_channel_by_id("a").pawn_id
    manager.on_channel_delete({"id": "a"})
    network.dispatcher.process()
    assert manager.find_channel(channel_id) is None
    assert network.guild.channels == []
    assert network.emitted[-1] == ("DCC_OnChannelDelete", channel_id)


def test_create_guild_channel(network):
    manager = network.channels
    seen = []
    manager.create_guild_channel(
        network.guild, "voice", ChannelType.GUILD_VOICE,
        lambda cid: seen.append((cid, manager.created_guild_channel_id)),
    )
    method, url, content, on_response = network.http.calls[-1]
    assert (method, url) == ("POST", "/guilds/g1/channels")
    assert json.loads(content) == {"name": "voice", "type": 2}
    on_response(Response(201, "Created", json.dumps({"id": "v", "type": 2, "guild_id": "g1"})))
    network.dispatcher.process()
    channel = manager.find_channel_by_id("v")
    assert seen == [(channel.pawn_id, channel.pawn_id)]
    assert manager.created_guild_channel_id == INVALID_CHANNEL_ID