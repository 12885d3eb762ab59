# dcconnect

`dcconnect` keeps a local cache of what a Discord bot can see and queues
the REST calls it makes. The cache covers guilds, channels, users, roles,
messages, emojis and embeds. Discord identifies objects by snowflake
strings; the package gives each cached object a small integer handle as
well, starting at 1, with 0 meaning "none".

Gateway events are passed in by name and payload. The managers update the
cache and queue follow-up work on a dispatcher, which your own code runs
when it is ready. Script-facing events such as `DCC_OnMessageCreate` or
`DCC_OnGuildMemberAdd` are raised through an `emit(name, *args)` callback
that you supply.

## Installation

```
pip install dcconnect
```

The package uses only the standard library. To run the test suite:

```
pip install "dcconnect[test]"
pytest
```

## Modules

- `dcconnect.dispatcher.Dispatcher`: a thread-safe queue of callables.
  `dispatch(func)` may be called from any thread; `process()` runs
  everything queued, in order. `len()` gives the number of pending entries.
- `dcconnect.rest`: `HttpClient` builds authorised requests under
  `/api/v10` (`prepare_request`) and queues them with `get`, `post`,
  `put`, `patch` and `delete`. `process_queue()` sends what is queued, or
  `start()` does so on a background thread until `close()`. Responses reach
  callbacks as `Response(status, reason, body, additional_data)`.
  `RateLimiter` follows the `X-RateLimit-*` headers per bucket; routes are
  matched to buckets with `reduce_url`, and `parse_reset_after` reads the
  reset header. A network error triggers up to three reconnect attempts
  before a request is discarded.
- `dcconnect.network.Network`: owns the dispatcher and all managers
  (`roles`, `users`, `emojis`, `embeds`, `channels`, `guilds`,
  `messages`). `handle_event(name, data)` routes a gateway event to its
  handlers and returns `False` for events it does not know.
  `initialize(on_gateway)` asks the API for the gateway address and passes
  it on without its `wss://` prefix (`strip_gateway_protocol`).
  `update_status` and `request_guild_members` put commands on
  `gateway_commands` for a gateway connection to send.
- Managers: `RoleManager`, `UserManager`, `ChannelManager`,
  `dcconnect.guild_manager.GuildManager`, `MessageManager`,
  `EmojiManager` and `EmbedManager`, each with `find_*` lookups by handle,
  by snowflake and, where it makes sense, by name. `Channel`, `Guild` and
  `Message` objects have methods that queue the matching REST calls
  (send a message, rename, kick a member, add a reaction, edit, ...).
- `dcconnect.embed.Embed`: title, description, URLs, colour and fields;
  `to_json()` gives the embed object for the message API.
- `dcconnect.bot.Bot`: the bot's own presence (`PresenceStatus`),
  activity, nickname, typing indicator and direct-message channels.
- `dcconnect.config.load_config(path)` reads a `server.cfg`-style file of
  `name value` lines into a `ServerConfig` with `get_var(name)`,
  `get_var_list(name)` and `get_gamemode_list()`. A file that cannot be
  read gives an empty configuration.
- `dcconnect.jsonutil` and `dcconnect.ids`: helpers for reading JSON
  payloads, converting numbers to and from text, and handing out handles.

## Example

```python
from dcconnect.network import Network
from dcconnect.rest import HttpClient

events = []
client = HttpClient("token")  # nothing is sent until the queue is processed
network = Network(client, emit=lambda name, *args: events.append((name, args)))

network.handle_event("READY", {
    "user": {"id": "1", "username": "bot", "discriminator": "0001"},
    "private_channels": [],
    "guilds": [],
})
network.handle_event("MESSAGE_CREATE", {
    "id": "500",
    "author": {"id": "1"},
    "channel_id": "900",
    "content": "hello",
    "tts": False,
    "mention_everyone": False,
})
network.dispatcher.process()
print(events)  # [('DCC_OnMessageCreate', (1,))]

embed_id = network.embeds.add_embed("Status", "All systems normal", color=0x00FF00)
embed = network.embeds.find_embed(embed_id)
embed.add_field("Players", "12", True)
network.channels.find_channel(1).send_embedded_message(embed, "update")
```

To actually send queued requests, call `client.process_queue()` or run
`client.start()` and later `client.close()`.

## What it does not do

- It does not open or keep the gateway (WebSocket) connection. Events must
  be fed to `Network.handle_event` by your own connection, and the
  commands collected in `Network.gateway_commands` must be sent by it.
- It has no slash-command or interaction support.
- It does not host or call scripts itself; script callbacks are only
  raised through the `emit` callback you pass to `Network`.
- Nothing is stored on disk; the cache lives in memory only.