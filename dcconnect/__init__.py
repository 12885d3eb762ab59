"""Discord bot connector: in-memory cache of guilds, channels, users, roles and messages, gateway event routing and a rate-limited REST queue."""

__version__ = "0.3.6"