"""Reading variables from a server configuration file."""

from __future__ import annotations

from collections.abc import Iterable
from os import PathLike


class ServerConfig:
    """Lines of ``name value`` pairs, looked up by exact variable name."""

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines = [self._strip_line_end(line) for line in lines]

    @staticmethod
    def _strip_line_end(line: str) -> str:
        cut = min((pos for pos in (line.find("\r"), line.find("\n")) if pos >= 0), default=-1)
        return line if cut < 0 else line[:cut]

    def get_var(self, name: str) -> str | None:
        """Return the value of the first line starting with ``name`` and a space."""
        prefix = name + " "
        return next(
            (line[len(prefix):] for line in self._lines if line.startswith(prefix)),
            None,
        )

    def get_var_list(self, name: str) -> list[str] | None:
        """Return the value of ``name`` split at every single space."""
        value = self.get_var(name)
        return None if value is None else value.split(" ")

    def get_gamemode_list(self) -> list[str]:
        """Return the names from ``gamemode0``, ``gamemode1`` and so on."""
        gamemodes = []
        counter = 0
        while (value := self.get_var(f"gamemode{counter}")) is not None:
            gamemodes.append(value.split(" ", 1)[0])
            counter += 1
        return gamemodes


def load_config(path: str | PathLike[str] = "server.cfg") -> ServerConfig:
    """Read a configuration file; a file that cannot be read gives an empty config."""
    try:
        with open(path, encoding="utf-8", errors="replace", newline="") as handle:
            content = handle.read()
    except OSError:
        return ServerConfig([])
    return ServerConfig(content.split("\n"))