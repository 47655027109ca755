"""Exceptions raised by mussh."""

from __future__ import annotations


class MusshError(Exception):
    """Base class for mussh errors."""


class ConfigError(MusshError, ValueError):
    """The catalog document is malformed."""


class ResolveError(MusshError, LookupError):
    """A (group, command) pair cannot be turned into work items."""

    kind = "entry"

    def __init__(self, name: str):
        super().__init__(f"Unknown {self.kind}: {name!r}")
        self.name = name


class UnknownGroup(ResolveError):
    kind = "group"


class UnknownCommand(ResolveError):
    kind = "command"


class UnknownHost(ResolveError):
    kind = "host"

    def __init__(self, name: str, group: str):
        super().__init__(name)
        self.group = group
        self.args = (f"Unknown host {name!r} in group {group!r}",)
