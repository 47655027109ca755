"""Data model shared by the resolver, sessions and the run report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


class HostStatus(Enum):
    """Status of a host's execution."""

    PENDING = "pending"
    CONNECTING = "connecting"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    CONNECTION_ERROR = "connection-error"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self not in _PROGRESS

    @property
    def ok(self) -> bool:
        return self in (HostStatus.SUCCESS, HostStatus.SKIPPED)


_PROGRESS = frozenset({HostStatus.PENDING, HostStatus.CONNECTING, HostStatus.RUNNING})


class RunStatus(Enum):
    """Aggregate status of a run."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class HostSpec:
    """Connection parameters and command aliases for a single host."""

    name: str
    hostname: str
    username: str
    port: int = 22
    pem: Path | None = None
    alias: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "alias", _frozen(self.alias))

    @property
    def address(self) -> str:
        return f"{self.username}@{self.hostname}:{self.port}"


@dataclass(frozen=True)
class Catalog:
    """Read-only groups, hosts and commands known to a run.

    ``groups`` maps a group name to an ordered tuple of host names,
    ``hosts`` maps a host name to its :class:`HostSpec` and ``commands``
    maps a command name to the literal command string.
    """

    groups: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    hosts: Mapping[str, HostSpec] = field(default_factory=dict)
    commands: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        groups = {name: tuple(members) for name, members in self.groups.items()}
        object.__setattr__(self, "groups", _frozen(groups))
        object.__setattr__(self, "hosts", _frozen(self.hosts))
        object.__setattr__(self, "commands", _frozen(self.commands))


@dataclass(frozen=True)
class WorkItem:
    """One resolved (host, effective command) pair."""

    host: HostSpec
    command: str


@dataclass
class HostOutcome:
    """Terminal result of running one work item."""

    host: str
    address: str
    command: str
    status: HostStatus
    exit_status: int | None = None
    stdout: bytes = b""
    stderr: bytes = b""
    elapsed: float = 0.0
    error: str | None = None

    @classmethod
    def for_item(cls, item: WorkItem, status: HostStatus, **kwargs) -> HostOutcome:
        return cls(
            host=item.host.name,
            address=item.host.address,
            command=item.command,
            status=status,
            **kwargs,
        )

    @property
    def ok(self) -> bool:
        return self.status.ok

    @property
    def reason(self) -> str:
        """Short description of why this host did not succeed."""
        if self.status == HostStatus.FAILURE:
            if self.exit_status is None:
                return self.error or "command terminated without an exit status"
            return f"exit status {self.exit_status}"
        if self.status == HostStatus.CONNECTION_ERROR:
            return f"connection error: {self.error}" if self.error else "connection error"
        if self.status == HostStatus.TIMEOUT:
            return self.error or "timed out"
        if self.status == HostStatus.CANCELLED:
            return "cancelled"
        return self.status.value
