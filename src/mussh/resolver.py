"""Turn a (group, command) pair into the work items of a run."""

from __future__ import annotations

from .errors import UnknownCommand, UnknownGroup, UnknownHost
from .models import Catalog, HostSpec, WorkItem


def effective_command(host: HostSpec, command_name: str, base: str) -> str:
    """Return the host's alias for ``command_name`` if it has one, else ``base``."""
    return host.alias.get(command_name, base)


def resolve(group_name: str, command_name: str, catalog: Catalog) -> list[WorkItem]:
    """Resolve a group and command against the catalog.

    Work items come back in the group's declared host order. Raises
    UnknownGroup, UnknownCommand or UnknownHost before anything is run.
    """
    try:
        host_names = catalog.groups[group_name]
    except KeyError:
        raise UnknownGroup(group_name) from None

    try:
        base = catalog.commands[command_name]
    except KeyError:
        raise UnknownCommand(command_name) from None

    items = []
    for host_name in host_names:
        host = catalog.hosts.get(host_name)
        if host is None:
            raise UnknownHost(host_name, group_name)
        items.append(WorkItem(host=host, command=effective_command(host, command_name, base)))

    return items
