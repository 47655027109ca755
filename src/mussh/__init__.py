"""mussh: run a named command on a named group of SSH hosts in parallel."""

__version__ = "0.3.0"

from .config import Config, Defaults, find_config, load_config
from .dispatcher import Dispatcher
from .engine import execute
from .errors import ConfigError, MusshError, ResolveError, UnknownCommand, UnknownGroup, UnknownHost
from .models import Catalog, HostOutcome, HostSpec, HostStatus, RunStatus, WorkItem
from .report import RunReport, summarize
from .resolver import resolve
from .session import HostSession

__all__ = [
    "Catalog",
    "Config",
    "ConfigError",
    "Defaults",
    "Dispatcher",
    "HostOutcome",
    "HostSession",
    "HostSpec",
    "HostStatus",
    "MusshError",
    "ResolveError",
    "RunReport",
    "RunStatus",
    "UnknownCommand",
    "UnknownGroup",
    "UnknownHost",
    "WorkItem",
    "execute",
    "find_config",
    "load_config",
    "resolve",
    "summarize",
]
