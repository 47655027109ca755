"""Catalog loader for mussh."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .models import Catalog, HostSpec

CONFIG_FILE_NAME = "mussh.yaml"
DOT_DIR = ".mussh"


@dataclass
class Defaults:
    """Default values that can be overridden per host or on the command line."""

    username: str = "root"
    port: int = 22
    pem: Path | None = None
    timeout: float | None = 30
    connect_timeout: float | None = 10
    concurrency: int | None = None
    known_hosts: Path | None = None


@dataclass
class Config:
    """Loaded configuration: the catalog plus run settings."""

    catalog: Catalog
    defaults: Defaults = field(default_factory=Defaults)
    log_dir: Path = field(default_factory=lambda: Path("~/.mussh/logs").expanduser())
    source_path: Path | None = None  # File the catalog was loaded from


def search_paths(explicit: str | Path | None = None) -> list[Path]:
    """Candidate config files, most specific first."""
    paths = []
    if explicit:
        paths.append(Path(explicit).expanduser())
    paths.append(Path.cwd() / DOT_DIR / CONFIG_FILE_NAME)
    paths.append(Path.home() / DOT_DIR / CONFIG_FILE_NAME)
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            paths.append(Path(appdata) / DOT_DIR / CONFIG_FILE_NAME)
    else:
        paths.append(Path("/etc/mussh") / CONFIG_FILE_NAME)
    return paths


def find_config(explicit: str | Path | None = None) -> Path:
    """Return the first config file that exists.

    An explicit path that does not exist is an error on its own; the
    default locations are only searched when no path was given.
    """
    if explicit:
        path = Path(explicit).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return path

    candidates = search_paths()
    for path in candidates:
        if path.is_file():
            return path
    tried = ", ".join(str(p) for p in candidates)
    raise FileNotFoundError(f"No config file found (tried {tried})")


def load_config(config_path: str | Path) -> Config:
    """Load and validate configuration from a YAML file."""
    config_path = Path(config_path).expanduser().resolve()

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    config = parse_config(raw or {})
    config.source_path = config_path
    return config


def _optional_path(value: Any) -> Path | None:
    return Path(value).expanduser() if value else None


def _mapping(raw: dict[str, Any], *keys: str) -> dict[str, Any]:
    """Return the first of ``keys`` present in ``raw`` as a mapping."""
    for key in keys:
        if key in raw:
            value = raw[key] or {}
            if not isinstance(value, dict):
                raise ConfigError(f"'{key}' must be a mapping")
            return value
    return {}


def _optional_seconds(defaults_raw: dict[str, Any], key: str, default: float) -> float | None:
    """Read a timeout in seconds; null disables it."""
    value = defaults_raw.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"defaults.{key} must be a positive number or null, got {value!r}")
    return value


def _parse_defaults(raw: dict[str, Any]) -> Defaults:
    """Parse the defaults section."""
    defaults_raw = _mapping(raw, "defaults")
    concurrency = defaults_raw.get("concurrency")
    if concurrency is not None and (not isinstance(concurrency, int) or concurrency < 1):
        raise ConfigError(f"defaults.concurrency must be a positive integer, got {concurrency!r}")
    return Defaults(
        username=defaults_raw.get("username", "root"),
        port=defaults_raw.get("port", 22),
        pem=_optional_path(defaults_raw.get("pem")),
        timeout=_optional_seconds(defaults_raw, "timeout", 30),
        connect_timeout=_optional_seconds(defaults_raw, "connect_timeout", 10),
        concurrency=concurrency,
        known_hosts=_optional_path(defaults_raw.get("known_hosts")),
    )


def parse_config(raw: dict[str, Any]) -> Config:
    """Parse raw YAML data into a Config object."""
    if not isinstance(raw, dict):
        raise ConfigError("Config document must be a mapping")

    defaults = _parse_defaults(raw)

    log_dir = Path(raw.get("log_dir", "~/.mussh/logs")).expanduser()

    groups = {
        name: _parse_group(name, members)
        for name, members in _mapping(raw, "groups", "hostlist").items()
    }
    hosts = {
        name: _parse_host(name, host_raw, defaults)
        for name, host_raw in _mapping(raw, "hosts").items()
    }
    commands = {
        name: _parse_command(name, cmd_raw)
        for name, cmd_raw in _mapping(raw, "commands", "cmd").items()
    }

    return Config(
        catalog=Catalog(groups=groups, hosts=hosts, commands=commands),
        defaults=defaults,
        log_dir=log_dir,
    )


def _parse_group(name: str, members: Any) -> tuple[str, ...]:
    """Parse a group's host list; ``{hostnames: [...]}`` is also accepted."""
    if isinstance(members, dict):
        members = members.get("hostnames")
    if not isinstance(members, list) or not all(isinstance(m, str) for m in members):
        raise ConfigError(f"Group '{name}' must be a list of host names")
    return tuple(members)


def _parse_host(name: str, host_raw: Any, defaults: Defaults) -> HostSpec:
    """Parse a single host entry."""
    if not isinstance(host_raw, dict):
        raise ConfigError(f"Host '{name}' must be a mapping")

    hostname = host_raw.get("hostname")
    if not hostname:
        raise ConfigError(f"Host '{name}' must have a 'hostname' field")

    port = host_raw.get("port", defaults.port)
    if not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigError(f"Host '{name}' has an invalid port: {port!r}")

    pem = defaults.pem
    if "pem" in host_raw:
        pem = _optional_path(host_raw["pem"])

    return HostSpec(
        name=name,
        hostname=str(hostname),
        username=host_raw.get("username", defaults.username),
        port=port,
        pem=pem,
        alias=_parse_aliases(name, host_raw.get("alias")),
    )


def _parse_aliases(host_name: str, alias_raw: Any) -> dict[str, str]:
    """Parse aliases, as a mapping or as a list of {command, aliasfor} entries."""
    if not alias_raw:
        return {}
    if isinstance(alias_raw, dict):
        return {str(k): str(v) for k, v in alias_raw.items()}
    if isinstance(alias_raw, list):
        aliases = {}
        for entry in alias_raw:
            if not isinstance(entry, dict) or "command" not in entry or "aliasfor" not in entry:
                raise ConfigError(
                    f"Host '{host_name}' alias entries need 'command' and 'aliasfor' fields"
                )
            aliases[str(entry["aliasfor"])] = str(entry["command"])
        return aliases
    raise ConfigError(f"Host '{host_name}' has an invalid 'alias' field")


def _parse_command(name: str, cmd_raw: Any) -> str:
    """Parse a command; either a string or ``{command: ...}``."""
    if isinstance(cmd_raw, dict):
        cmd_raw = cmd_raw.get("command")
    if not isinstance(cmd_raw, str) or not cmd_raw:
        raise ConfigError(f"Command '{name}' must be a non-empty string")
    return cmd_raw
