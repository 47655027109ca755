"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from mussh.models import Catalog, HostSpec
from tests.fake_ssh import FakeSSH


@pytest.fixture
def catalog() -> Catalog:
    """Catalog with an alias on h1 and an unreachable host in 'local'."""
    hosts = {
        "h1": HostSpec("h1", "10.0.0.1", "deploy", alias={"python": "python3"}),
        "h2": HostSpec("h2", "10.0.0.2", "deploy", port=2222, pem=Path("/keys/h2.pem")),
        "a": HostSpec("a", "a.example.com", "ops"),
        "b": HostSpec("b", "b.example.com", "ops"),
    }
    return Catalog(
        groups={
            "all": ["h1", "h2"],
            "local": ["a", "b"],
            "broken": ["h1", "ghost"],
        },
        hosts=hosts,
        commands={
            "python": "python --version",
            "ping": "ping -c 1 127.0.0.1",
            "padded": "  echo hi  ",
        },
    )


@pytest.fixture
def fake_ssh(monkeypatch) -> FakeSSH:
    """Replace asyncssh.connect for the session module."""
    ssh = FakeSSH()
    monkeypatch.setattr("mussh.session.asyncssh.connect", ssh.connect)
    return ssh


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("tests.mussh")


@pytest.fixture(autouse=True)
def reset_mussh_logger():
    """Undo handlers the CLI attaches to the mussh logger."""
    logger = logging.getLogger("mussh")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate

