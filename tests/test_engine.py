"""End-to-end tests for the engine entry point."""

from __future__ import annotations

import logging

import pytest

from mussh.engine import execute
from mussh.errors import UnknownGroup
from mussh.models import HostStatus, RunStatus


@pytest.mark.asyncio
async def test_partial_failure(catalog, fake_ssh):
    fake_ssh.script("a.example.com", stdout=[b"1 packets transmitted\n"])

    report, exit_code = await execute(catalog, "local", "ping")

    assert report["a"].status == HostStatus.SUCCESS
    assert report["b"].status == HostStatus.CONNECTION_ERROR
    assert report.status == RunStatus.FAILURE
    assert exit_code == 1
    assert fake_ssh.connections["a.example.com"].commands == ["ping -c 1 127.0.0.1"]


@pytest.mark.asyncio
async def test_alias_is_what_runs_remotely(catalog, fake_ssh):
    fake_ssh.script("10.0.0.1", stdout=[b"Python 3.12.1\n"])
    fake_ssh.script("10.0.0.2", stdout=[b"Python 2.7.18\n"])

    report, exit_code = await execute(catalog, "all", "python", timeout=5, concurrency=1)

    assert exit_code == 0
    assert fake_ssh.connections["10.0.0.1"].commands == ["python3"]
    assert fake_ssh.connections["10.0.0.2"].commands == ["python --version"]
    assert report["h2"].address == "deploy@10.0.0.2:2222"


@pytest.mark.asyncio
async def test_unknown_group_makes_no_connections(catalog, fake_ssh):
    with pytest.raises(UnknownGroup):
        await execute(catalog, "missing", "python")

    assert fake_ssh.attempts == []


@pytest.mark.asyncio
async def test_dry_run(catalog, fake_ssh):
    report, exit_code = await execute(catalog, "all", "python", dry_run=True)

    assert fake_ssh.attempts == []
    assert exit_code == 0
    assert [(o.host, o.status, o.stdout) for o in report.outcomes] == [
        ("h1", HostStatus.SKIPPED, b"python3"),
        ("h2", HostStatus.SKIPPED, b"python --version"),
    ]


@pytest.mark.asyncio
async def test_events_go_to_injected_logger(catalog, fake_ssh, test_logger, caplog):
    fake_ssh.script("a.example.com")

    with caplog.at_level(logging.DEBUG, logger=test_logger.name):
        await execute(catalog, "local", "ping", logger=test_logger)

    records = [r for r in caplog.records if r.name == test_logger.name]
    messages = [r.getMessage() for r in records]
    assert "Resolved local/ping to 2 work item(s)" in messages
    assert any(r.levelno == logging.WARNING and r.getMessage().startswith("b: connection error") for r in records)
    assert any(r.levelno == logging.ERROR and "Failed hosts:" in r.getMessage() for r in records)
