"""Tests for running one command on one host."""

from __future__ import annotations

from pathlib import Path

import pytest

from mussh.models import HostSpec, HostStatus
from mussh.session import HostSession, execute
from tests.fake_ssh import make_item


@pytest.mark.asyncio
async def test_success_captures_streams_separately(fake_ssh):
    fake_ssh.script(
        "web.example.com",
        stdout=[b"line one\n", b"line two\n"],
        stderr=[b"warning\n"],
    )

    outcome = await HostSession(make_item("web", "uptime")).execute()

    assert outcome.status == HostStatus.SUCCESS
    assert outcome.exit_status == 0
    assert outcome.stdout == b"line one\nline two\n"
    assert outcome.stderr == b"warning\n"
    assert outcome.host == "web"
    assert outcome.command == "uptime"
    assert outcome.elapsed >= 0
    assert fake_ssh.connections["web.example.com"].commands == ["uptime"]
    assert fake_ssh.connections["web.example.com"].closed


@pytest.mark.asyncio
async def test_nonzero_exit_is_failure(fake_ssh):
    fake_ssh.script("web.example.com", stderr=[b"not found\n"], exit_status=127)

    outcome = await HostSession(make_item("web")).execute()

    assert outcome.status == HostStatus.FAILURE
    assert outcome.exit_status == 127
    assert outcome.stderr == b"not found\n"
    assert outcome.reason == "exit status 127"


@pytest.mark.asyncio
async def test_killed_by_signal_is_failure(fake_ssh):
    fake_ssh.script("web.example.com", exit_status=-1, exit_signal=("KILL", False, "", ""))

    outcome = await HostSession(make_item("web")).execute()

    assert outcome.status == HostStatus.FAILURE
    assert outcome.exit_status is None
    assert outcome.error == "terminated by signal KILL"


@pytest.mark.asyncio
async def test_refused_connection(fake_ssh):
    outcome = await HostSession(make_item("down")).execute()

    assert outcome.status == HostStatus.CONNECTION_ERROR
    assert "Connect call failed" in outcome.error
    assert outcome.exit_status is None


@pytest.mark.asyncio
async def test_authentication_failure(fake_ssh):
    fake_ssh.script("web.example.com", deny=True)

    outcome = await HostSession(make_item("web")).execute()

    assert outcome.status == HostStatus.CONNECTION_ERROR
    assert outcome.error == "authentication failed: Permission denied"


@pytest.mark.asyncio
async def test_timeout_keeps_partial_output(fake_ssh):
    fake_ssh.script("slow.example.com", stdout=[b"started\n"], hang=True)

    outcome = await HostSession(make_item("slow", "tail -f log"), timeout=0.05).execute()

    assert outcome.status == HostStatus.TIMEOUT
    assert outcome.stdout == b"started\n"
    assert outcome.error == "timed out after 0.05s"
    assert fake_ssh.connections["slow.example.com"].aborted


@pytest.mark.asyncio
async def test_timeout_keeps_output_without_newline(fake_ssh):
    fake_ssh.script("slow.example.com", stdout=[b"progress 50%"], hang=True)
    lines = []

    outcome = await HostSession(
        make_item("slow", "./migrate"),
        timeout=0.05,
        on_output=lambda host, line, is_stderr: lines.append(line),
    ).execute()

    assert outcome.status == HostStatus.TIMEOUT
    assert outcome.stdout == b"progress 50%"
    assert lines == ["progress 50%"]


@pytest.mark.asyncio
async def test_lines_split_across_reads(fake_ssh):
    fake_ssh.script("web.example.com", stdout=[b"hel", b"lo\nwor", b"ld\n", b"tail"])
    lines = []

    outcome = await HostSession(
        make_item("web"),
        on_output=lambda host, line, is_stderr: lines.append(line),
    ).execute()

    assert outcome.stdout == b"hello\nworld\ntail"
    assert lines == ["hello", "world", "tail"]


@pytest.mark.asyncio
async def test_dry_run_makes_no_connection(fake_ssh):
    outcome = await HostSession(make_item("web", "rm -rf /tmp/cache"), dry_run=True).execute()

    assert fake_ssh.attempts == []
    assert outcome.status == HostStatus.SKIPPED
    assert outcome.stdout.decode() == "rm -rf /tmp/cache"
    assert outcome.ok


@pytest.mark.asyncio
async def test_private_key_disables_agent(fake_ssh):
    fake_ssh.script("web.example.com")
    item = make_item("web", port=2200, pem=Path("/keys/web.pem"))

    await HostSession(item, connect_timeout=5).execute()

    hostname, options = fake_ssh.attempts[0]
    assert hostname == "web.example.com"
    assert options["port"] == 2200
    assert options["username"] == "ops"
    assert options["client_keys"] == ["/keys/web.pem"]
    assert options["agent_path"] is None
    assert options["connect_timeout"] == 5
    assert options["known_hosts"] is None


@pytest.mark.asyncio
async def test_without_key_uses_asyncssh_defaults(fake_ssh):
    fake_ssh.script("web.example.com")

    await HostSession(make_item("web")).execute()

    _, options = fake_ssh.attempts[0]
    assert "client_keys" not in options
    assert "agent_path" not in options
    assert options["port"] == 22


@pytest.mark.asyncio
async def test_callbacks_see_lines_and_status(fake_ssh):
    fake_ssh.script("web.example.com", stdout=[b"hello\r\n"], stderr=[b"oops\n"])
    lines = []
    statuses = []

    await HostSession(
        make_item("web"),
        on_output=lambda host, line, is_stderr: lines.append((host, line, is_stderr)),
        on_status=lambda host, status: statuses.append(status),
    ).execute()

    assert sorted(lines) == [("web", "hello", False), ("web", "oops", True)]
    assert statuses == [HostStatus.CONNECTING, HostStatus.RUNNING, HostStatus.SUCCESS]


@pytest.mark.asyncio
async def test_module_level_execute(fake_ssh):
    fake_ssh.script("db.internal", stdout=[b"3.11\n"])
    host = HostSpec("db", "db.internal", "admin")

    outcome = await execute(host, "python3 --version", timeout=5)

    assert outcome.status == HostStatus.SUCCESS
    assert outcome.address == "admin@db.internal:22"
    assert outcome.stdout == b"3.11\n"
