"""SSH session for running one command on one host."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable

import asyncssh

from .models import HostOutcome, HostSpec, HostStatus, WorkItem

# Type aliases for callbacks
OutputCallback = Callable[[str, str, bool], None]  # (host_name, line, is_stderr) -> None
StatusCallback = Callable[[str, HostStatus], None]  # (host_name, status) -> None

READ_SIZE = 65536

logger = logging.getLogger("mussh")


class HostSession:
    """Owns the SSH connection for a single work item, from connect to teardown.

    Every path through :meth:`execute` ends in exactly one
    :class:`HostOutcome`; connection, authentication, exit status and
    timeout problems are recorded on the outcome instead of raised.
    Cancellation is the only thing that propagates.
    """

    def __init__(
        self,
        item: WorkItem,
        timeout: float | None = None,
        dry_run: bool = False,
        logger: logging.Logger = logger,
        on_output: OutputCallback | None = None,
        on_status: StatusCallback | None = None,
        connect_timeout: float | None = None,
        known_hosts: Path | None = None,
    ):
        self.item = item
        self.timeout = timeout
        self.dry_run = dry_run
        self.logger = logger
        self.on_output = on_output
        self.on_status = on_status
        self.connect_timeout = connect_timeout
        self.known_hosts = known_hosts

    @property
    def name(self) -> str:
        return self.item.host.name

    def _emit_output(self, line: bytes, is_stderr: bool) -> None:
        if self.on_output:
            self.on_output(self.name, line.decode("utf-8", "replace").rstrip("\r\n"), is_stderr)

    def _emit_status(self, status: HostStatus) -> None:
        if self.on_status:
            self.on_status(self.name, status)

    def _connect_options(self) -> dict:
        """Build asyncssh connect options; an explicit key disables the agent."""
        host = self.item.host
        options = {
            "port": host.port,
            "username": host.username,
            "known_hosts": str(self.known_hosts) if self.known_hosts else None,
        }
        if self.connect_timeout is not None:
            options["connect_timeout"] = self.connect_timeout
        if host.pem:
            options["client_keys"] = [str(host.pem)]
            options["agent_path"] = None
        return options

    def _finish(
        self,
        status: HostStatus,
        start: float,
        stdout: bytes = b"",
        stderr: bytes = b"",
        exit_status: int | None = None,
        error: str | None = None,
    ) -> HostOutcome:
        outcome = HostOutcome.for_item(
            self.item,
            status,
            exit_status=exit_status,
            stdout=bytes(stdout),
            stderr=bytes(stderr),
            elapsed=time.monotonic() - start,
            error=error,
        )
        if outcome.ok:
            self.logger.info("%s: %s (%.1fs)", self.name, status.value, outcome.elapsed)
        else:
            self.logger.warning("%s: %s (%.1fs)", self.name, outcome.reason, outcome.elapsed)
        self._emit_status(status)
        return outcome

    async def execute(self) -> HostOutcome:
        """Run the work item and return its outcome."""
        start = time.monotonic()
        host = self.item.host

        if self.dry_run:
            self.logger.info("[dry-run] Would run %r on %s", self.item.command, host.address)
            return self._finish(HostStatus.SKIPPED, start, stdout=self.item.command.encode("utf-8"))

        self._emit_status(HostStatus.CONNECTING)
        self.logger.debug("%s: connecting to %s", self.name, host.address)

        try:
            conn = await asyncssh.connect(host.hostname, **self._connect_options())
        except asyncssh.PermissionDenied as e:
            return self._finish(
                HostStatus.CONNECTION_ERROR, start, error=f"authentication failed: {e.reason}"
            )
        except asyncssh.Error as e:
            return self._finish(HostStatus.CONNECTION_ERROR, start, error=f"SSH error: {e.reason}")
        except (OSError, asyncio.TimeoutError) as e:
            return self._finish(HostStatus.CONNECTION_ERROR, start, error=str(e) or type(e).__name__)

        async with conn:
            self._emit_status(HostStatus.RUNNING)
            self.logger.debug("%s: connected, running %r", self.name, self.item.command)
            try:
                return await self._run_command(conn, start)
            except asyncssh.Error as e:
                return self._finish(HostStatus.CONNECTION_ERROR, start, error=f"SSH error: {e.reason}")
            except asyncio.CancelledError:
                self.logger.debug("%s: cancelled, closing connection", self.name)
                conn.abort()
                raise

    async def _run_command(self, conn: asyncssh.SSHClientConnection, start: float) -> HostOutcome:
        """Run the command and capture its output.

        Both buffers keep whatever arrived before a timeout.
        """
        stdout = bytearray()
        stderr = bytearray()

        async with conn.create_process(self.item.command, encoding=None) as proc:
            try:
                await asyncio.wait_for(self._communicate(proc, stdout, stderr), self.timeout)
            except asyncio.TimeoutError:
                conn.abort()
                return self._finish(
                    HostStatus.TIMEOUT,
                    start,
                    stdout,
                    stderr,
                    error=f"timed out after {self.timeout:g}s",
                )

        exit_status = proc.exit_status
        if exit_status == 0:
            return self._finish(HostStatus.SUCCESS, start, stdout, stderr, exit_status=0)

        error = None
        if exit_status is None or exit_status < 0:
            signal = getattr(proc, "exit_signal", None)
            error = f"terminated by signal {signal[0]}" if signal else "no exit status received"
            exit_status = None
        return self._finish(
            HostStatus.FAILURE, start, stdout, stderr, exit_status=exit_status, error=error
        )

    async def _communicate(self, proc, stdout: bytearray, stderr: bytearray) -> None:
        """Read stdout and stderr concurrently, then wait for the exit status."""

        async def read_stream(stream, buffer: bytearray, is_stderr: bool) -> None:
            # Bytes land in the buffer as they arrive; only the callback waits for newlines.
            pending = b""
            try:
                while True:
                    chunk = await stream.read(READ_SIZE)
                    if not chunk:
                        break
                    buffer.extend(chunk)
                    *lines, pending = (pending + chunk).split(b"\n")
                    for line in lines:
                        self._emit_output(line, is_stderr)
            finally:
                if pending:
                    self._emit_output(pending, is_stderr)

        await asyncio.gather(
            read_stream(proc.stdout, stdout, False),
            read_stream(proc.stderr, stderr, True),
        )
        await proc.wait()


async def execute(
    host_spec: HostSpec,
    command: str,
    timeout: float | None = None,
    dry_run: bool = False,
    **kwargs,
) -> HostOutcome:
    """Run ``command`` on ``host_spec`` and return the outcome."""
    session = HostSession(WorkItem(host_spec, command), timeout=timeout, dry_run=dry_run, **kwargs)
    return await session.execute()
