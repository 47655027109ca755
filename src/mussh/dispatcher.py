"""Fan work items out to concurrent host sessions and join their outcomes."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Sequence

from .models import HostOutcome, HostStatus, WorkItem
from .report import RunReport
from .session import HostSession, OutputCallback, StatusCallback

logger = logging.getLogger("mussh")


class Dispatcher:
    """Runs one :class:`HostSession` per work item, in parallel.

    ``concurrency`` caps how many sessions may be connected at once
    (``None`` runs every host at the same time). A failing host never
    stops the others; :meth:`run` returns only once every session has
    reached a terminal outcome, or has been cancelled.
    """

    def __init__(
        self,
        concurrency: int | None = None,
        timeout: float | None = None,
        dry_run: bool = False,
        logger: logging.Logger = logger,
        on_output: OutputCallback | None = None,
        on_status: StatusCallback | None = None,
        connect_timeout: float | None = None,
        known_hosts: Path | None = None,
    ):
        if concurrency is not None and concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.timeout = timeout
        self.dry_run = dry_run
        self.logger = logger
        self.on_output = on_output
        self.on_status = on_status
        self.connect_timeout = connect_timeout
        self.known_hosts = known_hosts
        self.report: RunReport | None = None
        self._tasks: list[asyncio.Task] = []
        self._cancelled = False

    def _emit_status(self, host_name: str, status: HostStatus) -> None:
        if self.on_status:
            self.on_status(host_name, status)

    def _session(self, item: WorkItem) -> HostSession:
        return HostSession(
            item,
            timeout=self.timeout,
            dry_run=self.dry_run,
            logger=self.logger,
            on_output=self.on_output,
            on_status=self.on_status,
            connect_timeout=self.connect_timeout,
            known_hosts=self.known_hosts,
        )

    async def _run_one(self, item: WorkItem, gate: asyncio.Semaphore | None) -> HostOutcome:
        if gate is None:
            return await self._session(item).execute()
        async with gate:
            return await self._session(item).execute()

    def cancel(self) -> None:
        """Abort every session that has not finished yet.

        Once every session is done this does nothing, so a run that
        completed is never reported as cancelled.
        """
        if self._cancelled:
            return
        pending = [task for task in self._tasks if not task.done()]
        if self._tasks and not pending:
            return
        self._cancelled = True
        if pending:
            self.logger.warning("Cancelling %d running session(s)", len(pending))
        for task in pending:
            task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def run(self, work_items: Sequence[WorkItem]) -> RunReport:
        """Run every work item and return the report in work-item order."""
        work_items = list(work_items)
        gate = asyncio.Semaphore(self.concurrency) if self.concurrency else None
        start = time.monotonic()

        self.logger.info(
            "Dispatching to %d host(s)%s%s",
            len(work_items),
            f" (concurrency {self.concurrency})" if self.concurrency else "",
            " [dry-run]" if self.dry_run else "",
        )
        for item in work_items:
            self._emit_status(item.host.name, HostStatus.PENDING)

        self._tasks = [
            asyncio.create_task(self._run_one(item, gate), name=f"mussh-{item.host.name}")
            for item in work_items
        ]
        if self._cancelled:
            for task in self._tasks:
                task.cancel()

        try:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        except asyncio.CancelledError:
            # The caller was cancelled; stop the sessions and keep what finished.
            self.cancel()
            if self._tasks:
                await asyncio.wait(self._tasks)
            self.report = self._collect(work_items, time.monotonic() - start)
            raise

        self.report = self._collect(work_items, time.monotonic() - start)
        return self.report

    def _collect(self, work_items: list[WorkItem], elapsed: float) -> RunReport:
        outcomes = []
        for item, task in zip(work_items, self._tasks):
            if task.cancelled():
                outcome = HostOutcome.for_item(item, HostStatus.CANCELLED)
                self._emit_status(item.host.name, HostStatus.CANCELLED)
            elif task.exception() is not None:
                exc = task.exception()
                self.logger.error(
                    "%s: session failed unexpectedly", item.host.name, exc_info=exc
                )
                outcome = HostOutcome.for_item(
                    item, HostStatus.FAILURE, error=f"{type(exc).__name__}: {exc}"
                )
                self._emit_status(item.host.name, HostStatus.FAILURE)
            else:
                outcome = task.result()
            outcomes.append(outcome)
        return RunReport(outcomes=outcomes, elapsed=elapsed)


async def run(
    work_items: Sequence[WorkItem],
    concurrency_limit: int | None = None,
    dry_run: bool = False,
    **kwargs,
) -> RunReport:
    """Dispatch ``work_items`` and return the joined report."""
    return await Dispatcher(concurrency=concurrency_limit, dry_run=dry_run, **kwargs).run(work_items)
