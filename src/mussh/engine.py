"""Single entry point: resolve a group and command, run it, report."""

from __future__ import annotations

import logging
from pathlib import Path

from .dispatcher import Dispatcher
from .models import Catalog
from .report import RunReport
from .resolver import resolve
from .session import OutputCallback, StatusCallback


async def execute(
    catalog: Catalog,
    group: str,
    command: str,
    *,
    dry_run: bool = False,
    concurrency: int | None = None,
    timeout: float | None = None,
    connect_timeout: float | None = None,
    known_hosts: Path | None = None,
    logger: logging.Logger | None = None,
    on_output: OutputCallback | None = None,
    on_status: StatusCallback | None = None,
    dispatcher: Dispatcher | None = None,
) -> tuple[RunReport, int]:
    """Run ``command`` on every host of ``group``.

    Returns the report and the process exit code. Resolution errors
    (:class:`~mussh.errors.ResolveError`) are raised before any host is
    contacted. Pass a prebuilt ``dispatcher`` to be able to cancel the
    run from outside; the other dispatcher arguments are then ignored.
    """
    logger = logger or logging.getLogger("mussh")

    work_items = resolve(group, command, catalog)
    logger.debug("Resolved %s/%s to %d work item(s)", group, command, len(work_items))
    for item in work_items:
        logger.debug("  %s: %s", item.host.name, item.command)

    if dispatcher is None:
        dispatcher = Dispatcher(
            concurrency=concurrency,
            timeout=timeout,
            dry_run=dry_run,
            logger=logger,
            on_output=on_output,
            on_status=on_status,
            connect_timeout=connect_timeout,
            known_hosts=known_hosts,
        )

    report = await dispatcher.run(work_items)
    _, summary = report.summarize()
    log = logger.info if report.ok else logger.error
    log("%s", summary)
    logger.debug("Run record: %s", report.as_record())
    return report, report.exit_code
