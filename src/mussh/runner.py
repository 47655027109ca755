#!/usr/bin/env python3
"""Main entry point for mussh."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import replace
from pathlib import Path

from . import __version__
from .config import Config, find_config, load_config
from .dispatcher import Dispatcher
from .engine import execute
from .errors import ConfigError, ResolveError
from .logs import HostLogWriter, configure_logging, deferred_logging
from .models import HostOutcome, HostStatus, WorkItem
from .report import RunReport, format_outcome
from .resolver import resolve

# ANSI colors for different hosts
COLORS = [
    "\033[36m",  # Cyan
    "\033[33m",  # Yellow
    "\033[35m",  # Magenta
    "\033[32m",  # Green
    "\033[34m",  # Blue
    "\033[91m",  # Light Red
    "\033[96m",  # Light Cyan
    "\033[93m",  # Light Yellow
]
RESET = "\033[0m"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mussh",
        description="Run a command on a group of SSH hosts in parallel",
    )
    parser.add_argument("group", help="Host group to target")
    parser.add_argument("command", help="Command name to run")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to the YAML catalog (default: search .mussh/mussh.yaml locations)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    parser.add_argument(
        "--dryrun",
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="Resolve and print what would run without connecting",
    )
    parser.add_argument(
        "-j",
        "--concurrency",
        type=int,
        help="Maximum number of hosts to run at once (default: all)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        help="Per-host command timeout in seconds (0 disables)",
    )
    parser.add_argument(
        "--key",
        type=Path,
        help="Override the private key of every host",
    )
    parser.add_argument(
        "--no-logs",
        action="store_true",
        help="Do not write per-host output files",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored host prefixes",
    )
    parser.add_argument(
        "--dashboard",
        action="store_true",
        help="Run with the TUI dashboard",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logger = configure_logging(args.verbose)

    # Load configuration
    try:
        config = load_config(find_config(args.config))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.key:
        _override_key(config, args.key.expanduser())

    if args.concurrency is not None and args.concurrency < 1:
        print("Error: --concurrency must be at least 1", file=sys.stderr)
        return 2

    try:
        work_items = resolve(args.group, args.command, config.catalog)
    except ResolveError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    timeout = config.defaults.timeout if args.timeout is None else args.timeout
    dispatcher = Dispatcher(
        concurrency=args.concurrency or config.defaults.concurrency,
        timeout=timeout or None,
        dry_run=args.dry_run,
        logger=logger,
        connect_timeout=config.defaults.connect_timeout,
        known_hosts=config.defaults.known_hosts,
    )

    if args.dashboard:
        from .dashboard import Dashboard

        app = Dashboard(work_items, dispatcher)
        # The TUI owns the terminal; log records are shown once it exits.
        with deferred_logging(logger):
            app.run()
        report = app.report or _interrupted_report(work_items)
        for outcome in report.outcomes:
            print(format_outcome(outcome))
    else:
        colors = not args.no_color and sys.stdout.isatty()
        report = _run_headless(config, args, dispatcher, logger, colors)
        if report is None:
            report = _interrupted_report(work_items)
        if args.dry_run:
            for outcome in report.outcomes:
                print(format_outcome(outcome))

    if not args.no_logs and not args.dry_run and report.outcomes:
        writer = HostLogWriter(config.log_dir, config.source_path)
        try:
            writer.write(report)
            logger.info("Host output written to %s", writer.run_dir)
        except OSError as e:
            logger.warning("Could not write host logs to %s: %s", config.log_dir, e)

    _, summary = report.summarize()
    print(f"\n{summary}", file=sys.stderr if report.failed else sys.stdout)
    return report.exit_code


def _override_key(config: Config, key_path: Path) -> None:
    """Point every host at ``key_path``."""
    config.defaults.pem = key_path
    hosts = {name: replace(host, pem=key_path) for name, host in config.catalog.hosts.items()}
    config.catalog = replace(config.catalog, hosts=hosts)


def _interrupted_report(work_items: list[WorkItem]) -> RunReport:
    """Report every host as cancelled when the run ended before producing a report."""
    return RunReport([HostOutcome.for_item(item, HostStatus.CANCELLED) for item in work_items])


def _run_headless(
    config: Config,
    args: argparse.Namespace,
    dispatcher: Dispatcher,
    logger: logging.Logger,
    colors: bool,
) -> RunReport | None:
    """Run the dispatcher without the TUI dashboard, streaming prefixed lines."""
    members = config.catalog.groups[args.group]
    host_colors = {
        name: COLORS[i % len(COLORS)] if colors else "" for i, name in enumerate(members)
    }
    reset = RESET if colors else ""

    def on_output(host_name: str, line: str, is_stderr: bool) -> None:
        color = host_colors.get(host_name, "")
        prefix = "STDERR: " if is_stderr else ""
        print(f"{color}[{host_name}]{reset} {prefix}{line}")

    def on_status(host_name: str, status: HostStatus) -> None:
        if status == HostStatus.PENDING:
            return
        color = host_colors.get(host_name, "")
        print(f"{color}[{host_name}]{reset} Status: {status.value}")

    dispatcher.on_output = on_output
    dispatcher.on_status = on_status

    async def run() -> RunReport:
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, dispatcher.cancel)
        except (NotImplementedError, RuntimeError):
            pass  # no signal handlers on this platform; Ctrl-C ends the loop instead
        try:
            report, _ = await execute(
                config.catalog,
                args.group,
                args.command,
                logger=logger,
                dispatcher=dispatcher,
            )
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass
        return report

    try:
        return asyncio.run(run())
    except KeyboardInterrupt:
        return dispatcher.report


if __name__ == "__main__":
    sys.exit(main())
