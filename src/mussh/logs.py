"""Log sink setup and per-host output files."""

from __future__ import annotations

import logging
import logging.handlers
import shutil
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from .report import RunReport

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
VERBOSITY_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def configure_logging(verbosity: int = 0, name: str = "mussh") -> logging.Logger:
    """Attach a stderr handler to the ``mussh`` logger at the level for ``-v`` count."""
    logger = logging.getLogger(name)
    level = VERBOSITY_LEVELS[min(max(verbosity, 0), len(VERBOSITY_LEVELS) - 1)]
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


@contextmanager
def deferred_logging(logger: logging.Logger) -> Iterator[logging.handlers.MemoryHandler]:
    """Hold the logger's records in memory and replay them on exit.

    Used while a full-screen app owns the terminal, so stderr output
    cannot tear its display.
    """
    handlers = list(logger.handlers)
    buffer = logging.handlers.MemoryHandler(capacity=10000, flushLevel=logging.CRITICAL + 1)
    for handler in handlers:
        logger.removeHandler(handler)
    logger.addHandler(buffer)
    try:
        yield buffer
    finally:
        logger.removeHandler(buffer)
        for handler in handlers:
            logger.addHandler(handler)
        for record in buffer.buffer:
            logger.handle(record)
        buffer.close()


class HostLogWriter:
    """Writes each host's captured stdout and stderr into a per-run directory."""

    def __init__(self, log_dir: Path, source_path: Path | None = None):
        self.base_dir = log_dir
        self.source_path = source_path
        self.run_dir: Path | None = None

    def setup(self) -> Path:
        """Create ``<log_dir>/<timestamp>`` and copy the config file into it."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.run_dir = self.base_dir / timestamp
        self.run_dir.mkdir(parents=True, exist_ok=True)

        if self.source_path and self.source_path.exists():
            shutil.copy(self.source_path, self.run_dir / self.source_path.name)
        return self.run_dir

    def write(self, report: RunReport) -> list[Path]:
        """Write ``<host>.stdout.log`` and ``<host>.stderr.log`` for every host."""
        if self.run_dir is None:
            self.setup()
        written = []
        for outcome in report.outcomes:
            for suffix, data in (("stdout", outcome.stdout), ("stderr", outcome.stderr)):
                path = self.run_dir / f"{outcome.host}.{suffix}.log"
                path.write_bytes(data)
                written.append(path)
        return written
