"""Aggregate per-host outcomes into a run status and a printable record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .models import HostOutcome, HostStatus, RunStatus


def aggregate_status(outcomes: Sequence[HostOutcome]) -> RunStatus:
    """A run succeeds only if every host did (dry-run skips count as success)."""
    if all(outcome.ok for outcome in outcomes):
        return RunStatus.SUCCESS
    return RunStatus.FAILURE


def summarize(outcomes: Sequence[HostOutcome]) -> tuple[RunStatus, str]:
    """Return the aggregate status and a summary naming each failed host."""
    status = aggregate_status(outcomes)
    failed = [outcome for outcome in outcomes if not outcome.ok]
    counts = f"{len(outcomes) - len(failed)}/{len(outcomes)} hosts ok"

    if not failed:
        return status, f"Run {status.value}: {counts}"

    lines = [f"Run {status.value}: {counts}", "Failed hosts:"]
    width = max(len(outcome.host) for outcome in failed)
    for outcome in failed:
        lines.append(f"  {outcome.host:<{width}}  {outcome.reason}")
    return status, "\n".join(lines)


def format_outcome(outcome: HostOutcome) -> str:
    """Render one host's outcome as a block of text."""
    header = f"== {outcome.host} ({outcome.address}) {outcome.status.value}"
    if outcome.elapsed:
        header += f" in {outcome.elapsed:.1f}s"
    lines = [header, f"$ {outcome.command}"]
    if outcome.status == HostStatus.SKIPPED:
        return "\n".join(lines)
    for data, prefix in ((outcome.stdout, ""), (outcome.stderr, "STDERR: ")):
        text = data.decode("utf-8", "replace")
        lines.extend(f"{prefix}{line}" for line in text.splitlines())
    if not outcome.ok:
        lines.append(f"ERROR: {outcome.reason}")
    return "\n".join(lines)


@dataclass
class RunReport:
    """Outcomes of a run, in dispatch order."""

    outcomes: list[HostOutcome] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def status(self) -> RunStatus:
        return aggregate_status(self.outcomes)

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def failed(self) -> list[HostOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def summarize(self) -> tuple[RunStatus, str]:
        return summarize(self.outcomes)

    def __getitem__(self, host: str) -> HostOutcome:
        for outcome in self.outcomes:
            if outcome.host == host:
                return outcome
        raise KeyError(host)

    def as_record(self) -> dict[str, Any]:
        """Structured form of the report, for logging."""
        return {
            "status": self.status.value,
            "elapsed": round(self.elapsed, 3),
            "hosts": [
                {
                    "host": outcome.host,
                    "address": outcome.address,
                    "command": outcome.command,
                    "status": outcome.status.value,
                    "exit_status": outcome.exit_status,
                    "elapsed": round(outcome.elapsed, 3),
                    "stdout_bytes": len(outcome.stdout),
                    "stderr_bytes": len(outcome.stderr),
                    "error": outcome.error,
                }
                for outcome in self.outcomes
            ],
        }
