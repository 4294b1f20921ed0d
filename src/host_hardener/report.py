"""Report sink: the append-only record of a hardening run."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple

import structlog

from host_hardener.exceptions import ReportWriteError
from host_hardener.models import Finding, SystemFacts
from host_hardener.types import Criticality, StepStatus

logger = structlog.get_logger(__name__)

OUTCOME_SECTION = "Plan Outcome"


def section_header(title: str) -> str:
    return f"========== {title} =========="


@dataclass(frozen=True)
class StepOutcome:
    """Terminal state of one plan step."""

    name: str
    criticality: Criticality
    status: StepStatus
    reason: Optional[str] = None
    duration_ms: int = 0
    findings: int = 0

    def describe(self) -> str:
        text = f"{self.name}: {self.status.value}"
        if self.status != StepStatus.SKIPPED:
            text += f" ({self.duration_ms} ms, {self.findings} finding(s))"
        if self.reason:
            text += f" - {self.reason}"
        return text


class Report:
    """Findings and step outcomes of a run, in the order they happened.

    Only grows while the run is active and refuses changes once finalized.
    """

    def __init__(self, facts: SystemFacts, started_at: Optional[datetime] = None) -> None:
        self.facts = facts
        self.started_at = started_at or datetime.now()
        self.finished_at: Optional[datetime] = None
        self._findings: List[Finding] = []
        self._outcomes: List[StepOutcome] = []

    @property
    def finalized(self) -> bool:
        return self.finished_at is not None

    @property
    def findings(self) -> Tuple[Finding, ...]:
        return tuple(self._findings)

    @property
    def outcomes(self) -> Tuple[StepOutcome, ...]:
        return tuple(self._outcomes)

    def add_findings(self, findings: Sequence[Finding]) -> None:
        self._ensure_open()
        self._findings.extend(findings)

    def add_outcome(self, outcome: StepOutcome) -> None:
        self._ensure_open()
        self._outcomes.append(outcome)

    def close(self) -> None:
        self._ensure_open()
        self.finished_at = datetime.now()

    def count(self, status: StepStatus) -> int:
        return sum(1 for o in self._outcomes if o.status == status)

    @property
    def fatal_failure(self) -> bool:
        """True if a fatal-criticality step failed."""
        return any(
            o.status == StepStatus.FAILED and o.criticality == Criticality.FATAL
            for o in self._outcomes
        )

    def summary(self) -> str:
        return (
            f"{self.count(StepStatus.SUCCEEDED)} succeeded, "
            f"{self.count(StepStatus.FAILED)} failed, "
            f"{self.count(StepStatus.SKIPPED)} skipped"
        )

    def _ensure_open(self) -> None:
        if self.finalized:
            raise ReportWriteError("Report already finalized")


class ReportSink:
    """Mirror a Report into a UTF-8 text file opened in append mode.

    Each finding lands under a fixed header line naming its section: the
    finding's category when it has one, otherwise the step title.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.report: Optional[Report] = None
        self._stream: Optional[TextIO] = None
        self._section: Optional[str] = None

    def start(self, facts: SystemFacts) -> Report:
        """Open the artifact and write the run header.

        Raises:
            ReportWriteError: If the file cannot be opened or written
        """
        if self.report is not None:
            return self.report

        report = Report(facts)
        try:
            self._stream = open(self.path, "a", encoding="utf-8")
        except OSError as e:
            raise ReportWriteError(f"Cannot open report {self.path}: {e}") from e

        self.report = report
        lines = [
            "",
            f"########## Hardening run {report.started_at.isoformat(timespec='seconds')} ##########",
        ]
        lines.extend(f"{key}: {value}" for key, value in facts.to_dict().items())
        self._write(lines)
        logger.info("report_started", path=str(self.path))
        return report

    def append(self, section: str, findings: Sequence[Finding]) -> None:
        """Record one step's findings."""
        report = self._require_report()
        report.add_findings(findings)

        lines: List[str] = []
        for finding in findings:
            title = finding.category or section
            if title != self._section:
                lines.append(section_header(title))
                self._section = title
            prefix = "" if finding.subject in (title, finding.category) else f"{finding.subject}: "
            lines.append(f"[{finding.severity.value.upper()}] {prefix}{finding.detail}")
        self._write(lines)

    def record(self, outcome: StepOutcome) -> None:
        """Record a step's terminal state. Written out at finalize."""
        self._require_report().add_outcome(outcome)

    def finalize(self) -> Report:
        """Write the outcome section, flush and close the artifact.

        Raises:
            ReportWriteError: If the file cannot be written
        """
        report = self._require_report()
        if report.finalized:
            return report

        lines = [section_header(OUTCOME_SECTION)]
        lines.extend(o.describe() for o in report.outcomes)
        lines.append(f"Summary: {report.summary()}")
        self._write(lines)
        report.close()
        self._section = None
        self.close()

        logger.info("report_finalized", path=str(self.path), summary=report.summary())
        return report

    @property
    def closed(self) -> bool:
        return self._stream is None

    def close(self) -> None:
        """Flush and close the artifact. Safe to call more than once.

        Raises:
            ReportWriteError: If buffered output cannot be flushed
        """
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.close()
        except OSError as e:
            raise ReportWriteError(f"Cannot flush report {self.path}: {e}") from e

    def _require_report(self) -> Report:
        if self.report is None:
            raise ReportWriteError("Report not started")
        return self.report

    def _write(self, lines: Sequence[str]) -> None:
        if not lines:
            return
        if self._stream is None:
            raise ReportWriteError(f"Report {self.path} is closed")
        try:
            self._stream.write("\n".join(lines) + "\n")
        except OSError as e:
            raise ReportWriteError(f"Cannot write report {self.path}: {e}") from e
