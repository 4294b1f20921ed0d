"""Antivirus and rootkit scanning.

Runs clamscan, rkhunter and chkrootkit and turns every infected or
suspicious line they print into a critical Finding. With
``scan.remove_infected`` enabled (the default) clamscan deletes infected
files as it finds them. That removal is irreversible.
"""

import re
from typing import Dict, List, Optional, Tuple

import structlog

from host_hardener.config import ScanConfig
from host_hardener.exceptions import CapabilityUnmet
from host_hardener.models import ActionResult, Finding, SystemFacts
from host_hardener.plugins.base import ActionPlugin, output_tail
from host_hardener.plugins.packages import install_command
from host_hardener.types import Capability, Criticality, PackageManager, Severity
from host_hardener.utils.command import CommandExecutor, format_command

logger = structlog.get_logger(__name__)

ANTIVIRUS = "Antivirus Scan"
ROOTKIT = "Rootkit Scan"

CLAMSCAN_FOUND = re.compile(r"^(?P<path>.+?): (?P<signature>.+) FOUND$")
CHKROOTKIT_VERDICTS = re.compile(r"\bINFECTED\b|\bVulnerable\b|\bPossible\b.*\binstalled\b")
CHKROOTKIT_PROGRESS = re.compile(r"^(Checking|Searching for) ")
CHKROOTKIT_LISTING = re.compile(r"^Searching for suspicious files and dirs\b")
CHKROOTKIT_CLEAN = "nothing found"

# clamscan: 0 clean, 1 virus found, 2 errors (often unreadable files)
CLAMSCAN_OK_CODES = (0, 1)
# rkhunter exits 1 when it has warnings to report
RKHUNTER_OK_CODES = (0, 1)

SCANNER_PACKAGES: Dict[str, str] = {
    "clamscan": "clamav",
    "freshclam": "clamav",
    "rkhunter": "rkhunter",
    "chkrootkit": "chkrootkit",
}

FRESHCLAM_PACKAGES: Dict[PackageManager, str] = {
    PackageManager.APT: "clamav-freshclam",
    PackageManager.DNF: "clamav-update",
    PackageManager.YUM: "clamav-update",
}


def parse_clamscan(output: str) -> List[Tuple[str, str]]:
    """Return (path, signature) for each infected file clamscan reported."""
    hits: List[Tuple[str, str]] = []
    for line in output.splitlines():
        match = CLAMSCAN_FOUND.match(line.strip())
        if match:
            hits.append((match.group("path"), match.group("signature")))
    return hits


def parse_rkhunter(output: str) -> List[str]:
    """Collect rkhunter warnings, folding indented continuation lines."""
    warnings: List[str] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if line[0].isspace() and warnings:
            warnings[-1] = f"{warnings[-1]} {line.strip()}"
        else:
            warnings.append(line.strip())
    return warnings


def parse_chkrootkit(output: str) -> List[str]:
    """Lines chkrootkit flagged as infected, vulnerable or suspicious.

    The suspicious-files banner prints on every run; only the paths listed
    after it count, and only when it did not end in "nothing found".
    """
    hits: List[str] = []
    listing = False
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        if CHKROOTKIT_PROGRESS.match(line):
            listing = False
            if CHKROOTKIT_LISTING.match(line):
                remainder = line.partition("...")[2].strip()
                listing = remainder != CHKROOTKIT_CLEAN
                if remainder and listing and not remainder.startswith("The following"):
                    hits.append(remainder)
            elif CHKROOTKIT_VERDICTS.search(line):
                hits.append(line)
            continue
        if line == CHKROOTKIT_CLEAN:
            listing = False
            continue
        if line.startswith("The following"):
            continue
        if listing or CHKROOTKIT_VERDICTS.search(line):
            hits.append(line)
    return hits


class MalwareScan(ActionPlugin):
    """Refresh signatures, scan the filesystem, check for rootkits."""

    name = "malware-scan"
    title = "Malware Scan"
    criticality = Criticality.BEST_EFFORT
    required_capabilities = frozenset({Capability.PACKAGE_MANAGER})

    def __init__(self, runner: CommandExecutor, config: ScanConfig) -> None:
        super().__init__(runner)
        self.config = config

    def run(self, facts: SystemFacts) -> ActionResult:
        if facts.package_manager is None:
            raise CapabilityUnmet(Capability.PACKAGE_MANAGER.value)

        findings: List[Finding] = []
        errors: List[str] = []

        if self.config.install_missing:
            install_issue = self._install_missing(facts.package_manager)
            if install_issue is not None:
                findings.append(install_issue)

        findings.extend(self._refresh_signatures())

        for scanner in (self._clamscan, self._rkhunter, self._chkrootkit):
            scan_findings, error = scanner()
            findings.extend(scan_findings)
            if error is not None:
                errors.append(error)

        infected = sum(1 for f in findings if f.severity == Severity.CRITICAL)
        logger.info("malware_scan_finished", critical=infected, scanner_errors=len(errors))

        if errors:
            return ActionResult.failure(findings, reason="; ".join(errors))
        return ActionResult.success(findings)

    def _install_missing(self, pm: PackageManager) -> Optional[Finding]:
        packages: List[str] = []
        for tool, package in SCANNER_PACKAGES.items():
            if self.runner.check_command_available(tool):
                continue
            if tool == "freshclam":
                package = FRESHCLAM_PACKAGES.get(pm, package)
            if package not in packages:
                packages.append(package)

        if not packages:
            return None

        cmd = install_command(pm, packages)
        result = self.runner.execute(
            cmd, check=False, env={"DEBIAN_FRONTEND": "noninteractive"}
        )
        if result.success:
            return None
        return self.finding(
            Severity.WARNING,
            f"Scanner installation failed ({format_command(cmd)}):\n{output_tail(result)}",
        )

    def _refresh_signatures(self) -> List[Finding]:
        if not self.runner.check_command_available("freshclam"):
            return [
                self.finding(
                    Severity.WARNING, "freshclam not available; signatures not refreshed",
                    category=ANTIVIRUS,
                )
            ]
        result = self.runner.execute(["freshclam"], check=False)
        if result.success:
            return []
        return [
            self.finding(
                Severity.WARNING,
                f"Signature refresh failed, scanning with existing database:\n"
                f"{output_tail(result)}",
                category=ANTIVIRUS,
            )
        ]

    def _clamscan(self) -> Tuple[List[Finding], Optional[str]]:
        if not self.runner.check_command_available("clamscan"):
            return [self._missing("clamscan", ANTIVIRUS)], "clamscan not available"

        cmd = ["clamscan", "-r", "--infected"]
        if self.config.remove_infected:
            cmd.append("--remove=yes")
        cmd.append(str(self.config.root))

        result = self.runner.execute(cmd, check=False)
        outcome = "removed" if self.config.remove_infected else "left in place"
        findings = [
            self.finding(
                Severity.CRITICAL,
                f"{signature} detected by clamscan; file {outcome}",
                subject=path,
                category=ANTIVIRUS,
            )
            for path, signature in parse_clamscan(result.stdout)
        ]

        if result.return_code not in CLAMSCAN_OK_CODES:
            findings.append(
                self.finding(
                    Severity.WARNING,
                    f"clamscan reported errors (exit {result.return_code}):\n"
                    f"{output_tail(result)}",
                    category=ANTIVIRUS,
                )
            )
        return findings, None

    def _rkhunter(self) -> Tuple[List[Finding], Optional[str]]:
        if not self.runner.check_command_available("rkhunter"):
            return [self._missing("rkhunter", ROOTKIT)], "rkhunter not available"

        result = self.runner.execute(
            ["rkhunter", "--check", "--sk", "--rwo", "--nocolors"], check=False
        )
        if result.return_code not in RKHUNTER_OK_CODES:
            return [self._scanner_error("rkhunter", result.return_code, output_tail(result))], (
                f"rkhunter exited {result.return_code}"
            )
        return [
            self.finding(Severity.CRITICAL, line, subject="rkhunter", category=ROOTKIT)
            for line in parse_rkhunter(result.stdout)
        ], None

    def _chkrootkit(self) -> Tuple[List[Finding], Optional[str]]:
        if not self.runner.check_command_available("chkrootkit"):
            return [self._missing("chkrootkit", ROOTKIT)], "chkrootkit not available"

        result = self.runner.execute(["chkrootkit"], check=False)
        findings = [
            self.finding(Severity.CRITICAL, line, subject="chkrootkit", category=ROOTKIT)
            for line in parse_chkrootkit(result.stdout)
        ]
        if not result.success:
            findings.append(
                self._scanner_error("chkrootkit", result.return_code, output_tail(result))
            )
            return findings, f"chkrootkit exited {result.return_code}"
        return findings, None

    def _missing(self, tool: str, category: str) -> Finding:
        return self.finding(
            Severity.WARNING, f"{tool} not available; scan not performed",
            subject=tool, category=category,
        )

    def _scanner_error(self, tool: str, code: int, tail: str) -> Finding:
        return self.finding(
            Severity.WARNING, f"{tool} failed (exit {code}):\n{tail}",
            subject=tool, category=ROOTKIT,
        )
