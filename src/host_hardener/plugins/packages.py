"""Package update and orphan cleanup plugins."""

from typing import Dict, List, Sequence

import structlog

from host_hardener.exceptions import CapabilityUnmet
from host_hardener.models import ActionResult, SystemFacts
from host_hardener.plugins.base import ActionPlugin, output_tail
from host_hardener.types import (
    Capability,
    CommandResult,
    Criticality,
    PackageManager,
    Severity,
)
from host_hardener.utils.command import format_command

logger = structlog.get_logger(__name__)

NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

UPDATE_COMMANDS: Dict[PackageManager, List[List[str]]] = {
    PackageManager.APT: [["apt-get", "update"], ["apt-get", "-y", "upgrade"]],
    PackageManager.DNF: [["dnf", "-y", "upgrade"]],
    PackageManager.YUM: [["yum", "-y", "update"]],
    PackageManager.ZYPPER: [
        ["zypper", "--non-interactive", "refresh"],
        ["zypper", "--non-interactive", "update"],
    ],
    PackageManager.APK: [["apk", "update"], ["apk", "upgrade"]],
    PackageManager.PACMAN: [["pacman", "-Syu", "--noconfirm"]],
}


def install_command(pm: PackageManager, packages: Sequence[str]) -> List[str]:
    """Get package installation command for a package manager."""
    commands = {
        PackageManager.APT: ["apt-get", "install", "-y"],
        PackageManager.DNF: ["dnf", "install", "-y"],
        PackageManager.YUM: ["yum", "install", "-y"],
        PackageManager.ZYPPER: ["zypper", "--non-interactive", "install"],
        PackageManager.APK: ["apk", "add"],
        PackageManager.PACMAN: ["pacman", "-S", "--noconfirm"],
    }
    return commands[pm] + list(packages)


def parse_zypper_orphans(output: str) -> List[str]:
    """Extract package names from `zypper packages --orphaned`."""
    names: List[str] = []
    for line in output.splitlines():
        columns = [c.strip() for c in line.split("|")]
        if len(columns) < 3:
            continue
        name = columns[2]
        if name and name != "Name" and name not in names:
            names.append(name)
    return names


def _unique_lines(*outputs: str) -> List[str]:
    names: List[str] = []
    for output in outputs:
        for line in output.split():
            if line and line not in names:
                names.append(line)
    return names


class PackageUpdate(ActionPlugin):
    """Refresh package metadata and upgrade everything installed."""

    name = "package-update"
    title = "Package Update"
    criticality = Criticality.FATAL
    required_capabilities = frozenset({Capability.PACKAGE_MANAGER})

    def run(self, facts: SystemFacts) -> ActionResult:
        pm = facts.package_manager
        if pm is None:
            raise CapabilityUnmet(Capability.PACKAGE_MANAGER.value)

        commands = UPDATE_COMMANDS[pm]
        failed = self.run_sequence(commands, env=NONINTERACTIVE_ENV)
        if failed is not None:
            cmd, result = failed
            return ActionResult.failure(
                [
                    self.finding(
                        Severity.CRITICAL,
                        f"{format_command(cmd)} exited {result.return_code}:\n"
                        f"{output_tail(result)}",
                    )
                ],
                reason=f"{pm.value} update failed",
            )

        logger.info("packages_updated", package_manager=pm.value)
        return ActionResult.success(
            [self.finding(Severity.INFO, f"System packages updated via {pm.value}")]
        )


class PackageCleanup(ActionPlugin):
    """Remove orphaned packages. Never aborts the plan."""

    name = "package-cleanup"
    title = "Package Cleanup"
    criticality = Criticality.BEST_EFFORT
    required_capabilities = frozenset({Capability.PACKAGE_MANAGER})

    def run(self, facts: SystemFacts) -> ActionResult:
        pm = facts.package_manager
        if pm is None:
            raise CapabilityUnmet(Capability.PACKAGE_MANAGER.value)

        if pm == PackageManager.APK:
            # apk drops dependencies no longer reachable from the world file
            return ActionResult.success(
                [self.finding(Severity.INFO, "apk removes orphaned dependencies on its own")]
            )

        handlers = {
            PackageManager.APT: self._clean_apt,
            PackageManager.DNF: self._clean_autoremove,
            PackageManager.YUM: self._clean_autoremove,
            PackageManager.ZYPPER: self._clean_zypper,
            PackageManager.PACMAN: self._clean_pacman,
        }
        return handlers[pm](pm)

    def _failure(self, cmd: Sequence[str], result: CommandResult) -> ActionResult:
        return ActionResult.failure(
            [
                self.finding(
                    Severity.WARNING,
                    f"{format_command(cmd)} exited {result.return_code}:\n"
                    f"{output_tail(result)}",
                )
            ],
            reason="orphan cleanup failed",
        )

    def _removed(self, removed: List[str]) -> ActionResult:
        if not removed:
            detail = "No orphaned packages found"
        else:
            detail = f"Removed {len(removed)} orphaned package(s): {', '.join(removed)}"
        return ActionResult.success([self.finding(Severity.INFO, detail)])

    def _clean_apt(self, pm: PackageManager) -> ActionResult:
        install = install_command(pm, ["deborphan"])
        result = self.runner.execute(install, check=False, env=NONINTERACTIVE_ENV)
        if not result.success:
            return self._failure(install, result)

        removed: List[str] = []
        # Purging data packages can orphan libraries, hence two passes.
        for query in (["deborphan", "--guess-data"], ["deborphan"]):
            result = self.runner.execute(query, check=False)
            if not result.success:
                return self._failure(query, result)
            orphans = [n for n in _unique_lines(result.stdout) if n not in removed]
            if not orphans:
                continue
            purge = ["apt-get", "-y", "purge"] + orphans
            result = self.runner.execute(purge, check=False, env=NONINTERACTIVE_ENV)
            if not result.success:
                return self._failure(purge, result)
            removed.extend(orphans)

        autoremove = ["apt-get", "-y", "autoremove", "--purge"]
        result = self.runner.execute(autoremove, check=False, env=NONINTERACTIVE_ENV)
        if not result.success:
            return self._failure(autoremove, result)
        return self._removed(removed)

    def _clean_autoremove(self, pm: PackageManager) -> ActionResult:
        cmd = [pm.value, "autoremove", "-y"]
        result = self.runner.execute(cmd, check=False)
        if not result.success:
            return self._failure(cmd, result)
        return ActionResult.success(
            [self.finding(Severity.INFO, f"Unused dependencies removed via {pm.value} autoremove")]
        )

    def _clean_zypper(self, pm: PackageManager) -> ActionResult:
        query = ["zypper", "--non-interactive", "packages", "--orphaned"]
        result = self.runner.execute(query, check=False)
        if not result.success:
            return self._failure(query, result)

        orphans = parse_zypper_orphans(result.stdout)
        if orphans:
            remove = ["zypper", "--non-interactive", "remove", "--clean-deps"] + orphans
            result = self.runner.execute(remove, check=False)
            if not result.success:
                return self._failure(remove, result)
        return self._removed(orphans)

    def _clean_pacman(self, pm: PackageManager) -> ActionResult:
        query = ["pacman", "-Qdtq"]
        result = self.runner.execute(query, check=False)
        # pacman exits 1 with no output when there is nothing to list
        if not result.success and (result.return_code != 1 or result.stderr.strip()):
            return self._failure(query, result)

        orphans = _unique_lines(result.stdout)
        if orphans:
            remove = ["pacman", "-Rns", "--noconfirm"] + orphans
            result = self.runner.execute(remove, check=False)
            if not result.success:
                return self._failure(remove, result)
        return self._removed(orphans)
