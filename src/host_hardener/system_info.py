"""System fact detection for Host Hardener."""

import os
import pwd
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from host_hardener.exceptions import ProbeError
from host_hardener.models import SystemFacts
from host_hardener.types import DistroFamily, FirewallBackend, PackageManager

logger = structlog.get_logger(__name__)

OS_RELEASE_PATHS = (Path("/etc/os-release"), Path("/usr/lib/os-release"))

DISTRO_FAMILIES: Dict[str, DistroFamily] = {
    "debian": DistroFamily.DEBIAN,
    "ubuntu": DistroFamily.DEBIAN,
    "mint": DistroFamily.DEBIAN,
    "linuxmint": DistroFamily.DEBIAN,
    "kali": DistroFamily.DEBIAN,
    "raspbian": DistroFamily.DEBIAN,
    "pop": DistroFamily.DEBIAN,
    "centos": DistroFamily.REDHAT,
    "fedora": DistroFamily.REDHAT,
    "rhel": DistroFamily.REDHAT,
    "rocky": DistroFamily.REDHAT,
    "almalinux": DistroFamily.REDHAT,
    "ol": DistroFamily.REDHAT,
    "amzn": DistroFamily.REDHAT,
    "opensuse": DistroFamily.SUSE,
    "opensuse-leap": DistroFamily.SUSE,
    "opensuse-tumbleweed": DistroFamily.SUSE,
    "suse": DistroFamily.SUSE,
    "sles": DistroFamily.SUSE,
    "sled": DistroFamily.SUSE,
    "alpine": DistroFamily.ALPINE,
    "arch": DistroFamily.ARCH,
    "manjaro": DistroFamily.ARCH,
    "endeavouros": DistroFamily.ARCH,
}

# Executable that identifies each package manager, in fallback order.
PACKAGE_MANAGER_COMMANDS: List[Tuple[str, PackageManager]] = [
    ("apt-get", PackageManager.APT),
    ("dnf", PackageManager.DNF),
    ("yum", PackageManager.YUM),
    ("zypper", PackageManager.ZYPPER),
    ("apk", PackageManager.APK),
    ("pacman", PackageManager.PACMAN),
]

FAMILY_PACKAGE_MANAGERS: Dict[DistroFamily, Tuple[PackageManager, ...]] = {
    DistroFamily.DEBIAN: (PackageManager.APT,),
    DistroFamily.REDHAT: (PackageManager.DNF, PackageManager.YUM),
    DistroFamily.SUSE: (PackageManager.ZYPPER,),
    DistroFamily.ALPINE: (PackageManager.APK,),
    DistroFamily.ARCH: (PackageManager.PACMAN,),
}

FIREWALL_COMMANDS: List[Tuple[str, FirewallBackend]] = [
    ("ufw", FirewallBackend.UFW),
    ("firewall-cmd", FirewallBackend.FIREWALLD),
    ("iptables", FirewallBackend.IPTABLES),
]

ACCOUNT_TOOLS = ("usermod", "chpasswd")


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse KEY=VALUE lines of an os-release file."""
    values: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def classify_distro(distro_id: str, id_like: str = "") -> DistroFamily:
    """Map an os-release ID (falling back to ID_LIKE) to a family."""
    for candidate in [distro_id, *id_like.split()]:
        family = DISTRO_FAMILIES.get(candidate.lower())
        if family is not None:
            return family
        if candidate.lower().startswith("opensuse"):
            return DistroFamily.SUSE
    return DistroFamily.UNKNOWN


class SystemProbe:
    """Detect the facts plugins are selected against.

    Read-only: it inspects the OS identity file and the executables on the
    path. Each call to detect() takes a fresh snapshot.
    """

    def __init__(
        self,
        os_release_paths: Sequence[Path] = OS_RELEASE_PATHS,
        command_exists: Optional[Callable[[str], bool]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.os_release_paths = tuple(os_release_paths)
        self._command_exists = command_exists or self._which
        self._environ = environ if environ is not None else os.environ

    def detect(self) -> SystemFacts:
        """Take a snapshot of the host.

        Raises:
            ProbeError: If no distribution identifier file exists
        """
        distro_id, family = self._detect_distro()
        facts = SystemFacts(
            distro_id=distro_id,
            distro_family=family,
            package_manager=self._detect_package_manager(family),
            firewall_backend=self._detect_firewall(),
            invoking_user=self._detect_invoking_user(),
            is_root=os.geteuid() == 0,
            account_tools=all(self._command_exists(t) for t in ACCOUNT_TOOLS),
        )
        logger.info("system_detected", **facts.to_dict())
        return facts

    def _detect_distro(self) -> Tuple[str, DistroFamily]:
        """Detect Linux distribution."""
        for path in self.os_release_paths:
            if not path.exists():
                continue
            try:
                values = parse_os_release(path.read_text(encoding="utf-8", errors="replace"))
            except OSError as e:
                raise ProbeError(f"Cannot read {path}: {e}") from e
            distro_id = values.get("ID", "").lower() or "unknown"
            return distro_id, classify_distro(distro_id, values.get("ID_LIKE", ""))

        searched = ", ".join(str(p) for p in self.os_release_paths)
        raise ProbeError(f"Unable to determine Linux distribution (searched {searched})")

    def _detect_package_manager(self, family: DistroFamily) -> Optional[PackageManager]:
        """Detect available package manager, preferring the family's own."""
        commands = {pm: cmd for cmd, pm in PACKAGE_MANAGER_COMMANDS}

        for pm in FAMILY_PACKAGE_MANAGERS.get(family, ()):
            if self._command_exists(commands[pm]):
                return pm

        for cmd, pm in PACKAGE_MANAGER_COMMANDS:
            if self._command_exists(cmd):
                return pm

        return None

    def _detect_firewall(self) -> Optional[FirewallBackend]:
        """Detect available firewall tool."""
        for cmd, backend in FIREWALL_COMMANDS:
            if self._command_exists(cmd):
                return backend
        return None

    def _detect_invoking_user(self) -> str:
        """Name of the human behind the run, seen through sudo."""
        sudo_user = self._environ.get("SUDO_USER")
        if sudo_user:
            return sudo_user
        try:
            return pwd.getpwuid(os.geteuid()).pw_name
        except KeyError:
            return self._environ.get("USER", "root")

    @staticmethod
    def _which(command: str) -> bool:
        """Check if a command exists."""
        return shutil.which(command) is not None
