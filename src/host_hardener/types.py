"""Type definitions for Host Hardener."""

from enum import Enum
from typing import NamedTuple


class DistroFamily(str, Enum):
    """Distribution families that share a package toolchain."""

    DEBIAN = "debian"
    REDHAT = "redhat"
    SUSE = "suse"
    ALPINE = "alpine"
    ARCH = "arch"
    UNKNOWN = "unknown"


class FirewallBackend(str, Enum):
    """Supported firewall backends."""

    UFW = "ufw"
    FIREWALLD = "firewalld"
    IPTABLES = "iptables"


class PackageManager(str, Enum):
    """Supported package managers."""

    APT = "apt"
    DNF = "dnf"
    YUM = "yum"
    ZYPPER = "zypper"
    APK = "apk"
    PACMAN = "pacman"


class Capability(str, Enum):
    """Environmental facts a plugin can require."""

    PACKAGE_MANAGER = "packageManager"
    FIREWALL_BACKEND = "firewallBackend"
    ACCOUNT_TOOLS = "accountTools"


class Criticality(str, Enum):
    """Whether a failing step halts the remaining plan."""

    FATAL = "fatal"
    BEST_EFFORT = "best-effort"


class Severity(str, Enum):
    """Finding severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ResultStatus(str, Enum):
    """Outcome of a single plugin invocation."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class StepStatus(str, Enum):
    """Lifecycle of a plan step inside the executor."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.SUCCEEDED, StepStatus.FAILED, StepStatus.SKIPPED)


class CommandResult(NamedTuple):
    """Result of command execution."""

    success: bool
    stdout: str
    stderr: str
    return_code: int = 0


class Account(NamedTuple):
    """Local account database entry."""

    name: str
    uid: int
    shell: str
