"""Immutable records passed between the probe, plugins, executor and report."""

from typing import FrozenSet, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from host_hardener.types import (
    Capability,
    DistroFamily,
    FirewallBackend,
    PackageManager,
    ResultStatus,
    Severity,
)


class SystemFacts(BaseModel):
    """Point-in-time snapshot of the host, taken once at startup."""

    model_config = ConfigDict(frozen=True)

    distro_id: str
    distro_family: DistroFamily
    package_manager: Optional[PackageManager] = None
    firewall_backend: Optional[FirewallBackend] = None
    invoking_user: str
    is_root: bool = False
    account_tools: bool = False

    def capabilities(self) -> FrozenSet[Capability]:
        """Derive the capability set plugins are matched against."""
        derived = set()
        if self.package_manager is not None:
            derived.add(Capability.PACKAGE_MANAGER)
        if self.firewall_backend is not None:
            derived.add(Capability.FIREWALL_BACKEND)
        if self.account_tools:
            derived.add(Capability.ACCOUNT_TOOLS)
        return frozenset(derived)

    def to_dict(self) -> dict:
        return {
            "distro": f"{self.distro_id} ({self.distro_family.value})",
            "package_manager": self.package_manager.value if self.package_manager else "none",
            "firewall": self.firewall_backend.value if self.firewall_backend else "none",
            "invoking_user": self.invoking_user,
            "is_root": str(self.is_root),
        }


class Finding(BaseModel):
    """One reportable observation."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    subject: str
    detail: str
    category: Optional[str] = None


class ActionResult(BaseModel):
    """Outcome of exactly one plugin invocation."""

    model_config = ConfigDict(frozen=True)

    status: ResultStatus
    findings: Tuple[Finding, ...] = Field(default_factory=tuple)
    duration_ms: int = 0
    reason: Optional[str] = None

    @classmethod
    def success(cls, findings: Sequence[Finding] = ()) -> "ActionResult":
        return cls(status=ResultStatus.SUCCESS, findings=tuple(findings))

    @classmethod
    def failure(
        cls, findings: Sequence[Finding] = (), reason: Optional[str] = None
    ) -> "ActionResult":
        return cls(status=ResultStatus.FAILURE, findings=tuple(findings), reason=reason)

    @classmethod
    def skipped(cls, reason: str) -> "ActionResult":
        return cls(status=ResultStatus.SKIPPED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS
