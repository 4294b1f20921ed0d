"""Custom exceptions for Host Hardener."""

from typing import Optional


class HardenerError(Exception):
    """Base exception for all hardener errors."""

    pass


class ConfigurationError(HardenerError):
    """Raised when configuration is invalid."""

    pass


class ValidationError(HardenerError):
    """Raised when validation fails."""

    pass


class ProbeError(HardenerError):
    """Raised when system facts cannot be established."""

    pass


class CapabilityUnmet(HardenerError):
    """Raised by a plugin that finds a prerequisite missing at run time.

    Never surfaces as an error: the executor records the step as skipped.
    """

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(f"missing capability: {capability}")


class StepFailure(HardenerError):
    """Raised when an external tool fails during a plan step."""

    pass


class CommandExecutionError(StepFailure):
    """Raised when command execution fails."""

    pass


class StepTimeout(StepFailure):
    """Raised when a step exhausts its time budget."""

    def __init__(self, message: str, timeout: Optional[float] = None) -> None:
        self.timeout = timeout
        super().__init__(message)


class ReportWriteError(HardenerError):
    """Raised when the report cannot be persisted."""

    pass
