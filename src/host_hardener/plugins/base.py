"""Action plugin contract.

A plugin is one self-contained unit of hardening or enumeration work. It
declares the capabilities it needs up front so the plan builder can decide,
without any I/O, whether it belongs in a run. Plugins talk to external tools
only through the CommandExecutor they are constructed with and report what
they saw as Findings inside the ActionResult they return.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Dict, FrozenSet, List, Optional, Tuple

from host_hardener.models import ActionResult, Finding, SystemFacts
from host_hardener.types import Capability, CommandResult, Criticality, Severity
from host_hardener.utils.command import CommandExecutor

STDERR_TAIL_LINES = 10


def output_tail(result: CommandResult, lines: int = STDERR_TAIL_LINES) -> str:
    """Last lines of a failed command's output, stderr preferred."""
    text = result.stderr.strip() or result.stdout.strip()
    if not text:
        return f"exit status {result.return_code}, no output"
    return "\n".join(text.splitlines()[-lines:])


class ActionPlugin(ABC):
    """Base class for all action plugins.

    To create a new plugin:
        1. Subclass ActionPlugin
        2. Set name, title, criticality and required_capabilities
        3. Implement run()
        4. Register it in the PluginRegistry
    """

    name: ClassVar[str]
    title: ClassVar[str]
    criticality: ClassVar[Criticality] = Criticality.BEST_EFFORT
    required_capabilities: ClassVar[FrozenSet[Capability]] = frozenset()

    def __init__(self, runner: CommandExecutor) -> None:
        self.runner = runner

    def capabilities(self) -> FrozenSet[Capability]:
        """Capabilities the host must offer. Static, no I/O."""
        return self.required_capabilities

    @abstractmethod
    def run(self, facts: SystemFacts) -> ActionResult:
        """Do the work and describe the outcome.

        Tool failures are reported through the returned ActionResult. A
        StepTimeout raised by the runner may propagate; the executor owns it.
        """

    def finding(
        self,
        severity: Severity,
        detail: str,
        subject: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Finding:
        return Finding(
            severity=severity,
            subject=subject or self.name,
            detail=detail,
            category=category,
        )

    def run_sequence(
        self, commands: List[List[str]], env: Optional[Dict[str, str]] = None
    ) -> Optional[Tuple[List[str], CommandResult]]:
        """Run commands in order, stopping at the first failure.

        Returns:
            The failing command and its result, or None if all succeeded
        """
        for cmd in commands:
            result = self.runner.execute(cmd, check=False, env=env)
            if not result.success:
                return cmd, result
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
