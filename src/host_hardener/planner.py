"""Execution plan builder.

Selects plugins for a run from the registry by comparing their declared
capabilities with what the host offers. Pure data in, data out: the same
facts and registry always give the same plan.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import structlog

from host_hardener.exceptions import CapabilityUnmet
from host_hardener.models import SystemFacts
from host_hardener.plugins.base import ActionPlugin
from host_hardener.registry import PluginRegistry

logger = structlog.get_logger(__name__)

SKIPPED_BY_REQUEST = "skipped by request"


@dataclass(frozen=True)
class PlanStep:
    """One plugin slot in a plan."""

    plugin: ActionPlugin
    included: bool
    skip_reason: Optional[str] = None

    @property
    def name(self) -> str:
        return self.plugin.name


@dataclass
class ExecutionPlan:
    """Ordered, capability-filtered plugins chosen for a run."""

    facts: SystemFacts
    steps: List[PlanStep] = field(default_factory=list)
    consumed: bool = False

    @property
    def included(self) -> List[PlanStep]:
        return [s for s in self.steps if s.included]

    @property
    def skipped(self) -> List[PlanStep]:
        return [s for s in self.steps if not s.included]

    def describe(self) -> str:
        """Human-readable plan listing for --dry-run."""
        width = max((len(s.name) for s in self.steps), default=0)
        lines = []
        for index, step in enumerate(self.steps, 1):
            state = "run" if step.included else f"skip ({step.skip_reason})"
            lines.append(
                f"{index:>2}. {step.name:<{width}}  "
                f"[{step.plugin.criticality.value:<11}]  {state}"
            )
        return "\n".join(lines)


class PlanBuilder:
    """Build an ExecutionPlan from facts and a plugin registry."""

    def build(
        self,
        facts: SystemFacts,
        registry: PluginRegistry,
        skip: Iterable[str] = (),
    ) -> ExecutionPlan:
        """Include each plugin whose capabilities the host satisfies.

        Args:
            facts: Snapshot taken by the probe
            registry: Plugins in registration order
            skip: Plugin names the operator excluded

        Returns:
            Plan with one step per registered plugin
        """
        available = facts.capabilities()
        skipped_names = set(skip)
        plan = ExecutionPlan(facts=facts)

        for plugin in registry:
            if plugin.name in skipped_names:
                plan.steps.append(PlanStep(plugin, False, SKIPPED_BY_REQUEST))
                continue

            missing = sorted(c.value for c in plugin.capabilities() - available)
            if missing:
                reason = str(CapabilityUnmet(", ".join(missing)))
                logger.info("plugin_skipped", plugin=plugin.name, reason=reason)
                plan.steps.append(PlanStep(plugin, False, reason))
                continue

            plan.steps.append(PlanStep(plugin, True))

        logger.debug(
            "plan_built", included=len(plan.included), skipped=len(plan.skipped)
        )
        return plan
