"""Host Hardener - capability-driven Linux host hardening orchestrator."""

__version__ = "1.0.0"
__author__ = "DevOps Team"
__license__ = "MIT"

from host_hardener.exceptions import (
    CapabilityUnmet,
    ConfigurationError,
    HardenerError,
    ProbeError,
    ReportWriteError,
    StepFailure,
    StepTimeout,
)
from host_hardener.executor import PlanExecutor
from host_hardener.models import ActionResult, Finding, SystemFacts
from host_hardener.planner import ExecutionPlan, PlanBuilder
from host_hardener.registry import PluginRegistry
from host_hardener.report import Report, ReportSink
from host_hardener.system_info import SystemProbe

__all__ = [
    "ActionResult",
    "CapabilityUnmet",
    "ConfigurationError",
    "ExecutionPlan",
    "Finding",
    "HardenerError",
    "PlanBuilder",
    "PlanExecutor",
    "PluginRegistry",
    "ProbeError",
    "Report",
    "ReportSink",
    "ReportWriteError",
    "StepFailure",
    "StepTimeout",
    "SystemFacts",
    "SystemProbe",
]
