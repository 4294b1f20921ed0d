"""Plan executor: runs an ExecutionPlan one step at a time.

Steps never run in parallel. Several plugins mutate shared host state (the
package database, the firewall rule table, the account database), and the
report sink appends without locking because only this loop writes to it.
Running plugins concurrently would require a synchronized append first.

Per step: pending -> running -> succeeded | failed | skipped. Terminal
states are final and nothing is retried. A failed fatal step halts the
plan; remaining steps are skipped. Tool failures and timeouts become
ActionResults here and never propagate further.
"""

import time
from typing import Callable, Dict, Optional

import structlog

from host_hardener.exceptions import (
    CapabilityUnmet,
    HardenerError,
    ReportWriteError,
    StepFailure,
    StepTimeout,
)
from host_hardener.models import ActionResult, Finding, SystemFacts
from host_hardener.planner import ExecutionPlan, PlanStep
from host_hardener.report import Report, ReportSink, StepOutcome
from host_hardener.types import Criticality, ResultStatus, Severity, StepStatus
from host_hardener.utils.command import CommandExecutor

logger = structlog.get_logger(__name__)

ABORTED_FATAL = "aborted: prior fatal failure"
ABORTED_CANCELLED = "aborted: run cancelled"

DEFAULT_TIMEOUT_SECONDS = 1800

TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.RUNNING, StepStatus.SKIPPED},
    StepStatus.RUNNING: {StepStatus.SUCCEEDED, StepStatus.FAILED, StepStatus.SKIPPED},
}

RESULT_STATUS = {
    ResultStatus.SUCCESS: StepStatus.SUCCEEDED,
    ResultStatus.FAILURE: StepStatus.FAILED,
    ResultStatus.SKIPPED: StepStatus.SKIPPED,
}


def failure_severity(criticality: Criticality) -> Severity:
    """Severity of an executor-generated finding for a failed step."""
    return Severity.CRITICAL if criticality == Criticality.FATAL else Severity.WARNING


class PlanExecutor:
    """Run plan steps sequentially, feeding their findings to the report."""

    def __init__(
        self,
        sink: ReportSink,
        runner: CommandExecutor,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize plan executor.

        Args:
            sink: Report sink receiving findings and outcomes
            runner: Command runner shared with the plugins; carries the step budget
            timeout_seconds: Per-step time budget
            clock: Monotonic clock used to time steps
        """
        self.sink = sink
        self.runner = runner
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._abort_requested = False
        self.states: Dict[str, StepStatus] = {}

    def request_abort(self) -> None:
        """Stop dispatching new steps. The running step is left to finish."""
        if not self._abort_requested:
            logger.warning("abort_requested")
        self._abort_requested = True

    @property
    def abort_requested(self) -> bool:
        return self._abort_requested

    def execute(self, plan: ExecutionPlan) -> Report:
        """Run every included step of the plan and finalize the report.

        Raises:
            HardenerError: If the plan was already executed
            ReportWriteError: If the report cannot be persisted
        """
        if plan.consumed:
            raise HardenerError("Execution plan already consumed")
        plan.consumed = True

        self.states = {step.name: StepStatus.PENDING for step in plan.steps}
        self.sink.start(plan.facts)

        halt_reason: Optional[str] = None
        try:
            for step in plan.steps:
                if halt_reason is None and self._abort_requested:
                    halt_reason = ABORTED_CANCELLED

                if halt_reason is not None:
                    self._skip(step, halt_reason)
                elif not step.included:
                    self._skip(step, step.skip_reason or "not included")
                else:
                    outcome = self._run_step(step, plan.facts)
                    if (
                        outcome.status == StepStatus.FAILED
                        and outcome.criticality == Criticality.FATAL
                    ):
                        logger.error("plan_halted", step=step.name, reason=outcome.reason)
                        halt_reason = ABORTED_FATAL

            report = self.sink.finalize()
        finally:
            self.sink.close()

        logger.info("plan_finished", summary=report.summary())
        return report

    def _run_step(self, step: PlanStep, facts: SystemFacts) -> StepOutcome:
        plugin = step.plugin
        self._transition(step.name, StepStatus.RUNNING)
        logger.info("step_started", step=step.name, criticality=plugin.criticality.value)

        started = self._clock()
        try:
            with self.runner.time_budget(self.timeout_seconds):
                result = plugin.run(facts)
        except StepTimeout as e:
            result = self._timeout_result(step, str(e))
        except CapabilityUnmet as e:
            result = ActionResult.skipped(str(e))
        except ReportWriteError:
            raise
        except StepFailure as e:
            result = self._failure_result(step, str(e))
        except Exception as e:
            logger.exception("step_crashed", step=step.name)
            result = self._failure_result(step, f"unexpected error: {e}")
        elapsed = self._clock() - started

        if result.status != ResultStatus.SKIPPED and elapsed > self.timeout_seconds:
            if not (result.reason or "").startswith("timeout"):
                overrun = self._timeout_result(
                    step, f"step ran {elapsed:.0f}s, budget is {self.timeout_seconds:.0f}s"
                )
                result = overrun.model_copy(
                    update={"findings": result.findings + overrun.findings}
                )

        result = result.model_copy(update={"duration_ms": int(elapsed * 1000)})
        status = RESULT_STATUS[result.status]

        self.sink.append(plugin.title, result.findings)
        self._transition(step.name, status)

        outcome = StepOutcome(
            name=step.name,
            criticality=plugin.criticality,
            status=status,
            reason=result.reason,
            duration_ms=result.duration_ms,
            findings=len(result.findings),
        )
        self.sink.record(outcome)
        logger.info(
            "step_finished",
            step=step.name,
            status=status.value,
            duration_ms=result.duration_ms,
            findings=len(result.findings),
        )
        return outcome

    def _skip(self, step: PlanStep, reason: str) -> StepOutcome:
        self._transition(step.name, StepStatus.SKIPPED)
        outcome = StepOutcome(
            name=step.name,
            criticality=step.plugin.criticality,
            status=StepStatus.SKIPPED,
            reason=reason,
        )
        self.sink.record(outcome)
        logger.info("step_skipped", step=step.name, reason=reason)
        return outcome

    def _timeout_result(self, step: PlanStep, detail: str) -> ActionResult:
        finding = Finding(
            severity=failure_severity(step.plugin.criticality),
            subject=step.name,
            detail=f"timeout: {detail}",
        )
        return ActionResult.failure(
            [finding], reason=f"timeout after {self.timeout_seconds:.0f}s"
        )

    def _failure_result(self, step: PlanStep, detail: str) -> ActionResult:
        finding = Finding(
            severity=failure_severity(step.plugin.criticality),
            subject=step.name,
            detail=detail,
        )
        return ActionResult.failure([finding], reason=detail.splitlines()[0] if detail else None)

    def _transition(self, name: str, new: StepStatus) -> None:
        current = self.states[name]
        if current.is_terminal or new not in TRANSITIONS[current]:
            raise HardenerError(
                f"Illegal step transition for {name}: {current.value} -> {new.value}"
            )
        self.states[name] = new
