"""Pytest configuration and fixtures."""

from contextlib import contextmanager
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Union

import pytest
import structlog

from host_hardener.config import HardenerConfig
from host_hardener.exceptions import CommandExecutionError
from host_hardener.models import ActionResult, SystemFacts
from host_hardener.plugins.base import ActionPlugin
from host_hardener.types import (
    Capability,
    CommandResult,
    Criticality,
    DistroFamily,
    FirewallBackend,
    PackageManager,
)
from host_hardener.utils.command import format_command

Response = Union[CommandResult, Exception]

OK = CommandResult(True, "", "", 0)


class FakeRunner:
    """Scripted stand-in for CommandExecutor.

    Responses are keyed by command prefix; the longest matching prefix wins
    and anything unmatched succeeds with no output.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Response]] = None,
        available: Optional[Iterable[str]] = None,
    ) -> None:
        self.responses = dict(responses or {})
        self.available = None if available is None else set(available)
        self.calls: List[str] = []
        self.inputs: List[Optional[str]] = []
        self.budgets: List[float] = []

    @contextmanager
    def time_budget(self, seconds: float) -> Iterator[None]:
        self.budgets.append(seconds)
        yield

    def remaining(self) -> Optional[float]:
        return None

    def execute(self, cmd, check=True, timeout=None, input_text=None, env=None):
        rendered = format_command(cmd)
        self.calls.append(rendered)
        self.inputs.append(input_text)

        matches = [p for p in self.responses if rendered.startswith(p)]
        response = self.responses[max(matches, key=len)] if matches else OK
        if isinstance(response, Exception):
            raise response
        if check and not response.success:
            raise CommandExecutionError(f"Command failed: {rendered}")
        return response

    def check_command_available(self, command: str) -> bool:
        return self.available is None or command in self.available

    def ran(self, prefix: str) -> bool:
        return any(call.startswith(prefix) for call in self.calls)


class StubPlugin(ActionPlugin):
    """Plugin returning a canned result, counting its invocations."""

    def __init__(
        self,
        name: str,
        result: Optional[ActionResult] = None,
        raises: Optional[BaseException] = None,
        capabilities: FrozenSet[Capability] = frozenset(),
        criticality: Criticality = Criticality.BEST_EFFORT,
        on_run=None,
    ) -> None:
        super().__init__(FakeRunner())
        self.name = name
        self.title = name.replace("-", " ").title()
        self.required_capabilities = capabilities
        self.criticality = criticality
        self.result = result or ActionResult.success()
        self.raises = raises
        self.on_run = on_run
        self.calls = 0

    def run(self, facts: SystemFacts) -> ActionResult:
        self.calls += 1
        if self.on_run is not None:
            self.on_run()
        if self.raises is not None:
            raise self.raises
        return self.result


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Keep logging config from leaking between tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_runner():
    """Factory for scripted command runners."""
    return FakeRunner


@pytest.fixture
def make_plugin():
    """Factory for stub plugins."""
    return StubPlugin


@pytest.fixture
def debian_facts() -> SystemFacts:
    """Fully capable Debian host, run by alice through sudo."""
    return SystemFacts(
        distro_id="debian",
        distro_family=DistroFamily.DEBIAN,
        package_manager=PackageManager.APT,
        firewall_backend=FirewallBackend.UFW,
        invoking_user="alice",
        is_root=True,
        account_tools=True,
    )


@pytest.fixture
def bare_facts() -> SystemFacts:
    """Host offering no capabilities at all."""
    return SystemFacts(
        distro_id="unknown",
        distro_family=DistroFamily.UNKNOWN,
        invoking_user="root",
        is_root=True,
    )


@pytest.fixture
def test_config() -> HardenerConfig:
    """Create test configuration."""
    config = HardenerConfig.from_env()
    config.run.timeout_seconds = 60
    config.firewall.management_port = 22
    return config


@pytest.fixture
def report_path(tmp_path: Path) -> Path:
    """Report file location inside a temp directory."""
    return tmp_path / "fh.txt"
