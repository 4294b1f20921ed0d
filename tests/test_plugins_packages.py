"""Tests for the package update and cleanup plugins."""

import pytest

from host_hardener.exceptions import CapabilityUnmet
from host_hardener.plugins.packages import (
    PackageCleanup,
    PackageUpdate,
    install_command,
    parse_zypper_orphans,
)
from host_hardener.types import (
    Capability,
    CommandResult,
    Criticality,
    PackageManager,
    ResultStatus,
    Severity,
)

ZYPPER_ORPHANS = """Loading repository data...
Reading installed packages...
S  | Repository | Name        | Version | Arch
---+------------+-------------+---------+-------
i  | @System    | libfoo1     | 1.0-1   | x86_64
i  | @System    | oldtool     | 2.3-4   | noarch
"""


def test_update_declares_fatal_package_manager_requirement(make_runner):
    plugin = PackageUpdate(make_runner())
    assert plugin.capabilities() == {Capability.PACKAGE_MANAGER}
    assert plugin.criticality == Criticality.FATAL


def test_update_apt_success(make_runner, debian_facts):
    runner = make_runner()

    result = PackageUpdate(runner).run(debian_facts)

    assert result.status == ResultStatus.SUCCESS
    assert runner.calls == ["apt-get update", "apt-get -y upgrade"]
    assert len(result.findings) == 1
    assert result.findings[0].severity == Severity.INFO
    assert "apt" in result.findings[0].detail


def test_update_failure_reports_stderr_tail(make_runner, debian_facts):
    stderr = "\n".join(f"line {i}" for i in range(30)) + "\nE: Unable to fetch\n"
    runner = make_runner({"apt-get -y upgrade": CommandResult(False, "", stderr, 100)})

    result = PackageUpdate(runner).run(debian_facts)

    assert result.status == ResultStatus.FAILURE
    assert len(result.findings) == 1
    finding = result.findings[0]
    assert finding.severity == Severity.CRITICAL
    assert "E: Unable to fetch" in finding.detail
    assert "line 0\n" not in finding.detail
    assert "exited 100" in finding.detail


def test_update_stops_at_first_failure(make_runner, debian_facts):
    runner = make_runner({"apt-get update": CommandResult(False, "", "no network", 1)})

    PackageUpdate(runner).run(debian_facts)

    assert runner.calls == ["apt-get update"]


@pytest.mark.parametrize(
    "pm, expected",
    [
        (PackageManager.DNF, ["dnf -y upgrade"]),
        (PackageManager.YUM, ["yum -y update"]),
        (PackageManager.ZYPPER, ["zypper --non-interactive refresh",
                                 "zypper --non-interactive update"]),
        (PackageManager.APK, ["apk update", "apk upgrade"]),
        (PackageManager.PACMAN, ["pacman -Syu --noconfirm"]),
    ],
)
def test_update_commands_per_family(make_runner, debian_facts, pm, expected):
    runner = make_runner()
    PackageUpdate(runner).run(debian_facts.model_copy(update={"package_manager": pm}))
    assert runner.calls == expected


def test_update_without_package_manager(make_runner, bare_facts):
    with pytest.raises(CapabilityUnmet):
        PackageUpdate(make_runner()).run(bare_facts)


def test_cleanup_apt_purges_deborphan_output(make_runner, debian_facts):
    runner = make_runner({
        "deborphan --guess-data": CommandResult(True, "libfoo-data\n", "", 0),
        "deborphan": CommandResult(True, "libbar1\nlibfoo-data\n", "", 0),
    })

    result = PackageCleanup(runner).run(debian_facts)

    assert result.status == ResultStatus.SUCCESS
    assert runner.calls == [
        "apt-get install -y deborphan",
        "deborphan --guess-data",
        "apt-get -y purge libfoo-data",
        "deborphan",
        "apt-get -y purge libbar1",
        "apt-get -y autoremove --purge",
    ]
    assert "libfoo-data, libbar1" in result.findings[0].detail


def test_cleanup_failure_is_warning(make_runner, debian_facts):
    runner = make_runner({"apt-get install": CommandResult(False, "", "E: locked", 100)})

    plugin = PackageCleanup(runner)
    result = plugin.run(debian_facts)

    assert plugin.criticality == Criticality.BEST_EFFORT
    assert result.status == ResultStatus.FAILURE
    assert result.findings[0].severity == Severity.WARNING


def test_cleanup_zypper(make_runner, debian_facts):
    runner = make_runner({
        "zypper --non-interactive packages --orphaned": CommandResult(True, ZYPPER_ORPHANS, "", 0),
    })
    facts = debian_facts.model_copy(update={"package_manager": PackageManager.ZYPPER})

    result = PackageCleanup(runner).run(facts)

    assert result.ok
    assert runner.calls[-1] == "zypper --non-interactive remove --clean-deps libfoo1 oldtool"


def test_cleanup_pacman_nothing_to_remove(make_runner, debian_facts):
    runner = make_runner({"pacman -Qdtq": CommandResult(False, "", "", 1)})
    facts = debian_facts.model_copy(update={"package_manager": PackageManager.PACMAN})

    result = PackageCleanup(runner).run(facts)

    assert result.ok
    assert runner.calls == ["pacman -Qdtq"]
    assert result.findings[0].detail == "No orphaned packages found"


@pytest.mark.parametrize("pm", [PackageManager.DNF, PackageManager.YUM])
def test_cleanup_autoremove(make_runner, debian_facts, pm):
    runner = make_runner()
    PackageCleanup(runner).run(debian_facts.model_copy(update={"package_manager": pm}))
    assert runner.calls == [f"{pm.value} autoremove -y"]


def test_cleanup_apk_runs_nothing(make_runner, debian_facts):
    runner = make_runner()
    facts = debian_facts.model_copy(update={"package_manager": PackageManager.APK})

    result = PackageCleanup(runner).run(facts)

    assert result.ok
    assert runner.calls == []


def test_parse_zypper_orphans():
    assert parse_zypper_orphans(ZYPPER_ORPHANS) == ["libfoo1", "oldtool"]
    assert parse_zypper_orphans("No packages found.\n") == []


def test_install_command():
    assert install_command(PackageManager.APK, ["clamav"]) == ["apk", "add", "clamav"]
    assert install_command(PackageManager.PACMAN, ["a", "b"]) == [
        "pacman", "-S", "--noconfirm", "a", "b"
    ]
