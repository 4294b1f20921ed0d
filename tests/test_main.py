"""Tests for the CLI entry point."""

import pytest

from host_hardener import main as cli
from host_hardener.exceptions import ProbeError
from host_hardener.models import ActionResult, Finding
from host_hardener.types import Capability, Criticality, Severity


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """Run each CLI test from an empty directory with a clean environment."""
    monkeypatch.chdir(tmp_path)
    for var in ("HARDENER_SKIP", "HARDENER_REPORT_PATH", "HARDENER_TIMEOUT_SECONDS",
                "LOG_FILE", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def host(monkeypatch, make_plugin, debian_facts):
    """Patch the probe and plugin set used by main()."""
    state = {"facts": debian_facts, "plugins": None, "probe_error": None}

    class FakeProbe:
        def detect(self):
            if state["probe_error"] is not None:
                raise state["probe_error"]
            return state["facts"]

    def plugins(runner, config):
        state["config"] = config
        return state["plugins"]

    state["plugins"] = [
        make_plugin(
            "package-update",
            capabilities=frozenset({Capability.PACKAGE_MANAGER}),
            criticality=Criticality.FATAL,
        ),
        make_plugin(
            "firewall-baseline",
            capabilities=frozenset({Capability.FIREWALL_BACKEND}),
            criticality=Criticality.FATAL,
        ),
    ]
    monkeypatch.setattr(cli, "SystemProbe", FakeProbe)
    monkeypatch.setattr(cli, "builtin_plugins", plugins)
    return state


def run_main(*argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(list(argv))
    return exc.value.code


def test_missing_firewall_still_succeeds(host, tmp_path):
    host["facts"] = host["facts"].model_copy(update={"firewall_backend": None})
    report = tmp_path / "fh.txt"

    assert run_main("--report-path", str(report), "-q") == 0

    update, firewall = host["plugins"]
    assert update.calls == 1
    assert firewall.calls == 0
    text = report.read_text()
    assert "firewall-baseline: skipped - missing capability: firewallBackend" in text


def test_default_report_path(host, tmp_path):
    assert run_main("-q") == 0
    assert (tmp_path / "fh.txt").exists()


def test_fatal_failure_exit_code(host, make_plugin, capsys):
    failing = ActionResult.failure(
        [Finding(severity=Severity.CRITICAL, subject="package-update", detail="apt broke")],
        reason="apt update failed",
    )
    host["plugins"] = [
        make_plugin("package-update", result=failing, criticality=Criticality.FATAL),
        make_plugin("later"),
    ]

    assert run_main() == 1

    assert host["plugins"][1].calls == 0
    out = capsys.readouterr()
    assert "aborted: prior fatal failure" in out.out
    assert "fatal step failed" in out.err


def test_dry_run_executes_nothing(host, tmp_path, capsys):
    host["facts"] = host["facts"].model_copy(update={"is_root": False})

    assert run_main("--dry-run") == 0

    assert all(p.calls == 0 for p in host["plugins"])
    assert not (tmp_path / "fh.txt").exists()
    out = capsys.readouterr().out
    assert "package-update" in out
    assert "firewall-baseline" in out


def test_skip_flag_repeatable(host, capsys):
    assert run_main("--dry-run", "--skip", "package-update", "--skip", "firewall-baseline") == 0
    out = capsys.readouterr().out
    assert out.count("skipped by request") == 2


def test_unknown_skip_name(host, capsys):
    assert run_main("--skip", "nonexistent") == 2
    assert "Unknown plugin: nonexistent" in capsys.readouterr().err
    assert all(p.calls == 0 for p in host["plugins"])


def test_probe_failure_exit_code(host, capsys):
    host["probe_error"] = ProbeError("No OS identity file found")

    assert run_main() == 2
    assert "No OS identity file found" in capsys.readouterr().err


def test_non_root_refused(host, capsys):
    host["facts"] = host["facts"].model_copy(update={"is_root": False})

    assert run_main() == 1
    assert all(p.calls == 0 for p in host["plugins"])
    assert "root" in capsys.readouterr().err


def test_unwritable_report_path(host, tmp_path, capsys):
    assert run_main("--report-path", str(tmp_path / "missing" / "fh.txt")) == 1
    assert "Report error" in capsys.readouterr().err
    assert all(p.calls == 0 for p in host["plugins"])


def test_invalid_timeout(host, capsys):
    assert run_main("--timeout-seconds", "0") == 1
    assert "Invalid timeout" in capsys.readouterr().err


def test_cli_overrides_reach_config(host, monkeypatch):
    monkeypatch.setenv("HARDENER_SKIP", "package-update")

    assert run_main(
        "--dry-run", "--skip", "firewall-baseline", "--management-port", "2222",
        "--keep-infected", "--timeout-seconds", "90",
    ) == 0

    config = host["config"]
    assert config.run.skip == ["package-update", "firewall-baseline"]
    assert config.firewall.management_port == 2222
    assert config.scan.remove_infected is False
    assert config.run.timeout_seconds == 90


def test_parse_args_defaults():
    args = cli.parse_args([])
    assert args.skip == []
    assert args.report_path is None
    assert not args.dry_run
