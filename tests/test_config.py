"""Tests for configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from host_hardener.config import (
    AccountConfig,
    FirewallConfig,
    HardenerConfig,
    LoggingConfig,
    RunConfig,
    ScanConfig,
)


def test_run_config_defaults():
    """Test run config default values."""
    config = RunConfig()
    assert config.report_path == Path("fh.txt")
    assert config.timeout_seconds == 1800
    assert config.skip == []


def test_section_defaults():
    assert FirewallConfig().management_port == 22
    scan = ScanConfig()
    assert scan.root == Path("/")
    assert scan.remove_infected
    assert scan.install_missing
    assert AccountConfig().credential_bytes == 16


def test_parse_skip_from_env(monkeypatch):
    """Test plugin names parsing from a comma-separated variable."""
    monkeypatch.setenv("HARDENER_SKIP", "malware-scan, firewall-baseline,")
    config = RunConfig()
    assert config.skip == ["malware-scan", "firewall-baseline"]


def test_parse_protected_accounts():
    config = AccountConfig(protected="deploy, backup")
    assert config.protected == ["deploy", "backup"]


def test_invalid_port_from_env(monkeypatch):
    monkeypatch.setenv("FIREWALL_MANAGEMENT_PORT", "70000")
    with pytest.raises(ValidationError):
        FirewallConfig()


def test_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        RunConfig(timeout_seconds=0)


def test_log_level_normalized():
    assert LoggingConfig(level="debug").level == "DEBUG"
    with pytest.raises(ValidationError):
        LoggingConfig(level="chatty")


def test_validate_config_flags_relative_scan_root():
    config = HardenerConfig.from_env()
    config.scan.root = Path("relative/dir")

    issues = config.validate_config()
    assert any("absolute" in issue for issue in issues)


def test_validate_config_clean_by_default():
    assert HardenerConfig.from_env().validate_config() == []
