"""Tests for logging setup."""

import json

import structlog

from host_hardener.config import LoggingConfig
from host_hardener.log import configure_logging


def test_file_output_is_json(tmp_path):
    log_file = tmp_path / "hardener.log"
    configure_logging(LoggingConfig(level="INFO", file=log_file))

    logger = structlog.get_logger("host_hardener.test")
    logger.info("step_started", step="package-update")
    logger.debug("command_started", command="apt-get update")

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["event"] == "step_started"
    assert event["step"] == "package-update"
    assert event["level"] == "info"
    assert "timestamp" in event


def test_verbose_enables_debug(tmp_path):
    log_file = tmp_path / "hardener.log"
    configure_logging(LoggingConfig(level="WARNING", file=log_file), verbose=True)

    structlog.get_logger().debug("command_started", command="ufw status")

    assert "command_started" in log_file.read_text(encoding="utf-8")


def test_quiet_drops_info(capsys):
    configure_logging(LoggingConfig(level="DEBUG"), quiet=True)

    logger = structlog.get_logger()
    logger.info("step_started", step="x")
    logger.error("plan_halted", step="x")

    err = capsys.readouterr().err
    assert "step_started" not in err
    assert "plan_halted" in err
