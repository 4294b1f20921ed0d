"""Tests for the command executor."""

import pytest

from host_hardener.exceptions import CommandExecutionError, StepTimeout
from host_hardener.utils.command import CommandExecutor, format_command


def test_captures_stdout():
    result = CommandExecutor().execute(["sh", "-c", "echo hi"])
    assert result.success
    assert result.stdout == "hi\n"
    assert result.return_code == 0


def test_string_runs_through_shell():
    result = CommandExecutor().execute("echo $((1 + 2))")
    assert result.stdout.strip() == "3"


def test_nonzero_exit():
    executor = CommandExecutor()

    with pytest.raises(CommandExecutionError):
        executor.execute(["sh", "-c", "exit 3"])

    result = executor.execute(["sh", "-c", "echo oops >&2; exit 3"], check=False)
    assert not result.success
    assert result.return_code == 3
    assert result.stderr.strip() == "oops"


def test_missing_binary_without_check():
    result = CommandExecutor().execute(["definitely-not-a-real-binary-xyz"], check=False)
    assert not result.success
    assert result.return_code == -1


def test_stdin_input():
    result = CommandExecutor().execute(["cat"], input_text="bob:secret\n")
    assert result.stdout == "bob:secret\n"


def test_command_timeout_raises():
    with pytest.raises(StepTimeout):
        CommandExecutor().execute(["sleep", "5"], timeout=0.2)


def test_time_budget_caps_commands():
    executor = CommandExecutor(default_timeout=60)
    with executor.time_budget(0.2):
        with pytest.raises(StepTimeout):
            executor.execute(["sleep", "5"])
    assert executor.remaining() is None


def test_exhausted_budget_refuses_to_start():
    executor = CommandExecutor()
    with executor.time_budget(0):
        with pytest.raises(StepTimeout):
            executor.execute(["true"])


def test_timeout_raised_even_without_check():
    with pytest.raises(StepTimeout):
        CommandExecutor().execute(["sleep", "5"], check=False, timeout=0.2)


def test_format_command_quotes_arguments():
    assert format_command(["echo", "a b"]) == "echo 'a b'"
    assert format_command("ls -l") == "ls -l"


def test_check_command_available():
    executor = CommandExecutor()
    assert executor.check_command_available("sh")
    assert not executor.check_command_available("definitely-not-a-real-binary-xyz")


def test_undecodable_output_is_replaced():
    script = r"printf '/srv/\377bad: Eicar-Test-Signature FOUND\n'; printf '\376\n' >&2"

    result = CommandExecutor().execute(["sh", "-c", script])

    assert result.stdout == "/srv/\ufffdbad: Eicar-Test-Signature FOUND\n"
    assert result.stderr == "\ufffd\n"
