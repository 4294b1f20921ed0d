"""Command execution utilities."""

import os
import shlex
import shutil
import subprocess
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Sequence, Union

import structlog

from host_hardener.exceptions import CommandExecutionError, StepTimeout
from host_hardener.types import CommandResult

logger = structlog.get_logger(__name__)

Command = Union[str, Sequence[str]]


def format_command(cmd: Command) -> str:
    """Render a command for logs and error messages."""
    if isinstance(cmd, str):
        return cmd
    return shlex.join(cmd)


class CommandExecutor:
    """Execute system commands with proper error handling.

    Every external tool a plugin touches goes through here, so the plan
    executor can bound a whole step by setting a time budget.
    """

    def __init__(self, default_timeout: float = 600) -> None:
        """Initialize command executor.

        Args:
            default_timeout: Timeout for a single command when no budget is active
        """
        self.default_timeout = default_timeout
        self._deadline: Optional[float] = None

    @contextmanager
    def time_budget(self, seconds: float) -> Iterator[None]:
        """Bound every command started inside the block by a shared deadline."""
        previous = self._deadline
        self._deadline = time.monotonic() + seconds
        try:
            yield
        finally:
            self._deadline = previous

    def remaining(self) -> Optional[float]:
        """Seconds left in the active budget, or None without one."""
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    def execute(
        self,
        cmd: Command,
        check: bool = True,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """Execute a command.

        Strings run through the shell; sequences run directly. Output is
        decoded as UTF-8, with undecodable bytes replaced.

        Args:
            cmd: Command to execute
            check: Whether to raise exception on failure
            timeout: Command timeout in seconds, capped by the active budget
            input_text: Data written to the command's stdin. Never logged.
            env: Extra environment variables

        Returns:
            CommandResult with execution details

        Raises:
            CommandExecutionError: If command fails and check=True
            StepTimeout: If the command or the active budget times out
        """
        rendered = format_command(cmd)
        effective = timeout if timeout is not None else self.default_timeout
        remaining = self.remaining()
        if remaining is not None:
            if remaining <= 0:
                raise StepTimeout(f"Step budget exhausted before: {rendered}")
            effective = min(effective, remaining)

        run_env = None
        if env:
            run_env = dict(os.environ)
            run_env.update(env)

        logger.debug("command_started", command=rendered, timeout=round(effective, 1))

        try:
            result = subprocess.run(
                cmd,
                shell=isinstance(cmd, str),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                input=input_text,
                timeout=effective,
                env=run_env,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning("command_timeout", command=rendered, timeout=effective)
            raise StepTimeout(
                f"Command timed out after {effective:.0f}s: {rendered}", effective
            ) from e
        except OSError as e:
            error_msg = f"Command execution failed: {rendered}\nError: {e}"
            if check:
                raise CommandExecutionError(error_msg) from e
            return CommandResult(False, "", error_msg, -1)

        cmd_result = CommandResult(
            success=result.returncode == 0,
            stdout=result.stdout,
            stderr=result.stderr,
            return_code=result.returncode,
        )

        if not cmd_result.success:
            logger.debug(
                "command_failed", command=rendered, return_code=result.returncode
            )
            if check:
                raise CommandExecutionError(
                    f"Command failed: {rendered}\nError: {result.stderr}"
                )

        return cmd_result

    def check_command_available(self, command: str) -> bool:
        """Check if command is available on system."""
        return shutil.which(command) is not None
