"""Input validation utilities."""

import os
from pathlib import Path
from typing import Iterable, List, Optional

from host_hardener.exceptions import ValidationError


class Validator:
    """Validate operator input before a run starts."""

    @staticmethod
    def _check_range(label: str, value: int, low: int, high: Optional[int] = None) -> None:
        if value < low or (high is not None and value > high):
            bounds = f"between {low}-{high}" if high is not None else f"at least {low}"
            raise ValidationError(f"Invalid {label}: {value}. Must be {bounds}")

    @staticmethod
    def validate_port(port: int) -> None:
        """Validate the management port.

        Raises:
            ValidationError: If port is outside 1-65535
        """
        Validator._check_range("port", port, 1, 65535)

    @staticmethod
    def validate_timeout(seconds: int) -> None:
        """Validate a per-step timeout.

        Raises:
            ValidationError: If the timeout is not positive
        """
        Validator._check_range("timeout", seconds, 1)

    @staticmethod
    def validate_plugin_names(names: Iterable[str], known: Iterable[str]) -> List[str]:
        """Check requested plugin names against the registry.

        Args:
            names: Names given by the operator
            known: Names registered for this run

        Returns:
            List of validation error messages
        """
        known_set = set(known)
        return [
            f"Unknown plugin: {name} (known: {', '.join(sorted(known_set))})"
            for name in names
            if name not in known_set
        ]

    @staticmethod
    def validate_path_writable(path: Path) -> bool:
        """Check that a report can be appended at path.

        An existing file must be writable; otherwise its directory must
        exist and accept new files.
        """
        try:
            if path.is_dir():
                return False
            target = path if path.exists() else path.parent
            return target.exists() and os.access(target, os.W_OK)
        except OSError:
            return False
