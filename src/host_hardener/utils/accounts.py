"""Local account database helpers."""

import grp
import os
import pwd
from pathlib import Path
from typing import Iterable, List, Optional

from host_hardener.types import Account

INTERACTIVE_SHELLS = frozenset(
    {"bash", "sh", "zsh", "ksh", "dash", "fish", "csh", "tcsh"}
)

NOLOGIN_CANDIDATES = ("/usr/sbin/nologin", "/sbin/nologin", "/bin/false")

PASSWD_PATH = Path("/etc/passwd")


def list_accounts() -> List[Account]:
    """Read every account visible through NSS."""
    return [Account(p.pw_name, p.pw_uid, p.pw_shell) for p in pwd.getpwall()]


def parse_passwd(text: str) -> List[Account]:
    """Parse passwd(5) lines. NIS compat entries (+/-) are skipped."""
    accounts: List[Account] = []
    for line in text.splitlines():
        if not line.strip() or line.startswith(("#", "+", "-")):
            continue
        fields = line.split(":")
        if len(fields) < 7 or not fields[2].isdigit():
            continue
        accounts.append(Account(fields[0], int(fields[2]), fields[6].strip()))
    return accounts


def local_accounts(path: Path = PASSWD_PATH) -> List[Account]:
    """Accounts defined in the local passwd file, without directory users."""
    return parse_passwd(path.read_text(encoding="utf-8", errors="replace"))


def list_groups() -> List[str]:
    """Read every group name visible through NSS."""
    return [g.gr_name for g in grp.getgrall()]


def is_interactive_shell(shell: str) -> bool:
    """Return True if the shell grants an interactive login."""
    if not shell:
        return False
    return os.path.basename(shell.strip()) in INTERACTIVE_SHELLS


def interactive_accounts(
    accounts: Iterable[Account], exclude: Iterable[str] = ()
) -> List[Account]:
    """Filter accounts down to shell-bearing ones, minus the excluded names."""
    excluded = set(exclude)
    return [
        a for a in accounts
        if a.name not in excluded and is_interactive_shell(a.shell)
    ]


def nologin_shell(override: Optional[Path] = None) -> str:
    """Pick the non-login shell used for locked accounts."""
    if override is not None:
        return str(override)
    for candidate in NOLOGIN_CANDIDATES:
        if Path(candidate).exists():
            return candidate
    return NOLOGIN_CANDIDATES[0]
