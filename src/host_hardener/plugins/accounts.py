"""Interactive account lockdown."""

import secrets
from pathlib import Path
from typing import List

import structlog

from host_hardener.config import AccountConfig
from host_hardener.exceptions import CapabilityUnmet
from host_hardener.models import ActionResult, Finding, SystemFacts
from host_hardener.plugins.base import ActionPlugin, output_tail
from host_hardener.types import Account, Capability, Criticality, Severity
from host_hardener.utils.accounts import (
    PASSWD_PATH,
    interactive_accounts,
    local_accounts,
    nologin_shell,
)
from host_hardener.utils.command import CommandExecutor

logger = structlog.get_logger(__name__)


class AccountLockdown(ActionPlugin):
    """Disable interactive login for every local account except the operator's.

    Accounts are locked, not deleted. Each target gets a random password that
    is handed to chpasswd over stdin and then discarded, its password hash is
    locked, and its shell is replaced with a non-login shell. Restoring an
    account takes `usermod --unlock --shell <shell> <user>` plus a new
    password set by root.
    """

    name = "account-lockdown"
    title = "Account Lockdown"
    criticality = Criticality.BEST_EFFORT
    required_capabilities = frozenset({Capability.ACCOUNT_TOOLS})

    def __init__(
        self,
        runner: CommandExecutor,
        config: AccountConfig,
        passwd_path: Path = PASSWD_PATH,
    ) -> None:
        super().__init__(runner)
        self.config = config
        self.passwd_path = passwd_path

    def targets(self, facts: SystemFacts) -> List[Account]:
        """Local accounts this run would lock.

        Only the passwd file is read: directory accounts (LDAP, SSSD, NIS)
        are managed elsewhere and must not reach chpasswd.
        """
        exclude = {"root", facts.invoking_user, *self.config.protected}
        return interactive_accounts(local_accounts(self.passwd_path), exclude=exclude)

    def run(self, facts: SystemFacts) -> ActionResult:
        if not facts.account_tools:
            raise CapabilityUnmet(Capability.ACCOUNT_TOOLS.value)

        shell = nologin_shell(self.config.nologin_shell)
        findings: List[Finding] = []
        failed = 0

        try:
            targets = self.targets(facts)
        except OSError as e:
            return ActionResult.failure(
                [self.finding(Severity.CRITICAL, f"Cannot read {self.passwd_path}: {e}")],
                reason="account database unreadable",
            )
        if not targets:
            return ActionResult.success(
                [self.finding(Severity.INFO, "No interactive accounts to lock")]
            )

        for account in targets:
            finding = self._lock(account, shell)
            if finding.severity == Severity.CRITICAL:
                failed += 1
            findings.append(finding)

        if failed:
            return ActionResult.failure(findings, reason=f"{failed} account(s) not locked")
        return ActionResult.success(findings)

    def _lock(self, account: Account, shell: str) -> Finding:
        credential = secrets.token_urlsafe(self.config.credential_bytes)
        result = self.runner.execute(
            ["chpasswd"], check=False, input_text=f"{account.name}:{credential}\n"
        )
        del credential
        if not result.success:
            logger.error("password_reset_failed", user=account.name)
            return self.finding(
                Severity.CRITICAL,
                f"Password reset failed:\n{output_tail(result)}",
                subject=account.name,
            )

        lock = ["usermod", "--lock", "--shell", shell, account.name]
        result = self.runner.execute(lock, check=False)
        if not result.success:
            logger.error("account_lock_failed", user=account.name)
            return self.finding(
                Severity.CRITICAL,
                f"Password replaced but lock failed:\n{output_tail(result)}",
                subject=account.name,
            )

        logger.info("account_locked", user=account.name, previous_shell=account.shell)
        return self.finding(
            Severity.WARNING,
            f"Account {account.name} locked, shell changed from {account.shell} to {shell}; "
            "password replaced with a discarded random value",
            subject=account.name,
        )
