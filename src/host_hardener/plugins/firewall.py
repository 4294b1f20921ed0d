"""Baseline firewall policy: deny inbound, allow outbound, keep management open."""

from typing import Dict, List, Optional

import structlog

from host_hardener.config import FirewallConfig
from host_hardener.models import ActionResult, Finding, SystemFacts
from host_hardener.plugins.base import ActionPlugin, output_tail
from host_hardener.types import Capability, Criticality, FirewallBackend, Severity
from host_hardener.utils.command import CommandExecutor, format_command

logger = structlog.get_logger(__name__)

IPTABLES_SAVE_COMMANDS: Dict[str, List[str]] = {
    "iptables": [
        "netfilter-persistent save",
        "test -d /etc/iptables && iptables-save > /etc/iptables/rules.v4",
        "test -d /etc/sysconfig && iptables-save > /etc/sysconfig/iptables",
    ],
    "ip6tables": [
        "netfilter-persistent save",
        "test -d /etc/iptables && ip6tables-save > /etc/iptables/rules.v6",
        "test -d /etc/sysconfig && ip6tables-save > /etc/sysconfig/ip6tables",
    ],
}


class FirewallBaseline(ActionPlugin):
    """Apply default-deny inbound with an allow rule for the management port."""

    name = "firewall-baseline"
    title = "Firewall Baseline"
    criticality = Criticality.FATAL
    required_capabilities = frozenset({Capability.FIREWALL_BACKEND})

    def __init__(self, runner: CommandExecutor, config: FirewallConfig) -> None:
        super().__init__(runner)
        self.config = config

    def run(self, facts: SystemFacts) -> ActionResult:
        backend = facts.firewall_backend
        if backend is None:
            return ActionResult.failure(
                [self.finding(Severity.CRITICAL, "No supported firewall backend present")],
                reason="no firewall backend",
            )

        port = self.config.management_port
        logger.info("firewall_configuring", backend=backend.value, port=port)

        if backend == FirewallBackend.UFW:
            findings = self._setup_ufw(port)
        elif backend == FirewallBackend.FIREWALLD:
            findings = self._setup_firewalld(port)
        else:
            findings = self._setup_iptables(port)

        if any(f.severity == Severity.CRITICAL for f in findings):
            return ActionResult.failure(findings, reason=f"{backend.value} configuration failed")

        findings.insert(
            0,
            self.finding(
                Severity.INFO,
                f"Firewall baseline applied via {backend.value}: inbound denied, "
                f"outbound allowed, tcp/{port} allowed",
            ),
        )
        return ActionResult.success(findings)

    def _apply(self, commands: List[List[str]]) -> List[Finding]:
        failed = self.run_sequence(commands)
        if failed is None:
            return []
        cmd, result = failed
        return [
            self.finding(
                Severity.CRITICAL,
                f"{format_command(cmd)} exited {result.return_code}:\n{output_tail(result)}",
            )
        ]

    def _setup_ufw(self, port: int) -> List[Finding]:
        """Configure UFW firewall."""
        return self._apply(
            [
                ["ufw", "default", "deny", "incoming"],
                ["ufw", "default", "allow", "outgoing"],
                ["ufw", "allow", f"{port}/tcp"],
                ["ufw", "--force", "enable"],
            ]
        )

    def _setup_firewalld(self, port: int) -> List[Finding]:
        """Configure firewalld."""
        commands = [
            ["firewall-cmd", "--permanent", f"--add-port={port}/tcp"],
            ["firewall-cmd", "--permanent", "--set-target=DROP"],
            ["firewall-cmd", "--reload"],
        ]
        if self.runner.check_command_available("systemctl"):
            commands.insert(0, ["systemctl", "enable", "--now", "firewalld"])
        return self._apply(commands)

    def _setup_iptables(self, port: int) -> List[Finding]:
        """Configure iptables, and ip6tables when present.

        Accept rules go in before the DROP policy so the management session
        survives the switch.
        """
        tools = ["iptables"]
        if self.runner.check_command_available("ip6tables"):
            tools.append("ip6tables")

        unsaved: List[str] = []
        for tool in tools:
            findings = self._apply_netfilter(tool, port)
            if findings:
                return findings
            if not any(
                self.runner.execute(cmd, check=False).success
                for cmd in IPTABLES_SAVE_COMMANDS[tool]
            ):
                unsaved.append(tool)

        if not unsaved:
            return []
        return [
            self.finding(
                Severity.WARNING,
                f"{', '.join(unsaved)} rules are active but could not be persisted; "
                "they reset on reboot",
            )
        ]

    def _apply_netfilter(self, tool: str, port: int) -> List[Finding]:
        rules = [
            ["INPUT", "-i", "lo", "-j", "ACCEPT"],
            ["INPUT", "-m", "conntrack", "--ctstate", "ESTABLISHED,RELATED", "-j", "ACCEPT"],
            ["INPUT", "-p", "tcp", "--dport", str(port), "-j", "ACCEPT"],
        ]
        if tool == "ip6tables":
            # neighbor discovery runs over ICMPv6
            rules.insert(2, ["INPUT", "-p", "ipv6-icmp", "-j", "ACCEPT"])

        for rule in rules:
            finding = self._ensure_rule(tool, rule)
            if finding is not None:
                return [finding]

        return self._apply([[tool, "-P", "INPUT", "DROP"], [tool, "-P", "OUTPUT", "ACCEPT"]])

    def _ensure_rule(self, tool: str, rule: List[str]) -> Optional[Finding]:
        """Append a rule unless an identical one is already present."""
        if self.runner.execute([tool, "-C"] + rule, check=False).success:
            return None
        failed = self._apply([[tool, "-A"] + rule])
        return failed[0] if failed else None
