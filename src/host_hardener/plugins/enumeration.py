"""System state snapshot: identity, interfaces, ports, users, groups."""

import socket
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from host_hardener.models import ActionResult, Finding, SystemFacts
from host_hardener.plugins.base import ActionPlugin, output_tail
from host_hardener.types import Account, Criticality, Severity
from host_hardener.utils.accounts import is_interactive_shell, list_accounts, list_groups
from host_hardener.utils.command import CommandExecutor

SYSTEM_INFORMATION = "System Information"
NETWORK_INTERFACES = "Network Interfaces"
OPEN_PORTS = "Open Ports"
USERS = "Users"
GROUPS = "Groups"


def parse_ip_addr(output: str) -> List[Tuple[str, str]]:
    """Extract (interface, address) pairs from `ip -o addr show`."""
    pairs: List[Tuple[str, str]] = []
    for line in output.splitlines():
        fields = line.split()
        if len(fields) < 4 or fields[2] not in ("inet", "inet6"):
            continue
        pairs.append((fields[1], fields[3]))
    return pairs


class SystemEnumeration(ActionPlugin):
    """Record what the host looks like before anything else changes it.

    Each category becomes one info Finding. A category that cannot be
    gathered becomes a warning instead of failing the step.
    """

    name = "system-enumeration"
    title = "System Enumeration"
    criticality = Criticality.BEST_EFFORT

    def __init__(
        self,
        runner: CommandExecutor,
        etc_dir: Path = Path("/etc"),
        accounts: Callable[[], List[Account]] = list_accounts,
        groups: Callable[[], List[str]] = list_groups,
    ) -> None:
        super().__init__(runner)
        self.etc_dir = etc_dir
        self._accounts = accounts
        self._groups = groups

    def run(self, facts: SystemFacts) -> ActionResult:
        findings = [
            self._system_information(),
            self._network_interfaces(),
            self._open_ports(),
            self._users(),
            self._group_names(),
        ]
        return ActionResult.success(findings)

    def _info(self, category: str, detail: str) -> Finding:
        return self.finding(Severity.INFO, detail, subject=category, category=category)

    def _unavailable(self, category: str, detail: str) -> Finding:
        return self.finding(
            Severity.WARNING, f"unavailable: {detail}", subject=category, category=category
        )

    def _system_information(self) -> Finding:
        lines = [f"Hostname: {socket.gethostname()}"]
        for release in sorted(self.etc_dir.glob("*-release")):
            try:
                content = release.read_text(encoding="utf-8", errors="replace").strip()
            except OSError:
                continue
            lines.append(f"OS ({release.name}):")
            lines.extend(f"  {line}" for line in content.splitlines() if line.strip())
        return self._info(SYSTEM_INFORMATION, "\n".join(lines))

    def _network_interfaces(self) -> Finding:
        if not self.runner.check_command_available("ip"):
            return self._unavailable(NETWORK_INTERFACES, "ip command not found")
        result = self.runner.execute(["ip", "-o", "addr", "show"], check=False)
        if not result.success:
            return self._unavailable(NETWORK_INTERFACES, output_tail(result))
        pairs = parse_ip_addr(result.stdout)
        detail = "\n".join(f"{iface} {addr}" for iface, addr in pairs) or "no addresses"
        return self._info(NETWORK_INTERFACES, detail)

    def _open_ports(self) -> Finding:
        tool = self._socket_tool()
        if tool is None:
            return self._unavailable(OPEN_PORTS, "neither ss nor netstat found")
        result = self.runner.execute([tool, "-tulpn"], check=False)
        if not result.success:
            return self._unavailable(OPEN_PORTS, output_tail(result))
        return self._info(OPEN_PORTS, result.stdout.rstrip() or "no listening sockets")

    def _socket_tool(self) -> Optional[str]:
        for tool in ("ss", "netstat"):
            if self.runner.check_command_available(tool):
                return tool
        return None

    def _users(self) -> Finding:
        try:
            names = [a.name for a in self._accounts() if is_interactive_shell(a.shell)]
        except OSError as e:
            return self._unavailable(USERS, str(e))
        return self._info(USERS, "\n".join(names) or "no interactive accounts")

    def _group_names(self) -> Finding:
        try:
            names = self._groups()
        except OSError as e:
            return self._unavailable(GROUPS, str(e))
        return self._info(GROUPS, "\n".join(names) or "no groups")
