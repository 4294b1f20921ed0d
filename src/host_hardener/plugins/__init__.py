"""Built-in action plugins."""

from typing import List

from host_hardener.config import HardenerConfig
from host_hardener.plugins.accounts import AccountLockdown
from host_hardener.plugins.base import ActionPlugin
from host_hardener.plugins.enumeration import SystemEnumeration
from host_hardener.plugins.firewall import FirewallBaseline
from host_hardener.plugins.malware import MalwareScan
from host_hardener.plugins.packages import PackageCleanup, PackageUpdate
from host_hardener.utils.command import CommandExecutor

__all__ = [
    "ActionPlugin",
    "AccountLockdown",
    "FirewallBaseline",
    "MalwareScan",
    "PackageCleanup",
    "PackageUpdate",
    "SystemEnumeration",
    "builtin_plugins",
]


def builtin_plugins(runner: CommandExecutor, config: HardenerConfig) -> List[ActionPlugin]:
    """Built-in plugins in their default run order."""
    return [
        PackageUpdate(runner),
        PackageCleanup(runner),
        SystemEnumeration(runner),
        AccountLockdown(runner, config.accounts),
        FirewallBaseline(runner, config.firewall),
        MalwareScan(runner, config.scan),
    ]
