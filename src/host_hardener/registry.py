"""Plugin registry: the ordered set of plugins available to a run."""

from typing import Dict, Iterable, Iterator, List, Optional

import structlog

from host_hardener.exceptions import ConfigurationError
from host_hardener.plugins.base import ActionPlugin

logger = structlog.get_logger(__name__)


class PluginRegistry:
    """Plugins keyed by name, iterated in registration order.

    Populated at process start and left alone for the rest of the run.
    """

    def __init__(self, plugins: Iterable[ActionPlugin] = ()) -> None:
        self._plugins: Dict[str, ActionPlugin] = {}
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: ActionPlugin) -> None:
        """Register a plugin.

        Raises:
            ConfigurationError: If a plugin with the same name exists
        """
        if plugin.name in self._plugins:
            raise ConfigurationError(f"Duplicate plugin name: {plugin.name}")
        self._plugins[plugin.name] = plugin
        logger.debug("plugin_registered", plugin=plugin.name)

    def get(self, name: str) -> Optional[ActionPlugin]:
        """Look up a plugin by name."""
        return self._plugins.get(name)

    def names(self) -> List[str]:
        """Registered names in registration order."""
        return list(self._plugins)

    def __iter__(self) -> Iterator[ActionPlugin]:
        return iter(list(self._plugins.values()))

    def __len__(self) -> int:
        return len(self._plugins)
