"""
Simulation orchestrator.

PlcSimulation owns the plugin nodes and the shared simulation settings, and
fans register/start/stop out to every plugin. A plugin failing never keeps
the others from being registered, started or stopped.
"""

from typing import Iterable, Optional

from .config import SimulationConfig
from .logging import log_error, log_info
from .plugin_nodes.base import PluginNodes
from .types import NodeWithIntervals


class PlcSimulation:
    """Runs a fixed, ordered set of plugin nodes."""

    def __init__(self, plugin_nodes: Iterable[PluginNodes],
                 simulation_config: Optional[SimulationConfig] = None):
        self.plugin_nodes = tuple(plugin_nodes)
        self.config = simulation_config or SimulationConfig()
        self._registered = False

    @property
    def cycle_count(self) -> int:
        """Ticks per phase for waveform plugins."""
        return self.config.cycle_count

    @property
    def cycle_length(self) -> int:
        """Tick period in ms for waveform plugins."""
        return self.config.cycle_length

    @property
    def nodes(self) -> list[NodeWithIntervals]:
        """Nodes of all plugins, for the publisher configuration file."""
        return [node for plugin in self.plugin_nodes for node in plugin.nodes]

    async def register(self, telemetry_folder, methods_folder, registry) -> None:
        """Register the nodes of every plugin. Called once."""
        if self._registered:
            raise RuntimeError("Plugin nodes are already registered")
        self._registered = True

        for plugin in self.plugin_nodes:
            try:
                await plugin.register(telemetry_folder, methods_folder, registry)
            except Exception as e:
                log_error(f"Failed to register plugin nodes {plugin.name}: {e}", exc_info=True)
        log_info(f"Registered {len(self.plugin_nodes)} plugin node sets with {len(self.nodes)} nodes")

    async def start(self) -> None:
        for plugin in self.plugin_nodes:
            try:
                await plugin.start()
            except Exception as e:
                log_error(f"Failed to start plugin nodes {plugin.name}: {e}", exc_info=True)
        log_info("Simulation started")

    async def stop(self) -> None:
        for plugin in self.plugin_nodes:
            try:
                await plugin.stop()
            except Exception as e:
                log_error(f"Failed to stop plugin nodes {plugin.name}: {e}", exc_info=True)
        log_info("Simulation stopped")
