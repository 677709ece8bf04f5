"""
Slow changing nodes.

The value generation itself belongs to a NodeValueGenerator implementation
supplied by the embedding application; this module creates the folders and
methods around it and drives it on a timer.
"""

from typing import Any, Optional, Protocol, Sequence

from ..config import SlowNodesConfig
from ..logging import log_debug, log_info
from ..types import NodeWithIntervals
from .base import PluginNodes


class NodeValueGenerator(Protocol):
    """Creates batches of generated nodes and updates their values."""

    async def create_nodes(
        self,
        node_type: str,
        name_prefix: str,
        count: int,
        folder: Any,
        simulator_folder: Any,
        randomize: bool,
        step_size: str,
        min_value: Optional[str],
        max_value: Optional[str],
        rate_ms: int,
    ) -> tuple[Sequence[Any], Sequence[Any]]:
        """Create ``count`` nodes; returns (nodes, bad nodes)."""
        ...

    async def update_nodes(
        self,
        nodes: Sequence[Any],
        bad_nodes: Sequence[Any],
        node_type: str,
        enabled: bool,
    ) -> None:
        """Update the values of previously created nodes."""
        ...


class SlowPluginNodes(PluginNodes):
    """
    Nodes under "Slow", updated every ``node_rate`` seconds.

    The StopUpdateSlowNodes and StartUpdateSlowNodes methods toggle the
    enabled flag passed to the generator on every update.
    """

    name = "Slow"

    def __init__(self, scheduler, generator: NodeValueGenerator,
                 config: Optional[SlowNodesConfig] = None):
        super().__init__(scheduler)
        self.generator = generator
        self.config = config or SlowNodesConfig()
        self.update_enabled = True
        self._nodes: Sequence[Any] = []
        self._bad_nodes: Sequence[Any] = []
        self._timer = None

    @property
    def rate_ms(self) -> int:
        return int(self.config.node_rate * 1000)

    async def register(self, telemetry_folder, methods_folder, registry) -> None:
        self._registry = registry
        folder = await registry.create_folder(telemetry_folder, "Slow", "Slow")

        # Used for methods to limit the number of updates to a fixed count.
        root = await registry.get_parent(telemetry_folder)
        simulator_folder = await registry.create_folder(root, "SimulatorConfiguration", "SimulatorConfiguration")

        config = self.config
        log_info(f"Creating {config.node_count} slow node(s) of type: {config.node_type}")
        self._nodes, self._bad_nodes = await self.generator.create_nodes(
            config.node_type,
            "Slow",
            config.node_count,
            folder,
            simulator_folder,
            config.node_randomization,
            config.node_step_size,
            config.node_min_value,
            config.node_max_value,
            self.rate_ms,
        )

        await registry.create_method(
            methods_folder,
            "StopUpdateSlowNodes",
            "StopUpdateSlowNodes",
            "Stop the increase of value of slow nodes",
            self.stop_updates
        )
        await registry.create_method(
            methods_folder,
            "StartUpdateSlowNodes",
            "StartUpdateSlowNodes",
            "Start the increase of value of slow nodes",
            self.start_updates
        )

        self.nodes = [await self._with_intervals(node) for node in [*self._nodes, *self._bad_nodes]]

    async def start(self) -> None:
        if self._timer is not None:
            return
        self._timer = self._scheduler.new_periodic_timer(self._update, self.rate_ms)

    async def stop(self) -> None:
        self._stop_timers(self._timer)
        self._timer = None

    async def stop_updates(self) -> None:
        self.update_enabled = False
        log_debug("StopUpdateSlowNodes method called")

    async def start_updates(self) -> None:
        self.update_enabled = True
        log_debug("StartUpdateSlowNodes method called")

    async def _update(self) -> None:
        await self.generator.update_nodes(self._nodes, self._bad_nodes, self.config.node_type,
                                          self.update_enabled)

    async def _with_intervals(self, node) -> NodeWithIntervals:
        return await self._registry.node_with_intervals(
            node,
            publishing_interval=self.rate_ms,
            sampling_interval=int(self.config.node_sampling_interval),
        )
