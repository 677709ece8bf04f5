"""
Nodes identified by deterministic GUIDs.
"""

from typing import Optional

from asyncua import ua

from ..config import GuidNodesConfig
from ..identity import DeterministicGuid
from ..logging import log_info
from ..types import AccessLevels
from .base import PluginNodes


class DeterministicGuidPluginNodes(PluginNodes):
    """
    UInt32 counters under "Deterministic GUID".

    Each node is identified by the next GUID of a DeterministicGuid
    sequence, so identical configurations give identical node ids across
    restarts. Every node increments by 1 on its own timer.
    """

    name = "DeterministicGuid"

    def __init__(self, scheduler, config: Optional[GuidNodesConfig] = None):
        super().__init__(scheduler)
        self.config = config or GuidNodesConfig()
        self.sequence = DeterministicGuid(self.config.seed)
        self._variables: list = []
        self._timers: list = []

    async def register(self, telemetry_folder, methods_folder, registry) -> None:
        self._registry = registry
        folder = await registry.create_folder(telemetry_folder, "Deterministic GUID", "Deterministic GUID")

        count = self.config.node_count
        if count > 0:
            log_info(f"Creating {count} GUID node(s) of type: UInt32")
            log_info(f"Node values will change every {self.config.node_rate} ms")

        nodes = []
        for _ in range(count):
            guid = self.sequence.new_guid()
            variable = await registry.create_variable(
                folder,
                guid,
                str(guid),
                ua.VariantType.UInt32,
                access_level=AccessLevels.CURRENT_READ_OR_WRITE,
                description="Constantly increasing value",
                value=0
            )
            self._variables.append(variable)
            nodes.append(await registry.node_with_intervals(variable))
        self.nodes = nodes

    async def start(self) -> None:
        if self._timers:
            return
        self._timers = [
            self._scheduler.new_periodic_timer(self._incrementer(index), self.config.node_rate)
            for index in range(len(self._variables))
        ]

    async def stop(self) -> None:
        self._stop_timers(*self._timers)
        self._timers = []

    def _incrementer(self, index: int):
        async def increment() -> None:
            variable = self._variables[index]
            value = await self._registry.read_value(variable)
            # UInt32 wraps around
            await self._registry.set_value(variable, (int(value) + 1) & 0xFFFFFFFF, ua.VariantType.UInt32)
        return increment
