"""
Sine wave with a random spike anomaly.
"""

import math
import random
from typing import Optional

from asyncua import ua

from ..config import SimulationConfig
from ..logging import log_debug, log_info
from ..types import AccessLevels
from .base import PluginNodes

SIMULATION_MAX_AMPLITUDE = 100.0


class SpikePluginNode(PluginNodes):
    """
    Anomaly/SpikeData: a sine wave with one spike per phase.

    A phase lasts ``cycle_count`` ticks of ``cycle_length`` ms, both read
    from the shared simulation settings when the simulation starts. The
    phase position counts down from ``cycle_count`` to 1; at the start of
    every phase a 0-based ``anomaly_cycle`` is drawn to carry the spike.

    The spike fires when the position minus one equals the drawn cycle, so
    it lands on the tick at position ``anomaly_cycle + 1``. A draw of
    ``cycle_count - 1`` spikes the first tick of the phase and a draw of 0
    spikes the last.
    """

    name = "Spike"

    def __init__(self, scheduler, simulation: SimulationConfig, enabled: bool = True,
                 rng: Optional[random.Random] = None):
        super().__init__(scheduler)
        self.simulation = simulation
        self.enabled = enabled
        self._random = rng or random.Random()
        self._node = None
        self._timer = None
        self._cycle_in_phase = 0
        self._anomaly_cycle = 0

    async def register(self, telemetry_folder, methods_folder, registry) -> None:
        self._registry = registry
        if not self.enabled:
            log_info("Spike anomaly node disabled")
            return

        folder = await registry.create_folder(telemetry_folder, "Anomaly", "Anomaly")
        self._node = await registry.create_variable(
            folder,
            "SpikeData",
            "SpikeData",
            ua.VariantType.Double,
            access_level=AccessLevels.CURRENT_READ,
            description="Value with random spikes",
            value=0.0
        )
        self.nodes = [await registry.node_with_intervals(self._node)]

    async def start(self) -> None:
        if not self.enabled or self._timer is not None:
            return
        self._begin_phase()
        log_debug(f"First spike anomaly cycle: {self._anomaly_cycle}")
        self._timer = self._scheduler.new_periodic_timer(self._update, self.simulation.cycle_length)

    async def stop(self) -> None:
        self._stop_timers(self._timer)
        self._timer = None

    def next_value(self) -> float:
        """Value of the current tick; advances the phase position."""
        cycle_count = self.simulation.cycle_count
        # anomaly cycle is a 0-based offset into the phase, positions run cycle_count..1
        if self._cycle_in_phase - 1 == self._anomaly_cycle:
            value = SIMULATION_MAX_AMPLITUDE * 10
            log_debug("Generate spike anomaly")
        else:
            value = SIMULATION_MAX_AMPLITUDE * math.sin((2 * math.pi / cycle_count) * self._cycle_in_phase)

        self._cycle_in_phase -= 1
        if self._cycle_in_phase <= 0:
            self._begin_phase()
            log_debug(f"Next spike anomaly cycle: {self._anomaly_cycle}")
        return value

    def _begin_phase(self) -> None:
        self._cycle_in_phase = self.simulation.cycle_count
        self._anomaly_cycle = self._random.randrange(self.simulation.cycle_count)

    async def _update(self) -> None:
        value = self.next_value()
        await self._registry.set_value(self._node, value, ua.VariantType.Double)
