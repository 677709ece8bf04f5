"""
Boiler #2 plugin nodes.

Simulates a heated boiler with a device health state machine. A main cycle
moves the temperature towards the target or base temperature depending on
the heater, two independent triggers force a maintenance request and an
overheat, and health changes are reported as alarm events.

All state changes and the node writes that publish them happen while
holding the boiler lock, so the main cycle, both triggers, the Switch
method and parameter writes never interleave.
"""

import asyncio
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from asyncua import ua

from ..config import Boiler2Config
from ..errors import InvalidDeviceStateError
from ..logging import log_debug, log_error, log_info
from ..types import AccessLevels, AlarmEvent, DeviceHealth, EventSeverity
from .base import PluginNodes

MAIN_CYCLE_MS = 1000

BOILER_PATH = "Boilers.Boiler #2"
PARAMETER_SET_PATH = f"{BOILER_PATH}.ParameterSet"
METHOD_SET_PATH = f"{BOILER_PATH}.MethodSet"

_READ = AccessLevels.CURRENT_READ
_READ_WRITE = AccessLevels.CURRENT_READ_OR_WRITE

# name, variant type, access level, description
_PARAMETERS = (
    ("TemperatureChangeSpeed", ua.VariantType.Double, _READ, "Temperature change per second"),
    ("BaseTemperature", ua.VariantType.Double, _READ, "Temperature at which the heater turns on"),
    ("TargetTemperature", ua.VariantType.Double, _READ, "Temperature at which the heater turns off"),
    ("OverheatedThresholdTemperature", ua.VariantType.Double, _READ_WRITE,
     "Temperature from which the boiler is overheated"),
    ("MaintenanceInterval", ua.VariantType.UInt32, _READ_WRITE, "Seconds between maintenance requests"),
    ("OverheatInterval", ua.VariantType.UInt32, _READ_WRITE, "Seconds between forced overheats"),
    ("CurrentTemperature", ua.VariantType.Double, _READ, "Current temperature"),
    ("Overheated", ua.VariantType.Boolean, _READ, "Temperature is above the overheat threshold"),
    ("HeaterState", ua.VariantType.Boolean, _READ, "Heater on or off"),
)


class BoilerAlarm(Enum):
    """Alarms raised by the boiler, as (severity, message)."""
    FAILURE = (EventSeverity.MAX, "Temperature is above or equal to the overheat threshold!")
    CHECK_FUNCTION = (EventSeverity.LOW, "Temperature is above target!")
    OFF_SPEC = (EventSeverity.MEDIUM_LOW, "Temperature is off spec!")
    MAINTENANCE_REQUIRED = (EventSeverity.MEDIUM, "Maintenance required!")

    @property
    def severity(self) -> int:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


def compute_health(temperature: float, base: float, target: float,
                   overheat_threshold: float) -> DeviceHealth:
    """
    Device health for a temperature. The first matching rule wins.

    Raises:
        InvalidDeviceStateError: If no rule matches the temperature
    """
    if base <= temperature <= target:
        return DeviceHealth.NORMAL
    if target < temperature < overheat_threshold:
        return DeviceHealth.CHECK_FUNCTION
    if temperature >= overheat_threshold:
        return DeviceHealth.FAILURE
    if temperature < base or temperature > overheat_threshold + 5:
        return DeviceHealth.OFF_SPEC
    raise InvalidDeviceStateError(
        f"No device health for temperature {temperature} "
        f"(base={base}, target={target}, overheat threshold={overheat_threshold})"
    )


@dataclass
class DeviceState:
    """
    Mutable boiler state.

    Not synchronized; callers hold the boiler lock. Every operation returns
    the alarms it raised, in emission order.
    """
    temperature_speed: float
    base_temperature: float
    target_temperature: float
    overheat_threshold: float
    maintenance_interval: int
    overheat_interval: int
    current_temperature: float = 0.0
    heater_on: bool = True
    overheated: bool = False
    health: DeviceHealth = DeviceHealth.NORMAL
    is_overheated: bool = False

    @classmethod
    def from_config(cls, config: Boiler2Config) -> 'DeviceState':
        return cls(
            temperature_speed=float(config.temperature_speed),
            base_temperature=float(config.base_temperature),
            target_temperature=float(config.target_temperature),
            overheat_threshold=float(config.overheat_threshold_temperature),
            maintenance_interval=int(config.maintenance_interval),
            overheat_interval=int(config.overheat_interval),
            current_temperature=float(config.base_temperature),
        )

    def step(self) -> list[BoilerAlarm]:
        """Advance one main cycle."""
        temperature = self.current_temperature
        if self.heater_on:
            new_temperature = temperature + min(self.temperature_speed,
                                                abs(self.target_temperature - temperature))
            if new_temperature >= self.target_temperature:
                self.heater_on = False
        else:
            new_temperature = temperature - min(self.temperature_speed,
                                                abs(temperature - self.base_temperature))
            if new_temperature <= self.base_temperature:
                self.heater_on = True

        self.current_temperature = new_temperature
        self.overheated = new_temperature > self.overheat_threshold
        self.health = compute_health(new_temperature, self.base_temperature,
                                     self.target_temperature, self.overheat_threshold)
        return self._health_alarms()

    def trigger_maintenance(self) -> list[BoilerAlarm]:
        self.health = DeviceHealth.MAINTENANCE_REQUIRED
        return [BoilerAlarm.MAINTENANCE_REQUIRED]

    def trigger_overheat(self) -> list[BoilerAlarm]:
        self.current_temperature = self.overheat_threshold + 10.0
        self.heater_on = False
        self.health = DeviceHealth.OFF_SPEC
        self.is_overheated = True
        return [BoilerAlarm.OFF_SPEC]

    def _health_alarms(self) -> list[BoilerAlarm]:
        alarms = []
        if self.is_overheated:
            if self.health == DeviceHealth.NORMAL:
                self.is_overheated = False
            elif self.health == DeviceHealth.CHECK_FUNCTION:
                alarms.append(BoilerAlarm.CHECK_FUNCTION)
            elif self.health == DeviceHealth.FAILURE:
                alarms.append(BoilerAlarm.FAILURE)

        if self.health == DeviceHealth.OFF_SPEC:
            alarms.append(BoilerAlarm.OFF_SPEC)
        return alarms


class BoilerPluginNodes(PluginNodes):
    """
    Boiler #2 with a DeviceHealth state machine and alarm events.

    Nodes live in the boiler namespace under Boilers/Boiler #2. The
    MaintenanceInterval, OverheatInterval and OverheatedThresholdTemperature
    parameters are writable; writing an interval restarts its trigger.
    """

    name = "Boiler2"

    def __init__(self, scheduler, config: Optional[Boiler2Config] = None,
                 namespace_uri: str = "http://plcsim/Opc/OpcPlc/Boiler"):
        super().__init__(scheduler)
        self.config = config or Boiler2Config()
        self.namespace_uri = namespace_uri
        self.state = DeviceState.from_config(self.config)

        self._lock = asyncio.Lock()
        self._namespace_index: Optional[int] = None
        self._boiler = None
        self._variables: dict[str, Any] = {}
        self._device_health = None

        self._running = False
        self._main_timer = None
        self._maintenance_timer = None
        self._overheat_timer = None

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    async def register(self, telemetry_folder, methods_folder, registry) -> None:
        self._registry = registry
        ns = await registry.get_namespace_index(self.namespace_uri)
        self._namespace_index = ns

        root = await registry.get_parent(telemetry_folder)
        boilers = await registry.create_folder(root, "Boilers", "Boilers", ns)
        self._boiler = await registry.create_object(boilers, BOILER_PATH, "Boiler #2", ns)
        parameter_set = await registry.create_object(self._boiler, PARAMETER_SET_PATH, "ParameterSet", ns)
        method_set = await registry.create_object(self._boiler, METHOD_SET_PATH, "MethodSet", ns)

        values = self._parameter_values()
        for name, vtype, access_level, description in _PARAMETERS:
            self._variables[name] = await registry.create_variable(
                parameter_set,
                f"{PARAMETER_SET_PATH}.{name}",
                name,
                vtype,
                access_level=access_level,
                description=description,
                namespace_index=ns,
                value=values[name]
            )

        self._device_health = await registry.create_variable(
            self._boiler,
            f"{BOILER_PATH}.DeviceHealth",
            "DeviceHealth",
            ua.VariantType.Int32,
            access_level=_READ,
            description="Device health (DeviceHealthEnumeration)",
            namespace_index=ns,
            value=int(self.state.health)
        )

        await registry.create_method(
            method_set,
            f"{METHOD_SET_PATH}.Switch",
            "Switch",
            "Switch the heater on or off",
            self.switch_heater,
            input_arguments=[("HeaterState", ua.VariantType.Boolean)],
            namespace_index=ns
        )

        await registry.subscribe_writes(self._variables["MaintenanceInterval"],
                                        self.set_maintenance_interval)
        await registry.subscribe_writes(self._variables["OverheatInterval"],
                                        self.set_overheat_interval)
        await registry.subscribe_writes(self._variables["OverheatedThresholdTemperature"],
                                        self.set_overheat_threshold)

        self.nodes = [await registry.node_with_intervals(self._variables["CurrentTemperature"])]
        log_info(f"Boiler #2 registered in namespace '{self.namespace_uri}' (index: {ns})")

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._main_timer = self._scheduler.new_periodic_timer(self.update_boiler, MAIN_CYCLE_MS)
        self._maintenance_timer = self._scheduler.new_periodic_timer(
            self.update_maintenance, self.state.maintenance_interval * 1000)
        self._overheat_timer = self._scheduler.new_periodic_timer(
            self.update_overheat, self.state.overheat_interval * 1000)

    async def stop(self) -> None:
        self._running = False
        self._stop_timers(self._main_timer, self._maintenance_timer, self._overheat_timer)
        self._main_timer = None
        self._maintenance_timer = None
        self._overheat_timer = None

    async def update_boiler(self) -> None:
        """Main cycle."""
        async with self._lock:
            alarms = self.state.step()
            await self._publish_state()
            await self._emit(alarms)

    async def update_maintenance(self) -> None:
        async with self._lock:
            alarms = self.state.trigger_maintenance()
            await self._set(self._device_health, int(self.state.health), ua.VariantType.Int32)
            await self._emit(alarms)

    async def update_overheat(self) -> None:
        async with self._lock:
            alarms = self.state.trigger_overheat()
            await self._publish_state()
            await self._emit(alarms)

    async def switch_heater(self, heater_on: bool) -> None:
        """Switch method: turn the heater on or off."""
        async with self._lock:
            self.state.heater_on = bool(heater_on)
            await self._set(self._variables["HeaterState"], self.state.heater_on, ua.VariantType.Boolean)
        log_debug(f"Switch method called with argument: {heater_on}")

    async def set_maintenance_interval(self, value: Any) -> None:
        """Change the maintenance interval (seconds) and restart its trigger."""
        async with self._lock:
            seconds = self._positive_interval("MaintenanceInterval", value)
            if seconds is None:
                await self._set(self._variables["MaintenanceInterval"],
                                self.state.maintenance_interval, ua.VariantType.UInt32)
                return
            self.state.maintenance_interval = seconds
            if self._running:
                self._stop_timers(self._maintenance_timer)
                self._maintenance_timer = self._scheduler.new_periodic_timer(
                    self.update_maintenance, seconds * 1000)
        log_info(f"Boiler #2 maintenance interval set to {seconds} s")

    async def set_overheat_interval(self, value: Any) -> None:
        """Change the overheat interval (seconds) and restart its trigger."""
        async with self._lock:
            seconds = self._positive_interval("OverheatInterval", value)
            if seconds is None:
                await self._set(self._variables["OverheatInterval"],
                                self.state.overheat_interval, ua.VariantType.UInt32)
                return
            self.state.overheat_interval = seconds
            if self._running:
                self._stop_timers(self._overheat_timer)
                self._overheat_timer = self._scheduler.new_periodic_timer(
                    self.update_overheat, seconds * 1000)
        log_info(f"Boiler #2 overheat interval set to {seconds} s")

    async def set_overheat_threshold(self, value: Any) -> None:
        async with self._lock:
            try:
                threshold = float(value)
            except (TypeError, ValueError):
                threshold = math.nan
            if not math.isfinite(threshold):
                log_error(f"Rejected OverheatedThresholdTemperature write: {value!r} is not a number")
                await self._set(self._variables["OverheatedThresholdTemperature"],
                                self.state.overheat_threshold, ua.VariantType.Double)
                return
            self.state.overheat_threshold = threshold
        log_info(f"Boiler #2 overheat threshold set to {threshold}")

    def _positive_interval(self, parameter: str, value: Any) -> Optional[int]:
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            seconds = 0
        if seconds <= 0:
            log_error(f"Rejected {parameter} write: interval must be a positive number of seconds, got {value!r}")
            return None
        return seconds

    def _parameter_values(self) -> dict[str, Any]:
        state = self.state
        return {
            "TemperatureChangeSpeed": state.temperature_speed,
            "BaseTemperature": state.base_temperature,
            "TargetTemperature": state.target_temperature,
            "OverheatedThresholdTemperature": state.overheat_threshold,
            "MaintenanceInterval": state.maintenance_interval,
            "OverheatInterval": state.overheat_interval,
            "CurrentTemperature": state.current_temperature,
            "Overheated": state.overheated,
            "HeaterState": state.heater_on,
        }

    async def _publish_state(self) -> None:
        state = self.state
        await self._set(self._variables["CurrentTemperature"], state.current_temperature, ua.VariantType.Double)
        await self._set(self._variables["Overheated"], state.overheated, ua.VariantType.Boolean)
        await self._set(self._variables["HeaterState"], state.heater_on, ua.VariantType.Boolean)
        await self._set(self._device_health, int(state.health), ua.VariantType.Int32)

    async def _set(self, node, value: Any, vtype: ua.VariantType) -> None:
        if node is not None:
            await self._registry.set_value(node, value, vtype)

    async def _emit(self, alarms: list[BoilerAlarm]) -> None:
        if self._registry is None:
            return
        for alarm in alarms:
            if alarm == BoilerAlarm.MAINTENANCE_REQUIRED:
                event = AlarmEvent(alarm.severity, alarm.message, source_name="Maintenance",
                                   time=self._scheduler.now())
            else:
                event = AlarmEvent(alarm.severity, alarm.message,
                                   source=self._variables.get("CurrentTemperature"),
                                   source_name="CurrentTemperature",
                                   time=self._scheduler.now())
            await self._registry.report_event(event, notifier=self._boiler)
