"""
plcsim: plugin-based OPC UA telemetry simulator.

This package provides:
- Scheduling of simulation timers
- Plugin nodes (boiler, spike anomaly, deterministic GUIDs, user defined nodes, slow nodes)
- The simulation orchestrator and the asyncua server lifecycle
"""

from .config import SimulatorConfig, load_config, get_default_config
from .errors import (
    ConfigurationError,
    FatalSimulationError,
    InvalidDeviceStateError,
    SimulationError,
    UnsupportedArrayTypeError,
)
from .identity import DeterministicGuid
from .scheduler import ManualScheduler, Scheduler
from .simulation import PlcSimulation

__version__ = "1.0.0"

__all__ = [
    'SimulatorConfig',
    'load_config',
    'get_default_config',
    'ConfigurationError',
    'FatalSimulationError',
    'InvalidDeviceStateError',
    'SimulationError',
    'UnsupportedArrayTypeError',
    'DeterministicGuid',
    'ManualScheduler',
    'Scheduler',
    'PlcSimulation',
]
