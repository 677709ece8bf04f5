"""
Plugin nodes.

Each plugin owns one simulation concern and its nodes:
- Boiler #2 device with health state machine and alarms
- Spike anomaly waveform
- Deterministic GUID counters
- User defined nodes from a JSON node file
- Slow nodes driven by an external value generator
"""

from .base import PluginNodes
from .boiler import BoilerPluginNodes, DeviceState, compute_health
from .deterministic_guid import DeterministicGuidPluginNodes
from .slow import NodeValueGenerator, SlowPluginNodes
from .spike import SpikePluginNode
from .user_defined import UserDefinedPluginNodes

__all__ = [
    'PluginNodes',
    'BoilerPluginNodes',
    'DeviceState',
    'compute_health',
    'DeterministicGuidPluginNodes',
    'NodeValueGenerator',
    'SlowPluginNodes',
    'SpikePluginNode',
    'UserDefinedPluginNodes',
]
