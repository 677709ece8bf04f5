"""
OPC UA server components.

This package provides:
- Server lifecycle management
- Address space registry used by the plugin nodes
- Publisher configuration export
"""

from .address_space import AddressSpaceRegistry
from .pn_json import build_publisher_config, write_publisher_config
from .server_manager import SimulatorServerManager, build_plugin_nodes

__all__ = [
    'AddressSpaceRegistry',
    'build_publisher_config',
    'write_publisher_config',
    'SimulatorServerManager',
    'build_plugin_nodes',
]
