"""
Simulator type definitions and converters.

This package provides:
- Configuration type name to OPC UA type mapping
- Value and array coercion
- Data models shared by the plugin nodes
"""

from .type_converter import TypeConverter, BuiltInType, AccessLevels, ValueRank
from .models import (
    AlarmEvent,
    ConfigFolder,
    ConfigNode,
    DeviceHealth,
    EventSeverity,
    NodeIdentifier,
    NodeWithIntervals,
    format_identifier,
    format_node_id,
    parse_identifier,
)

__all__ = [
    'TypeConverter',
    'BuiltInType',
    'AccessLevels',
    'ValueRank',
    'AlarmEvent',
    'ConfigFolder',
    'ConfigNode',
    'DeviceHealth',
    'EventSeverity',
    'NodeIdentifier',
    'NodeWithIntervals',
    'format_identifier',
    'format_node_id',
    'parse_identifier',
]
