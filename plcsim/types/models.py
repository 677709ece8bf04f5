"""
Data models for the simulator.

This module defines the internal data structures shared by the plugin
nodes: exported node descriptions, device health, alarm events and the
node tree read from user node files.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Optional, Union
import re
import uuid

from asyncua import ua

NodeIdentifier = Union[int, str, uuid.UUID]

_NUMERIC_ID = re.compile(r"^\d+$")
_UINT32_MAX = 0xFFFFFFFF


class DeviceHealth(IntEnum):
    """Device health, numbered as DeviceHealthEnumeration of OPC UA DI."""
    NORMAL = 0
    FAILURE = 1
    CHECK_FUNCTION = 2
    OFF_SPEC = 3
    MAINTENANCE_REQUIRED = 4


class EventSeverity:
    """Standard OPC UA event severities."""
    MAX = 1000
    HIGH = 800
    MEDIUM_HIGH = 600
    MEDIUM = 500
    MEDIUM_LOW = 400
    LOW = 200
    MIN = 1


@dataclass
class NodeWithIntervals:
    """
    A created node as exported to the publisher configuration file.

    node_id carries the typed prefix (i=, s=, g=) without namespace.
    """
    node_id: str
    namespace: str
    publishing_interval: int = 0
    sampling_interval: int = 0

    @property
    def expanded_node_id(self) -> str:
        return f"nsu={self.namespace};{self.node_id}"


@dataclass
class AlarmEvent:
    """A transient alarm reported through the address space event channel."""
    severity: int
    message: str
    source: Any = None
    source_name: str = ""
    time: Optional[datetime] = None


def parse_identifier(raw: Any) -> NodeIdentifier:
    """
    Disambiguate a configured node identifier.

    Tried in order: GUID, numeric (unsigned 32-bit), string.
    """
    if isinstance(raw, uuid.UUID):
        return raw
    if isinstance(raw, bool):
        return str(raw)
    if isinstance(raw, int):
        if 0 <= raw <= _UINT32_MAX:
            return raw
        return str(raw)

    text = str(raw).strip()
    try:
        return uuid.UUID(text)
    except ValueError:
        pass

    if _NUMERIC_ID.match(text) and int(text) <= _UINT32_MAX:
        return int(text)

    return text


def format_identifier(identifier: NodeIdentifier) -> str:
    """Format an identifier with its type prefix (i=, g=, s=)."""
    if isinstance(identifier, int):
        return f"i={identifier}"
    if isinstance(identifier, uuid.UUID):
        return f"g={identifier}"
    return f"s={identifier}"


def format_node_id(node_id: ua.NodeId) -> str:
    """Format an asyncua NodeId identifier with its type prefix."""
    return format_identifier(node_id.Identifier)


def _get(data: dict, *keys: str, default: Any = None) -> Any:
    """Look up the first present key, case-insensitive."""
    lowered = {str(k).lower(): v for k, v in data.items()}
    for key in keys:
        if key.lower() in lowered:
            return lowered[key.lower()]
    return default


@dataclass
class ConfigNode:
    """
    A leaf node definition from a user node file.

    Fields are kept as configured; type and access level resolution
    happen when the tree is materialized.
    """
    node_id: Any
    name: Optional[str] = None
    description: Optional[str] = None
    data_type: str = "Int32"
    value_rank: int = -1
    access_level: str = "CurrentReadOrWrite"
    value: Any = None
    namespace: Optional[str] = None
    namespace_index: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'ConfigNode':
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise ValueError(f"Node definition must be an object, got {type(data).__name__}")

        node_id = _get(data, "NodeId", "Id")
        if node_id is None:
            raise ValueError(f"Missing NodeId in node definition: {data}")

        namespace_index = _get(data, "NamespaceIndex")
        return cls(
            node_id=node_id,
            name=_get(data, "Name", "DisplayName"),
            description=_get(data, "Description"),
            data_type=_get(data, "DataType", "Type", default="Int32"),
            value_rank=int(_get(data, "ValueRank", default=-1)),
            access_level=_get(data, "AccessLevel", default="CurrentReadOrWrite"),
            value=_get(data, "Value"),
            namespace=_get(data, "Namespace"),
            namespace_index=int(namespace_index) if namespace_index is not None else None,
        )


@dataclass
class ConfigFolder:
    """A folder of a user node file, with leaf nodes and child folders."""
    folder: str
    node_list: list[ConfigNode] = field(default_factory=list)
    folder_list: list['ConfigFolder'] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'ConfigFolder':
        """Create from dictionary, recursively."""
        if not isinstance(data, dict):
            raise ValueError(f"Folder definition must be an object, got {type(data).__name__}")

        folder = _get(data, "Folder")
        if not folder:
            raise ValueError("Missing Folder name in folder definition")

        nodes = [ConfigNode.from_dict(n) for n in (_get(data, "NodeList") or [])]
        folders = [cls.from_dict(f) for f in (_get(data, "FolderList") or [])]
        return cls(folder=str(folder), node_list=nodes, folder_list=folders)

    def count_nodes(self) -> int:
        return len(self.node_list) + sum(f.count_nodes() for f in self.folder_list)
