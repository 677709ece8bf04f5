"""
User defined nodes loaded from a JSON node file.

The node file describes a folder tree::

    {
      "Folder": "MyTelemetry",
      "NodeList": [
        {"NodeId": 1023, "Name": "ActualSpeed", "DataType": "Float", "Value": 1.5},
        {"NodeId": "aRMS", "Namespace": "http://example.com/ns", "AccessLevel": "CurrentRead"}
      ],
      "FolderList": [
        {"Folder": "Arrays", "NodeList": [
          {"NodeId": "ids", "DataType": "UInt32", "ValueRank": 1, "Value": [1, 2, 3]}
        ]}
      ]
    }

The whole file is parsed and validated before the first node is created. A
file that cannot be read, parsed or validated adds no nodes at all.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import json

from asyncua import ua

from ..errors import UnsupportedArrayTypeError
from ..logging import log_debug, log_error, log_info
from ..types import (
    AccessLevels,
    BuiltInType,
    ConfigFolder,
    ConfigNode,
    NodeIdentifier,
    TypeConverter,
    ValueRank,
    format_identifier,
    parse_identifier,
)
from .base import PluginNodes


@dataclass
class ResolvedNode:
    """A node definition with identifier, type, access level and value resolved."""
    identifier: NodeIdentifier
    typed_id: str
    name: str
    description: str
    data_type: BuiltInType
    value_rank: int
    access_level: int
    value: Any
    namespace: Optional[str] = None
    namespace_index: Optional[int] = None

    @property
    def variant_type(self) -> ua.VariantType:
        return TypeConverter.to_variant_type(self.data_type)


@dataclass
class ResolvedFolder:
    name: str
    nodes: list[ResolvedNode] = field(default_factory=list)
    folders: list['ResolvedFolder'] = field(default_factory=list)


def read_node_file(path: str) -> ConfigFolder:
    """
    Read and parse a node file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid JSON or not a folder tree
    """
    with open(Path(path), 'r', encoding='utf-8') as f:
        raw = json.load(f)
    return ConfigFolder.from_dict(raw)


def resolve_node(node: ConfigNode) -> ResolvedNode:
    """
    Resolve a node definition.

    An unknown data type falls back to Int32 and an unknown access level to
    CurrentReadOrWrite, both with a logged error. A value that does not fit
    the Int32 fallback takes the Int32 default. Arrays need a known type.

    Raises:
        UnsupportedArrayTypeError: If an array value has a type without array coercion
        ValueError, TypeError: If the value does not fit the data type
    """
    identifier = parse_identifier(node.node_id)
    typed_id = format_identifier(identifier)

    type_known = True
    try:
        data_type = BuiltInType.from_string(node.data_type)
    except ValueError:
        if node.value_rank == ValueRank.ONE_DIMENSION:
            raise UnsupportedArrayTypeError(
                f"Node type not implemented for arrays: {node.data_type} (node {typed_id})"
            )
        log_error(f"Value {node.data_type} of node {typed_id} cannot be parsed. Defaulting to Int32")
        data_type = BuiltInType.INT32
        type_known = False

    access_level = AccessLevels.resolve(node.access_level)
    if access_level is None:
        log_error(f"AccessLevel {node.access_level} of node {node.name or typed_id} is not supported. "
                  f"Defaulting to CurrentReadOrWrite")
        access_level = AccessLevels.CURRENT_READ_OR_WRITE

    if node.value_rank == ValueRank.ONE_DIMENSION:
        value = TypeConverter.to_array(data_type, node.value) if isinstance(node.value, list) else None
    elif type_known:
        value = TypeConverter.to_value(data_type, node.value)
    else:
        try:
            value = TypeConverter.to_value(data_type, node.value)
        except (TypeError, ValueError):
            value = TypeConverter.default_value(data_type)
            log_error(f"Value {node.value!r} of node {typed_id} does not fit Int32. Defaulting to {value}")

    if node.namespace_index is not None and not 0 <= node.namespace_index <= 0xFFFF:
        raise ValueError(f"Invalid NamespaceIndex {node.namespace_index} of node {typed_id}")

    name = node.name or typed_id
    return ResolvedNode(
        identifier=identifier,
        typed_id=typed_id,
        name=name,
        description=node.description or name,
        data_type=data_type,
        value_rank=node.value_rank,
        access_level=access_level,
        value=value,
        namespace=node.namespace or None,
        namespace_index=node.namespace_index,
    )


def resolve_folder(folder: ConfigFolder) -> ResolvedFolder:
    """Resolve a folder tree, recursively."""
    return ResolvedFolder(
        name=folder.folder,
        nodes=[resolve_node(n) for n in folder.node_list],
        folders=[resolve_folder(f) for f in folder.folder_list],
    )


class UserDefinedPluginNodes(PluginNodes):
    """
    Nodes configured through a JSON node file, created under the root folder.

    These nodes have no simulation: clients read and write them.
    """

    name = "UserDefined"

    def __init__(self, scheduler, nodes_file: Optional[str] = None):
        super().__init__(scheduler)
        self.nodes_file = nodes_file

    async def register(self, telemetry_folder, methods_folder, registry) -> None:
        self._registry = registry
        if not self.nodes_file:
            return

        root = await registry.get_parent(telemetry_folder)
        try:
            tree = resolve_folder(read_node_file(self.nodes_file))
        except (OSError, ValueError, TypeError) as e:
            log_error(f"Error loading user defined node file {self.nodes_file}: {e}")
            return

        log_info(f"Processing node information configured in {self.nodes_file}")

        created: list = []
        try:
            self.nodes = await self._add_folder(root, tree, tree.name, created)
        except Exception as e:
            log_error(f"Error creating user defined nodes from {self.nodes_file}: {e}")
            self.nodes = []
            if created:
                await registry.delete_node(created[0])
            return

        log_info(f"Completed processing user defined node file ({len(self.nodes)} nodes)")

    async def start(self) -> None:
        """No simulation."""

    async def stop(self) -> None:
        """No simulation."""

    async def _add_folder(self, parent, folder: ResolvedFolder, path: str, created: list) -> list:
        log_debug(f"Create folder {folder.name}")
        ua_folder = await self._registry.create_folder(parent, path, folder.name)
        created.append(ua_folder)

        nodes = []
        for node in folder.nodes:
            namespace_index = await self._namespace_index(node)
            log_debug(f"Create node with Id {node.typed_id}, BrowseName {node.name} and type "
                      f"{node.data_type.value} in namespace with index {namespace_index}")
            variable = await self._registry.create_variable(
                ua_folder,
                node.identifier,
                node.name,
                node.variant_type,
                value_rank=node.value_rank,
                access_level=node.access_level,
                description=node.description,
                namespace_index=namespace_index,
                value=node.value
            )
            nodes.append(await self._registry.node_with_intervals(variable))

        for child in folder.folders:
            nodes.extend(await self._add_folder(ua_folder, child, f"{path}/{child.name}", created))
        return nodes

    async def _namespace_index(self, node: ResolvedNode) -> Optional[int]:
        """Explicit index, else namespace URI, else default namespace (None)."""
        if node.namespace_index is not None:
            return node.namespace_index
        if node.namespace:
            return await self._registry.get_namespace_index(node.namespace)
        return None
