"""
Address space registry for the simulator.

This module wraps an initialized asyncua Server and provides the node
operations the plugin nodes need: folders, typed variables, methods,
namespace resolution, value updates, alarm events and write hooks.
"""

import asyncio
import contextvars
from typing import Any, Awaitable, Callable, Iterable, Optional

from asyncua import Server, ua
from asyncua.common.callback import CallbackType
from asyncua.common.node import Node
from asyncua.ua.uaerrors import UaStatusCodeError

from ..logging import log_info, log_error, log_debug
from ..types import (
    AccessLevels,
    AlarmEvent,
    NodeWithIntervals,
    TypeConverter,
    ValueRank,
    format_node_id,
)

WriteHook = Callable[[Any], Awaitable[None]]
MethodHandler = Callable[..., Awaitable[Any]]

# Set while the simulator itself writes a value, so that post-write hooks
# only see client writes.
_internal_write = contextvars.ContextVar("plcsim_internal_write", default=False)


class AddressSpaceRegistry:
    """
    Creates and updates nodes inside an asyncua address space.

    Concurrent node creation and updates from several timer tasks are safe:
    asyncua serializes access to its internal address space.
    """

    def __init__(self, server: Server, namespace_uri: str, scheduler):
        """
        Initialize address space registry.

        Args:
            server: asyncua Server instance, already initialized
            namespace_uri: Default namespace URI for created nodes
            scheduler: Scheduler providing source timestamps
        """
        self.server = server
        self.namespace_uri = namespace_uri
        self.namespace_idx: Optional[int] = None
        self.scheduler = scheduler

        self._namespace_uris: dict[int, str] = {}
        self._write_hooks: dict[ua.NodeId, WriteHook] = {}
        self._write_callback_registered = False
        self._event_generators: dict[ua.NodeId, Any] = {}
        self._event_lock = asyncio.Lock()

    async def initialize(self) -> bool:
        """
        Register the default namespace.

        Returns:
            True if initialization successful
        """
        try:
            self.namespace_idx = await self.server.register_namespace(self.namespace_uri)
            self._namespace_uris[self.namespace_idx] = self.namespace_uri
            log_info(f"Registered namespace '{self.namespace_uri}' (index: {self.namespace_idx})")
            return True
        except Exception as e:
            log_error(f"Failed to register namespace: {e}")
            return False

    async def get_namespace_index(self, namespace_uri: str) -> int:
        """Resolve a namespace URI to its index, registering it if needed."""
        try:
            idx = await self.server.get_namespace_index(namespace_uri)
        except ValueError:
            idx = await self.server.register_namespace(namespace_uri)
            log_info(f"Registered namespace '{namespace_uri}' (index: {idx})")
        self._namespace_uris[idx] = namespace_uri
        return idx

    async def get_namespace_uri(self, namespace_index: int) -> Optional[str]:
        """Resolve a namespace index to its URI, or None if not registered."""
        if namespace_index in self._namespace_uris:
            return self._namespace_uris[namespace_index]

        namespaces = await self.server.get_namespace_array()
        if 0 <= namespace_index < len(namespaces):
            self._namespace_uris[namespace_index] = namespaces[namespace_index]
            return namespaces[namespace_index]
        return None

    def _ns(self, namespace_index: Optional[int]) -> int:
        if namespace_index is not None:
            return namespace_index
        if self.namespace_idx is None:
            raise RuntimeError("Address space registry not initialized")
        return self.namespace_idx

    async def create_folder(
        self,
        parent: Node,
        path: str,
        name: str,
        namespace_index: Optional[int] = None
    ) -> Node:
        """Create a folder below parent, identified by a string path."""
        ns = self._ns(namespace_index)
        folder = await parent.add_folder(ua.NodeId(path, ns), ua.QualifiedName(name, ns))
        log_debug(f"Created folder '{name}' (ns={ns};s={path})")
        return folder

    async def create_object(
        self,
        parent: Node,
        path: str,
        name: str,
        namespace_index: Optional[int] = None
    ) -> Node:
        """Create an object below parent, identified by a string path."""
        ns = self._ns(namespace_index)
        return await parent.add_object(ua.NodeId(path, ns), ua.QualifiedName(name, ns))

    async def create_variable(
        self,
        parent: Node,
        identifier: Any,
        name: str,
        data_type: ua.VariantType,
        value_rank: int = ValueRank.SCALAR,
        access_level: int = AccessLevels.CURRENT_READ,
        description: str = "",
        namespace_index: Optional[int] = None,
        value: Any = None
    ) -> Node:
        """
        Create a typed variable node.

        Args:
            parent: Parent folder or object
            identifier: Numeric, string or GUID identifier
            name: Browse and display name
            data_type: Variant type of the value
            value_rank: ValueRank.SCALAR or ValueRank.ONE_DIMENSION
            access_level: Access level byte (see AccessLevels)
            description: Node description
            namespace_index: Namespace override, default namespace otherwise
            value: Initial value; None selects an empty array or the
                variant's default
        """
        ns = self._ns(namespace_index)

        if value is None:
            if value_rank == ValueRank.ONE_DIMENSION:
                value = []
            else:
                value = TypeConverter.default_for_variant(data_type)
        variant = ua.Variant(value, data_type)

        node = await parent.add_variable(
            ua.NodeId(identifier, ns),
            ua.QualifiedName(name, ns),
            variant,
            datatype=ua.NodeId(data_type.value)
        )

        await self._set_node_attributes(node, name, description, access_level)
        return node

    async def create_method(
        self,
        parent: Node,
        path: str,
        name: str,
        description: str,
        handler: MethodHandler,
        input_arguments: Iterable[tuple[str, ua.VariantType]] = (),
        namespace_index: Optional[int] = None
    ) -> Node:
        """
        Create a method node calling handler with the unwrapped inputs.

        Args:
            input_arguments: (name, variant type) per positional input
        """
        ns = self._ns(namespace_index)

        async def _call(parent_nodeid, *args):
            values = [arg.Value if isinstance(arg, ua.Variant) else arg for arg in args]
            await handler(*values)
            return []

        arguments = [
            ua.Argument(
                Name=arg_name,
                DataType=ua.NodeId(vtype.value),
                ValueRank=ValueRank.SCALAR,
                ArrayDimensions=[],
                Description=ua.LocalizedText(arg_name)
            )
            for arg_name, vtype in input_arguments
        ]

        method = await parent.add_method(
            ua.NodeId(path, ns),
            ua.QualifiedName(name, ns),
            _call,
            arguments,
            []
        )
        if description:
            await method.write_attribute(
                ua.AttributeIds.Description,
                ua.DataValue(ua.Variant(ua.LocalizedText(description)))
            )
        return method

    async def find_node(
        self,
        identifier: Any,
        node_class: ua.NodeClass = ua.NodeClass.Variable,
        namespace_index: Optional[int] = None
    ) -> Optional[Node]:
        """Find a node by identifier; None if missing or of another node class."""
        node = self.server.get_node(ua.NodeId(identifier, self._ns(namespace_index)))
        try:
            actual_class = await node.read_node_class()
        except UaStatusCodeError:
            return None
        return node if actual_class == node_class else None

    async def get_parent(self, node: Node) -> Node:
        return await node.get_parent()

    async def delete_node(self, node: Node) -> None:
        """Delete a node and everything below it."""
        await self.server.delete_nodes([node], recursive=True)
        log_debug(f"Deleted node {node.nodeid.to_string()}")

    async def set_value(
        self,
        node: Node,
        value: Any,
        data_type: ua.VariantType,
        status_code: int = ua.StatusCodes.Good
    ) -> None:
        """Write a value with the scheduler's timestamp and notify subscribers."""
        # status is positional: the field is StatusCode_ in asyncua 1.x, StatusCode in 2.x
        data_value = ua.DataValue(
            ua.Variant(value, data_type),
            ua.StatusCode(status_code),
            SourceTimestamp=self.scheduler.now(),
        )
        token = _internal_write.set(True)
        try:
            await node.write_value(data_value)
        finally:
            _internal_write.reset(token)

    async def read_value(self, node: Node) -> Any:
        return await node.read_value()

    async def subscribe_writes(self, node: Node, callback: WriteHook) -> None:
        """
        Call callback with the new value after every client write to node.

        Writes made through set_value() do not trigger the callback.
        """
        if not self._write_callback_registered:
            self.server.iserver.subscribe_server_callback(CallbackType.PostWrite, self._on_post_write)
            self._write_callback_registered = True
        self._write_hooks[node.nodeid] = callback

    async def _on_post_write(self, event, dispatcher) -> None:
        """Dispatch client writes to the registered write hooks."""
        if _internal_write.get():
            return

        params = getattr(event, 'request_params', None)
        if params is None or not hasattr(params, 'NodesToWrite'):
            return
        results = getattr(event, 'response_params', None) or []

        for i, write_value in enumerate(params.NodesToWrite):
            if write_value.AttributeId != ua.AttributeIds.Value:
                continue
            hook = self._write_hooks.get(write_value.NodeId)
            if hook is None:
                continue
            if i < len(results) and not results[i].is_good():
                continue

            variant = write_value.Value.Value if write_value.Value else None
            value = variant.Value if variant is not None else None
            try:
                await hook(value)
            except Exception as e:
                log_error(f"Write hook for {write_value.NodeId.to_string()} failed: {e}")

    async def report_event(self, alarm: AlarmEvent, notifier: Optional[Node] = None) -> None:
        """
        Report an alarm through the event channel of notifier.

        Events default to the Server object as notifier.
        """
        notifier = notifier if notifier is not None else self.server.nodes.server

        async with self._event_lock:
            generator = self._event_generators.get(notifier.nodeid)
            if generator is None:
                generator = await self.server.get_event_generator(ua.ObjectIds.BaseEventType, notifier)
                self._event_generators[notifier.nodeid] = generator

            generator.event.Severity = alarm.severity
            generator.event.SourceName = alarm.source_name
            if alarm.source is not None:
                generator.event.SourceNode = alarm.source.nodeid
            else:
                generator.event.SourceNode = notifier.nodeid

            await generator.trigger(time_attr=alarm.time, message=alarm.message)

    async def node_with_intervals(
        self,
        node: Node,
        publishing_interval: int = 0,
        sampling_interval: int = 0
    ) -> NodeWithIntervals:
        """Describe a created node for the publisher configuration file."""
        node_id = node.nodeid
        namespace = await self.get_namespace_uri(node_id.NamespaceIndex)
        return NodeWithIntervals(
            node_id=format_node_id(node_id),
            namespace=namespace or self.namespace_uri,
            publishing_interval=publishing_interval,
            sampling_interval=sampling_interval,
        )

    async def _set_node_attributes(
        self,
        node: Node,
        display_name: str,
        description: str,
        access_level: int
    ) -> None:
        """Set common node attributes."""
        await node.write_attribute(
            ua.AttributeIds.DisplayName,
            ua.DataValue(ua.Variant(ua.LocalizedText(display_name)))
        )

        if description:
            await node.write_attribute(
                ua.AttributeIds.Description,
                ua.DataValue(ua.Variant(ua.LocalizedText(description)))
            )

        await node.write_attribute(
            ua.AttributeIds.AccessLevel,
            ua.DataValue(ua.Variant(access_level, ua.VariantType.Byte))
        )
        await node.write_attribute(
            ua.AttributeIds.UserAccessLevel,
            ua.DataValue(ua.Variant(access_level, ua.VariantType.Byte))
        )
