"""Pytest configuration and fixtures."""
import asyncio

import pytest
import pytest_asyncio
from asyncua import Server

from plcsim.logging import SimLogger
from plcsim.scheduler import ManualScheduler
from plcsim.server.address_space import AddressSpaceRegistry
from plcsim.types import NodeWithIntervals, format_identifier

TEST_NAMESPACE = "http://plcsim.test/OpcPlc/"


class FakeNode:
    """Address space node held by FakeRegistry."""

    def __init__(self, identifier, name, namespace_index, kind, parent=None, **attributes):
        self.identifier = identifier
        self.name = name
        self.namespace_index = namespace_index
        self.kind = kind
        self.parent = parent
        self.children = []
        self.value = attributes.pop("value", None)
        self.timestamp = None
        self.attributes = attributes
        if parent is not None:
            parent.children.append(self)

    @property
    def nodeid(self):
        return (self.namespace_index, self.identifier)

    def child(self, name):
        for node in self.children:
            if node.name == name:
                return node
        raise KeyError(name)

    def __repr__(self):
        return f"FakeNode({self.kind} {self.name!r})"


class FakeRegistry:
    """
    In-memory address space with the AddressSpaceRegistry interface.

    set_value yields to the event loop before writing, so concurrent
    callbacks interleave unless the caller serializes them.
    """

    def __init__(self, scheduler, namespace_uri=TEST_NAMESPACE, namespace_index=2):
        self.scheduler = scheduler
        self.namespace_idx = namespace_index
        self.namespaces = {0: "http://opcfoundation.org/UA/", namespace_index: namespace_uri}
        self.nodes = {}
        self.events = []
        self.method_handlers = {}
        self.write_hooks = {}
        self.writes = []
        self.deleted = []

        self.objects = FakeNode(85, "Objects", 0, "Folder")
        self.root = FakeNode("OpcPlc", "OpcPlc", namespace_index, "Folder", self.objects)
        self.telemetry = FakeNode("Telemetry", "Telemetry", namespace_index, "Folder", self.root)
        self.methods = FakeNode("Methods", "Methods", namespace_index, "Folder", self.root)

    def _ns(self, namespace_index):
        return self.namespace_idx if namespace_index is None else namespace_index

    def _add(self, node):
        if node.nodeid in self.nodes:
            raise ValueError(f"Node id already exists: {node.nodeid}")
        self.nodes[node.nodeid] = node
        return node

    def variables(self):
        return [n for n in self.nodes.values() if n.kind == "Variable"]

    def node(self, identifier, namespace_index=None):
        return self.nodes[(self._ns(namespace_index), identifier)]

    async def get_namespace_index(self, namespace_uri):
        for idx, uri in self.namespaces.items():
            if uri == namespace_uri:
                return idx
        idx = max(self.namespaces) + 1
        self.namespaces[idx] = namespace_uri
        return idx

    async def get_namespace_uri(self, namespace_index):
        return self.namespaces.get(namespace_index)

    async def get_parent(self, node):
        return node.parent

    async def create_folder(self, parent, path, name, namespace_index=None):
        return self._add(FakeNode(path, name, self._ns(namespace_index), "Folder", parent))

    async def create_object(self, parent, path, name, namespace_index=None):
        return self._add(FakeNode(path, name, self._ns(namespace_index), "Object", parent))

    async def create_variable(self, parent, identifier, name, data_type, value_rank=-1,
                              access_level=1, description="", namespace_index=None, value=None):
        return self._add(FakeNode(
            identifier, name, self._ns(namespace_index), "Variable", parent,
            data_type=data_type, value_rank=value_rank, access_level=access_level,
            description=description, value=value,
        ))

    async def create_method(self, parent, path, name, description, handler,
                            input_arguments=(), namespace_index=None):
        node = self._add(FakeNode(path, name, self._ns(namespace_index), "Method", parent,
                                  description=description, input_arguments=list(input_arguments)))
        self.method_handlers[name] = handler
        return node

    async def call_method(self, name, *args):
        await self.method_handlers[name](*args)

    async def find_node(self, identifier, node_class=None, namespace_index=None):
        return self.nodes.get((self._ns(namespace_index), identifier))

    async def set_value(self, node, value, data_type, status_code=0):
        await asyncio.sleep(0)
        node.value = value
        node.timestamp = self.scheduler.now()
        self.writes.append((node.name, value))

    async def read_value(self, node):
        return node.value

    async def subscribe_writes(self, node, callback):
        self.write_hooks[node.nodeid] = callback

    async def client_write(self, node, value):
        """Write like an OPC UA client: store the value, then run the write hook."""
        node.value = value
        hook = self.write_hooks.get(node.nodeid)
        if hook is not None:
            await hook(value)

    async def report_event(self, alarm, notifier=None):
        self.events.append(alarm)

    async def node_with_intervals(self, node, publishing_interval=0, sampling_interval=0):
        return NodeWithIntervals(
            node_id=format_identifier(node.identifier),
            namespace=self.namespaces[node.namespace_index],
            publishing_interval=publishing_interval,
            sampling_interval=sampling_interval,
        )

    async def delete_node(self, node):
        self.deleted.append(node)
        stack = [node]
        while stack:
            current = stack.pop()
            stack.extend(current.children)
            self.nodes.pop(current.nodeid, None)
        if node.parent is not None:
            node.parent.children.remove(node)


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset the simulator logger singleton around each test."""
    SimLogger.reset()
    yield
    SimLogger.reset()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def registry(scheduler):
    return FakeRegistry(scheduler)


@pytest_asyncio.fixture
async def ua_server():
    """Initialized, not listening, asyncua server."""
    server = Server()
    await server.init()
    yield server


@pytest_asyncio.fixture
async def ua_registry(ua_server, scheduler):
    registry = AddressSpaceRegistry(ua_server, TEST_NAMESPACE, scheduler)
    assert await registry.initialize()
    return registry


@pytest_asyncio.fixture
async def ua_folders(ua_server, ua_registry):
    """(root, telemetry, methods) folders in the real address space."""
    root = await ua_registry.create_folder(ua_server.nodes.objects, "OpcPlc", "OpcPlc")
    telemetry = await ua_registry.create_folder(root, "Telemetry", "Telemetry")
    methods = await ua_registry.create_folder(root, "Methods", "Methods")
    return root, telemetry, methods


@pytest.fixture
def registry_factory():
    """Build additional in-memory registries, one per scheduler."""
    return FakeRegistry
