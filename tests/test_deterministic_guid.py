"""Tests for the deterministic GUID sequence and the GUID plugin nodes."""
import uuid

import pytest
from asyncua import ua

from plcsim.config import GuidNodesConfig
from plcsim.identity import DEFAULT_SEED, DeterministicGuid
from plcsim.plugin_nodes.deterministic_guid import DeterministicGuidPluginNodes
from plcsim.types import AccessLevels


class TestDeterministicGuid:
    """Tests for the DeterministicGuid sequence."""

    def test_sequences_with_same_seed_match(self):
        first = DeterministicGuid("line-1")
        second = DeterministicGuid("line-1")

        assert [first.new_guid() for _ in range(5)] == [second.new_guid() for _ in range(5)]

    def test_guids_are_distinct(self):
        sequence = DeterministicGuid()
        guids = [sequence.new_guid() for _ in range(1000)]

        assert len(set(guids)) == 1000
        assert all(isinstance(g, uuid.UUID) for g in guids)

    def test_seed_changes_the_sequence(self):
        assert DeterministicGuid("a").guid_at(0) != DeterministicGuid("b").guid_at(0)

    def test_guid_at_does_not_advance(self):
        sequence = DeterministicGuid()
        peeked = sequence.guid_at(0)

        assert sequence.position == 0
        assert sequence.new_guid() == peeked
        assert sequence.position == 1

    def test_negative_position_rejected(self):
        with pytest.raises(ValueError):
            DeterministicGuid().guid_at(-1)

    def test_default_seed(self):
        assert DeterministicGuid().seed == DEFAULT_SEED


def guid_nodes(registry):
    return [n for n in registry.variables() if isinstance(n.identifier, uuid.UUID)]


@pytest.mark.asyncio
async def test_register_creates_configured_node_count(scheduler, registry):
    """Test that register creates one UInt32 node per configured GUID."""
    plugin = DeterministicGuidPluginNodes(scheduler, GuidNodesConfig(node_count=3))
    await plugin.register(registry.telemetry, registry.methods, registry)

    folder = registry.telemetry.child("Deterministic GUID")
    assert len(folder.children) == 3
    expected = DeterministicGuid(DEFAULT_SEED)
    for child in folder.children:
        assert child.identifier == expected.new_guid()
        assert child.attributes["data_type"] == ua.VariantType.UInt32
        assert child.attributes["access_level"] == AccessLevels.CURRENT_READ_OR_WRITE
        assert child.value == 0
    assert [n.node_id for n in plugin.nodes] == [f"g={c.identifier}" for c in folder.children]


@pytest.mark.asyncio
async def test_node_ids_are_stable_across_instances(scheduler, registry_factory):
    """Test that two simulators with the same configuration expose the same node ids."""
    config = GuidNodesConfig(node_count=4, seed="plant-a")
    ids = []
    for _ in range(2):
        registry = registry_factory(scheduler)
        plugin = DeterministicGuidPluginNodes(scheduler, config)
        await plugin.register(registry.telemetry, registry.methods, registry)
        ids.append([n.node_id for n in plugin.nodes])

    assert ids[0] == ids[1]


@pytest.mark.asyncio
async def test_zero_nodes_creates_empty_folder(scheduler, registry):
    """Test that a zero node count creates the folder but no nodes or timers."""
    plugin = DeterministicGuidPluginNodes(scheduler, GuidNodesConfig(node_count=0))
    await plugin.register(registry.telemetry, registry.methods, registry)
    await plugin.start()

    assert registry.telemetry.child("Deterministic GUID").children == []
    assert plugin.nodes == []
    assert scheduler.active_timers == []


@pytest.mark.asyncio
async def test_values_increment_every_rate(scheduler, registry):
    """Test that each node increments by one per node_rate."""
    plugin = DeterministicGuidPluginNodes(scheduler, GuidNodesConfig(node_count=2, node_rate=500))
    await plugin.register(registry.telemetry, registry.methods, registry)
    await plugin.start()

    await scheduler.advance(1500)

    assert [n.value for n in guid_nodes(registry)] == [3, 3]
    assert len(scheduler.active_timers) == 2


@pytest.mark.asyncio
async def test_increment_continues_from_client_written_value(scheduler, registry):
    """Test that a value written by a client keeps incrementing from there."""
    plugin = DeterministicGuidPluginNodes(scheduler, GuidNodesConfig(node_count=1, node_rate=100))
    await plugin.register(registry.telemetry, registry.methods, registry)
    await plugin.start()

    node = guid_nodes(registry)[0]
    await scheduler.advance(200)
    await registry.client_write(node, 1000)
    await scheduler.advance(100)

    assert node.value == 1001


@pytest.mark.asyncio
async def test_value_wraps_at_uint32_max(scheduler, registry):
    """Test that the counter wraps around instead of overflowing UInt32."""
    plugin = DeterministicGuidPluginNodes(scheduler, GuidNodesConfig(node_count=1, node_rate=100))
    await plugin.register(registry.telemetry, registry.methods, registry)
    await plugin.start()

    node = guid_nodes(registry)[0]
    await registry.client_write(node, 0xFFFFFFFF)
    await scheduler.advance(100)

    assert node.value == 0


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent(scheduler, registry):
    """Test that start twice creates one set of timers and stop twice is harmless."""
    plugin = DeterministicGuidPluginNodes(scheduler, GuidNodesConfig(node_count=2))
    await plugin.register(registry.telemetry, registry.methods, registry)

    await plugin.stop()
    await plugin.start()
    await plugin.start()
    assert len(scheduler.active_timers) == 2

    await plugin.stop()
    await plugin.stop()
    assert scheduler.active_timers == []
