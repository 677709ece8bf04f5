"""Tests for plugin assembly and the server manager."""
import asyncio

import pytest

from plcsim.config import SimulatorConfig
from plcsim.plugin_nodes import (
    BoilerPluginNodes,
    DeterministicGuidPluginNodes,
    SlowPluginNodes,
    SpikePluginNode,
    UserDefinedPluginNodes,
)
from plcsim.server import SimulatorServerManager, build_plugin_nodes


class NullGenerator:

    async def create_nodes(self, *args):
        return [], []

    async def update_nodes(self, *args):
        pass


def test_default_plugin_set(scheduler):
    """Test that the default configuration assembles every plugin except slow nodes."""
    plugins = build_plugin_nodes(SimulatorConfig(), scheduler)

    assert [type(p) for p in plugins] == [
        BoilerPluginNodes,
        DeterministicGuidPluginNodes,
        SpikePluginNode,
        UserDefinedPluginNodes,
    ]
    assert plugins[2].enabled is True


def test_slow_nodes_need_a_generator(scheduler):
    plugins = build_plugin_nodes(SimulatorConfig(), scheduler, NullGenerator())

    assert isinstance(plugins[-1], SlowPluginNodes)


def test_no_spikes_disables_spike_node(scheduler):
    config = SimulatorConfig.from_dict({"data_generation": {"no_spikes": True}})

    plugins = build_plugin_nodes(config, scheduler)

    spike = next(p for p in plugins if isinstance(p, SpikePluginNode))
    assert spike.enabled is False


def test_plugins_share_configuration(scheduler):
    """Test that plugins receive their configuration sections."""
    config = SimulatorConfig.from_dict({"nodes_file": "nodes.json"})

    plugins = build_plugin_nodes(config, scheduler)

    assert plugins[1].config is config.guid_nodes
    assert plugins[2].simulation is config.simulation
    assert plugins[3].nodes_file == "nodes.json"


@pytest.mark.asyncio
async def test_server_runs_until_stopped(tmp_path):
    """Test a full server run: address space built, pn.json written, clean shutdown."""
    pn_json = tmp_path / "pn.json"
    config = SimulatorConfig.from_dict({
        "server": {"endpoint_url": "opc.tcp://127.0.0.1:48456"},
        "guid_nodes": {"node_count": 2},
        "pn_json": str(pn_json),
    })
    manager = SimulatorServerManager(config)

    task = asyncio.create_task(manager.run())
    for _ in range(100):
        if pn_json.exists():
            break
        await asyncio.sleep(0.05)

    assert manager.is_running
    assert len(manager.simulation.nodes) == 1 + 2 + 1

    await manager.stop()
    await asyncio.wait_for(task, timeout=10)

    assert pn_json.exists()
    assert not manager.is_running
    assert manager.scheduler.active_timers == []
