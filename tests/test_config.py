"""Tests for configuration loading and validation."""
import json

import pytest

from plcsim.config import (
    Boiler2Config,
    SimulatorConfig,
    get_default_config,
    load_config,
)
from plcsim.errors import ConfigurationError


def write_config(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestSimulatorConfig:
    """Tests for SimulatorConfig.from_dict."""

    def test_empty_dict_gives_defaults(self):
        config = SimulatorConfig.from_dict({})

        assert config.server.endpoint_url == "opc.tcp://0.0.0.0:50000"
        assert config.simulation.cycle_count == 50
        assert config.simulation.cycle_length == 100
        assert config.guid_nodes.node_count == 1
        assert config.boiler2.maintenance_interval == 300
        assert config.data_generation.no_spikes is False
        assert config.nodes_file is None

    def test_default_config_round_trips(self):
        config = SimulatorConfig.from_dict(get_default_config())

        assert config == SimulatorConfig.from_dict({})

    def test_sections_are_read(self):
        config = SimulatorConfig.from_dict({
            "simulation": {"cycle_count": 10, "cycle_length": 50},
            "data_generation": {"no_spikes": True},
            "guid_nodes": {"node_count": 3, "node_rate": 200, "seed": "line"},
            "nodes_file": "nodes.json",
            "pn_json": "pn.json",
        })

        assert (config.simulation.cycle_count, config.simulation.cycle_length) == (10, 50)
        assert config.data_generation.no_spikes is True
        assert config.guid_nodes.seed == "line"
        assert config.nodes_file == "nodes.json"
        assert config.pn_json == "pn.json"

    @pytest.mark.parametrize("data", [
        [],
        {"server": "not a section"},
        {"simulation": {"cycle_count": 0}},
        {"simulation": {"cycle_length": -1}},
        {"guid_nodes": {"node_count": -1}},
        {"guid_nodes": {"node_rate": 0}},
        {"boiler2": {"temperature_speed": 0}},
        {"boiler2": {"maintenance_interval": 0}},
        {"boiler2": {"base_temperature": 90, "target_temperature": 80}},
        {"boiler2": {"target_temperature": 80, "overheat_threshold": 80}},
        {"slow_nodes": {"node_rate": "fast"}},
    ])
    def test_invalid_values_rejected(self, data):
        with pytest.raises(ConfigurationError):
            SimulatorConfig.from_dict(data)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            SimulatorConfig.from_dict({"simulation": {"cycle_count": 0}})


class TestBoiler2Config:

    def test_threshold_defaults_to_ten_above_target(self):
        assert Boiler2Config(target_temperature=70).overheat_threshold_temperature == 80.0

    def test_explicit_threshold(self):
        config = Boiler2Config.from_dict({"overheat_threshold": 95})

        assert config.overheat_threshold_temperature == 95


class TestLoadConfig:
    """Tests for load_config."""

    def test_valid_file(self, tmp_path):
        path = write_config(tmp_path, {"simulation": {"cycle_count": 20}})

        config = load_config(path)

        assert config is not None
        assert config.simulation.cycle_count == 20

    def test_missing_file_returns_none(self, tmp_path, caplog):
        assert load_config(str(tmp_path / "missing.json")) is None
        assert "not found" in caplog.text

    def test_invalid_json_returns_none(self, tmp_path, caplog):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        assert load_config(str(path)) is None
        assert "Invalid JSON" in caplog.text

    def test_invalid_configuration_returns_none(self, tmp_path, caplog):
        path = write_config(tmp_path, {"simulation": {"cycle_count": 0}})

        assert load_config(path) is None
        assert "cycle_count" in caplog.text
