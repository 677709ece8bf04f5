"""
Simulator configuration loader.

This module loads the simulator configuration from a JSON file into typed
dataclasses. Every section is optional; missing values take the defaults
returned by get_default_config().
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import json

from .errors import ConfigurationError
from .identity import DEFAULT_SEED
from .logging import log_info, log_error


def _positive(section: str, name: str, value: Any) -> Any:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigurationError(f"{section}.{name} must be a positive number, got {value!r}")
    return value


def _non_negative(section: str, name: str, value: Any) -> Any:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
        raise ConfigurationError(f"{section}.{name} must be a non-negative number, got {value!r}")
    return value


@dataclass
class ServerConfig:
    """OPC UA server basic configuration."""
    name: str = "OpcPlc"
    endpoint_url: str = "opc.tcp://0.0.0.0:50000"
    application_uri: str = "urn:plcsim:server"
    namespace_uri: str = "http://plcsim/Opc/OpcPlc/"
    boiler_namespace_uri: str = "http://plcsim/Opc/OpcPlc/Boiler"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerConfig':
        """Creates a ServerConfig instance from a dictionary."""
        defaults = cls()
        return cls(
            name=data.get("name", defaults.name),
            endpoint_url=data.get("endpoint_url", defaults.endpoint_url),
            application_uri=data.get("application_uri", defaults.application_uri),
            namespace_uri=data.get("namespace_uri", defaults.namespace_uri),
            boiler_namespace_uri=data.get("boiler_namespace_uri", defaults.boiler_namespace_uri),
        )


@dataclass
class SimulationConfig:
    """Shared simulation phase settings."""
    cycle_count: int = 50
    cycle_length: int = 100  # ms

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationConfig':
        """Creates a SimulationConfig instance from a dictionary."""
        return cls(
            cycle_count=_positive("simulation", "cycle_count", data.get("cycle_count", 50)),
            cycle_length=_positive("simulation", "cycle_length", data.get("cycle_length", 100)),
        )


@dataclass
class DataGenerationConfig:
    """Anomaly generation switches."""
    no_spikes: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DataGenerationConfig':
        """Creates a DataGenerationConfig instance from a dictionary."""
        return cls(no_spikes=bool(data.get("no_spikes", False)))


@dataclass
class GuidNodesConfig:
    """Deterministic GUID nodes configuration."""
    node_count: int = 1
    node_rate: int = 1000  # ms
    seed: str = DEFAULT_SEED

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GuidNodesConfig':
        """Creates a GuidNodesConfig instance from a dictionary."""
        return cls(
            node_count=int(_non_negative("guid_nodes", "node_count", data.get("node_count", 1))),
            node_rate=_positive("guid_nodes", "node_rate", data.get("node_rate", 1000)),
            seed=str(data.get("seed", DEFAULT_SEED)),
        )


@dataclass
class Boiler2Config:
    """Boiler #2 configuration. Temperatures in degrees, intervals in seconds."""
    temperature_speed: float = 1
    base_temperature: float = 10
    target_temperature: float = 80
    maintenance_interval: int = 300
    overheat_interval: int = 120
    overheat_threshold: Optional[float] = None

    @property
    def overheat_threshold_temperature(self) -> float:
        """Configured threshold, or ten degrees above the target."""
        if self.overheat_threshold is not None:
            return self.overheat_threshold
        return self.target_temperature + 10.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Boiler2Config':
        """Creates a Boiler2Config instance from a dictionary."""
        config = cls(
            temperature_speed=_positive("boiler2", "temperature_speed", data.get("temperature_speed", 1)),
            base_temperature=data.get("base_temperature", 10),
            target_temperature=data.get("target_temperature", 80),
            maintenance_interval=_positive("boiler2", "maintenance_interval", data.get("maintenance_interval", 300)),
            overheat_interval=_positive("boiler2", "overheat_interval", data.get("overheat_interval", 120)),
            overheat_threshold=data.get("overheat_threshold"),
        )
        if config.target_temperature < config.base_temperature:
            raise ConfigurationError(
                f"boiler2.target_temperature ({config.target_temperature}) is below "
                f"boiler2.base_temperature ({config.base_temperature})"
            )
        if config.overheat_threshold_temperature <= config.target_temperature:
            raise ConfigurationError(
                f"boiler2.overheat_threshold ({config.overheat_threshold_temperature}) must be "
                f"above boiler2.target_temperature ({config.target_temperature})"
            )
        return config


@dataclass
class SlowNodesConfig:
    """Slow nodes configuration, passed through to the value generator."""
    node_count: int = 1
    node_rate: int = 10  # seconds
    node_type: str = "UInt"
    node_min_value: Optional[str] = None
    node_max_value: Optional[str] = None
    node_randomization: bool = False
    node_step_size: str = "1"
    node_sampling_interval: int = 0  # ms

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SlowNodesConfig':
        """Creates a SlowNodesConfig instance from a dictionary."""
        return cls(
            node_count=int(_non_negative("slow_nodes", "node_count", data.get("node_count", 1))),
            node_rate=_positive("slow_nodes", "node_rate", data.get("node_rate", 10)),
            node_type=data.get("node_type", "UInt"),
            node_min_value=data.get("node_min_value"),
            node_max_value=data.get("node_max_value"),
            node_randomization=bool(data.get("node_randomization", False)),
            node_step_size=str(data.get("node_step_size", "1")),
            node_sampling_interval=_non_negative(
                "slow_nodes", "node_sampling_interval", data.get("node_sampling_interval", 0)
            ),
        )


@dataclass
class LoggingConfig:
    """Log level and output format."""
    level: str = "info"
    json_format: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoggingConfig':
        """Creates a LoggingConfig instance from a dictionary."""
        return cls(
            level=str(data.get("level", "info")),
            json_format=bool(data.get("json_format", False)),
        )


@dataclass
class SimulatorConfig:
    """Complete simulator configuration."""
    server: ServerConfig = field(default_factory=ServerConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    data_generation: DataGenerationConfig = field(default_factory=DataGenerationConfig)
    guid_nodes: GuidNodesConfig = field(default_factory=GuidNodesConfig)
    boiler2: Boiler2Config = field(default_factory=Boiler2Config)
    slow_nodes: SlowNodesConfig = field(default_factory=SlowNodesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    nodes_file: Optional[str] = None
    pn_json: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulatorConfig':
        """
        Creates a SimulatorConfig instance from a dictionary.

        Raises:
            ConfigurationError: If a section or value is invalid
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration root must be a JSON object")

        sections = {}
        for key in ("server", "simulation", "data_generation", "guid_nodes",
                    "boiler2", "slow_nodes", "logging"):
            section = data.get(key, {})
            if not isinstance(section, dict):
                raise ConfigurationError(f"Configuration section '{key}' must be an object")
            sections[key] = section

        return cls(
            server=ServerConfig.from_dict(sections["server"]),
            simulation=SimulationConfig.from_dict(sections["simulation"]),
            data_generation=DataGenerationConfig.from_dict(sections["data_generation"]),
            guid_nodes=GuidNodesConfig.from_dict(sections["guid_nodes"]),
            boiler2=Boiler2Config.from_dict(sections["boiler2"]),
            slow_nodes=SlowNodesConfig.from_dict(sections["slow_nodes"]),
            logging=LoggingConfig.from_dict(sections["logging"]),
            nodes_file=data.get("nodes_file"),
            pn_json=data.get("pn_json"),
        )


def load_config(config_path: str) -> Optional[SimulatorConfig]:
    """
    Load simulator configuration from JSON file.

    Args:
        config_path: Path to configuration file

    Returns:
        SimulatorConfig or None if loading fails
    """
    try:
        path = Path(config_path)
        if not path.exists():
            log_error(f"Configuration file not found: {config_path}")
            return None

        with open(path, 'r') as f:
            raw_config = json.load(f)

        config = SimulatorConfig.from_dict(raw_config)

        log_info(f"Configuration loaded from {config_path}")
        return config

    except json.JSONDecodeError as e:
        log_error(f"Invalid JSON in configuration file {config_path}: {e}")
        return None
    except ConfigurationError as e:
        log_error(f"Invalid configuration in {config_path}: {e}")
        return None
    except Exception as e:
        log_error(f"Failed to load configuration {config_path}: {e}")
        return None


def get_default_config() -> dict:
    """
    Get default configuration for development/testing.

    Returns:
        Default configuration dictionary
    """
    return {
        "server": {
            "name": "OpcPlc",
            "endpoint_url": "opc.tcp://0.0.0.0:50000",
            "application_uri": "urn:plcsim:server",
            "namespace_uri": "http://plcsim/Opc/OpcPlc/",
            "boiler_namespace_uri": "http://plcsim/Opc/OpcPlc/Boiler",
        },
        "simulation": {
            "cycle_count": 50,
            "cycle_length": 100,
        },
        "data_generation": {
            "no_spikes": False,
        },
        "guid_nodes": {
            "node_count": 1,
            "node_rate": 1000,
            "seed": DEFAULT_SEED,
        },
        "boiler2": {
            "temperature_speed": 1,
            "base_temperature": 10,
            "target_temperature": 80,
            "maintenance_interval": 300,
            "overheat_interval": 120,
        },
        "slow_nodes": {
            "node_count": 1,
            "node_rate": 10,
            "node_type": "UInt",
            "node_step_size": "1",
        },
        "logging": {
            "level": "info",
            "json_format": False,
        },
        "nodes_file": None,
        "pn_json": None,
    }
