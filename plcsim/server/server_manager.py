"""
Simulator server manager.

This module provides the server lifecycle management, using asyncua's
native context manager pattern: configure, initialize, build the address
space from the plugin nodes, run the simulation until stopped.
"""

import asyncio
from datetime import datetime
from typing import Optional

from asyncua import Server, ua

from ..config import SimulatorConfig
from ..errors import FatalSimulationError
from ..logging import log_critical, log_error, log_info, log_warn
from ..plugin_nodes import (
    BoilerPluginNodes,
    DeterministicGuidPluginNodes,
    NodeValueGenerator,
    PluginNodes,
    SlowPluginNodes,
    SpikePluginNode,
    UserDefinedPluginNodes,
)
from ..scheduler import Scheduler
from ..simulation import PlcSimulation
from .address_space import AddressSpaceRegistry
from .pn_json import write_publisher_config


def build_plugin_nodes(
    config: SimulatorConfig,
    scheduler,
    value_generator: Optional[NodeValueGenerator] = None
) -> list[PluginNodes]:
    """
    Assemble the plugin nodes for a configuration.

    Slow nodes need a value generator and are left out without one.
    """
    plugin_nodes: list[PluginNodes] = [
        BoilerPluginNodes(scheduler, config.boiler2, config.server.boiler_namespace_uri),
        DeterministicGuidPluginNodes(scheduler, config.guid_nodes),
        SpikePluginNode(scheduler, config.simulation, enabled=not config.data_generation.no_spikes),
        UserDefinedPluginNodes(scheduler, config.nodes_file),
    ]

    if value_generator is not None:
        plugin_nodes.append(SlowPluginNodes(scheduler, value_generator, config.slow_nodes))
    else:
        log_info("No node value generator configured, slow nodes disabled")

    return plugin_nodes


class SimulatorServerManager:
    """
    Manages the simulator server lifecycle.

    Uses asyncua's native patterns for:
    - Server initialization and configuration
    - Address space creation through the plugin nodes
    - Running the simulation until stop() or a fatal simulation error
    """

    def __init__(self, config: SimulatorConfig, value_generator: Optional[NodeValueGenerator] = None):
        """
        Initialize server manager.

        Args:
            config: Complete simulator configuration
            value_generator: Optional generator backing the slow nodes
        """
        self.config = config
        self.value_generator = value_generator

        # Server components (initialized during setup)
        self.server: Optional[Server] = None
        self.scheduler: Optional[Scheduler] = None
        self.registry: Optional[AddressSpaceRegistry] = None
        self.simulation: Optional[PlcSimulation] = None

        # State
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """
        Run the simulator server.

        Raises:
            FatalSimulationError: If a plugin reached an invalid state; the
                server is stopped before the error propagates
        """
        self._stop_event = asyncio.Event()
        try:
            await self._setup_components()

            async with self.server:
                log_info("OPC UA server started")
                self._running = True

                await self.simulation.start()
                self._write_publisher_config()
                log_info("PLC simulation started")

                await self._stop_event.wait()

                fatal_error = self.scheduler.fatal_error
                if fatal_error is not None:
                    raise fatal_error

        except asyncio.CancelledError:
            log_info("Server shutdown requested")
        except FatalSimulationError as e:
            log_critical(f"Simulation stopped after fatal error: {e}")
            raise
        except Exception as e:
            log_error(f"Server error: {e}")
            raise
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Request server shutdown."""
        if self._stop_event is not None:
            self._stop_event.set()

    def _on_fatal(self, error: FatalSimulationError) -> None:
        log_critical(f"Fatal simulation error, shutting down: {error}")
        if self._stop_event is not None:
            self._stop_event.set()

    async def _setup_components(self) -> None:
        """Setup all server components."""
        self.scheduler = Scheduler(fatal_handler=self._on_fatal)

        self.server = Server()

        # Configure server BEFORE init
        await self._configure_server()

        await self.server.init()
        log_info("Server initialized")

        # Set build info AFTER init
        await self._set_build_info()

        # Build address space AFTER init
        await self._build_address_space()

    async def _configure_server(self) -> None:
        """Configure server settings before initialization."""
        server_config = self.config.server

        self.server.set_endpoint(server_config.endpoint_url)
        log_info(f"Endpoint: {server_config.endpoint_url}")

        self.server.set_server_name(server_config.name)
        self.server.application_uri = server_config.application_uri

        # Certificates and user authentication are not part of the simulator
        self.server.set_security_policy([ua.SecurityPolicyType.NoSecurity])
        log_warn("Security policy: None")

    async def _set_build_info(self) -> None:
        """Set server build information."""
        await self.server.set_build_info(
            product_uri=self.config.server.application_uri,
            manufacturer_name="plcsim",
            product_name="OPC UA PLC simulator",
            software_version="1.0.0",
            build_number="1.0.0.0",
            build_date=datetime.now()
        )

    async def _build_address_space(self) -> None:
        """Create the root folders and register all plugin nodes."""
        self.registry = AddressSpaceRegistry(
            server=self.server,
            namespace_uri=self.config.server.namespace_uri,
            scheduler=self.scheduler
        )

        if not await self.registry.initialize():
            raise RuntimeError("Failed to initialize address space registry")

        root = await self.registry.create_folder(self.server.nodes.objects, "OpcPlc", "OpcPlc")
        telemetry = await self.registry.create_folder(root, "Telemetry", "Telemetry")
        methods = await self.registry.create_folder(root, "Methods", "Methods")

        simulation_config = self.config.simulation
        log_info(f"One simulation phase consists of {simulation_config.cycle_count} cycles")
        log_info(f"One cycle takes {simulation_config.cycle_length} ms")

        self.simulation = PlcSimulation(
            build_plugin_nodes(self.config, self.scheduler, self.value_generator),
            simulation_config
        )
        await self.simulation.register(telemetry, methods, self.registry)

    def _write_publisher_config(self) -> None:
        if not self.config.pn_json:
            return
        try:
            write_publisher_config(
                self.config.pn_json,
                self.config.server.endpoint_url,
                False,
                self.simulation.nodes
            )
        except OSError as e:
            log_error(f"Could not write publisher configuration {self.config.pn_json}: {e}")

    async def _cleanup(self) -> None:
        """Cleanup resources."""
        self._running = False

        if self.simulation is not None:
            await self.simulation.stop()
        if self.scheduler is not None:
            self.scheduler.stop_all()

        log_info("Server cleanup completed")
