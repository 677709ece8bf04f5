"""
Simulator plugin entry point.

This module provides the plugin interface used by embedding applications:
- init(config_path, value_generator, log_level): Initialize the simulator
- start_loop(): Start the OPC UA server
- stop_loop(): Stop the OPC UA server
- wait(): Block until the server thread ends
- cleanup(): Clean up resources

The server runs on a background thread with its own event loop.
"""

import asyncio
import threading
from typing import Optional

from .config import SimulatorConfig, get_default_config, load_config
from .logging import configure_logging, log_error, log_info, log_warn
from .plugin_nodes import NodeValueGenerator
from .server import SimulatorServerManager


# Plugin state
_config: Optional[SimulatorConfig] = None
_server_manager: Optional[SimulatorServerManager] = None
_server_thread: Optional[threading.Thread] = None
_server_error: Optional[BaseException] = None
_stop_event = threading.Event()


def init(config_path: Optional[str] = None,
         value_generator: Optional[NodeValueGenerator] = None,
         log_level: Optional[str] = None) -> bool:
    """
    Initialize the simulator.

    Args:
        config_path: Simulator configuration file; defaults are used if None
        value_generator: Optional generator backing the slow nodes
        log_level: Overrides the configured log level

    Returns:
        True if initialization successful, False otherwise
    """
    global _config, _server_manager

    log_info("Simulator initializing...")

    try:
        if config_path:
            _config = load_config(config_path)
            if not _config:
                log_error("Failed to load configuration")
                return False
        else:
            _config = SimulatorConfig.from_dict(get_default_config())
            log_info("Using default configuration")

        configure_logging(log_level or _config.logging.level, _config.logging.json_format)

        _server_manager = SimulatorServerManager(_config, value_generator)

        log_info("Simulator initialized successfully")
        return True

    except Exception as e:
        log_error(f"Initialization error: {e}")
        return False


def start_loop() -> bool:
    """
    Start the simulator server.

    Returns:
        True if server thread started, False otherwise
    """
    global _server_thread, _server_error

    log_info("Starting simulator server...")

    try:
        if not _server_manager:
            log_error("Plugin not initialized")
            return False

        # Reset stop event
        _stop_event.clear()
        _server_error = None

        # Start server in background thread
        _server_thread = threading.Thread(
            target=_run_server_thread,
            daemon=True,
            name="plcsim-server"
        )
        _server_thread.start()

        log_info("Simulator server thread started")
        return True

    except Exception as e:
        log_error(f"Failed to start server: {e}")
        return False


def stop_loop() -> bool:
    """
    Stop the simulator server.

    Returns:
        True if server stopped successfully, False otherwise
    """
    global _server_thread

    log_info("Stopping simulator server...")

    try:
        # Signal stop
        _stop_event.set()

        # Wait for thread to finish
        if _server_thread and _server_thread.is_alive():
            _server_thread.join(timeout=5.0)

            if _server_thread.is_alive():
                log_warn("Server thread did not stop within timeout")
            else:
                log_info("Server thread stopped")

        _server_thread = None
        log_info("Simulator server stopped")
        return True

    except Exception as e:
        log_error(f"Error stopping server: {e}")
        return False


def wait() -> None:
    """Block until the server thread ends."""
    # short joins keep the caller responsive to KeyboardInterrupt
    while _server_thread is not None and _server_thread.is_alive():
        _server_thread.join(0.5)


def cleanup() -> bool:
    """
    Clean up plugin resources.

    Returns:
        True if cleanup successful, False otherwise
    """
    global _config, _server_manager, _server_thread

    log_info("Cleaning up simulator...")

    try:
        stop_loop()

        _config = None
        _server_manager = None
        _server_thread = None

        log_info("Cleanup completed")
        return True

    except Exception as e:
        log_error(f"Cleanup error: {e}")
        return False


def server_error() -> Optional[BaseException]:
    """Error that ended the server thread, if any."""
    return _server_error


def _run_server_thread() -> None:
    """
    Server thread main function.

    Runs the async server in a new event loop.
    """
    global _server_error

    async def _run_with_stop_check():
        """Run server with stop event monitoring."""
        async def _monitor_stop():
            while not _stop_event.is_set():
                await asyncio.sleep(0.1)

            # Stop requested
            if _server_manager:
                await _server_manager.stop()

        monitor_task = asyncio.create_task(_monitor_stop())

        try:
            await _server_manager.run()
        finally:
            monitor_task.cancel()
            try:
                await monitor_task
            except asyncio.CancelledError:
                pass

    try:
        asyncio.run(_run_with_stop_check())
    except Exception as e:
        _server_error = e
        log_error(f"Server thread error: {e}")


__all__ = ['init', 'start_loop', 'stop_loop', 'wait', 'cleanup', 'server_error']
