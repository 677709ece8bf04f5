"""
Plugin node contract.

A plugin node owns one simulation concern: it registers its nodes once,
then starts and stops its timers any number of times.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..types import NodeWithIntervals


class PluginNodes(ABC):
    """
    Base class for all plugin nodes.

    Subclasses implement register/start/stop. ``stop()`` must be safe to
    call before ``start()`` and more than once.
    """

    name = "PluginNodes"

    def __init__(self, scheduler):
        self._scheduler = scheduler
        self._registry = None
        self.nodes: list[NodeWithIntervals] = []

    @abstractmethod
    async def register(self, telemetry_folder: Any, methods_folder: Any, registry) -> None:
        """Create this plugin's nodes. Called exactly once."""

    @abstractmethod
    async def start(self) -> None:
        """Start the simulation timers."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the simulation timers."""

    @staticmethod
    def _stop_timers(*timers) -> None:
        for timer in timers:
            if timer is not None:
                timer.stop()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(nodes={len(self.nodes)})"
