"""Exception hierarchy for the simulator."""


class SimulationError(Exception):
    """Base class for simulator errors."""


class FatalSimulationError(SimulationError):
    """
    An invariant of the simulation was violated.

    These errors are never retried or absorbed: the timer that raised one
    stops, and the server manager shuts the server down and re-raises.
    """


class InvalidDeviceStateError(FatalSimulationError):
    """A device reached a state that no health rule matches."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid simulator or node configuration."""


class UnsupportedArrayTypeError(ConfigurationError):
    """An array node declares a data type with no array coercion."""
