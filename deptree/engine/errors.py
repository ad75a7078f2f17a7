"""Exception hierarchy for the explorer engine.

Not-ready backends and unresolvable reveal chains are modelled as empty
results, not exceptions. Only genuine backend faults and invalid
configuration surface as errors.
"""
from __future__ import annotations


class ExplorerError(Exception):
    """Base exception for all explorer errors."""


class BackendError(ExplorerError):
    """The backend answered with something the engine cannot use."""
    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Backend fault during {operation}: {reason}")


class MalformedDescriptorError(BackendError):
    """A node descriptor is missing required fields or has an unknown kind."""
    def __init__(self, payload: object, reason: str):
        self.payload = payload
        super().__init__("descriptor parsing", f"{reason} (payload={payload!r})")


class BackendUnavailableError(ExplorerError):
    """The backend went away while a query was in flight.

    Backends may raise this mid-query; the engine converts it into an
    empty result.
    """
    def __init__(self, reason: str = "backend is not ready"):
        self.reason = reason
        super().__init__(reason)


class ConfigError(ExplorerError):
    """Invalid explorer configuration value."""
    def __init__(self, key: str, value: object, reason: str):
        self.key = key
        self.value = value
        super().__init__(f"Invalid config {key}={value!r}: {reason}")
