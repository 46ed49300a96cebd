"""Error taxonomy for the signal layer.

Absence of a pheromone is not an error and never raises; these exceptions
cover store failures, undecodable store contents and bad policy.
"""

from typing import Any, Optional


class BlackboardError(Exception):
    """Base class for signal layer failures."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class StoreError(BlackboardError):
    """The shared store call failed (connection lost, timeout, ...).

    The signal layer never retries; retry policy belongs to the caller.
    """

    def __init__(self, message: str, operation: str = "", key: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.key = key


class DecodeError(BlackboardError):
    """Stored bytes do not match the envelope or the expected payload shape."""

    def __init__(self, message: str, key: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.key = key


class PolicyError(BlackboardError):
    """A pheromone type has no usable decay rate or threshold.

    Raised while resolving configuration at startup, never per call.
    """

    def __init__(self, message: str, kind: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.kind = kind
