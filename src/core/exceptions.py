"""
Error taxonomy for the connectivity analysis.

Only conditions that callers are expected to react to get their own type.
Numerically degenerate segments (zero relative velocity, no real roots) are
not errors at all, and allocation failures propagate unchanged.
"""


class TopologyAnalysisError(Exception):
    """Base class for analysis errors."""


class DuplicateTimeConflict(TopologyAnalysisError, ValueError):
    """A waypoint already exists at the given time with a different position."""

    def __init__(self, time: float, existing, requested) -> None:
        super().__init__(
            f"Waypoint at t={time} already holds {existing}; refusing {requested}"
        )
        self.time = time
        self.existing = existing
        self.requested = requested


class InvariantViolation(TopologyAnalysisError, RuntimeError):
    """A link transition contradicts the state it is applied to.

    Raised when a node pair receives a transition into the state it is
    already in.  The pair's contribution to the current pass is abandoned;
    the rest of the run continues.
    """

    def __init__(self, message: str, pair=None, time: float = None) -> None:
        super().__init__(message)
        self.pair = pair
        self.time = time
