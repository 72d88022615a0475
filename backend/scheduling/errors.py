"""
Scheduling Errors
Exception taxonomy for the HPLC scheduling engine.

Per-test problems (missing detector, capacity limits, no compatible instrument)
are never raised: they become Hold Pool reasons. Only structural and
configuration problems reject a call outright.
"""


class SchedulingError(Exception):
    """Base error for the scheduling engine."""


class ConfigurationError(SchedulingError, ValueError):
    """Raised when a call is made with invalid configuration (horizon, wash interval, limits)."""


class InputDataError(SchedulingError):
    """Raised by strict parsing when a Test or Instrument record is unusable."""


class ConcurrentMutationConflict(SchedulingError):
    """Raised when a mutation targets a stale or already-mutated snapshot."""

    def __init__(self, snapshot_id: str, expected_version: int, current_version: int):
        self.snapshot_id = snapshot_id
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Snapshot {snapshot_id} is at version {current_version}, "
            f"mutation expected version {expected_version}"
        )


class UnknownTestError(SchedulingError, KeyError):
    """Raised when a test id is not present where a move or reorder expects it."""


class UnknownQueueError(SchedulingError, KeyError):
    """Raised when an instrument queue id does not exist in the snapshot."""


class UnknownSequenceError(SchedulingError, KeyError):
    """Raised when a forecast sequence name does not exist in the snapshot."""


class UnknownSnapshotError(SchedulingError, KeyError):
    """Raised when the store holds no snapshot under the given id."""


class InvalidReorderError(SchedulingError, ValueError):
    """Raised when a reorder request is not a permutation of the sequence's tests."""
