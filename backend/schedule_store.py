"""
Schedule Store
Thread-safe, in-memory home for schedule snapshots being edited by planners.

Each snapshot carries a version. A mutation names the version it was built
against; if another edit or an automatic re-run got there first, the mutation
is rejected with ConcurrentMutationConflict and the stored snapshot is untouched.
"""

import copy
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from scheduling.models import ScheduleSnapshot
from scheduling.errors import ConcurrentMutationConflict, UnknownSnapshotError


class ScheduleStore:
    """Versioned snapshot store guarded by a single lock."""

    def __init__(self):
        self._snapshots: Dict[str, ScheduleSnapshot] = {}
        self._lock = threading.Lock()

    def _require(self, snapshot_id: str) -> ScheduleSnapshot:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise UnknownSnapshotError(f"No schedule snapshot '{snapshot_id}'")
        return snapshot

    def put(self, snapshot: ScheduleSnapshot) -> ScheduleSnapshot:
        """Store a new snapshot, assigning an id if it has none. Returns a copy."""
        with self._lock:
            if not snapshot.snapshot_id:
                snapshot.snapshot_id = uuid.uuid4().hex[:12]
            self._snapshots[snapshot.snapshot_id] = copy.deepcopy(snapshot)
            print(f"[Store] Saved snapshot {snapshot.snapshot_id} (v{snapshot.version})")
            return copy.deepcopy(snapshot)

    def get(self, snapshot_id: str) -> ScheduleSnapshot:
        """A private copy of the current snapshot; edits to it do not reach the store."""
        with self._lock:
            return copy.deepcopy(self._require(snapshot_id))

    def current_version(self, snapshot_id: str) -> int:
        with self._lock:
            return self._require(snapshot_id).version

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._snapshots.keys())

    def delete(self, snapshot_id: str) -> bool:
        with self._lock:
            return self._snapshots.pop(snapshot_id, None) is not None

    def apply(self, snapshot_id: str, expected_version: int,
              mutation: Callable[[ScheduleSnapshot], Any]) -> Tuple[ScheduleSnapshot, Any]:
        """
        Run a mutation against the stored snapshot, serialized with other writers.

        The mutation receives a working copy. It is committed, with the version
        bumped by one, only if the mutation returns without raising.

        Args:
            snapshot_id: Snapshot to edit
            expected_version: Version the caller last read
            mutation: Function editing the snapshot in place; its return value is passed back

        Returns:
            Tuple of (copy of the committed snapshot, copy of the mutation's result)

        Raises:
            UnknownSnapshotError: no such snapshot
            ConcurrentMutationConflict: expected_version is stale
        """
        with self._lock:
            current = self._require(snapshot_id)
            if expected_version != current.version:
                print(f"[Store] [WARN] Rejected edit of {snapshot_id}: "
                      f"v{expected_version} is stale (current v{current.version})")
                raise ConcurrentMutationConflict(snapshot_id, expected_version, current.version)

            working = copy.deepcopy(current)
            result = mutation(working)
            working.version = current.version + 1
            working.snapshot_id = snapshot_id
            self._snapshots[snapshot_id] = working
            return copy.deepcopy((working, result))

    def replace(self, snapshot_id: str, expected_version: int,
                snapshot: ScheduleSnapshot) -> ScheduleSnapshot:
        """Swap in a freshly computed snapshot (an automatic re-run) under the same id."""
        def swap(working: ScheduleSnapshot):
            working.queues = snapshot.queues
            working.hold_pool = snapshot.hold_pool
            working.forecast = snapshot.forecast
            working.generated_at = snapshot.generated_at

        committed, _ = self.apply(snapshot_id, expected_version, swap)
        print(f"[Store] Replaced snapshot {snapshot_id} with a fresh run (v{committed.version})")
        return committed
