"""Tests for the versioned snapshot store."""

import threading
import pytest

from scheduling.models import ScheduleSnapshot, InstrumentQueue
from scheduling.errors import ConcurrentMutationConflict, UnknownSnapshotError
from schedule_store import ScheduleStore


@pytest.fixture
def store():
    return ScheduleStore()


@pytest.fixture
def stored(store):
    snapshot = ScheduleSnapshot(queues=[InstrumentQueue('I1', 'HPLC-A', ['UV'])])
    return store.put(snapshot)


def _rename(name):
    def mutation(snapshot):
        snapshot.queues[0].instrument_name = name
        return name
    return mutation


class TestScheduleStore:
    """Tests for ScheduleStore."""

    def test_put_assigns_id(self, store, stored):
        assert stored.snapshot_id
        assert store.list_ids() == [stored.snapshot_id]
        assert store.current_version(stored.snapshot_id) == 0

    def test_get_returns_copy(self, store, stored):
        copy = store.get(stored.snapshot_id)
        copy.queues[0].instrument_name = 'changed'
        assert store.get(stored.snapshot_id).queues[0].instrument_name == 'HPLC-A'

    def test_apply_commits_and_bumps_version(self, store, stored):
        committed, result = store.apply(stored.snapshot_id, 0, _rename('HPLC-Z'))
        assert result == 'HPLC-Z'
        assert committed.version == 1
        assert store.get(stored.snapshot_id).queues[0].instrument_name == 'HPLC-Z'

    def test_stale_version_rejected(self, store, stored):
        store.apply(stored.snapshot_id, 0, _rename('first'))
        with pytest.raises(ConcurrentMutationConflict) as exc_info:
            store.apply(stored.snapshot_id, 0, _rename('second'))
        assert exc_info.value.expected_version == 0
        assert exc_info.value.current_version == 1
        assert store.get(stored.snapshot_id).queues[0].instrument_name == 'first'

    def test_failed_mutation_leaves_snapshot(self, store, stored):
        def broken(snapshot):
            snapshot.queues[0].instrument_name = 'half-done'
            raise ValueError("boom")

        with pytest.raises(ValueError):
            store.apply(stored.snapshot_id, 0, broken)
        current = store.get(stored.snapshot_id)
        assert current.version == 0
        assert current.queues[0].instrument_name == 'HPLC-A'

    def test_unknown_snapshot(self, store):
        with pytest.raises(UnknownSnapshotError):
            store.get('nope')
        with pytest.raises(UnknownSnapshotError):
            store.apply('nope', 0, _rename('x'))

    def test_replace(self, store, stored):
        fresh = ScheduleSnapshot(queues=[InstrumentQueue('I9', 'HPLC-Q', ['RI'])])
        committed = store.replace(stored.snapshot_id, 0, fresh)
        assert committed.snapshot_id == stored.snapshot_id
        assert committed.version == 1
        assert committed.queues[0].instrument_id == 'I9'

    def test_delete(self, store, stored):
        assert store.delete(stored.snapshot_id) is True
        assert store.delete(stored.snapshot_id) is False

    def test_concurrent_edits_of_one_version(self, store, stored):
        """Only one of several writers racing on the same version wins."""
        outcomes = []
        barrier = threading.Barrier(5)

        def writer(name):
            barrier.wait()
            try:
                store.apply(stored.snapshot_id, 0, _rename(name))
                outcomes.append('ok')
            except ConcurrentMutationConflict:
                outcomes.append('conflict')

        threads = [threading.Thread(target=writer, args=(f"w{i}",)) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count('ok') == 1
        assert outcomes.count('conflict') == 4
        assert store.current_version(stored.snapshot_id) == 1
