import pytest

from sudoku_classic.errors import RemoteStoreError
from sudoku_classic.services.history.reconciler import HistoryReconciler
from sudoku_classic.services.history.storage import InMemoryKeyValueStore, SqlRemoteRecordStore
from sudoku_classic.services.history.store import HistoryStore
from sudoku_classic.services.identity import Identity

ALICE = Identity(uid='alice-uid', email='alice@example.com')


class FakeRemote:
    """Per-uid document lists with optional failure injection."""

    def __init__(self):
        self.docs = {}
        self.calls = 0
        self.fail_after = None
        self.fail_listing = False

    def add(self, uid, document):
        if self.fail_after is not None and self.calls >= self.fail_after:
            raise RemoteStoreError('network down')
        self.calls += 1
        bucket = self.docs.setdefault(uid, [])
        remote_id = f"r{len(bucket) + 1}"
        bucket.append((remote_id, dict(document)))
        return remote_id

    def list_ordered(self, uid):
        if self.fail_listing:
            raise RemoteStoreError('network down')
        return sorted(self.docs.get(uid, []), key=lambda item: item[1]['completed_at'], reverse=True)


def _append(store, completed_at, score=500):
    return store.append(difficulty='medium', score=score, time_seconds=60, mistakes=0, completed_at=completed_at)


@pytest.fixture()
def store():
    return HistoryStore(InMemoryKeyValueStore())


@pytest.fixture()
def remote():
    return FakeRemote()


def test_sync_uploads_unsynced_and_marks_ledger(store, remote):
    _append(store, 1000)
    _append(store, 2000)
    reconciler = HistoryReconciler(store, remote)
    assert reconciler.sync(ALICE) == 2
    assert len(remote.docs[ALICE.uid]) == 2
    assert all(r.synced for r in store.list())


def test_sync_with_nothing_pending_makes_no_remote_call(store, remote):
    reconciler = HistoryReconciler(store, remote)
    assert reconciler.sync(ALICE) == 0
    assert remote.calls == 0


def test_sync_twice_uploads_nothing_the_second_time(store, remote):
    _append(store, 1000)
    reconciler = HistoryReconciler(store, remote)
    assert reconciler.sync(ALICE) == 1
    assert reconciler.sync(ALICE) == 0
    assert remote.calls == 1


def test_partial_failure_leaves_ledger_unsynced_and_retry_duplicates(store, remote):
    _append(store, 1000)
    _append(store, 2000)
    _append(store, 3000)
    remote.fail_after = 1
    reconciler = HistoryReconciler(store, remote)
    with pytest.raises(RemoteStoreError):
        reconciler.sync(ALICE)
    assert not any(r.synced for r in store.list())
    assert len(remote.docs[ALICE.uid]) == 1
    # Manual retry re-uploads everything, including the one that made it
    remote.fail_after = None
    assert reconciler.sync(ALICE) == 3
    assert len(remote.docs[ALICE.uid]) == 4


def test_fetch_merged_drops_local_duplicates_by_timestamp(store, remote):
    remote.add(ALICE.uid, {'difficulty': 'hard', 'score': 1800, 'time_seconds': 50,
                           'mistakes': 0, 'completed_at': 5000})
    local_dup = _append(store, 5000, score=1)
    merged = HistoryReconciler(store, remote).fetch_merged(ALICE)
    at_5000 = [r for r in merged if r.completed_at == 5000]
    assert len(at_5000) == 1
    assert at_5000[0].id != local_dup.id
    assert at_5000[0].score == 1800
    assert at_5000[0].synced is True


def test_fetch_merged_orders_newest_first_and_writes_back(store, remote):
    remote.add(ALICE.uid, {'difficulty': 'easy', 'score': 900, 'time_seconds': 100,
                           'mistakes': 0, 'completed_at': 2000})
    remote.add(ALICE.uid, {'difficulty': 'easy', 'score': 800, 'time_seconds': 200,
                           'mistakes': 0, 'completed_at': 4000})
    local = _append(store, 3000)
    merged = HistoryReconciler(store, remote).fetch_merged(ALICE)
    assert [r.completed_at for r in merged] == [4000, 3000, 2000]
    assert merged[1].id == local.id
    assert merged[1].synced is False
    assert store.list() == merged


def test_fetch_merged_compacts_local_synced_records(store, remote):
    _append(store, 1000)
    store.mark_all_synced()
    remote.add(ALICE.uid, {'difficulty': 'easy', 'score': 900, 'time_seconds': 100,
                           'mistakes': 0, 'completed_at': 1000})
    merged = HistoryReconciler(store, remote).fetch_merged(ALICE)
    assert len(merged) == 1
    assert merged[0].id == 'r1'


def test_fetch_failure_falls_back_to_local_without_write(store, remote):
    kv = store.kv
    _append(store, 1000)
    before = kv.get('game_history')
    remote.fail_listing = True
    records = HistoryReconciler(store, remote).fetch_merged(ALICE)
    assert [r.completed_at for r in records] == [1000]
    assert kv.get('game_history') == before


def test_sql_remote_store_orders_by_completed_at(flask_app):
    remote = SqlRemoteRecordStore()
    for completed_at in (2000, 9000, 5000):
        remote.add(ALICE.uid, {'difficulty': 'easy', 'score': 1, 'time_seconds': 1,
                               'mistakes': 0, 'completed_at': completed_at})
    remote.add('bob-uid', {'difficulty': 'easy', 'score': 1, 'time_seconds': 1,
                           'mistakes': 0, 'completed_at': 7000})
    listed = remote.list_ordered(ALICE.uid)
    assert [doc['completed_at'] for _, doc in listed] == [9000, 5000, 2000]


def test_fetch_merged_keeps_remote_order_for_equal_timestamps(store, remote):
    doc = {'difficulty': 'easy', 'score': 700, 'time_seconds': 90, 'mistakes': 1, 'completed_at': 5000}
    remote.docs[ALICE.uid] = [('zeta', dict(doc)), ('alpha', dict(doc)), ('older', dict(doc, completed_at=1000))]
    merged = HistoryReconciler(store, remote).fetch_merged(ALICE)
    assert [r.id for r in merged] == ['zeta', 'alpha', 'older']
    assert [r.id for r in store.list()] == ['zeta', 'alpha', 'older']
