import json

import pytest

from sudoku_classic.errors import StoreAccessError
from sudoku_classic.services.history.storage import InMemoryKeyValueStore, SqlKeyValueStore
from sudoku_classic.services.history.store import GameRecord, HistoryStore, generate_record_id


def _append(store, completed_at, score=500, difficulty='easy'):
    return store.append(difficulty=difficulty, score=score, time_seconds=120, mistakes=1, completed_at=completed_at)


class FailingKeyValueStore(InMemoryKeyValueStore):
    def set(self, key, value):
        raise StoreAccessError('disk full')


def test_append_assigns_id_and_unsynced():
    store = HistoryStore(InMemoryKeyValueStore())
    record = _append(store, 1000)
    assert record.id
    assert record.synced is False
    assert store.list() == [record]


def test_list_is_newest_first_in_persisted_layout():
    kv = InMemoryKeyValueStore()
    store = HistoryStore(kv)
    a = _append(store, 1000)
    b = _append(store, 2000)
    assert [r.id for r in store.list()] == [b.id, a.id]
    # Ordering is stored, not computed on read
    raw = json.loads(kv.get('game_history'))
    assert [item['id'] for item in raw] == [b.id, a.id]


def test_append_keeps_arrival_order_even_when_timestamps_disagree():
    store = HistoryStore(InMemoryKeyValueStore())
    a = _append(store, 5000)
    b = _append(store, 1000)
    assert [r.id for r in store.list()] == [b.id, a.id]


def test_ids_are_unique_within_ledger():
    store = HistoryStore(InMemoryKeyValueStore())
    ids = {_append(store, 1000).id for _ in range(50)}
    assert len(ids) == 50


def test_generate_record_id_rerolls_on_collision(monkeypatch):
    rolls = iter(['aaaaaaaaa', 'aaaaaaaaa', 'bbbbbbbbb'])
    monkeypatch.setattr('sudoku_classic.services.history.store.random.choices', lambda pop, k: list(next(rolls)))
    assert generate_record_id({'7_aaaaaaaaa'}, now_ms=7) == '7_bbbbbbbbb'


def test_missing_or_corrupt_ledger_reads_empty():
    assert HistoryStore(InMemoryKeyValueStore()).list() == []
    assert HistoryStore(InMemoryKeyValueStore({'game_history': '{not json'})).list() == []
    assert HistoryStore(InMemoryKeyValueStore({'game_history': '[{"id": "x"}]'})).list() == []


def test_mark_all_synced_flags_every_record():
    store = HistoryStore(InMemoryKeyValueStore())
    _append(store, 1000)
    _append(store, 2000)
    store.mark_all_synced()
    assert all(r.synced for r in store.list())
    assert len(store.list()) == 2


def test_clear_empties_ledger():
    store = HistoryStore(InMemoryKeyValueStore())
    _append(store, 1000)
    store.clear()
    assert store.list() == []


def test_write_failure_propagates():
    store = HistoryStore(FailingKeyValueStore())
    with pytest.raises(StoreAccessError):
        _append(store, 1000)


def test_record_round_trips_through_dict():
    record = GameRecord(id='1_abc', difficulty='hard', score=1600, time_seconds=100,
                        mistakes=2, completed_at=1700000000000, synced=True)
    assert GameRecord.from_dict(record.to_dict()) == record
    assert 'id' not in record.to_document()
    assert 'synced' not in record.to_document()


def test_sql_store_is_scoped_per_device(flask_app):
    phone = HistoryStore(SqlKeyValueStore('phone'))
    tablet = HistoryStore(SqlKeyValueStore('tablet'))
    record = _append(phone, 1000)
    assert phone.list() == [record]
    assert tablet.list() == []
    phone.clear()
    assert phone.list() == []
