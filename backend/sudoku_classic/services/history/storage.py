"""Storage adapters behind the history services.

``SqlKeyValueStore`` is the scoped string store holding a device's ledger
and guest flag; ``SqlRemoteRecordStore`` is the per-identity document
collection. Both translate database failures into the domain errors.
"""

from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from sudoku_classic import db
from sudoku_classic.errors import RemoteStoreError, StoreAccessError
from sudoku_classic.models import KeyValue, RemoteGameRecord


class InMemoryKeyValueStore:
    """Simple in-memory key-value store for tests and local dev."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SqlKeyValueStore:
    def __init__(self, scope: str):
        self.scope = scope

    def _row(self, key: str) -> Optional[KeyValue]:
        return KeyValue.query.filter_by(scope=self.scope, key=key).first()

    def get(self, key: str) -> Optional[str]:
        try:
            row = self._row(key)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreAccessError(f'read of {key!r} failed') from exc
        return row.value if row else None

    def set(self, key: str, value: str) -> None:
        try:
            row = self._row(key)
            if row is None:
                row = KeyValue(scope=self.scope, key=key, value=value)
            else:
                row.value = value
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreAccessError(f'write of {key!r} failed') from exc

    def remove(self, key: str) -> None:
        try:
            KeyValue.query.filter_by(scope=self.scope, key=key).delete()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreAccessError(f'removal of {key!r} failed') from exc


class SqlRemoteRecordStore:
    """Remote history documents, one collection per identity uid."""

    def add(self, uid: str, document: dict) -> str:
        try:
            row = RemoteGameRecord(
                user_uid=uid,
                difficulty=document['difficulty'],
                score=document['score'],
                time_seconds=document['time_seconds'],
                mistakes=document['mistakes'],
                completed_at=document['completed_at'],
            )
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RemoteStoreError('remote add failed') from exc
        return str(row.id)

    def list_ordered(self, uid: str) -> List[Tuple[str, dict]]:
        """Documents for ``uid``, newest ``completed_at`` first."""
        try:
            rows = (
                RemoteGameRecord.query.filter_by(user_uid=uid)
                .order_by(RemoteGameRecord.completed_at.desc(), RemoteGameRecord.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise RemoteStoreError('remote listing failed') from exc
        return [(str(row.id), row.to_document()) for row in rows]
