import json
import logging
import random
import string
import time
from dataclasses import asdict, dataclass, replace
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = 'game_history'


@dataclass(frozen=True)
class GameRecord:
    id: str
    difficulty: str
    score: int
    time_seconds: int
    mistakes: int
    completed_at: int
    synced: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    def to_document(self) -> dict:
        """The remote document shape: no local id, no sync flag."""
        return {
            'difficulty': self.difficulty,
            'score': self.score,
            'time_seconds': self.time_seconds,
            'mistakes': self.mistakes,
            'completed_at': self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GameRecord':
        return cls(
            id=str(data['id']),
            difficulty=data['difficulty'],
            score=int(data['score']),
            time_seconds=int(data['time_seconds']),
            mistakes=int(data['mistakes']),
            completed_at=int(data['completed_at']),
            synced=bool(data.get('synced', False)),
        )

    @classmethod
    def from_document(cls, remote_id: str, document: dict) -> 'GameRecord':
        return cls.from_dict(dict(document, id=remote_id, synced=True))


def generate_record_id(existing_ids=(), now_ms: Optional[int] = None, length=9) -> str:
    """Generate a ledger-unique id: creation millis plus a random suffix."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    while True:
        suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))
        candidate = f"{stamp}_{suffix}"
        if candidate not in existing_ids:
            return candidate


class HistoryStore:
    """Append-only local ledger of completed games, newest first.

    The ledger is one JSON array kept under a single key of the injected
    key-value store. Read and write failures of that store propagate; a
    missing or unparseable ledger reads as empty.
    """

    def __init__(self, kv, key: str = DEFAULT_STORAGE_KEY):
        self.kv = kv
        self.key = key

    def list(self) -> List[GameRecord]:
        raw = self.kv.get(self.key)
        if not raw:
            return []
        try:
            return [GameRecord.from_dict(item) for item in json.loads(raw)]
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning(f"[history-corrupt] key={self.key} error={exc}")
            return []

    def append(self, difficulty: str, score: int, time_seconds: int, mistakes: int,
               completed_at: int) -> GameRecord:
        history = self.list()
        record = GameRecord(
            id=generate_record_id({r.id for r in history}),
            difficulty=difficulty,
            score=score,
            time_seconds=time_seconds,
            mistakes=mistakes,
            completed_at=completed_at,
            synced=False,
        )
        self.replace([record] + history)
        logger.info(f"[history-append] id={record.id} difficulty={difficulty} score={score}")
        return record

    def replace(self, records: Iterable[GameRecord]) -> None:
        self.kv.set(self.key, json.dumps([r.to_dict() for r in records]))

    def mark_all_synced(self) -> None:
        self.replace([replace(r, synced=True) for r in self.list()])

    def clear(self) -> None:
        self.kv.remove(self.key)
