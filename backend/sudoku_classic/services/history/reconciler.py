import logging
from typing import List

from sudoku_classic.errors import RemoteStoreError
from .store import GameRecord, HistoryStore

logger = logging.getLogger(__name__)


class HistoryReconciler:
    """Merges a device ledger with the remote record set of one identity.

    Callers must serialize ``sync`` and ``fetch_merged`` for the same ledger;
    each call is a read-then-write of the whole ledger.
    """

    def __init__(self, store: HistoryStore, remote):
        self.store = store
        self.remote = remote

    def sync(self, identity) -> int:
        """Upload unsynced local records; returns how many were uploaded.

        At-least-once: if an upload fails midway the ledger is left as is,
        so a retry re-uploads the records that already made it.
        """
        history = self.store.list()
        unsynced = [r for r in history if not r.synced]
        if not unsynced:
            return 0
        for record in unsynced:
            self.remote.add(identity.uid, record.to_document())
        self.store.mark_all_synced()
        logger.info(f"[history-sync] uid={identity.uid} uploaded={len(unsynced)}")
        return len(unsynced)

    def fetch_merged(self, identity) -> List[GameRecord]:
        """Remote records plus local-only ones, newest first; written back locally."""
        try:
            remote_records = [
                GameRecord.from_document(remote_id, doc)
                for remote_id, doc in self.remote.list_ordered(identity.uid)
            ]
        except RemoteStoreError as exc:
            logger.warning(f"[history-fetch-fallback] uid={identity.uid} error={exc}")
            return self.store.list()

        local_unsynced = [r for r in self.store.list() if not r.synced]
        remote_timestamps = {r.completed_at for r in remote_records}
        unique_local = [r for r in local_unsynced if r.completed_at not in remote_timestamps]
        # sorted() is stable: equal timestamps keep local-first, then remote order
        merged = sorted(unique_local + remote_records, key=lambda r: r.completed_at, reverse=True)
        self.store.replace(merged)
        return merged
