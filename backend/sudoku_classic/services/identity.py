"""Per-request identity context and the history services bound to it.

Routes build an ``IdentityContext`` snapshot once and hand it to the
history flows explicitly instead of reading ``current_user`` everywhere.
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app, request
from flask_login import current_user

from .history.reconciler import HistoryReconciler
from .history.storage import SqlKeyValueStore, SqlRemoteRecordStore
from .history.store import HistoryStore

DEFAULT_DEVICE_SCOPE = 'default'


@dataclass(frozen=True)
class Identity:
    uid: str
    email: Optional[str] = None


@dataclass(frozen=True)
class IdentityContext:
    identity: Optional[Identity]
    is_guest: bool
    device: str

    @property
    def signed_in(self) -> bool:
        return self.identity is not None

    def to_dict(self):
        return {
            'user': {'uid': self.identity.uid, 'email': self.identity.email} if self.identity else None,
            'is_guest': self.is_guest,
        }


def device_scope() -> str:
    return (request.headers.get('X-Device-Id') or '').strip() or DEFAULT_DEVICE_SCOPE


def local_kv(device: Optional[str] = None) -> SqlKeyValueStore:
    return SqlKeyValueStore(device or device_scope())


def history_store(device: Optional[str] = None) -> HistoryStore:
    return HistoryStore(local_kv(device), key=current_app.config.get('HISTORY_STORAGE_KEY', 'game_history'))


def reconciler(device: Optional[str] = None) -> HistoryReconciler:
    return HistoryReconciler(history_store(device), SqlRemoteRecordStore())


def current_context() -> IdentityContext:
    device = device_scope()
    identity = None
    if current_user.is_authenticated:
        identity = Identity(uid=current_user.uid, email=current_user.email)
    guest_key = current_app.config.get('GUEST_FLAG_KEY', 'is_guest')
    is_guest = identity is None and local_kv(device).get(guest_key) == 'true'
    return IdentityContext(identity=identity, is_guest=is_guest, device=device)
