from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from sudoku_classic import socketio
from sudoku_classic.services.games.session import sessions
from typing import Dict, Any
import time


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # If this socket owned a session and no other owner socket remains,
    # the player navigated away: discard the session after a grace period
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    session_id = ctx.get('session_id')
    if ctx.get('is_session_owner') and session_id:
        _owner_count[session_id] = max(0, _owner_count.get(session_id, 0) - 1)
        # In tests, end immediately for determinism; in prod, allow grace period
        if current_app and current_app.config.get('TESTING'):
            if _owner_count.get(session_id, 0) == 0:
                _end_session(session_id)
            return
        _schedule_end_if_no_owner(session_id, float(current_app.config.get('SESSION_END_GRACE_SEC', 2.0)))


def handle_join_session(data):
    session_id = (data or {}).get('session_id')
    is_session_owner = bool((data or {}).get('is_session_owner'))
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    session = sessions.get(session_id)
    if session is None:
        emit('error', {'message': 'Session not found'})
        return
    room = f"session:{session_id}"
    join_room(room)
    _sid_to_ctx[_get_sid()] = {'session_id': session_id, 'is_session_owner': is_session_owner}
    if is_session_owner:
        _owner_count[session_id] = _owner_count.get(session_id, 0) + 1
        _cancel_scheduled_end(session_id)
    session.touch()
    emit('joined', {'room': room, 'session': session.snapshot()})


def handle_leave_session(data):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    room = f"session:{session_id}"
    leave_room(room)
    emit('left', {'room': room})
    # Explicit quit by the owner: end immediately
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('is_session_owner') and ctx.get('session_id') == session_id:
        _sid_to_ctx.pop(_get_sid(), None)
        _end_session(session_id)


def handle_ping(data):
    emit('pong', data or {})

# ---- Session owner lifecycle helpers ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_owner_count: Dict[str, int] = {}
_end_deadline: Dict[str, float] = {}

def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _end_session(session_id: str) -> None:
    """Discard the session (cancelling its timer) and notify the room."""
    try:
        sessions.discard(session_id)
    finally:
        socketio.emit('session_ended', {'session_id': session_id}, to=f"session:{session_id}", namespace='/ws')
        _owner_count.pop(session_id, None)
        _end_deadline.pop(session_id, None)

def _schedule_end_if_no_owner(session_id: str, delay_sec: float = 2.0) -> None:
    if _owner_count.get(session_id, 0) > 0:
        return
    _end_deadline[session_id] = time.time() + delay_sec

    def _runner(sid: str, deadline: float):
        sleep_for = max(0.0, deadline - time.time())
        if sleep_for:
            socketio.sleep(sleep_for)
        if _owner_count.get(sid, 0) == 0 and _end_deadline.get(sid) == deadline:
            _end_session(sid)

    socketio.start_background_task(_runner, session_id, _end_deadline[session_id])

def _cancel_scheduled_end(session_id: str) -> None:
    _end_deadline.pop(session_id, None)



def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    # Primary namespace
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_session', handle_join_session, namespace='/ws')
    socketio.on_event('leave_session', handle_leave_session, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('join_session', handle_join_session, namespace='/')
        socketio.on_event('leave_session', handle_leave_session, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
