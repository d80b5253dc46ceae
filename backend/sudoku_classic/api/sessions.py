from functools import partial

from flask import Blueprint, jsonify, request, current_app
from sudoku_classic import socketio
from sudoku_classic.errors import PuzzleFormatError, PuzzleSourceError, RemoteStoreError, StoreAccessError
from sudoku_classic.services.games.puzzle_source import parse_payload
from sudoku_classic.services.games.scoring import DIFFICULTY_MULTIPLIERS
from sudoku_classic.services.games.session import GameSession, SessionState, sessions, GRID_SIZE
from sudoku_classic.services.games.timer import SessionTimer
from sudoku_classic.services.identity import current_context, device_scope, history_store, reconciler


sessions_bp = Blueprint('sessions', __name__)


def _room(session_id: str) -> str:
    return f"session:{session_id}"


def _emit_tick(session: GameSession) -> None:
    socketio.emit('session_tick', {
        'session_id': session.id,
        'elapsed_seconds': session.state.elapsed_seconds,
    }, to=_room(session.id), namespace='/ws')


def _record_completion(session: GameSession, completed) -> None:
    """Persist the finished game once and push it upstream when signed in."""
    # Resolve identity first so a failure here is never mistaken for a failed save
    ctx = current_context()
    store = history_store(session.owner_scope)
    session.record = store.append(
        difficulty=completed.difficulty,
        score=completed.score,
        time_seconds=completed.time_seconds,
        mistakes=completed.mistakes,
        completed_at=completed.completed_at,
    )
    socketio.emit('session_completed', {
        'session_id': session.id,
        'record': session.record.to_dict(),
    }, to=_room(session.id), namespace='/ws')

    if ctx.signed_in:
        try:
            reconciler(session.owner_scope).sync(ctx.identity)
        except (RemoteStoreError, StoreAccessError) as exc:
            current_app.logger.error(f"[history-sync] session={session.id} failed after completion: {exc}")


def _timer_factory(app):
    enabled = not app.config.get('TESTING') or app.config.get('ENABLE_TIMER_IN_TESTS', False)
    return partial(SessionTimer, interval=float(app.config.get('TIMER_TICK_SEC', 1)), enabled=enabled)


_reaper_started = False


def reap_idle_sessions(app):
    """One sweep: drop abandoned and finished sessions, telling any listeners."""
    reaped = sessions.reap(
        idle_ttl=float(app.config.get('SESSION_IDLE_TTL_SEC', 1800)),
        completed_ttl=float(app.config.get('SESSION_COMPLETED_TTL_SEC', 300)),
    )
    for session_id in reaped:
        socketio.emit('session_ended', {'session_id': session_id}, to=_room(session_id), namespace='/ws')
    if reaped:
        app.logger.info(f"[session-reap] reaped={len(reaped)} live={len(sessions.ids())}")
    return reaped


def start_session_reaper(app) -> None:
    """Sweep the session registry on a background task.

    - No-ops in TESTING mode unless ENABLE_REAPER_IN_TESTS is set
    - At most one sweeper per process
    """
    global _reaper_started
    if app.config.get('TESTING') and not app.config.get('ENABLE_REAPER_IN_TESTS'):
        return
    if _reaper_started:
        return
    _reaper_started = True
    interval = float(app.config.get('SESSION_REAP_INTERVAL_SEC', 60))

    def _worker():
        while True:
            socketio.sleep(interval)
            try:
                reap_idle_sessions(app)
            except Exception as exc:
                app.logger.error(f"[session-reap] sweep failed: {exc}")

    socketio.start_background_task(_worker)
    app.logger.info(f"[session-reap] sweeper started interval={interval}s")


def _open_session(state: SessionState):
    session = GameSession(
        state,
        on_complete=_record_completion,
        on_tick=_emit_tick,
        timer_factory=_timer_factory(current_app),
        owner_scope=device_scope(),
    )
    sessions.add(session)
    return jsonify(session.snapshot()), 201


def _parse_difficulty(data):
    difficulty = str(data.get('difficulty') or '').lower()
    if difficulty not in DIFFICULTY_MULTIPLIERS:
        return None
    return difficulty


def _int_in_range(value, low, high):
    if isinstance(value, bool):
        return None
    try:
        value = int(value)
    except (TypeError, ValueError):
        return None
    return value if low <= value <= high else None


@sessions_bp.route('', methods=['POST'])
def create_session():
    data = request.get_json(silent=True) or {}
    difficulty = _parse_difficulty(data)
    if difficulty is None:
        return jsonify({'error': 'difficulty must be easy, medium or hard'}), 400
    source = current_app.extensions['puzzle_source']
    try:
        puzzle = source.fetch(difficulty)
    except PuzzleSourceError as exc:
        current_app.logger.warning(f"[session-create] difficulty={difficulty} puzzle unavailable: {exc}")
        return jsonify({'error': 'Failed to load puzzle. Please try again.'}), 502
    state = SessionState(original=puzzle.grid, current=puzzle.grid, solution=puzzle.solution, difficulty=difficulty)
    return _open_session(state)


@sessions_bp.route('/from-puzzle', methods=['POST'])
def create_session_from_puzzle():
    data = request.get_json(silent=True) or {}
    difficulty = _parse_difficulty(data)
    if difficulty is None:
        return jsonify({'error': 'difficulty must be easy, medium or hard'}), 400
    try:
        puzzle = parse_payload(data, difficulty)
    except PuzzleFormatError as exc:
        return jsonify({'error': str(exc)}), 400
    state = SessionState(original=puzzle.grid, current=puzzle.grid, solution=puzzle.solution, difficulty=difficulty)
    return _open_session(state)


def _get_or_404(session_id):
    session = sessions.get(session_id)
    if session is None:
        return None, (jsonify({'error': 'Session not found'}), 404)
    return session, None


@sessions_bp.route('/<string:session_id>', methods=['GET'])
def get_session(session_id):
    session, err = _get_or_404(session_id)
    if err:
        return err
    session.touch()
    return jsonify(session.snapshot())


@sessions_bp.route('/<string:session_id>', methods=['DELETE'])
def discard_session(session_id):
    if not sessions.discard(session_id):
        return jsonify({'error': 'Session not found'}), 404
    socketio.emit('session_ended', {'session_id': session_id}, to=_room(session_id), namespace='/ws')
    return jsonify({'message': 'Session discarded'})


@sessions_bp.route('/<string:session_id>/select', methods=['POST'])
def select_cell(session_id):
    session, err = _get_or_404(session_id)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    row = _int_in_range(data.get('row'), 0, GRID_SIZE - 1)
    col = _int_in_range(data.get('col'), 0, GRID_SIZE - 1)
    if row is None or col is None:
        return jsonify({'error': 'row and col must be between 0 and 8'}), 400
    session.select_cell(row, col)
    return jsonify(session.snapshot())


@sessions_bp.route('/<string:session_id>/digit', methods=['POST'])
def enter_digit(session_id):
    session, err = _get_or_404(session_id)
    if err:
        return err
    data = request.get_json(silent=True) or {}
    digit = _int_in_range(data.get('digit'), 1, 9)
    if digit is None:
        return jsonify({'error': 'digit must be between 1 and 9'}), 400
    try:
        session.enter_digit(digit)
    except StoreAccessError as exc:
        current_app.logger.error(f"[history-append] session={session.id} failed: {exc}")
        return jsonify({'error': 'Could not save game record', 'session': session.snapshot()}), 500
    return jsonify(session.snapshot())


@sessions_bp.route('/<string:session_id>/erase', methods=['POST'])
def erase(session_id):
    session, err = _get_or_404(session_id)
    if err:
        return err
    session.erase()
    return jsonify(session.snapshot())


@sessions_bp.route('/<string:session_id>/pause', methods=['POST'])
def pause(session_id):
    session, err = _get_or_404(session_id)
    if err:
        return err
    session.pause()
    return jsonify(session.snapshot())


@sessions_bp.route('/<string:session_id>/resume', methods=['POST'])
def resume(session_id):
    session, err = _get_or_404(session_id)
    if err:
        return err
    session.resume()
    return jsonify(session.snapshot())


@sessions_bp.route('/<string:session_id>/restart', methods=['POST'])
def restart(session_id):
    session, err = _get_or_404(session_id)
    if err:
        return err
    session.restart()
    return jsonify(session.snapshot())
