"""Puzzle session state machine.

The state is an immutable ``SessionState``; every user action is a pure
function ``(state, ...) -> state``. ``GameSession`` owns one evolving state
together with its ticking timer and guarantees a single completion event.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Sequence, Tuple

from sudoku_classic.errors import PuzzleFormatError
from .scoring import DIFFICULTY_MULTIPLIERS, compute_score
from .timer import SessionTimer

logger = logging.getLogger(__name__)

GRID_SIZE = 9
MISTAKE_LIMIT_DISPLAY = 3

ACTIVE = 'active'
PAUSED = 'paused'
COMPLETED = 'completed'

Cell = Optional[int]
Grid = Tuple[Tuple[Cell, ...], ...]
Position = Tuple[int, int]


def parse_grid(matrix, allow_empty: bool = True) -> Grid:
    """Convert a 9x9 int matrix (0 = empty) into an immutable grid."""
    if not isinstance(matrix, (list, tuple)) or len(matrix) != GRID_SIZE:
        raise PuzzleFormatError('grid must have 9 rows')
    rows = []
    for row in matrix:
        if not isinstance(row, (list, tuple)) or len(row) != GRID_SIZE:
            raise PuzzleFormatError('each grid row must have 9 cells')
        cells = []
        for value in row:
            if value is None:
                value = 0
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 9:
                raise PuzzleFormatError(f'invalid cell value {value!r}')
            if value == 0 and not allow_empty:
                raise PuzzleFormatError('solution grid has empty cells')
            cells.append(value or None)
        rows.append(tuple(cells))
    return tuple(rows)


def grid_to_list(grid: Grid):
    return [list(row) for row in grid]


def _set_cell(grid: Grid, pos: Position, value: Cell) -> Grid:
    r, c = pos
    row = grid[r][:c] + (value,) + grid[r][c + 1:]
    return grid[:r] + (row,) + grid[r + 1:]


@dataclass(frozen=True)
class CompletedGame:
    """Everything a history record needs except its id and sync flag."""
    difficulty: str
    score: int
    time_seconds: int
    mistakes: int
    completed_at: int


@dataclass(frozen=True)
class SessionState:
    original: Grid
    current: Grid
    solution: Grid
    difficulty: str
    selected: Optional[Position] = None
    mistakes: int = 0
    elapsed_seconds: int = 0
    status: str = ACTIVE
    score: Optional[int] = None
    completed_at: Optional[int] = None

    def is_prefilled(self, r: int, c: int) -> bool:
        return self.original[r][c] is not None

    def is_solved(self) -> bool:
        return self.current == self.solution

    def completion(self) -> Optional[CompletedGame]:
        if self.status != COMPLETED:
            return None
        return CompletedGame(
            difficulty=self.difficulty,
            score=self.score,
            time_seconds=self.elapsed_seconds,
            mistakes=self.mistakes,
            completed_at=self.completed_at,
        )


def new_state(puzzle, solution, difficulty: str) -> SessionState:
    if difficulty not in DIFFICULTY_MULTIPLIERS:
        raise ValueError(f'unknown difficulty {difficulty!r}')
    original = parse_grid(puzzle)
    solved = parse_grid(solution, allow_empty=False)
    return SessionState(original=original, current=original, solution=solved, difficulty=difficulty)


# ---- Pure transitions ----

def select_cell(state: SessionState, r: int, c: int) -> SessionState:
    if state.status != ACTIVE or state.is_prefilled(r, c):
        return state
    return replace(state, selected=(r, c))


def enter_digit(state: SessionState, digit: int, now_ms: Optional[int] = None) -> SessionState:
    if state.status != ACTIVE or state.selected is None:
        return state
    r, c = state.selected
    if state.is_prefilled(r, c):
        return state
    mistakes = state.mistakes + (1 if digit != state.solution[r][c] else 0)
    state = replace(state, current=_set_cell(state.current, (r, c), digit), mistakes=mistakes)
    if not state.is_solved():
        return state
    return replace(
        state,
        status=COMPLETED,
        score=compute_score(state.difficulty, state.elapsed_seconds, state.mistakes),
        completed_at=now_ms if now_ms is not None else int(time.time() * 1000),
    )


def erase(state: SessionState) -> SessionState:
    if state.status != ACTIVE or state.selected is None:
        return state
    r, c = state.selected
    if state.is_prefilled(r, c):
        return state
    return replace(state, current=_set_cell(state.current, (r, c), None))


def pause(state: SessionState) -> SessionState:
    if state.status != ACTIVE:
        return state
    return replace(state, status=PAUSED)


def resume(state: SessionState) -> SessionState:
    if state.status != PAUSED:
        return state
    return replace(state, status=ACTIVE)


def restart(state: SessionState) -> SessionState:
    # A completed session is frozen; it is discarded rather than restarted.
    if state.status == COMPLETED:
        return state
    return SessionState(
        original=state.original,
        current=state.original,
        solution=state.solution,
        difficulty=state.difficulty,
    )


def tick(state: SessionState) -> SessionState:
    if state.status != ACTIVE:
        return state
    return replace(state, elapsed_seconds=state.elapsed_seconds + 1)


class GameSession:
    """Owner of one session's state, timer and completion event.

    Operations are serialized by an internal lock, since the timer ticks
    from a background worker. Use as a context manager (or call ``close``)
    so the timer is always released.
    """

    def __init__(self, state: SessionState, session_id: Optional[str] = None,
                 on_complete: Optional[Callable[['GameSession', CompletedGame], None]] = None,
                 on_tick: Optional[Callable[['GameSession'], None]] = None,
                 timer_factory: Optional[Callable[..., SessionTimer]] = None,
                 owner_scope: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.owner_scope = owner_scope
        self._state = state
        self._lock = threading.RLock()
        self._on_complete = on_complete
        self._on_tick = on_tick
        self._completion_emitted = False
        self._closed = False
        self.last_active = time.monotonic()
        factory = timer_factory or SessionTimer
        self.timer = factory(on_tick=self.tick, label=self.id)
        self.record = None
        if state.status == ACTIVE:
            self.timer.start()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def select_cell(self, r: int, c: int) -> SessionState:
        return self._apply(select_cell, r, c)

    def enter_digit(self, digit: int) -> SessionState:
        return self._apply(enter_digit, digit)

    def erase(self) -> SessionState:
        return self._apply(erase)

    def pause(self) -> SessionState:
        return self._apply(pause)

    def resume(self) -> SessionState:
        return self._apply(resume)

    def restart(self) -> SessionState:
        return self._apply(restart)

    def tick(self) -> SessionState:
        # Runs on the timer worker; never starts or stops the timer itself
        with self._lock:
            if self._closed:
                return self._state
            self._state = tick(self._state)
            state = self._state
        if self._on_tick is not None and state.status == ACTIVE:
            self._on_tick(self)
        return state

    def touch(self) -> None:
        self.last_active = time.monotonic()

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self.timer.stop()

    def _apply(self, transition, *args) -> SessionState:
        with self._lock:
            if self._closed:
                return self._state
            after = transition(self._state, *args)
            self._state = after
            self.last_active = time.monotonic()
            fire = after.status == COMPLETED and not self._completion_emitted
            if fire:
                self._completion_emitted = True
        if after.status == ACTIVE:
            # no-op when already running, e.g. restart while active
            self.timer.start()
        else:
            self.timer.stop()
        if fire:
            logger.info(
                f"[session-complete] session={self.id} difficulty={after.difficulty} "
                f"score={after.score} time={after.elapsed_seconds}s mistakes={after.mistakes}"
            )
            if self._on_complete is not None:
                try:
                    self._on_complete(self, after.completion())
                except Exception:
                    # Not recorded; the next action on the completed session retries
                    with self._lock:
                        self._completion_emitted = False
                    raise
        return after

    def snapshot(self) -> dict:
        state = self._state
        return {
            'session_id': self.id,
            'difficulty': state.difficulty,
            'status': state.status,
            'original': grid_to_list(state.original),
            'current': grid_to_list(state.current),
            'selected_cell': list(state.selected) if state.selected else None,
            'mistakes': state.mistakes,
            'mistake_limit_display': MISTAKE_LIMIT_DISPLAY,
            'elapsed_seconds': state.elapsed_seconds,
            'score': state.score,
            'completed_at': state.completed_at,
            'record': self.record.to_dict() if self.record is not None else None,
        }


class SessionRegistry:
    """In-process table of live sessions keyed by id."""

    def __init__(self):
        self._sessions: Dict[str, GameSession] = {}
        self._lock = threading.Lock()

    def add(self, session: GameSession) -> GameSession:
        with self._lock:
            self._sessions[session.id] = session
        logger.info(f"[session-create] session={session.id} difficulty={session.state.difficulty}")
        return session

    def get(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def discard(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"[session-end] session={session_id}")
        return True

    def reap(self, idle_ttl: float, completed_ttl: float, now: Optional[float] = None) -> Sequence[str]:
        """Discard sessions nobody has touched for ``idle_ttl`` seconds, and
        completed ones after ``completed_ttl``. Returns the discarded ids."""
        now = time.monotonic() if now is None else now
        with self._lock:
            candidates = list(self._sessions.values())
        expired = []
        for session in candidates:
            idle = now - session.last_active
            ttl = completed_ttl if session.state.status == COMPLETED else idle_ttl
            if idle >= ttl:
                expired.append(session.id)
        reaped = []
        for session_id in expired:
            if self.discard(session_id):
                logger.info(f"[session-reap] session={session_id}")
                reaped.append(session_id)
        return reaped

    def ids(self) -> Sequence[str]:
        with self._lock:
            return list(self._sessions)

    def clear(self) -> None:
        for session_id in self.ids():
            self.discard(session_id)


sessions = SessionRegistry()
