import copy
import os
import sys
import pytest

# Ensure the backend root (containing the `sudoku_classic` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from sudoku_classic import create_app, db, socketio
from sudoku_classic.errors import PuzzleSourceError
from sudoku_classic.services.games.puzzle_source import parse_payload
from sudoku_classic.services.games.session import sessions


SOLUTION = [
    [5, 3, 4, 6, 7, 8, 9, 1, 2],
    [6, 7, 2, 1, 9, 5, 3, 4, 8],
    [1, 9, 8, 3, 4, 2, 5, 6, 7],
    [8, 5, 9, 7, 6, 1, 4, 2, 3],
    [4, 2, 6, 8, 5, 3, 7, 9, 1],
    [7, 1, 3, 9, 2, 4, 8, 5, 6],
    [9, 6, 1, 5, 3, 7, 2, 8, 4],
    [2, 8, 7, 4, 1, 9, 6, 3, 5],
    [3, 4, 5, 2, 8, 6, 1, 7, 9],
]
# Cells blanked out of the solution to make the puzzle
BLANKS = [(0, 2), (4, 4), (8, 8)]


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_BINDS = {'remote': 'sqlite://'}
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PUZZLE_API_URL = 'http://puzzles.invalid/v1/sudokugenerate'
    TIMER_TICK_SEC = 1
    SESSION_IDLE_TTL_SEC = 1800
    SESSION_COMPLETED_TTL_SEC = 300


class StubPuzzleSource:
    """Serves one fixed puzzle, or fails when ``fail`` is set."""

    def __init__(self, payload):
        self.payload = payload
        self.fail = False
        self.requests = []

    def fetch(self, difficulty):
        self.requests.append(difficulty)
        if self.fail:
            raise PuzzleSourceError('puzzle service down')
        return parse_payload(self.payload, difficulty)


@pytest.fixture()
def sample_puzzle():
    puzzle = copy.deepcopy(SOLUTION)
    for r, c in BLANKS:
        puzzle[r][c] = 0
    return {'puzzle': puzzle, 'solution': copy.deepcopy(SOLUTION), 'blanks': list(BLANKS)}


@pytest.fixture()
def flask_app(sample_puzzle):
    application = create_app(TestConfig)
    application.extensions['puzzle_source'] = StubPuzzleSource(sample_puzzle)
    with application.app_context():
        # Ensure models are imported so tables are created
        import sudoku_classic.models  # noqa: F401
        db.create_all()
        yield application
        sessions.clear()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
