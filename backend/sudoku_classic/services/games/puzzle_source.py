import logging
from dataclasses import dataclass

import requests

from sudoku_classic.errors import PuzzleFormatError, PuzzleSourceError
from .scoring import DIFFICULTY_MULTIPLIERS
from .session import Grid, parse_grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Puzzle:
    difficulty: str
    grid: Grid
    solution: Grid


def parse_payload(payload, difficulty: str) -> Puzzle:
    """Validate a ``{puzzle, solution}`` payload; 0 marks an empty cell."""
    if not isinstance(payload, dict) or 'puzzle' not in payload or 'solution' not in payload:
        raise PuzzleFormatError('payload must contain puzzle and solution')
    return Puzzle(
        difficulty=difficulty,
        grid=parse_grid(payload['puzzle']),
        solution=parse_grid(payload['solution'], allow_empty=False),
    )


class PuzzleSource:
    """HTTP client for the external puzzle generator."""

    def __init__(self, url: str, api_key: str = '', timeout: float = 10.0, http=None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_config(cls, config) -> 'PuzzleSource':
        return cls(
            url=config.get('PUZZLE_API_URL'),
            api_key=config.get('PUZZLE_API_KEY', ''),
            timeout=float(config.get('PUZZLE_API_TIMEOUT_SEC', 10)),
        )

    def fetch(self, difficulty: str) -> Puzzle:
        if difficulty not in DIFFICULTY_MULTIPLIERS:
            raise ValueError(f'unknown difficulty {difficulty!r}')
        headers = {'X-Api-Key': self.api_key} if self.api_key else {}
        try:
            response = self.http.get(
                self.url, params={'difficulty': difficulty}, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning(f"[puzzle-fetch-failed] difficulty={difficulty} error={exc}")
            raise PuzzleSourceError('Failed to fetch puzzle') from exc
        return parse_payload(payload, difficulty)
