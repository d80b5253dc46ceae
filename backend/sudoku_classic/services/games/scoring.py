import math

BASE_SCORE = 1000
MISTAKE_PENALTY = 50

DIFFICULTY_MULTIPLIERS = {
    'easy': 1.0,
    'medium': 1.5,
    'hard': 2.0,
}


def compute_score(difficulty: str, elapsed_seconds: int, mistakes: int) -> int:
    """Score a finished puzzle.

    1000 base, -1 per elapsed second, -50 per mistake, floored at zero and
    scaled by the difficulty multiplier.
    """
    multiplier = DIFFICULTY_MULTIPLIERS[difficulty]
    raw = max(0, BASE_SCORE - int(elapsed_seconds) - MISTAKE_PENALTY * int(mistakes))
    return int(math.floor(raw * multiplier))
