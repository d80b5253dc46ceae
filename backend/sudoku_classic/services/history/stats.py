import math


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def summarize(records) -> dict:
    """Aggregate totals, averages and bests over a sequence of GameRecord."""
    if not records:
        return {
            'total_games': 0,
            'total_score': 0,
            'average_score': 0,
            'best_score': 0,
            'average_time': 0,
            'best_time': 0,
            'total_mistakes': 0,
        }
    count = len(records)
    total_score = sum(r.score for r in records)
    total_time = sum(r.time_seconds for r in records)
    return {
        'total_games': count,
        'total_score': total_score,
        'average_score': _round_half_up(total_score / count),
        'best_score': max(r.score for r in records),
        'average_time': _round_half_up(total_time / count),
        'best_time': min(r.time_seconds for r in records),
        'total_mistakes': sum(r.mistakes for r in records),
    }
