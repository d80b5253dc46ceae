from sudoku_classic.services.history.stats import summarize
from sudoku_classic.services.history.store import GameRecord


def _record(score, time_seconds, mistakes):
    return GameRecord(id=f"{score}", difficulty='easy', score=score, time_seconds=time_seconds,
                      mistakes=mistakes, completed_at=score)


def test_empty_history_is_all_zero():
    stats = summarize([])
    assert stats == {
        'total_games': 0, 'total_score': 0, 'average_score': 0, 'best_score': 0,
        'average_time': 0, 'best_time': 0, 'total_mistakes': 0,
    }


def test_totals_averages_and_bests():
    stats = summarize([_record(800, 100, 2), _record(901, 61, 0), _record(600, 240, 5)])
    assert stats['total_games'] == 3
    assert stats['total_score'] == 2301
    assert stats['average_score'] == 767
    assert stats['best_score'] == 901
    assert stats['average_time'] == 134  # 401 / 3
    assert stats['best_time'] == 61
    assert stats['total_mistakes'] == 7


def test_averages_round_half_up():
    stats = summarize([_record(1, 1, 0), _record(2, 2, 0)])
    assert stats['average_score'] == 2
    assert stats['average_time'] == 2
