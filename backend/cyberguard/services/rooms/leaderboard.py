from typing import Iterable, List

from .state import Player, PlayerStats

IN_ROUND = 'in_round'
OVERALL = 'overall'
MODES = (IN_ROUND, OVERALL)


def project(players: Iterable[Player], mode: str = IN_ROUND) -> List[Player]:
    """Rank players for display.

    in_round: by current score total, players still playing last.
    overall: by cumulative total score.
    Ties keep their input order.
    """
    if mode == IN_ROUND:
        # Unscored players share one bucket behind everyone who submitted
        return sorted(players, key=lambda p: (p.score is None, -(p.score.total if p.score else 0)))
    if mode == OVERALL:
        return sorted(players, key=lambda p: -p.stats.total_score)
    raise ValueError(f'Unknown leaderboard mode: {mode}')


def win_rate(stats: PlayerStats) -> float:
    return stats.wins / max(1, stats.total_games)


def rows(players: Iterable[Player], mode: str = IN_ROUND) -> List[dict]:
    ranked = []
    for rank, player in enumerate(project(players, mode), start=1):
        row = player.to_dict()
        row['rank'] = rank
        row['stillPlaying'] = player.score is None
        row['winRate'] = win_rate(player.stats)
        ranked.append(row)
    return ranked
