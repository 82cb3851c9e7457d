"""
Ranking normalization for elimination games

A player who is knocked out can rejoin the same game and be knocked out again, so a raw
game result may list a player several times. Every rating model works on one position per
player per game: the mean of the elimination indices that player occupied. A player who
rejoins therefore lands strictly between their best and worst elimination index.
"""
import numbers
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from elimix.core.errors import ValidationError


@dataclass(frozen=True)
class NormalizedResult:
    """averaged finishing position of one player in one game"""

    player_id: str
    normalized_position: float
    raw_positions: Tuple[int, ...]


def normalize_rankings(eliminations: Iterable[Tuple[str, int]]) -> List[NormalizedResult]:
    """
    Collapses a raw elimination list into one result per player.

    Parameters:
        eliminations: ordered (player_id, elimination_index) pairs for a single game, where the
                      elimination index is 1-based and lower is better.

    Returns:
        list of NormalizedResult sorted ascending by normalized position. Players with equal
        normalized positions keep the order of their first appearance; they are a draw for
        every rating model.
    """
    positions: Dict[str, List[int]] = defaultdict(list)
    for player_id, elimination_index in eliminations:
        if isinstance(elimination_index, bool) or not isinstance(elimination_index, numbers.Integral):
            raise ValidationError(f'elimination index must be an integer, got {elimination_index!r} for {player_id}')
        if elimination_index <= 0:
            raise ValidationError(f'elimination index must be positive, got {elimination_index} for {player_id}')
        positions[player_id].append(int(elimination_index))

    if not positions:
        raise ValidationError('cannot normalize an empty game')

    results = [
        NormalizedResult(
            player_id=player_id,
            normalized_position=sum(idxs) / len(idxs),
            raw_positions=tuple(sorted(idxs)),
        )
        for player_id, idxs in positions.items()
    ]
    # sorted() is stable so tied players stay in first appearance order
    return sorted(results, key=lambda res: res.normalized_position)


def normalize_finishing_list(finishing_order: Iterable[str]) -> List[NormalizedResult]:
    """normalizes a list of player ids where the list index is the elimination index, the format used to seed history"""
    return normalize_rankings((player_id, idx + 1) for idx, player_id in enumerate(finishing_order))
