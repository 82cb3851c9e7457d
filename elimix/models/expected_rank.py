"""
Expected rank rating in the style of Codeforces

Instead of decomposing a game into virtual duels, each player gets a single expected rank
    expected_rank[i] = 1 + sum_{j != i} P(j beats i)
and the update is K * (expected_rank[i] - actual_rank[i]), so finishing better than
expected (a smaller rank) raises the rating.
"""
import numpy as np
from typing import Dict, Sequence
from elimix.core.base import GameEntry, SingleGameRatingModel
from elimix.core.errors import ValidationError
from elimix.utils.constants import ALPHA, K_DECAY_RATE, K_MAX, K_MIN
from elimix.utils.math_utils import k_factor, round_deltas, sigmoid


class ExpectedRank(SingleGameRatingModel):
    """treats the whole game as one multiplayer contest"""

    name = 'cf'

    def __init__(
        self,
        initial_rating: int = 1000,
        k_min: float = K_MIN,
        k_max: float = K_MAX,
        k_decay: float = K_DECAY_RATE,
        alpha: float = ALPHA,
    ):
        self.initial_rating = initial_rating
        self.k_min = k_min
        self.k_max = k_max
        self.k_decay = k_decay
        self.alpha = alpha

    def k(self, games_played):
        return k_factor(games_played, k_min=self.k_min, k_max=self.k_max, decay=self.k_decay)

    def expected_ranks(self, ratings: np.ndarray) -> np.ndarray:
        # beat_probs[i, j] = P(j beats i)
        beat_probs = sigmoid(self.alpha * (ratings[None, :] - ratings[:, None]))
        np.fill_diagonal(beat_probs, 0.0)
        return 1.0 + beat_probs.sum(axis=1)

    def raw_changes(self, entries: Sequence[GameEntry]) -> np.ndarray:
        ratings = np.array([entry.rating for entry in entries], dtype=np.float64)
        actual_ranks = np.array([entry.normalized_position for entry in entries], dtype=np.float64)
        ks = self.k(np.array([entry.games_played for entry in entries]))
        return ks * (self.expected_ranks(ratings) - actual_ranks)

    def rating_changes(self, entries: Sequence[GameEntry]) -> Dict[str, int]:
        if len({entry.id for entry in entries}) != len(entries):
            raise ValidationError('each player can only appear once per game')
        rounded = round_deltas(self.raw_changes(entries))
        return {entry.id: int(delta) for entry, delta in zip(entries, rounded)}
