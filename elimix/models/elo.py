"""Pairwise Elo for multiplayer games"""
import numpy as np
from typing import Dict, Sequence
from elimix.core.base import GameEntry, SingleGameRatingModel
from elimix.core.errors import ValidationError
from elimix.utils.constants import ALPHA, K_DECAY_RATE, K_MAX, K_MIN
from elimix.utils.math_utils import k_factor, round_deltas, sigmoid


class PairwiseElo(SingleGameRatingModel):
    """
    Decomposes an N player game into N * (N - 1) / 2 virtual two player matches and sums
    each player's Elo updates over all of their matches. The sum is not divided by N - 1,
    so winning a larger lobby is worth more than winning a smaller one.
    """

    name = 'elo'

    def __init__(
        self,
        initial_rating: int = 1000,
        k_min: float = K_MIN,
        k_max: float = K_MAX,
        k_decay: float = K_DECAY_RATE,
        alpha: float = ALPHA,
    ):
        """
        Parameters:
            initial_rating (int, optional): rating of a player with no games. Defaults to 1000.
            k_min (float, optional): K-factor floor reached by veterans. Defaults to 16.
            k_max (float, optional): K-factor of a brand new player. Defaults to 32.
            k_decay (float, optional): number of games over which K decays by a factor of e. Defaults to 20.
            alpha (float, optional): scaling of rating differences. Defaults to log(10) / 400.
        """
        self.initial_rating = initial_rating
        self.k_min = k_min
        self.k_max = k_max
        self.k_decay = k_decay
        self.alpha = alpha

    def k(self, games_played):
        return k_factor(games_played, k_min=self.k_min, k_max=self.k_max, decay=self.k_decay)

    @staticmethod
    def actual_scores(positions: np.ndarray) -> np.ndarray:
        """N x N matrix of pairwise scores, 1 where the row player finished ahead, 0.5 on ties"""
        diffs = positions[None, :] - positions[:, None]
        return 0.5 * (np.sign(diffs) + 1.0)

    def predict(self, ratings: np.ndarray) -> np.ndarray:
        """N x N matrix of the probability that the row player beats the column player"""
        return sigmoid(self.alpha * (ratings[:, None] - ratings[None, :]))

    def pairwise_deltas(self, entries: Sequence[GameEntry]) -> np.ndarray:
        """
        Unrounded per pair updates. Entry [i, j] is the change to player i from their virtual
        match against player j; the diagonal is zero.
        """
        ratings = np.array([entry.rating for entry in entries], dtype=np.float64)
        positions = np.array([entry.normalized_position for entry in entries], dtype=np.float64)
        ks = self.k(np.array([entry.games_played for entry in entries]))
        deltas = ks[:, None] * (self.actual_scores(positions) - self.predict(ratings))
        np.fill_diagonal(deltas, 0.0)
        return deltas

    def raw_changes(self, entries: Sequence[GameEntry]) -> np.ndarray:
        return self.pairwise_deltas(entries).sum(axis=1)

    def rating_changes(self, entries: Sequence[GameEntry]) -> Dict[str, int]:
        if len({entry.id for entry in entries}) != len(entries):
            raise ValidationError('each player can only appear once per game')
        rounded = round_deltas(self.raw_changes(entries))
        return {entry.id: int(delta) for entry, delta in zip(entries, rounded)}
