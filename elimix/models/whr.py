"""
Whole-History Rating
https://www.remi-coulom.fr/WHR/WHR.pdf

Every player's strength is a sequence of latent values r[t], one per game they played, in
natural log space (r = 0 is average, strength = e^r). A game's finishing order is scored
with a Plackett-Luce model built from the best finisher down, and consecutive values of
the same player are tied together by a Wiener process prior
    r[t] | r[t-1] ~ Normal(r[t-1], w2 * days)
All values are fitted jointly by sweeps of per-value Newton-Raphson steps, so adding a game
can move any earlier value of the players involved. The whole history is therefore refitted
from scratch on every call instead of being updated in place.
"""
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
from tqdm import tqdm

from elimix.core.base import RatingModel
from elimix.core.errors import RatingRangeError, ValidationError
from elimix.utils.constants import DISPLAY_CENTER
from elimix.utils.date_utils import as_days, days_between, to_utc
from elimix.utils.math_utils import check_finite, log_to_display

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Participant:
    player_id: str
    normalized_position: float


@dataclass(frozen=True)
class HistoryGame:
    """
    One recorded game. Participants can be any objects with player_id and
    normalized_position attributes, including the output of the ranking normalizer.
    """

    game_id: str
    played_at: datetime
    participants: Tuple[Participant, ...]


@dataclass
class WHRResult:
    """
    Attributes:
        player_ratings: display rating of every player after their latest game
        game_snapshots: game_snapshots[game_id][player_id] is the display rating of the player at that game
        game_changes: change of each snapshot relative to the same player's previous snapshot,
                      or relative to the initial rating for their first game
        trajectories: fitted (played_at, latent log strength) pairs per player in time order
    """

    player_ratings: Dict[str, int] = field(default_factory=dict)
    game_snapshots: Dict[str, Dict[str, int]] = field(default_factory=dict)
    game_changes: Dict[str, Dict[str, int]] = field(default_factory=dict)
    trajectories: Dict[str, List[Tuple[datetime, float]]] = field(default_factory=dict)


class WholeHistoryRating(RatingModel):
    """Batch Bayesian rating over the complete game history"""

    name = 'whr'

    def __init__(
        self,
        w2: float = 0.3,
        iterations: int = 100,
        min_gap: Union[float, str] = 0.5,
        hessian_threshold: float = 1e-6,
        initial_rating: int = DISPLAY_CENTER,
        verbose: bool = False,
    ):
        """
        Parameters:
            w2 (float, optional): variance per day of the Wiener process in natural log units. Higher values let
                                  ratings drift faster between games. Defaults to 0.3.
            iterations (int, optional): number of Newton-Raphson sweeps over every latent value. Defaults to 100.
            min_gap (float or str, optional): floor on the gap between two games of the same player, in days or as a
                                              duration string such as '12H', so back to back games do not get a
                                              near zero prior variance. Defaults to 0.5 days.
            hessian_threshold (float, optional): a Newton step is only taken when the Hessian is below
                                                 -hessian_threshold. Defaults to 1e-6.
            initial_rating (int, optional): display rating a player's first change is measured from. Defaults to 1000.
            verbose (bool, optional): show a progress bar over the sweeps. Defaults to False.
        """
        if w2 <= 0.0:
            raise ValueError('w2 must be positive')
        if iterations < 0:
            raise ValueError('iterations cannot be negative')
        self.w2 = w2
        self.iterations = int(iterations)
        self.min_gap = as_days(min_gap)
        if self.min_gap <= 0.0:
            raise ValueError('min_gap must be positive')
        self.hessian_threshold = hessian_threshold
        self.initial_rating = initial_rating
        self.verbose = verbose

    @staticmethod
    def validate(games: Sequence[HistoryGame]):
        seen_games = set()
        for game in games:
            if game.game_id in seen_games:
                raise ValidationError(f'game {game.game_id} appears more than once in the history')
            seen_games.add(game.game_id)
            if not isinstance(game.played_at, datetime):
                raise ValidationError(f'game {game.game_id} has no valid timestamp: {game.played_at!r}')
            if len(game.participants) == 0:
                raise ValidationError(f'game {game.game_id} has no participants')
            player_ids = [part.player_id for part in game.participants]
            if len(set(player_ids)) != len(player_ids):
                raise ValidationError(f'game {game.game_id} lists a player more than once')
            for part in game.participants:
                if not (math.isfinite(part.normalized_position) and part.normalized_position > 0.0):
                    raise ValidationError(
                        f'game {game.game_id} has an invalid position {part.normalized_position} for {part.player_id}'
                    )

    @staticmethod
    def finishing_groups(game: HistoryGame) -> List[List[str]]:
        """participant ids from best to worst, with tied participants sharing a group"""
        ordered = sorted(game.participants, key=lambda part: part.normalized_position)
        groups = []
        prev_position = None
        for part in ordered:
            if part.normalized_position != prev_position:
                groups.append([])
                prev_position = part.normalized_position
            groups[-1].append(part.player_id)
        return groups

    @staticmethod
    def game_derivatives(player_id: str, groups: List[List[str]], strengths: Dict[str, float]) -> Tuple[float, float]:
        """
        Gradient and Hessian of the Plackett-Luce log likelihood of one game with respect to one
        player's latent value.

        The finishing order is built one round at a time, each round drawing the next best
        finisher from the remaining pool with probability proportional to strength. For every
        round the player is still in the pool, with f = strength / pool sum:
            gradient += (1 - f) if the player is drawn this round else -f
            hessian  -= f * (1 - f)
        Tied finishers are drawn together, each from the same pool, which keeps them symmetric.
        """
        strength = strengths[player_id]
        pool_sum = sum(strengths[pid] for group in groups for pid in group)
        grad = 0.0
        hess = 0.0
        for group in groups:
            frac = strength / pool_sum if pool_sum > 0.0 else 0.0
            drawn = player_id in group
            size = len(group)
            grad += (1.0 if drawn else 0.0) - size * frac
            hess -= size * frac * (1.0 - frac)
            if drawn:
                break
            pool_sum -= sum(strengths[pid] for pid in group)
        return grad, hess

    def fit(self, games: Sequence[HistoryGame]) -> WHRResult:
        """
        Fits every player's rating trajectory to the full history.

        Parameters:
            games (Sequence[HistoryGame]): every recorded game in any order. Games are sorted by timestamp
                                           before gaps are computed; games with equal timestamps keep their
                                           input order.

        Returns:
            WHRResult
        """
        self.validate(games)
        ordered = sorted(games, key=lambda game: to_utc(game.played_at))
        if not ordered:
            return WHRResult()

        # per player timeline: indices into ordered, and the local index of each game in it
        player_games: Dict[str, List[int]] = defaultdict(list)
        local_idxs: List[Dict[str, int]] = []
        for game_idx, game in enumerate(ordered):
            local = {}
            for part in game.participants:
                local[part.player_id] = len(player_games[part.player_id])
                player_games[part.player_id].append(game_idx)
            local_idxs.append(local)
        groups = [self.finishing_groups(game) for game in ordered]

        # prior variance between consecutive games of each player
        variances = {}
        for player_id, game_idxs in player_games.items():
            gaps = [
                max(self.min_gap, days_between(ordered[prev].played_at, ordered[cur].played_at))
                for prev, cur in zip(game_idxs[:-1], game_idxs[1:])
            ]
            variances[player_id] = self.w2 * np.array(gaps, dtype=np.float64)

        ratings = {player_id: np.zeros(len(game_idxs), dtype=np.float64) for player_id, game_idxs in player_games.items()}

        try:
            skipped = self.sweep(player_games, local_idxs, groups, variances, ratings)
        except OverflowError as exc:
            raise RatingRangeError(f'whr rating overflowed during the sweeps: {exc}') from exc

        for player_id, r in ratings.items():
            check_finite(r, f'whr rating of {player_id}')
        logger.debug(
            'whr fitted %d games for %d players in %d sweeps, %d degenerate steps skipped',
            len(ordered), len(ratings), self.iterations, skipped,
        )
        return self.collect(ordered, player_games, local_idxs, ratings)

    def sweep(self, player_games, local_idxs, groups, variances, ratings) -> int:
        """runs every Newton sweep in place on ratings, returns the number of skipped steps"""
        skipped = 0
        for _ in tqdm(range(self.iterations), desc='whr sweeps', disable=not self.verbose):
            for player_id, game_idxs in player_games.items():
                r = ratings[player_id]
                var = variances[player_id]
                last = len(game_idxs) - 1
                for local_idx, game_idx in enumerate(game_idxs):
                    strengths = {
                        pid: math.exp(ratings[pid][idx]) for pid, idx in local_idxs[game_idx].items()
                    }
                    grad, hess = self.game_derivatives(player_id, groups[game_idx], strengths)

                    if local_idx > 0:
                        grad -= (r[local_idx] - r[local_idx - 1]) / var[local_idx - 1]
                        hess -= 1.0 / var[local_idx - 1]
                    if local_idx < last:
                        grad -= (r[local_idx] - r[local_idx + 1]) / var[local_idx]
                        hess -= 1.0 / var[local_idx]

                    if hess < -self.hessian_threshold:
                        r[local_idx] -= grad / hess
                    else:
                        skipped += 1
        return skipped

    def collect(self, ordered, player_games, local_idxs, ratings) -> WHRResult:
        result = WHRResult()
        for player_id, r in ratings.items():
            result.player_ratings[player_id] = log_to_display(r[-1])
            result.trajectories[player_id] = [
                (ordered[game_idx].played_at, float(value)) for game_idx, value in zip(player_games[player_id], r)
            ]
        for game, local in zip(ordered, local_idxs):
            snapshots = {}
            changes = {}
            for part in game.participants:
                r = ratings[part.player_id]
                idx = local[part.player_id]
                cur = log_to_display(r[idx])
                prev = log_to_display(r[idx - 1]) if idx > 0 else self.initial_rating
                snapshots[part.player_id] = cur
                changes[part.player_id] = cur - prev
            result.game_snapshots[game.game_id] = snapshots
            result.game_changes[game.game_id] = changes
        return result

    def apply_game(self, prior_state: Sequence[HistoryGame], standings: HistoryGame):
        """
        Appends one game to a history and refits everything.

        Returns:
            tuple: (the extended history, the fitted WHRResult), (rating change per participant of the new game)
        """
        history = tuple(prior_state) + (standings,)
        result = self.fit(history)
        return (history, result), dict(result.game_changes[standings.game_id])
