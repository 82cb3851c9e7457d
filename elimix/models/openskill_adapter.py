"""
Adapter contract for library backed Bayesian rating models

The update rule of these models lives in an external library. This module only fixes what
goes in (mu, sigma and normalized position per participant, turned into a tie aware rank
array) and what comes out (new mu and sigma plus a conservative display ordinal
mu - 3 * sigma mapped onto the 1000 centered scale of the other models).
"""
from abc import abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

from elimix.core.base import RatingModel
from elimix.core.errors import ValidationError
from elimix.normalize import NormalizedResult
from elimix.utils.constants import OS_MU, OS_OFFSET, OS_SCALE, OS_SIGMA
from elimix.utils.math_utils import check_finite


@dataclass(frozen=True)
class OSRating:
    mu: float = OS_MU
    sigma: float = OS_SIGMA


@dataclass(frozen=True)
class OSEntry:
    id: str
    mu: float
    sigma: float
    normalized_position: float


@dataclass(frozen=True)
class OSUpdate:
    mu: float
    sigma: float
    ordinal: int
    change: int


def os_ordinal(rating: OSRating, scale: float = OS_SCALE, offset: float = OS_OFFSET) -> int:
    """conservative display rating round((mu - 3 * sigma) * scale + offset)"""
    check_finite([rating.mu, rating.sigma], 'openskill rating')
    return int(round((rating.mu - 3.0 * rating.sigma) * scale + offset))


def tie_aware_ranks(positions: Sequence[float]) -> List[int]:
    """
    1-based ranks for positions already sorted ascending. Tied players share the rank of the
    first player holding that position, e.g. [1.0, 2.5, 2.5, 4.0] -> [1, 2, 2, 4].
    """
    ranks = []
    for idx, position in enumerate(positions):
        if idx > 0 and position == positions[idx - 1]:
            ranks.append(ranks[-1])
        else:
            ranks.append(idx + 1)
    return ranks


class ExternalRatingProvider(RatingModel):
    """
    Base class for providers wrapping an external multiplayer rating library. Subclasses
    implement rate_teams(); everything around it (sorting, tie handling, ordinal mapping
    and change computation) is shared.
    """

    name = 'os'

    def __init__(self, initial_mu: float = OS_MU, initial_sigma: float = OS_SIGMA):
        self.initial_mu = initial_mu
        self.initial_sigma = initial_sigma

    def initial_state(self) -> OSRating:
        return OSRating(mu=self.initial_mu, sigma=self.initial_sigma)

    @abstractmethod
    def rate_teams(self, ratings: List[OSRating], ranks: List[int]) -> List[OSRating]:
        """
        Delegates one game to the external library.

        Parameters:
            ratings (List[OSRating]): pre-game ratings, best finisher first.
            ranks (List[int]): tie aware 1-based rank of each rating.

        Returns:
            list of post-game ratings in the same order.
        """
        raise NotImplementedError

    def rating_changes(self, entries: Sequence[OSEntry]) -> Dict[str, OSUpdate]:
        if len({entry.id for entry in entries}) != len(entries):
            raise ValidationError('each player can only appear once per game')
        ordered = sorted(entries, key=lambda entry: entry.normalized_position)
        ranks = tie_aware_ranks([entry.normalized_position for entry in ordered])
        before = [OSRating(mu=entry.mu, sigma=entry.sigma) for entry in ordered]
        after = self.rate_teams(before, ranks)
        if len(after) != len(before):
            raise ValueError(f'rating provider returned {len(after)} ratings for {len(before)} players')

        updates = {}
        for entry, old, new in zip(ordered, before, after):
            new_ordinal = os_ordinal(new)
            updates[entry.id] = OSUpdate(
                mu=new.mu,
                sigma=new.sigma,
                ordinal=new_ordinal,
                change=new_ordinal - os_ordinal(old),
            )
        return updates

    def apply_game(
        self,
        prior_state: Mapping[str, OSRating],
        standings: List[NormalizedResult],
    ) -> Tuple[Dict[str, OSRating], Dict[str, int]]:
        entries = []
        for res in standings:
            rating = prior_state.get(res.player_id, self.initial_state())
            entries.append(OSEntry(res.player_id, rating.mu, rating.sigma, res.normalized_position))
        updates = self.rating_changes(entries)
        new_state = {player_id: OSRating(mu=upd.mu, sigma=upd.sigma) for player_id, upd in updates.items()}
        return new_state, {player_id: upd.change for player_id, upd in updates.items()}


class OpenSkillProvider(ExternalRatingProvider):
    """Plackett-Luce model of the openskill library"""

    def __init__(self, initial_mu: float = OS_MU, initial_sigma: float = OS_SIGMA, **model_kwargs):
        super().__init__(initial_mu=initial_mu, initial_sigma=initial_sigma)
        from openskill.models import PlackettLuce

        self.model = PlackettLuce(mu=initial_mu, sigma=initial_sigma, **model_kwargs)

    def rate_teams(self, ratings: List[OSRating], ranks: List[int]) -> List[OSRating]:
        teams = [[self.model.rating(mu=rating.mu, sigma=rating.sigma)] for rating in ratings]
        rated = self.model.rate(teams, ranks=ranks)
        return [OSRating(mu=team[0].mu, sigma=team[0].sigma) for team in rated]
