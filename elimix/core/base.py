"""base classes for rating models"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from elimix.normalize import NormalizedResult


@dataclass(frozen=True)
class RatingState:
    """rating of one player under one model, along with the number of games that rating has absorbed"""

    rating: int
    games_played: int = 0


@dataclass(frozen=True)
class GameEntry:
    """one participant of one game as seen by a single-game rating model"""

    id: str
    rating: float
    games_played: int
    normalized_position: float


class RatingModel(ABC):
    """
    Common capability of every rating model: take a prior state and the result of one game,
    return the new state and the integer rating change of every participant. Models are
    independent strategies; none of them reads another model's state, so new models can be
    added without touching existing ones.

    Attributes:
        name (str): key under which the model's ratings are stored on a player.
    """

    name: str

    @abstractmethod
    def apply_game(self, prior_state: Any, standings: Any) -> Tuple[Any, Dict[str, int]]:
        raise NotImplementedError


class SingleGameRatingModel(RatingModel):
    """
    Base class for models that are updated one game at a time from the participants'
    current ratings alone, such as the pairwise Elo and expected rank models. Each model owns
    its own rating column and its own games played counter.

    Attributes:
        initial_rating (int): rating assigned to a player before their first game.
    """

    initial_rating: int = 1000

    def initial_state(self) -> RatingState:
        return RatingState(rating=self.initial_rating, games_played=0)

    @abstractmethod
    def rating_changes(self, entries: Sequence[GameEntry]) -> Dict[str, int]:
        """
        Computes the integer rating change of every participant of a single game.

        Parameters:
            entries (Sequence[GameEntry]): participants with their pre-game rating, the number of
                                           games they had played before this one, and their
                                           normalized finishing position.

        Returns:
            dict: rating change per participant id
        """
        raise NotImplementedError

    def apply_game(
        self,
        prior_state: Mapping[str, RatingState],
        standings: List[NormalizedResult],
    ) -> Tuple[Dict[str, RatingState], Dict[str, int]]:
        """
        Applies one game to the prior states of its participants.

        Parameters:
            prior_state (Mapping[str, RatingState]): pre-game state of the participants. Players
                                                     missing from it start from initial_state().
            standings (List[NormalizedResult]): output of the ranking normalizer for the game.

        Returns:
            tuple: (new state per participant, integer rating change per participant)
        """
        states = {res.player_id: prior_state.get(res.player_id, self.initial_state()) for res in standings}
        entries = [
            GameEntry(
                id=res.player_id,
                rating=states[res.player_id].rating,
                games_played=states[res.player_id].games_played,
                normalized_position=res.normalized_position,
            )
            for res in standings
        ]
        deltas = self.rating_changes(entries)
        new_state = {
            player_id: replace(state, rating=state.rating + deltas[player_id], games_played=state.games_played + 1)
            for player_id, state in states.items()
        }
        return new_state, deltas
