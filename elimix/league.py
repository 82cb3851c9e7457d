"""
In-memory league: players, games and per-model rating snapshots

A submitted game goes through the ranking normalizer, then through every single-game model
(pairwise Elo, expected rank and, when a provider is configured, the external Bayesian
model), and finally triggers a whole-history refit that rewrites the WHR columns of every
recorded participation. Replaying a history from scratch uses exactly the same path, and
the games played count behind each K-factor is always derived from recorded games.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import polars as pl

from elimix.configs import merge_params
from elimix.core.base import RatingState
from elimix.core.errors import ValidationError
from elimix.models.elo import PairwiseElo
from elimix.models.expected_rank import ExpectedRank
from elimix.models.openskill_adapter import ExternalRatingProvider, OSRating, os_ordinal
from elimix.models.whr import HistoryGame, WHRResult, WholeHistoryRating
from elimix.normalize import NormalizedResult, normalize_rankings
from elimix.utils.data_utils import RecordedGame
from elimix.utils.date_utils import to_utc

logger = logging.getLogger(__name__)

MODELS = ('elo', 'cf', 'whr', 'os')


@dataclass(frozen=True)
class Snapshot:
    before: int
    after: int
    change: int

    def __post_init__(self):
        if self.after != self.before + self.change:
            raise ValueError(f'inconsistent snapshot: {self.before} + {self.change} != {self.after}')

    @classmethod
    def from_change(cls, before: int, change: int) -> 'Snapshot':
        return cls(before=before, after=before + change, change=change)


@dataclass
class Player:
    id: str
    name: str
    elo_rating: int = 1000
    cf_rating: int = 1000
    whr_rating: int = 1000
    os: Optional[OSRating] = None

    @property
    def os_rating(self) -> Optional[int]:
        return None if self.os is None else os_ordinal(self.os)

    def rating(self, model: str) -> Optional[int]:
        if model not in MODELS:
            raise ValueError(f'unknown model: {model}')
        return getattr(self, f'{model}_rating')


@dataclass(frozen=True)
class Game:
    id: str
    played_at: datetime
    total_players: int


@dataclass
class Participation:
    game_id: str
    player_id: str
    raw_positions: Tuple[int, ...]
    normalized_position: float
    snapshots: Dict[str, Optional[Snapshot]] = field(default_factory=dict)


class League:
    """
    Holds every player and game of one league and keeps all rating models up to date.

    Every mutation and every read happens under one reentrant lock, so readers and the
    whole-history refit only ever see fully recorded and back-filled games.
    """

    def __init__(
        self,
        params: Optional[Mapping[str, Mapping]] = None,
        os_provider: Optional[ExternalRatingProvider] = None,
        verbose: bool = False,
    ):
        """
        Parameters:
            params (Mapping, optional): per model parameter overrides merged over configs.DEFAULT_PARAMS.
            os_provider (ExternalRatingProvider, optional): provider for the library backed Bayesian model.
                                                            Its columns stay empty when omitted.
            verbose (bool, optional): show a progress bar during whole-history refits.
        """
        self.params = merge_params(params)
        self.elo = PairwiseElo(**self.params['elo'])
        self.cf = ExpectedRank(**self.params['cf'])
        self.whr = WholeHistoryRating(verbose=verbose, **self.params['whr'])
        self.os_provider = os_provider
        self.players: Dict[str, Player] = {}
        self.games: List[Game] = []
        self.participations: Dict[str, List[Participation]] = {}
        self.whr_result = WHRResult()
        self._games_played: Dict[str, int] = {}
        self._lock = threading.RLock()

    def add_player(self, player_id: str, name: Optional[str] = None) -> Player:
        with self._lock:
            if player_id in self.players:
                raise ValidationError(f'player {player_id} already exists')
            player = Player(
                id=player_id,
                name=name or player_id,
                elo_rating=self.elo.initial_rating,
                cf_rating=self.cf.initial_rating,
                whr_rating=self.whr.initial_rating,
                os=None if self.os_provider is None else self.os_provider.initial_state(),
            )
            self.players[player_id] = player
            self._games_played[player_id] = 0
            return player

    def games_played(self, player_id: str) -> int:
        """number of recorded games the player took part in"""
        with self._lock:
            return self._games_played.get(player_id, 0)

    def submit_game(
        self,
        eliminations: Iterable[Tuple[str, int]],
        played_at: Optional[datetime] = None,
        game_id: Optional[str] = None,
    ) -> Game:
        """
        Records one game and updates every model.

        Parameters:
            eliminations: ordered (player_id, elimination_index) pairs; a player may appear several times.
            played_at (datetime, optional): defaults to now. Cannot be earlier than the latest recorded game,
                                            past games are inserted with replay().
            game_id (str, optional): defaults to a random uuid.

        Returns:
            Game
        """
        with self._lock:
            game = self._record_game(eliminations, played_at, game_id)
            self.recompute_whr()
            return game

    def _record_game(self, eliminations, played_at, game_id) -> Game:
        played_at = played_at or datetime.now(timezone.utc)
        game_id = game_id or str(uuid.uuid4())
        try:
            standings = normalize_rankings(eliminations)
            self._validate(game_id, played_at, standings)
        except ValidationError as exc:
            logger.warning('rejected game %s: %s', game_id, exc)
            raise

        snapshots = {model: {} for model in MODELS}
        changes = self._single_game_changes(standings)
        for res in standings:
            player = self.players[res.player_id]
            snapshots['elo'][res.player_id] = Snapshot.from_change(player.elo_rating, changes['elo'][res.player_id])
            snapshots['cf'][res.player_id] = Snapshot.from_change(player.cf_rating, changes['cf'][res.player_id])
            if 'os' in changes:
                snapshots['os'][res.player_id] = Snapshot.from_change(player.os_rating, changes['os'][res.player_id])

        # nothing is mutated before this point
        game = Game(id=game_id, played_at=played_at, total_players=len(standings))
        self.participations[game.id] = [
            Participation(
                game_id=game.id,
                player_id=res.player_id,
                raw_positions=res.raw_positions,
                normalized_position=res.normalized_position,
                snapshots={model: snapshots[model].get(res.player_id) for model in MODELS},
            )
            for res in standings
        ]
        self.games.append(game)
        for res in standings:
            player = self.players[res.player_id]
            player.elo_rating = snapshots['elo'][res.player_id].after
            player.cf_rating = snapshots['cf'][res.player_id].after
            self._games_played[res.player_id] += 1
            if 'os' in changes:
                player.os = changes['os_state'][res.player_id]
        logger.info(
            'recorded game %s at %s with %d players', game.id, played_at.isoformat(), len(standings)
        )
        return game

    def _validate(self, game_id: str, played_at: datetime, standings: List[NormalizedResult]):
        if not isinstance(played_at, datetime):
            raise ValidationError(f'invalid timestamp {played_at!r}')
        if game_id in self.participations:
            raise ValidationError(f'game {game_id} already exists')
        unknown = [res.player_id for res in standings if res.player_id not in self.players]
        if unknown:
            raise ValidationError(f'unknown player ids: {unknown}')
        if self.games and to_utc(played_at) < to_utc(self.games[-1].played_at):
            raise ValidationError(
                f'game {game_id} at {played_at.isoformat()} is older than the latest recorded game, use replay()'
            )

    def _single_game_changes(self, standings: List[NormalizedResult]) -> dict:
        """runs every single-game model on the game; models share no state"""
        changes = {}
        for model in (self.elo, self.cf):
            prior = {
                res.player_id: RatingState(
                    rating=self.players[res.player_id].rating(model.name),
                    games_played=self.games_played(res.player_id),
                )
                for res in standings
            }
            _, changes[model.name] = model.apply_game(prior, standings)
        if self.os_provider is not None:
            prior = {res.player_id: self.players[res.player_id].os for res in standings}
            changes['os_state'], changes['os'] = self.os_provider.apply_game(prior, standings)
        return changes

    def history(self) -> List[HistoryGame]:
        with self._lock:
            return [
                HistoryGame(game_id=game.id, played_at=game.played_at, participants=tuple(self.participations[game.id]))
                for game in self.games
            ]

    def recompute_whr(self) -> WHRResult:
        """
        Refits the whole-history model from scratch and rewrites the WHR snapshot of every
        participation. A numerical failure is logged and leaves the previous WHR columns in place.
        """
        with self._lock:
            try:
                result = self.whr.fit(self.history())
            except ArithmeticError:
                logger.exception('whr recomputation failed, keeping previous whr ratings')
                return self.whr_result

            for game in self.games:
                snapshot = result.game_snapshots[game.id]
                changes = result.game_changes[game.id]
                for part in self.participations[game.id]:
                    after = snapshot[part.player_id]
                    change = changes[part.player_id]
                    part.snapshots['whr'] = Snapshot(before=after - change, after=after, change=change)
            for player_id, rating in result.player_ratings.items():
                self.players[player_id].whr_rating = rating
            self.whr_result = result
            return result

    @classmethod
    def replay(
        cls,
        games: Iterable[RecordedGame],
        players: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Mapping]] = None,
        os_provider: Optional[ExternalRatingProvider] = None,
    ) -> 'League':
        """
        Rebuilds a league from scratch by processing a history in timestamp order, with every
        rating reset to its initial value.

        Parameters:
            games: recorded games in any order, e.g. an EliminationDataset.
            players (Mapping, optional): player id to display name. Players missing from it are added on first sight.
            params (Mapping, optional): per model parameter overrides.
            os_provider (ExternalRatingProvider, optional): provider for the library backed Bayesian model.
        """
        league = cls(params=params, os_provider=os_provider)
        for player_id, name in (players or {}).items():
            league.add_player(player_id, name)
        with league._lock:
            for game in sorted(games, key=lambda game: to_utc(game.played_at)):
                for player_id, _ in game.eliminations:
                    if player_id not in league.players:
                        league.add_player(player_id)
                league._record_game(game.eliminations, game.played_at, game.game_id)
            league.recompute_whr()
        return league

    def standings(self, model: str = 'elo') -> List[Player]:
        with self._lock:
            rated = [player for player in self.players.values() if player.rating(model) is not None]
            return sorted(rated, key=lambda player: -player.rating(model))

    def print_leaderboard(self, model: str = 'elo', num_places: Optional[int] = None):
        with self._lock:
            ranked = self.standings(model)[:num_places]
            max_len = min(max([len(player.name) for player in ranked] + [10]), 25)
            print(f'{"player": <{max_len}}\t{model}\tgames')
            for player in ranked:
                print(f'{player.name: <{max_len}}\t{player.rating(model)}\t{self.games_played(player.id)}')

    def results_frame(self) -> pl.DataFrame:
        """one row per participation with before, after and change columns for every model"""
        rows = []
        with self._lock:
            for game in self.games:
                for part in self.participations[game.id]:
                    row = {
                        'game_id': game.id,
                        'played_at': to_utc(game.played_at).replace(tzinfo=None),
                        'player_id': part.player_id,
                        'raw_positions': list(part.raw_positions),
                        'normalized_position': part.normalized_position,
                    }
                    for model in MODELS:
                        snap = part.snapshots.get(model)
                        row[f'{model}_before'] = None if snap is None else snap.before
                        row[f'{model}_after'] = None if snap is None else snap.after
                        row[f'{model}_change'] = None if snap is None else snap.change
                    rows.append(row)
        schema = {
            'game_id': pl.Utf8,
            'played_at': pl.Datetime('us'),
            'player_id': pl.Utf8,
            'raw_positions': pl.List(pl.Int64),
            'normalized_position': pl.Float64,
        }
        schema.update({f'{model}_{col}': pl.Int64 for model in MODELS for col in ('before', 'after', 'change')})
        return pl.DataFrame(rows, schema=schema)
