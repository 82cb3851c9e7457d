"""Classes and functions for working with elimination game histories"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Sequence, Tuple

import polars as pl

from elimix.core.errors import ValidationError
from elimix.models.whr import HistoryGame
from elimix.normalize import NormalizedResult, normalize_rankings
from elimix.utils.date_utils import to_utc


@dataclass(frozen=True)
class RecordedGame:
    """a game with its raw elimination events and their normalized standings"""

    game_id: str
    played_at: datetime
    eliminations: Tuple[Tuple[str, int], ...]
    standings: Tuple[NormalizedResult, ...]

    def to_history_game(self) -> HistoryGame:
        return HistoryGame(game_id=self.game_id, played_at=self.played_at, participants=self.standings)


class EliminationDataset:
    """
    Chronologically ordered history of elimination games, built from one row per elimination
    event. A player eliminated several times in one game has several rows for that game.
    """

    def __init__(
        self,
        df: pl.DataFrame,
        game_col: str = 'game_id',
        datetime_col: str = 'played_at',
        player_col: str = 'player_id',
        index_col: str = 'elimination_index',
        verbose: bool = False,
    ):
        missing = [col for col in (game_col, datetime_col, player_col, index_col) if col not in df.columns]
        if missing:
            raise ValidationError(f'missing columns: {missing}')
        if df[datetime_col].dtype == pl.Utf8:
            df = df.with_columns(pl.col(datetime_col).str.to_datetime())
        elif df[datetime_col].dtype == pl.Date:
            df = df.with_columns(pl.col(datetime_col).cast(pl.Datetime))

        grouped = (
            df.with_columns(pl.col(game_col).cast(pl.Utf8), pl.col(player_col).cast(pl.Utf8))
            .group_by(game_col, maintain_order=True)
            .agg(
                pl.col(datetime_col).n_unique().alias('n_timestamps'),
                pl.col(datetime_col).first(),
                pl.col(player_col),
                pl.col(index_col),
            )
        )
        conflicting = grouped.filter(pl.col('n_timestamps') > 1)[game_col].to_list()
        if conflicting:
            raise ValidationError(f'games with more than one timestamp: {conflicting}')

        games = []
        for row in grouped.iter_rows(named=True):
            eliminations = tuple(zip(row[player_col], row[index_col]))
            games.append(self.make_game(row[game_col], row[datetime_col], eliminations))
        self.games = self.sort_games(games)
        self._init_competitors()
        if verbose:
            self._print_stats()

    @staticmethod
    def make_game(game_id: str, played_at: datetime, eliminations: Sequence[Tuple[str, int]]) -> RecordedGame:
        if not isinstance(played_at, datetime):
            raise ValidationError(f'game {game_id} has no valid timestamp: {played_at!r}')
        eliminations = tuple(eliminations)
        return RecordedGame(
            game_id=game_id,
            played_at=played_at,
            eliminations=eliminations,
            standings=tuple(normalize_rankings(eliminations)),
        )

    @staticmethod
    def sort_games(games: List[RecordedGame]) -> List[RecordedGame]:
        """the timestamp is the only ordering key; sorted() keeps input order for equal timestamps"""
        return sorted(games, key=lambda game: to_utc(game.played_at))

    def _init_competitors(self):
        competitors = {res.player_id for game in self.games for res in game.standings}
        self.competitors = sorted(competitors)
        self.num_competitors = len(self.competitors)

    def _print_stats(self):
        print('Loaded dataset with:')
        print(f'{len(self)} games')
        print(f'{sum(len(game.eliminations) for game in self.games)} eliminations')
        print(f'{self.num_competitors} unique competitors')

    @classmethod
    def from_finishing_lists(cls, finishing_lists: Sequence[Tuple[str, datetime, Sequence[str]]]):
        """
        Builds a dataset from (game_id, played_at, finishing list) triples where the list holds player ids and the
        list index is the elimination index, the format history is seeded in.
        """
        dataset = cls.__new__(cls)
        games = []
        for game_id, played_at, finishing_order in finishing_lists:
            game = cls.make_game(game_id, played_at, [(pid, idx + 1) for idx, pid in enumerate(finishing_order)])
            games.append(game)
        dataset.games = cls.sort_games(games)
        dataset._init_competitors()
        return dataset

    def to_frame(self) -> pl.DataFrame:
        """one row per player per game with the normalized position"""
        rows = [
            {
                'game_id': game.game_id,
                'played_at': game.played_at,
                'player_id': res.player_id,
                'normalized_position': res.normalized_position,
                'raw_positions': list(res.raw_positions),
            }
            for game in self.games
            for res in game.standings
        ]
        return pl.DataFrame(rows)

    def history(self) -> List[HistoryGame]:
        return [game.to_history_game() for game in self.games]

    def __len__(self):
        return len(self.games)

    def __iter__(self) -> Iterator[RecordedGame]:
        return iter(self.games)

    def __getitem__(self, key):
        if isinstance(key, slice):
            dataset = self.__class__.__new__(self.__class__)
            dataset.games = self.games[key]
            dataset._init_competitors()
            return dataset
        raise ValueError('Only slice indexing supported')


def split_dataset(dataset: EliminationDataset, test_fraction: float = 0.2):
    """chronological split, every test game is played after every train game"""
    split_idx = round(len(dataset) * (1.0 - test_fraction))
    return dataset[:split_idx], dataset[split_idx:]
