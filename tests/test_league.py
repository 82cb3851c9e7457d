import random
import threading
from datetime import datetime, timedelta, timezone
import pytest
from polars.testing import assert_frame_equal
from elimix.core.base import GameEntry
from elimix.core.errors import RatingRangeError, ValidationError
from elimix.league import League, MODELS
from elimix.metrics import evaluate_models
from elimix.models.elo import PairwiseElo
from elimix.models.openskill_adapter import ExternalRatingProvider, OSRating
from elimix.utils.data_utils import EliminationDataset

START = datetime(2026, 2, 5, 22, 46, tzinfo=timezone.utc)

FINISHING_LISTS = [
    ('g0', START, ['shashank', 'amay', 'kabeer', 'rohit', 'rishi', 'chetan', 'rohit', 'kabeer', 'rohit']),
    ('g1', START + timedelta(minutes=44), ['rohit', 'akshay', 'saurav', 'amay', 'farhan', 'rishi']),
    ('g2', START + timedelta(hours=14, minutes=34), ['rohit', 'kabeer', 'amay', 'saurav', 'chetan', 'akshay', 'rohit']),
    ('g3', START + timedelta(hours=15, minutes=4), ['rishi', 'akshay', 'chetan', 'saurav', 'amay', 'kabeer', 'kabeer']),
    ('g4', START + timedelta(days=3), ['amay', 'rohit', 'chetan', 'rishi']),
]


class RankShiftProvider(ExternalRatingProvider):
    def rate_teams(self, ratings, ranks):
        middle = (len(ranks) + 1) / 2.0
        return [OSRating(mu=r.mu + 0.5 * (middle - rank), sigma=r.sigma * 0.95) for r, rank in zip(ratings, ranks)]


def eliminations(finishing_order):
    return [(pid, idx + 1) for idx, pid in enumerate(finishing_order)]


def build_live(os_provider=None):
    league = League(os_provider=os_provider)
    for pid in sorted({pid for _, _, order in FINISHING_LISTS for pid in order}):
        league.add_player(pid)
    for game_id, played_at, order in FINISHING_LISTS:
        league.submit_game(eliminations(order), played_at=played_at, game_id=game_id)
    return league


def test_snapshots_are_consistent():
    league = build_live(os_provider=RankShiftProvider())
    frame = league.results_frame()
    assert frame.height == sum(len(set(order)) for _, _, order in FINISHING_LISTS)
    for model in MODELS:
        assert frame[f'{model}_after'].null_count() == 0
        assert (frame[f'{model}_before'] + frame[f'{model}_change'] == frame[f'{model}_after']).all()
    rohit = frame.filter((frame['game_id'] == 'g0') & (frame['player_id'] == 'rohit')).row(0, named=True)
    assert rohit['raw_positions'] == [4, 7, 9]
    assert rohit['normalized_position'] == pytest.approx(20.0 / 3.0)


def test_player_ratings_follow_snapshots():
    league = build_live()
    frame = league.results_frame()
    for pid, player in league.players.items():
        rows = frame.filter(frame['player_id'] == pid)
        assert player.elo_rating == rows['elo_after'][-1]
        assert player.cf_rating == rows['cf_after'][-1]
        assert player.whr_rating == rows['whr_after'][-1]
        assert player.os_rating is None


def test_games_played_is_derived_from_history():
    league = build_live()
    assert league.games_played('rohit') == 4
    assert league.games_played('farhan') == 1
    # the second game of the league uses K-factors from each player's recorded game count
    game = league.participations['g1']
    counts = {'rohit': 1, 'akshay': 0, 'saurav': 0, 'amay': 1, 'farhan': 0, 'rishi': 1}
    entries = [
        GameEntry(part.player_id, part.snapshots['elo'].before, counts[part.player_id], part.normalized_position)
        for part in game
    ]
    expected = PairwiseElo().rating_changes(entries)
    assert {part.player_id: part.snapshots['elo'].change for part in game} == expected


def test_games_played_counts_every_participation():
    league = build_live()
    frame = league.results_frame()
    for pid in league.players:
        assert league.games_played(pid) == frame.filter(frame['player_id'] == pid).height
    league.add_player('newcomer')
    assert league.games_played('newcomer') == 0
    assert league.games_played('stranger') == 0



def test_live_submission_matches_replay():
    live = build_live(os_provider=RankShiftProvider())
    shuffled = FINISHING_LISTS[:]
    random.Random(7).shuffle(shuffled)
    dataset = EliminationDataset.from_finishing_lists(shuffled)
    replayed = League.replay(dataset, os_provider=RankShiftProvider())
    assert_frame_equal(live.results_frame(), replayed.results_frame())
    assert {pid: p.elo_rating for pid, p in live.players.items()} == {
        pid: p.elo_rating for pid, p in replayed.players.items()
    }


def test_unknown_player_leaves_league_untouched():
    league = build_live()
    before = league.results_frame()
    ratings = {pid: (p.elo_rating, p.cf_rating, p.whr_rating) for pid, p in league.players.items()}
    with pytest.raises(ValidationError):
        league.submit_game([('rohit', 1), ('ghost', 2)], played_at=START + timedelta(days=10))
    assert_frame_equal(before, league.results_frame())
    assert ratings == {pid: (p.elo_rating, p.cf_rating, p.whr_rating) for pid, p in league.players.items()}


@pytest.mark.parametrize('bad_game', [[], [('rohit', 0), ('amay', 1)]])
def test_invalid_game_rejected(bad_game):
    league = build_live()
    with pytest.raises(ValidationError):
        league.submit_game(bad_game, played_at=START + timedelta(days=10))
    assert len(league.games) == len(FINISHING_LISTS)


def test_submission_older_than_history_rejected():
    league = build_live()
    with pytest.raises(ValidationError):
        league.submit_game([('rohit', 1), ('amay', 2)], played_at=START - timedelta(days=1))


def test_duplicate_game_and_player_rejected():
    league = build_live()
    with pytest.raises(ValidationError):
        league.submit_game([('rohit', 1), ('amay', 2)], played_at=START + timedelta(days=10), game_id='g0')
    with pytest.raises(ValidationError):
        league.add_player('rohit')


def test_whr_failure_keeps_other_models(monkeypatch):
    league = build_live()
    previous_whr = {pid: p.whr_rating for pid, p in league.players.items()}

    def broken_fit(games):
        raise RatingRangeError('whr rating is not finite')

    monkeypatch.setattr(league.whr, 'fit', broken_fit)
    game = league.submit_game([('rohit', 1), ('amay', 2)], played_at=START + timedelta(days=10))
    new_parts = league.participations[game.id]
    assert all(part.snapshots['elo'] is not None for part in new_parts)
    assert all(part.snapshots['whr'] is None for part in new_parts)
    assert previous_whr == {pid: p.whr_rating for pid, p in league.players.items()}


def test_params_are_passed_to_models():
    league = League(params={'elo': {'k_min': 16.0, 'k_max': 16.0}, 'whr': {'iterations': 5}})
    assert league.elo.k_max == 16.0
    assert league.whr.iterations == 5
    with pytest.raises(ValueError):
        League(params={'glicko': {}})


def test_print_leaderboard(capsys):
    league = build_live()
    league.print_leaderboard('elo', num_places=3)
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 4
    top = league.standings('elo')[0]
    assert lines[1].startswith(top.name)


def test_evaluate_models():
    league = build_live(os_provider=RankShiftProvider())
    metrics = evaluate_models(league.results_frame())
    assert set(metrics) == set(MODELS)
    for model_metrics in metrics.values():
        assert 0.0 <= model_metrics['accuracy'] <= 1.0
        assert model_metrics['log_loss'] > 0.0


def test_readers_wait_for_a_fully_recorded_game():
    league = build_live()
    errors = []
    frames = []
    readers = []

    def read_results():
        try:
            frames.append(league.results_frame())
        except Exception as exc:
            errors.append(exc)

    class SwitchingGames(list):
        def append(self, game):
            # hand control to a reader while the game is being recorded
            reader = threading.Thread(target=read_results)
            reader.start()
            reader.join(timeout=0.2)
            readers.append(reader)
            super().append(game)

    league.games = SwitchingGames(league.games)
    game = league.submit_game([('rohit', 1), ('amay', 2)], played_at=START + timedelta(days=10))
    for reader in readers:
        reader.join(timeout=5.0)
        assert not reader.is_alive()
    assert not errors
    assert len(frames) == 1
    new_rows = frames[0].filter(frames[0]['game_id'] == game.id)
    assert new_rows.height == 2
    assert new_rows['whr_after'].null_count() == 0
    assert_frame_equal(frames[0], league.results_frame())
