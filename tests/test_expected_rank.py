import numpy as np
import pytest
from elimix.core.base import GameEntry, RatingState
from elimix.models.expected_rank import ExpectedRank
from elimix.normalize import normalize_rankings


def entries_for(ratings, positions, games_played=0):
    return [
        GameEntry(id=f'p{idx}', rating=rating, games_played=games_played, normalized_position=position)
        for idx, (rating, position) in enumerate(zip(ratings, positions))
    ]


def test_expected_ranks():
    model = ExpectedRank()
    expected = model.expected_ranks(np.array([1100.0, 1000.0]))
    p_weaker_wins = 1.0 / (1.0 + 10.0 ** (100.0 / 400.0))
    assert expected[0] == pytest.approx(1.0 + p_weaker_wins)
    assert expected[1] == pytest.approx(2.0 - p_weaker_wins)
    # in an even field everyone is expected to finish in the middle
    np.testing.assert_allclose(model.expected_ranks(np.full(5, 1000.0)), 3.0)


def test_even_field_changes():
    changes = ExpectedRank().rating_changes(entries_for([1000] * 4, [1, 2, 3, 4]))
    assert changes == {'p0': 48, 'p1': 16, 'p2': -16, 'p3': -48}


def test_beating_expectation_is_positive():
    model = ExpectedRank()
    # the weakest player finishing second beats an expected rank close to 4
    changes = model.rating_changes(entries_for([1300, 1200, 1100, 900], [1, 3, 4, 2]))
    assert changes['p3'] > 0
    assert changes['p2'] < 0


def test_tied_players_are_treated_alike():
    changes = ExpectedRank().rating_changes(entries_for([1000] * 4, [1, 2.5, 2.5, 4]))
    assert changes['p1'] == changes['p2'] == 0
    assert changes['p0'] == -changes['p3']


def test_tie_scores_half_between_unequal_players():
    model = ExpectedRank()
    ratings = [1250, 1100, 980, 870]
    tied = model.raw_changes(entries_for(ratings, [1, 2.5, 2.5, 4]))
    forward = model.raw_changes(entries_for(ratings, [1, 2, 3, 4]))
    swapped = model.raw_changes(entries_for(ratings, [1, 3, 2, 4]))
    np.testing.assert_allclose(tied, (forward + swapped) / 2.0)
    assert tied[1] != tied[2]
