import pytest
from elimix.core.errors import ValidationError
from elimix.normalize import normalize_finishing_list, normalize_rankings


def test_single_elimination_keeps_index():
    results = normalize_rankings([('a', 1), ('b', 2), ('c', 3)])
    assert [(res.player_id, res.normalized_position) for res in results] == [('a', 1.0), ('b', 2.0), ('c', 3.0)]
    assert all(len(res.raw_positions) == 1 for res in results)


def test_rejoins_are_averaged():
    results = normalize_rankings([('a', 9), ('b', 2), ('a', 1), ('c', 3), ('a', 7)])
    by_id = {res.player_id: res for res in results}
    assert by_id['a'].normalized_position == pytest.approx(17.0 / 3.0)
    assert by_id['a'].raw_positions == (1, 7, 9)
    # a repeated rejoiner lands strictly between their best and worst elimination
    assert 1 < by_id['a'].normalized_position < 9


def test_output_sorted_by_normalized_position():
    eliminations = [('d', 1), ('a', 2), ('c', 3), ('d', 4), ('b', 5), ('a', 6), ('e', 7)]
    positions = [res.normalized_position for res in normalize_rankings(eliminations)]
    assert positions == sorted(positions)


def test_ties_are_kept():
    results = normalize_rankings([('a', 1), ('b', 2), ('b', 3), ('a', 4), ('c', 5)])
    assert [res.player_id for res in results] == ['a', 'b', 'c']
    assert results[0].normalized_position == results[1].normalized_position == 2.5


def test_finishing_list_uses_list_index():
    results = normalize_finishing_list(['x', 'y', 'z', 'x'])
    by_id = {res.player_id: res for res in results}
    assert by_id['x'].normalized_position == 2.5
    assert by_id['y'].normalized_position == 2.0
    assert by_id['x'].raw_positions == (1, 4)


def test_empty_game_rejected():
    with pytest.raises(ValidationError):
        normalize_rankings([])


@pytest.mark.parametrize('bad_index', [0, -1, 1.5, '2', True])
def test_invalid_index_rejected(bad_index):
    with pytest.raises(ValidationError):
        normalize_rankings([('a', 1), ('b', bad_index)])
