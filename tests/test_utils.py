import numpy as np
import pytest
from elimix.configs import DEFAULT_PARAMS, merge_params
from elimix.core.errors import RatingRangeError
from elimix.utils.date_utils import get_duration
from elimix.utils.math_utils import check_finite, expected_score, k_factor, log_to_display, round_deltas


def test_k_factor_curve():
    assert k_factor(0) == pytest.approx(32.0)
    assert k_factor(20) == pytest.approx(22.0, abs=0.2)
    ks = k_factor(np.arange(0, 300))
    assert np.all(np.diff(ks) < 0)
    assert np.all(ks > 16.0)
    assert k_factor(1000) == pytest.approx(16.0)
    with pytest.raises(ValueError):
        k_factor(-1)


def test_expected_score():
    assert expected_score(1000, 1000) == pytest.approx(0.5)
    assert expected_score(1200, 1100) == pytest.approx(1.0 / (1.0 + 10.0 ** (-0.25)))
    assert expected_score(1100, 1200) + expected_score(1200, 1100) == pytest.approx(1.0)


def test_log_to_display():
    assert log_to_display(0.0) == 1000
    assert log_to_display(np.log(10.0)) == 1400
    assert log_to_display(-np.log(10.0) / 2.0) == 800


def test_rounding_and_range_checks():
    np.testing.assert_array_equal(round_deltas(np.array([0.5, 1.5, -2.5, 3.49])), [0, 2, -2, 3])
    with pytest.raises(RatingRangeError):
        round_deltas(np.array([1.0, np.nan]))
    with pytest.raises(RatingRangeError):
        check_finite([np.inf])


def test_get_duration():
    assert get_duration('12H') == 12 * 3600
    assert get_duration('1W') == 7 * 24 * 3600
    assert get_duration('0.5d') == 12 * 3600
    with pytest.raises(ValueError):
        get_duration('soon')


def test_merge_params():
    params = merge_params({'whr': {'w2': 0.1}})
    assert params['whr']['w2'] == 0.1
    assert params['whr']['iterations'] == DEFAULT_PARAMS['whr']['iterations']
    assert DEFAULT_PARAMS['whr']['w2'] == 0.3
    with pytest.raises(ValueError):
        merge_params({'whr': {'sweeps': 3}})
