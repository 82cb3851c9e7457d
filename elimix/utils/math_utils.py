"""math utility functions for rating systems"""
import numpy as np
from scipy.special import expit
from elimix.core.errors import RatingRangeError
from elimix.utils.constants import ALPHA, DISPLAY_CENTER, K_DECAY_RATE, K_MAX, K_MIN, LOG_TO_DISPLAY


def sigmoid(x):
    """a little faster than implementing it in numpy for d < 100000"""
    return expit(x)


def expected_score(rating, opponent_rating):
    """probability that a player rated rating beats one rated opponent_rating on the 400 point logistic scale"""
    return sigmoid(ALPHA * (np.asarray(rating, dtype=np.float64) - opponent_rating))


def k_factor(games_played, k_min=K_MIN, k_max=K_MAX, decay=K_DECAY_RATE):
    """
    Exponentially decaying K-factor: K(n) = k_min + (k_max - k_min) * e^(-n / decay)

    0 games -> 32, 10 -> 26, 20 -> 22, 50 -> 17, 100 -> 16 with the defaults.
    Works on scalars and numpy arrays.
    """
    games_played = np.asarray(games_played, dtype=np.float64)
    if np.any(games_played < 0):
        raise ValueError('games played cannot be negative')
    return k_min + (k_max - k_min) * np.exp(-games_played / decay)


def log_to_display(r):
    """map a natural log strength onto the 1000 centered display scale"""
    return int(round(DISPLAY_CENTER + r * LOG_TO_DISPLAY))


def round_deltas(deltas: np.ndarray) -> np.ndarray:
    """round half to even, the one rounding rule used for every model"""
    check_finite(deltas, 'rating delta')
    return np.rint(deltas).astype(np.int64)


def check_finite(values, what: str = 'rating'):
    """a non-finite rating is a bug in an update rather than a data issue"""
    values = np.asarray(values, dtype=np.float64)
    if not np.all(np.isfinite(values)):
        raise RatingRangeError(f'{what} is not finite: {values}')
