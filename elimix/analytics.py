"""statistical helpers used to describe rating distributions and rating trends"""
from typing import Sequence, Tuple
import numpy as np
from scipy.stats import linregress, norm, pearsonr


def normal_pdf(x, mu: float, sigma: float):
    """density of Normal(mu, sigma) at x, works on scalars and arrays"""
    if sigma <= 0.0:
        raise ValueError('sigma must be positive')
    return norm.pdf(x, loc=mu, scale=sigma)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation coefficient of two equally long sequences.
    Returns 0.0 when the sequences are shorter than two values, of different lengths, or either one is constant.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape != y.shape or x.size < 2:
        return 0.0
    if np.all(x == x[0]) or np.all(y == y[0]):
        return 0.0
    return float(pearsonr(x, y)[0])


def linear_regression(x: Sequence[float], y: Sequence[float]) -> Tuple[float, float]:
    """
    Least squares fit of y = m * x + b, returned as (m, b).
    Mismatched or empty input gives (0, 0); a constant x gives a flat line through the mean of y.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape != y.shape or x.size == 0:
        return 0.0, 0.0
    if np.all(x == x[0]):
        return 0.0, float(y.mean())
    fit = linregress(x, y)
    return float(fit.slope), float(fit.intercept)
