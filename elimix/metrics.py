"""module for computing how well pre-game ratings predicted game results"""

import numpy as np
import polars as pl
from elimix.utils.math_utils import expected_score


def binary_accuracy(probs: np.ndarray, outcomes: np.ndarray) -> float:
    """compute accuracy where outcomes is binary ties count for half"""
    pos_mask = probs > 0.5
    neg_mask = probs < 0.5
    draw_mask = probs == 0.5
    correct = outcomes[pos_mask].sum() + (1.0 - outcomes[neg_mask]).sum() + 0.5 * draw_mask.sum()
    return correct / probs.shape[0]


def binary_log_loss(probs: np.ndarray, outcomes: np.ndarray, eps: float = 1e-6) -> float:
    """compute log loss where outcome is 1.0, 0.0 or 0.5 for a draw"""
    probs = np.clip(probs, eps, 1 - eps)
    loss_array = -(np.log(probs) * outcomes) - (np.log(1.0 - probs) * (1.0 - outcomes))
    return loss_array.mean()


def brier_score(probs: np.ndarray, outcomes: np.ndarray) -> float:
    """compute the brier score, which is equivalent to the MSE"""
    return np.square(probs - outcomes).mean()


def pairwise_predictions(results: pl.DataFrame, model: str = 'elo'):
    """
    Expands every game of a League.results_frame() into its virtual two player matches and
    returns the win probability of the first player predicted from pre-game ratings, along
    with the actual outcome (1, 0 or 0.5 for equal normalized positions).
    """
    before_col = f'{model}_before'
    probs = []
    outcomes = []
    rated = results.filter(pl.col(before_col).is_not_null())
    for _, game in rated.group_by('game_id', maintain_order=True):
        ratings = game[before_col].to_numpy().astype(np.float64)
        positions = game['normalized_position'].to_numpy()
        idx_1, idx_2 = np.triu_indices(ratings.shape[0], k=1)
        probs.append(expected_score(ratings[idx_1], ratings[idx_2]))
        outcomes.append(0.5 * (np.sign(positions[idx_2] - positions[idx_1]) + 1.0))
    if not probs:
        return np.empty(0), np.empty(0)
    return np.concatenate(probs), np.concatenate(outcomes)


def binary_metrics_suite(probs: np.ndarray, outcomes: np.ndarray):
    """a wrapper for running a bunch of binary metrics"""
    metrics = {
        'accuracy': binary_accuracy(probs, outcomes),
        'log_loss': binary_log_loss(probs, outcomes),
        'brier_score': brier_score(probs, outcomes),
    }
    return metrics


def evaluate_models(results: pl.DataFrame, models=('elo', 'cf', 'whr', 'os')) -> dict:
    """metrics for every model that has pre-game ratings in the results frame"""
    metrics = {}
    for model in models:
        probs, outcomes = pairwise_predictions(results, model)
        if probs.shape[0] > 0:
            metrics[model] = binary_metrics_suite(probs, outcomes)
    return metrics
