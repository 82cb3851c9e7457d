"""default parameters for every rating model, overridable per league"""
from copy import deepcopy
from typing import Mapping, Optional
from elimix.utils.constants import K_DECAY_RATE, K_MAX, K_MIN, OS_MU, OS_SIGMA

rating_systems = ['elo', 'cf', 'whr', 'os']

DEFAULT_PARAMS = {
    'elo': {
        'initial_rating': 1000,
        'k_min': K_MIN,
        'k_max': K_MAX,
        'k_decay': K_DECAY_RATE,
    },
    'cf': {
        'initial_rating': 1000,
        'k_min': K_MIN,
        'k_max': K_MAX,
        'k_decay': K_DECAY_RATE,
    },
    'whr': {
        # variance per day of the wiener process in natural log units,
        # 0.3 allows roughly 95 display points of drift per day
        'w2': 0.3,
        'iterations': 100,
        'min_gap': 0.5,
        # newton steps are skipped unless the hessian is below -hessian_threshold
        'hessian_threshold': 1e-6,
    },
    'os': {
        'initial_mu': OS_MU,
        'initial_sigma': OS_SIGMA,
    },
}


def merge_params(overrides: Optional[Mapping[str, Mapping]] = None) -> dict:
    """defaults with per model overrides applied on top"""
    params = deepcopy(DEFAULT_PARAMS)
    for system, system_params in (overrides or {}).items():
        if system not in params:
            raise ValueError(f'unknown rating system: {system}, expected one of {rating_systems}')
        unknown = set(system_params) - set(params[system])
        if unknown:
            raise ValueError(f'unknown parameters for {system}: {sorted(unknown)}')
        params[system].update(system_params)
    return params
