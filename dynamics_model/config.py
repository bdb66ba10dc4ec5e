"""
YAML configuration for the dynamics models
"""
import copy
import os
from functools import partial
from typing import Optional
import yaml

from .ensemble import EnsembleDynamicsModel
from .errors import InvalidInput
from .gp import ExactGP
from .mean_functions import ConstantMean, LinearMean
from .nn import DropoutNN
from .optimizer import ScipyOptimizer
from .parametric import ParametricMeanModel
from .utils import set_seed

DEFAULT_CONFIG = {
    'seed': 42,

    'model': {
        'type': 'ensemble',
        'pred_dim': None,
        'regressor': 'gp',
        'noise': 0.01,
        'n_jobs': -1,
        'data_file': 'gp_model_data.bin'
    },

    'gp': {
        'lengthscale': 1.0,
        'variance': 1.0,
        'noise_variance': 0.01,
        'restarts': 3,
        'max_iter': 200,
        'log_bounds': [-7.0, 7.0]
    },

    'nn': {
        'hidden': [64, 64],
        'lr': 1e-3,
        'dropout': 0.1,
        'epochs': 200,
        'batch_size': 32,
        'patience': 20,
        'mc_passes': 20,
        'device': 'cpu'
    },

    'parametric': {
        'mean': 'linear'
    },

    'optimizer': {
        'method': 'L-BFGS-B',
        'max_iter': 500,
        'tol': 1e-10
    }
}

MEAN_FUNCTIONS = {
    'linear': LinearMean,
    'constant': ConstantMean,
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from file, filling missing keys with the defaults"""
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    with open(config_path, 'r') as f:
        return _merge(DEFAULT_CONFIG, yaml.safe_load(f) or {})


def save_config(config: dict, save_path: str):
    """Save configuration to file"""
    os.makedirs(os.path.dirname(os.path.abspath(save_path)), exist_ok=True)
    with open(save_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, indent=2)


def build_regressor_factory(config: dict):
    kind = config['model']['regressor']
    if kind == 'gp':
        gp = config['gp']
        return partial(ExactGP,
                       lengthscale=gp['lengthscale'],
                       variance=gp['variance'],
                       noise_variance=gp['noise_variance'],
                       restarts=gp['restarts'],
                       max_iter=gp['max_iter'],
                       log_bounds=tuple(gp['log_bounds']),
                       seed=config['seed'])
    if kind == 'nn':
        nn = config['nn']
        return partial(DropoutNN,
                       hidden=tuple(nn['hidden']),
                       lr=nn['lr'],
                       dropout=nn['dropout'],
                       epochs=nn['epochs'],
                       batch_size=nn['batch_size'],
                       patience=nn['patience'],
                       mc_passes=nn['mc_passes'],
                       seed=config['seed'],
                       device=nn['device'])
    raise InvalidInput(f"unknown regressor type: {kind}")


def build_model(config: Optional[dict] = None):
    """Create the dynamics model described by `config` (defaults when None)"""
    config = _merge(DEFAULT_CONFIG, config or {})
    set_seed(config['seed'])

    model_cfg = config['model']
    if model_cfg['type'] == 'ensemble':
        return EnsembleDynamicsModel(pred_dim=model_cfg['pred_dim'],
                                     regressor_factory=build_regressor_factory(config),
                                     noise=model_cfg['noise'],
                                     n_jobs=model_cfg['n_jobs'],
                                     data_file=model_cfg['data_file'])
    if model_cfg['type'] == 'parametric':
        mean = config['parametric']['mean']
        if mean not in MEAN_FUNCTIONS:
            raise InvalidInput(f"unknown mean function: {mean}")
        opt = config['optimizer']
        return ParametricMeanModel(mean_factory=MEAN_FUNCTIONS[mean],
                                   optimizer=ScipyOptimizer(method=opt['method'],
                                                            max_iter=opt['max_iter'],
                                                            tol=opt['tol']))
    raise InvalidInput(f"unknown model type: {model_cfg['type']}")
