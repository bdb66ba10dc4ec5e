from .base import DynamicsModel, ScalarRegressor, assemble_dataset
from .config import build_model, load_config, save_config
from .ensemble import EnsembleDynamicsModel
from .errors import (DimensionFitFailure, DimensionOutcome, DynamicsModelError, FitFailure,
                     InvalidInput, NotFitted)
from .gp import ExactGP
from .mean_functions import ConstantMean, LinearMean
from .nn import DropoutNN
from .optimizer import ScipyOptimizer
from .parametric import ParametricMeanModel
from .statistics import FeatureStatistics, compute_statistics

__all__ = [
    'DynamicsModel', 'ScalarRegressor', 'assemble_dataset',
    'build_model', 'load_config', 'save_config',
    'EnsembleDynamicsModel', 'ParametricMeanModel',
    'ExactGP', 'DropoutNN', 'LinearMean', 'ConstantMean', 'ScipyOptimizer',
    'FeatureStatistics', 'compute_statistics',
    'DynamicsModelError', 'InvalidInput', 'NotFitted', 'FitFailure',
    'DimensionFitFailure', 'DimensionOutcome',
]
