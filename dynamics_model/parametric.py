import logging
from typing import Callable, Optional, Sequence, Tuple
import numpy as np

from .base import DynamicsModel, Observation, assemble_dataset, check_query
from .data_io import save_text
from .errors import FitFailure, InvalidInput, NotFitted
from .mean_functions import LinearMean
from .optimizer import ScipyOptimizer, no_grad

logger = logging.getLogger(__name__)


class ParametricMeanModel(DynamicsModel):
    """
    Deterministic baseline: one multi-output parametric mean function fit jointly
    on all observations by minimizing the summed squared residual.
    predict() reports zero uncertainty.
    """

    def __init__(self,
                 mean_factory: Callable[[int, int], object] = LinearMean,
                 optimizer: Optional[Callable] = None):
        self.mean_factory = mean_factory
        self.optimizer = optimizer if optimizer is not None else ScipyOptimizer()

        self._mean = None
        self._samples: Optional[np.ndarray] = None
        self._observations: Optional[np.ndarray] = None
        self._fitted = False

    @property
    def is_fitted(self) -> bool:
        return self._fitted

    @property
    def mean_function(self):
        if not self._fitted:
            raise NotFitted("learn() must be called before reading the mean function")
        return self._mean

    def learn(self, observations: Sequence[Observation], only_limits: bool = False) -> None:
        # only_limits is accepted for interface symmetry; no statistics are tracked here
        X, Y = assemble_dataset(observations)

        mean = self._mean
        if mean is None:
            mean = self.mean_factory(X.shape[1], Y.shape[1])
        elif (mean.in_dim, mean.out_dim) != (X.shape[1], Y.shape[1]):
            raise InvalidInput(
                f"observations have dims {(X.shape[1], Y.shape[1])}, model uses {(mean.in_dim, mean.out_dim)}"
            )

        objective = self._objective(mean, X, Y)
        best_params = self.optimizer(objective, mean.h_params(), False)
        best_params = np.asarray(best_params, dtype=float)
        if not np.all(np.isfinite(best_params)):
            raise FitFailure("mean function optimization produced non-finite parameters")

        logger.info(f"Mean: {np.array2string(best_params, precision=4)}")

        # commit
        mean.set_h_params(best_params)
        self._mean = mean
        self._samples = X
        self._observations = Y
        self._fitted = True

    def _objective(self, mean, X: np.ndarray, Y: np.ndarray):
        """Negative summed squared error over all samples and output dimensions."""
        scratch = self.mean_factory(mean.in_dim, mean.out_dim)
        has_grad = hasattr(scratch, 'grad')

        def objective(params: np.ndarray, eval_grad: bool = False):
            scratch.set_h_params(params)
            mse = 0.0
            grad = np.zeros_like(params) if eval_grad and has_grad else None
            for x, y in zip(X, Y):
                diff = scratch(x) - y
                mse += diff.dot(diff)
                if grad is not None:
                    grad += 2.0 * scratch.grad(x).T @ diff
            if grad is None:
                return no_grad(-mse)
            return -mse, -grad

        return objective

    def predict(self, x: Sequence[float], _: bool = False) -> Tuple[np.ndarray, np.ndarray]:
        if not self._fitted:
            raise NotFitted("learn() must be called before predict()")
        x = check_query(x, self._mean.in_dim)
        mu = np.asarray(self._mean(x), dtype=float)
        return mu, np.zeros(mu.size)

    def h_params(self) -> np.ndarray:
        return self.mean_function.h_params()

    def samples(self) -> np.ndarray:
        if not self._fitted:
            raise NotFitted("learn() must be called before reading samples")
        return self._samples.copy()

    def observations(self) -> np.ndarray:
        if not self._fitted:
            raise NotFitted("learn() must be called before reading observations")
        return self._observations.copy()

    def save_data(self, filename: str) -> None:
        save_text(filename, self.samples(), self.observations())
