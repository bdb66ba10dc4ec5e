import logging
from typing import Callable, List, Optional, Sequence, Tuple
import numpy as np
from joblib import Parallel, delayed

from .base import DynamicsModel, Observation, ScalarRegressor, assemble_dataset, check_query
from .data_io import join_dataset, save_text, write_binary
from .errors import DimensionFitFailure, DimensionOutcome, InvalidInput, NotFitted
from .gp import ExactGP
from .statistics import FeatureStatistics, compute_statistics

logger = logging.getLogger(__name__)


def _fit_dimension(dim: int, regressor: ScalarRegressor, samples: List[np.ndarray],
                   observations: List[np.ndarray], noises: Optional[np.ndarray]) -> DimensionOutcome:
    """Fit one output dimension; the failure is reported, not raised, so the other dimensions still complete."""
    try:
        regressor.compute(samples, observations, noises)
        regressor.optimize_hyperparams()
    except Exception as e:
        logger.warning(f"Fit of output dimension {dim} failed: {e!r}")
        return DimensionOutcome(dim=dim, ok=False, error=e)
    return DimensionOutcome(dim=dim, ok=True, regressor=regressor)


class EnsembleDynamicsModel(DynamicsModel):
    """
    Vector-valued dynamics model made of one independent ScalarRegressor per output dimension.
    - learn(): fits every dimension in parallel on the same samples and its own outcome column
    - predict(x): (mean (pred_dim,), mean of the per-dimension variances)
    - predictm(x): (mean (pred_dim,), var (pred_dim,))
    A model instance must not be used from several threads at once; only the
    per-dimension work inside one call runs in parallel.
    """

    def __init__(self,
                 pred_dim: Optional[int] = None,
                 regressor_factory: Callable[[int], ScalarRegressor] = ExactGP,
                 noise: Optional[float] = 0.01,
                 n_jobs: int = -1,
                 data_file: Optional[str] = 'gp_model_data.bin'):
        self.pred_dim = pred_dim
        self.regressor_factory = regressor_factory
        self.noise = noise
        self.n_jobs = n_jobs
        self.data_file = data_file

        self._regressors: Optional[List[ScalarRegressor]] = None
        self._observations: Optional[np.ndarray] = None
        self._stats: Optional[FeatureStatistics] = None
        self._in_dim: Optional[int] = None
        # set when statistics were refreshed without refitting the regressors
        self.limits_stale = False

    @property
    def is_fitted(self) -> bool:
        return self._regressors is not None

    @property
    def regressors(self) -> List[ScalarRegressor]:
        self._check_fitted()
        return list(self._regressors)

    def _check_fitted(self) -> None:
        if self._regressors is None:
            raise NotFitted("learn() must be called before querying the model")

    def _parallel(self, n_tasks: int) -> Parallel:
        n_jobs = 1 if n_tasks == 1 else self.n_jobs
        return Parallel(n_jobs=n_jobs, prefer='threads')

    def learn(self, observations: Sequence[Observation], only_limits: bool = False) -> None:
        X, Y = assemble_dataset(observations)
        if self.pred_dim is not None and Y.shape[1] != self.pred_dim:
            raise InvalidInput(f"outcomes have size {Y.shape[1]}, expected {self.pred_dim}")
        if self._in_dim is not None and self.is_fitted and X.shape[1] != self._in_dim:
            raise InvalidInput(f"samples have size {X.shape[1]}, model was fitted on {self._in_dim}")

        stats = compute_statistics(X)
        if only_limits:
            self._stats = stats
            if self.is_fitted:
                logger.warning("Statistics updated without refitting; regressors are stale w.r.t. the new limits")
                self.limits_stale = True
            return

        if self.data_file:
            write_binary(self.data_file, join_dataset(X, Y))

        n, pred_dim = Y.shape
        logger.info(f"Ensemble samples: {n}")

        samples = [row for row in X]
        noises = None if self.noise is None else np.full(n, float(self.noise))
        regressors = [self.regressor_factory(X.shape[1]) for _ in range(pred_dim)]

        outcomes = self._parallel(pred_dim)(
            delayed(_fit_dimension)(i, regressors[i], samples, [np.array([v]) for v in Y[:, i]], noises)
            for i in range(pred_dim)
        )
        if not all(o.ok for o in outcomes):
            raise DimensionFitFailure(outcomes)

        # commit
        self._regressors = regressors
        self._observations = Y
        self._stats = stats
        self._in_dim = X.shape[1]
        self.pred_dim = pred_dim
        self.limits_stale = False

        for i, regressor in enumerate(regressors):
            p = np.asarray(regressor.h_params(), dtype=float).copy()
            if isinstance(regressor, ExactGP):
                # lengthscales, signal variance, noise variance
                p[:-2] = np.exp(p[:-2])
                p[-2:] = np.exp(2 * p[-2:])
                logger.info(f"Dimension {i} hyperparameters: {np.array2string(p, precision=4)}")
            else:
                logger.info(f"Dimension {i} fitted ({p.size} parameters)")

    def predict(self, x: Sequence[float]) -> Tuple[np.ndarray, float]:
        ms, ss = self.predictm(x)
        return ms, float(ss.mean())

    def predictm(self, x: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        self._check_fitted()
        x = check_query(x, self._in_dim)
        results = self._parallel(len(self._regressors))(
            delayed(r.query)(x) for r in self._regressors
        )
        ms = np.zeros(len(self._regressors))
        ss = np.zeros(len(self._regressors))
        for i, (m, s) in enumerate(results):
            ms[i] = np.asarray(m, dtype=float).ravel()[0]
            ss[i] = s
        return ms, ss

    def samples(self) -> np.ndarray:
        self._check_fitted()
        return np.asarray(self._regressors[0].samples(), dtype=float)

    def observations(self) -> np.ndarray:
        self._check_fitted()
        return self._observations.copy()

    def limits(self) -> np.ndarray:
        if self._stats is None:
            raise NotFitted("learn() must be called before reading limits")
        return self._stats.limits.copy()

    def means(self) -> np.ndarray:
        if self._stats is None:
            raise NotFitted("learn() must be called before reading statistics")
        return self._stats.means.copy()

    def sigmas(self) -> np.ndarray:
        if self._stats is None:
            raise NotFitted("learn() must be called before reading statistics")
        return self._stats.sigmas.copy()

    def save_data(self, filename: str) -> None:
        save_text(filename, self.samples(), self.observations())
