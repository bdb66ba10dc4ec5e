import logging
import numpy as np
from typing import Sequence, Tuple, Optional, List
from scipy.linalg import cho_solve, solve_triangular
from scipy.optimize import minimize

from .base import ScalarRegressor, check_query
from .errors import FitFailure, InvalidInput, NotFitted

logger = logging.getLogger(__name__)

_JITTERS = (1e-8, 1e-6, 1e-4)


def rbf_kernel(X1: np.ndarray, X2: np.ndarray, lengthscales: np.ndarray, variance: float):
    """
    RBF kernel (squared exponential) with one lengthscale per input dimension.
    X1: [n1, d], X2: [n2, d]
    returns: [n1, n2]
    """
    X1 = X1 / lengthscales
    X2 = X2 / lengthscales
    # squared distance
    X1s = np.sum(X1**2, axis=1, keepdims=True)
    X2s = np.sum(X2**2, axis=1, keepdims=True)
    d2 = np.maximum(X1s - 2*X1.dot(X2.T) + X2s.T, 0.0)
    return variance * np.exp(-0.5 * d2)


class ExactGP(ScalarRegressor):
    """
    Exact GP for one output dimension.
    - squared exponential ARD kernel, constant prior mean (mean of training outputs)
    - hyperparameters in log space: [log l_1 .. log l_d, log sf, log sn]
    - optimize_hyperparams() maximizes the log marginal likelihood (L-BFGS-B, analytic gradient)
    Note: training cost is O(N^3) per likelihood evaluation.
    """

    def __init__(self,
                 in_dim: int,
                 lengthscale: float = 1.0,
                 variance: float = 1.0,
                 noise_variance: float = 1e-2,
                 restarts: int = 3,
                 max_iter: int = 200,
                 log_bounds: Tuple[float, float] = (-7.0, 7.0),
                 seed: int = 0):
        self.in_dim = in_dim
        self.restarts = restarts
        self.max_iter = max_iter
        self.log_bounds = log_bounds
        self.seed = seed

        self._params = np.concatenate([
            np.full(in_dim, np.log(lengthscale)),
            [0.5 * np.log(variance), 0.5 * np.log(noise_variance)],
        ])
        self.optimize_noise = True

        # Training data
        self.X = np.zeros((0, in_dim), dtype=float)
        self.y = np.zeros(0, dtype=float)
        self.noises = np.zeros(0, dtype=float)
        self.mean_value = 0.0

        # Precomputed factorization
        self.L = None      # cholesky of K + noise
        self.alpha = None  # solve(K + noise, y - mean)

    @property
    def lengthscales(self) -> np.ndarray:
        return np.exp(self._params[:self.in_dim])

    @property
    def signal_variance(self) -> float:
        return float(np.exp(2 * self._params[-2]))

    @property
    def noise_variance(self) -> float:
        return float(np.exp(2 * self._params[-1]))

    def h_params(self) -> np.ndarray:
        return self._params.copy()

    def set_h_params(self, params: Sequence[float]) -> None:
        params = np.asarray(params, dtype=float).ravel()
        if params.size != self.in_dim + 2:
            raise InvalidInput(f"expected {self.in_dim + 2} hyperparameters, got {params.size}")
        self._params = params.copy()
        if self.X.shape[0] > 0:
            self._factorize()

    def samples(self) -> List[np.ndarray]:
        return [row.copy() for row in self.X]

    def compute(self, samples: Sequence[np.ndarray], observations: Sequence[np.ndarray],
                noises: Optional[np.ndarray] = None, optimize_noise: bool = True) -> None:
        X = np.asarray([np.asarray(s, dtype=float).ravel() for s in samples], dtype=float)
        y = np.asarray([np.asarray(o, dtype=float).ravel()[0] for o in observations], dtype=float)
        if X.ndim != 2 or X.shape[0] == 0 or X.shape[1] != self.in_dim:
            raise InvalidInput(f"expected samples of size {self.in_dim}")
        if y.shape[0] != X.shape[0]:
            raise InvalidInput(f"got {X.shape[0]} samples but {y.shape[0]} observations")
        if noises is None:
            noises = np.zeros(X.shape[0])
        noises = np.asarray(noises, dtype=float).ravel()
        if noises.shape[0] != X.shape[0]:
            raise InvalidInput(f"got {X.shape[0]} samples but {noises.shape[0]} noise values")

        self.X = X
        self.y = y
        self.noises = noises
        self.mean_value = float(y.mean())
        self.optimize_noise = optimize_noise
        self._factorize()

    def _cov(self, params: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        ls = np.exp(params[:self.in_dim])
        sf2 = np.exp(2 * params[-2])
        sn2 = np.exp(2 * params[-1])
        Kf = rbf_kernel(self.X, self.X, ls, sf2)
        Ky = Kf + np.diag(sn2 + self.noises)
        return Kf, Ky

    def _cholesky(self, Ky: np.ndarray, warn: bool = False) -> np.ndarray:
        eye = np.eye(Ky.shape[0])
        for i, jitter in enumerate(_JITTERS):
            try:
                L = np.linalg.cholesky(Ky + jitter * eye)
                if warn and i > 0:
                    logger.warning(f"GP covariance needed jitter {jitter:g} to factorize")
                return L
            except np.linalg.LinAlgError:
                continue
        raise np.linalg.LinAlgError("covariance matrix is not positive definite")

    def _factorize(self) -> None:
        _, Ky = self._cov(self._params)
        try:
            L = self._cholesky(Ky, warn=True)
        except np.linalg.LinAlgError as e:
            raise FitFailure(f"GP factorization failed: {e}") from e
        self.L = L
        self.alpha = cho_solve((L, True), self.y - self.mean_value)

    def log_marginal_likelihood(self, params: np.ndarray, eval_grad: bool = False):
        """Returns (lml, grad) for log-space hyperparameters `params`; grad is None unless eval_grad."""
        n = self.X.shape[0]
        Kf, Ky = self._cov(params)
        L = self._cholesky(Ky)
        r = self.y - self.mean_value
        alpha = cho_solve((L, True), r)
        lml = -0.5 * r.dot(alpha) - np.sum(np.log(np.diag(L))) - 0.5 * n * np.log(2 * np.pi)
        if not eval_grad:
            return lml, None

        W = np.outer(alpha, alpha) - cho_solve((L, True), np.eye(n))
        grad = np.zeros_like(params)
        ls = np.exp(params[:self.in_dim])
        for d in range(self.in_dim):
            diff = (self.X[:, d:d+1] - self.X[:, d:d+1].T) / ls[d]
            grad[d] = 0.5 * np.sum(W * (Kf * diff**2))
        grad[-2] = np.sum(W * Kf)
        if self.optimize_noise:
            grad[-1] = np.exp(2 * params[-1]) * np.trace(W)
        return lml, grad

    def optimize_hyperparams(self) -> None:
        if self.L is None:
            raise NotFitted("compute() must be called before optimize_hyperparams()")

        def fun(params):
            try:
                lml, grad = self.log_marginal_likelihood(params, eval_grad=True)
            except np.linalg.LinAlgError:
                return 1e25, np.zeros_like(params)
            if not np.isfinite(lml):
                return 1e25, np.zeros_like(params)
            return -lml, -grad

        lo, hi = self.log_bounds
        bounds = [(lo, hi)] * self._params.size
        if not self.optimize_noise:
            bounds[-1] = (self._params[-1], self._params[-1])

        # deterministic restarts around the current hyperparameters
        rng = np.random.default_rng(self.seed)
        starts = [self._params.copy()]
        for _ in range(max(self.restarts - 1, 0)):
            start = np.clip(self._params + rng.uniform(-1.0, 1.0, self._params.size), lo, hi)
            if not self.optimize_noise:
                start[-1] = self._params[-1]
            starts.append(start)

        best_params, best_value = None, np.inf
        for start in starts:
            res = minimize(fun, start, jac=True, method='L-BFGS-B', bounds=bounds,
                           options={'maxiter': self.max_iter})
            if np.all(np.isfinite(res.x)) and np.isfinite(res.fun) and res.fun < best_value:
                best_params, best_value = res.x, res.fun

        if best_params is None or best_value >= 1e25:
            raise FitFailure("GP hyperparameter optimization did not find a finite likelihood")

        self._params = best_params
        self._factorize()

    def query(self, x: Sequence[float]) -> Tuple[np.ndarray, float]:
        if self.L is None:
            raise NotFitted("GP has no data")
        x_star = check_query(x, self.in_dim).reshape(1, -1)  # [1, in_dim]
        K_star = rbf_kernel(x_star, self.X, self.lengthscales, self.signal_variance)  # [1, N]

        mean = self.mean_value + (K_star @ self.alpha).ravel()  # shape (1,)
        # predictive variance: k_ss - k_star K^{-1} k_star^T
        v = solve_triangular(self.L, K_star.T, lower=True)  # [N, 1]
        var = self.signal_variance - float((v.T @ v).ravel()[0])
        var = max(var, 1e-12) + self.noise_variance
        return mean, var
