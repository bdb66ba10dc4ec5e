"""
Black-box function optimizer used to fit model parameters.
The objective is maximized; it receives (params, eval_grad) and returns
(value, grad) where grad may be None when no analytic gradient is available.
"""
import logging
from typing import Callable, Optional, Tuple, Sequence
import numpy as np
from scipy.optimize import minimize

from .errors import FitFailure

logger = logging.getLogger(__name__)

Objective = Callable[[np.ndarray, bool], Tuple[float, Optional[np.ndarray]]]


def no_grad(value: float) -> Tuple[float, None]:
    return value, None


class ScipyOptimizer:
    """Maximizes an objective with scipy.optimize.minimize."""

    def __init__(self,
                 method: str = 'L-BFGS-B',
                 max_iter: int = 500,
                 tol: Optional[float] = 1e-10,
                 bounds: Tuple[float, float] = (-10.0, 10.0)):
        self.method = method
        self.max_iter = max_iter
        self.tol = tol
        self.bounds = bounds

    def __call__(self, objective: Objective, init: Sequence[float], bounded: bool = False) -> np.ndarray:
        init = np.asarray(init, dtype=float).ravel()

        # use the gradient when the objective provides one
        _, grad = objective(init, True)
        use_grad = grad is not None

        def fun(params):
            value, g = objective(params, use_grad)
            if use_grad:
                return -value, -np.asarray(g, dtype=float)
            return -value

        bounds = [self.bounds] * init.size if bounded else None
        try:
            res = minimize(fun, init, jac=use_grad, method=self.method, bounds=bounds,
                           tol=self.tol, options={'maxiter': self.max_iter})
        except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
            raise FitFailure(f"optimizer {self.method} failed: {e}") from e

        if not np.all(np.isfinite(res.x)) or not np.isfinite(res.fun):
            raise FitFailure(f"optimizer {self.method} produced a non-finite result")
        if not res.success:
            logger.warning(f"Optimizer {self.method} did not converge: {res.message}")
        return res.x
