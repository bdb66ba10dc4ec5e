import numpy as np
from typing import Sequence

from .errors import InvalidInput


class LinearMean:
    """
    Multi-output linear mean m(x) = W x + b.
    Parameters are flattened as [W (row-major, out_dim x in_dim), b].
    """

    def __init__(self, in_dim: int, out_dim: int):
        self.in_dim = in_dim
        self.out_dim = out_dim
        self._params = np.zeros(out_dim * in_dim + out_dim)

    @property
    def weights(self) -> np.ndarray:
        return self._params[:self.out_dim * self.in_dim].reshape(self.out_dim, self.in_dim)

    @property
    def bias(self) -> np.ndarray:
        return self._params[self.out_dim * self.in_dim:]

    def h_params(self) -> np.ndarray:
        return self._params.copy()

    def set_h_params(self, params: Sequence[float]) -> None:
        params = np.asarray(params, dtype=float).ravel()
        if params.size != self._params.size:
            raise InvalidInput(f"expected {self._params.size} parameters, got {params.size}")
        self._params = params.copy()

    def __call__(self, x: np.ndarray) -> np.ndarray:
        return self.weights @ np.asarray(x, dtype=float) + self.bias

    def grad(self, x: np.ndarray) -> np.ndarray:
        """Jacobian of m(x) w.r.t. the parameters, shape (out_dim, n_params)."""
        x = np.asarray(x, dtype=float)
        J = np.zeros((self.out_dim, self._params.size))
        for k in range(self.out_dim):
            J[k, k * self.in_dim:(k + 1) * self.in_dim] = x
            J[k, self.out_dim * self.in_dim + k] = 1.0
        return J


class ConstantMean:
    """Multi-output constant mean m(x) = c."""

    def __init__(self, in_dim: int, out_dim: int):
        self.in_dim = in_dim
        self.out_dim = out_dim
        self._params = np.zeros(out_dim)

    def h_params(self) -> np.ndarray:
        return self._params.copy()

    def set_h_params(self, params: Sequence[float]) -> None:
        params = np.asarray(params, dtype=float).ravel()
        if params.size != self.out_dim:
            raise InvalidInput(f"expected {self.out_dim} parameters, got {params.size}")
        self._params = params.copy()

    def __call__(self, x: np.ndarray) -> np.ndarray:
        return self._params.copy()

    def grad(self, x: np.ndarray) -> np.ndarray:
        return np.eye(self.out_dim)
