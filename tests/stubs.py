import numpy as np

from dynamics_model.base import ScalarRegressor, check_query
from dynamics_model.errors import FitFailure


class NearestNeighbourRegressor(ScalarRegressor):
    """Noiseless stand-in: reproduces training outputs exactly, variance grows with distance."""

    def __init__(self, in_dim):
        self.in_dim = in_dim
        self.X = None
        self.y = None
        self.weights = None

    def compute(self, samples, observations, noises=None):
        self.X = np.asarray(samples, dtype=float)
        self.y = np.asarray(observations, dtype=float).reshape(-1)

    def optimize_hyperparams(self):
        A = np.hstack([self.X, np.ones((self.X.shape[0], 1))])
        self.weights = np.linalg.lstsq(A, self.y, rcond=None)[0]

    def query(self, x):
        x = check_query(x, self.in_dim)
        d = np.linalg.norm(self.X - x, axis=1)
        i = int(np.argmin(d))
        return np.array([self.y[i]]), 0.1 + float(d[i])

    def samples(self):
        return [row.copy() for row in self.X]

    def h_params(self):
        return self.weights.copy()


class RejectingRegressor(NearestNeighbourRegressor):
    """Refuses any output column containing values above `threshold`."""

    threshold = 100.0

    def optimize_hyperparams(self):
        if np.any(self.y > self.threshold):
            raise FitFailure("outputs out of range")
        super().optimize_hyperparams()


def linear_observations(n=20, seed=0):
    rng = np.random.default_rng(seed)
    obs = []
    for _ in range(n):
        s = rng.uniform(-1, 1, 2)
        a = rng.uniform(-1, 1, 1)
        out = np.array([s[0] + 0.5 * a[0], 2.0 * s[1] - s[0], 0.3 * a[0]])
        obs.append((s, a, out))
    return obs
