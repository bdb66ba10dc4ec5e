from dataclasses import dataclass
import numpy as np


@dataclass(frozen=True)
class FeatureStatistics:
    """Per-feature statistics of a sample matrix, used for normalization and diagnostics."""

    means: np.ndarray
    sigmas: np.ndarray
    limits: np.ndarray


def compute_statistics(X: np.ndarray, low: float = 5.0, high: float = 95.0) -> FeatureStatistics:
    """
    X: [N, D] sample matrix.
    limits[j] = max(percentile(|X[:, j]|, low), percentile(|X[:, j]|, high))
    """
    X = np.asarray(X, dtype=float)
    means = X.mean(axis=0)
    # sample standard deviation; a single sample has zero spread
    ddof = 1 if X.shape[0] > 1 else 0
    sigmas = X.std(axis=0, ddof=ddof)
    pl, ph = np.percentile(np.abs(X), [low, high], axis=0)
    limits = np.maximum(pl, ph)
    return FeatureStatistics(means=means, sigmas=sigmas, limits=limits)
