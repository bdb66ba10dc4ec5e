from abc import ABC, abstractmethod
from typing import Tuple, Sequence, Optional, List
import numpy as np

from .errors import InvalidInput

Observation = Tuple[Sequence[float], Sequence[float], Sequence[float]]


class ScalarRegressor(ABC):
    """
    Single-output regressor plugged into the ensemble, one per output dimension.
    Any regression technique implementing this contract can back the ensemble.
    """

    @abstractmethod
    def compute(self, samples: Sequence[np.ndarray], observations: Sequence[np.ndarray],
                noises: Optional[np.ndarray] = None) -> None:
        """
        Fit on inputs and their scalar outputs.
        samples:      sequence of input vectors (in_dim,)
        observations: sequence of output vectors of size 1
        noises:       optional per-sample noise variance, shape (N,)
        """
        raise NotImplementedError

    @abstractmethod
    def optimize_hyperparams(self) -> None:
        """Tune the regressor's hyperparameters on the data given to compute()."""
        raise NotImplementedError

    @abstractmethod
    def query(self, x: Sequence[float]) -> Tuple[np.ndarray, float]:
        """
        Returns:
            mean: np.array(shape=(1,))
            var:  float
        """
        raise NotImplementedError

    @abstractmethod
    def samples(self) -> List[np.ndarray]:
        """Inputs used by the last compute()."""
        raise NotImplementedError

    def h_params(self) -> np.ndarray:
        return np.zeros(0)


class DynamicsModel(ABC):
    """Facade for dynamics models learned from (state, action, outcome) observations."""

    @abstractmethod
    def learn(self, observations: Sequence[Observation], only_limits: bool = False) -> None:
        """Re-fit from scratch on the full set of observations."""
        raise NotImplementedError

    @abstractmethod
    def predict(self, x: Sequence[float]):
        """Predict the outcome mean and uncertainty for a feature vector (state, action)."""
        raise NotImplementedError

    @abstractmethod
    def save_data(self, filename: str) -> None:
        raise NotImplementedError


def form_input(state: Sequence[float], action: Sequence[float]) -> np.ndarray:
    return np.concatenate([np.asarray(state, dtype=float).ravel(), np.asarray(action, dtype=float).ravel()])


def assemble_dataset(observations: Sequence[Observation]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build the sample matrix X (N, state_dim + action_dim) and the outcome
    matrix Y (N, pred_dim) from a sequence of (state, action, outcome).
    """
    if observations is None or len(observations) == 0:
        raise InvalidInput("at least one observation is required")

    X, Y = [], []
    sizes = None
    for i, obs in enumerate(observations):
        try:
            st, act, pred = obs
        except (TypeError, ValueError):
            raise InvalidInput(f"observation {i} is not a (state, action, outcome) triple")
        st = np.asarray(st, dtype=float).ravel()
        act = np.asarray(act, dtype=float).ravel()
        pred = np.asarray(pred, dtype=float).ravel()
        if sizes is None:
            sizes = (st.size, act.size, pred.size)
        elif (st.size, act.size, pred.size) != sizes:
            raise InvalidInput(
                f"observation {i} has sizes {(st.size, act.size, pred.size)}, expected {sizes}"
            )
        X.append(form_input(st, act))
        Y.append(pred)

    if sizes[0] + sizes[1] == 0 or sizes[2] == 0:
        raise InvalidInput("observations must have non-empty features and outcomes")

    X = np.asarray(X, dtype=float)
    Y = np.asarray(Y, dtype=float)
    if not (np.all(np.isfinite(X)) and np.all(np.isfinite(Y))):
        raise InvalidInput("observations contain non-finite values")
    return X, Y


def check_query(x: Sequence[float], in_dim: int) -> np.ndarray:
    x = np.asarray(x, dtype=float).ravel()
    if x.size != in_dim:
        raise InvalidInput(f"query has size {x.size}, expected {in_dim}")
    return x
