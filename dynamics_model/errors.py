from dataclasses import dataclass
from typing import Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .base import ScalarRegressor


class DynamicsModelError(Exception):
    """Base class for all dynamics model errors."""


class InvalidInput(DynamicsModelError, ValueError):
    """Raised for empty or dimensionally inconsistent observations."""


class NotFitted(DynamicsModelError, RuntimeError):
    """Raised when a model is queried before a successful learn()."""


class FitFailure(DynamicsModelError, RuntimeError):
    """Raised when an optimizer or a regressor fit does not produce a usable result."""


@dataclass
class DimensionOutcome:
    """Result of fitting the regressor of one output dimension."""

    dim: int
    ok: bool
    error: Optional[BaseException] = None
    # the fitted regressor when ok, so callers may keep the dimensions that succeeded
    regressor: Optional['ScalarRegressor'] = None


class DimensionFitFailure(FitFailure):
    """
    Raised by the ensemble when one or more output dimensions failed to fit.
    `outcomes` holds one DimensionOutcome per output dimension, so callers
    can tell which dimensions succeeded.
    """

    def __init__(self, outcomes: List[DimensionOutcome]):
        self.outcomes = list(outcomes)
        failed = [o for o in self.outcomes if not o.ok]
        message = f"{len(failed)}/{len(self.outcomes)} output dimensions failed to fit:\n" + "\n".join(
            f"  dim {o.dim}: {o.error!r}" for o in failed
        )
        super().__init__(message)

    @property
    def failed_dims(self) -> List[int]:
        return [o.dim for o in self.outcomes if not o.ok]

    @property
    def fitted_regressors(self) -> Dict[int, 'ScalarRegressor']:
        return {o.dim: o.regressor for o in self.outcomes if o.ok}
