"""
Base classes for fitted state decoding models and their trainers.

A trainer fits a K-state decoding model on the training trials of a fold
and returns it together with the training state time courses (Gamma).
The fitted model is then used for prediction in one of two ways: its
per-state linear coefficients are extracted, or (for discriminant
models) it predicts directly from held-out state time courses.
"""

from abc import ABC, abstractmethod
from typing import Tuple
import numpy as np

from ..core.config import TUDAConfig


class StateModel(ABC):
    """
    Abstract base class for fitted K-state decoding models.

    Subclasses expose at least one of coefficients() or predict().
    """

    def __init__(self, n_states: int):
        self.n_states = n_states

    def coefficients(self) -> np.ndarray:
        """
        Per-state linear coefficients.

        Returns:
            Coefficients (n_features, n_responses, n_states)
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} does not expose linear coefficients"
        )

    def predict(
        self,
        gamma: np.ndarray,
        X: np.ndarray,
        classification: bool = True,
        constant_response: bool = False
    ) -> np.ndarray:
        """
        Predict responses given state time courses.

        Args:
            gamma: State time courses (n_samples, n_states)
            X: Features (n_samples, n_features)
            classification: Whether the response is categorical
            constant_response: Whether the training response had no variance

        Returns:
            Predictions (n_samples, n_responses)
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} does not predict from state time courses"
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_states={self.n_states})"


class LinearStateModel(StateModel):
    """
    Fitted model with one linear decoder per state.

    The prediction at each time point is the Gamma-weighted sum of the
    state decoders' outputs.
    """

    def __init__(self, betas: np.ndarray):
        """
        Args:
            betas: Coefficients (n_features, n_responses, n_states)
        """
        betas = np.asarray(betas, dtype=float)
        if betas.ndim != 3:
            raise ValueError(
                f"betas must be (n_features, n_responses, n_states), got shape {betas.shape}"
            )
        super().__init__(n_states=betas.shape[2])
        self.betas_ = betas

    def coefficients(self) -> np.ndarray:
        return self.betas_

    def predict(
        self,
        gamma: np.ndarray,
        X: np.ndarray,
        classification: bool = True,
        constant_response: bool = False
    ) -> np.ndarray:
        return np.einsum("np,pqk,nk->nq", X, self.betas_, gamma)


class StateTrainer(ABC):
    """
    Abstract base class for decoder trainers.

    Example:
        >>> class MyTrainer(StateTrainer):
        ...     def train(self, X, Y, T, config):
        ...         # Fit K states on the training trials
        ...         return LinearStateModel(betas), gamma
    """

    @abstractmethod
    def train(
        self,
        X: np.ndarray,
        Y: np.ndarray,
        T: np.ndarray,
        config: TUDAConfig
    ) -> Tuple[StateModel, np.ndarray]:
        """
        Fit a state decoding model.

        Args:
            X: Training features, trials stacked in time (n_timepoints, n_features)
            Y: Training responses (n_timepoints, n_responses)
            T: Training trial lengths (n_trials,)
            config: Analysis configuration; config.model.n_states gives K

        Returns:
            Tuple of (fitted model, training Gamma (n_timepoints, n_states))
        """
        pass

    def __call__(self, X, Y, T, config):
        return self.train(X, Y, T, config)


def extract_coefficients(model: StateModel) -> np.ndarray:
    """Default coefficient extractor: the model's own coefficients()."""
    return model.coefficients()
