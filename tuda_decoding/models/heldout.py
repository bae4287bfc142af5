"""
Estimation of state time courses for held-out trials.

The state active in a held-out trial cannot be inferred from its
response, since the response is what is being predicted. Each estimator
here uses only training data and held-out features:

1. TrainingAverageEstimator: the average training state time course
2. RidgeRegressionEstimator: a per-time-point regression from features
3. DistributionalEstimator: an unsupervised feature-distribution model
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional
import numpy as np
from scipy import linalg

from .distributional import GaussianStatePredictor


@dataclass
class FoldData:
    """
    Arrays needed to estimate held-out state time courses for one fold.

    Attributes:
        X_train: Training features (ttrial, n_train, p)
        gamma_train: Training state time courses (ttrial, n_train, K)
        X_test: Test features (ttrial, n_test, p)
        T_train: Training trial lengths (n_train,)
        T_test: Test trial lengths (n_test,)
    """

    X_train: np.ndarray
    gamma_train: np.ndarray
    X_test: np.ndarray
    T_train: np.ndarray
    T_test: np.ndarray

    @property
    def trial_length(self) -> int:
        return self.X_train.shape[0]

    @property
    def n_test(self) -> int:
        return self.X_test.shape[1]

    @property
    def n_states(self) -> int:
        return self.gamma_train.shape[2]


class HeldOutStateEstimator(ABC):
    """Abstract base class for held-out state time course estimators."""

    name: str = ""

    @abstractmethod
    def estimate(self, fold: FoldData) -> np.ndarray:
        """
        Estimate state time courses for the test trials of a fold.

        Args:
            fold: Training and test arrays of the fold

        Returns:
            Test state time courses (ttrial, n_test, K)
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class TrainingAverageEstimator(HeldOutStateEstimator):
    """
    Average training state time course, shared by every test trial.

    If 20% of training trials use state 1 at some time point and 80% use
    state 2, each test trial is predicted there by a 0.2/0.8 mixture of
    the two decoders.
    """

    name = "training_average"

    def estimate(self, fold: FoldData) -> np.ndarray:
        mean_gamma = fold.gamma_train.mean(axis=1)  # (ttrial, K)
        return np.repeat(mean_gamma[:, np.newaxis, :], fold.n_test, axis=1)


def project_rows_to_simplex(pred: np.ndarray) -> np.ndarray:
    """
    Map each row to non-negative weights summing to one.

    Rows with a negative entry are shifted up by their minimum, then every
    row is divided by its sum. This is an approximation, not the Euclidean
    projection onto the simplex. Rows that are all zero after the shift
    become uniform.

    Args:
        pred: Predicted state weights (n, K)

    Returns:
        Row-normalized weights (n, K)
    """
    pred = pred - np.minimum(pred.min(axis=1, keepdims=True), 0.0)
    total = pred.sum(axis=1, keepdims=True)

    out = np.full_like(pred, 1.0 / pred.shape[1])
    np.divide(pred, total, out=out, where=total > 0)
    return out


class RidgeRegressionEstimator(HeldOutStateEstimator):
    """
    Predict state time courses from features by ridge regression.

    At each time point a separate regression from the features (plus a
    constant) to the training Gamma is solved in closed form, then applied
    to the test features. The ridge penalty keeps the solve well-posed when
    features are constant or collinear, so it must stay positive.
    """

    name = "regression"

    def __init__(self, ridge_lambda: float = 1e-4):
        """
        Args:
            ridge_lambda: Ridge penalty (> 0)
        """
        if not ridge_lambda > 0:
            raise ValueError(f"ridge_lambda must be strictly positive, got {ridge_lambda}")
        self.ridge_lambda = ridge_lambda

    def estimate(self, fold: FoldData) -> np.ndarray:
        ttrial, n_train, p = fold.X_train.shape
        n_test = fold.n_test
        n_states = fold.n_states

        X_train = np.concatenate([fold.X_train, np.ones((ttrial, n_train, 1))], axis=2)
        X_test = np.concatenate([fold.X_test, np.ones((ttrial, n_test, 1))], axis=2)
        penalty = self.ridge_lambda * np.eye(p + 1)

        gamma_test = np.zeros((ttrial, n_test, n_states))
        for t in range(ttrial):
            Xt = X_train[t]
            B = linalg.solve(Xt.T @ Xt + penalty, Xt.T @ fold.gamma_train[t], assume_a="pos")
            gamma_test[t] = project_rows_to_simplex(X_test[t] @ B)

        return gamma_test

    def __repr__(self) -> str:
        return f"RidgeRegressionEstimator(ridge_lambda={self.ridge_lambda})"


DistributionalPredictor = Callable[
    [np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray], np.ndarray
]


class DistributionalEstimator(HeldOutStateEstimator):
    """
    Delegate to an unsupervised distributional state predictor.

    The predictor is called as
    ``predictor(X_train, gamma_train, X_test, T_train, T_test)`` with
    trials stacked in time, and must return (n_test * ttrial, K).
    """

    name = "distributional"

    def __init__(self, predictor: Optional[DistributionalPredictor] = None):
        """
        Args:
            predictor: Distributional predictor (default: GaussianStatePredictor)
        """
        self.predictor = predictor or GaussianStatePredictor()

    def estimate(self, fold: FoldData) -> np.ndarray:
        ttrial, n_train, p = fold.X_train.shape
        n_test = fold.n_test
        n_states = fold.n_states

        # Trial-major stacking, as the trainer sees the data
        X_train = fold.X_train.transpose(1, 0, 2).reshape(n_train * ttrial, p)
        gamma_train = fold.gamma_train.transpose(1, 0, 2).reshape(n_train * ttrial, n_states)
        X_test = fold.X_test.transpose(1, 0, 2).reshape(n_test * ttrial, p)

        gamma_test = self.predictor(X_train, gamma_train, X_test, fold.T_train, fold.T_test)
        gamma_test = np.asarray(gamma_test).reshape(n_test, ttrial, -1)
        return gamma_test.transpose(1, 0, 2)

    def __repr__(self) -> str:
        return f"DistributionalEstimator(predictor={self.predictor!r})"


def get_heldout_estimator(
    cv_method: int,
    ridge_lambda: float = 1e-4,
    distributional_predictor: Optional[DistributionalPredictor] = None
) -> HeldOutStateEstimator:
    """
    Get the held-out state estimator for a cv_method code.

    Args:
        cv_method: 1 (training average), 2 (ridge regression) or 3 (distributional)
        ridge_lambda: Ridge penalty for cv_method=2
        distributional_predictor: Predictor for cv_method=3

    Returns:
        HeldOutStateEstimator instance

    Raises:
        ValueError: For any other cv_method
    """
    if cv_method == 1:
        return TrainingAverageEstimator()
    if cv_method == 2:
        return RidgeRegressionEstimator(ridge_lambda=ridge_lambda)
    if cv_method == 3:
        return DistributionalEstimator(predictor=distributional_predictor)
    raise ValueError(f"Unknown cv_method: {cv_method!r}. Expected 1, 2 or 3")
