"""
Reference trainers for state decoding models.

These trainers fit K states with hard, trial-locked assignments: each
time offset within the trial belongs to one state for every trial. They
start from K contiguous segments of the trial and optionally refine the
assignment by moving each time offset to the state whose decoder fits
it best. They are meant as simple, deterministic trainers for running
and testing the cross-validation, not as a replacement for a full
state-space decoder.
"""

from typing import Optional, Tuple
import numpy as np
from sklearn.linear_model import Ridge
from sklearn.discriminant_analysis import LinearDiscriminantAnalysis

from ..core.config import TUDAConfig
from .base import StateModel, LinearStateModel, StateTrainer


def segment_states(ttrial: int, n_states: int) -> np.ndarray:
    """
    Split the trial into contiguous, near-equal segments.

    Returns:
        State index for each time offset (ttrial,)
    """
    states = np.zeros(ttrial, dtype=int)
    for k, offsets in enumerate(np.array_split(np.arange(ttrial), n_states)):
        states[offsets] = k
    return states


def states_to_gamma(states: np.ndarray, n_trials: int, n_states: int) -> np.ndarray:
    """One-hot Gamma (n_trials * ttrial, n_states) from per-offset states."""
    gamma = np.zeros((len(states), n_states))
    gamma[np.arange(len(states)), states] = 1.0
    return np.tile(gamma, (n_trials, 1))


def _uniform_length(T: np.ndarray) -> int:
    T = np.asarray(T, dtype=int).ravel()
    if not np.all(T == T[0]):
        raise ValueError("Trial-locked state trainers require equal trial lengths")
    return int(T[0])


class SegmentedRidgeTrainer(StateTrainer):
    """
    Trial-locked states with one ridge decoder per state.

    Example:
        >>> trainer = SegmentedRidgeTrainer(alpha=1.0, n_iterations=5)
        >>> model, gamma = trainer.train(X, Y, T, config)
        >>> model.coefficients().shape
        (n_features, n_responses, n_states)
    """

    def __init__(self, alpha: float = 1.0, n_iterations: int = 5):
        """
        Initialize trainer.

        Args:
            alpha: Ridge penalty of the per-state decoders
            n_iterations: Rounds of reassigning time offsets to states
                (0 keeps the initial contiguous segments)
        """
        self.alpha = alpha
        self.n_iterations = n_iterations

    def _fit_betas(
        self,
        X: np.ndarray,
        Y: np.ndarray,
        states: np.ndarray,
        n_states: int,
        betas: Optional[np.ndarray] = None
    ) -> np.ndarray:
        # X: (ttrial, n_trials, p), Y: (ttrial, n_trials, q)
        p, q = X.shape[2], Y.shape[2]
        if betas is None:
            betas = np.zeros((p, q, n_states))

        for k in range(n_states):
            in_state = states == k
            if not np.any(in_state):
                continue
            ridge = Ridge(alpha=self.alpha, fit_intercept=False)
            ridge.fit(X[in_state].reshape(-1, p), Y[in_state].reshape(-1, q))
            betas[:, :, k] = np.atleast_2d(ridge.coef_).T

        return betas

    def train(
        self,
        X: np.ndarray,
        Y: np.ndarray,
        T: np.ndarray,
        config: TUDAConfig
    ) -> Tuple[LinearStateModel, np.ndarray]:
        ttrial = _uniform_length(T)
        n_trials = len(T)
        n_states = config.model.n_states

        X = X.reshape(n_trials, ttrial, -1).transpose(1, 0, 2)
        Y = Y.reshape(n_trials, ttrial, -1).transpose(1, 0, 2)

        states = segment_states(ttrial, n_states)
        betas = self._fit_betas(X, Y, states, n_states)

        for _ in range(self.n_iterations):
            # Squared error of every state's decoder at every time offset
            fitted = np.einsum("tnp,pqk->tnqk", X, betas)
            error = ((Y[..., np.newaxis] - fitted) ** 2).sum(axis=(1, 2))
            new_states = np.argmin(error, axis=1)
            if np.array_equal(new_states, states):
                break
            states = new_states
            betas = self._fit_betas(X, Y, states, n_states, betas)

        return LinearStateModel(betas), states_to_gamma(states, n_trials, n_states)


class DiscriminantStateModel(StateModel):
    """
    One linear discriminant classifier per state.

    Predictions are the Gamma-weighted mixture of the states' class
    posteriors, expressed on the response scale: the expected label for a
    single response column, class probabilities for indicator columns.
    """

    def __init__(
        self,
        n_states: int,
        classes: np.ndarray,
        label_values: np.ndarray,
        indicator: bool
    ):
        super().__init__(n_states=n_states)
        self.classes_ = classes
        self.label_values_ = label_values
        self.indicator_ = indicator
        self.state_models_ = [None] * n_states
        self.state_constants_ = [None] * n_states
        self.constant_ = classes[0]

    def _state_posteriors(self, k: int, X: np.ndarray, hard: bool) -> np.ndarray:
        n_classes = len(self.classes_)
        posteriors = np.zeros((X.shape[0], n_classes))

        lda = self.state_models_[k]
        if lda is None:
            constant = self.state_constants_[k]
            label = self.constant_ if constant is None else constant
            posteriors[:, np.searchsorted(self.classes_, label)] = 1.0
            return posteriors

        columns = np.searchsorted(self.classes_, lda.classes_)
        if hard:
            predicted = np.searchsorted(self.classes_, lda.predict(X))
            posteriors[np.arange(X.shape[0]), predicted] = 1.0
        else:
            posteriors[:, columns] = lda.predict_proba(X)
        return posteriors

    def _to_response_scale(self, posteriors: np.ndarray) -> np.ndarray:
        if self.indicator_:
            return posteriors
        return (posteriors @ self.label_values_)[:, np.newaxis]

    def predict(
        self,
        gamma: np.ndarray,
        X: np.ndarray,
        classification: bool = True,
        constant_response: bool = False
    ) -> np.ndarray:
        """
        Predict responses from held-out state time courses.

        Args:
            gamma: State time courses (n_samples, n_states)
            X: Features (n_samples, n_features)
            classification: Mix soft class posteriors (True) or each
                state's hard class decisions (False)
            constant_response: Predict the single training label everywhere

        Returns:
            Predictions (n_samples, n_responses)
        """
        n_samples = X.shape[0]
        n_classes = len(self.classes_)

        if constant_response:
            posteriors = np.zeros((n_samples, n_classes))
            posteriors[:, np.searchsorted(self.classes_, self.constant_)] = 1.0
            return self._to_response_scale(posteriors)

        posteriors = np.zeros((n_samples, n_classes))
        for k in range(self.n_states):
            posteriors += gamma[:, [k]] * self._state_posteriors(k, X, hard=not classification)

        return self._to_response_scale(posteriors)


class DiscriminantTrainer(StateTrainer):
    """
    Trial-locked states with one LDA classifier per state.

    The response is either a single column of labels or class indicator
    columns (one-hot).

    Example:
        >>> config.model.classifier = "LDA"
        >>> model, gamma = DiscriminantTrainer().train(X, Y, T, config)
        >>> predictions = model.predict(gamma_test, X_test)
    """

    def __init__(self, solver: str = "lsqr", shrinkage: Optional[str] = "auto"):
        """
        Args:
            solver: LDA solver
            shrinkage: LDA covariance shrinkage ("auto" uses Ledoit-Wolf)
        """
        self.solver = solver
        self.shrinkage = shrinkage

    def train(
        self,
        X: np.ndarray,
        Y: np.ndarray,
        T: np.ndarray,
        config: TUDAConfig
    ) -> Tuple[DiscriminantStateModel, np.ndarray]:
        ttrial = _uniform_length(T)
        n_trials = len(T)
        n_states = config.model.n_states

        Y = np.asarray(Y)
        if Y.ndim == 1:
            Y = Y[:, np.newaxis]

        indicator = Y.shape[1] > 1
        if indicator:
            labels = np.argmax(Y, axis=1)
            classes = np.arange(Y.shape[1])
            label_values = classes.astype(float)
        else:
            labels = np.round(Y[:, 0])
            classes = np.unique(labels)
            label_values = classes.astype(float)

        model = DiscriminantStateModel(n_states, classes, label_values, indicator)
        values, counts = np.unique(labels, return_counts=True)
        model.constant_ = values[np.argmax(counts)]

        states = segment_states(ttrial, n_states)
        row_states = np.tile(states, n_trials)

        for k in range(n_states):
            in_state = row_states == k
            if not np.any(in_state):
                continue
            state_labels = labels[in_state]
            if len(np.unique(state_labels)) < 2:
                model.state_constants_[k] = state_labels[0]
                continue
            lda = LinearDiscriminantAnalysis(solver=self.solver, shrinkage=self.shrinkage)
            lda.fit(X[in_state], state_labels)
            model.state_models_[k] = lda

        return model, states_to_gamma(states, n_trials, n_states)
