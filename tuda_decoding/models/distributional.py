"""
Distributional prediction of state time courses from features alone.

Each state is described by the distribution of the features while it is
active, learned from the training Gamma. Held-out state probabilities
are the posterior of each state given the held-out features, so the
response is never used.
"""

from typing import Optional
import numpy as np
from scipy.stats import multivariate_normal
from scipy.special import logsumexp


class GaussianStatePredictor:
    """
    Gaussian state-conditional feature model.

    Each state k has its own mean and all states share one shrunk
    covariance, estimated with the training Gamma as soft weights. When
    all trials have the same length, the prior probability of each state
    at a time offset is its average training occupancy at that offset;
    otherwise the overall occupancy is used.

    Example:
        >>> predictor = GaussianStatePredictor(shrinkage=0.1)
        >>> gamma_test = predictor(X_train, gamma_train, X_test, T_train, T_test)
    """

    def __init__(self, shrinkage: float = 0.1, time_prior: bool = True):
        """
        Args:
            shrinkage: Weight of the scaled identity in the shared covariance
            time_prior: Use per-time-offset state priors when possible
        """
        if not 0 <= shrinkage <= 1:
            raise ValueError(f"shrinkage must be in [0, 1], got {shrinkage}")
        self.shrinkage = shrinkage
        self.time_prior = time_prior

        self.means_ = None
        self.covariance_ = None
        self.prior_ = None

    def fit(
        self,
        X: np.ndarray,
        gamma: np.ndarray,
        T: np.ndarray
    ) -> "GaussianStatePredictor":
        """
        Estimate the state-conditional feature distributions.

        Args:
            X: Training features (n_timepoints, n_features)
            gamma: Training state time courses (n_timepoints, n_states)
            T: Training trial lengths

        Returns:
            self
        """
        X = np.asarray(X, dtype=float)
        gamma = np.asarray(gamma, dtype=float)
        T = np.asarray(T, dtype=int).ravel()
        n_samples, n_features = X.shape
        n_states = gamma.shape[1]

        weights = gamma.sum(axis=0)
        means = np.tile(X.mean(axis=0), (n_states, 1))
        active = weights > 0
        means[active] = (gamma[:, active].T @ X) / weights[active, np.newaxis]

        scatter = np.zeros((n_features, n_features))
        for k in range(n_states):
            centered = X - means[k]
            scatter += (centered * gamma[:, [k]]).T @ centered
        scatter /= n_samples

        target = np.trace(scatter) / n_features
        if target <= 0:
            target = 1.0
        self.covariance_ = (
            (1 - self.shrinkage) * scatter + self.shrinkage * target * np.eye(n_features)
        )
        self.means_ = means

        if self.time_prior and np.all(T == T[0]):
            ttrial = int(T[0])
            self.prior_ = gamma.reshape(len(T), ttrial, n_states).mean(axis=0)
        else:
            self.prior_ = gamma.mean(axis=0, keepdims=True)

        return self

    def predict(self, X: np.ndarray, T: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Posterior state probabilities for new data.

        Args:
            X: Features (n_timepoints, n_features)
            T: Trial lengths of X

        Returns:
            State time courses (n_timepoints, n_states)
        """
        if self.means_ is None:
            raise ValueError("GaussianStatePredictor must be fitted before predict")

        X = np.asarray(X, dtype=float)
        n_states = self.means_.shape[0]

        log_lik = np.column_stack([
            multivariate_normal.logpdf(
                X, mean=self.means_[k], cov=self.covariance_, allow_singular=True
            )
            for k in range(n_states)
        ])
        if log_lik.ndim == 1:
            log_lik = log_lik[np.newaxis, :]

        prior = self.prior_
        if prior.shape[0] > 1:
            T = np.asarray(T, dtype=int).ravel() if T is not None else None
            if T is not None and np.all(T == prior.shape[0]):
                prior = np.tile(prior, (len(T), 1))
            else:
                prior = prior.mean(axis=0, keepdims=True)

        log_post = log_lik + np.log(np.clip(prior, 1e-12, None))
        return np.exp(log_post - logsumexp(log_post, axis=1, keepdims=True))

    def __call__(
        self,
        X_train: np.ndarray,
        gamma_train: np.ndarray,
        X_test: np.ndarray,
        T_train: np.ndarray,
        T_test: np.ndarray
    ) -> np.ndarray:
        """Fit a fresh copy on one fold's training data and predict its test data."""
        predictor = GaussianStatePredictor(shrinkage=self.shrinkage, time_prior=self.time_prior)
        return predictor.fit(X_train, gamma_train, T_train).predict(X_test, T_test)
