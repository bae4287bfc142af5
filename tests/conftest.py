"""Shared fixtures: small synthetic trial datasets with state-dependent signal."""

import numpy as np
import pytest

from tuda_decoding.core.config import TUDAConfig, ModelConfig, CrossValidationConfig


TEST_SEED = 1337


def make_trials(labels, ttrial, n_features=5, noise=0.1, seed=TEST_SEED):
    """
    Features whose pattern coding the label changes halfway through the trial.

    Args:
        labels: Per-trial values (n_trials,) or (n_trials, q)
        ttrial: Trial length
        n_features: Number of features
        noise: Noise standard deviation

    Returns:
        X (n_trials * ttrial, n_features)
    """
    rng = np.random.RandomState(seed)
    labels = np.asarray(labels, dtype=float)
    if labels.ndim == 1:
        labels = labels[:, np.newaxis]
    n_trials, q = labels.shape

    patterns = rng.randn(2, q, n_features)
    segment = (np.arange(ttrial) >= ttrial // 2).astype(int)

    X = np.zeros((n_trials, ttrial, n_features))
    for t in range(ttrial):
        X[:, t] = labels @ patterns[segment[t]]
    X += noise * rng.randn(*X.shape)
    return X.reshape(n_trials * ttrial, n_features)


@pytest.fixture
def binary_data():
    """20 balanced trials of 50 time points with -1/1 labels."""
    labels = np.repeat([-1.0, 1.0], 10)
    ttrial = 50
    X = make_trials(labels, ttrial)
    T = np.full(len(labels), ttrial)
    return X, labels, T


@pytest.fixture
def continuous_data():
    """10 trials of 30 time points with a 2-dimensional continuous response."""
    rng = np.random.RandomState(TEST_SEED)
    n_trials, ttrial, n_features = 10, 30, 4
    X = rng.randn(n_trials * ttrial, n_features)
    W = rng.randn(n_features, 2)
    Y = X @ W + 0.1 * rng.randn(n_trials * ttrial, 2)
    T = np.full(n_trials, ttrial)
    return X, Y, T


def make_config(classifier=None, cv_method=1, n_states=3, **cv_kwargs) -> TUDAConfig:
    return TUDAConfig(
        model=ModelConfig(n_states=n_states, classifier=classifier),
        cv=CrossValidationConfig(cv_method=cv_method, **cv_kwargs),
        verbose=False
    )
