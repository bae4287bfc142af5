"""Tests for the held-out state time course estimators."""

import numpy as np
import pytest

from tuda_decoding.models.heldout import (
    FoldData,
    TrainingAverageEstimator,
    RidgeRegressionEstimator,
    DistributionalEstimator,
    get_heldout_estimator,
    project_rows_to_simplex,
)
from tuda_decoding.models.distributional import GaussianStatePredictor


def _random_fold(ttrial=12, n_train=16, n_test=5, p=4, n_states=3, seed=0):
    rng = np.random.RandomState(seed)
    gamma = rng.rand(ttrial, n_train, n_states)
    gamma /= gamma.sum(axis=2, keepdims=True)
    return FoldData(
        X_train=rng.randn(ttrial, n_train, p),
        gamma_train=gamma,
        X_test=rng.randn(ttrial, n_test, p),
        T_train=np.full(n_train, ttrial),
        T_test=np.full(n_test, ttrial),
    )


def test_training_average_gives_every_test_trial_the_mean_profile():
    fold = _random_fold()
    gamma_test = TrainingAverageEstimator().estimate(fold)

    assert gamma_test.shape == (12, 5, 3)
    expected = fold.gamma_train.mean(axis=1)
    for j in range(fold.n_test):
        np.testing.assert_allclose(gamma_test[:, j], expected)


def test_ridge_regression_rows_lie_on_simplex():
    fold = _random_fold()
    gamma_test = RidgeRegressionEstimator(ridge_lambda=1e-4).estimate(fold)

    assert gamma_test.shape == (12, 5, 3)
    assert np.all(gamma_test >= 0)
    np.testing.assert_allclose(gamma_test.sum(axis=2), 1.0, atol=1e-10)


def test_ridge_regression_with_constant_feature():
    fold = _random_fold()
    fold.X_train[:, :, 0] = 1.0
    fold.X_test[:, :, 0] = 1.0

    gamma_test = RidgeRegressionEstimator(ridge_lambda=1e-4).estimate(fold)

    assert np.all(np.isfinite(gamma_test))
    np.testing.assert_allclose(gamma_test.sum(axis=2), 1.0, atol=1e-10)


def test_ridge_regression_recovers_linear_gamma():
    rng = np.random.RandomState(1)
    ttrial, n_train, n_test = 4, 200, 3
    X_train = rng.rand(ttrial, n_train, 1)
    X_test = rng.rand(ttrial, n_test, 1)
    gamma_train = np.concatenate([X_train, 1 - X_train], axis=2)
    fold = FoldData(X_train, gamma_train, X_test, np.full(n_train, ttrial), np.full(n_test, ttrial))

    gamma_test = RidgeRegressionEstimator(ridge_lambda=1e-8).estimate(fold)

    np.testing.assert_allclose(gamma_test[..., 0], X_test[..., 0], atol=1e-4)


def test_simplex_projection_shifts_and_renormalizes():
    pred = np.array([
        [-1.0, 1.0, 2.0],
        [1.0, 1.0, 2.0],
        [0.0, 0.0, 0.0],
    ])
    out = project_rows_to_simplex(pred)

    np.testing.assert_allclose(out[0], [0.0, 0.4, 0.6])
    np.testing.assert_allclose(out[1], [0.25, 0.25, 0.5])
    np.testing.assert_allclose(out[2], [1 / 3, 1 / 3, 1 / 3])


def test_ridge_lambda_must_be_positive():
    with pytest.raises(ValueError, match="strictly positive"):
        RidgeRegressionEstimator(ridge_lambda=0.0)


def test_distributional_estimator_with_default_predictor():
    fold = _random_fold()
    gamma_test = DistributionalEstimator().estimate(fold)

    assert gamma_test.shape == (12, 5, 3)
    assert np.all(gamma_test >= 0)
    np.testing.assert_allclose(gamma_test.sum(axis=2), 1.0, atol=1e-8)


def test_distributional_estimator_passes_stacked_trials():
    fold = _random_fold(ttrial=6, n_train=4, n_test=2, n_states=2)
    calls = {}

    def predictor(X_train, gamma_train, X_test, T_train, T_test):
        calls["shapes"] = (X_train.shape, gamma_train.shape, X_test.shape)
        # Test trial j gets state j at every time point
        out = np.zeros((12, 2))
        out[:6, 0] = 1.0
        out[6:, 1] = 1.0
        return out

    gamma_test = DistributionalEstimator(predictor).estimate(fold)

    assert calls["shapes"] == ((24, 4), (24, 2), (12, 4))
    assert np.all(gamma_test[:, 0, 0] == 1.0)
    assert np.all(gamma_test[:, 1, 1] == 1.0)


def test_gaussian_predictor_separates_states():
    rng = np.random.RandomState(2)
    states = np.repeat([0, 1], 100)
    X_train = rng.randn(200, 2) * 0.1 + np.where(states[:, None] == 0, -2.0, 2.0)
    gamma_train = np.eye(2)[states]

    predictor = GaussianStatePredictor(time_prior=False)
    gamma_test = predictor(X_train, gamma_train, np.array([[-2.0, -2.0], [2.0, 2.0]]),
                           np.array([200]), np.array([2]))

    assert gamma_test[0, 0] > 0.99
    assert gamma_test[1, 1] > 0.99


@pytest.mark.parametrize("cv_method, expected", [
    (1, TrainingAverageEstimator),
    (2, RidgeRegressionEstimator),
    (3, DistributionalEstimator),
])
def test_get_heldout_estimator(cv_method, expected):
    assert isinstance(get_heldout_estimator(cv_method), expected)


@pytest.mark.parametrize("cv_method", [0, 4, "1"])
def test_unknown_cv_method_fails(cv_method):
    with pytest.raises(ValueError, match="cv_method"):
        get_heldout_estimator(cv_method)


def test_distributional_estimator_keeps_no_fitted_state_between_folds():
    predictor = GaussianStatePredictor()
    estimator = DistributionalEstimator(predictor)

    first = estimator.estimate(_random_fold(seed=0))
    estimator.estimate(_random_fold(seed=1))
    again = estimator.estimate(_random_fold(seed=0))

    assert predictor.means_ is None
    assert predictor.covariance_ is None
    np.testing.assert_allclose(again, first)
