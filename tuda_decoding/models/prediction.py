"""
Prediction of held-out responses from state time courses.

Linear models predict each time point as a mixture of the state decoders
weighted by the estimated state probabilities. Discriminant models
predict directly from the held-out state time courses.
"""

import numpy as np
from scipy.special import expit, softmax

from .base import StateModel


def mixture_prediction(
    X: np.ndarray,
    betas: np.ndarray,
    gamma: np.ndarray
) -> np.ndarray:
    """
    Gamma-weighted mixture of the per-state linear decoders.

    Args:
        X: Features (ttrial, n_trials, p)
        betas: Coefficients (p, q, K)
        gamma: State time courses (ttrial, n_trials, K)

    Returns:
        Predictions (ttrial, n_trials, q)
    """
    ttrial, n_trials, p = X.shape
    q, n_states = betas.shape[1], betas.shape[2]

    X_flat = X.reshape(-1, p)
    gamma_flat = gamma.reshape(-1, n_states)

    prediction = np.zeros((ttrial * n_trials, q))
    for k in range(n_states):
        prediction += (X_flat @ betas[:, :, k]) * gamma_flat[:, [k]]

    return prediction.reshape(ttrial, n_trials, q)


def discriminant_prediction(
    model: StateModel,
    X: np.ndarray,
    gamma: np.ndarray,
    classification: bool,
    constant_response: bool
) -> np.ndarray:
    """
    Predictions of a fitted discriminant state model.

    Args:
        model: Fitted model exposing predict()
        X: Features (ttrial, n_trials, p)
        gamma: State time courses (ttrial, n_trials, K)
        classification: Whether the response is categorical
        constant_response: Whether the training response had no variance

    Returns:
        Predictions (ttrial, n_trials, q)
    """
    ttrial, n_trials, p = X.shape
    predictions = model.predict(
        gamma.reshape(ttrial * n_trials, -1),
        X.reshape(ttrial * n_trials, p),
        classification,
        constant_response
    )
    predictions = np.asarray(predictions)
    if predictions.ndim == 1:
        predictions = predictions[:, np.newaxis]
    return predictions.reshape(ttrial, n_trials, -1)


def logistic_link(predictions: np.ndarray, label_values: np.ndarray) -> np.ndarray:
    """
    Map linear predictor outputs to the response scale.

    With two label values (binary response) the sigmoid is stretched onto
    the label range, so -1/1 labels give 2 * sigmoid(z) - 1. Otherwise the
    columns are treated as multinomial logits and passed through a softmax.

    The choice depends on the distinct values of the responses, not on the
    number of columns. Class indicator (0/1) responses therefore get a
    sigmoid per column whatever the number of classes. The sigmoid is
    monotonic, so the winning column is the same as with a softmax.

    Args:
        predictions: Linear predictor outputs (..., q)
        label_values: Unique values of the per-trial responses

    Returns:
        Response-scale predictions (..., q)
    """
    label_values = np.unique(label_values)
    if len(label_values) == 2:
        lo, hi = float(label_values[0]), float(label_values[1])
        return lo + (hi - lo) * expit(predictions)
    return softmax(predictions, axis=-1)
