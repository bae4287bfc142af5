"""
Scoring of cross-validated state decoding predictions.

Predictions are scored at every time point of every trial, giving an
overall value and a time course across the trial.
"""

from typing import Tuple
import numpy as np

MATCH_TOLERANCE = 1e-4


def _binary_values(reference: np.ndarray) -> Tuple[float, float]:
    values = np.unique(reference)
    if len(values) == 1:
        return float(values[0]), float(values[0])
    return float(values[0]), float(values[-1])


def to_class_labels(reference: np.ndarray, predictions: np.ndarray) -> np.ndarray:
    """
    Turn continuous predictions into class labels.

    For a single response column the labels are the two values found in
    ``reference`` (e.g. -1 and 1) and each prediction takes the nearer one.
    For several columns (class indicators) each row becomes a one-hot
    vector at its largest value.

    Args:
        reference: Categorical targets (n, q), used to find the label values
        predictions: Continuous predictions (n, q)

    Returns:
        Label predictions (n, q)
    """
    reference = np.asarray(reference)
    predictions = np.asarray(predictions, dtype=float)

    if predictions.shape[-1] == 1:
        lo, hi = _binary_values(reference)
        mid = (lo + hi) / 2
        return np.where(predictions > mid, hi, lo)

    labels = np.zeros_like(predictions)
    best = np.argmax(predictions, axis=-1)
    np.put_along_axis(labels, best[..., np.newaxis], 1.0, axis=-1)
    return labels


def trial_class_predictions(
    reference: np.ndarray,
    predictions_time: np.ndarray
) -> np.ndarray:
    """
    Most likely class of each trial from its time-resolved predictions.

    Binary: the sign of the time-averaged prediction around the midpoint
    of the two labels (plain sign for -1/1 labels). Multi-class: one-hot
    at the class with the largest time-averaged prediction.

    Args:
        reference: Categorical targets (..., q), used to find the label values
        predictions_time: Predictions (ttrial, n_trials, q)

    Returns:
        Trial predictions (n_trials, q)
    """
    mean_prediction = predictions_time.mean(axis=0)

    if mean_prediction.shape[-1] == 1:
        lo, hi = _binary_values(reference)
        mid = (lo + hi) / 2
        return mid + np.sign(mean_prediction - mid) * (hi - lo) / 2

    trial_predictions = np.zeros_like(mean_prediction)
    best = np.argmax(mean_prediction, axis=1)
    trial_predictions[np.arange(len(best)), best] = 1.0
    return trial_predictions


def classification_accuracy(
    targets: np.ndarray,
    predictions: np.ndarray
) -> Tuple[float, np.ndarray, np.ndarray, np.ndarray]:
    """
    Cross-validated classification accuracy.

    Both targets and predictions are first mapped to clean class labels,
    which removes any noise added to the targets during preprocessing.
    A time point is correct when its label matches the target.

    Args:
        targets: True responses (ttrial, n_trials, q)
        predictions: Predicted responses (ttrial, n_trials, q)

    Returns:
        Tuple of (accuracy, accuracy per time point (ttrial,),
        trial predictions (n_trials, q), label predictions (ttrial, n_trials, q))
    """
    ttrial, n_trials, q = targets.shape
    flat_targets = targets.reshape(-1, q)

    clean_targets = to_class_labels(flat_targets, flat_targets)
    labels = to_class_labels(flat_targets, predictions.reshape(-1, q))
    labels_time = labels.reshape(ttrial, n_trials, q)

    trial_predictions = trial_class_predictions(flat_targets, labels_time)

    correct = np.sum(np.abs(clean_targets - labels), axis=1) < MATCH_TOLERANCE
    correct = correct.reshape(ttrial, n_trials)

    accuracy = float(np.mean(correct))
    accuracy_time = correct.mean(axis=1)

    return accuracy, accuracy_time, trial_predictions, labels_time


def _explained_variance(y: np.ndarray, y_pred: np.ndarray, axis: int) -> np.ndarray:
    residual = np.sum((y - y_pred) ** 2, axis=axis)
    total = np.sum(y ** 2, axis=axis)

    # A perfectly predicted all-zero signal counts as fully explained
    ratio = np.full(np.broadcast(residual, total).shape, np.inf)
    np.divide(residual, total, out=ratio, where=total > 0)
    ratio[residual == 0] = 0.0
    return 1.0 - ratio


def explained_variance(
    targets: np.ndarray,
    predictions: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Cross-validated explained variance, 1 - sum((y - y_pred)^2) / sum(y^2).

    Args:
        targets: True responses (ttrial, n_trials, q)
        predictions: Predicted responses (ttrial, n_trials, q)

    Returns:
        Tuple of (explained variance per response (q,), explained variance
        per time point (ttrial, q), trial predictions (n_trials, q))
    """
    q = targets.shape[-1]

    ev = _explained_variance(targets.reshape(-1, q), predictions.reshape(-1, q), axis=0)
    ev_time = _explained_variance(targets, predictions, axis=1)
    trial_predictions = predictions.mean(axis=0)

    return ev, ev_time, trial_predictions
