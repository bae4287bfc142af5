"""Trial-level cross-validation and scoring for state decoding."""

from .cross_validation import (
    Fold,
    TrialKFold,
    ImbalancedFoldsWarning,
    class_combination_key,
    default_n_folds,
    make_folds,
    check_folds
)
from .metrics import (
    to_class_labels,
    trial_class_predictions,
    classification_accuracy,
    explained_variance
)

__all__ = [
    "Fold",
    "TrialKFold",
    "ImbalancedFoldsWarning",
    "class_combination_key",
    "default_n_folds",
    "make_folds",
    "check_folds",
    "to_class_labels",
    "trial_class_predictions",
    "classification_accuracy",
    "explained_variance"
]
