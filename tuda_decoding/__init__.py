"""
Cross-validation for Temporally Unconstrained Decoding Analysis (TUDA)

Estimates how well a K-state decoding model predicts a stimulus or
response from brain activity in held-out trials, without using the
held-out responses to choose which state is active.

Example:
    >>> from tuda_decoding import TrialDataset, TUDAConfig, TUDACrossValidator
    >>> from tuda_decoding.models import SegmentedRidgeTrainer
    >>>
    >>> dataset = TrialDataset(X=X, Y=labels, T=trial_lengths)
    >>> config = TUDAConfig()
    >>> config.model.classifier = "regression"
    >>>
    >>> cv = TUDACrossValidator(SegmentedRidgeTrainer(), config)
    >>> results = cv.cross_validate(dataset)
    >>> print(f"Accuracy: {results.accuracy:.1%}")
"""

__version__ = "0.1.0"
__author__ = "Neuro-Hub"

# Core data structures
from .core import TrialDataset, TUDAResults, TUDAConfig, StandardPreprocessor

# Models
from .models import (
    StateModel,
    LinearStateModel,
    StateTrainer,
    SegmentedRidgeTrainer,
    DiscriminantTrainer,
    GaussianStatePredictor,
    TrainingAverageEstimator,
    RidgeRegressionEstimator,
    DistributionalEstimator,
    TUDACrossValidator,
    tudacv
)

# Validation
from .validation import TrialKFold, ImbalancedFoldsWarning, make_folds

__all__ = [
    # Core
    "TrialDataset",
    "TUDAResults",
    "TUDAConfig",
    "StandardPreprocessor",
    # Models
    "StateModel",
    "LinearStateModel",
    "StateTrainer",
    "SegmentedRidgeTrainer",
    "DiscriminantTrainer",
    "GaussianStatePredictor",
    "TrainingAverageEstimator",
    "RidgeRegressionEstimator",
    "DistributionalEstimator",
    "TUDACrossValidator",
    "tudacv",
    # Validation
    "TrialKFold",
    "ImbalancedFoldsWarning",
    "make_folds",
]
