"""State decoding models, held-out state estimation and cross-validation."""

from .base import StateModel, LinearStateModel, StateTrainer, extract_coefficients
from .trainers import SegmentedRidgeTrainer, DiscriminantTrainer, DiscriminantStateModel
from .distributional import GaussianStatePredictor
from .heldout import (
    FoldData,
    HeldOutStateEstimator,
    TrainingAverageEstimator,
    RidgeRegressionEstimator,
    DistributionalEstimator,
    get_heldout_estimator
)
from .tuda import TUDACrossValidator, FoldArtifacts, tudacv

__all__ = [
    "StateModel",
    "LinearStateModel",
    "StateTrainer",
    "extract_coefficients",
    "SegmentedRidgeTrainer",
    "DiscriminantTrainer",
    "DiscriminantStateModel",
    "GaussianStatePredictor",
    "FoldData",
    "HeldOutStateEstimator",
    "TrainingAverageEstimator",
    "RidgeRegressionEstimator",
    "DistributionalEstimator",
    "get_heldout_estimator",
    "TUDACrossValidator",
    "FoldArtifacts",
    "tudacv"
]
