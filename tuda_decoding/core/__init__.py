"""Core data models for cross-validated state decoding."""

from .dataset import TrialDataset
from .results import TUDAResults
from .config import TUDAConfig, get_config, set_config
from .preprocessing import PreprocessedData, StandardPreprocessor

__all__ = [
    "TrialDataset",
    "TUDAResults",
    "TUDAConfig",
    "get_config",
    "set_config",
    "PreprocessedData",
    "StandardPreprocessor",
]
