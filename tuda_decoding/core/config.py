"""
TUDAConfig - Configuration settings for cross-validated state decoding.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any
import os
import json


CV_METHODS = {
    1: "training_average",
    2: "regression",
    3: "distributional",
}

CLASSIFIERS = (None, "regression", "logistic", "LDA")
DISTRIBUTIONS = ("gaussian", "logistic")


@dataclass
class ModelConfig:
    """Configuration for the state decoding model."""

    n_states: int = 3

    # None: continuous response (explained variance)
    # "regression" / "logistic": per-state linear decoders on a categorical response
    # "LDA": per-state discriminant models
    classifier: Optional[str] = None

    # Response link: "gaussian" (identity) or "logistic"
    distribution: str = "gaussian"

    @property
    def classification(self) -> bool:
        return self.classifier is not None

    @property
    def discriminant(self) -> bool:
        return self.classifier == "LDA"


@dataclass
class CrossValidationConfig:
    """Configuration for cross-validation."""

    # Held-out state time course estimation (see CV_METHODS)
    cv_method: int = 1

    # None: minimum class count clamped to [1, 10], or 10 for continuous responses
    n_folds: Optional[int] = None

    # Ridge penalty for cv_method=2
    ridge_lambda: float = 1e-4

    shuffle: bool = True
    random_state: Optional[int] = 42


@dataclass
class PreprocessingConfig:
    """Configuration for the default preprocessor."""

    demean_responses: bool = True
    intercept: bool = False


@dataclass
class TUDAConfig:
    """
    Configuration for a cross-validated TUDA analysis.

    All options are resolved and validated once, before any fold is
    processed. The cross-validation loop only reads from it.

    Example:
        >>> config = TUDAConfig()
        >>> config.model.n_states = 4
        >>> config.cv.cv_method = 2
        >>> config.validate()
        >>> config.save("tuda_config.json")
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    cv: CrossValidationConfig = field(default_factory=CrossValidationConfig)
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)

    # General
    verbose: bool = True
    n_jobs: int = 1

    def __post_init__(self):
        self.validate()

    def validate(self) -> "TUDAConfig":
        """
        Check every option against its recognized values.

        Raises:
            ValueError: If any option is out of range
        """
        if int(self.model.n_states) < 1:
            raise ValueError(f"n_states must be >= 1, got {self.model.n_states}")

        if self.model.classifier not in CLASSIFIERS:
            raise ValueError(
                f"Unknown classifier: {self.model.classifier!r}. "
                f"Expected one of {CLASSIFIERS}"
            )

        if self.model.distribution not in DISTRIBUTIONS:
            raise ValueError(
                f"Unknown distribution: {self.model.distribution!r}. "
                f"Expected one of {DISTRIBUTIONS}"
            )

        if self.cv.cv_method not in CV_METHODS:
            raise ValueError(
                f"cv_method must be one of {sorted(CV_METHODS)}, "
                f"got {self.cv.cv_method!r}"
            )

        if self.cv.n_folds is not None and int(self.cv.n_folds) < 2:
            raise ValueError(f"n_folds must be >= 2, got {self.cv.n_folds}")

        # The ridge term is what keeps the per-time-point solve invertible
        if not self.cv.ridge_lambda > 0:
            raise ValueError(
                f"ridge_lambda must be strictly positive, got {self.cv.ridge_lambda}"
            )

        if self.n_jobs == 0:
            raise ValueError("n_jobs must be a non-zero integer")

        return self

    @classmethod
    def from_env(cls) -> "TUDAConfig":
        """Load configuration from environment variables."""
        random_state = os.getenv("TUDA_RANDOM_STATE", "42")
        return cls(
            cv=CrossValidationConfig(
                random_state=None if random_state == "" else int(random_state)
            ),
            n_jobs=int(os.getenv("TUDA_N_JOBS", "1")),
            verbose=os.getenv("TUDA_VERBOSE", "1") not in ("0", "false", "False")
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TUDAConfig":
        """Build configuration from a (possibly partial) nested dict."""
        return cls(
            model=ModelConfig(**data.get("model", {})),
            cv=CrossValidationConfig(**data.get("cv", {})),
            preprocessing=PreprocessingConfig(**data.get("preprocessing", {})),
            verbose=data.get("verbose", True),
            n_jobs=data.get("n_jobs", 1)
        )

    @classmethod
    def from_file(cls, path: str) -> "TUDAConfig":
        """Load configuration from JSON file."""
        with open(path) as f:
            data = json.load(f)

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": asdict(self.model),
            "cv": asdict(self.cv),
            "preprocessing": asdict(self.preprocessing),
            "verbose": self.verbose,
            "n_jobs": self.n_jobs
        }

    def save(self, path: str):
        """Save configuration to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


# Global config instance
_config: Optional[TUDAConfig] = None


def get_config() -> TUDAConfig:
    """Get global configuration instance."""
    global _config
    if _config is None:
        _config = TUDAConfig.from_env()
    return _config


def set_config(config: TUDAConfig):
    """Set global configuration instance."""
    global _config
    _config = config.validate()
