"""
Preprocessing applied before cross-validated state decoding.

Any callable with the signature ``(X, Y, T, config) -> PreprocessedData``
can be used as a preprocessor; StandardPreprocessor is the default.
"""

from dataclasses import dataclass
import numpy as np
from sklearn.preprocessing import label_binarize

from .config import TUDAConfig


@dataclass
class PreprocessedData:
    """
    Output of a preprocessor.

    Attributes:
        X: Features (n_timepoints, p)
        Y: Responses (n_timepoints, q_star); the first column is a constant
           intercept when ``intercept`` is True
        T: Trial lengths
        intercept: Whether an intercept response column was prepended
    """

    X: np.ndarray
    Y: np.ndarray
    T: np.ndarray
    intercept: bool = False

    @property
    def n_responses(self) -> int:
        """Response dimensionality after preprocessing (q_star)."""
        return self.Y.shape[1]

    @property
    def targets(self) -> np.ndarray:
        """Responses without the intercept column."""
        return self.Y[:, 1:] if self.intercept else self.Y


class StandardPreprocessor:
    """
    Default preprocessing of responses.

    - Categorical responses are rounded, and a single response column
      with more than two classes is expanded to class indicators (0/1).
    - Continuous responses are demeaned.
    - An intercept response column is optionally prepended. It is never
      added for discriminant models, which handle their own offsets.

    Features are passed through unchanged.
    """

    def __call__(
        self,
        X: np.ndarray,
        Y: np.ndarray,
        T: np.ndarray,
        config: TUDAConfig
    ) -> PreprocessedData:
        X = np.asarray(X, dtype=float)
        Y = np.asarray(Y, dtype=float)
        if Y.ndim == 1:
            Y = Y[:, np.newaxis]

        classification = config.model.classification

        if classification:
            Y = np.round(Y)
            if Y.shape[1] == 1:
                classes = np.unique(Y)
                if len(classes) > 2:
                    Y = label_binarize(Y[:, 0], classes=classes).astype(float)
        elif config.preprocessing.demean_responses:
            Y = Y - Y.mean(axis=0)

        intercept = config.preprocessing.intercept and not config.model.discriminant
        if intercept:
            Y = np.hstack([np.ones((Y.shape[0], 1)), Y])

        return PreprocessedData(X=X, Y=Y, T=np.asarray(T, dtype=int), intercept=intercept)
