"""
TrialDataset - Container for trial-structured decoding data.

Holds continuous brain-activity features, the stimulus/response signal
and the length of each trial, as used by the state decoding models.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Tuple
import numpy as np
import json
from pathlib import Path


@dataclass
class TrialDataset:
    """
    Container for trial-structured decoding data.

    Trials are stored back to back along the first axis of X. Y either has
    one row per time point, or one row per trial, in which case each trial
    value is repeated over all of its time points.

    Attributes:
        X: Feature matrix (n_timepoints, n_features)
        Y: Responses (n_timepoints, q) or (n_trials, q)
        T: Length of each trial (n_trials,)
        feature_names: Names for each feature
        metadata: Additional information (subject, task, etc.)

    Example:
        >>> dataset = TrialDataset(
        ...     X=np.random.randn(20 * 50, 10),
        ...     Y=np.repeat([-1, 1], 10),
        ...     T=np.full(20, 50)
        ... )
        >>> print(dataset.summary())
    """

    X: np.ndarray
    Y: np.ndarray
    T: np.ndarray
    feature_names: Optional[List[str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate shapes and expand per-trial responses."""
        self.X = np.asarray(self.X, dtype=float)
        self.Y = np.asarray(self.Y, dtype=float)
        self.T = np.asarray(self.T, dtype=int).ravel()

        if self.X.ndim == 1:
            self.X = self.X[:, np.newaxis]
        if self.Y.ndim == 1:
            self.Y = self.Y[:, np.newaxis]

        if np.any(self.T <= 0):
            raise ValueError("All trial lengths in T must be positive")

        n_timepoints = int(self.T.sum())
        if self.X.shape[0] != n_timepoints:
            raise ValueError(
                f"X must have sum(T) rows. "
                f"Got X: {self.X.shape[0]}, sum(T): {n_timepoints}"
            )

        if self.Y.shape[0] == len(self.T) and len(self.T) != n_timepoints:
            # One value per trial
            self.Y = np.repeat(self.Y, self.T, axis=0)
        elif self.Y.shape[0] != n_timepoints:
            raise ValueError(
                f"Y must have one row per time point or one row per trial. "
                f"Got Y: {self.Y.shape[0]}, sum(T): {n_timepoints}, "
                f"trials: {len(self.T)}"
            )

        if self.feature_names is None:
            self.feature_names = [f"feature_{i}" for i in range(self.n_features)]

    @property
    def n_trials(self) -> int:
        """Number of trials."""
        return len(self.T)

    @property
    def n_timepoints(self) -> int:
        """Total number of time points."""
        return self.X.shape[0]

    @property
    def n_features(self) -> int:
        """Number of features."""
        return self.X.shape[1]

    @property
    def n_responses(self) -> int:
        """Number of response columns (q)."""
        return self.Y.shape[1]

    @property
    def has_uniform_trials(self) -> bool:
        return bool(np.all(self.T == self.T[0]))

    @property
    def trial_length(self) -> int:
        """
        Common trial length.

        Raises:
            ValueError: If trials differ in length
        """
        self.check_uniform_trials()
        return int(self.T[0])

    def check_uniform_trials(self):
        """Cross-validation requires every trial to have the same length."""
        if not self.has_uniform_trials:
            lengths = np.unique(self.T)
            raise ValueError(
                "All elements of T must be equal for cross-validation. "
                f"Got trial lengths: {lengths.tolist()}"
            )

    @property
    def responses(self) -> np.ndarray:
        """Per-trial response values (n_trials, q), taken at each trial's first time point."""
        onsets = np.concatenate([[0], np.cumsum(self.T)[:-1]])
        return self.Y[onsets]

    @property
    def is_categorical(self) -> bool:
        """Whether every response value is an integer."""
        return bool(np.all(np.equal(np.round(self.Y), self.Y)))

    def class_counts(self) -> Dict[Tuple[float, ...], int]:
        """Number of trials per distinct response combination."""
        unique, counts = np.unique(self.responses, axis=0, return_counts=True)
        return {tuple(float(v) for v in u): int(c) for u, c in zip(unique, counts)}

    def to_trials(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Reshape into (ttrial, n_trials, ...) arrays.

        Returns:
            Tuple of (X, Y) with shapes (ttrial, N, p) and (ttrial, N, q)
        """
        ttrial = self.trial_length
        X = self.X.reshape(self.n_trials, ttrial, self.n_features).transpose(1, 0, 2)
        Y = self.Y.reshape(self.n_trials, ttrial, self.n_responses).transpose(1, 0, 2)
        return X, Y

    def get_subset(self, trials: np.ndarray) -> "TrialDataset":
        """
        Get a subset of trials.

        Args:
            trials: Trial indices to include

        Returns:
            New TrialDataset with the selected trials, in the given order
        """
        trials = np.asarray(trials, dtype=int)
        onsets = np.concatenate([[0], np.cumsum(self.T)[:-1]])
        rows = np.concatenate(
            [np.arange(onsets[j], onsets[j] + self.T[j]) for j in trials]
        )

        return TrialDataset(
            X=self.X[rows],
            Y=self.Y[rows],
            T=self.T[trials],
            feature_names=self.feature_names,
            metadata=self.metadata.copy()
        )

    def summary(self) -> str:
        """Generate text summary of dataset."""
        lines = [
            "TrialDataset Summary",
            "=" * 40,
            f"Trials: {self.n_trials}",
            f"Time points: {self.n_timepoints}",
            f"Trial lengths: {np.unique(self.T).tolist()}",
            f"Features: {self.n_features}",
            f"Responses: {self.n_responses}",
            f"Categorical: {'Yes' if self.is_categorical else 'No'}",
        ]

        if self.is_categorical:
            lines.append("")
            lines.append("Trials per response combination:")
            for key, count in self.class_counts().items():
                lines.append(f"  {key}: {count}")

        if self.metadata:
            lines.append("")
            lines.append("Metadata:")
            for key, value in self.metadata.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)

    def save(self, path: str):
        """
        Save dataset to npz file.

        Args:
            path: Output path (.npz)
        """
        path = Path(path)
        np.savez(path, X=self.X, Y=self.Y, T=self.T)

        meta_path = path.with_suffix(".json")
        with open(meta_path, "w") as f:
            json.dump(
                {"feature_names": self.feature_names, "metadata": self.metadata},
                f,
                indent=2
            )

    @classmethod
    def load(cls, path: str) -> "TrialDataset":
        """
        Load dataset from npz file.

        Args:
            path: Path to .npz file

        Returns:
            TrialDataset instance
        """
        path = Path(path)
        data = np.load(path)

        meta_path = path.with_suffix(".json")
        if meta_path.exists():
            with open(meta_path) as f:
                meta = json.load(f)
        else:
            meta = {}

        return cls(
            X=data["X"],
            Y=data["Y"],
            T=data["T"],
            feature_names=meta.get("feature_names"),
            metadata=meta.get("metadata", {})
        )

    def __repr__(self) -> str:
        return (
            f"TrialDataset(n_trials={self.n_trials}, "
            f"n_timepoints={self.n_timepoints}, "
            f"n_features={self.n_features}, n_responses={self.n_responses})"
        )

    def __len__(self) -> int:
        return self.n_trials
