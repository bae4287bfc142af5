"""
TUDAResults - Container for cross-validated state decoding results.

Stores the cross-validated accuracy (or explained variance), its time
course, and the trial- and time-point-level predictions.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Union
import numpy as np
import pandas as pd
import json
from pathlib import Path


@dataclass
class TUDAResults:
    """
    Container for cross-validated TUDA results.

    Attributes:
        accuracy: Classification accuracy (float), or explained variance
            per response column (q,) for continuous responses
        accuracy_time: Accuracy per time point within the trial (ttrial,),
            or explained variance per time point (ttrial, q)
        predictions: Trial-level predictions (n_trials, q)
        predictions_time: Time-point-level predictions (ttrial, n_trials, q)
        true_responses: Targets the predictions were scored against
            (ttrial, n_trials, q)
        gamma: Held-out state time courses (ttrial, n_trials, K)
        folds: List of (train_indices, test_indices) per fold
        classification: Whether the response was treated as categorical
        metadata: Additional information

    Example:
        >>> results = TUDACrossValidator(trainer).cross_validate(dataset)
        >>> print(results.summary())
        >>> results.to_frame().plot(x="time", y="accuracy")
    """

    accuracy: Union[float, np.ndarray]
    accuracy_time: np.ndarray
    predictions: np.ndarray
    predictions_time: np.ndarray
    true_responses: Optional[np.ndarray] = None
    gamma: Optional[np.ndarray] = None
    folds: Optional[List[tuple]] = None
    classification: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_folds(self) -> int:
        """Number of CV folds."""
        if self.folds is None:
            return 0
        return len(self.folds)

    @property
    def n_trials(self) -> int:
        return self.predictions.shape[0]

    @property
    def trial_length(self) -> int:
        return self.predictions_time.shape[0]

    @property
    def peak_time(self) -> int:
        """Time point with the highest accuracy (averaged over responses)."""
        acc = np.asarray(self.accuracy_time)
        if acc.ndim > 1:
            acc = acc.mean(axis=1)
        return int(np.argmax(acc))

    def as_tuple(self) -> tuple:
        """(acc, acc_star, Ypred, Ypred_star) outputs."""
        return self.accuracy, self.accuracy_time, self.predictions, self.predictions_time

    def to_frame(self) -> pd.DataFrame:
        """
        Accuracy time course as a table.

        Returns:
            DataFrame with a ``time`` column and one accuracy column per
            response (a single ``accuracy`` column for classification)
        """
        acc = np.asarray(self.accuracy_time)
        if acc.ndim == 1:
            columns = {"accuracy": acc}
        else:
            columns = {f"explained_variance_{j}": acc[:, j] for j in range(acc.shape[1])}

        return pd.DataFrame({"time": np.arange(acc.shape[0]), **columns})

    def summary(self) -> str:
        """Generate text summary of results."""
        metric = "Accuracy" if self.classification else "Explained variance"
        lines = [
            "TUDA Cross-Validation Summary",
            "=" * 40,
        ]

        if self.classification:
            lines.append(f"{metric}: {float(self.accuracy):.1%}")
        else:
            values = ", ".join(f"{v:.3f}" for v in np.atleast_1d(self.accuracy))
            lines.append(f"{metric}: [{values}]")

        lines.append(f"CV Folds: {self.n_folds}")
        lines.append(f"Trials: {self.n_trials}")
        lines.append(f"Peak time point: {self.peak_time}")

        if self.metadata:
            lines.append("")
            lines.append("Metadata:")
            for key, value in self.metadata.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)

    def save(self, path: str):
        """Save results to JSON file, with arrays in an .npz file alongside."""
        path = Path(path)

        arrays = {
            "accuracy_time": np.asarray(self.accuracy_time),
            "predictions": self.predictions,
            "predictions_time": self.predictions_time,
        }
        if self.true_responses is not None:
            arrays["true_responses"] = self.true_responses
        if self.gamma is not None:
            arrays["gamma"] = self.gamma

        arrays_path = path.with_suffix(".arrays.npz")
        np.savez(arrays_path, **arrays)

        data = {
            "accuracy": np.atleast_1d(self.accuracy).tolist(),
            "classification": self.classification,
            "n_folds": self.n_folds,
            "folds": [
                {"train": np.asarray(tr).tolist(), "test": np.asarray(te).tolist()}
                for tr, te in (self.folds or [])
            ],
            "arrays_path": str(arrays_path),
            "metadata": self.metadata
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2, default=str)

    def __repr__(self) -> str:
        if self.classification:
            acc_str = f"accuracy={float(self.accuracy):.1%}"
        else:
            acc_str = f"explained_variance={np.round(np.atleast_1d(self.accuracy), 3).tolist()}"
        return f"TUDAResults({acc_str}, n_folds={self.n_folds})"
