"""
Trial-level cross-validation for state decoding.

Folds are built over whole trials, never over individual time points,
so that no part of a held-out trial is seen during training.
"""

from dataclasses import dataclass
from typing import Iterator, Tuple, Optional, List, Union, Iterable
import warnings
import numpy as np
from sklearn.model_selection import BaseCrossValidator, KFold, StratifiedKFold

MAX_DEFAULT_FOLDS = 10


class ImbalancedFoldsWarning(UserWarning):
    """Class totals differ, so folds cannot be exactly balanced."""


@dataclass(frozen=True)
class Fold:
    """One train/test split over trial indices."""

    index: int
    train: np.ndarray
    test: np.ndarray

    @property
    def n_train(self) -> int:
        return len(self.train)

    @property
    def n_test(self) -> int:
        return len(self.test)


def class_combination_key(responses: np.ndarray) -> np.ndarray:
    """
    Encode each trial's combination of response values as one class label.

    Each column's unique values are numbered 1..u_j and combined as digits
    of a mixed-radix integer with base q + 1. The base is widened when a
    column has more unique values than that, so that every distinct
    combination gets its own key.

    Args:
        responses: Per-trial responses (n_trials, q)

    Returns:
        Group labels 0..G-1 (n_trials,), ordered by key
    """
    responses = np.asarray(responses)
    if responses.ndim == 1:
        responses = responses[:, np.newaxis]

    n_trials, q = responses.shape
    n_unique = max(len(np.unique(responses[:, j])) for j in range(q))
    base = max(q + 1, n_unique + 1)

    key = np.zeros(n_trials, dtype=np.int64)
    for j in range(q):
        _, digit = np.unique(responses[:, j], return_inverse=True)
        key += base ** j * (digit.ravel() + 1)

    _, groups = np.unique(key, return_inverse=True)
    return groups.ravel()


def default_n_folds(groups: Optional[np.ndarray], n_trials: int) -> int:
    """
    Default number of folds.

    The smallest class count when the response is categorical, replaced by
    10 when it falls outside [2, 10]; 10 for continuous responses. Never
    more than the number of trials, nor than the largest class count, which
    is the most folds a stratified split can make.

    Args:
        groups: Class label per trial, or None for continuous responses
        n_trials: Number of trials
    """
    if groups is None:
        return min(MAX_DEFAULT_FOLDS, n_trials)

    _, counts = np.unique(groups, return_counts=True)
    n_folds = int(counts.min())
    if n_folds > MAX_DEFAULT_FOLDS or n_folds < 2:
        n_folds = MAX_DEFAULT_FOLDS

    return min(n_folds, n_trials, int(counts.max()))


def warn_if_imbalanced(groups: np.ndarray) -> bool:
    """
    Warn when the classes do not have the same number of trials.

    Returns:
        True if a warning was issued
    """
    _, counts = np.unique(groups, return_counts=True)
    if len(np.unique(counts)) > 1:
        warnings.warn(
            "Note that Y is not balanced; cross-validation folds will not be "
            "balanced and predictions will be biased",
            ImbalancedFoldsWarning,
            stacklevel=3
        )
        return True
    return False


class TrialKFold(BaseCrossValidator):
    """
    K-fold over trials, stratified by class combination for categorical responses.

    Example:
        >>> cv = TrialKFold(n_splits=5, classification=True)
        >>> for train_idx, test_idx in cv.split(responses):
        ...     responses_train = responses[train_idx]
    """

    def __init__(
        self,
        n_splits: Optional[int] = None,
        classification: bool = True,
        shuffle: bool = True,
        random_state: Optional[int] = 42
    ):
        """
        Initialize trial k-fold.

        Args:
            n_splits: Number of folds (None: see default_n_folds)
            classification: Stratify by class combination
            shuffle: Whether to shuffle trials before splitting
            random_state: Random seed
        """
        self.n_splits = n_splits
        self.classification = classification
        self.shuffle = shuffle
        self.random_state = random_state

    def _groups(self, y: np.ndarray) -> Optional[np.ndarray]:
        if not self.classification:
            return None
        return class_combination_key(y)

    def split(
        self,
        X: np.ndarray,
        y: np.ndarray = None,
        groups: np.ndarray = None
    ) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """
        Generate train/test trial indices for each fold.

        Args:
            X: Per-trial data; only its length is used
            y: Per-trial responses (n_trials, q), required to stratify
            groups: Precomputed class labels (overrides y)

        Yields:
            Tuple of (train_indices, test_indices)
        """
        n_trials = len(X)
        if groups is None and self.classification:
            if y is None:
                raise ValueError("TrialKFold requires y to stratify categorical responses")
            groups = self._groups(y)

        n_splits = self.get_n_splits(X, y, groups)
        random_state = self.random_state if self.shuffle else None

        if groups is not None:
            cv = StratifiedKFold(
                n_splits=n_splits, shuffle=self.shuffle, random_state=random_state
            )
            splits = cv.split(np.zeros(n_trials), groups)
        else:
            cv = KFold(n_splits=n_splits, shuffle=self.shuffle, random_state=random_state)
            splits = cv.split(np.zeros(n_trials))

        for train_idx, test_idx in splits:
            yield train_idx, test_idx

    def get_n_splits(
        self,
        X: np.ndarray = None,
        y: np.ndarray = None,
        groups: np.ndarray = None
    ) -> int:
        """Get number of folds."""
        if self.n_splits is not None:
            return int(self.n_splits)
        if X is None:
            raise ValueError("TrialKFold needs the data to choose a default number of folds")
        if groups is None and self.classification and y is not None:
            groups = self._groups(y)
        return default_n_folds(groups, len(X))


def check_folds(folds: List[Fold], n_trials: int):
    """
    Check that folds form a k-fold partition of all trials.

    Every trial must be tested exactly once, and in each fold train and test
    must be disjoint and together cover all trials.

    Raises:
        ValueError: If any of these conditions fails
    """
    all_trials = np.arange(n_trials)
    tested = np.zeros(n_trials, dtype=int)

    for fold in folds:
        if fold.n_test == 0:
            raise ValueError(f"Fold {fold.index} has an empty test set")
        if fold.n_train == 0:
            raise ValueError(f"Fold {fold.index} has an empty training set")
        if np.intersect1d(fold.train, fold.test).size > 0:
            raise ValueError(f"Fold {fold.index}: training and test trials overlap")
        union = np.union1d(fold.train, fold.test)
        if not np.array_equal(union, all_trials):
            raise ValueError(
                f"Fold {fold.index}: training and test trials do not cover all "
                f"{n_trials} trials"
            )
        np.add.at(tested, fold.test, 1)

    if np.any(tested != 1):
        raise ValueError(
            "Each trial must appear in exactly one test set; "
            f"{int(np.sum(tested == 0))} never tested, "
            f"{int(np.sum(tested > 1))} tested more than once"
        )


CVSpec = Union[None, int, BaseCrossValidator, Iterable[Tuple[np.ndarray, np.ndarray]]]


def make_folds(
    responses: np.ndarray,
    classification: bool,
    cv: CVSpec = None,
    n_folds: Optional[int] = None,
    shuffle: bool = True,
    random_state: Optional[int] = 42
) -> List[Fold]:
    """
    Build the cross-validation folds over trials.

    Args:
        responses: Per-trial responses (n_trials, q)
        classification: Whether the response is categorical
        cv: Number of folds, a scikit-learn splitter, or an iterable of
            (train_indices, test_indices); None uses TrialKFold
        n_folds: Number of folds when cv is None
        shuffle: Shuffle trials before splitting
        random_state: Random seed

    Returns:
        List of Fold, validated with check_folds
    """
    responses = np.asarray(responses)
    if responses.ndim == 1:
        responses = responses[:, np.newaxis]
    n_trials = responses.shape[0]

    groups = None
    if classification:
        groups = class_combination_key(responses)
        warn_if_imbalanced(groups)

    if cv is None or isinstance(cv, (int, np.integer)):
        splitter = TrialKFold(
            n_splits=n_folds if cv is None else int(cv),
            classification=classification,
            shuffle=shuffle,
            random_state=random_state
        )
        splits = splitter.split(responses, responses, groups=groups)
    elif hasattr(cv, "split"):
        if groups is not None:
            splits = cv.split(np.zeros(n_trials), groups)
        else:
            splits = cv.split(np.zeros(n_trials))
    else:
        splits = cv

    folds = [
        Fold(
            index=i,
            train=np.sort(np.asarray(train, dtype=int)),
            test=np.sort(np.asarray(test, dtype=int))
        )
        for i, (train, test) in enumerate(splits)
    ]

    if not folds:
        raise ValueError("No cross-validation folds were produced")

    check_folds(folds, n_trials)
    return folds
