"""Tests for trial-level fold construction."""

import numpy as np
import pytest
from sklearn.model_selection import KFold

from tuda_decoding import TrialDataset, TUDACrossValidator
from tuda_decoding.models import SegmentedRidgeTrainer
from tuda_decoding.validation.cross_validation import (
    Fold,
    TrialKFold,
    ImbalancedFoldsWarning,
    class_combination_key,
    default_n_folds,
    make_folds,
    check_folds,
)

from .conftest import make_config, make_trials


def _assert_partition(folds, n_trials):
    tested = np.concatenate([f.test for f in folds])
    assert np.array_equal(np.sort(tested), np.arange(n_trials))
    for fold in folds:
        assert np.intersect1d(fold.train, fold.test).size == 0
        assert np.array_equal(np.union1d(fold.train, fold.test), np.arange(n_trials))


@pytest.mark.parametrize("classification", [True, False])
def test_folds_partition_all_trials(classification):
    responses = np.repeat([-1, 1], 15)[:, np.newaxis]
    folds = make_folds(responses, classification, n_folds=5)

    assert len(folds) == 5
    _assert_partition(folds, 30)


def test_stratified_folds_keep_class_balance():
    responses = np.repeat([-1, 1], 10)[:, np.newaxis]
    folds = make_folds(responses, True, n_folds=5)

    for fold in folds:
        test_labels = responses[fold.test, 0]
        assert np.sum(test_labels == 1) == 2
        assert np.sum(test_labels == -1) == 2


def test_class_combination_key_distinguishes_combinations():
    responses = np.array([
        [0, 0],
        [0, 1],
        [1, 0],
        [1, 1],
        [0, 1],
    ])
    groups = class_combination_key(responses)

    assert len(np.unique(groups)) == 4
    assert groups[1] == groups[4]


def test_class_combination_key_with_many_values_per_column():
    # Four values in the first column exceed the base of q + 1 = 3
    responses = np.array([[a, b] for a in range(4) for b in range(2)])
    groups = class_combination_key(responses)

    assert len(np.unique(groups)) == 8


def test_default_n_folds():
    assert default_n_folds(np.repeat([0, 1], [4, 6]), 10) == 4
    assert default_n_folds(np.repeat([0, 1], 50), 100) == 10
    assert default_n_folds(None, 100) == 10
    assert default_n_folds(None, 6) == 6


def test_default_n_folds_with_single_trial_class():
    # A class with one trial cannot set the fold count
    assert default_n_folds(np.repeat([0, 1], [9, 1]), 10) == 9
    assert default_n_folds(np.repeat([0, 1], [30, 1]), 31) == 10


def test_single_trial_class_runs_end_to_end():
    labels = np.array([-1.0] * 9 + [1.0])
    ttrial = 10
    X = make_trials(labels, ttrial)
    T = np.full(len(labels), ttrial)

    with pytest.warns(ImbalancedFoldsWarning):
        results = TUDACrossValidator(
            SegmentedRidgeTrainer(), make_config(classifier="regression")
        ).cross_validate(TrialDataset(X=X, Y=labels, T=T))

    assert results.n_folds == 9
    _assert_partition([Fold(i, train, test) for i, (train, test) in enumerate(results.folds)], 10)
    assert 0.0 <= results.accuracy <= 1.0


def test_imbalance_warns_but_proceeds():
    responses = np.repeat([-1, 1], [12, 8])[:, np.newaxis]

    with pytest.warns(ImbalancedFoldsWarning):
        folds = make_folds(responses, True)

    assert len(folds) == 8
    _assert_partition(folds, 20)


def test_supplied_partition_is_used():
    responses = np.arange(6)[:, np.newaxis].astype(float)
    partition = [
        (np.array([2, 3, 4, 5]), np.array([0, 1])),
        (np.array([0, 1, 4, 5]), np.array([2, 3])),
        (np.array([0, 1, 2, 3]), np.array([4, 5])),
    ]
    folds = make_folds(responses, False, cv=partition)

    assert [f.test.tolist() for f in folds] == [[0, 1], [2, 3], [4, 5]]


def test_supplied_sklearn_splitter():
    responses = np.arange(12)[:, np.newaxis].astype(float)
    folds = make_folds(responses, False, cv=KFold(n_splits=3))

    assert len(folds) == 3
    _assert_partition(folds, 12)


def test_invalid_partition_rejected():
    responses = np.arange(4)[:, np.newaxis].astype(float)
    overlapping = [
        (np.array([2, 3]), np.array([0, 1])),
        (np.array([0, 3]), np.array([1, 2])),
    ]

    with pytest.raises(ValueError, match="exactly one test set"):
        make_folds(responses, False, cv=overlapping)


def test_check_folds_rejects_train_test_overlap():
    folds = [Fold(index=0, train=np.array([0, 1, 2]), test=np.array([2, 3]))]

    with pytest.raises(ValueError, match="overlap"):
        check_folds(folds, 4)


def test_trial_k_fold_is_deterministic():
    responses = np.repeat([-1, 1], 10)[:, np.newaxis]
    cv = TrialKFold(n_splits=5, random_state=0)

    first = [test.tolist() for _, test in cv.split(responses, responses)]
    second = [test.tolist() for _, test in cv.split(responses, responses)]

    assert first == second
    assert cv.get_n_splits() == 5
