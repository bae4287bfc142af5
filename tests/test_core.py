"""Tests for the dataset container, configuration and preprocessing."""

import numpy as np
import pytest

from tuda_decoding.core.dataset import TrialDataset
from tuda_decoding.core.config import TUDAConfig, ModelConfig, CrossValidationConfig
from tuda_decoding.core.preprocessing import StandardPreprocessor


class TestTrialDataset:

    def test_per_trial_responses_are_expanded(self):
        dataset = TrialDataset(X=np.zeros((12, 2)), Y=[1, -1, 1], T=[4, 4, 4])

        assert dataset.Y.shape == (12, 1)
        np.testing.assert_array_equal(dataset.responses[:, 0], [1, -1, 1])
        assert dataset.trial_length == 4

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError, match="sum\\(T\\)"):
            TrialDataset(X=np.zeros((10, 2)), Y=np.zeros(10), T=[4, 4, 4])

        with pytest.raises(ValueError, match="one row per time point"):
            TrialDataset(X=np.zeros((12, 2)), Y=np.zeros(5), T=[4, 4, 4])

    def test_unequal_trials(self):
        dataset = TrialDataset(X=np.zeros((7, 2)), Y=np.zeros(7), T=[4, 3])

        assert not dataset.has_uniform_trials
        with pytest.raises(ValueError, match="must be equal"):
            dataset.to_trials()

    def test_to_trials_keeps_trial_order(self):
        X = np.arange(12, dtype=float)[:, np.newaxis]
        dataset = TrialDataset(X=X, Y=np.zeros(12), T=[4, 4, 4])

        X3, Y3 = dataset.to_trials()

        assert X3.shape == (4, 3, 1)
        np.testing.assert_array_equal(X3[:, 1, 0], [4, 5, 6, 7])

    def test_get_subset(self):
        X = np.arange(12, dtype=float)[:, np.newaxis]
        dataset = TrialDataset(X=X, Y=[0, 1, 2], T=[4, 4, 4])

        subset = dataset.get_subset([2, 0])

        assert subset.n_trials == 2
        np.testing.assert_array_equal(subset.X[:4, 0], [8, 9, 10, 11])
        np.testing.assert_array_equal(subset.responses[:, 0], [2, 0])

    def test_save_and_load(self, tmp_path):
        dataset = TrialDataset(X=np.ones((6, 2)), Y=[1, -1], T=[3, 3],
                               metadata={"subject": "s01"})
        dataset.save(str(tmp_path / "data.npz"))

        loaded = TrialDataset.load(str(tmp_path / "data.npz"))

        np.testing.assert_array_equal(loaded.Y, dataset.Y)
        assert loaded.metadata == {"subject": "s01"}


class TestTUDAConfig:

    def test_defaults(self):
        config = TUDAConfig()

        assert config.cv.cv_method == 1
        assert config.cv.ridge_lambda == 1e-4
        assert config.cv.n_folds is None
        assert not config.model.classification

    @pytest.mark.parametrize("kwargs, match", [
        ({"cv": CrossValidationConfig(cv_method=4)}, "cv_method"),
        ({"cv": CrossValidationConfig(ridge_lambda=0.0)}, "ridge_lambda"),
        ({"cv": CrossValidationConfig(n_folds=1)}, "n_folds"),
        ({"model": ModelConfig(classifier="svm")}, "classifier"),
        ({"model": ModelConfig(distribution="poisson")}, "distribution"),
        ({"model": ModelConfig(n_states=0)}, "n_states"),
    ])
    def test_invalid_options_fail(self, kwargs, match):
        with pytest.raises(ValueError, match=match):
            TUDAConfig(**kwargs)

    def test_file_round_trip(self, tmp_path):
        config = TUDAConfig(
            model=ModelConfig(n_states=4, classifier="LDA"),
            cv=CrossValidationConfig(cv_method=2, ridge_lambda=1e-3),
            verbose=False
        )
        path = str(tmp_path / "config.json")
        config.save(path)

        loaded = TUDAConfig.from_file(path)

        assert loaded.to_dict() == config.to_dict()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TUDA_N_JOBS", "2")
        monkeypatch.setenv("TUDA_RANDOM_STATE", "7")
        monkeypatch.setenv("TUDA_VERBOSE", "0")

        config = TUDAConfig.from_env()

        assert config.n_jobs == 2
        assert config.cv.random_state == 7
        assert config.verbose is False


class TestStandardPreprocessor:

    def test_continuous_responses_are_demeaned(self):
        Y = np.array([[1.0, 10.0], [3.0, 20.0]])
        data = StandardPreprocessor()(np.zeros((2, 1)), Y, [1, 1], TUDAConfig())

        np.testing.assert_allclose(data.Y.mean(axis=0), [0.0, 0.0])
        assert not data.intercept

    def test_intercept_column(self):
        config = TUDAConfig()
        config.preprocessing.intercept = True
        data = StandardPreprocessor()(np.zeros((3, 1)), np.arange(3.0), [3], config)

        assert data.n_responses == 2
        np.testing.assert_array_equal(data.Y[:, 0], 1.0)
        np.testing.assert_allclose(data.targets[:, 0], [-1.0, 0.0, 1.0])

    def test_no_intercept_for_discriminant_models(self):
        config = TUDAConfig(model=ModelConfig(classifier="LDA"))
        config.preprocessing.intercept = True
        data = StandardPreprocessor()(np.zeros((2, 1)), np.array([-1.0, 1.0]), [2], config)

        assert not data.intercept
        assert data.n_responses == 1

    def test_multiclass_labels_become_indicators(self):
        config = TUDAConfig(model=ModelConfig(classifier="logistic"))
        data = StandardPreprocessor()(np.zeros((3, 1)), np.array([0.0, 2.0, 1.0]), [3], config)

        np.testing.assert_array_equal(data.Y, [[1, 0, 0], [0, 0, 1], [0, 1, 0]])
