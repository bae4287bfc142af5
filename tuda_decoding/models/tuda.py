"""
Cross-validation of Temporally Unconstrained Decoding Analysis (TUDA) models.

For every fold, a K-state decoding model is trained on the training
trials and the state time courses of the test trials are estimated
without looking at their responses. The test responses are then
predicted as a state-weighted combination of the state decoders and
scored against the truth, both over whole trials and per time point.
"""

from dataclasses import dataclass
from typing import Optional, Callable, List, Tuple
import numpy as np
from joblib import Parallel, delayed

from ..core.config import TUDAConfig, get_config
from ..core.dataset import TrialDataset
from ..core.preprocessing import StandardPreprocessor
from ..core.results import TUDAResults
from ..validation.cross_validation import Fold, make_folds, CVSpec
from ..validation.metrics import classification_accuracy, explained_variance
from .base import StateModel, extract_coefficients
from .heldout import (
    FoldData,
    HeldOutStateEstimator,
    DistributionalPredictor,
    get_heldout_estimator
)
from .prediction import mixture_prediction, discriminant_prediction, logistic_link

Trainer = Callable[[np.ndarray, np.ndarray, np.ndarray, TUDAConfig], Tuple[StateModel, np.ndarray]]
CoefficientExtractor = Callable[[StateModel], np.ndarray]


@dataclass
class FoldArtifacts:
    """
    Everything one fold contributes to prediction.

    Attributes:
        fold: The fold these artifacts belong to
        gamma_test: Estimated test state time courses (ttrial, n_test, K)
        coefficients: Per-state coefficients (p, q_star, K), linear models only
        model: Fitted model, discriminant models only
        constant_response: Whether the training response had no variance
    """

    fold: Fold
    gamma_test: np.ndarray
    coefficients: Optional[np.ndarray] = None
    model: Optional[StateModel] = None
    constant_response: bool = False


def fit_fold(
    fold: Fold,
    X: np.ndarray,
    Y: np.ndarray,
    T: np.ndarray,
    trainer: Trainer,
    config: TUDAConfig,
    estimator: HeldOutStateEstimator,
    coefficient_extractor: CoefficientExtractor = extract_coefficients
) -> FoldArtifacts:
    """
    Train on one fold and estimate its held-out state time courses.

    Args:
        fold: Train/test trial indices
        X: Features (ttrial, n_trials, p)
        Y: Preprocessed responses (ttrial, n_trials, q_star)
        T: Trial lengths (n_trials,)
        trainer: Called as trainer(X_train, Y_train, T_train, config)
        config: Analysis configuration
        estimator: Held-out state estimator
        coefficient_extractor: Gets (p, q_star, K) coefficients from a model

    Returns:
        FoldArtifacts for the fold
    """
    ttrial, _, p = X.shape
    q_star = Y.shape[2]
    n_states = config.model.n_states
    n_train = fold.n_train

    # Trials stacked in time, as in the original data
    X_train = X[:, fold.train].transpose(1, 0, 2).reshape(n_train * ttrial, p)
    Y_train = Y[:, fold.train].transpose(1, 0, 2).reshape(n_train * ttrial, q_star)
    T_train = T[fold.train]

    model, gamma_train = trainer(X_train, Y_train, T_train, config)

    gamma_train = np.asarray(gamma_train, dtype=float)
    if gamma_train.shape != (n_train * ttrial, n_states):
        raise ValueError(
            f"Trainer returned Gamma of shape {gamma_train.shape} for fold "
            f"{fold.index}, expected {(n_train * ttrial, n_states)}"
        )

    fold_data = FoldData(
        X_train=X[:, fold.train],
        gamma_train=gamma_train.reshape(n_train, ttrial, n_states).transpose(1, 0, 2),
        X_test=X[:, fold.test],
        T_train=T_train,
        T_test=T[fold.test]
    )
    gamma_test = estimator.estimate(fold_data)

    constant_response = bool(np.var(Y_train[:, 0]) == 0)

    if config.model.discriminant:
        return FoldArtifacts(
            fold=fold,
            gamma_test=gamma_test,
            model=model,
            constant_response=constant_response
        )

    betas = np.asarray(coefficient_extractor(model), dtype=float)
    if betas.shape != (p, q_star, n_states):
        raise ValueError(
            f"Coefficients of shape {betas.shape} for fold {fold.index}, "
            f"expected {(p, q_star, n_states)}"
        )

    return FoldArtifacts(
        fold=fold,
        gamma_test=gamma_test,
        coefficients=betas,
        constant_response=constant_response
    )


class TUDACrossValidator:
    """
    Cross-validated evaluation of a TUDA model.

    The trainer, the preprocessor, the coefficient extractor and the
    distributional predictor are all replaceable. Folds are independent;
    with n_jobs != 1 they are processed in parallel and each fold writes
    only to its own test trials.

    After a run, ``folds_`` and ``artifacts_`` hold the folds and each
    fold's own outputs for inspection. They are written once every fold is
    done and are never read while folds are processed.

    Example:
        >>> config = TUDAConfig()
        >>> config.model.classifier = "regression"
        >>> cv = TUDACrossValidator(SegmentedRidgeTrainer(), config)
        >>> results = cv.cross_validate(dataset)
        >>> print(f"Accuracy: {results.accuracy:.1%}")
    """

    def __init__(
        self,
        trainer: Trainer,
        config: Optional[TUDAConfig] = None,
        preprocessor: Optional[Callable] = None,
        coefficient_extractor: Optional[CoefficientExtractor] = None,
        distributional_predictor: Optional[DistributionalPredictor] = None,
        estimator: Optional[HeldOutStateEstimator] = None
    ):
        """
        Initialize cross-validator.

        Args:
            trainer: Called as trainer(X, Y, T, config), returns (model, gamma)
            config: Analysis configuration (default: global config)
            preprocessor: Called as preprocessor(X, Y, T, config), returns
                PreprocessedData (default: StandardPreprocessor)
            coefficient_extractor: Gets per-state coefficients from a model
            distributional_predictor: State predictor for cv_method=3
            estimator: Held-out state estimator overriding config.cv.cv_method
        """
        self.trainer = trainer
        self.config = config
        self.preprocessor = preprocessor or StandardPreprocessor()
        self.coefficient_extractor = coefficient_extractor or extract_coefficients
        self.distributional_predictor = distributional_predictor
        self.estimator = estimator

        self.folds_ = None
        self.artifacts_ = None

    def _get_estimator(self, config: TUDAConfig) -> HeldOutStateEstimator:
        if self.estimator is not None:
            return self.estimator
        return get_heldout_estimator(
            config.cv.cv_method,
            ridge_lambda=config.cv.ridge_lambda,
            distributional_predictor=self.distributional_predictor
        )

    def _fit_folds(
        self,
        folds: List[Fold],
        X: np.ndarray,
        Y: np.ndarray,
        T: np.ndarray,
        config: TUDAConfig,
        estimator: HeldOutStateEstimator
    ) -> List[FoldArtifacts]:
        n_folds = len(folds)

        if config.n_jobs == 1:
            artifacts = []
            for fold in folds:
                artifacts.append(fit_fold(
                    fold, X, Y, T, self.trainer, config, estimator,
                    self.coefficient_extractor
                ))
                if config.verbose:
                    print(f"CV iteration: {fold.index + 1} of {n_folds}")
            return artifacts

        if config.verbose:
            print(f"Running {n_folds} CV folds with n_jobs={config.n_jobs}...")

        return Parallel(n_jobs=config.n_jobs)(
            delayed(fit_fold)(
                fold, X, Y, T, self.trainer, config, estimator,
                self.coefficient_extractor
            )
            for fold in folds
        )

    def cross_validate(
        self,
        dataset: TrialDataset,
        cv: CVSpec = None
    ) -> TUDAResults:
        """
        Run the cross-validation.

        Args:
            dataset: TrialDataset with equal-length trials
            cv: Number of folds, a scikit-learn splitter or an iterable of
                (train_indices, test_indices) over trials (default: TrialKFold
                with config.cv.n_folds)

        Returns:
            TUDAResults

        Raises:
            ValueError: If trials differ in length or the config is invalid
        """
        config = (self.config or get_config()).validate()
        dataset.check_uniform_trials()

        classification = config.model.classification
        discriminant = config.model.discriminant
        responses = dataset.responses

        data = self.preprocessor(dataset.X, dataset.Y, dataset.T, config)
        T = np.asarray(data.T, dtype=int)
        if not np.all(T == T[0]) or len(T) != dataset.n_trials:
            raise ValueError("Preprocessing must keep the number and common length of trials")

        ttrial, n_trials = int(T[0]), len(T)
        n_states = config.model.n_states
        p = data.X.shape[1]

        targets = data.targets
        if classification:
            targets = np.round(targets)
        q = targets.shape[1]

        folds = make_folds(
            responses,
            classification,
            cv=cv,
            n_folds=config.cv.n_folds,
            shuffle=config.cv.shuffle,
            random_state=config.cv.random_state
        )

        X = data.X.reshape(n_trials, ttrial, p).transpose(1, 0, 2)
        Y = data.Y.reshape(n_trials, ttrial, -1).transpose(1, 0, 2)
        targets = targets.reshape(n_trials, ttrial, q).transpose(1, 0, 2)

        estimator = self._get_estimator(config)
        artifacts = self._fit_folds(folds, X, Y, T, config, estimator)

        # Every fold writes only to its own test trials
        gamma = np.zeros((ttrial, n_trials, n_states))
        predictions = np.zeros((ttrial, n_trials, q if discriminant else data.n_responses))

        for art in artifacts:
            test = art.fold.test
            gamma[:, test] = art.gamma_test
            if discriminant:
                predictions[:, test] = discriminant_prediction(
                    art.model, X[:, test], art.gamma_test,
                    classification, art.constant_response
                )
            else:
                predictions[:, test] = mixture_prediction(
                    X[:, test], art.coefficients, art.gamma_test
                )

        if data.intercept and not discriminant:
            predictions = predictions[:, :, 1:]

        if config.model.distribution == "logistic":
            predictions = logistic_link(predictions, responses)

        if classification:
            accuracy, accuracy_time, trial_predictions, predictions = \
                classification_accuracy(targets, predictions)
        else:
            accuracy, accuracy_time, trial_predictions = \
                explained_variance(targets, predictions)

        self.folds_ = folds
        self.artifacts_ = artifacts

        return TUDAResults(
            accuracy=accuracy,
            accuracy_time=accuracy_time,
            predictions=trial_predictions,
            predictions_time=predictions,
            true_responses=targets,
            gamma=gamma,
            folds=[(fold.train, fold.test) for fold in folds],
            classification=classification,
            metadata={
                "n_folds": len(folds),
                "n_states": n_states,
                "cv_method": config.cv.cv_method,
                "estimator": repr(estimator),
                "classifier": config.model.classifier,
                "distribution": config.model.distribution,
                "trial_length": ttrial,
                "n_trials": n_trials
            }
        )


def tudacv(
    X: np.ndarray,
    Y: np.ndarray,
    T: np.ndarray,
    trainer: Trainer,
    config: Optional[TUDAConfig] = None,
    cv: CVSpec = None,
    **kwargs
) -> tuple:
    """
    Cross-validate a TUDA model on raw arrays.

    Args:
        X: Features (n_timepoints, p)
        Y: Responses (n_timepoints, q) or (n_trials, q)
        T: Trial lengths (n_trials,)
        trainer: Called as trainer(X, Y, T, config), returns (model, gamma)
        config: Analysis configuration
        cv: Folds, see TUDACrossValidator.cross_validate
        **kwargs: Passed to TUDACrossValidator

    Returns:
        Tuple of (acc, acc_star, Ypred, Ypred_star)
    """
    dataset = TrialDataset(X=X, Y=Y, T=T)
    validator = TUDACrossValidator(trainer, config=config, **kwargs)
    return validator.cross_validate(dataset, cv=cv).as_tuple()
