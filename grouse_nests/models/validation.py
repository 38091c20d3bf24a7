"""
Model validation: repeated holdout cross-validation and a permutation
significance test.

Both procedures refit the final model many times with the same
hyperparameters. Every refit gets its own seed, drawn up front from
numpy.random.default_rng(seed), so the reported numbers depend only on the
top-level seed and not on n_jobs or the order in which joblib runs the work.

Usage:

    from grouse_nests.models.validation import cross_validate, significance_test

    cv = cross_validate(model, x, y, holdout_fraction=0.1, n_repetitions=25, seed=333)
    cv.summary

    sig = significance_test(model, x, y, n_permutations=100, n_trees=101, seed=333)
    sig.p_value
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.base import clone
from sklearn.metrics import accuracy_score, cohen_kappa_score
from sklearn.model_selection import train_test_split

from grouse_nests.features.targets import check_binary_label
from grouse_nests.models.forest import FittedForest, oob_error, refit

logger = logging.getLogger(__name__)

_MAX_SEED = 2**31 - 1


def _draw_seeds(seed: int, n: int) -> list[int]:
    rng = np.random.default_rng(seed)
    return [int(s) for s in rng.integers(0, _MAX_SEED, size=n)]


# ---------------------------------------------------------------------------
# Repeated holdout cross-validation
# ---------------------------------------------------------------------------

@dataclass
class CrossValidationResult:
    """Per-repetition holdout statistics and their summary."""

    repetitions: pd.DataFrame
    holdout_fraction: float

    @property
    def summary(self) -> pd.DataFrame:
        stats = self.repetitions[["holdout_error", "holdout_kappa", "oob_error"]]
        return stats.agg(["mean", "std", "min", "max"]).T

    @property
    def mean_error(self) -> float:
        return float(self.repetitions["holdout_error"].mean())


def _holdout_repetition(
    model: FittedForest,
    x: pd.DataFrame,
    y: pd.Series,
    holdout_fraction: float,
    repetition: int,
    seed: int,
) -> dict[str, float]:
    x_train, x_hold, y_train, y_hold = train_test_split(
        x, y, test_size=holdout_fraction, random_state=seed, stratify=y,
    )
    fitted = refit(model.estimator, x_train, y_train, seed)
    pred = fitted.predict(x_hold)
    return {
        "repetition": repetition,
        "holdout_error": 1.0 - accuracy_score(y_hold, pred),
        "holdout_kappa": cohen_kappa_score(y_hold, pred),
        "oob_error": oob_error(fitted, x_train, y_train),
        "n_train": len(y_train),
        "n_holdout": len(y_hold),
    }


def cross_validate(
    model: FittedForest,
    x: pd.DataFrame,
    y: pd.Series,
    holdout_fraction: float,
    n_repetitions: int,
    seed: int,
    n_jobs: int | None = None,
) -> CrossValidationResult:
    """
    Repeatedly refit on a random partition and score the held-out rows.

    Each repetition draws a new stratified split (both classes stay in the
    training part), refits the model's estimator with identical
    hyperparameters and records the holdout error (1 - accuracy), Cohen's
    kappa and the refit's OOB error.

    Args:
        model: The fitted model whose hyperparameters are reused.
        x: The model's training covariates.
        y: The model's training label.
        holdout_fraction: Share of rows held out per repetition, in (0, 1).
        n_repetitions: Number of repetitions (>= 1).
        seed: Top-level seed for the partitions and refits.
        n_jobs: joblib workers for the repetitions.

    Raises:
        ValueError: For an out-of-range holdout_fraction or n_repetitions, or
            when the partition cannot keep both classes (raised by scikit-learn).
        DegenerateLabelError: If y has a single class.
    """
    if not 0.0 < holdout_fraction < 1.0:
        raise ValueError(f"holdout_fraction must be in (0, 1), got {holdout_fraction}")
    if n_repetitions < 1:
        raise ValueError(f"n_repetitions must be >= 1, got {n_repetitions}")
    check_binary_label(y, "cross_validate", x.shape)

    x = x[model.covariates]
    seeds = _draw_seeds(seed, n_repetitions)
    rows = Parallel(n_jobs=n_jobs)(
        delayed(_holdout_repetition)(model, x, y, holdout_fraction, i, s)
        for i, s in enumerate(seeds, start=1)
    )
    result = CrossValidationResult(pd.DataFrame(rows), holdout_fraction)
    logger.info(
        "[%s] cross-validation: %d x %.0f%% holdout, mean error %.4f",
        model.response, n_repetitions, holdout_fraction * 100, result.mean_error,
    )
    return result


# ---------------------------------------------------------------------------
# Permutation significance test
# ---------------------------------------------------------------------------

@dataclass
class SignificanceResult:
    """Observed OOB error against OOB errors from label-permuted refits."""

    observed_error: float
    permuted_errors: np.ndarray
    p_value: float

    @property
    def n_permutations(self) -> int:
        return len(self.permuted_errors)

    def as_dict(self) -> dict[str, float]:
        return {
            "observed_oob_error": self.observed_error,
            "permuted_mean_error": float(np.mean(self.permuted_errors)),
            "permuted_min_error": float(np.min(self.permuted_errors)),
            "permuted_max_error": float(np.max(self.permuted_errors)),
            "n_permutations": self.n_permutations,
            "p_value": self.p_value,
        }


def empirical_p_value(observed: float, permuted: np.ndarray | list[float]) -> float:
    """Share of permuted errors at least as good as (<=) the observed error."""
    permuted = np.asarray(permuted, dtype=float)
    if permuted.size == 0:
        raise ValueError("empirical_p_value needs at least one permuted error")
    return float(np.mean(permuted <= observed))


def _permuted_error(
    model: FittedForest,
    x: pd.DataFrame,
    y: pd.Series,
    n_trees: int,
    seed: int,
) -> float:
    rng = np.random.default_rng(seed)
    y_perm = pd.Series(rng.permutation(y.to_numpy()), index=y.index, name=y.name)
    estimator = clone(model.estimator).set_params(n_estimators=n_trees)
    fitted = refit(estimator, x, y_perm, seed)
    return oob_error(fitted, x, y_perm)


def significance_test(
    model: FittedForest,
    x: pd.DataFrame,
    y: pd.Series,
    n_permutations: int,
    n_trees: int,
    seed: int,
    n_jobs: int | None = None,
) -> SignificanceResult:
    """
    Compare the model's OOB error with forests fitted to shuffled labels.

    Args:
        model: The fitted model (its OOB error is the observed statistic).
        x: The model's training covariates.
        y: The model's training label.
        n_permutations: Number of label permutations (>= 1).
        n_trees: Trees per permuted forest.
        seed: Top-level seed for the permutations and refits.
        n_jobs: joblib workers for the permutations.

    Returns:
        SignificanceResult with p_value = share of permuted OOB errors that
        are <= the observed OOB error.
    """
    if n_permutations < 1:
        raise ValueError(f"n_permutations must be >= 1, got {n_permutations}")
    check_binary_label(y, "significance_test", x.shape)

    x = x[model.covariates]
    seeds = _draw_seeds(seed, n_permutations)
    errors = Parallel(n_jobs=n_jobs)(
        delayed(_permuted_error)(model, x, y, n_trees, s) for s in seeds
    )
    permuted = np.asarray(errors, dtype=float)
    result = SignificanceResult(
        observed_error=model.oob_error,
        permuted_errors=permuted,
        p_value=empirical_p_value(model.oob_error, permuted),
    )
    logger.info(
        "[%s] significance: observed OOB %.4f vs permuted mean %.4f over %d permutations, p=%.3f",
        model.response, result.observed_error, float(permuted.mean()), n_permutations, result.p_value,
    )
    return result
