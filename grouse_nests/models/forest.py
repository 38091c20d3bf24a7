"""
Random Forest fitting for the RSF and SPF models.

fit_forest() wraps scikit-learn's RandomForestClassifier and keeps the
by-products the analysis reports alongside the model:

  - out-of-bag (OOB) error, overall and per class, and its trajectory as
    trees are added (the "bootstrap error convergence" curve),
  - permutation importance, i.e. mean decrease in accuracy per covariate,
  - the sample proximity matrix (share of trees in which two samples end
    up in the same leaf).

OOB votes are accumulated from each tree's bootstrap sample
(estimators_samples_), so the final point of the trajectory is the model's
OOB error. Samples that were in-bag for every tree so far are left out of
the error until they receive a vote.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.ensemble import RandomForestClassifier
from sklearn.inspection import permutation_importance

from grouse_nests.errors import EmptyCovariateSetError
from grouse_nests.features.targets import check_binary_label

logger = logging.getLogger(__name__)

OOB = "OOB"


@dataclass
class FittedForest:
    """A fitted classifier bound to its response, covariates and diagnostics."""

    response: str
    estimator: RandomForestClassifier
    covariates: list[str]
    n_trees: int
    seed: int
    error_trajectory: pd.DataFrame
    importance: pd.DataFrame
    proximity: np.ndarray | None = None

    @property
    def oob_error(self) -> float:
        return float(self.error_trajectory[OOB].iloc[-1])

    @property
    def class_errors(self) -> pd.Series:
        return self.error_trajectory.drop(columns=[OOB]).iloc[-1]

    @property
    def class_error(self) -> float:
        """Mean of the per-class OOB errors."""
        return float(self.class_errors.mean())

    @property
    def classes(self) -> np.ndarray:
        return self.estimator.classes_

    def predict(self, x: pd.DataFrame) -> np.ndarray:
        return self.estimator.predict(x[self.covariates])

    def predict_proba(self, x: pd.DataFrame) -> np.ndarray:
        return self.estimator.predict_proba(x[self.covariates])


def make_forest(n_trees: int, seed: int, n_jobs: int | None = None) -> RandomForestClassifier:
    """The unfitted classifier every fit in the workflow starts from."""
    if n_trees < 1:
        raise ValueError(f"n_trees must be >= 1, got {n_trees}")
    return RandomForestClassifier(
        n_estimators=n_trees,
        bootstrap=True,
        random_state=seed,
        n_jobs=n_jobs,
    )


def refit(estimator: RandomForestClassifier, x: pd.DataFrame, y: pd.Series, seed: int) -> RandomForestClassifier:
    """Fit a fresh copy of ``estimator`` (same hyperparameters) with a new seed."""
    model = clone(estimator).set_params(random_state=seed)
    model.fit(x, y)
    return model


def oob_error_trajectory(
    estimator: RandomForestClassifier,
    x: pd.DataFrame,
    y: pd.Series,
) -> pd.DataFrame:
    """
    OOB error after each tree is added to the forest.

    Returns:
        DataFrame indexed by tree count (1..n_trees) with column "OOB" and one
        column per class holding that class's OOB error. Values are NaN until
        at least one sample (of that class) has an OOB vote.
    """
    values = x.to_numpy(dtype=np.float32)
    classes = estimator.classes_
    y_idx = np.searchsorted(classes, np.asarray(y))
    n = len(y_idx)
    votes = np.zeros((n, len(classes)))
    rows = []

    for tree, in_bag in zip(estimator.estimators_, estimator.estimators_samples_):
        oob = np.ones(n, dtype=bool)
        oob[in_bag] = False
        if oob.any():
            votes[oob] += tree.predict_proba(values[oob])

        seen = votes.sum(axis=1) > 0
        wrong = (votes.argmax(axis=1) != y_idx) & seen
        row = [wrong.sum() / seen.sum() if seen.any() else np.nan]
        for k in range(len(classes)):
            in_class = seen & (y_idx == k)
            row.append(wrong[in_class].sum() / in_class.sum() if in_class.any() else np.nan)
        rows.append(row)

    return pd.DataFrame(
        rows,
        columns=[OOB, *[str(c) for c in classes]],
        index=pd.RangeIndex(1, len(rows) + 1, name="n_trees"),
    )


def oob_error(estimator: RandomForestClassifier, x: pd.DataFrame, y: pd.Series) -> float:
    """Final OOB error of a fitted forest."""
    return float(oob_error_trajectory(estimator, x, y)[OOB].iloc[-1])


def proximity_matrix(estimator: RandomForestClassifier, x: pd.DataFrame) -> np.ndarray:
    """Share of trees in which each pair of samples lands in the same leaf."""
    leaves = estimator.apply(x)
    n = leaves.shape[0]
    prox = np.zeros((n, n))
    for t in range(leaves.shape[1]):
        col = leaves[:, t]
        prox += col[:, None] == col[None, :]
    return prox / leaves.shape[1]


def importance_table(
    estimator: RandomForestClassifier,
    x: pd.DataFrame,
    y: pd.Series,
    seed: int,
    n_repeats: int = 5,
    n_jobs: int | None = None,
) -> pd.DataFrame:
    """Permutation importance (mean decrease in accuracy) per covariate, in column order."""
    result = permutation_importance(
        estimator, x, y,
        scoring="accuracy",
        n_repeats=n_repeats,
        random_state=seed,
        n_jobs=n_jobs,
    )
    return pd.DataFrame(
        {
            "mean_decrease_accuracy": result.importances_mean,
            "std": result.importances_std,
        },
        index=pd.Index(x.columns, name="covariate"),
    )


def fit_forest(
    x: pd.DataFrame,
    y: pd.Series,
    n_trees: int,
    seed: int,
    response: str = "",
    compute_proximity: bool = True,
    n_jobs: int | None = None,
) -> FittedForest:
    """
    Fit a Random Forest classifier and collect its diagnostics.

    Args:
        x: Covariates (columns in the order they should be reported).
        y: Binary label aligned with x.
        n_trees: Number of trees. Odd counts avoid tied votes.
        seed: Seed for bootstrapping, split selection and importance shuffles.
        response: Name of the response ("rsf"/"spf") for logs and plots.
        compute_proximity: Whether to build the n x n proximity matrix.
        n_jobs: Parallel jobs for scikit-learn.

    Returns:
        FittedForest.

    Raises:
        DegenerateLabelError: If y has fewer than two classes (checked before fitting).
        EmptyCovariateSetError: If x has no columns.
        ValueError: If n_trees < 1. Errors raised by scikit-learn propagate unchanged.
    """
    step = f"fit_forest:{response}" if response else "fit_forest"
    if x.shape[1] == 0:
        raise EmptyCovariateSetError(step, "covariate subset is empty (size 0)", x.shape)
    if len(x) != len(y):
        raise ValueError(f"[{step}] x has {len(x)} rows but y has {len(y)}")
    check_binary_label(y, step, x.shape)
    if n_trees % 2 == 0:
        logger.warning("[%s] n_trees=%d is even; binary votes can tie", step, n_trees)

    estimator = make_forest(n_trees, seed, n_jobs=n_jobs)
    estimator.fit(x, y)

    trajectory = oob_error_trajectory(estimator, x, y)
    importance = importance_table(estimator, x, y, seed=seed, n_jobs=n_jobs)
    proximity = proximity_matrix(estimator, x) if compute_proximity else None

    model = FittedForest(
        response=response,
        estimator=estimator,
        covariates=list(x.columns),
        n_trees=n_trees,
        seed=seed,
        error_trajectory=trajectory,
        importance=importance,
        proximity=proximity,
    )
    logger.info(
        "[%s] %d trees, %d covariates, %d rows -> OOB error %.4f, class errors %s",
        step, n_trees, x.shape[1], len(y), model.oob_error,
        {k: round(float(v), 4) for k, v in model.class_errors.items()},
    )
    return model
