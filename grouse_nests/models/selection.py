"""
Covariate subset selection by importance threshold.

For one response, a forest is fitted on all covariates and their permutation
importance is scaled to a model improvement ratio (MIR): each covariate's
importance divided by the largest one, so the top covariate scores 1. For
every threshold in the grid the covariates with MIR above it are refitted
with the same seed and the refit's OOB error is recorded. The threshold with
the lowest OOB error wins.

Ties are broken explicitly: lowest OOB error, then fewest covariates, then
the smallest threshold. Two thresholds that keep the same covariates always
tie, since the refit is identical.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from grouse_nests.errors import EmptyCovariateSetError
from grouse_nests.features.targets import check_binary_label
from grouse_nests.models.forest import OOB, importance_table, make_forest, oob_error_trajectory

logger = logging.getLogger(__name__)

SELECTION_COLUMNS = ["model", "threshold", "oob_error", "class_error", "n_covariates"]


@dataclass
class SelectionResult:
    """Per-threshold audit table plus the winning covariate subset."""

    table: pd.DataFrame
    subsets: dict[float, list[str]]
    scaled_importance: pd.Series
    best_threshold: float

    @property
    def selected(self) -> list[str]:
        return self.subsets[self.best_threshold]


def scale_importance(importance: pd.Series, imp_scale: str = "mir") -> pd.Series:
    """
    Scale raw importance for thresholding.

    Raises:
        ValueError: For an unknown imp_scale.
        EmptyCovariateSetError: If no covariate has positive importance, so
            the ratio is undefined.
    """
    if imp_scale != "mir":
        raise ValueError(f"Unsupported imp_scale: {imp_scale!r} (expected 'mir')")
    top = importance.max()
    if not top > 0:
        raise EmptyCovariateSetError(
            "select_model",
            f"no covariate has positive importance (max={top:.4g}); MIR is undefined",
            (len(importance),),
        )
    return importance / top


def pick_best_threshold(table: pd.DataFrame, shape: tuple[int, ...] | None = None) -> float:
    """
    Lowest OOB error wins; ties go to fewer covariates, then the smaller threshold.

    Thresholds that kept no covariates are never chosen.

    Raises:
        EmptyCovariateSetError: If every row kept zero covariates.
    """
    candidates = table[table["n_covariates"] > 0]
    if candidates.empty:
        raise EmptyCovariateSetError(
            "select_model",
            f"every threshold in {table['threshold'].tolist()} left 0 covariates",
            shape,
        )
    ranked = candidates.sort_values(["oob_error", "n_covariates", "threshold"], kind="mergesort")
    return float(ranked["threshold"].iloc[0])


def select_model(
    x: pd.DataFrame,
    y: pd.Series,
    thresholds: list[float] | tuple[float, ...],
    n_trees: int,
    seed: int,
    imp_scale: str = "mir",
    n_jobs: int | None = None,
) -> SelectionResult:
    """
    Pick the covariate subset whose refit has the lowest OOB error.

    Args:
        x: All candidate covariates.
        y: Binary label.
        thresholds: Scaled-importance cut-offs to try (e.g. 0.1 ... 0.9).
        n_trees: Trees per forest.
        seed: Seed shared by the initial fit, the importance shuffles and every
            refit, so that results are reproducible.
        imp_scale: Importance scaling; only "mir" is supported.
        n_jobs: Parallel jobs for scikit-learn.

    Returns:
        SelectionResult. table rows follow the thresholds in ascending order;
        "model" numbers them from 1.

    Raises:
        DegenerateLabelError: If y has a single class.
        EmptyCovariateSetError: If x is empty, or every threshold keeps nothing.
    """
    if x.shape[1] == 0:
        raise EmptyCovariateSetError("select_model", "covariate subset is empty (size 0)", x.shape)
    if not thresholds:
        raise ValueError("select_model needs at least one threshold")
    check_binary_label(y, "select_model", x.shape)

    full = make_forest(n_trees, seed, n_jobs=n_jobs).fit(x, y)
    importance = importance_table(full, x, y, seed=seed, n_jobs=n_jobs)["mean_decrease_accuracy"]
    scaled = scale_importance(importance, imp_scale)

    rows = []
    subsets: dict[float, list[str]] = {}
    for i, threshold in enumerate(sorted(float(t) for t in thresholds), start=1):
        keep = [c for c in x.columns if scaled[c] > threshold]
        subsets[threshold] = keep
        if not keep:
            logger.info("Threshold %.2f keeps no covariates; skipped", threshold)
            rows.append((i, threshold, float("nan"), float("nan"), 0))
            continue

        refit = make_forest(n_trees, seed, n_jobs=n_jobs).fit(x[keep], y)
        errors = oob_error_trajectory(refit, x[keep], y).iloc[-1]
        class_error = float(errors.drop(OOB).mean())
        rows.append((i, threshold, float(errors[OOB]), class_error, len(keep)))

    table = pd.DataFrame(rows, columns=SELECTION_COLUMNS)
    best_threshold = pick_best_threshold(table, x.shape)
    best = table[table["threshold"] == best_threshold].iloc[0]

    logger.info(
        "Selected threshold %.2f: %d covariates, OOB error %.4f -> %s",
        best_threshold, int(best["n_covariates"]), best["oob_error"], subsets[best_threshold],
    )
    return SelectionResult(
        table=table,
        subsets=subsets,
        scaled_importance=scaled,
        best_threshold=best_threshold,
    )


def format_selection_table(result: SelectionResult) -> pd.DataFrame:
    """The model-selection table as published: rounded, with readable headers."""
    table = result.table.rename(
        columns={
            "model": "Model",
            "threshold": "MIR Threshold",
            "oob_error": "OOB Error",
            "class_error": "Class Error",
            "n_covariates": "K",
        }
    )
    return table.round(2)
