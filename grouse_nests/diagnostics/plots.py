"""
Diagnostic figures for a fitted model. Presentation only; nothing downstream
reads them.

For each model three kinds of figure are written as PNG:

  - bootstrap error convergence: OOB error and per-class error against the
    number of trees,
  - partial dependence: predicted probability of class 1 across the range of
    one covariate (one figure per covariate), with a lowess-smoothed line,
  - variable importance: dot chart of mean decrease in accuracy.
"""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402
from sklearn.inspection import partial_dependence  # noqa: E402
from statsmodels.nonparametric.smoothers_lowess import lowess  # noqa: E402

from grouse_nests.models.forest import OOB, FittedForest  # noqa: E402

logger = logging.getLogger(__name__)

_CURVE_COLOURS = ["black", "blue", "red"]


def plot_error_convergence(
    model: FittedForest,
    path: Path | str,
    title: str,
    class_labels: tuple[str, ...] | None = None,
) -> Path:
    """OOB error and per-class error as trees are added, on a [0, 1] axis."""
    path = Path(path)
    trajectory = model.error_trajectory
    class_cols = [c for c in trajectory.columns if c != OOB]
    labels = ["OOB", *(class_labels or class_cols)]

    fig, ax = plt.subplots(figsize=(7, 5))
    for col, label, colour in zip([OOB, *class_cols], labels, _CURVE_COLOURS):
        ax.plot(trajectory.index, trajectory[col], color=colour, label=label)
    ax.set_ylim(0, 1)
    ax.set_xlabel("Trees")
    ax.set_ylabel("Error")
    ax.set_title(title)
    ax.legend(loc="upper right")
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path


def partial_dependence_curve(model: FittedForest, x: pd.DataFrame, covariate: str) -> pd.DataFrame:
    """
    Average predicted probability of class 1 over a grid of ``covariate`` values.

    Covariates are cast to float first; scikit-learn refuses integer columns here.
    """
    result = partial_dependence(
        model.estimator,
        x[model.covariates].astype(float),
        features=[covariate],
        response_method="predict_proba",
        kind="average",
    )
    return pd.DataFrame(
        {covariate: result["grid_values"][0], "probability": result["average"][0]}
    )


def plot_partial_dependence(
    model: FittedForest,
    x: pd.DataFrame,
    covariate: str,
    path: Path | str,
    title: str,
) -> Path:
    path = Path(path)
    curve = partial_dependence_curve(model, x, covariate)

    fig, ax = plt.subplots(figsize=(6, 4.5))
    ax.plot(curve[covariate], curve["probability"], color="grey", linewidth=1)
    if len(curve) >= 4:
        smoothed = lowess(curve["probability"], curve[covariate], frac=2 / 3)
        ax.plot(smoothed[:, 0], smoothed[:, 1], color="red", linewidth=2)
    ax.set_xlabel(covariate)
    ax.set_ylabel("Probability")
    ax.set_title(title)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path


def plot_variable_importance(model: FittedForest, path: Path | str, title: str) -> Path:
    """Dot chart of mean decrease in accuracy, most important covariate at the top."""
    path = Path(path)
    imp = model.importance["mean_decrease_accuracy"].sort_values()
    positions = np.arange(len(imp))

    fig, ax = plt.subplots(figsize=(6, max(3.0, 0.3 * len(imp) + 1)))
    ax.hlines(positions, imp.min(), imp.max(), colors="lightgrey", linestyles="dotted")
    ax.plot(imp.to_numpy(), positions, "o", color="black")
    ax.set_yticks(positions)
    ax.set_yticklabels(imp.index)
    ax.set_xlabel("Mean Decrease in Accuracy")
    ax.set_title(title)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    return path


def write_diagnostics(
    model: FittedForest,
    x: pd.DataFrame,
    output_dir: Path | str,
    prefix: str,
    class_labels: tuple[str, ...] | None = None,
) -> list[Path]:
    """
    Write every diagnostic figure for one model.

    Args:
        model: The fitted model.
        x: Its training covariates (used for partial dependence).
        output_dir: Directory for the PNG files (created if needed).
        prefix: Short name used in titles and file names, e.g. "RSF".
        class_labels: Display names for class 0 and class 1.

    Returns:
        Paths of the written files.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    tag = prefix.lower()

    paths = [
        plot_error_convergence(
            model, output_dir / f"{tag}_error_convergence.png",
            f"{prefix} Bootstrap Error Convergence", class_labels,
        )
    ]
    for covariate in model.covariates:
        paths.append(
            plot_partial_dependence(
                model, x, covariate,
                output_dir / f"{tag}_partial_{covariate}.png",
                f"{prefix} Partial Plot",
            )
        )
    paths.append(
        plot_variable_importance(
            model, output_dir / f"{tag}_variable_importance.png",
            f"{prefix} Variable Importance",
        )
    )
    logger.info("[%s] wrote %d diagnostic plots to %s", prefix, len(paths), output_dir)
    return paths
