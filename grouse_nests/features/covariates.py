"""
Covariate filtering: a-priori removals and the multicollinearity screen.

Two steps run before any model is fitted:

  1. drop_covariates(df, denylist)
     Removes covariates with weak biological justification and the
     withheld coordinate columns. Names that are not in the table are
     skipped, so the same denylist works on the public and full datasets.

  2. filter_redundant(df, covariates, p)
     Flags covariates that are (almost) a linear combination of other
     covariates and removes them all in one pass.

The redundancy test walks the covariates in column order. Each one is
regressed, with an intercept, on the covariates already retained, and its
tolerance (1 / VIF = 1 - R²) is turned into a residual fraction
sqrt(1 - R²): the share of its standard deviation the retained covariates
cannot explain. A covariate whose residual fraction is below ``p`` is
flagged and never becomes a predictor for later covariates. Because the
retained set only depends on earlier retained covariates, running the test
again on its own output flags nothing.

``p`` is a sensitivity parameter, not a p-value: 0.06 flags covariates
whose R² on the retained set exceeds 1 - 0.06² ≈ 0.9964.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np
import pandas as pd
from statsmodels.stats.outliers_influence import variance_inflation_factor

from grouse_nests.errors import EmptyCovariateSetError, InvalidCovariateError

logger = logging.getLogger(__name__)


def drop_covariates(df: pd.DataFrame, denylist: list[str] | tuple[str, ...]) -> pd.DataFrame:
    """
    Remove the denylisted columns that exist in the table.

    Args:
        df: Observation table.
        denylist: Column names to remove. Unknown names are a no-op.

    Returns:
        A copy of the table without the denylisted columns. Row count and the
        order of the remaining columns are unchanged.
    """
    present = [c for c in denylist if c in df.columns]
    absent = [c for c in denylist if c not in df.columns]
    if absent:
        logger.info("Denylisted covariates not in table (skipped): %s", absent)
    logger.info("Dropping %d denylisted covariates: %s", len(present), present)
    return df.drop(columns=present)


def _standardise(x: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
    """Z-score every column; also return a mask of zero-variance columns."""
    values = x.to_numpy(dtype=float)
    std = values.std(axis=0)
    constant = ~(std > 0)
    safe_std = np.where(constant, 1.0, std)
    return (values - values.mean(axis=0)) / safe_std, constant


def _residual_fraction(retained: np.ndarray, column: np.ndarray) -> float:
    """sqrt(1 - R²) of ``column`` regressed on an intercept plus ``retained``."""
    exog = np.column_stack([np.ones(len(column)), retained, column])
    # Collinear designs are expected here and statsmodels warns on each one.
    with warnings.catch_warnings(), np.errstate(divide="ignore", invalid="ignore"):
        warnings.simplefilter("ignore", UserWarning)
        warnings.simplefilter("ignore", RuntimeWarning)
        vif = variance_inflation_factor(exog, exog.shape[1] - 1)
    # A perfect fit gives an infinite (or, through rounding, negative) VIF.
    if not np.isfinite(vif) or vif <= 0:
        return 0.0
    return float(np.sqrt(1.0 / vif))


def multi_collinear(x: pd.DataFrame, p: float) -> list[str]:
    """
    Return the covariates that are redundant at sensitivity ``p``.

    Args:
        x: Numeric covariate table.
        p: Residual-fraction threshold in (0, 1).

    Returns:
        Flagged column names, in column order. The input is not modified.

    Raises:
        ValueError: If p is outside (0, 1).
        InvalidCovariateError: If a covariate is non-numeric or has missing values.
    """
    if not 0.0 < p < 1.0:
        raise ValueError(f"redundancy threshold p must be in (0, 1), got {p}")
    if x.shape[1] == 0:
        return []

    non_numeric = [c for c in x.columns if not pd.api.types.is_numeric_dtype(x[c])]
    if non_numeric:
        raise InvalidCovariateError("multi_collinear", f"non-numeric covariates: {non_numeric}", x.shape)
    if x.isna().any().any():
        missing = x.columns[x.isna().any()].tolist()
        raise InvalidCovariateError("multi_collinear", f"covariates with missing values: {missing}", x.shape)

    z, constant = _standardise(x)
    retained: list[int] = []
    flagged: list[str] = []

    for j, name in enumerate(x.columns):
        if constant[j]:
            logger.debug("%s: zero variance, flagged", name)
            flagged.append(name)
            continue
        fraction = _residual_fraction(z[:, retained], z[:, j])
        if fraction < p:
            logger.debug("%s: residual fraction %.4f < %.4f, flagged", name, fraction, p)
            flagged.append(name)
        else:
            retained.append(j)

    return flagged


def hinge_pin_check(x: pd.DataFrame, flagged: list[str], p: float) -> dict[str, list[str]]:
    """
    Re-run the redundancy test without each flagged covariate in turn.

    If removing one covariate clears the others, it is a hinge pin for that
    group. Purely diagnostic: the result is logged and returned, and the
    removal decision does not change.

    Returns:
        Mapping of each flagged covariate to what is still flagged without it.
    """
    report: dict[str, list[str]] = {}
    for name in flagged:
        still_flagged = multi_collinear(x.drop(columns=[name]), p)
        report[name] = still_flagged
        logger.info("REMOVE VARIABLE: %s -> still flagged: %s", name, still_flagged or "none")
    return report


def filter_redundant(
    df: pd.DataFrame,
    covariates: list[str],
    p: float,
) -> tuple[pd.DataFrame, list[str]]:
    """
    Remove every multicollinear covariate from the table in one pass.

    Args:
        df: Observation table (labels and covariates).
        covariates: The covariate columns to screen, in order.
        p: Redundancy threshold in (0, 1).

    Returns:
        (filtered table, flagged covariate names). Non-covariate columns and
        the order of the remaining covariates are preserved.

    Raises:
        EmptyCovariateSetError: If no covariates remain after filtering.
    """
    x = df[covariates]
    flagged = multi_collinear(x, p)
    logger.info("Multicollinearity test (p=%g) flagged %d of %d covariates: %s",
                p, len(flagged), len(covariates), flagged)
    if flagged:
        hinge_pin_check(x, flagged, p)

    remaining = [c for c in covariates if c not in flagged]
    if not remaining:
        raise EmptyCovariateSetError(
            "filter_redundant",
            f"no covariates left after removing {len(flagged)} redundant ones (subset size 0)",
            x.shape,
        )
    return df.drop(columns=flagged), flagged
