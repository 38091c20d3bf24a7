"""
Loader for the sage-grouse nest observation table.

The public data package ships one CSV, Data_SageGrouse_Nests.csv, with one
row per location:

    Nest   1 = real nest, 0 = pseudo-absence (random) point
    Surv   1 = nest survived, 0 = nest failed; empty for random points
    ...    numeric covariates (terrain, vegetation, and their summary
           statistics at several scales)

The Xcoord/Ycoord columns were withheld from the public release, so the
loader accepts the table with or without them.

Usage:

    from grouse_nests.data.loader import load_observations, validate_observations

    df = load_observations("InputData/Data_SageGrouse_Nests.csv")
    validate_observations(df)
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from grouse_nests.errors import InvalidCovariateError, InvalidLabelError, MissingColumnError

logger = logging.getLogger(__name__)

NEST_COLUMN = "Nest"
SURVIVAL_COLUMN = "Surv"

_STEP = "load_observations"


def load_observations(path: Path | str, sep: str = ",") -> pd.DataFrame:
    """
    Read the delimited observation table into a DataFrame.

    Args:
        path: Path to the CSV file.
        sep: Field delimiter.

    Returns:
        The table as read, rows in file order.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Observation table not found: {path}")

    df = pd.read_csv(path, sep=sep)
    logger.info("Loaded %s: %d rows, %d columns", path.name, df.shape[0], df.shape[1])
    return df


def covariate_columns(
    df: pd.DataFrame,
    label_columns: tuple[str, ...] = (NEST_COLUMN, SURVIVAL_COLUMN),
) -> list[str]:
    """Every column that is not a label, in file order."""
    return [c for c in df.columns if c not in label_columns]


def validate_observations(
    df: pd.DataFrame,
    nest_col: str = NEST_COLUMN,
    surv_col: str = SURVIVAL_COLUMN,
) -> None:
    """
    Check the table before any filtering or fitting happens.

    Raises:
        MissingColumnError: A label column is absent.
        InvalidLabelError: Nest/Surv hold values other than 0/1, or a row breaks
            the rule that Surv is defined exactly when Nest is 1.
        InvalidCovariateError: A covariate is non-numeric or has missing values.
    """
    for col in (nest_col, surv_col):
        if col not in df.columns:
            raise MissingColumnError(_STEP, col, df.shape)

    nest = df[nest_col]
    if nest.isna().any():
        raise InvalidLabelError(
            _STEP, f"label {nest_col!r} has {int(nest.isna().sum())} missing values", df.shape
        )
    bad_nest = sorted(set(nest.unique()) - {0, 1})
    if bad_nest:
        raise InvalidLabelError(
            _STEP, f"label {nest_col!r} must be 0/1, found {bad_nest}", df.shape
        )

    surv = df[surv_col]
    bad_surv = sorted(set(surv.dropna().unique()) - {0, 1})
    if bad_surv:
        raise InvalidLabelError(
            _STEP, f"label {surv_col!r} must be 0/1 or empty, found {bad_surv}", df.shape
        )

    # A survival outcome only exists for an actual nest.
    is_nest = nest == 1
    has_surv = surv.notna()
    mismatch = (is_nest != has_surv).to_numpy().nonzero()[0]
    if len(mismatch):
        raise InvalidLabelError(
            _STEP,
            f"{surv_col!r} must be defined exactly where {nest_col}=1; "
            f"violated at row positions {mismatch[:10].tolist()}"
            + (" ..." if len(mismatch) > 10 else ""),
            df.shape,
        )

    covariates = covariate_columns(df, (nest_col, surv_col))
    non_numeric = [c for c in covariates if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise InvalidCovariateError(
            _STEP, f"non-numeric covariates: {non_numeric}", df.shape
        )
    with_missing = [c for c in covariates if df[c].isna().any()]
    if with_missing:
        raise InvalidCovariateError(
            _STEP, f"covariates with missing values: {with_missing}", df.shape
        )


def summarise_observations(
    df: pd.DataFrame,
    nest_col: str = NEST_COLUMN,
    surv_col: str = SURVIVAL_COLUMN,
) -> dict[str, object]:
    """Log and return the table shape and the label class counts."""
    nest_counts = df[nest_col].value_counts().sort_index().to_dict()
    surv_counts = df[surv_col].dropna().astype(int).value_counts().sort_index().to_dict()
    logger.info("Observation table: %d rows x %d columns", df.shape[0], df.shape[1])
    logger.info("%s counts: %s | %s counts: %s", nest_col, nest_counts, surv_col, surv_counts)
    return {"shape": df.shape, "nest_counts": nest_counts, "survival_counts": surv_counts}
