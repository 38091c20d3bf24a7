"""
Response variables for the two Random Forest models.

The workflow fits one classifier per response:

  rsf: Resource Selection Function: nest-site selection.
        Label = Nest (1 = nest, 0 = random point), all rows.

  spf: Survival Probability Function: nest survival.
        Label = Surv (1 = survived, 0 = failed), nest rows only. Surv is
        undefined for random points, so those rows never enter this model.

Usage:

    from grouse_nests.features.targets import build_response_data

    responses = build_response_data(df, covariates)
    rsf = responses["rsf"]
    rsf.x.shape, rsf.y.value_counts()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from grouse_nests.errors import DegenerateLabelError, EmptyCovariateSetError, MissingColumnError

logger = logging.getLogger(__name__)

RSF = "rsf"
SPF = "spf"


@dataclass(frozen=True)
class ResponseData:
    """Covariates and binary label for one response variable."""

    name: str
    label: str
    x: pd.DataFrame
    y: pd.Series

    @property
    def covariates(self) -> list[str]:
        return list(self.x.columns)


def check_binary_label(y: pd.Series, step: str, shape: tuple[int, ...] | None = None) -> None:
    """
    Fail before fitting if the label has fewer than two classes.

    Raises:
        DegenerateLabelError: If y is empty or holds a single class.
    """
    classes = sorted(pd.unique(y.dropna()))
    if len(classes) < 2:
        raise DegenerateLabelError(
            step,
            f"degenerate label {y.name!r}: needs two classes, found {classes}",
            shape if shape is not None else (len(y),),
        )


def build_response_data(
    df: pd.DataFrame,
    covariates: list[str],
    nest_col: str = "Nest",
    surv_col: str = "Surv",
) -> dict[str, ResponseData]:
    """
    Split the filtered table into the RSF and SPF datasets.

    Args:
        df: Validated observation table.
        covariates: Covariate columns to use as predictors, in order.
        nest_col: Nest-site selection label.
        surv_col: Survival label (defined only where nest_col == 1).

    Returns:
        {"rsf": ResponseData, "spf": ResponseData}. Labels are ints,
        covariates floats.

    Raises:
        MissingColumnError: If a label or covariate column is absent.
        EmptyCovariateSetError: If covariates is empty.
        DegenerateLabelError: If either label has a single class.
    """
    for col in (nest_col, surv_col, *covariates):
        if col not in df.columns:
            raise MissingColumnError("build_response_data", col, df.shape)
    if not covariates:
        raise EmptyCovariateSetError(
            "build_response_data", "covariate subset is empty (size 0)", df.shape
        )

    rsf_x = df[covariates].astype(float).reset_index(drop=True)
    rsf_y = df[nest_col].astype(int).reset_index(drop=True)
    check_binary_label(rsf_y, "build_response_data", rsf_x.shape)

    nests = df[df[nest_col] == 1]
    spf_x = nests[covariates].astype(float).reset_index(drop=True)
    spf_y = nests[surv_col].astype(int).reset_index(drop=True)
    check_binary_label(spf_y, "build_response_data", spf_x.shape)

    logger.info(
        "RSF: %d rows (%d nests) | SPF: %d nests (%d survived) | %d covariates",
        len(rsf_y), int(rsf_y.sum()), len(spf_y), int(spf_y.sum()), len(covariates),
    )
    return {
        RSF: ResponseData(RSF, nest_col, rsf_x, rsf_y),
        SPF: ResponseData(SPF, surv_col, spf_x, spf_y),
    }
