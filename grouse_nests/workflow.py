"""
End-to-end workflow: load → filter → select → fit → diagnostics → validate.

run_analysis() executes every step for both response variables and returns
the results in memory. Summary tables are logged and, when an output
directory is given, written there as CSV next to the diagnostic plots.

Usage:

    from grouse_nests.config import AnalysisConfig, load_config
    from grouse_nests.workflow import run_analysis

    cfg = AnalysisConfig.from_dict(load_config("analysis"))
    results = run_analysis(cfg)
    results.responses["rsf"].significance.p_value
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from grouse_nests.config import AnalysisConfig
from grouse_nests.data.loader import (
    covariate_columns,
    load_observations,
    summarise_observations,
    validate_observations,
)
from grouse_nests.diagnostics.plots import write_diagnostics
from grouse_nests.features.covariates import drop_covariates, filter_redundant
from grouse_nests.features.targets import ResponseData, build_response_data
from grouse_nests.models.forest import FittedForest, fit_forest
from grouse_nests.models.selection import SelectionResult, format_selection_table, select_model
from grouse_nests.models.validation import (
    CrossValidationResult,
    SignificanceResult,
    cross_validate,
    significance_test,
)

logger = logging.getLogger(__name__)


@dataclass
class ResponseResult:
    """Everything produced for one response variable."""

    data: ResponseData
    selection: SelectionResult
    model: FittedForest
    cross_validation: CrossValidationResult
    significance: SignificanceResult
    plots: list[Path] = field(default_factory=list)


@dataclass
class AnalysisResult:
    covariates: list[str]
    redundant: list[str]
    responses: dict[str, ResponseResult]

    def significance_summary(self) -> pd.DataFrame:
        return pd.DataFrame(
            {name: r.significance.as_dict() for name, r in self.responses.items()}
        ).T


def prepare_covariates(df: pd.DataFrame, cfg: AnalysisConfig) -> tuple[pd.DataFrame, list[str], list[str]]:
    """
    Validate the table, apply the denylist and the multicollinearity filter.

    Returns:
        (filtered table, remaining covariates, covariates removed as redundant)
    """
    validate_observations(df, cfg.nest_column, cfg.survival_column)
    summarise_observations(df, cfg.nest_column, cfg.survival_column)

    labels = (cfg.nest_column, cfg.survival_column)
    df = drop_covariates(df, [c for c in cfg.denylist if c not in labels])
    df, redundant = filter_redundant(df, covariate_columns(df, labels), cfg.redundancy_threshold)
    return df, covariate_columns(df, labels), redundant


def analyse_response(
    data: ResponseData,
    cfg: AnalysisConfig,
    plots_dir: Path | None = None,
) -> ResponseResult:
    """Model selection, final fit, diagnostics and validation for one response."""
    name = data.name.upper()
    logger.info("[%s] model selection over thresholds %s", name, list(cfg.thresholds))
    selection = select_model(
        data.x, data.y,
        thresholds=cfg.thresholds,
        n_trees=cfg.n_trees,
        seed=cfg.selection_seed,
        imp_scale=cfg.imp_scale,
        n_jobs=cfg.n_jobs,
    )
    logger.info("[%s] model selection table:\n%s", name, format_selection_table(selection).to_string(index=False))

    x = data.x[selection.selected]
    model = fit_forest(
        x, data.y,
        n_trees=cfg.n_trees,
        seed=cfg.selection_seed,
        response=data.name,
        n_jobs=cfg.n_jobs,
    )

    plots: list[Path] = []
    if plots_dir is not None:
        plots = write_diagnostics(
            model, x, plots_dir, prefix=name, class_labels=cfg.class_labels.get(data.name),
        )

    cv = cross_validate(
        model, x, data.y,
        holdout_fraction=cfg.holdout_fraction,
        n_repetitions=cfg.n_repetitions,
        seed=cfg.cv_seed,
        n_jobs=cfg.n_jobs,
    )
    logger.info("[%s] cross-validation summary:\n%s", name, cv.summary.round(4).to_string())

    significance = significance_test(
        model, x, data.y,
        n_permutations=cfg.n_permutations,
        n_trees=cfg.n_trees,
        seed=cfg.significance_seed,
        n_jobs=cfg.n_jobs,
    )
    return ResponseResult(data, selection, model, cv, significance, plots)


def write_tables(result: AnalysisResult, output_dir: Path) -> list[Path]:
    """Write the audit tables of a finished run as CSV files."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, r in result.responses.items():
        for suffix, table, index in (
            ("model_selection", format_selection_table(r.selection), False),
            ("cross_validation", r.cross_validation.repetitions, False),
            ("importance", r.model.importance, True),
        ):
            path = output_dir / f"{name}_{suffix}.csv"
            table.to_csv(path, index=index)
            written.append(path)
    path = output_dir / "significance_summary.csv"
    result.significance_summary().to_csv(path, index_label="response")
    written.append(path)
    return written


def run_analysis(
    cfg: AnalysisConfig,
    df: pd.DataFrame | None = None,
    output_dir: Path | str | None = None,
) -> AnalysisResult:
    """
    Run the whole workflow for both responses.

    Args:
        cfg: Validated configuration.
        df: Observation table; read from cfg.input_csv when omitted.
        output_dir: Where to write CSV tables and plots; None writes nothing.

    Raises:
        AnalysisError subclasses (and scikit-learn errors) on the first problem;
        nothing is retried or skipped.
    """
    if df is None:
        df = load_observations(cfg.input_csv)

    df, covariates, redundant = prepare_covariates(df, cfg)
    responses = build_response_data(df, covariates, cfg.nest_column, cfg.survival_column)

    out = Path(output_dir) if output_dir is not None else None
    plots_dir = out / "plots" if out is not None and cfg.make_plots else None

    results = {
        name: analyse_response(data, cfg, plots_dir) for name, data in responses.items()
    }
    result = AnalysisResult(covariates=covariates, redundant=redundant, responses=results)
    logger.info("Significance summary:\n%s", result.significance_summary().to_string())

    if out is not None:
        written = write_tables(result, out)
        logger.info("Wrote %d tables to %s", len(written), out)
    return result
