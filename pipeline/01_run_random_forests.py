"""
01_run_random_forests.py: Fit and validate the RSF and SPF Random Forests.

Reads the nest observation table, removes denylisted and multicollinear
covariates, selects a covariate subset per response by importance
threshold, fits the final forests, writes diagnostic plots, and runs the
cross-validation and permutation significance test.

The sensitive nest coordinates are not part of the public table, so the
published results cannot be reproduced exactly from it; tree, repetition and
permutation counts in configs/analysis.yaml are also reduced.

Usage:
    python -m pipeline.01_run_random_forests

Input:
    InputData/Data_SageGrouse_Nests.csv
Output:
    outputs/{rsf,spf}_model_selection.csv
    outputs/{rsf,spf}_cross_validation.csv
    outputs/{rsf,spf}_importance.csv
    outputs/significance_summary.csv
    outputs/plots/*.png
    outputs/random_forests.pkl
    outputs/analysis.log
"""

from __future__ import annotations

import sys
from pathlib import Path

import joblib

_PROJECT_ROOT = Path(__file__).parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from grouse_nests.config import AnalysisConfig, load_config  # noqa: E402
from grouse_nests.data.loader import load_observations  # noqa: E402
from grouse_nests.errors import AnalysisError  # noqa: E402
from grouse_nests.logging_utils import get_logger  # noqa: E402
from grouse_nests.workflow import run_analysis  # noqa: E402

logger = get_logger(__name__)


def main(cfg: AnalysisConfig | None = None) -> int:
    if cfg is None:
        cfg = AnalysisConfig.from_dict(load_config("analysis"))
    logger.info("Sage-grouse nest Random Forests (trees=%d, seed=%d)", cfg.n_trees, cfg.selection_seed)

    input_csv = cfg.input_csv
    if not input_csv.is_absolute():
        input_csv = _PROJECT_ROOT / input_csv
    if not input_csv.exists():
        logger.error("Observation table not found: %s", input_csv)
        return 1

    output_dir = cfg.output_dir
    if not output_dir.is_absolute():
        output_dir = _PROJECT_ROOT / output_dir
    for name in (__name__, "grouse_nests"):
        get_logger(name, log_file=output_dir / "analysis.log")

    try:
        result = run_analysis(cfg, df=load_observations(input_csv), output_dir=output_dir)
    except AnalysisError as e:
        logger.error("Analysis halted: %s", e)
        return 1

    for name, r in result.responses.items():
        logger.info(
            "%s: %d covariates, OOB error %.3f, CV error %.3f, p=%.3f",
            name.upper(), len(r.model.covariates), r.model.oob_error,
            r.cross_validation.mean_error, r.significance.p_value,
        )

    # Both final forests in one dict, keyed by response.
    model_path = output_dir / "random_forests.pkl"
    joblib.dump(
        {name: {"estimator": r.model.estimator, "covariates": r.model.covariates}
         for name, r in result.responses.items()},
        model_path,
    )
    logger.info("Saved models to %s", model_path)
    logger.info("Outputs written to %s", output_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
