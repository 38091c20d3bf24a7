"""
Shared pytest fixtures for the grouse_nests test suite.

All fixtures are synthetic: no real nest data required. The nest table is
built so the expected behaviour is obvious:

  - Elev separates nests from random points (nests sit higher),
  - Sage separates survived from failed nests,
  - Sage2 is exactly 2 * Sage (must be removed as redundant),
  - Noise is unrelated to either label,
  - Bare and Xcoord/Ycoord are on the denylist.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from grouse_nests.config import AnalysisConfig

N_NESTS = 30
N_RANDOM = 30


@pytest.fixture()
def nest_table() -> pd.DataFrame:
    """60 rows: 30 nests (15 survived, 15 failed) and 30 random points."""
    rng = np.random.default_rng(7)

    nest = np.array([1] * N_NESTS + [0] * N_RANDOM)
    surv = np.full(N_NESTS + N_RANDOM, np.nan)
    surv[:N_NESTS] = [1] * (N_NESTS // 2) + [0] * (N_NESTS // 2)

    elev = np.where(nest == 1, 2000.0, 1700.0) + rng.normal(0, 40, len(nest))
    sage = np.where(surv == 1, 30.0, 12.0) + rng.normal(0, 3, len(nest))
    sage[N_NESTS:] = rng.uniform(5, 35, N_RANDOM)

    return pd.DataFrame({
        "Nest": nest,
        "Surv": surv,
        "Xcoord": rng.uniform(300000, 310000, len(nest)),
        "Ycoord": rng.uniform(4600000, 4610000, len(nest)),
        "Elev": elev,
        "Sage": sage,
        "Noise": rng.uniform(0, 1, len(nest)),
        "Sage2": 2.0 * sage,
        "Bare": rng.uniform(0, 50, len(nest)),
    })


@pytest.fixture()
def nest_csv(tmp_path: Path, nest_table: pd.DataFrame) -> Path:
    """nest_table written to a temp CSV."""
    p = tmp_path / "Data_SageGrouse_Nests.csv"
    nest_table.to_csv(p, index=False)
    return p


@pytest.fixture()
def small_config(tmp_path: Path) -> AnalysisConfig:
    """Reduced tree/repetition counts so the whole workflow runs in seconds."""
    return AnalysisConfig(
        input_csv=tmp_path / "Data_SageGrouse_Nests.csv",
        output_dir=tmp_path / "outputs",
        denylist=("Bare", "Xcoord", "Ycoord", "NotInTable"),
        redundancy_threshold=0.06,
        n_trees=15,
        thresholds=(0.1, 0.5, 0.9),
        selection_seed=333,
        holdout_fraction=0.2,
        n_repetitions=3,
        cv_seed=333,
        n_permutations=5,
        significance_seed=333,
        n_jobs=1,
        make_plots=False,
        class_labels={"rsf": ("Random Points", "Nest Points"), "spf": ("Failed Nests", "Survived Nests")},
    )


@pytest.fixture()
def rsf_xy(nest_table: pd.DataFrame) -> tuple[pd.DataFrame, pd.Series]:
    """Nest-site covariates (denylist and redundant column already removed) and label."""
    x = nest_table[["Elev", "Sage", "Noise"]]
    y = nest_table["Nest"].astype(int)
    return x, y
