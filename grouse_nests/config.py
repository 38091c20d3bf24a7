"""
Config loader for the sage-grouse nest analysis.

All configuration lives in the configs/ directory as YAML files. The
workflow reads its settings through this module so the denylist, tree
count, threshold grid and seeds are visible in one place rather than
buried in the analysis code.

Usage:

    from grouse_nests.config import AnalysisConfig, load_config

    cfg = load_config("analysis")
    n_trees = cfg["random_forest"]["n_trees"]

    analysis = AnalysisConfig.from_dict(cfg)
    analysis.redundancy_threshold  # 0.06
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# Resolve the configs/ directory relative to this file so the package works
# regardless of the working directory the caller uses.
_CONFIGS_DIR = Path(__file__).parent.parent / "configs"


def load_config(name: str, configs_dir: Path | str | None = None) -> dict[str, Any]:
    """
    Load a named YAML config file from the configs/ directory.

    Args:
        name: Config file name without the .yaml extension (e.g. "analysis").
        configs_dir: Directory to look in. Defaults to the project's configs/.

    Returns:
        The parsed YAML contents as a nested dictionary.

    Raises:
        FileNotFoundError: If configs/<name>.yaml does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
    """
    base = Path(configs_dir) if configs_dir is not None else _CONFIGS_DIR
    path = base / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            f"Expected one of: {[p.stem for p in base.glob('*.yaml')]}"
        )
    with path.open(encoding="utf-8") as f:
        return yaml.safe_load(f)


def _section(cfg: dict[str, Any], key: str) -> dict[str, Any]:
    try:
        return cfg[key]
    except KeyError:
        raise KeyError(f"Missing config section: {key!r}") from None


def _require(section: dict[str, Any], section_name: str, key: str) -> Any:
    try:
        return section[key]
    except KeyError:
        raise KeyError(f"Missing config key: {section_name}.{key}") from None


@dataclass(frozen=True)
class AnalysisConfig:
    """Every tunable value of the workflow, validated once at start-up."""

    input_csv: Path
    output_dir: Path
    denylist: tuple[str, ...]
    redundancy_threshold: float
    n_trees: int
    thresholds: tuple[float, ...]
    selection_seed: int
    holdout_fraction: float
    n_repetitions: int
    cv_seed: int
    n_permutations: int
    significance_seed: int
    nest_column: str = "Nest"
    survival_column: str = "Surv"
    imp_scale: str = "mir"
    n_jobs: int | None = None
    make_plots: bool = True
    class_labels: dict[str, tuple[str, str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 < self.redundancy_threshold < 1.0:
            raise ValueError(
                f"redundancy_threshold must be in (0, 1), got {self.redundancy_threshold}"
            )
        if self.n_trees < 1:
            raise ValueError(f"n_trees must be >= 1, got {self.n_trees}")
        if not self.thresholds:
            raise ValueError("thresholds must contain at least one value")
        if not 0.0 < self.holdout_fraction < 1.0:
            raise ValueError(
                f"holdout_fraction must be in (0, 1), got {self.holdout_fraction}"
            )
        if self.n_repetitions < 1:
            raise ValueError(f"n_repetitions must be >= 1, got {self.n_repetitions}")
        if self.n_permutations < 1:
            raise ValueError(f"n_permutations must be >= 1, got {self.n_permutations}")
        if self.imp_scale != "mir":
            raise ValueError(f"Unsupported imp_scale: {self.imp_scale!r} (expected 'mir')")

    @classmethod
    def from_dict(cls, cfg: dict[str, Any]) -> AnalysisConfig:
        """Build the config from the nested dict returned by load_config("analysis")."""
        data = _section(cfg, "data")
        cov = _section(cfg, "covariates")
        rf = _section(cfg, "random_forest")
        cv = _section(cfg, "cross_validation")
        sig = _section(cfg, "significance")
        runtime = cfg.get("runtime", {}) or {}
        labels = cfg.get("class_labels", {}) or {}

        return cls(
            input_csv=Path(_require(data, "data", "input_csv")),
            output_dir=Path(_require(data, "data", "output_dir")),
            nest_column=data.get("nest_column", "Nest"),
            survival_column=data.get("survival_column", "Surv"),
            denylist=tuple(cov.get("denylist") or ()),
            redundancy_threshold=float(_require(cov, "covariates", "redundancy_threshold")),
            n_trees=int(_require(rf, "random_forest", "n_trees")),
            thresholds=tuple(float(t) for t in _require(rf, "random_forest", "thresholds")),
            imp_scale=rf.get("imp_scale", "mir"),
            selection_seed=int(_require(rf, "random_forest", "seed")),
            holdout_fraction=float(_require(cv, "cross_validation", "holdout_fraction")),
            n_repetitions=int(_require(cv, "cross_validation", "n_repetitions")),
            cv_seed=int(_require(cv, "cross_validation", "seed")),
            n_permutations=int(_require(sig, "significance", "n_permutations")),
            significance_seed=int(_require(sig, "significance", "seed")),
            n_jobs=runtime.get("n_jobs"),
            make_plots=bool(runtime.get("make_plots", True)),
            class_labels={k: tuple(v) for k, v in labels.items()},
        )
