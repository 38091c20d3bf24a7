"""
Exceptions raised by the analysis workflow.

Every failure is fatal for the response variable being analysed: nothing is
retried or skipped. Each error names the workflow step, the offending column
or parameter, and the shape of the input at the time of failure, e.g.

    [fit_forest] label 'Surv' has a single class [1] (input shape: 127x12)
"""

from __future__ import annotations


class AnalysisError(ValueError):
    """Base class for data-quality failures detected by the workflow."""

    def __init__(self, step: str, detail: str, shape: tuple[int, ...] | None = None) -> None:
        self.step = step
        self.detail = detail
        self.shape = tuple(shape) if shape is not None else None
        message = f"[{step}] {detail}"
        if self.shape is not None:
            message += f" (input shape: {'x'.join(str(d) for d in self.shape)})"
        super().__init__(message)


class MissingColumnError(AnalysisError):
    """A required column is absent from the observation table."""

    def __init__(self, step: str, column: str, shape: tuple[int, ...] | None = None) -> None:
        self.column = column
        super().__init__(step, f"required column {column!r} is missing", shape)


class InvalidLabelError(AnalysisError):
    """A label column holds values other than 0/1, or Surv is defined where Nest is 0."""


class InvalidCovariateError(AnalysisError):
    """Covariates that are non-numeric or contain missing values."""


class DegenerateLabelError(AnalysisError):
    """A label column with fewer than two classes; raised before any fit."""


class EmptyCovariateSetError(AnalysisError):
    """Filtering or selection left no covariates to fit on."""
