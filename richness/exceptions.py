"""
Error taxonomy for the richness pipeline.

Stage errors abort a run. Per-model problems are reported as warnings and the
remaining candidates are still compared.
"""

from typing import Optional


class RichnessPipelineError(Exception):
    """Base class for fatal pipeline errors."""


class AlignmentError(RichnessPipelineError, ValueError):
    """Input layers cannot be reconciled to a common grid."""


class DataSparsityError(RichnessPipelineError, ValueError):
    """The feature table cannot support a model fit."""

    def __init__(self, message: str, predictor: Optional[str] = None, n_rows: Optional[int] = None):
        super().__init__(message)
        self.predictor = predictor
        self.n_rows = n_rows


class ModelFitError(RichnessPipelineError, RuntimeError):
    """No candidate model could be fitted."""


class FitConvergenceWarning(UserWarning):
    """A candidate model's optimiser did not converge; the model is excluded from the ranking."""


class DistributionalMismatchWarning(UserWarning):
    """The dispersion ratio of the full model is far from 1."""
