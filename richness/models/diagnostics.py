"""Distributional diagnostics for count models."""

import logging
import warnings
from typing import Dict, Optional

import numpy as np

from richness.exceptions import DistributionalMismatchWarning
from richness.models.backend import FittedModel

logger = logging.getLogger(__name__)


def count_distribution_summary(values) -> Dict[str, float]:
    """
    Summarise the shape of a count response.

    Under a Poisson distribution the variance equals the mean and the share
    of zeros is ``exp(-mean)``. Comparing these against the observed values
    (alongside a histogram) informs the choice of family; nothing is
    selected automatically.

    Args:
        values: Observed counts.

    Returns:
        Dict with ``n``, ``mean``, ``variance``, ``variance_to_mean``,
        ``zero_share`` and ``poisson_zero_share``.
    """
    values = np.asarray(values, dtype=np.float64)
    values = values[~np.isnan(values)]
    n = values.size
    if n == 0:
        raise ValueError("Cannot summarise an empty response")
    mean = float(values.mean())
    variance = float(values.var(ddof=1)) if n > 1 else float("nan")
    return {
        "n": n,
        "mean": mean,
        "variance": variance,
        "variance_to_mean": variance / mean if mean > 0 else float("nan"),
        "zero_share": float((values == 0).mean()),
        "poisson_zero_share": float(np.exp(-mean)),
    }


def dispersion_ratio(model: FittedModel) -> float:
    """Residual deviance over residual degrees of freedom; NaN without residual df."""
    if model.df_resid <= 0:
        return float("nan")
    return model.deviance / model.df_resid


def check_dispersion(ratio: float, threshold: float = 1.5) -> Optional[str]:
    """
    Compare a dispersion ratio against the count-model assumption.

    Values outside ``[1 / threshold, threshold]`` emit a
    DistributionalMismatchWarning. Nothing is corrected.

    Returns:
        A caveat message, or None if the ratio is consistent with the family.
    """
    if threshold <= 1:
        raise ValueError(f"Dispersion threshold must exceed 1, got {threshold}")
    if np.isnan(ratio):
        caveat = "Dispersion ratio is undefined: the full model has no residual degrees of freedom"
    elif ratio > threshold:
        caveat = (
            f"Dispersion ratio {ratio:.2f} > {threshold}: the response is overdispersed "
            "relative to the model family"
        )
    elif ratio < 1 / threshold:
        caveat = (
            f"Dispersion ratio {ratio:.2f} < {1 / threshold:.2f}: the response is underdispersed "
            "relative to the model family"
        )
    else:
        logger.info("Dispersion ratio %.2f is consistent with the model family", ratio)
        return None

    logger.warning(caveat)
    warnings.warn(caveat, DistributionalMismatchWarning, stacklevel=2)
    return caveat
