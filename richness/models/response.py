import logging

import numpy as np
import pandas as pd

from richness.models.backend import FittedModel

logger = logging.getLogger(__name__)


def partial_response(
    model: FittedModel,
    table: pd.DataFrame,
    predictor: str,
    n_points: int = 100,
) -> pd.DataFrame:
    """Predicted richness across the observed range of one predictor.

    All other columns (including the coordinates) are held at their median.

    Args:
        model: A fitted candidate model that includes `predictor`.
        table: The feature table the model was fitted on.
        predictor: The predictor to vary.
        n_points: Number of evenly spaced values across the range.

    Returns:
        DataFrame with columns ``[predictor, "fitted"]``.
    """
    if predictor not in model.spec.predictors:
        raise ValueError(f"Model '{model.name}' does not include predictor '{predictor}'")
    if n_points < 2:
        raise ValueError("n_points must be at least 2")

    values = np.linspace(table[predictor].min(), table[predictor].max(), n_points)
    medians = table.median(numeric_only=True)
    grid = pd.DataFrame({column: np.repeat(medians[column], n_points) for column in medians.index})
    grid[predictor] = values

    fitted = model.predict(grid)
    logger.debug(
        "Partial response of '%s' in model '%s' ranges from %.2f to %.2f",
        predictor, model.name, float(np.min(fitted)), float(np.max(fitted)),
    )
    return pd.DataFrame({predictor: values, "fitted": fitted})
