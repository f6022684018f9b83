import logging
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from richness.exceptions import AlignmentError
from richness.raster.grid import GridLayer

logger = logging.getLogger(__name__)

COORDINATE_COLUMNS = ("x", "y")


def stack_layers(layers: Sequence[GridLayer]) -> pd.DataFrame:
    """Flatten aligned layers into one row per grid cell.

    Columns are ``x, y`` (cell centres) followed by one column per layer,
    named after the layer. The first layer defines the grid.
    """
    if not layers:
        raise ValueError("No layers to stack")
    base = layers[0]
    for layer in layers[1:]:
        if not layer.same_grid(base):
            raise AlignmentError(
                f"Layer '{layer.name}' is not aligned with '{base.name}'; harmonise the layers first"
            )

    names = [layer.name for layer in layers]
    duplicated = sorted({name for name in names if names.count(name) > 1})
    if duplicated:
        raise ValueError(f"Duplicate layer names: {duplicated}")
    reserved = set(names) & set(COORDINATE_COLUMNS)
    if reserved:
        raise ValueError(f"Layer names clash with coordinate columns: {sorted(reserved)}")

    xx, yy = np.meshgrid(base.x_coords, base.y_coords)
    data = {"x": xx.ravel(), "y": yy.ravel()}
    for layer in layers:
        data[layer.name] = layer.values.ravel()
    return pd.DataFrame(data)


def drop_incomplete_rows(table: pd.DataFrame, count_columns: Iterable[str] = ("richness",)) -> pd.DataFrame:
    """Drop every row with a missing value in any column.

    Ocean cells, void cells and cells outside any layer are removed and
    nothing is imputed. Count columns are cast to integers.
    """
    complete = table.dropna().reset_index(drop=True)
    n_dropped = len(table) - len(complete)
    share = n_dropped / len(table) if len(table) else 0.0
    logger.info(
        "Dropped %d of %d rows (%.1f%%) with missing values; %d complete rows remain",
        n_dropped, len(table), 100 * share, len(complete),
    )
    for column in count_columns:
        if column in complete.columns:
            complete[column] = complete[column].round().astype(np.int64)
    return complete


def build_feature_table(
    richness: GridLayer,
    predictors: Sequence[GridLayer],
    status_richness: Optional[GridLayer] = None,
) -> pd.DataFrame:
    """Stack the richness layer(s) and the predictors, then drop incomplete rows."""
    responses = [richness] if status_richness is None else [richness, status_richness]
    table = stack_layers([*responses, *predictors])
    count_columns = [layer.name for layer in responses]
    return drop_incomplete_rows(table, count_columns=count_columns)
