import logging
from typing import Iterable, Optional

import geopandas as gpd
import numpy as np
from rasterio.enums import MergeAlg
from rasterio.features import rasterize

from richness.exceptions import AlignmentError
from richness.raster.grid import GridLayer, crs_matches
from richness.utils.text_utils import tidy_variable_name

logger = logging.getLogger(__name__)


def count_species(
    ranges: gpd.GeoDataFrame,
    template: GridLayer,
    species_column: str = "binomial",
) -> np.ndarray:
    """
    Count, per cell, the species whose range covers the cell centre.

    Polygons are dissolved by species first so a range split over several
    polygons is counted once.

    Args:
        ranges: Range polygons in the template CRS.
        template: Grid to count onto.
        species_column: Column identifying the species of each polygon.

    Returns:
        Integer array with the template's shape; cells without any range hold 0.
    """
    if species_column not in ranges.columns:
        raise ValueError(f"Species column '{species_column}' not found in range polygons")
    if not crs_matches(ranges.crs, template.crs):
        raise AlignmentError(
            f"Range polygons ({ranges.crs}) are not in the grid CRS ({template.crs}); reproject them first"
        )

    counts = np.zeros(template.shape, dtype=np.int32)
    if ranges.empty:
        return counts

    species = ranges[[species_column, ranges.geometry.name]].dissolve(by=species_column)
    shapes = [(geom, 1) for geom in species.geometry if geom is not None and not geom.is_empty]
    if not shapes:
        return counts

    counts = rasterize(
        shapes,
        out_shape=template.shape,
        transform=template.transform,
        fill=0,
        all_touched=False,
        merge_alg=MergeAlg.add,
        dtype="int32",
    )
    logger.debug("Rasterised %d species onto a %dx%d grid", len(shapes), template.height, template.width)
    return counts


def rasterize_richness(
    ranges: gpd.GeoDataFrame,
    template: GridLayer,
    species_column: str = "binomial",
    name: str = "richness",
) -> GridLayer:
    """Species richness per cell. Cells covered by no range are NaN, not 0."""
    counts = count_species(ranges, template, species_column=species_column)
    richness = counts.astype(np.float64)
    richness[counts == 0] = np.nan
    layer = template.with_values(richness, name=name)
    logger.info(
        "Richness layer: max %d species, %.1f%% of cells without any range",
        int(counts.max()) if counts.size else 0, 100 * layer.missing_share,
    )
    return layer


def rasterize_status_richness(
    ranges: gpd.GeoDataFrame,
    template: GridLayer,
    categories: Iterable[str],
    footprint: GridLayer,
    species_column: str = "binomial",
    category_column: str = "category",
    name: Optional[str] = None,
) -> GridLayer:
    """
    Richness restricted to species in the given conservation-status categories.

    Unlike `rasterize_richness`, absence is coded as 0 and the result is then
    masked back to the footprint of the full richness layer.

    Args:
        ranges: Range polygons in the template CRS.
        template: Grid to count onto.
        categories: Status codes to keep, e.g. ``["VU", "EN", "CR"]``.
        footprint: The full richness layer; its missing cells stay missing.
        species_column: Column identifying the species of each polygon.
        category_column: Column holding the status code.
        name: Layer name. Defaults to ``richness_<categories>``.

    Returns:
        GridLayer with 0 where no selected species occurs inside the footprint.
    """
    categories = list(categories)
    if not categories:
        raise ValueError("At least one status category is required")
    if category_column not in ranges.columns:
        raise ValueError(f"Category column '{category_column}' not found in range polygons")
    if not footprint.same_grid(template):
        raise AlignmentError(f"Footprint layer '{footprint.name}' is not on the template grid")

    selected = ranges[ranges[category_column].isin(categories)]
    logger.info(
        "Selected %d of %d polygons in categories %s",
        len(selected), len(ranges), ", ".join(categories),
    )
    counts = count_species(selected, template, species_column=species_column).astype(np.float64)
    counts[np.isnan(footprint.values)] = np.nan

    if name is None:
        name = tidy_variable_name("richness_" + "_".join(categories))
    return template.with_values(counts, name=name)
