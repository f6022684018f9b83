"""
Spatial harmonisation: bring heterogeneous grids and the range polygons into one
equal-area reference system on one shared grid.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

import geopandas as gpd
import numpy as np
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.errors import CRSError
from rasterio.warp import calculate_default_transform, reproject, transform_bounds

from richness.exceptions import AlignmentError
from richness.raster.grid import GridLayer, as_crs, construct_transform_shift_bounds

logger = logging.getLogger(__name__)

ResamplingLike = Union[Resampling, str]


@dataclass
class HarmonizedLayers:
    """Layers on one common grid, in the order they were supplied."""
    template: GridLayer
    layers: List[GridLayer]
    reference_name: str

    def __getitem__(self, name: str) -> GridLayer:
        for layer in self.layers:
            if layer.name == name:
                return layer
        raise KeyError(name)

    @property
    def names(self) -> List[str]:
        return [layer.name for layer in self.layers]


def _target_crs(target_crs: Any) -> CRS:
    try:
        return as_crs(target_crs)
    except (CRSError, ValueError, TypeError) as e:
        raise AlignmentError(f"Cannot interpret target CRS {target_crs!r}: {e}") from e


def _resampling(value: ResamplingLike) -> Resampling:
    if isinstance(value, Resampling):
        return value
    try:
        return Resampling[value]
    except KeyError:
        raise ValueError(
            f"Unknown resampling '{value}'. Options: {[r.name for r in Resampling]}"
        )


def _require_crs(layer: GridLayer) -> None:
    if layer.crs is None:
        raise AlignmentError(f"Layer '{layer.name}' has no coordinate reference system")


def estimate_resolution(layer: GridLayer, target_crs: Any) -> float:
    """Approximate cell size of a layer once expressed in the target CRS units."""
    _require_crs(layer)
    dst_crs = _target_crs(target_crs)
    try:
        transform, _, _ = calculate_default_transform(
            layer.crs, dst_crs, layer.width, layer.height, *layer.bounds
        )
    except (CRSError, ValueError) as e:
        raise AlignmentError(f"Cannot project layer '{layer.name}' into {dst_crs}: {e}") from e
    return max(abs(transform.a), abs(transform.e))


def select_reference_layer(layers: Sequence[GridLayer], target_crs: Any) -> GridLayer:
    """The layer with the largest cell size once expressed in the target CRS."""
    if not layers:
        raise AlignmentError("No layers supplied for harmonisation")
    resolutions = [estimate_resolution(layer, target_crs) for layer in layers]
    for layer, resolution in zip(layers, resolutions):
        logger.debug("Layer '%s' has an approximate resolution of %.3f in the target CRS", layer.name, resolution)
    reference = layers[int(np.argmax(resolutions))]
    logger.info("Using '%s' as the harmonisation reference", reference.name)
    return reference


def build_target_grid(
    reference: GridLayer,
    target_crs: Any,
    cell_size: Optional[float] = None,
) -> GridLayer:
    """
    Build an empty template grid covering the reference layer's footprint.

    The footprint is projected into the target CRS and snapped outwards to
    multiples of the cell size; cells are square and the origin is
    reproducible between runs.

    Args:
        reference: Layer whose footprint defines the template extent.
        target_crs: CRS of the template, ideally an equal-area projection.
        cell_size: Template cell size in target CRS units. Defaults to the
            reference layer's estimated native resolution.

    Returns:
        GridLayer filled with NaN.
    """
    _require_crs(reference)
    dst_crs = _target_crs(target_crs)
    if cell_size is None:
        cell_size = estimate_resolution(reference, dst_crs)
    if not np.isfinite(cell_size) or cell_size <= 0:
        raise AlignmentError(f"Cell size must be positive, got {cell_size}")

    try:
        left, bottom, right, top = transform_bounds(reference.crs, dst_crs, *reference.bounds, densify_pts=21)
    except (CRSError, ValueError) as e:
        raise AlignmentError(f"Cannot project the extent of '{reference.name}' into {dst_crs}: {e}") from e
    if not all(np.isfinite([left, bottom, right, top])):
        raise AlignmentError(f"Extent of '{reference.name}' is not representable in {dst_crs}")

    transform, width, height, bounds = construct_transform_shift_bounds(left, bottom, right, top, cell_size)
    logger.info(
        "Target grid: %dx%d cells of %.3f units in %s, bounds %s",
        width, height, cell_size, dst_crs.to_string(), tuple(bounds),
    )
    return GridLayer(
        name="template",
        values=np.full((height, width), np.nan),
        crs=dst_crs,
        transform=transform,
    )


def reproject_layer(
    layer: GridLayer,
    template: GridLayer,
    resampling: ResamplingLike = Resampling.average,
) -> GridLayer:
    """Warp a layer onto the template grid. Cells outside the source footprint are NaN."""
    _require_crs(layer)
    destination = np.full(template.shape, np.nan, dtype=np.float64)
    try:
        reproject(
            source=layer.values,
            destination=destination,
            src_transform=layer.transform,
            src_crs=layer.crs,
            src_nodata=np.nan,
            dst_transform=template.transform,
            dst_crs=template.crs,
            dst_nodata=np.nan,
            resampling=_resampling(resampling),
        )
    except CRSError as e:
        raise AlignmentError(f"Cannot reproject layer '{layer.name}': {e}") from e

    projected = template.with_values(destination, name=layer.name)
    if projected.missing_share == 1.0:
        logger.warning("Layer '%s' does not overlap the target grid; all cells are missing", layer.name)
    else:
        logger.debug("Reprojected '%s' (%.1f%% missing)", layer.name, 100 * projected.missing_share)
    return projected


def harmonize_layers(
    layers: Sequence[GridLayer],
    target_crs: Any,
    cell_size: Optional[float] = None,
    resampling: Optional[Mapping[str, ResamplingLike]] = None,
    default_resampling: ResamplingLike = Resampling.average,
) -> HarmonizedLayers:
    """Reproject and resample every layer onto the grid of the coarsest one.

    Args:
        layers: Grid layers with possibly different CRSs and resolutions.
        target_crs: Common (equal-area) reference system.
        cell_size: Cell size of the common grid in target units.
        resampling: Per-layer-name resampling overrides, e.g. ``{"landcover": "nearest"}``.
        default_resampling: Resampling for all other layers.

    Returns:
        HarmonizedLayers holding the template and the aligned layers.
    """
    if not layers:
        raise AlignmentError("No layers supplied for harmonisation")
    for layer in layers:
        _require_crs(layer)
    resampling = dict(resampling or {})

    reference = select_reference_layer(layers, target_crs)
    template = build_target_grid(reference, target_crs, cell_size=cell_size)

    aligned = []
    for layer in layers:
        method = resampling.get(layer.name, default_resampling)
        aligned.append(reproject_layer(layer, template, resampling=method))

    return HarmonizedLayers(template=template, layers=aligned, reference_name=reference.name)


def reproject_polygons(ranges: gpd.GeoDataFrame, target_crs: Any) -> gpd.GeoDataFrame:
    """Transform polygon coordinates into the target CRS."""
    if ranges.crs is None:
        raise AlignmentError("Range polygons have no coordinate reference system")
    dst_crs = _target_crs(target_crs)
    return ranges.to_crs(dst_crs.to_wkt())
