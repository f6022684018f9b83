"""
Raster loading: every band of a GDAL-readable file becomes one GridLayer.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import rasterio

from richness.raster.grid import GridLayer
from richness.utils.text_utils import tidy_variable_name

logger = logging.getLogger(__name__)


def _band_name(
    description: Optional[str],
    band: int,
    prefix: str,
    single_band: bool,
) -> str:
    if description:
        return tidy_variable_name(description)
    if single_band:
        return tidy_variable_name(prefix)
    return tidy_variable_name(f"{prefix}_{band}")


def load_raster_layers(
    raster_path: Union[str, Path],
    names: Optional[Sequence[str]] = None,
    prefix: Optional[str] = None,
    bands: Optional[Sequence[int]] = None,
) -> List[GridLayer]:
    """Load bands of a raster file as GridLayers.

    Args:
        raster_path: Path to the raster (GeoTIFF or any format rasterio reads).
        names: Explicit layer names, one per selected band.
        prefix: Name prefix used when a band carries no description. Defaults to
            the file stem; a single undescribed band is named by the prefix alone.
        bands: 1-based band indexes to load. Defaults to all bands.

    Returns:
        List of GridLayers with nodata converted to NaN.
    """
    raster_path = Path(raster_path)
    if not raster_path.exists():
        raise FileNotFoundError(f"Raster not found at {raster_path}")

    prefix = prefix or raster_path.stem
    layers = []
    with rasterio.open(raster_path) as src:
        band_indexes = list(bands) if bands is not None else list(src.indexes)
        invalid = [band for band in band_indexes if band not in src.indexes]
        if invalid:
            raise ValueError(f"Bands {invalid} not present in {raster_path} (has {src.count})")
        if names is not None and len(names) != len(band_indexes):
            raise ValueError(
                f"Got {len(names)} names for {len(band_indexes)} bands in {raster_path}"
            )

        for position, band in enumerate(band_indexes):
            data = src.read(band, masked=True).astype(np.float64).filled(np.nan)
            if names is not None:
                name = tidy_variable_name(names[position])
            else:
                name = _band_name(
                    src.descriptions[band - 1], band, prefix, single_band=len(band_indexes) == 1
                )
            layer = GridLayer(name=name, values=data, crs=src.crs, transform=src.transform)
            logger.debug(
                "Loaded band %d of %s as '%s' (%dx%d, %.1f%% missing)",
                band, raster_path.name, name, layer.height, layer.width, 100 * layer.missing_share,
            )
            layers.append(layer)

    logger.info("Loaded %d layer(s) from %s", len(layers), raster_path)
    return layers


def write_layer(layer: GridLayer, output_path: Union[str, Path]) -> Path:
    """Write a GridLayer to a single-band float GeoTIFF with NaN nodata."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(
        output_path,
        "w",
        driver="GTiff",
        height=layer.height,
        width=layer.width,
        count=1,
        dtype="float64",
        crs=layer.crs,
        transform=layer.transform,
        nodata=np.nan,
    ) as dst:
        dst.write(layer.values, 1)
        dst.set_band_description(1, layer.name)
    logger.info("Wrote layer '%s' to %s", layer.name, output_path)
    return output_path
