"""
Grid layers: a 2-D array of values tied to a CRS and an affine transform.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np
import pyproj
import xarray as xr
from affine import Affine
from rasterio.coords import BoundingBox
from rasterio.crs import CRS
from rasterio.transform import array_bounds


def as_crs(crs: Any) -> CRS:
    """Coerce an EPSG code, authority string, WKT or pyproj CRS into a rasterio CRS."""
    if isinstance(crs, CRS):
        return crs
    if isinstance(crs, pyproj.CRS):
        return CRS.from_wkt(crs.to_wkt())
    return CRS.from_user_input(crs)


def crs_matches(a: Any, b: Any) -> bool:
    """True if two CRS definitions describe the same reference system."""
    if a is None or b is None:
        return False
    crs_a = pyproj.CRS.from_user_input(a.to_wkt() if isinstance(a, CRS) else a)
    crs_b = pyproj.CRS.from_user_input(b.to_wkt() if isinstance(b, CRS) else b)
    return crs_a.equals(crs_b, ignore_axis_order=True)


@dataclass
class GridLayer:
    """A single band of gridded values.

    Missing cells are NaN. Row 0 is the northern edge when the transform has a
    negative y scale, as written by GDAL.
    """
    name: str
    values: np.ndarray
    crs: Optional[CRS]
    transform: Affine

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=np.float64)
        if self.values.ndim != 2:
            raise ValueError(f"Layer '{self.name}' must be 2-D, got shape {self.values.shape}")
        if self.crs is not None:
            self.crs = as_crs(self.crs)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    @property
    def height(self) -> int:
        return self.values.shape[0]

    @property
    def width(self) -> int:
        return self.values.shape[1]

    @property
    def resolution(self) -> Tuple[float, float]:
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def bounds(self) -> BoundingBox:
        west, south, east, north = array_bounds(self.height, self.width, self.transform)
        return BoundingBox(left=west, bottom=south, right=east, top=north)

    @property
    def x_coords(self) -> np.ndarray:
        """Cell-centre x coordinates, one per column."""
        return self.transform.c + (np.arange(self.width) + 0.5) * self.transform.a

    @property
    def y_coords(self) -> np.ndarray:
        """Cell-centre y coordinates, one per row."""
        return self.transform.f + (np.arange(self.height) + 0.5) * self.transform.e

    def same_grid(self, other: "GridLayer", rtol: float = 1e-9) -> bool:
        """True if both layers share origin, extent, resolution and CRS."""
        if self.shape != other.shape:
            return False
        if not np.allclose(self.transform.to_gdal(), other.transform.to_gdal(), rtol=rtol, atol=0):
            return False
        if self.crs is None or other.crs is None:
            return self.crs is None and other.crs is None
        return self.crs == other.crs

    def with_values(self, values: np.ndarray, name: Optional[str] = None) -> "GridLayer":
        """A new layer on this grid."""
        values = np.asarray(values)
        if values.shape != self.shape:
            raise ValueError(f"Expected values of shape {self.shape}, got {values.shape}")
        return GridLayer(name=name or self.name, values=values, crs=self.crs, transform=self.transform)

    def empty_like(self, name: Optional[str] = None) -> "GridLayer":
        return self.with_values(np.full(self.shape, np.nan), name=name)

    @property
    def missing_share(self) -> float:
        return float(np.isnan(self.values).mean()) if self.values.size else 0.0

    def to_dataarray(self) -> xr.DataArray:
        return xr.DataArray(
            self.values,
            coords={"y": self.y_coords, "x": self.x_coords},
            dims=("y", "x"),
            name=self.name,
            attrs={
                "crs": self.crs.to_wkt() if self.crs is not None else None,
                "transform": self.transform.to_gdal(),
            },
        )


def construct_transform_shift_bounds(
    minx: float, miny: float, maxx: float, maxy: float, resolution: float
) -> Tuple[Affine, int, int, BoundingBox]:
    """Construct Affine transform and align bounds outward to multiples of the resolution."""
    minx = np.floor(minx / resolution) * resolution
    miny = np.floor(miny / resolution) * resolution
    maxx = np.ceil(maxx / resolution) * resolution
    maxy = np.ceil(maxy / resolution) * resolution

    dst_transform = Affine.translation(minx, maxy) * Affine.scale(resolution, -resolution)
    dst_height = int(round((maxy - miny) / resolution))
    dst_width = int(round((maxx - minx) / resolution))
    dst_bounds = BoundingBox(left=minx, bottom=miny, right=maxx, top=maxy)
    return dst_transform, dst_width, dst_height, dst_bounds


def stack_to_dataset(layers: Sequence[GridLayer]) -> xr.Dataset:
    """Merge aligned layers into a single xarray Dataset, one variable per layer."""
    return xr.merge([layer.to_dataarray() for layer in layers], combine_attrs="drop_conflicts")
