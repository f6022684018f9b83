from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
import rasterio
from affine import Affine
from shapely.geometry import box

from richness.raster import GridLayer, write_layer


def geographic_layer(name: str, resolution: float, west: float, south: float, east: float, north: float) -> GridLayer:
    """A lon/lat layer whose values increase towards the north-east."""
    width = int(round((east - west) / resolution))
    height = int(round((north - south) / resolution))
    transform = Affine.translation(west, north) * Affine.scale(resolution, -resolution)
    rows, cols = np.indices((height, width))
    values = (height - rows) + 0.5 * cols
    return GridLayer(name=name, values=values.astype(np.float64), crs="EPSG:4326", transform=transform)


@pytest.fixture
def coarse_layer() -> GridLayer:
    return geographic_layer("coarse", 1.0, 0, 0, 10, 10)


@pytest.fixture
def fine_layer() -> GridLayer:
    return geographic_layer("fine", 0.5, 0, 0, 10, 10)


@pytest.fixture
def disjoint_layer() -> GridLayer:
    """Same resolution as `coarse_layer` but on the other side of the globe."""
    return geographic_layer("disjoint", 1.0, 100, 0, 110, 10)


@pytest.fixture
def small_template() -> GridLayer:
    """A 4x4 grid of unit cells in an equal-area CRS."""
    return GridLayer(
        name="template",
        values=np.full((4, 4), np.nan),
        crs="EPSG:6933",
        transform=Affine(1, 0, 0, 0, -1, 4),
    )


@pytest.fixture
def small_ranges() -> gpd.GeoDataFrame:
    """Species A covers the left half (split over two polygons), species B the bottom right."""
    return gpd.GeoDataFrame(
        {
            "binomial": ["Species a", "Species a", "Species b"],
            "category": ["EN", "EN", "LC"],
        },
        geometry=[box(0, 0, 2, 4), box(0, 0, 1, 1), box(1, 0, 4, 2)],
        crs="EPSG:6933",
    )


@pytest.fixture
def synthetic_table() -> pd.DataFrame:
    """Counts on a 20x20 grid driven by elevation, with an unrelated noise column."""
    rng = np.random.default_rng(42)
    n = 20
    xx, yy = np.meshgrid(np.arange(n) + 0.5, np.arange(n) + 0.5)
    elevation = rng.normal(size=n * n)
    noise = rng.normal(size=n * n)
    mu = np.exp(1.0 + 0.5 * elevation)
    return pd.DataFrame(
        {
            "x": xx.ravel(),
            "y": yy.ravel(),
            "richness": rng.poisson(mu),
            "elevation": elevation,
            "noise": noise,
        }
    )


def _write_multiband(path: Path, bands: list, transform: Affine, nodata: float = -9999.0) -> Path:
    height, width = bands[0].shape
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=height,
        width=width,
        count=len(bands),
        dtype="float32",
        crs="EPSG:4326",
        transform=transform,
        nodata=nodata,
    ) as dst:
        for index, band in enumerate(bands, start=1):
            dst.write(np.where(np.isnan(band), nodata, band).astype(np.float32), index)
    return path


@pytest.fixture
def pipeline_inputs(tmp_path: Path) -> Path:
    """Climate, elevation, human-influence rasters and range polygons over lon/lat 0..10.

    Returns the path of a YAML config that refers to them with relative paths.
    """
    rng = np.random.default_rng(7)
    data_dir = tmp_path / "data"
    data_dir.mkdir()

    # 0.25 degree climate with two undescribed bands
    height = width = 40
    rows, cols = np.indices((height, width))
    temperature = 25.0 - 0.3 * rows + rng.normal(scale=0.5, size=(height, width))
    precipitation = 500.0 + 20.0 * cols + rng.normal(scale=10.0, size=(height, width))
    climate_transform = Affine.translation(0, 10) * Affine.scale(0.25, -0.25)
    _write_multiband(data_dir / "climate.tif", [temperature, precipitation], climate_transform)

    # 0.1 degree elevation
    rows, cols = np.indices((100, 100))
    elevation = 200.0 + 10.0 * np.sin(rows / 15.0) * np.cos(cols / 20.0) * 50.0
    elevation_layer = GridLayer(
        name="elevation",
        values=elevation,
        crs="EPSG:4326",
        transform=Affine.translation(0, 10) * Affine.scale(0.1, -0.1),
    )
    write_layer(elevation_layer, data_dir / "elevation.tif")

    # 0.25 degree human influence with a void corner
    human = rng.uniform(0, 50, size=(40, 40))
    human[:5, :5] = np.nan
    _write_multiband(data_dir / "human.tif", [human], climate_transform)

    # Random rectangular ranges
    species, categories, geometries = [], [], []
    codes = ["LC", "VU", "EN", "LC", "NT"]
    for index in range(25):
        west, south = rng.uniform(0, 7, size=2)
        extent_x, extent_y = rng.uniform(2, 5, size=2)
        species.append(f"Species {index}")
        categories.append(codes[index % len(codes)])
        geometries.append(box(west, south, min(west + extent_x, 10), min(south + extent_y, 10)))
    ranges = gpd.GeoDataFrame(
        {"binomial": species, "category": categories}, geometry=geometries, crs="EPSG:4326"
    )
    ranges.to_file(data_dir / "ranges.gpkg", driver="GPKG")

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "inputs:",
                "  ranges: data/ranges.gpkg",
                "  climate: data/climate.tif",
                "  climate_prefix: bio",
                "  elevation: data/elevation.tif",
                "  human_influence: data/human.tif",
                "spatial:",
                "  target_crs: EPSG:6933",
                "features:",
                "  status_categories: [VU, EN]",
                "model:",
                "  spatial_df: 4",
                "  predictor_df: null",
                "",
            ]
        )
    )
    return config_path
