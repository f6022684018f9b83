from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from richness.utils.io import load_range_polygons, load_yaml, read_table
from richness.utils.text_utils import tidy_variable_name


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Annual Mean Temperature", "annual_mean_temperature"),
        ("BIO-12 (mm)", "bio_12_mm"),
        ("  human  influence ", "human_influence"),
        (5, "5"),
    ],
)
def test_tidy_variable_name(name, expected: str):
    assert tidy_variable_name(name) == expected


def test_load_yaml(tmp_path: Path):
    path = tmp_path / "settings.yaml"
    path.write_text("a: 1\nb: [x, y]\n")
    assert load_yaml(path) == {"a": 1, "b": ["x", "y"]}

    path.write_text("")
    assert load_yaml(path) == {}

    path.write_text("- not\n- a mapping\n")
    with pytest.raises(ValueError):
        load_yaml(path)


def test_load_range_polygons(tmp_path: Path):
    path = tmp_path / "ranges.gpkg"
    gpd.GeoDataFrame(
        {"binomial": ["Vulpes vulpes"], "category": ["LC"]},
        geometry=[box(0, 0, 1, 1)],
        crs="EPSG:4326",
    ).to_file(path, driver="GPKG")

    ranges = load_range_polygons(path)

    assert len(ranges) == 1
    assert ranges.crs.to_epsg() == 4326
    with pytest.raises(ValueError):
        load_range_polygons(path, species_column="sci_name")
    with pytest.raises(FileNotFoundError):
        load_range_polygons(tmp_path / "absent.gpkg")


def test_read_table(tmp_path: Path):
    table = pd.DataFrame({"x": [0.5], "y": [1.5], "richness": [3]})
    table.to_csv(tmp_path / "table.csv", index=False)
    table.to_parquet(tmp_path / "table.parquet", index=False)

    pd.testing.assert_frame_equal(read_table(tmp_path / "table.csv"), table)
    pd.testing.assert_frame_equal(read_table(tmp_path / "table.parquet"), table)
