import geopandas as gpd
import numpy as np
import pytest
from shapely.geometry import box

from richness.exceptions import AlignmentError
from richness.features import rasterize_richness, rasterize_status_richness
from richness.features.rasterize import count_species
from richness.raster import GridLayer

EXPECTED_RICHNESS = np.array(
    [
        [1, 1, np.nan, np.nan],
        [1, 1, np.nan, np.nan],
        [1, 2, 1, 1],
        [1, 2, 1, 1],
    ]
)


def test_richness_counts_species_once(small_ranges: gpd.GeoDataFrame, small_template: GridLayer):
    richness = rasterize_richness(small_ranges, small_template)

    assert richness.name == "richness"
    assert richness.same_grid(small_template)
    np.testing.assert_array_equal(richness.values, EXPECTED_RICHNESS)


def test_richness_is_deterministic(small_ranges: gpd.GeoDataFrame, small_template: GridLayer):
    first = rasterize_richness(small_ranges, small_template)
    second = rasterize_richness(small_ranges, small_template)
    np.testing.assert_array_equal(first.values, second.values)


def test_status_richness_codes_absence_as_zero(small_ranges: gpd.GeoDataFrame, small_template: GridLayer):
    richness = rasterize_richness(small_ranges, small_template)

    threatened = rasterize_status_richness(small_ranges, small_template, ["EN"], footprint=richness)

    expected = np.array(
        [
            [1, 1, np.nan, np.nan],
            [1, 1, np.nan, np.nan],
            [1, 1, 0, 0],
            [1, 1, 0, 0],
        ]
    )
    assert threatened.name == "richness_en"
    np.testing.assert_array_equal(threatened.values, expected)
    assert np.array_equal(np.isnan(threatened.values), np.isnan(richness.values))


def test_status_richness_without_matches_is_zero_inside_footprint(
    small_ranges: gpd.GeoDataFrame, small_template: GridLayer
):
    richness = rasterize_richness(small_ranges, small_template)

    critical = rasterize_status_richness(small_ranges, small_template, ["CR"], footprint=richness)

    inside = ~np.isnan(richness.values)
    assert (critical.values[inside] == 0).all()
    assert np.isnan(critical.values[~inside]).all()


def test_status_richness_requires_categories(small_ranges: gpd.GeoDataFrame, small_template: GridLayer):
    richness = rasterize_richness(small_ranges, small_template)
    with pytest.raises(ValueError):
        rasterize_status_richness(small_ranges, small_template, [], footprint=richness)
    with pytest.raises(ValueError):
        rasterize_status_richness(
            small_ranges, small_template, ["EN"], footprint=richness, category_column="redlist"
        )


def test_empty_ranges_give_no_counts(small_ranges: gpd.GeoDataFrame, small_template: GridLayer):
    counts = count_species(small_ranges.iloc[:0], small_template)

    assert counts.shape == (4, 4)
    assert (counts == 0).all()
    assert np.isnan(rasterize_richness(small_ranges.iloc[:0], small_template).values).all()


def test_ranges_must_share_the_grid_crs(small_ranges: gpd.GeoDataFrame, small_template: GridLayer):
    with pytest.raises(AlignmentError):
        rasterize_richness(small_ranges.set_crs("EPSG:4326", allow_override=True), small_template)


def test_missing_species_column(small_template: GridLayer):
    ranges = gpd.GeoDataFrame({"name": ["a"]}, geometry=[box(0, 0, 1, 1)], crs="EPSG:6933")
    with pytest.raises(ValueError):
        rasterize_richness(ranges, small_template)
