import logging
from pathlib import Path
from typing import Union, Dict, Any, Optional

import geopandas as gpd
import pandas as pd
import yaml

logger = logging.getLogger(__name__)


def load_yaml(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Loads a YAML file into a dictionary."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found at {config_path}")
    with open(config_path, "r") as f:
        config = yaml.safe_load(f)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Expected a YAML mapping in {config_path}, got {type(config).__name__}")
    return config


def load_range_polygons(
    filepath: Union[str, Path],
    species_column: str = "binomial",
    category_column: Optional[str] = "category",
) -> gpd.GeoDataFrame:
    """
    Loads species range polygons from a vector file.

    Parameters:
    filepath (str): Path to any vector format readable by geopandas (shapefile, GeoPackage, GeoJSON).
    species_column (str): Column holding the species identifier.
    category_column (str): Optional column holding the conservation-status category.
                           A missing category column is only logged; it is required
                           later if a status-filtered richness layer is requested.

    Returns:
    GeoDataFrame: One row per range polygon.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Range polygons not found at {filepath}")

    ranges = gpd.read_file(filepath)
    if species_column not in ranges.columns:
        raise ValueError(
            f"Species column '{species_column}' not found in {filepath}. "
            f"Available columns: {list(ranges.columns)}"
        )
    if ranges.crs is None:
        raise ValueError(f"Range polygons in {filepath} have no coordinate reference system")
    if category_column is not None and category_column not in ranges.columns:
        logger.warning("Category column '%s' not found in %s", category_column, filepath)

    logger.info(
        "Loaded %d range polygons for %d species from %s",
        len(ranges), ranges[species_column].nunique(), filepath,
    )
    return ranges


def read_table(table_path: Union[str, Path]) -> pd.DataFrame:
    """Reads a feature table from CSV or Parquet, chosen by file suffix."""
    table_path = Path(table_path)
    if not table_path.exists():
        raise FileNotFoundError(f"Feature table not found at {table_path}")
    if table_path.suffix.lower() in (".parquet", ".pq"):
        return pd.read_parquet(table_path)
    return pd.read_csv(table_path)
