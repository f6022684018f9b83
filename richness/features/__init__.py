"""
Feature table construction: rasterised richness plus aligned predictors.
"""

from .rasterize import count_species, rasterize_richness, rasterize_status_richness
from .table import build_feature_table, drop_incomplete_rows, stack_layers

__all__ = [
    'count_species',
    'rasterize_richness',
    'rasterize_status_richness',
    'build_feature_table',
    'drop_incomplete_rows',
    'stack_layers',
]
