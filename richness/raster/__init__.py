from .grid import GridLayer, construct_transform_shift_bounds, stack_to_dataset
from .io import load_raster_layers, write_layer
from .harmonize import (
    HarmonizedLayers,
    build_target_grid,
    harmonize_layers,
    reproject_layer,
    reproject_polygons,
    select_reference_layer,
)

__all__ = [
    "GridLayer",
    "construct_transform_shift_bounds",
    "stack_to_dataset",
    "load_raster_layers",
    "write_layer",
    "HarmonizedLayers",
    "build_target_grid",
    "harmonize_layers",
    "reproject_layer",
    "reproject_polygons",
    "select_reference_layer",
]
