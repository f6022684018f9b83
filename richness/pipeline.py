"""
End-to-end run: load layers, harmonise them, build the feature table and rank
the candidate models. Each stage completes before the next starts and any
stage error aborts the run.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd
import xarray as xr

from richness.config import InputsConfig, ModelConfig, PipelineConfig
from richness.features import build_feature_table, rasterize_richness, rasterize_status_richness
from richness.models import (
    ModelBackend,
    ModelRanking,
    PenalizedSplineBackend,
    RegressionSplineBackend,
    SpatialSmooth,
    compare_models,
    count_distribution_summary,
)
from richness.raster import GridLayer, HarmonizedLayers, harmonize_layers, load_raster_layers, reproject_polygons
from richness.raster.grid import stack_to_dataset
from richness.utils.io import load_range_polygons

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    harmonized: HarmonizedLayers
    richness: GridLayer
    status_richness: Optional[GridLayer]
    table: pd.DataFrame
    n_cells: int
    response: str
    predictors: List[str]
    distribution: Dict[str, float]
    ranking: ModelRanking

    @property
    def n_complete(self) -> int:
        return len(self.table)

    def to_dataset(self) -> xr.Dataset:
        """All aligned grids, richness included, as one Dataset."""
        layers = [self.richness]
        if self.status_richness is not None:
            layers.append(self.status_richness)
        return stack_to_dataset(layers + self.harmonized.layers)


def load_predictor_layers(inputs: InputsConfig) -> List[GridLayer]:
    """Read every configured predictor raster. Missing files fail before any processing."""
    layers: List[GridLayer] = []
    if inputs.climate is not None:
        layers.extend(
            load_raster_layers(
                inputs.climate,
                names=inputs.climate_names,
                prefix=inputs.climate_prefix,
                bands=inputs.climate_bands,
            )
        )
    if inputs.elevation is not None:
        layers.extend(load_raster_layers(inputs.elevation, names=["elevation"], bands=[1]))
    if inputs.human_influence is not None:
        layers.extend(load_raster_layers(inputs.human_influence, names=["human_influence"], bands=[1]))
    for name, path in inputs.extra_layers.items():
        layers.extend(load_raster_layers(path, names=[name], bands=[1]))

    if not layers:
        raise ValueError("No predictor rasters configured")
    return layers


def make_backend(model_config: ModelConfig) -> ModelBackend:
    if model_config.backend == "penalized_spline":
        return PenalizedSplineBackend(
            alpha=model_config.alpha, maxiter=model_config.maxiter, nb_alpha=model_config.nb_alpha
        )
    return RegressionSplineBackend(maxiter=model_config.maxiter, nb_alpha=model_config.nb_alpha)


def run_pipeline(config: PipelineConfig) -> PipelineResult:
    inputs, spatial, features, model_config = config.inputs, config.spatial, config.features, config.model
    if features.use_status_richness and not features.status_categories:
        raise ValueError("use_status_richness requires status_categories")

    logger.info("Loading inputs")
    ranges = load_range_polygons(
        inputs.ranges,
        species_column=inputs.species_column,
        category_column=inputs.category_column,
    )
    predictor_layers = load_predictor_layers(inputs)

    logger.info("Harmonising %d layers into %s", len(predictor_layers), spatial.target_crs)
    harmonized = harmonize_layers(
        predictor_layers,
        target_crs=spatial.target_crs,
        cell_size=spatial.cell_size,
        resampling=spatial.resampling,
        default_resampling=spatial.default_resampling,
    )
    ranges = reproject_polygons(ranges, harmonized.template.crs)

    logger.info("Building the feature table")
    richness = rasterize_richness(ranges, harmonized.template, species_column=inputs.species_column)
    status_richness = None
    if features.status_categories:
        status_richness = rasterize_status_richness(
            ranges,
            harmonized.template,
            categories=features.status_categories,
            footprint=richness,
            species_column=inputs.species_column,
            category_column=inputs.category_column or "category",
        )

    predictors = model_config.predictors or harmonized.names
    unknown = sorted(set(predictors) - set(harmonized.names))
    if unknown:
        raise ValueError(f"Configured predictors not among the loaded layers: {unknown}")
    selected = [harmonized[name] for name in predictors]
    table = build_feature_table(richness, selected, status_richness=status_richness)

    response = status_richness.name if features.use_status_richness else richness.name
    distribution = count_distribution_summary(table[response]) if len(table) else {}
    if distribution:
        logger.info(
            "Response '%s': mean %.2f, variance-to-mean %.2f, zero share %.3f (Poisson %.3f)",
            response, distribution["mean"], distribution["variance_to_mean"],
            distribution["zero_share"], distribution["poisson_zero_share"],
        )

    logger.info("Comparing models")
    ranking = compare_models(
        table,
        predictors=predictors,
        response=response,
        spatial=SpatialSmooth(df=model_config.spatial_df),
        predictor_df=model_config.predictor_df,
        family=model_config.family,
        backend=make_backend(model_config),
        n_jobs=model_config.n_jobs,
        dispersion_threshold=model_config.dispersion_threshold,
    )

    return PipelineResult(
        harmonized=harmonized,
        richness=richness,
        status_richness=status_richness,
        table=table,
        n_cells=richness.values.size,
        response=response,
        predictors=list(predictors),
        distribution=distribution,
        ranking=ranking,
    )
