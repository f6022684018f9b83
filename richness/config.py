"""
Pipeline configuration, read from YAML and validated with pydantic.
"""

from pathlib import Path
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from rasterio.enums import Resampling

from richness.models.spec import Family
from richness.utils.io import load_yaml

DEFAULT_CONFIG_PATH = Path("config") / "default.yaml"


class InputsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ranges: Path
    species_column: str = "binomial"
    category_column: Optional[str] = "category"
    climate: Optional[Path] = None
    climate_bands: Optional[List[int]] = None
    climate_names: Optional[List[str]] = None
    climate_prefix: str = "bio"
    elevation: Optional[Path] = None
    human_influence: Optional[Path] = None
    extra_layers: Dict[str, Path] = Field(default_factory=dict)

    def resolve_paths(self, base_dir: Path) -> "InputsConfig":
        def resolve(path: Optional[Path]) -> Optional[Path]:
            if path is None or path.is_absolute():
                return path
            return (base_dir / path).resolve()

        return self.model_copy(
            update={
                "ranges": resolve(self.ranges),
                "climate": resolve(self.climate),
                "elevation": resolve(self.elevation),
                "human_influence": resolve(self.human_influence),
                "extra_layers": {name: resolve(path) for name, path in self.extra_layers.items()},
            }
        )


class SpatialConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Mollweide equal-area
    target_crs: str = "ESRI:54009"
    cell_size: Optional[float] = Field(default=None, gt=0)
    default_resampling: str = "average"
    resampling: Dict[str, str] = Field(default_factory=dict)

    @field_validator("default_resampling")
    @classmethod
    def _check_default_resampling(cls, value: str) -> str:
        if value not in Resampling.__members__:
            raise ValueError(f"Unknown resampling '{value}'")
        return value

    @field_validator("resampling")
    @classmethod
    def _check_resampling(cls, value: Dict[str, str]) -> Dict[str, str]:
        unknown = sorted(v for v in value.values() if v not in Resampling.__members__)
        if unknown:
            raise ValueError(f"Unknown resampling methods: {unknown}")
        return value


class FeaturesConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status_categories: Optional[List[str]] = None
    # Model the status-filtered richness instead of total richness
    use_status_richness: bool = False


class ModelConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backend: Literal["regression_spline", "penalized_spline"] = "regression_spline"
    family: Family = Family.POISSON
    predictors: Optional[List[str]] = None
    spatial_df: Optional[int] = Field(default=5, ge=3)
    predictor_df: Optional[int] = Field(default=4, ge=3)
    alpha: float = Field(default=1.0, ge=0)
    nb_alpha: float = Field(default=1.0, gt=0)
    maxiter: int = Field(default=100, gt=0)
    dispersion_threshold: float = Field(default=1.5, gt=1)
    n_jobs: int = Field(default=1, ge=1)


class PipelineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    inputs: InputsConfig
    spatial: SpatialConfig = Field(default_factory=SpatialConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)


def load_config(config_path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> PipelineConfig:
    """Loads and validates the YAML pipeline configuration.

    Relative input paths are resolved against the directory of the config file.
    """
    config_path = Path(config_path)
    config = PipelineConfig.model_validate(load_yaml(config_path))
    inputs = config.inputs.resolve_paths(config_path.resolve().parent)
    return config.model_copy(update={"inputs": inputs})
