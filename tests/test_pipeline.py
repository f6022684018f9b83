from pathlib import Path

import numpy as np
import pytest

from richness.config import load_config
from richness.pipeline import load_predictor_layers, run_pipeline


def test_predictor_layer_names(pipeline_inputs: Path):
    config = load_config(pipeline_inputs)

    layers = load_predictor_layers(config.inputs)

    assert [layer.name for layer in layers] == ["bio_1", "bio_2", "elevation", "human_influence"]


def test_run_pipeline_end_to_end(pipeline_inputs: Path):
    config = load_config(pipeline_inputs)

    result = run_pipeline(config)

    table = result.table
    assert result.predictors == ["bio_1", "bio_2", "elevation", "human_influence"]
    assert result.harmonized.reference_name in {"bio_1", "bio_2", "human_influence"}
    assert 0 < result.n_complete < result.n_cells
    assert not table.isna().any().any()
    assert (table["richness"] >= 1).all()
    assert (table["richness_vu_en"] <= table["richness"]).all()
    assert result.response == "richness"
    assert result.distribution["n"] == result.n_complete

    ranking = result.ranking
    assert len(ranking.table) + len(ranking.failures) == 5
    assert ranking.weights.sum() == pytest.approx(1.0)
    assert ranking.table["delta_aic"].iloc[0] == 0
    assert np.isfinite(ranking.dispersion_ratio)

    dataset = result.to_dataset()
    assert {"richness", "richness_vu_en", "bio_1", "elevation"} <= set(dataset.data_vars)


def test_status_richness_as_response(pipeline_inputs: Path):
    config = load_config(pipeline_inputs)
    config.features.use_status_richness = True
    config.model.predictors = ["bio_1", "elevation"]

    result = run_pipeline(config)

    assert result.response == "richness_vu_en"
    assert set(result.ranking.table["model"]) <= {"full", "drop_bio_1", "drop_elevation"}


def test_unknown_predictor_is_rejected(pipeline_inputs: Path):
    config = load_config(pipeline_inputs)
    config.model.predictors = ["bio_1", "soil_ph"]

    with pytest.raises(ValueError, match="soil_ph"):
        run_pipeline(config)


def test_status_response_requires_categories(pipeline_inputs: Path):
    config = load_config(pipeline_inputs)
    config.features.status_categories = None
    config.features.use_status_richness = True

    with pytest.raises(ValueError):
        run_pipeline(config)
