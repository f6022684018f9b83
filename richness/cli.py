# Command Line Interface for mammal-richness
import logging
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from richness.config import load_config
from richness.models import (
    ModelRanking,
    PenalizedSplineBackend,
    RegressionSplineBackend,
    SpatialSmooth,
    compare_models,
)
from richness.models.spec import Family
from richness.pipeline import run_pipeline
from richness.raster import write_layer
from richness.utils.io import read_table
from richness.utils.logging_utils import setup_logging

app = typer.Typer(
    name="richness",
    help="Species richness data fusion and model comparison",
    add_completion=False,
)

logger = logging.getLogger(__name__)


def check_spline_df(value: int) -> int:
    """Spline df must be 0 (linear) or at least 3."""
    if value < 0 or 0 < value < 3:
        raise typer.BadParameter(f"expected 0 for a linear term or a value >= 3, got {value}")
    return value


def report_ranking(ranking: ModelRanking, output_path: Optional[Path] = None) -> None:
    """Print the ranking with its caveats and optionally save it as CSV."""
    typer.echo(ranking.table.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
    typer.echo(f"\nDispersion ratio (full model): {ranking.dispersion_ratio:.3f}")
    for caveat in ranking.caveats:
        typer.echo(f"Caveat: {caveat}")
    if output_path is not None:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        ranking.table.to_csv(output_path, index=False)
        logger.info("Saved ranking to %s", output_path)


@app.command()
def run(
    config_path: Annotated[
        Path,
        typer.Argument(help="YAML pipeline configuration.", exists=True, readable=True, resolve_path=True),
    ],
    output_path: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Save the model ranking to this CSV.", resolve_path=True),
    ] = None,
    table_output_path: Annotated[
        Optional[Path],
        typer.Option("--table-output", help="Save the feature table to this CSV.", resolve_path=True),
    ] = None,
    richness_raster_path: Annotated[
        Optional[Path],
        typer.Option("--richness-raster", help="Save the richness grid to this GeoTIFF.", resolve_path=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")] = False,
) -> None:
    """
    Load and harmonise the configured layers, build the richness feature
    table and rank the full and leave-one-out models by AIC.
    """
    setup_logging(verbose=verbose)
    config = load_config(config_path)
    result = run_pipeline(config)

    typer.echo(
        f"Feature table: {result.n_complete} of {result.n_cells} cells complete; "
        f"response '{result.response}'"
    )
    if table_output_path is not None:
        table_output_path.parent.mkdir(parents=True, exist_ok=True)
        result.table.to_csv(table_output_path, index=False)
        logger.info("Saved feature table to %s", table_output_path)
    if richness_raster_path is not None:
        write_layer(result.richness, richness_raster_path)
    report_ranking(result.ranking, output_path)


@app.command()
def rank(
    table_path: Annotated[
        Path,
        typer.Argument(help="Complete feature table (CSV or Parquet).", exists=True, readable=True, resolve_path=True),
    ],
    predictors: Annotated[
        List[str],
        typer.Option("--predictor", "-p", help="Candidate predictor column; repeat for each."),
    ],
    response: Annotated[str, typer.Option(help="Count response column.")] = "richness",
    family: Annotated[Family, typer.Option(help="Count family (log link).")] = Family.POISSON,
    penalized: Annotated[bool, typer.Option("--penalized", help="Use penalised B-spline smooths.")] = False,
    spatial_df: Annotated[
        int,
        typer.Option(help="Spline df of each spatial margin; 0 for a linear trend surface.", callback=check_spline_df),
    ] = 5,
    predictor_df: Annotated[
        int,
        typer.Option(help="Spline df per predictor; 0 for linear terms.", callback=check_spline_df),
    ] = 4,
    n_jobs: Annotated[int, typer.Option(help="Concurrent fits.")] = 1,
    output_path: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Save the model ranking to this CSV.", resolve_path=True),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")] = False,
) -> None:
    """Rank the full and leave-one-out models on an existing feature table."""
    setup_logging(verbose=verbose)
    table = read_table(table_path)
    backend = PenalizedSplineBackend() if penalized else RegressionSplineBackend()
    ranking = compare_models(
        table,
        predictors=predictors,
        response=response,
        spatial=SpatialSmooth(df=spatial_df or None),
        predictor_df=predictor_df or None,
        family=family,
        backend=backend,
        n_jobs=n_jobs,
    )
    report_ranking(ranking, output_path)


if __name__ == "__main__":
    app()
