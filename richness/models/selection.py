"""
Model comparison by information criterion.

A full model (every predictor plus the spatial smooth) is compared against
one model per predictor with that predictor removed. Models are ranked by
AIC and given Akaike weights, which are conditional on this candidate set
only. Interpretation of delta thresholds is left to the caller.
"""

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from patsy import PatsyError
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from tqdm import tqdm

from richness.exceptions import DataSparsityError, FitConvergenceWarning, ModelFitError
from richness.models.backend import FittedModel, ModelBackend, RegressionSplineBackend
from richness.models.diagnostics import check_dispersion, dispersion_ratio
from richness.models.spec import Family, ModelSpec, SpatialSmooth, build_candidate_specs

logger = logging.getLogger(__name__)

RANKING_COLUMNS = [
    "model",
    "dropped_term",
    "aic",
    "delta_aic",
    "weight",
    "deviance",
    "df_resid",
    "deviance_explained",
]


@dataclass
class FitFailure:
    """A candidate model that could not be scored."""
    name: str
    reason: str
    dropped_term: Optional[str] = None


@dataclass
class ModelRanking:
    table: pd.DataFrame
    models: Dict[str, FittedModel]
    failures: List[FitFailure] = field(default_factory=list)
    dispersion_ratio: float = float("nan")
    caveats: List[str] = field(default_factory=list)

    @property
    def best(self) -> FittedModel:
        return self.models[self.table["model"].iloc[0]]

    @property
    def full(self) -> Optional[FittedModel]:
        return self.models.get("full")

    @property
    def weights(self) -> pd.Series:
        return self.table.set_index("model")["weight"]


def validate_feature_table(
    table: pd.DataFrame,
    predictors: Sequence[str],
    response: str = "richness",
    spatial: SpatialSmooth = SpatialSmooth(),
) -> None:
    """Fail fast on a table that cannot support the candidate fits."""
    if table is None or len(table) == 0:
        raise DataSparsityError(
            "Feature table is empty after dropping incomplete rows", n_rows=0
        )
    required = [response, *spatial.variables, *predictors]
    missing = [column for column in required if column not in table.columns]
    if missing:
        raise ValueError(f"Columns missing from the feature table: {missing}")
    if table[required].isna().any().any():
        raise DataSparsityError(
            "Feature table contains missing values; drop incomplete rows first", n_rows=len(table)
        )
    for column in [response, *predictors]:
        if table[column].nunique() <= 1:
            raise DataSparsityError(
                f"'{column}' has zero variance across {len(table)} rows",
                predictor=column,
                n_rows=len(table),
            )
    if (table[response] < 0).any():
        raise ValueError(f"Response '{response}' contains negative counts")


def _fit_one(backend: ModelBackend, spec: ModelSpec, table: pd.DataFrame) -> Union[FittedModel, FitFailure]:
    try:
        model = backend.fit(spec, table)
    except (np.linalg.LinAlgError, PatsyError, ValueError, FloatingPointError) as e:
        return FitFailure(name=spec.name, reason=f"fit failed: {e}", dropped_term=spec.dropped_term)
    if not model.converged:
        return FitFailure(name=spec.name, reason="did not converge", dropped_term=spec.dropped_term)
    if not np.isfinite(model.aic):
        return FitFailure(name=spec.name, reason="non-finite AIC", dropped_term=spec.dropped_term)
    return model


def fit_candidates(
    specs: Sequence[ModelSpec],
    table: pd.DataFrame,
    backend: Optional[ModelBackend] = None,
    n_jobs: int = 1,
) -> Tuple[List[FittedModel], List[FitFailure]]:
    """Fit every candidate independently.

    Candidates share only the read-only feature table, so with ``n_jobs > 1``
    they are fitted concurrently. Failed or non-converged fits are returned
    separately and flagged with a FitConvergenceWarning.
    """
    backend = backend or RegressionSplineBackend()
    logger.info("Fitting %d candidate models on %d rows", len(specs), len(table))

    # Convergence comes from each result's flag. One filter covers all worker threads.
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        if n_jobs > 1:
            with ThreadPoolExecutor(max_workers=n_jobs) as executor:
                futures = [executor.submit(_fit_one, backend, spec, table) for spec in specs]
                outcomes = [future.result() for future in tqdm(futures, desc="Fitting models")]
        else:
            outcomes = [_fit_one(backend, spec, table) for spec in tqdm(specs, desc="Fitting models")]

    fitted, failures = [], []
    for outcome in outcomes:
        if isinstance(outcome, FitFailure):
            logger.warning("Model '%s' excluded from the ranking: %s", outcome.name, outcome.reason)
            warnings.warn(
                f"Model '{outcome.name}' excluded from the ranking: {outcome.reason}",
                FitConvergenceWarning,
                stacklevel=2,
            )
            failures.append(outcome)
        else:
            logger.debug("Model '%s': AIC %.2f, deviance %.2f", outcome.name, outcome.aic, outcome.deviance)
            fitted.append(outcome)
    return fitted, failures


def akaike_weights(aic: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    """Delta AIC against the minimum and the normalised relative likelihoods."""
    aic = np.asarray(aic, dtype=np.float64)
    if aic.size == 0:
        raise ValueError("No AIC values to weight")
    delta = aic - aic.min()
    relative = np.exp(-0.5 * delta)
    return delta, relative / relative.sum()


def rank_models(models: Sequence[FittedModel]) -> pd.DataFrame:
    """Rank fitted models by ascending AIC with deltas and Akaike weights."""
    if not models:
        raise ModelFitError("No candidate model was fitted successfully")
    delta, weight = akaike_weights([model.aic for model in models])
    table = pd.DataFrame(
        {
            "model": [model.name for model in models],
            "dropped_term": [model.spec.dropped_term for model in models],
            "aic": [model.aic for model in models],
            "delta_aic": delta,
            "weight": weight,
            "deviance": [model.deviance for model in models],
            "df_resid": [model.df_resid for model in models],
            "deviance_explained": [model.deviance_explained for model in models],
        },
        columns=RANKING_COLUMNS,
    )
    return table.sort_values("aic", kind="mergesort").reset_index(drop=True)


def compare_models(
    table: pd.DataFrame,
    predictors: Sequence[str],
    response: str = "richness",
    spatial: SpatialSmooth = SpatialSmooth(),
    predictor_df: Optional[int] = 4,
    family: Family = Family.POISSON,
    backend: Optional[ModelBackend] = None,
    n_jobs: int = 1,
    dispersion_threshold: float = 1.5,
) -> ModelRanking:
    """
    Fit the full and leave-one-out models and rank them by AIC.

    Args:
        table: Complete feature table (no missing values).
        predictors: Candidate predictor columns.
        response: Count response column.
        spatial: Spatial smooth retained in every candidate.
        predictor_df: Spline degrees of freedom per predictor; None for linear terms.
        family: Count family with log link.
        backend: Fitting backend, RegressionSplineBackend by default.
        n_jobs: Number of concurrent fits.
        dispersion_threshold: Dispersion ratios outside
            ``[1 / threshold, threshold]`` are reported as caveats.

    Returns:
        ModelRanking with the ranking table, fitted models, failures,
        the full model's dispersion ratio and any caveats.
    """
    validate_feature_table(table, predictors, response=response, spatial=spatial)
    specs = build_candidate_specs(
        predictors, response=response, spatial=spatial, predictor_df=predictor_df, family=family
    )
    fitted, failures = fit_candidates(specs, table, backend=backend, n_jobs=n_jobs)
    ranking_table = rank_models(fitted)
    models = {model.name: model for model in fitted}

    caveats = [f"Model '{failure.name}' excluded: {failure.reason}" for failure in failures]
    full = models.get("full")
    if full is None:
        ratio = float("nan")
        caveats.append("The full model could not be fitted; no dispersion ratio is available")
    else:
        ratio = dispersion_ratio(full)
        logger.info("Full model dispersion ratio: %.3f", ratio)
        caveat = check_dispersion(ratio, threshold=dispersion_threshold)
        if caveat is not None:
            caveats.append(caveat)

    best = ranking_table.iloc[0]
    logger.info(
        "Best model: '%s' (AIC %.2f, weight %.3f) of %d ranked",
        best["model"], best["aic"], best["weight"], len(ranking_table),
    )
    return ModelRanking(
        table=ranking_table,
        models=models,
        failures=failures,
        dispersion_ratio=ratio,
        caveats=caveats,
    )
