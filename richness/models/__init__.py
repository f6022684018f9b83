"""
Count-model fitting and comparison for species richness.
"""

from .backend import FittedModel, ModelBackend, PenalizedSplineBackend, RegressionSplineBackend
from .diagnostics import check_dispersion, count_distribution_summary, dispersion_ratio
from .response import partial_response
from .selection import (
    FitFailure,
    ModelRanking,
    akaike_weights,
    compare_models,
    fit_candidates,
    rank_models,
    validate_feature_table,
)
from .spec import Family, ModelSpec, SmoothTerm, SpatialSmooth, build_candidate_specs

__all__ = [
    'FittedModel',
    'ModelBackend',
    'PenalizedSplineBackend',
    'RegressionSplineBackend',
    'check_dispersion',
    'count_distribution_summary',
    'dispersion_ratio',
    'partial_response',
    'FitFailure',
    'ModelRanking',
    'akaike_weights',
    'compare_models',
    'fit_candidates',
    'rank_models',
    'validate_feature_table',
    'Family',
    'ModelSpec',
    'SmoothTerm',
    'SpatialSmooth',
    'build_candidate_specs',
]
