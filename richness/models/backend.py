"""
Model-fitting backends.

Both backends implement ``fit(spec, table) -> FittedModel`` on top of
statsmodels. The regression-spline backend fits a GLM by iteratively
reweighted least squares on a fixed spline basis; the penalised-spline
backend fits a GAM by penalised IRLS with B-spline smooths.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm
from statsmodels.gam.api import BSplines, GLMGam

from richness.models.spec import Family, ModelSpec

logger = logging.getLogger(__name__)


def make_family(family: Family, nb_alpha: float = 1.0) -> sm.families.Family:
    """Count-data family with a log link."""
    family = Family(family)
    if family == Family.POISSON:
        return sm.families.Poisson()
    if family == Family.NEGATIVE_BINOMIAL:
        return sm.families.NegativeBinomial(alpha=nb_alpha)
    raise ValueError(f"Unsupported family: {family}")


@dataclass
class FittedModel:
    """A fitted candidate model. Immutable once created; compared only by its AIC."""
    spec: ModelSpec
    aic: float
    deviance: float
    null_deviance: float
    df_resid: float
    nobs: int
    converged: bool
    params: pd.Series
    result: Any = field(default=None, repr=False)
    design_info: Any = field(default=None, repr=False)
    backend: Optional["ModelBackend"] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def deviance_explained(self) -> float:
        if self.null_deviance <= 0:
            return float("nan")
        return 1.0 - self.deviance / self.null_deviance

    def predict(self, table: pd.DataFrame) -> np.ndarray:
        """Expected response (counts) for each row of `table`."""
        if self.backend is None or self.result is None:
            raise ValueError(f"Model '{self.name}' has no fitted state to predict from")
        return self.backend.predict(self, table)


class ModelBackend:
    """Capability interface for fitting a ModelSpec to a feature table."""

    def fit(self, spec: ModelSpec, table: pd.DataFrame) -> FittedModel:
        raise NotImplementedError

    def predict(self, model: FittedModel, table: pd.DataFrame) -> np.ndarray:
        raise NotImplementedError


def _null_deviance(family: sm.families.Family, endog: np.ndarray) -> float:
    """Deviance of the intercept-only model; its fitted mean is the sample mean."""
    mu = np.full_like(endog, endog.mean(), dtype=np.float64)
    return float(family.deviance(endog, mu))


def _converged(result) -> bool:
    """Convergence flag set by the IRLS / PIRLS loop on the fitted result."""
    return bool(getattr(result, "converged", True))


class RegressionSplineBackend(ModelBackend):
    """GLM on an unpenalised cubic regression spline basis (patsy ``cr``/``te``)."""

    def __init__(self, maxiter: int = 100, nb_alpha: float = 1.0):
        self.maxiter = maxiter
        self.nb_alpha = nb_alpha

    def fit(self, spec: ModelSpec, table: pd.DataFrame) -> FittedModel:
        endog, exog = patsy.dmatrices(spec.formula(), table, return_type="dataframe")
        family = make_family(spec.family, self.nb_alpha)
        logger.debug("Fitting '%s': %s (%d columns)", spec.name, spec.formula(), exog.shape[1])

        result = sm.GLM(endog, exog, family=family).fit(maxiter=self.maxiter)
        y = np.asarray(endog).ravel()
        return FittedModel(
            spec=spec,
            aic=float(result.aic),
            deviance=float(result.deviance),
            null_deviance=_null_deviance(family, y),
            df_resid=float(result.df_resid),
            nobs=int(result.nobs),
            converged=_converged(result),
            params=result.params,
            result=result,
            design_info=exog.design_info,
            backend=self,
        )

    def predict(self, model: FittedModel, table: pd.DataFrame) -> np.ndarray:
        (exog,) = patsy.build_design_matrices([model.design_info], table, return_type="dataframe")
        return np.asarray(model.result.predict(exog))


class PenalizedSplineBackend(ModelBackend):
    """GAM with penalised B-spline smooths for predictors.

    The spatial tensor-product basis enters as the parametric part of the
    model; predictor terms with ``df`` set become penalised smooths with
    penalty weight `alpha`, linear terms stay parametric.
    """

    def __init__(self, alpha: float = 1.0, maxiter: int = 100, nb_alpha: float = 1.0, degree: int = 3):
        self.alpha = alpha
        self.maxiter = maxiter
        self.nb_alpha = nb_alpha
        self.degree = degree

    def _parametric_exog(self, spec: ModelSpec, table: pd.DataFrame, spatial: pd.DataFrame) -> np.ndarray:
        linear = [term.variable for term in spec.terms if term.df is None]
        if not linear:
            return spatial.to_numpy()
        return np.column_stack([spatial.to_numpy(), table[linear].to_numpy(dtype=np.float64)])

    def _smooth_columns(self, spec: ModelSpec) -> List[str]:
        return [term.variable for term in spec.terms if term.df is not None]

    def fit(self, spec: ModelSpec, table: pd.DataFrame) -> FittedModel:
        family = make_family(spec.family, self.nb_alpha)
        spatial = patsy.dmatrix(spec.spatial.formula(), table, return_type="dataframe")
        exog = self._parametric_exog(spec, table, spatial)
        endog = table[spec.response].to_numpy(dtype=np.float64)
        smooth_columns = self._smooth_columns(spec)

        if smooth_columns:
            df = [max(term.df, self.degree + 1) for term in spec.terms if term.df is not None]
            smoother = BSplines(
                table[smooth_columns].to_numpy(dtype=np.float64),
                df=df,
                degree=[self.degree] * len(smooth_columns),
                variable_names=smooth_columns,
            )
            model = GLMGam(
                endog,
                exog=exog,
                smoother=smoother,
                alpha=[self.alpha] * len(smooth_columns),
                family=family,
            )
            logger.debug("Fitting penalised '%s' with %d smooth(s)", spec.name, len(smooth_columns))
        else:
            model = sm.GLM(endog, exog, family=family)
            logger.debug("Fitting '%s' without smooth predictors", spec.name)

        result = model.fit(maxiter=self.maxiter)
        return FittedModel(
            spec=spec,
            aic=float(result.aic),
            deviance=float(result.deviance),
            null_deviance=_null_deviance(family, endog),
            df_resid=float(result.df_resid),
            nobs=int(result.nobs),
            converged=_converged(result),
            params=pd.Series(np.asarray(result.params)),
            result=result,
            design_info=spatial.design_info,
            backend=self,
        )

    def predict(self, model: FittedModel, table: pd.DataFrame) -> np.ndarray:
        spec = model.spec
        (spatial,) = patsy.build_design_matrices([model.design_info], table, return_type="dataframe")
        exog = self._parametric_exog(spec, table, spatial)
        smooth_columns = self._smooth_columns(spec)
        if smooth_columns:
            return np.asarray(
                model.result.predict(
                    exog=exog,
                    exog_smooth=table[smooth_columns].to_numpy(dtype=np.float64),
                )
            )
        return np.asarray(model.result.predict(exog))
