"""Regression specifications for candidate richness models.

A specification renders to a patsy formula. Smooth terms are cubic regression
splines (``cr``); the spatial term is a tensor product of two of them (``te``)
and is part of every candidate.
"""

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import List, Optional, Sequence, Tuple


class Family(StrEnum):
    POISSON = "poisson"
    NEGATIVE_BINOMIAL = "negative_binomial"


def quote_variable(name: str) -> str:
    """Quote column names that are not valid Python identifiers for patsy."""
    return name if name.isidentifier() else f'Q("{name}")'


@dataclass(frozen=True)
class SmoothTerm:
    """A predictor term: cubic regression spline with `df` degrees of freedom, or linear if `df` is None."""
    variable: str
    df: Optional[int] = 4

    def __post_init__(self):
        if self.df is not None and self.df < 3:
            raise ValueError(f"Smooth term for '{self.variable}' needs df >= 3, got {self.df}")

    def formula(self) -> str:
        variable = quote_variable(self.variable)
        if self.df is None:
            return variable
        return f"cr({variable}, df={self.df}, constraints='center')"


@dataclass(frozen=True)
class SpatialSmooth:
    """Two-dimensional smooth over location, `te(cr(x), cr(y))`.

    With `df=None` the spatial structure is a linear trend surface ``x + y``,
    which is what very small grids can afford.
    """
    x: str = "x"
    y: str = "y"
    df: Optional[int] = 5

    def __post_init__(self):
        if self.df is not None and self.df < 3:
            raise ValueError(f"Spatial smooth needs df >= 3, got {self.df}")

    @property
    def variables(self) -> Tuple[str, str]:
        return self.x, self.y

    def formula(self) -> str:
        x, y = quote_variable(self.x), quote_variable(self.y)
        if self.df is None:
            return f"{x} + {y}"
        return f"te(cr({x}, df={self.df}), cr({y}, df={self.df}), constraints='center')"


@dataclass(frozen=True)
class ModelSpec:
    name: str
    response: str
    spatial: SpatialSmooth
    terms: Tuple[SmoothTerm, ...]
    family: Family = Family.POISSON
    dropped_term: Optional[str] = None

    @property
    def predictors(self) -> List[str]:
        return [term.variable for term in self.terms]

    def formula(self) -> str:
        rhs = [self.spatial.formula()] + [term.formula() for term in self.terms]
        return f"{quote_variable(self.response)} ~ " + " + ".join(rhs)

    def without(self, predictor: str) -> "ModelSpec":
        """The same model with one predictor term removed. Spatial terms are never removed."""
        if predictor not in self.predictors:
            raise ValueError(f"'{predictor}' is not a term of model '{self.name}'")
        return replace(
            self,
            name=f"drop_{predictor}",
            terms=tuple(term for term in self.terms if term.variable != predictor),
            dropped_term=predictor,
        )


def build_candidate_specs(
    predictors: Sequence[str],
    response: str = "richness",
    spatial: SpatialSmooth = SpatialSmooth(),
    predictor_df: Optional[int] = 4,
    family: Family = Family.POISSON,
) -> List[ModelSpec]:
    """The full model plus one leave-one-out model per predictor."""
    predictors = list(predictors)
    if not predictors:
        raise ValueError("At least one candidate predictor is required")
    duplicated = sorted({p for p in predictors if predictors.count(p) > 1})
    if duplicated:
        raise ValueError(f"Duplicate predictors: {duplicated}")
    structural = set(spatial.variables) | {response}
    clashing = sorted(structural & set(predictors))
    if clashing:
        raise ValueError(f"Predictors overlap the response or spatial terms: {clashing}")

    full = ModelSpec(
        name="full",
        response=response,
        spatial=spatial,
        terms=tuple(SmoothTerm(p, df=predictor_df) for p in predictors),
        family=Family(family),
    )
    return [full] + [full.without(p) for p in predictors]
