import numpy as np
import pandas as pd
import pytest

from richness.exceptions import DistributionalMismatchWarning
from richness.models import FittedModel, ModelSpec, SpatialSmooth, check_dispersion, count_distribution_summary, dispersion_ratio


def model_with(deviance: float, df_resid: float) -> FittedModel:
    return FittedModel(
        spec=ModelSpec(name="full", response="richness", spatial=SpatialSmooth(), terms=()),
        aic=100.0,
        deviance=deviance,
        null_deviance=200.0,
        df_resid=df_resid,
        nobs=int(df_resid) + 10,
        converged=True,
        params=pd.Series(dtype=float),
    )


def test_count_distribution_summary():
    summary = count_distribution_summary([0, 0, 2, 4, 4, np.nan])

    assert summary["n"] == 5
    assert summary["mean"] == pytest.approx(2.0)
    assert summary["variance"] == pytest.approx(4.0)
    assert summary["variance_to_mean"] == pytest.approx(2.0)
    assert summary["zero_share"] == pytest.approx(0.4)
    assert summary["poisson_zero_share"] == pytest.approx(np.exp(-2.0))


def test_count_distribution_summary_requires_values():
    with pytest.raises(ValueError):
        count_distribution_summary([np.nan])


def test_dispersion_ratio():
    assert dispersion_ratio(model_with(150.0, 100.0)) == pytest.approx(1.5)
    assert np.isnan(dispersion_ratio(model_with(5.0, 0.0)))


def test_consistent_dispersion_has_no_caveat(recwarn):
    assert check_dispersion(1.1) is None
    assert not [w for w in recwarn if issubclass(w.category, DistributionalMismatchWarning)]


@pytest.mark.parametrize("ratio, word", [(3.0, "overdispersed"), (0.2, "underdispersed"), (np.nan, "undefined")])
def test_mismatched_dispersion_warns(ratio: float, word: str):
    with pytest.warns(DistributionalMismatchWarning):
        caveat = check_dispersion(ratio)
    assert word in caveat


def test_threshold_must_exceed_one():
    with pytest.raises(ValueError):
        check_dispersion(1.0, threshold=1.0)
