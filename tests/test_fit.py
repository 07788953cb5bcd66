import logging

import numpy as np
import pandas as pd
import pytest
import scipy.stats as sp

from margpipe.exceptions import InvalidInputError, MissingMarginalError
from margpipe.fit import (
    INTERCEPT,
    FitBackend,
    FittedValues,
    FixedEffectPrior,
    LatentTerm,
    ModelFitResult,
    ModelSpec,
    PrecisionPrior,
)
from margpipe.marginals.collection import MarginalSet
from margpipe.marginals.results import SUMMARY_COLUMNS

PRECISION_NAME = "Precision for the Gaussian observations"


# ------------------------------- Priors --------------------------------

def test_fixed_effect_prior_defaults():
    prior = FixedEffectPrior()
    assert prior.mean == 0.0
    assert prior.precision == 0.001
    np.testing.assert_allclose(prior.as_distribution().std(), np.sqrt(1000.0))


def test_fixed_effect_prior_validation():
    with pytest.raises(InvalidInputError):
        FixedEffectPrior(precision=0.0)
    with pytest.raises(InvalidInputError):
        FixedEffectPrior(mean=np.inf)


def test_precision_prior_on_log_scale():
    prior = PrecisionPrior(shape=2.0, rate=3.0)
    theta = np.linspace(-3.0, 2.0, 7)
    tau = np.exp(theta)
    # density of theta = log(tau) is p_tau(e^theta) * e^theta
    expected = sp.gamma.logpdf(tau, a=2.0, scale=1.0 / 3.0) + theta
    np.testing.assert_allclose(prior.log_density(theta), expected, rtol=1e-10)


def test_precision_prior_validation():
    with pytest.raises(InvalidInputError):
        PrecisionPrior(shape=-1.0)
    with pytest.raises(InvalidInputError):
        PrecisionPrior(rate=0.0)


# --------------------------- Model description -------------------------

def test_formula_rendering():
    spec = ModelSpec(
        response="y",
        fixed=["x1", "x2"],
        latent=[LatentTerm("time", model="ar1")],
    )
    assert spec.formula == 'y ~ x1 + x2 + f(time, model="ar1")'
    assert spec.effect_names == (INTERCEPT, "x1", "x2")
    assert spec.columns == ("y", "x1", "x2", "time")
    assert ModelSpec("y", fixed=["x"], intercept=False).formula == "y ~ -1 + x"
    assert ModelSpec("y").formula == "y ~ 1"


@pytest.mark.parametrize("kwargs", [
    dict(response=""),
    dict(response="y", family="student"),
    dict(response="y", fixed=["x", "x"]),
    dict(response="y", fixed=["x"], fixed_priors={"z": FixedEffectPrior()}),
    dict(response="y", family="poisson", likelihood_prior=PrecisionPrior()),
])
def test_model_spec_validation(kwargs):
    with pytest.raises(InvalidInputError):
        ModelSpec(**kwargs)


def test_latent_term_validation():
    with pytest.raises(InvalidInputError):
        LatentTerm("time", model="spline")
    with pytest.raises(InvalidInputError):
        LatentTerm("")


def test_model_descriptions_are_hashable():
    priors = {"x": FixedEffectPrior(mean=1.0, precision=4.0)}
    term = LatentTerm("time", hyper={"prec": PrecisionPrior()})
    spec = ModelSpec("y", fixed=["x"], latent=[term], fixed_priors=priors)
    twin = ModelSpec("y", fixed=["x"], latent=[LatentTerm("time", hyper={"prec": PrecisionPrior()})],
                     fixed_priors=dict(priors))
    assert spec == twin
    assert hash(spec) == hash(twin)
    assert len({spec, twin, ModelSpec("y")}) == 2

    priors["x"] = FixedEffectPrior()
    assert spec.prior_for("x").precision == 4.0
    with pytest.raises(TypeError):
        spec.fixed_priors["x"] = FixedEffectPrior()


def test_prior_lookup():
    informative = FixedEffectPrior(mean=1.0, precision=4.0)
    spec = ModelSpec("y", fixed=["x"], fixed_priors={"x": informative})
    assert spec.prior_for("x") is informative
    assert spec.prior_for(INTERCEPT) == FixedEffectPrior()
    with pytest.raises(MissingMarginalError):
        spec.prior_for("z")


def test_validate_data():
    spec = ModelSpec("y", fixed=["x"], latent=[LatentTerm("time")])
    spec.validate_data(pd.DataFrame({"y": [1.0], "x": [2.0], "time": [1]}))
    with pytest.raises(InvalidInputError):
        spec.validate_data(pd.DataFrame({"y": [1.0], "x": [2.0]}))


# ------------------------------ Fit output -----------------------------

def test_fitted_values_are_read_only():
    fv = FittedValues(index=[1, 2], mean=[0.0, 1.0], lower=[-1.0, 0.0], upper=[1.0, 2.0])
    assert len(fv) == 2
    assert fv.probability == 0.95
    assert fv.index.dtype.kind == "i"
    with pytest.raises(ValueError):
        fv.mean[0] = 5.0


@pytest.mark.parametrize("kwargs", [
    dict(index=[1, 2], mean=[0.0], lower=[0.0, 0.0], upper=[1.0, 1.0]),
    dict(index=[1, 2], mean=[0.0, 3.0], lower=[0.0, 0.0], upper=[1.0, 1.0]),
    dict(index=[[1, 2]], mean=[0.0, 0.0], lower=[0.0, 0.0], upper=[1.0, 1.0]),
    dict(index=[1], mean=[0.0], lower=[0.0], upper=[1.0], probability=1.0),
])
def test_fitted_values_validation(kwargs):
    with pytest.raises(InvalidInputError):
        FittedValues(**kwargs)


def test_fitted_values_from_marginals(normal_factory):
    marginals = [normal_factory(mu, 0.5) for mu in (1.0, 2.0, 3.0)]
    fv = FittedValues.from_marginals(marginals, probability=0.9)
    np.testing.assert_array_equal(fv.index, [1, 2, 3])
    np.testing.assert_allclose(fv.mean, [1.0, 2.0, 3.0], atol=1e-3)
    half = sp.norm.ppf(0.95) * 0.5
    np.testing.assert_allclose(fv.upper - fv.mean, half, atol=1e-2)
    np.testing.assert_allclose(fv.mean - fv.lower, half, atol=1e-2)

    frame = fv.to_frame()
    assert list(frame.columns) == ["mean", "lower", "upper"]
    assert frame.index.name == "index"


def test_fit_result_lookup(fit_result):
    assert fit_result.fixed_effect("x").name == "x"
    assert fit_result.hyperparameter(PRECISION_NAME).name == PRECISION_NAME
    assert fit_result.marginal("x") is fit_result.fixed["x"]
    assert fit_result.marginal(PRECISION_NAME) is fit_result.hyperpar[PRECISION_NAME]
    assert isinstance(fit_result.hyperpar, MarginalSet)
    for lookup in (fit_result.fixed_effect, fit_result.hyperparameter, fit_result.marginal):
        with pytest.raises(MissingMarginalError):
            lookup("nope")


def test_hyperparameter_sd(fit_result):
    sd = fit_result.hyperparameter_sd(PRECISION_NAME)
    assert sd.name == f"SD for {PRECISION_NAME}"
    tau = fit_result.hyperpar[PRECISION_NAME]
    np.testing.assert_allclose(sd.support, (3.0 ** -0.5, 0.05 ** -0.5))
    np.testing.assert_allclose(sd.mass, tau.mass, rtol=5e-3)


def test_summary_tables(fit_result):
    fixed = fit_result.summary_fixed()
    assert list(fixed.index) == [INTERCEPT, "x"]
    assert list(fixed.columns) == list(SUMMARY_COLUMNS)
    np.testing.assert_allclose(fixed["mean"], [1.0, 2.0], atol=1e-3)
    np.testing.assert_allclose(fixed["sd"], [0.2, 0.1], rtol=1e-2)

    hyper = fit_result.summary_hyperpar(probability=0.95)
    assert list(hyper.index) == [PRECISION_NAME]
    assert {"hpd_lower", "hpd_upper"} <= set(hyper.columns)


def test_missing_fixed_effect_is_logged(normal_factory, caplog):
    with caplog.at_level(logging.WARNING, logger="margpipe.fit"):
        ModelFitResult(
            fixed={INTERCEPT: normal_factory()},
            spec=ModelSpec("y", fixed=["x"]),
        )
    assert "'x'" in caplog.text


def test_backend_protocol(fit_result):
    class StaticBackend:
        def fit(self, spec, data):
            spec.validate_data(data)
            return fit_result

    backend = StaticBackend()
    assert isinstance(backend, FitBackend)
    assert not isinstance(object(), FitBackend)
    spec = ModelSpec("y", fixed=["x"])
    result = backend.fit(spec, pd.DataFrame({"y": [1.0, 2.0], "x": [0.0, 1.0]}))
    assert result.fitted is not None
    assert len(result.fitted) == 5
