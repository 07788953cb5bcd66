import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
import scipy.stats as sp

from margpipe.fit import FittedValues, ModelFitResult, ModelSpec
from margpipe.marginals.collection import MarginalSet
from margpipe.marginals.marginal import Marginal


PRECISION_NAME = "Precision for the Gaussian observations"


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def normal_factory():
    def make(mu=0.0, sigma=1.0, n=121, width=6.0, name=None):
        x = np.linspace(mu - width * sigma, mu + width * sigma, n)
        return Marginal(x, sp.norm.pdf(x, loc=mu, scale=sigma), name=name)
    return make


@pytest.fixture
def std_normal():
    # discretized N(0, 1) on [-5, 5]
    x = np.linspace(-5.0, 5.0, 101)
    return Marginal(x, sp.norm.pdf(x), name="z")


@pytest.fixture
def gamma_marginal():
    # Gamma(shape=2, rate=1) sampled at 50 knots over [0, 10]
    x = np.linspace(0.0, 10.0, 50)
    return Marginal(x, sp.gamma.pdf(x, a=2.0, scale=1.0), name="gamma")


@pytest.fixture
def precision_marginal():
    # Gamma(shape=3, rate=2) precision, kept away from zero
    x = np.linspace(0.05, 8.0, 80)
    return Marginal(x, sp.gamma.pdf(x, a=3.0, scale=0.5), name="tau")


@pytest.fixture
def bimodal_marginal():
    x = np.linspace(-6.0, 6.0, 241)
    d = 0.5 * sp.norm.pdf(x, -3.0, 0.5) + 0.5 * sp.norm.pdf(x, 3.0, 0.5)
    return Marginal(x, d, name="bimodal")


@pytest.fixture
def fit_result(normal_factory):
    x = np.linspace(0.05, 3.0, 60)
    tau = Marginal(x, sp.gamma.pdf(x, a=10.0, scale=0.1))
    fixed = MarginalSet({
        "(Intercept)": normal_factory(1.0, 0.2),
        "x": normal_factory(2.0, 0.1),
    })
    fitted = FittedValues(
        index=np.arange(1, 6),
        mean=np.array([1.0, 2.0, 3.0, 4.0, 5.0]),
        lower=np.array([0.5, 1.5, 2.5, 3.5, 4.5]),
        upper=np.array([1.5, 2.5, 3.5, 4.5, 5.5]),
    )
    return ModelFitResult(
        fixed=fixed,
        hyperpar={PRECISION_NAME: tau},
        fitted=fitted,
        spec=ModelSpec(response="y", fixed=["x"]),
    )


@pytest.fixture(autouse=True)
def close_figures():
    yield
    import matplotlib.pyplot as plt
    plt.close("all")
