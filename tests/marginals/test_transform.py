import logging
import math

import numpy as np
import pytest
import scipy.stats as sp

from margpipe.exceptions import InvalidInputError
from margpipe.marginals.marginal import Marginal
from margpipe.marginals.toolkit import summarize, transform


def precision_to_sd(tau):
    return math.sqrt(1.0 / tau)


def test_linear_map_scales_density(std_normal):
    out = transform(std_normal, lambda x: 2.0 * x + 1.0)
    np.testing.assert_allclose(out.values, 2.0 * std_normal.values + 1.0)
    np.testing.assert_allclose(out.densities, std_normal.densities / 2.0, rtol=1e-6)
    np.testing.assert_allclose(out.mass, std_normal.mass, rtol=1e-6)
    assert out.support == (-9.0, 11.0)


def test_decreasing_map_is_sorted(std_normal):
    out = transform(std_normal, lambda x: -x)
    assert np.all(np.diff(out.values) > 0)
    np.testing.assert_allclose(out.values, -std_normal.values[::-1])
    np.testing.assert_allclose(out.densities, std_normal.densities[::-1], rtol=1e-6)


def test_precision_to_sd_matches_change_of_variables(precision_marginal):
    out = transform(precision_marginal, precision_to_sd)
    s = out.values
    assert np.all(np.diff(s) > 0)
    np.testing.assert_allclose(out.support, (1.0 / math.sqrt(8.0), 1.0 / math.sqrt(0.05)))
    # p_s(s) = p_tau(s^-2) * 2 s^-3
    expected = sp.gamma.pdf(s ** -2, a=3.0, scale=0.5) * 2.0 * s ** -3
    np.testing.assert_allclose(out.densities, expected, rtol=1e-6)


def test_round_trip_recovers_knots(precision_marginal):
    sd = transform(precision_marginal, precision_to_sd)
    back = transform(sd, lambda s: 1.0 / s ** 2)
    np.testing.assert_allclose(back.values, precision_marginal.values, rtol=1e-10)
    np.testing.assert_allclose(back.densities, precision_marginal.densities, rtol=1e-6)


def test_log_transform_of_gamma():
    x = np.linspace(0.1, 12.0, 120)
    m = Marginal(x, sp.gamma.pdf(x, a=4.0), name="tau")
    out = transform(m, math.log)
    # log of Gamma(4, 1) is loggamma(4)
    np.testing.assert_allclose(out.densities, sp.loggamma.pdf(out.values, 4.0), rtol=1e-6)


def test_result_name(precision_marginal):
    assert transform(precision_marginal, precision_to_sd).name == "tau:precision_to_sd"
    assert transform(precision_marginal, lambda t: 1 / t).name == "tau"
    assert transform(precision_marginal, precision_to_sd, name="sigma").name == "sigma"
    assert precision_marginal.transform(math.log, name="log tau").name == "log tau"


def test_undefined_at_knot_raises(std_normal):
    # sqrt fails on the negative half of the support
    with pytest.raises(InvalidInputError):
        transform(std_normal, math.sqrt)
    with pytest.raises(InvalidInputError):
        transform(std_normal, lambda x: math.exp(1000.0 * x))


def test_division_by_zero_raises():
    m = Marginal([0.0, 1.0, 2.0], [0.5, 0.5, 0.0])
    with pytest.raises(InvalidInputError):
        transform(m, lambda x: 1.0 / x)


def test_constant_map_raises(std_normal):
    with pytest.raises(InvalidInputError):
        transform(std_normal, lambda x: 3.0)


def test_non_monotone_map_is_rebinned(std_normal, caplog):
    with caplog.at_level(logging.WARNING, logger="margpipe.marginals.toolkit"):
        out = transform(std_normal, lambda x: x ** 2, n_bins=200)
    assert "not monotone" in caplog.text
    np.testing.assert_allclose(out.support, (0.0, 25.0), atol=1e-12)
    assert out.n == 202
    np.testing.assert_allclose(out.mass, std_normal.mass, rtol=1e-6)
    # X ~ N(0, 1) so E[X^2] = 1
    np.testing.assert_allclose(summarize(out).mean, 1.0, atol=0.15)


def test_non_monotone_bins_default(bimodal_marginal):
    out = transform(bimodal_marginal, abs)
    assert out.n == 128 + 2
    np.testing.assert_allclose(out.support, (0.0, 6.0), atol=1e-12)
    np.testing.assert_allclose(out.mass, bimodal_marginal.mass, rtol=1e-6)
    np.testing.assert_allclose(summarize(out).mode, 3.0, atol=0.1)
