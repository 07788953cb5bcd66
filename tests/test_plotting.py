import matplotlib.pyplot as plt
import numpy as np
import pytest

from margpipe.exceptions import InvalidInputError
from margpipe.plotting import plot_fitted, plot_hpd, plot_marginal


def test_plot_marginal_new_axes(gamma_marginal):
    ax = plot_marginal(gamma_marginal, n_points=100)
    lines = ax.get_lines()
    assert len(lines) == 1
    x, y = lines[0].get_data()
    assert len(x) == 100
    assert (x[0], x[-1]) == gamma_marginal.support
    assert np.all(y >= 0)
    assert ax.get_xlabel() == "gamma"
    assert ax.get_ylabel() == "density"


def test_plot_marginal_into_existing_axes(std_normal, gamma_marginal):
    _, ax = plt.subplots()
    out = plot_marginal(std_normal, ax)
    plot_marginal(gamma_marginal, ax, label="other", color="red")
    assert out is ax
    assert [line.get_label() for line in ax.get_lines()] == ["z", "other"]


def test_plot_hpd_shades_interval(std_normal):
    ax = plot_hpd(std_normal, 0.9)
    assert len(ax.get_lines()) == 1
    assert len(ax.collections) == 1
    shaded = ax.collections[0].get_paths()[0].vertices[:, 0]
    np.testing.assert_allclose([shaded.min(), shaded.max()], [-1.645, 1.645], atol=0.02)
    assert ax.collections[0].get_label() == "90% HPD"


def test_plot_fitted_band(fit_result):
    observed = np.array([1.1, 1.9, 3.2, 4.0, 4.8])
    ax = plot_fitted(fit_result.fitted, observed)
    assert len(ax.get_lines()) == 3
    # scatter of observations plus the band
    assert len(ax.collections) == 2
    np.testing.assert_allclose(ax.get_lines()[0].get_ydata(), fit_result.fitted.mean)


def test_plot_fitted_without_observations(fit_result):
    ax = plot_fitted(fit_result.fitted)
    assert len(ax.collections) == 1


def test_plot_fitted_shape_mismatch(fit_result):
    with pytest.raises(InvalidInputError):
        plot_fitted(fit_result.fitted, observed=[1.0, 2.0])
