"""
Example: AR(1) Smoothing of a Daily Temperature Series
------------------------------------------------------

A year of daily temperatures is written to a CSV file, read back with
`load_table` (which turns the date column into an integer time index) and
smoothed with the latent Gaussian model

    temp_t = mu + x_t + eps_t,    eps_t ~ Normal(0, 1 / tau)
    x_t = phi * x_{t-1} + e_t,    e_t ~ Normal(0, 1 / kappa)

For fixed hyperparameters (phi, kappa, tau) the posterior of the latent
field is Gaussian, so the posterior of each linear predictor mu + x_t is a
Normal marginal. These are tabulated as `Marginal` objects and reduced to
`FittedValues` for plotting with `plot_fitted`.
"""

import os
import tempfile

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import scipy.stats as sp

from margpipe import FittedValues, LatentTerm, Marginal, ModelSpec, hpd_interval
from margpipe.data import load_table
from margpipe.plotting import plot_fitted


def ar1_precision(n, phi, kappa):
    """Precision matrix of a stationary AR(1) process with innovation precision kappa."""
    Q = np.diag(np.full(n, 1.0 + phi ** 2))
    Q[0, 0] = Q[-1, -1] = 1.0
    idx = np.arange(n - 1)
    Q[idx, idx + 1] = Q[idx + 1, idx] = -phi
    return kappa * Q


# Simulate a seasonal series with autocorrelated weather on top
rng = np.random.default_rng(7)
dates = pd.date_range("2016-01-01", periods=366, freq="D")
season = 12.0 - 8.0 * np.cos(2 * np.pi * np.arange(366) / 366)
weather = np.zeros(366)
for t in range(1, 366):
    weather[t] = 0.9 * weather[t - 1] + rng.normal(0.0, 1.0)
temp = season + weather + rng.normal(0.0, 1.5, 366)

# rows are shuffled on disk; the time index restores date order
order = rng.permutation(366)
frame = pd.DataFrame({"date": dates.strftime("%Y-%m-%d")[order], "temp": temp[order]})

with tempfile.TemporaryDirectory() as tmp:
    path = os.path.join(tmp, "climate.csv")
    frame.to_csv(path, index=False)
    data = load_table(path, date_column="date").sort_values("time")

spec = ModelSpec("temp", latent=[LatentTerm("time", model="ar1")])
spec.validate_data(data)
print(spec.formula)

y = data["temp"].to_numpy()
mu = y.mean()
phi, kappa, tau = 0.98, 1.0, 1.0 / 1.5 ** 2

Q = ar1_precision(len(y), phi, kappa) + tau * np.eye(len(y))
cov = np.linalg.inv(Q)
post_mean = mu + cov @ (tau * (y - mu))
post_sd = np.sqrt(np.diag(cov))

predictors = [
    Marginal.from_distribution(sp.norm(m, s), num_points=64, name=f"Predictor {t}")
    for t, m, s in zip(data["time"], post_mean, post_sd)
]
fitted = FittedValues.from_marginals(predictors, index=data["time"].to_numpy(), probability=0.95)
print(fitted.to_frame().head())

summer = predictors[200]
print(summer.name, tuple(hpd_interval(summer, 0.95)))

ax = plot_fitted(fitted, y)
ax.set_ylabel("temperature")
ax.legend()
plt.show()
