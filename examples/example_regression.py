"""
Example: Linear Regression with a Grid Backend
----------------------------------------------

This example fits the Gaussian linear model

    y_i ~ Normal(beta_0 + beta_1 * x_i, 1 / tau)
    beta_j ~ Normal(m_j, 1 / p_j)
    tau ~ Gamma(a, b)

with a small backend that integrates over log(tau) on a grid. For a fixed
tau the coefficients are Gaussian, so every marginal is a finite mixture of
Gaussians and can be tabulated exactly. The backend returns the same
`ModelFitResult` an external solver adapter would, which is then summarized
with the marginal toolkit, the `PosteriorSummary` pipeline module and the
plotting helpers.

Changing `fixed_priors` shows how an informative prior on the slope pulls
its marginal away from the least-squares estimate.
"""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import scipy.stats as sp
from scipy.special import logsumexp

from margpipe import (
    FixedEffectPrior,
    FittedValues,
    Marginal,
    ModelFitResult,
    ModelSpec,
    PrecisionPrior,
    hpd_interval,
    summarize,
)
from margpipe.fit import INTERCEPT
from margpipe.pipeline import FitModule, PosteriorSummary
from margpipe.plotting import plot_fitted, plot_hpd, plot_marginal


PRECISION = "Precision for the Gaussian observations"


class GridBackend:
    """Exact posterior marginals for a Gaussian linear model, by gridding log(tau)."""

    def __init__(self, n_theta=80, num_points=161):
        self.n_theta = n_theta
        self.num_points = num_points

    def _design(self, spec, data):
        columns = [np.asarray(data[name], dtype=float) for name in spec.fixed]
        if spec.intercept:
            columns.insert(0, np.ones(len(data)))
        return np.column_stack(columns)

    def fit(self, spec, data):
        spec.validate_data(data)
        X = self._design(spec, data)
        y = np.asarray(data[spec.response], dtype=float)
        names = spec.effect_names
        m = np.array([spec.prior_for(name).mean for name in names])
        P = np.diag([spec.prior_for(name).precision for name in names])
        tau_prior = spec.likelihood_prior or PrecisionPrior()

        # centre the theta grid on the residual precision of least squares
        beta_ls = np.linalg.lstsq(X, y, rcond=None)[0]
        theta_hat = -np.log(np.var(y - X @ beta_ls))
        theta = np.linspace(theta_hat - 2.5, theta_hat + 2.5, self.n_theta)

        log_w = np.empty_like(theta)
        means, covs = [], []
        for k, th in enumerate(theta):
            tau = np.exp(th)
            # y | tau integrates beta out: N(X m, I / tau + X P^-1 X')
            marg_cov = np.eye(len(y)) / tau + X @ np.linalg.solve(P, X.T)
            log_w[k] = sp.multivariate_normal.logpdf(y, X @ m, marg_cov) + tau_prior.log_density(th)
            Q = tau * X.T @ X + P
            cov = np.linalg.inv(Q)
            means.append(cov @ (tau * X.T @ y + P @ m))
            covs.append(cov)
        w = np.exp(log_w - logsumexp(log_w))
        means, covs = np.array(means), np.array(covs)

        fixed = {}
        for j, name in enumerate(names):
            mu, sd = means[:, j], np.sqrt(covs[:, j, j])
            lo, hi = (mu - 6 * sd).min(), (mu + 6 * sd).max()
            fixed[name] = Marginal.from_density(
                lambda b, mu=mu, sd=sd: w @ sp.norm.pdf(b[None, :], mu[:, None], sd[:, None]),
                lo, hi, self.num_points,
            )

        dtheta = theta[1] - theta[0]
        log_tau = Marginal(theta, w / dtheta)
        hyperpar = {PRECISION: log_tau.transform(np.exp)}

        predictors = []
        for x_i in X:
            mu = means @ x_i
            sd = np.sqrt(np.einsum("j,kjl,l->k", x_i, covs, x_i))
            predictors.append(Marginal.from_density(
                lambda e, mu=mu, sd=sd: w @ sp.norm.pdf(e[None, :], mu[:, None], sd[:, None]),
                (mu - 6 * sd).min(), (mu + 6 * sd).max(), 64,
            ))
        fitted = FittedValues.from_marginals(predictors, index=np.arange(1, len(y) + 1))

        return ModelFitResult(fixed=fixed, hyperpar=hyperpar, fitted=fitted, spec=spec)


rng = np.random.default_rng(0)
n = 60
x = np.sort(rng.uniform(-2.0, 2.0, n))
data = pd.DataFrame({"x": x, "y": 1.0 + 2.0 * x + rng.normal(0.0, 0.7, n)})

backend = GridBackend()

flat = backend.fit(ModelSpec("y", fixed=["x"]), data)
print(flat.spec.formula)
print(flat.summary_fixed(probability=0.95))
print(flat.summary_hyperpar())

sd = flat.hyperparameter_sd(PRECISION)
print(f"{sd.name}: mean {summarize(sd).mean:.3f}, 95% HPD {tuple(hpd_interval(sd))}")

# an informative prior on the slope, centred away from the truth
informative = ModelSpec(
    "y",
    fixed=["x"],
    fixed_priors={"x": FixedEffectPrior(mean=0.0, precision=25.0)},
    likelihood_prior=PrecisionPrior(shape=1.0, rate=0.01),
)
shrunk = backend.fit(informative, data)

summary = PosteriorSummary(probability=0.9, fit=FitModule(shrunk))
report = summary.report.fn()
print(report["fixed"])
print(summary.marginal_hpd.fn(name=INTERCEPT))

fig, axes = plt.subplots(1, 3, figsize=(12, 3.5))
plot_marginal(flat.fixed_effect("x"), axes[0], label="flat prior")
plot_marginal(shrunk.fixed_effect("x"), axes[0], label="N(0, 0.2^2) prior")
axes[0].legend()
plot_hpd(sd, 0.95, axes[1])
plot_fitted(flat.fitted, data["y"], axes[2])
fig.tight_layout()
plt.show()
