"""Unnormalised log-posteriors that plug into :func:`slice_sample`.

Test harness densities
    * :class:`GammaLogDensity` - Gamma(α, β) kernel.
    * :class:`BivariateNormalLogDensity` - zero-mean 2-D Gaussian.

Population level
    * :class:`GammaParametersPosterior` - (log shape, log rate) of a gamma
      distribution given N observations and gamma-like hyperpriors.

Individual level (one customer at a time)
    * :class:`PNBDLambdaPosterior`, :class:`PNBDMuPosterior` - Pareto/NBD
      transaction rate λ and dropout rate μ (Ma & Liu 2004).
    * :class:`PCNBDKPosterior`, :class:`PCNBDLambdaPosterior`,
      :class:`PCNBDTauPosterior` - Pareto/CNBD regularity k, rate λ and
      dropout time τ (Platzer & Reutterer 2016).

The fixed parameters of each family are a ``NamedTuple`` so they stay an
ordered sequence of floats while being readable at the call site.
"""
from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np

from .math_backend import gamma_pdf, gamma_sf
from .slice_sampler import LogDensity

__all__ = [
    # fixed parameters
    "GammaParams",
    "GammaSufficientStats",
    "PNBDParams",
    "PCNBDParams",
    # densities
    "GammaLogDensity",
    "BivariateNormalLogDensity",
    "GammaParametersPosterior",
    "PNBDLambdaPosterior",
    "PNBDMuPosterior",
    "PCNBDTauPosterior",
    "PCNBDKPosterior",
    "PCNBDLambdaPosterior",
]

_LOG_2PI = math.log(2.0 * math.pi)
_EXP_CAP = 700.0


def _log(v: float) -> float:
    return math.log(v) if v > 0.0 else -math.inf


# -----------------------------------------------------------------------------
# Fixed parameter records
# -----------------------------------------------------------------------------

class GammaParams(NamedTuple):
    alpha: float  # shape
    beta: float   # rate


class GammaSufficientStats(NamedTuple):
    """Data summary plus hyperpriors for :class:`GammaParametersPosterior`."""

    n: float
    sum_x: float
    sum_log_x: float
    shape_a: float  # prior on shape: (shape_a - 1)·log(shape) - shape·shape_b
    shape_b: float
    rate_a: float   # prior on rate:  (rate_a - 1)·log(rate) - rate·rate_b
    rate_b: float

    @classmethod
    def from_data(cls, data, hyper) -> "GammaSufficientStats":
        data = np.asarray(data, dtype=float)
        if data.size == 0 or np.any(data <= 0) or not np.all(np.isfinite(data)):
            raise ValueError("gamma observations must be positive and finite")
        if len(hyper) != 4:
            raise ValueError(f"expected 4 hyperparameters, got {len(hyper)}")
        return cls(float(data.size), float(data.sum()), float(np.log(data).sum()),
                   *map(float, hyper))


class PNBDParams(NamedTuple):
    """One Pareto/NBD customer: observed (x, tx, Tcal), latents and hyperpriors."""

    x: float
    tx: float
    Tcal: float
    lambda_: float
    mu: float
    r: float
    alpha: float
    s: float
    beta: float


class PCNBDParams(NamedTuple):
    """One Pareto/CNBD customer.

    ``litt`` is the sum of the log inter-transaction times of the customer.
    """

    x: float
    tx: float
    Tcal: float
    litt: float
    k: float
    lambda_: float
    mu: float
    tau: float
    t: float
    gamma: float
    r: float
    alpha: float
    s: float
    beta: float


# -----------------------------------------------------------------------------
# Test harness densities
# -----------------------------------------------------------------------------

class GammaLogDensity(LogDensity):
    """``(α-1)·log(x) - β·x``"""

    def evaluate(self, x, params):
        alpha, beta = params
        v = x[0]
        if v <= 0.0:
            return -math.inf
        return (alpha - 1.0) * math.log(v) - beta * v


class BivariateNormalLogDensity(LogDensity):
    """Zero-mean bivariate normal with covariance ``[σ00, σ01, σ10, σ11]``."""

    def evaluate(self, x, params):
        s00, s01, s10, s11 = params
        det = s00 * s11 - s01 * s10
        if det <= 0.0:
            return math.nan
        x0, x1 = x[0], x[1]
        quad = x0 * x0 * s11 - x0 * x1 * s10 - x0 * x1 * s01 + x1 * x1 * s00
        return -_LOG_2PI - 0.5 * math.log(det) - 0.5 * quad / det


# -----------------------------------------------------------------------------
# Population level
# -----------------------------------------------------------------------------

class GammaParametersPosterior(LogDensity):
    """Posterior of ``(log shape, log rate)`` of a gamma distribution.

    Working in log space keeps the support unbounded; callers exponentiate the
    draw.  ``params`` is a :class:`GammaSufficientStats`.
    """

    def evaluate(self, x, params):
        log_shape, log_rate = x[0], x[1]
        if log_shape > _EXP_CAP or log_rate > _EXP_CAP:
            return -math.inf
        shape, rate = math.exp(log_shape), math.exp(log_rate)
        if shape == 0.0 or rate == 0.0:
            return -math.inf
        n, sum_x, sum_log_x, shape_a, shape_b, rate_a, rate_b = params
        return (
            n * (shape * log_rate - math.lgamma(shape))
            + (shape - 1.0) * sum_log_x
            - rate * sum_x
            + (shape_a - 1.0) * log_shape - shape * shape_b
            + (rate_a - 1.0) * log_rate - rate * rate_b
        )


# -----------------------------------------------------------------------------
# Pareto/NBD
# -----------------------------------------------------------------------------

def _pnbd_loglik(x, tx, Tcal, lam, mu):
    """Individual Pareto/NBD log-likelihood, log-sum-exp for the last term."""
    lam_mu = lam + mu
    return (
        x * math.log(lam)
        - math.log(lam_mu)
        + np.logaddexp(_log(mu) - tx * lam_mu, _log(lam) - Tcal * lam_mu)
    )


class PNBDLambdaPosterior(LogDensity):
    """λ | x, tx, Tcal, μ with Gamma(r, α) prior."""

    def evaluate(self, x, params):
        lam = x[0]
        if lam <= 0.0:
            return -math.inf
        p = params
        return (
            (p.r - 1.0) * math.log(lam) - lam * p.alpha
            + float(_pnbd_loglik(p.x, p.tx, p.Tcal, lam, p.mu))
        )


class PNBDMuPosterior(LogDensity):
    """μ | x, tx, Tcal, λ with Gamma(s, β) prior."""

    def evaluate(self, x, params):
        mu = x[0]
        if mu <= 0.0:
            return -math.inf
        p = params
        return (
            (p.s - 1.0) * math.log(mu) - mu * p.beta
            + float(_pnbd_loglik(p.x, p.tx, p.Tcal, p.lambda_, mu))
        )


# -----------------------------------------------------------------------------
# Pareto/CNBD
# -----------------------------------------------------------------------------

class PCNBDTauPosterior(LogDensity):
    """Dropout time τ: ``-μ·τ + log(μ·S(τ) + f(τ))``.

    S and f are the survival function and density of Gamma(k, rate k·λ).
    """

    def evaluate(self, x, params):
        tau = x[0]
        k, lam, mu = params.k, params.lambda_, params.mu
        rate = k * lam
        log_sf = gamma_sf(tau, k, rate, log=True)
        log_f = gamma_pdf(tau, k, rate, log=True)
        return -mu * tau + float(np.logaddexp(_log(mu) + log_sf, log_f))


class PCNBDKPosterior(LogDensity):
    """Regularity k of the gamma renewal process, Gamma(t, γ) prior."""

    def evaluate(self, x, params):
        k = x[0]
        if k <= 0.0:
            return -math.inf
        p = params
        log_sf = gamma_sf(min(p.Tcal, p.tau) - p.tx, k, k * p.lambda_, log=True)
        return (
            (p.t - 1.0) * math.log(k) - k * p.gamma
            + k * p.x * math.log(k * p.lambda_) - p.x * math.lgamma(k)
            - k * p.lambda_ * p.tx + (k - 1.0) * p.litt
            + log_sf
        )


class PCNBDLambdaPosterior(LogDensity):
    """Transaction rate λ, Gamma(r, α) prior."""

    def evaluate(self, x, params):
        lam = x[0]
        if lam <= 0.0:
            return -math.inf
        p = params
        log_sf = gamma_sf(min(p.Tcal, p.tau) - p.tx, p.k, p.k * lam, log=True)
        return (
            (p.r - 1.0) * math.log(lam) - lam * p.alpha
            + p.k * p.x * math.log(lam) - p.k * lam * p.tx
            + log_sf
        )
