"""Pareto/CNBD: per-customer slice-sampling updates for k, λ and τ, and P(alive).

The Pareto/CNBD model replaces the Poisson purchase process of Pareto/NBD by
a gamma renewal process with shape k and rate k·λ, i.e. Erlang-k
inter-transaction times with mean 1/λ.  Customers drop out at time τ with
τ ~ Exp(μ).

:func:`pcnbd_slice_sample` is one Gibbs update of k_i, λ_i or τ_i for all
customers.  :func:`pcnbd_palive` computes P(τ > Tcal) by integrating the
survival function over [tx, Tcal] with QUADPACK.
"""
from __future__ import annotations

import logging
import math
from enum import Enum

import numpy as np

from .batch import BatchDraws, as_record_arrays, map_records
from .cbs import CBSLike, as_cbs_frame, cbs_columns
from .config import PCNBDConfig
from .densities import (
    PCNBDKPosterior,
    PCNBDLambdaPosterior,
    PCNBDParams,
    PCNBDTauPosterior,
)
from .exceptions import IntegrationError, UnknownSelectorError
from .math_backend import gamma_sf, quadrature
from .slice_sampler import slice_sample

__all__ = [
    "PCNBDParameter",
    "pcnbd_slice_sample",
    "pcnbd_slice_sample_cbs",
    "pcnbd_palive",
    "pcnbd_palive_cbs",
]

logger = logging.getLogger(__name__)

_k_posterior = PCNBDKPosterior()
_lambda_posterior = PCNBDLambdaPosterior()
_tau_posterior = PCNBDTauPosterior()


class PCNBDParameter(str, Enum):
    """Latent variable updated by :func:`pcnbd_slice_sample`."""

    K = "k"
    LAMBDA = "lambda"
    TAU = "tau"

    @classmethod
    def parse(cls, what) -> "PCNBDParameter":
        try:
            return cls(what)
        except ValueError:
            valid = ", ".join(repr(m.value) for m in cls)
            raise UnknownSelectorError(
                f"unknown Pareto/CNBD parameter {what!r}; expected one of {valid}"
            ) from None


def _check_recency(tx: np.ndarray, Tcal: np.ndarray) -> None:
    if np.any(tx < 0) or np.any(tx > Tcal):
        bad = np.flatnonzero((tx < 0) | (tx > Tcal))
        raise ValueError(f"need 0 <= tx <= Tcal, violated for records {bad[:10].tolist()}")


# -----------------------------------------------------------------------------
# Slice-sampling updates
# -----------------------------------------------------------------------------

def pcnbd_slice_sample(
    what: PCNBDParameter | str,
    x, tx, Tcal, litt, k, lambda_, mu, tau,
    t: float, gamma: float, r: float, alpha: float, s: float, beta: float,
    rng: np.random.Generator | None = None,
    config: PCNBDConfig | None = None,
    n_jobs: int = 1,
    on_error: str = "flag",
    progress: bool = False,
) -> BatchDraws:
    """Draw new k_i, λ_i or τ_i for every customer.

    Parameters
    ----------
    what : {"k", "lambda", "tau"} or PCNBDParameter
        Latent variable to update.
    x, tx, Tcal, litt : array-like
        Frequency, recency, calibration length and sum of log
        inter-transaction times per customer.
    k, lambda_, mu, tau : array-like
        Current latent values.
    t, gamma, r, alpha, s, beta : float
        Gamma(t, γ) prior on k, Gamma(r, α) on λ, Gamma(s, β) on μ.
    rng, n_jobs, on_error, progress
        See :func:`clvslice.batch.map_records`.

    Notes
    -----
    For τ the sampler is bounded to [tx, Tcal] and starts from the current
    τ_i, or from the midpoint when τ_i lies outside that interval.  When
    ``log S(tx) < config.tau_flat_log_survival`` the posterior is too flat
    to bracket and τ_i is drawn uniformly on [tx, Tcal] instead.  Customers
    with ``tx == Tcal`` get ``τ_i = tx``.
    """
    what = PCNBDParameter.parse(what)
    config = config or PCNBDConfig()
    n, cols = as_record_arrays(x=x, tx=tx, Tcal=Tcal, litt=litt, k=k,
                               lambda_=lambda_, mu=mu, tau=tau)
    x, tx, Tcal, litt = cols["x"], cols["tx"], cols["Tcal"], cols["litt"]
    k, lam, mu, tau = cols["k"], cols["lambda_"], cols["mu"], cols["tau"]
    _check_recency(tx, Tcal)

    def _params(i: int) -> PCNBDParams:
        return PCNBDParams(x[i], tx[i], Tcal[i], litt[i], k[i], lam[i], mu[i], tau[i],
                           t, gamma, r, alpha, s, beta)

    if what is PCNBDParameter.K:
        if t <= 0 or gamma <= 0:
            raise ValueError("t and gamma must be positive")
        w = 3.0 * math.sqrt(t) / gamma

        def _draw(i, gen):
            return slice_sample(_k_posterior, _params(i), k[i], config.k_steps, w,
                                0.0, np.inf, rng=gen, config=config.slice)[0]

    elif what is PCNBDParameter.LAMBDA:
        if r <= 0 or alpha <= 0:
            raise ValueError("r and alpha must be positive")
        w = 3.0 * math.sqrt(r) / alpha

        def _draw(i, gen):
            return slice_sample(_lambda_posterior, _params(i), lam[i], config.lambda_steps, w,
                                0.0, np.inf, rng=gen, config=config.slice)[0]

    elif what is PCNBDParameter.TAU:
        log_sf_tx = np.array([
            gamma_sf(tx[i], k[i], k[i] * lam[i], log=True) for i in range(n)
        ])
        flat = log_sf_tx < config.tau_flat_log_survival
        logger.info("pcnbd: %d of %d tau posteriors too flat, drawing uniformly",
                    int(flat.sum()), n)

        def _draw(i, gen):
            lo, hi = tx[i], Tcal[i]
            if lo == hi:
                return lo
            if flat[i]:
                return gen.uniform(lo, hi)
            tau_init = tau[i] if lo <= tau[i] <= hi else lo + (hi - lo) / 2
            return slice_sample(_tau_posterior, _params(i), tau_init, config.tau_steps,
                                (hi - lo) / 2, lo, hi, rng=gen, config=config.slice)[0]

    else:  # pragma: no cover
        raise UnknownSelectorError(what)

    logger.info("pcnbd: drawing %s for %d customers", what.value, n)
    return map_records(_draw, n, rng=rng, n_jobs=n_jobs, on_error=on_error,
                       progress=progress, desc=f"pcnbd {what.value}")


def pcnbd_slice_sample_cbs(
    what: PCNBDParameter | str,
    cbs: CBSLike,
    k, lambda_, mu, tau,
    t: float, gamma: float, r: float, alpha: float, s: float, beta: float,
    **kwargs,
) -> BatchDraws:
    """:func:`pcnbd_slice_sample` reading x, t_x, T_cal and litt from a CBS frame or records.

    ``litt`` is only required when drawing k.
    """
    what = PCNBDParameter.parse(what)
    cbs = as_cbs_frame(cbs)
    cols = cbs_columns(cbs, ("x", "t_x", "T_cal"))
    if what is PCNBDParameter.K or "litt" in cbs:
        litt = cbs_columns(cbs, ("litt",))["litt"]
    else:
        litt = np.zeros(len(cbs))
    return pcnbd_slice_sample(what, cols["x"], cols["t_x"], cols["T_cal"], litt,
                              k, lambda_, mu, tau, t, gamma, r, alpha, s, beta, **kwargs)


# -----------------------------------------------------------------------------
# P(alive)
# -----------------------------------------------------------------------------

def _palive_one(tx: float, Tcal: float, k: float, lam: float, mu: float, quad_config) -> float:
    if tx == Tcal:
        return 1.0
    rate = k * lam
    numer = gamma_sf(Tcal - tx, k, rate) * math.exp(-mu * Tcal)

    def integrand(y):
        return gamma_sf(y - tx, k, rate) * math.exp(-mu * y)

    integral = quadrature(integrand, tx, Tcal, quad_config).value
    denom = numer + mu * integral
    if denom <= 0.0:
        raise IntegrationError(
            f"P(alive) underflows for tx={tx}, Tcal={Tcal}, k={k}, lambda={lam}, mu={mu}"
        )
    return numer / denom


def pcnbd_palive(
    x, tx, Tcal, k, lambda_, mu,
    config: PCNBDConfig | None = None,
    n_jobs: int = 1,
    on_error: str = "flag",
    progress: bool = False,
) -> BatchDraws:
    """P(alive at Tcal) per customer under Pareto/CNBD.

    ::

        numer = S(Tcal - tx) · exp(-μ·Tcal)
        P     = numer / (numer + μ · ∫_tx^Tcal S(y - tx) · exp(-μ·y) dy)

    with S the survival function of Gamma(k, rate k·λ).  ``tx == Tcal``
    gives exactly 1 without integrating.  Records whose integration fails
    are NaN and flagged in ``failed``.
    """
    config = config or PCNBDConfig()
    n, cols = as_record_arrays(x=x, tx=tx, Tcal=Tcal, k=k, lambda_=lambda_, mu=mu)
    tx, Tcal = cols["tx"], cols["Tcal"]
    k, lam, mu = cols["k"], cols["lambda_"], cols["mu"]
    _check_recency(tx, Tcal)

    def _palive(i, _gen):
        return _palive_one(tx[i], Tcal[i], k[i], lam[i], mu[i], config.quadrature)

    return map_records(_palive, n, n_jobs=n_jobs, on_error=on_error,
                       progress=progress, desc="pcnbd palive")


def pcnbd_palive_cbs(cbs: CBSLike, k, lambda_, mu, **kwargs) -> BatchDraws:
    cols = cbs_columns(cbs, ("x", "t_x", "T_cal"))
    return pcnbd_palive(cols["x"], cols["t_x"], cols["T_cal"], k, lambda_, mu, **kwargs)
