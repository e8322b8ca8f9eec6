"""Pareto/NBD: per-customer slice-sampling updates for λ and μ.

One call of :func:`pnbd_slice_sample` is one Gibbs update of either the
transaction rates λ_i or the dropout rates μ_i of all customers, conditional
on the other latent and the Gamma(r, α) / Gamma(s, β) heterogeneity.  It is
meant to be called from an outer MCMC loop that owns the chain state.

The closed-form helpers (:func:`pnbd_palive`, :func:`pnbd_draw_z`,
:func:`pnbd_draw_tau`) give P(alive), the activity indicator and the dropout
time given (λ, μ); they are JIT-compiled with numba.
"""
from __future__ import annotations

import logging
import math
from enum import Enum

import numpy as np

from .batch import BatchDraws, as_record_arrays, map_records
from .cbs import CBSLike, cbs_columns
from .config import PNBDConfig
from .densities import PNBDLambdaPosterior, PNBDMuPosterior, PNBDParams
from .exceptions import UnknownSelectorError
from .numba_backend import pnbd_palive_jit, trunc_exp_many
from .slice_sampler import slice_sample

__all__ = [
    "PNBDParameter",
    "pnbd_slice_sample",
    "pnbd_slice_sample_cbs",
    "pnbd_palive",
    "pnbd_draw_z",
    "pnbd_draw_tau",
]

logger = logging.getLogger(__name__)

_lambda_posterior = PNBDLambdaPosterior()
_mu_posterior = PNBDMuPosterior()


class PNBDParameter(str, Enum):
    """Latent variable updated by :func:`pnbd_slice_sample`."""

    LAMBDA = "lambda"
    MU = "mu"

    @classmethod
    def parse(cls, what) -> "PNBDParameter":
        try:
            return cls(what)
        except ValueError:
            valid = ", ".join(repr(m.value) for m in cls)
            raise UnknownSelectorError(
                f"unknown Pareto/NBD parameter {what!r}; expected one of {valid}"
            ) from None


# -----------------------------------------------------------------------------
# Slice-sampling updates
# -----------------------------------------------------------------------------

def pnbd_slice_sample(
    what: PNBDParameter | str,
    x, tx, Tcal, lambda_, mu,
    r: float, alpha: float, s: float, beta: float,
    rng: np.random.Generator | None = None,
    config: PNBDConfig | None = None,
    n_jobs: int = 1,
    on_error: str = "flag",
    progress: bool = False,
) -> BatchDraws:
    """Draw new λ_i or μ_i for every customer.

    Parameters
    ----------
    what : {"lambda", "mu"} or PNBDParameter
        Latent variable to update.
    x, tx, Tcal : array-like
        Frequency, recency and calibration length per customer.
    lambda_, mu : array-like
        Current λ_i and μ_i; the one being updated is also the start point.
    r, alpha, s, beta : float
        Gamma(r, α) prior on λ, Gamma(s, β) prior on μ.
    rng, n_jobs, on_error, progress
        See :func:`clvslice.batch.map_records`.

    Returns
    -------
    BatchDraws
        ``values`` has one updated scalar per customer.
    """
    what = PNBDParameter.parse(what)
    config = config or PNBDConfig()
    n, cols = as_record_arrays(x=x, tx=tx, Tcal=Tcal, lambda_=lambda_, mu=mu)
    x, tx, Tcal, lam, mu = (cols[c] for c in ("x", "tx", "Tcal", "lambda_", "mu"))

    if what is PNBDParameter.LAMBDA:
        if r <= 0 or alpha <= 0:
            raise ValueError("r and alpha must be positive")
        density, start, steps = _lambda_posterior, lam, config.lambda_steps
        w = 3.0 * math.sqrt(r) / alpha
    elif what is PNBDParameter.MU:
        if s <= 0 or beta <= 0:
            raise ValueError("s and beta must be positive")
        density, start, steps = _mu_posterior, mu, config.mu_steps
        w = 3.0 * math.sqrt(s) / beta
    else:  # pragma: no cover
        raise UnknownSelectorError(what)

    def _draw(i: int, gen: np.random.Generator) -> float:
        params = PNBDParams(x[i], tx[i], Tcal[i], lam[i], mu[i], r, alpha, s, beta)
        out = slice_sample(density, params, start[i], steps, w, 0.0, np.inf,
                           rng=gen, config=config.slice)
        return out[0]

    logger.info("pnbd: drawing %s for %d customers", what.value, n)
    return map_records(_draw, n, rng=rng, n_jobs=n_jobs, on_error=on_error,
                       progress=progress, desc=f"pnbd {what.value}")


def pnbd_slice_sample_cbs(
    what: PNBDParameter | str,
    cbs: CBSLike,
    lambda_, mu,
    r: float, alpha: float, s: float, beta: float,
    **kwargs,
) -> BatchDraws:
    """:func:`pnbd_slice_sample` reading x, t_x and T_cal from a CBS frame or records."""
    cols = cbs_columns(cbs, ("x", "t_x", "T_cal"))
    return pnbd_slice_sample(what, cols["x"], cols["t_x"], cols["T_cal"],
                             lambda_, mu, r, alpha, s, beta, **kwargs)


# -----------------------------------------------------------------------------
# Closed forms
# -----------------------------------------------------------------------------

def pnbd_palive(tx, Tcal, lambda_, mu) -> np.ndarray:
    """P(alive at Tcal) per customer given λ and μ."""
    _, cols = as_record_arrays(tx=tx, Tcal=Tcal, lambda_=lambda_, mu=mu)
    return pnbd_palive_jit(cols["lambda_"], cols["mu"], cols["Tcal"], cols["tx"])


def pnbd_draw_z(tx, Tcal, lambda_, mu, rng: np.random.Generator | None = None) -> np.ndarray:
    rng = rng if rng is not None else np.random.default_rng()
    p_alive = pnbd_palive(tx, Tcal, lambda_, mu)
    return rng.random(p_alive.shape) < p_alive  # boolean array


def pnbd_draw_tau(
    tx, Tcal, lambda_, mu, z,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Dropout time τ_i given (λ_i, μ_i) and the activity indicator z_i.

    Alive customers (z=True): τ = Tcal + Exp(μ), left-truncated exponential.
    Churned customers: Exp(λ+μ) truncated to [tx, Tcal] via inverse CDF.
    """
    rng = rng if rng is not None else np.random.default_rng()
    n, cols = as_record_arrays(tx=tx, Tcal=Tcal, lambda_=lambda_, mu=mu)
    tx, Tcal, lam, mu = cols["tx"], cols["Tcal"], cols["lambda_"], cols["mu"]
    z = np.broadcast_to(np.asarray(z, dtype=bool), (n,))
    tau = np.empty(n)

    alive_idx = np.flatnonzero(z)
    if alive_idx.size:
        tau[alive_idx] = Tcal[alive_idx] + rng.exponential(scale=1.0 / mu[alive_idx])

    churn_idx = np.flatnonzero(~z)
    if churn_idx.size:
        u = rng.random(churn_idx.size)
        tau[churn_idx] = trunc_exp_many(
            lam[churn_idx] + mu[churn_idx], tx[churn_idx], Tcal[churn_idx], u
        )
    return tau
