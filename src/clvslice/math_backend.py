"""Thin wrappers around the SciPy primitives the samplers rely on.

* Gamma survival function / CDF with shape ``k`` and *rate* ``k·λ`` (the
  Pareto/CNBD inter-transaction-time distribution), optionally on log scale.
* Gamma density, optionally on log scale.
* Adaptive quadrature (QUADPACK ``dqags`` via :func:`scipy.integrate.quad`)
  that turns a non-zero QUADPACK status into :class:`IntegrationError`.

The scalar functions go straight to :mod:`scipy.special`; going through
``scipy.stats.gamma`` costs ~50µs per call, which dominates a slice sampler
that evaluates the density a few dozen times per customer.
"""
from __future__ import annotations

import logging
import math
from typing import Callable, NamedTuple

import numpy as np
from scipy import integrate, special

from .config import QuadratureConfig
from .exceptions import IntegrationError

__all__ = [
    "gamma_sf",
    "gamma_cdf",
    "gamma_pdf",
    "QuadResult",
    "quadrature",
]

logger = logging.getLogger(__name__)

_TINY = np.finfo(float).tiny
_CF_EPS = 1e-15
_CF_MAXITER = 1000


def gamma_sf(x: float, shape: float, rate: float, log: bool = False) -> float:
    """Upper tail ``P(X > x)`` of a Gamma(shape, rate) variable.

    ``x <= 0`` gives survival 1 (0 on log scale).  On log scale the far tail,
    where ``gammaincc`` underflows, is evaluated by :func:`_log_gammaincc_cf`.
    """
    if x <= 0.0:
        return 0.0 if log else 1.0
    sf = special.gammaincc(shape, rate * x)
    if not log:
        return float(sf)
    if sf < _TINY and rate * x > shape + 1.0:
        return _log_gammaincc_cf(shape, rate * x)
    with np.errstate(divide="ignore"):
        return float(np.log(sf))


def _log_gammaincc_cf(a: float, z: float) -> float:
    """``log Q(a, z)`` by the Legendre continued fraction (modified Lentz).

    ::

        Q(a, z) = exp(-z) · z^a / Γ(a) · 1 / (z + 1 - a - 1·(1 - a) / (z + 3 - a - ...))

    Converges quickly for ``z > a + 1``, the only region where ``Q`` can
    underflow.
    """
    b = z + 1.0 - a
    c = 1.0 / _TINY
    d = 1.0 / b
    h = d
    for i in range(1, _CF_MAXITER + 1):
        an = -i * (i - a)
        b += 2.0
        d = an * d + b
        if abs(d) < _TINY:
            d = _TINY
        c = b + an / c
        if abs(c) < _TINY:
            c = _TINY
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < _CF_EPS:
            break
    else:
        logger.debug("gammaincc continued fraction not converged for a=%g, z=%g", a, z)
    return float(-z + a * math.log(z) - special.gammaln(a) + math.log(h))


def gamma_cdf(x: float, shape: float, rate: float, log: bool = False) -> float:
    """Lower tail ``P(X <= x)``."""
    if x <= 0.0:
        return -np.inf if log else 0.0
    cdf = special.gammainc(shape, rate * x)
    if not log:
        return float(cdf)
    with np.errstate(divide="ignore"):
        return float(np.log(cdf))


def gamma_pdf(x: float, shape: float, rate: float, log: bool = False) -> float:
    if x < 0.0:
        return -np.inf if log else 0.0
    logp = (
        special.xlogy(shape - 1.0, x)
        + shape * math.log(rate)
        - rate * x
        - special.gammaln(shape)
    )
    return float(logp) if log else float(np.exp(logp))


class QuadResult(NamedTuple):
    value: float
    abserr: float
    neval: int


def quadrature(
    f: Callable[[float], float],
    a: float,
    b: float,
    config: QuadratureConfig | None = None,
) -> QuadResult:
    """Integrate ``f`` over ``[a, b]`` with QUADPACK.

    Raises
    ------
    IntegrationError
        QUADPACK reported anything other than success (subdivision limit
        reached, roundoff, divergence, ...).
    """
    config = config or QuadratureConfig()
    out = integrate.quad(
        f, a, b,
        epsabs=config.epsabs,
        epsrel=config.epsrel,
        limit=config.limit,
        full_output=1,
    )
    value, abserr, info = out[:3]
    if len(out) > 3:
        # quad appends the QUADPACK message only when ier != 0
        logger.debug("quad failed on [%g, %g]: %s", a, b, out[3])
        raise IntegrationError(
            f"quadrature on [{a:g}, {b:g}] failed: {out[3]}",
            abserr=abserr,
            neval=info.get("neval"),
        )
    return QuadResult(float(value), float(abserr), int(info["neval"]))
