"""JIT-compiled closed forms for the Pareto/NBD model.

These are used on whole customer arrays (P(alive), dropout-time draws) and as
analytic references for the Pareto/CNBD routines when ``k = 1``.
"""
import math

import numpy as np
from numba import njit, prange

__all__ = ["pnbd_palive_jit", "trunc_exp_jit", "trunc_exp_many"]

# exp(700) is still finite in float64
_EXP_CAP = 700.0


@njit
def pnbd_palive_jit(lam, mu, Tcal, tx):
    """P(alive at Tcal | λ, μ, tx) for Pareto/NBD; works on scalars and arrays."""
    return 1.0 / (1.0 + (mu / (lam + mu)) * (np.exp((lam + mu) * (Tcal - tx)) - 1.0))


@njit
def trunc_exp_jit(rate, lower, upper, u):
    """Draw from Exp(rate) truncated to (lower, upper) given u ~ U(0, 1)."""
    lo = min(_EXP_CAP, rate * lower)
    hi = min(_EXP_CAP, rate * upper)
    return -math.log((1.0 - u) * math.exp(-lo) + u * math.exp(-hi)) / rate


@njit(parallel=True)
def trunc_exp_many(rate, lower, upper, u):
    """Vectorised :func:`trunc_exp_jit` over equally sized 1-D arrays."""
    n = rate.shape[0]
    out = np.empty(n)
    for i in prange(n):
        out[i] = trunc_exp_jit(rate[i], lower[i], upper[i], u[i])
    return out
