"""Single draws from simple targets.

``slice_sample_gamma`` and ``slice_sample_mvnorm`` exist to check the sampler
against distributions that can be drawn directly.  ``slice_sample_gamma_parameters``
is the population-level update used by the Pareto/CNBD chain for the gamma
heterogeneity of k, λ and μ.
"""
from __future__ import annotations

from typing import Sequence

import numpy as np

from .config import SliceConfig
from .densities import (
    BivariateNormalLogDensity,
    GammaLogDensity,
    GammaParametersPosterior,
    GammaParams,
    GammaSufficientStats,
)
from .slice_sampler import slice_sample

__all__ = [
    "slice_sample_gamma",
    "slice_sample_mvnorm",
    "slice_sample_gamma_parameters",
]

_gamma = GammaLogDensity()
_mvnorm = BivariateNormalLogDensity()
_gamma_parameters = GammaParametersPosterior()


def slice_sample_gamma(
    alpha: float,
    beta: float,
    lower: float = 0.0,
    upper: float = np.inf,
    steps: int = 10,
    rng: np.random.Generator | None = None,
    config: SliceConfig | None = None,
) -> float:
    """One draw from Gamma(α, rate β) truncated to ``[lower, upper]``.

    Starts at the mean ``α/β`` (clipped into the bounds) with step width
    ``3·sqrt(α)/β``, roughly the 5%-95% quantile range.
    """
    if alpha <= 0 or beta <= 0:
        raise ValueError("alpha and beta must be positive")
    x0 = min(max(alpha / beta, lower), upper)
    w = 3.0 * np.sqrt(alpha) / beta
    draw = slice_sample(_gamma, GammaParams(alpha, beta), x0, steps, w,
                        lower, upper, rng=rng, config=config)
    return float(draw[0])


def slice_sample_mvnorm(
    sigma: Sequence[float],
    x0: Sequence[float] = (0.2, 0.3),
    steps: int = 20,
    rng: np.random.Generator | None = None,
    config: SliceConfig | None = None,
) -> np.ndarray:
    """One draw from N(0, Σ) with ``sigma = [σ00, σ01, σ10, σ11]``."""
    sigma = np.asarray(sigma, dtype=float).ravel()
    if sigma.size != 4:
        raise ValueError(f"sigma must hold 4 covariance entries, got {sigma.size}")
    if sigma[0] <= 0 or sigma[0] * sigma[3] - sigma[1] * sigma[2] <= 0:
        raise ValueError("sigma is not positive definite")
    return slice_sample(_mvnorm, sigma, x0, steps, 1.0, rng=rng, config=config)


def slice_sample_gamma_parameters(
    data: Sequence[float] | np.ndarray,
    init: Sequence[float],
    hyper: Sequence[float],
    steps: int = 20,
    w: float = 1.0,
    rng: np.random.Generator | None = None,
    config: SliceConfig | None = None,
) -> np.ndarray:
    """Draw ``(shape, rate)`` of a gamma distribution given positive ``data``.

    Parameters
    ----------
    data : array-like
        Observations, e.g. the current k_i of all customers.
    init : (shape, rate)
        Current values; sampling runs on their logs.
    hyper : (shape_a, shape_b, rate_a, rate_b)
        Gamma-like hyperpriors on shape and rate.
    steps, w
        Sweeps and step width (on log scale).

    Returns
    -------
    numpy.ndarray
        ``[shape, rate]``
    """
    stats = GammaSufficientStats.from_data(data, hyper)
    init = np.asarray(init, dtype=float)
    if init.shape != (2,) or np.any(init <= 0):
        raise ValueError("init must be a positive (shape, rate) pair")
    draw = slice_sample(_gamma_parameters, stats, np.log(init), steps, w,
                        rng=rng, config=config)
    return np.exp(draw)
