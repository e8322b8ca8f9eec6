"""Coordinate-wise multivariate slice sampling (Neal 2003, step-out + shrinkage).

Let ``x`` be the current position and ``logy`` the log-density there.  Each
sweep updates every coordinate ``j`` in turn:

1. draw the slice level ``logz = logy - Exp(1)`` (a uniform height under the
   density, on log scale);
2. place a bracket of width ``w`` at a random offset around ``x[j]`` and step
   its ends outwards by ``w`` until both fall outside the slice or past the
   bounds;
3. draw uniformly from the (clamped) bracket; accept the first candidate
   above ``logz`` and shrink the bracket towards ``x[j]`` on each rejection.

Every update is accepted, so there is no Metropolis-Hastings test.  The
sampler is stateless: a call starts from ``x0`` and returns only the final
point.  The enclosing Markov chain (burn-in, thinning, diagnostics) belongs to
the caller.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Sequence

import numpy as np

from .config import SliceConfig
from .exceptions import (
    InvalidBoundsError,
    NonFiniteDensityError,
    ShrinkageExhaustedError,
)

__all__ = ["LogDensity", "FunctionLogDensity", "slice_sample"]

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Log-density interface
# -----------------------------------------------------------------------------

class LogDensity(ABC):
    """Unnormalised log-density ``log p(x | params)``.

    Implementations must be pure: the same ``(x, params)`` always yields the
    same value, otherwise the bracket search is invalid.  ``-inf`` marks
    points outside the support; NaN is treated as an error by the sampler.
    """

    @abstractmethod
    def evaluate(self, x: np.ndarray, params: Sequence[float]) -> float:
        ...

    def __call__(self, x: np.ndarray, params: Sequence[float]) -> float:
        return self.evaluate(x, params)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class FunctionLogDensity(LogDensity):
    """Adapter for a plain ``f(x, params) -> float`` callable."""

    def __init__(self, fn: Callable[[np.ndarray, Any], float]):
        self.fn = fn

    def evaluate(self, x, params):
        return self.fn(x, params)

    def __repr__(self) -> str:
        return f"FunctionLogDensity({getattr(self.fn, '__name__', self.fn)!r})"


def _as_log_density(log_density) -> LogDensity:
    if isinstance(log_density, LogDensity):
        return log_density
    if callable(log_density):
        return FunctionLogDensity(log_density)
    raise TypeError(f"expected a LogDensity or callable, got {type(log_density).__name__}")


# -----------------------------------------------------------------------------
# Sampler
# -----------------------------------------------------------------------------

def _evaluate(density: LogDensity, point: np.ndarray, params) -> float:
    value = float(density.evaluate(point, params))
    if math.isnan(value) or value == math.inf:
        raise NonFiniteDensityError(
            f"{density!r} returned {value} at {point.tolist()}",
            point=point.copy(),
            value=value,
        )
    return value


def _check_arguments(steps: int, w: float, lower: float, upper: float) -> None:
    if steps < 1:
        raise InvalidBoundsError(f"steps must be >= 1, got {steps}")
    if not (w > 0.0 and math.isfinite(w)):
        raise InvalidBoundsError(f"step width must be positive and finite, got {w}")
    if math.isnan(lower) or math.isnan(upper):
        raise InvalidBoundsError("bounds must not be NaN")
    if lower >= upper:
        raise InvalidBoundsError(f"lower ({lower}) must be < upper ({upper})")


def slice_sample(
    log_density: LogDensity | Callable[[np.ndarray, Any], float],
    params: Sequence[float],
    x0: float | Sequence[float] | np.ndarray,
    steps: int = 10,
    w: float = 1.0,
    lower: float = -np.inf,
    upper: float = np.inf,
    rng: np.random.Generator | None = None,
    config: SliceConfig | None = None,
) -> np.ndarray:
    """Run ``steps`` slice-sampling sweeps from ``x0`` and return the last point.

    Parameters
    ----------
    log_density : LogDensity or callable ``f(x, params)``
        Unnormalised log-density.
    params : sequence of float
        Fixed parameters passed unchanged to every evaluation.
    x0 : float or array-like
        Starting point; must lie in ``[lower, upper]`` with finite density.
    steps : int
        Number of full sweeps over all dimensions.
    w : float
        Step width of the bracket search, ideally close to the scale of the
        distribution (e.g. its 5%-95% quantile range).
    lower, upper : float
        Bounds applied to every dimension.
    rng : numpy.random.Generator, optional
        Draw stream; a fresh unseeded one is used if omitted.
    config : SliceConfig, optional
        Holds the shrinkage iteration cap.

    Returns
    -------
    numpy.ndarray
        1-D array with the final position.

    Raises
    ------
    InvalidBoundsError
        Bad ``steps``/``w``/bounds, or ``x0`` outside the bounds.
    NonFiniteDensityError
        Density is not finite at ``x0``, or NaN anywhere during the search.
    ShrinkageExhaustedError
        ``config.max_shrink`` consecutive rejections for one coordinate.
    """
    rng = rng if rng is not None else np.random.default_rng()
    config = config or SliceConfig()
    _check_arguments(steps, w, lower, upper)
    density = _as_log_density(log_density)

    x = np.array(x0, dtype=float, ndmin=1).ravel()
    if np.any(x < lower) or np.any(x > upper):
        raise InvalidBoundsError(f"start point {x.tolist()} outside [{lower}, {upper}]")

    logy = _evaluate(density, x, params)
    if not math.isfinite(logy):
        raise NonFiniteDensityError(
            f"{density!r} is {logy} at start point {x.tolist()}", point=x.copy(), value=logy
        )

    n_eval, n_reject = 1, 0
    for _ in range(steps):
        for j in range(x.size):
            logz = logy - rng.exponential(1.0)

            # step out
            u = rng.uniform(0.0, w)
            probe = x.copy()
            probe[j] = x[j] - u
            while probe[j] > lower:
                n_eval += 1
                if _evaluate(density, probe, params) <= logz:
                    break
                probe[j] -= w
            left = probe[j]

            probe[j] = x[j] + (w - u)
            while probe[j] < upper:
                n_eval += 1
                if _evaluate(density, probe, params) <= logz:
                    break
                probe[j] += w
            right = probe[j]

            # shrink
            r0, r1 = max(left, lower), min(right, upper)
            for _ in range(config.max_shrink):
                probe[j] = rng.uniform(r0, r1)
                n_eval += 1
                logys = _evaluate(density, probe, params)
                if logys > logz:
                    break
                n_reject += 1
                if probe[j] < x[j]:
                    r0 = probe[j]
                else:
                    r1 = probe[j]
            else:
                raise ShrinkageExhaustedError(
                    f"no point above the slice after {config.max_shrink} candidates "
                    f"in dimension {j} (bracket [{r0}, {r1}])",
                    dim=j,
                    bracket=(r0, r1),
                )

            x = probe
            logy = logys

    logger.debug(
        "%r: %d sweep(s) x %d dim(s), %d evaluations, %d rejections",
        density, steps, x.size, n_eval, n_reject,
    )
    return x
