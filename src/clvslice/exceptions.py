"""Error types raised by the slice sampler, the posterior densities and the
per-customer drivers.

All of them derive from :class:`ClvSliceError` so a batch driver can catch one
type per record, flag that record as failed and carry on with the rest.
"""
from __future__ import annotations

__all__ = [
    "ClvSliceError",
    "InvalidBoundsError",
    "NonFiniteDensityError",
    "ShrinkageExhaustedError",
    "IntegrationError",
    "UnknownSelectorError",
]


class ClvSliceError(Exception):
    """Base class for every error raised by ``clvslice``."""


class InvalidBoundsError(ClvSliceError, ValueError):
    """Sampler called with ``lower >= upper`` or a start point outside the bounds."""


class NonFiniteDensityError(ClvSliceError, ArithmeticError):
    """Log-density returned NaN, or was not finite at the initial point."""

    def __init__(self, message: str, point=None, value: float | None = None):
        super().__init__(message)
        self.point = point
        self.value = value


class ShrinkageExhaustedError(ClvSliceError, RuntimeError):
    """Shrinkage loop hit its iteration cap without accepting a candidate."""

    def __init__(self, message: str, dim: int | None = None, bracket=None):
        super().__init__(message)
        self.dim = dim
        self.bracket = bracket


class IntegrationError(ClvSliceError, RuntimeError):
    """Adaptive quadrature did not reach the requested tolerance."""

    def __init__(self, message: str, abserr: float | None = None, neval: int | None = None):
        super().__init__(message)
        self.abserr = abserr
        self.neval = neval


class UnknownSelectorError(ClvSliceError, ValueError):
    """Latent-variable selector not known to the model."""
