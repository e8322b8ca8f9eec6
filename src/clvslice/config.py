"""Tunables for the slice sampler and the per-customer drivers.

Defaults reproduce the constants of the reference Pareto/NBD and Pareto/CNBD
samplers: 3 sweeps for λ and k, 6 for μ and τ, a log-survival cut-off of -100
below which τ is drawn uniformly, and QUADPACK tolerances of 1e-4.
"""
from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    "SliceConfig",
    "QuadratureConfig",
    "PNBDConfig",
    "PCNBDConfig",
]


@dataclass(frozen=True)
class SliceConfig:
    """Settings of a single :func:`~clvslice.slice_sampler.slice_sample` call."""

    max_shrink: int = 1000  # rejected candidates per coordinate before giving up

    def __post_init__(self):
        if self.max_shrink < 1:
            raise ValueError("max_shrink must be >= 1")


@dataclass(frozen=True)
class QuadratureConfig:
    """Tolerances handed to ``scipy.integrate.quad``."""

    epsabs: float = 1e-4
    epsrel: float = 1e-4
    limit: int = 100  # max number of subintervals


@dataclass(frozen=True)
class PNBDConfig:
    lambda_steps: int = 3
    mu_steps: int = 6
    slice: SliceConfig = field(default_factory=SliceConfig)


@dataclass(frozen=True)
class PCNBDConfig:
    k_steps: int = 3
    lambda_steps: int = 3
    tau_steps: int = 6
    # log S(tx) below this ⇒ τ-posterior too flat, draw τ ~ U(tx, Tcal) instead
    tau_flat_log_survival: float = -100.0
    quadrature: QuadratureConfig = field(default_factory=QuadratureConfig)
    slice: SliceConfig = field(default_factory=SliceConfig)
