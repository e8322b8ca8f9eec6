"""Slice sampling for Pareto/NBD and Pareto/CNBD customer-level parameters."""
from .basic_draws import (
    slice_sample_gamma,
    slice_sample_gamma_parameters,
    slice_sample_mvnorm,
)
from .batch import BatchDraws
from .cbs import CustomerRecord
from .config import PCNBDConfig, PNBDConfig, QuadratureConfig, SliceConfig
from .exceptions import (
    ClvSliceError,
    IntegrationError,
    InvalidBoundsError,
    NonFiniteDensityError,
    ShrinkageExhaustedError,
    UnknownSelectorError,
)
from .pareto_cnbd import (
    PCNBDParameter,
    pcnbd_palive,
    pcnbd_palive_cbs,
    pcnbd_slice_sample,
    pcnbd_slice_sample_cbs,
)
from .pareto_nbd import (
    PNBDParameter,
    pnbd_draw_tau,
    pnbd_draw_z,
    pnbd_palive,
    pnbd_slice_sample,
    pnbd_slice_sample_cbs,
)
from .slice_sampler import FunctionLogDensity, LogDensity, slice_sample

__version__ = "0.1.0"
