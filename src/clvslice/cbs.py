"""Customer-by-sufficient-statistic (CBS) helpers.

A CBS table has one row per customer with at least

* ``x``     - number of repeat transactions in the calibration period,
* ``t_x``   - time of the last transaction (recency),
* ``T_cal`` - length of the calibration period,

and, for Pareto/CNBD, ``litt`` (sum of log inter-transaction times).  The
``*_cbs`` drivers accept either such a DataFrame or a sequence of
:class:`CustomerRecord`; they read the columns and never modify the input.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence, Union

import numpy as np
import pandas as pd

__all__ = ["CustomerRecord", "CBSLike", "as_cbs_frame", "cbs_columns"]


@dataclass
class CustomerRecord:
    """Sufficient statistics and current latent values for one customer."""

    x: int        # repeat transactions (excl. first purchase)
    t_x: float    # recency
    T_cal: float  # calibration period length
    litt: float = 0.0
    lambda_: float | None = None
    mu: float | None = None
    tau: float | None = None
    k: float | None = None

    @property
    def frequency(self) -> int:
        return self.x

    @property
    def recency(self) -> float:
        return self.t_x


CBSLike = Union[pd.DataFrame, Sequence[CustomerRecord]]

_RECORD_COLUMNS = ("x", "t_x", "T_cal", "litt")


def as_cbs_frame(cbs: CBSLike) -> pd.DataFrame:
    """Return ``cbs`` unchanged if it is a DataFrame, else tabulate the records.

    Latent fields of the records are not carried over; the drivers take the
    current latent values as separate arguments.
    """
    if isinstance(cbs, pd.DataFrame):
        return cbs
    rows = list(cbs)
    for i, rec in enumerate(rows):
        if not isinstance(rec, CustomerRecord):
            raise TypeError(f"record {i} is {type(rec).__name__}, expected CustomerRecord")
    return pd.DataFrame(
        {col: [getattr(rec, col) for rec in rows] for col in _RECORD_COLUMNS},
        columns=list(_RECORD_COLUMNS),
    )


def cbs_columns(cbs: CBSLike, names: Iterable[str]) -> dict[str, np.ndarray]:
    """Return the requested columns of ``cbs`` as float arrays."""
    cbs = as_cbs_frame(cbs)
    out = {}
    for col in names:
        if col not in cbs:
            raise ValueError(f"cbs missing required column '{col}'")
        out[col] = cbs[col].to_numpy(dtype=float)
    return out
