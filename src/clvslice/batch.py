"""Per-customer map shared by the Pareto/NBD and Pareto/CNBD drivers.

Customers are independent given the global parameters, so a batch is a plain
map over records.  Sequentially (``n_jobs=1``) all records share one draw
stream in record order.  In parallel every record gets its own child
generator spawned from ``rng``, which makes the result independent of the
number of workers.

A record that raises :class:`ClvSliceError` is stored as NaN and flagged in
``BatchDraws.failed``; the rest of the batch still completes.
"""
from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, NamedTuple

import numpy as np
from tqdm import tqdm

from .exceptions import ClvSliceError

__all__ = ["BatchDraws", "as_record_arrays", "map_records"]

logger = logging.getLogger(__name__)


class BatchDraws(NamedTuple):
    """One value per customer plus a mask of records that failed."""

    values: np.ndarray
    failed: np.ndarray

    @property
    def n_failed(self) -> int:
        return int(self.failed.sum())


def as_record_arrays(**columns) -> tuple[int, dict[str, np.ndarray]]:
    """Coerce per-customer columns to float arrays of a common length N.

    Scalars (length-1 inputs) are repeated N times.
    """
    arrays = {name: np.atleast_1d(np.asarray(col, dtype=float)) for name, col in columns.items()}
    for name, arr in arrays.items():
        if arr.ndim != 1:
            raise ValueError(f"{name} must be one-dimensional, got shape {arr.shape}")
    n = max(arr.size for arr in arrays.values())
    for name, arr in arrays.items():
        if arr.size == 1 and n > 1:
            arrays[name] = np.full(n, arr[0])
        elif arr.size != n:
            raise ValueError(f"{name} has length {arr.size}, expected {n}")
    return n, arrays


def _resolve_jobs(n_jobs: int) -> int:
    if n_jobs == -1:
        return os.cpu_count() or 1
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be >= 1 or -1, got {n_jobs}")
    return n_jobs


def map_records(
    fn: Callable[[int, np.random.Generator], float],
    n: int,
    rng: np.random.Generator | None = None,
    n_jobs: int = 1,
    on_error: str = "flag",
    progress: bool = False,
    desc: str | None = None,
) -> BatchDraws:
    """Evaluate ``fn(i, rng_i)`` for every record ``i`` in ``range(n)``.

    Parameters
    ----------
    fn : callable
        Returns the new value for record ``i``.
    rng : numpy.random.Generator, optional
        Shared stream (sequential) or parent of per-record streams (parallel).
    n_jobs : int
        Worker threads; ``-1`` uses all cores.  ``n_jobs > 1`` switches to
        one spawned stream per record, so draws do not depend on scheduling.
        The densities are pure Python and hold the GIL, so threads give
        reproducible per-record streams rather than a speedup.
    on_error : {"flag", "raise"}
        Flag failing records as NaN, or re-raise the first failure.
    progress : bool
        Show a tqdm progress bar.
    """
    if on_error not in ("flag", "raise"):
        raise ValueError(f"on_error must be 'flag' or 'raise', got {on_error!r}")
    n_jobs = _resolve_jobs(n_jobs)
    rng = rng if rng is not None else np.random.default_rng()

    def _one(i: int, gen: np.random.Generator):
        try:
            return i, fn(i, gen), None
        except ClvSliceError as err:
            if on_error == "raise":
                raise
            return i, math.nan, err

    values = np.full(n, np.nan)
    failed = np.zeros(n, dtype=bool)

    if n_jobs == 1:
        results = (_one(i, rng) for i in range(n))
    else:
        pool = ThreadPoolExecutor(max_workers=n_jobs)
        results = pool.map(_one, range(n), rng.spawn(n))

    try:
        for i, value, err in tqdm(results, total=n, desc=desc, disable=not progress):
            values[i] = value
            if err is not None:
                failed[i] = True
                logger.warning("%s: record %d failed: %s", desc or "batch", i, err)
    finally:
        if n_jobs > 1:
            pool.shutdown(cancel_futures=True)

    if failed.any():
        logger.info("%s: %d of %d records failed", desc or "batch", int(failed.sum()), n)
    return BatchDraws(values, failed)
