"""
Pareto/NBD per-customer updates and closed-form helpers.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from clvslice.batch import BatchDraws
from clvslice.config import PNBDConfig, SliceConfig
from clvslice.exceptions import NonFiniteDensityError, UnknownSelectorError
from clvslice.pareto_nbd import (
    PNBDParameter,
    pnbd_draw_tau,
    pnbd_draw_z,
    pnbd_palive,
    pnbd_slice_sample,
    pnbd_slice_sample_cbs,
)

HYPER = dict(r=0.55, alpha=10.6, s=0.6, beta=11.7)


class TestSelector:

    @pytest.mark.parametrize("what", ["lambda", "mu", PNBDParameter.LAMBDA, PNBDParameter.MU])
    def test_known(self, what):
        assert PNBDParameter.parse(what) in (PNBDParameter.LAMBDA, PNBDParameter.MU)

    @pytest.mark.parametrize("what", ["tau", "k", "Lambda", "", None])
    def test_unknown(self, rng, what):
        with pytest.raises(UnknownSelectorError):
            pnbd_slice_sample(what, [1], [5.0], [10.0], [0.1], [0.05], **HYPER, rng=rng)


class TestSliceSample:

    def test_returns_one_value_per_customer(self, rng, cbs):
        n = len(cbs)
        out = pnbd_slice_sample("lambda", cbs["x"], cbs["t_x"], cbs["T_cal"],
                                np.full(n, 0.1), np.full(n, 0.05), **HYPER, rng=rng)
        assert isinstance(out, BatchDraws)
        assert out.values.shape == (n,)
        assert not out.failed.any()
        assert np.all(out.values > 0)

    def test_mu_update(self, rng, cbs):
        n = len(cbs)
        out = pnbd_slice_sample(PNBDParameter.MU, cbs["x"], cbs["t_x"], cbs["T_cal"],
                                np.full(n, 0.1), np.full(n, 0.05), **HYPER, rng=rng)
        assert np.all(out.values > 0)

    def test_lambda_conjugate_limit(self, rng):
        # μ → 0 and tx = Tcal: λ | x ~ Gamma(r + x, α + Tcal)
        n, x, Tcal = 5000, 4, 30.0
        r, alpha = 2.0, 5.0
        start = rng.gamma(r + x, 1 / (alpha + Tcal), size=n)
        out = pnbd_slice_sample("lambda", x, Tcal, Tcal, start, 1e-9,
                                r=r, alpha=alpha, s=1.0, beta=1.0, rng=rng)
        assert_allclose(out.values.mean(), (r + x) / (alpha + Tcal), rtol=0.03)

    def test_mu_prior_only_when_uninformative(self, rng):
        # λ → 0: the likelihood no longer depends on μ beyond exp(-μ·tx)/(λ+μ)·μ
        # with tx = 0 that is flat, leaving the Gamma(s, β) prior
        n, s, beta = 5000, 3.0, 6.0
        start = rng.gamma(s, 1 / beta, size=n)
        out = pnbd_slice_sample("mu", 0, 0.0, 20.0, 1e-12, start,
                                r=1.0, alpha=1.0, s=s, beta=beta, rng=rng)
        assert_allclose(out.values.mean(), s / beta, rtol=0.03)

    def test_deterministic(self, cbs):
        kwargs = dict(x=cbs["x"], tx=cbs["t_x"], Tcal=cbs["T_cal"], lambda_=0.1, mu=0.05, **HYPER)
        a = pnbd_slice_sample("lambda", rng=np.random.default_rng(3), **kwargs)
        b = pnbd_slice_sample("lambda", rng=np.random.default_rng(3), **kwargs)
        np.testing.assert_array_equal(a.values, b.values)

    def test_parallel_independent_of_worker_count(self, cbs):
        kwargs = dict(x=cbs["x"], tx=cbs["t_x"], Tcal=cbs["T_cal"], lambda_=0.1, mu=0.05, **HYPER)
        a = pnbd_slice_sample("mu", rng=np.random.default_rng(3), n_jobs=2, **kwargs)
        b = pnbd_slice_sample("mu", rng=np.random.default_rng(3), n_jobs=4, **kwargs)
        np.testing.assert_array_equal(a.values, b.values)

    def test_failed_record_does_not_abort_batch(self, rng):
        out = pnbd_slice_sample("lambda", [1, 2, 3], [5.0, 6.0, 7.0], [10.0] * 3,
                                [0.1, 0.0, 0.2], [0.05] * 3, **HYPER, rng=rng)
        np.testing.assert_array_equal(out.failed, [False, True, False])
        assert np.isnan(out.values[1])
        assert np.all(np.isfinite(out.values[[0, 2]]))
        assert out.n_failed == 1

    def test_failed_record_raises_on_request(self, rng):
        with pytest.raises(NonFiniteDensityError):
            pnbd_slice_sample("lambda", [1, 2], [5.0, 6.0], [10.0] * 2, [0.1, 0.0], [0.05] * 2,
                              **HYPER, rng=rng, on_error="raise")

    @pytest.mark.parametrize("what, bad", [("lambda", dict(r=0.0)), ("mu", dict(beta=-1.0))])
    def test_invalid_hyperparameters(self, rng, what, bad):
        hyper = {**HYPER, **bad}
        with pytest.raises(ValueError):
            pnbd_slice_sample(what, [1], [5.0], [10.0], [0.1], [0.05], **hyper, rng=rng)

    def test_length_mismatch(self, rng):
        with pytest.raises(ValueError, match="length"):
            pnbd_slice_sample("lambda", [1, 2], [5.0, 6.0, 7.0], [10.0] * 3, 0.1, 0.05, **HYPER, rng=rng)

    def test_config_steps_change_the_draw(self, cbs):
        kwargs = dict(x=cbs["x"], tx=cbs["t_x"], Tcal=cbs["T_cal"], lambda_=0.1, mu=0.05, **HYPER)
        a = pnbd_slice_sample("lambda", rng=np.random.default_rng(9), **kwargs)
        b = pnbd_slice_sample("lambda", rng=np.random.default_rng(9),
                              config=PNBDConfig(lambda_steps=1, slice=SliceConfig(max_shrink=200)),
                              **kwargs)
        assert not np.array_equal(a.values, b.values)

    def test_cbs_adapter(self, cbs):
        n = len(cbs)
        a = pnbd_slice_sample_cbs("lambda", cbs, np.full(n, 0.1), np.full(n, 0.05), **HYPER,
                                  rng=np.random.default_rng(1))
        b = pnbd_slice_sample("lambda", cbs["x"], cbs["t_x"], cbs["T_cal"], np.full(n, 0.1),
                              np.full(n, 0.05), **HYPER, rng=np.random.default_rng(1))
        np.testing.assert_array_equal(a.values, b.values)

    def test_cbs_adapter_missing_column(self, cbs):
        with pytest.raises(ValueError, match="t_x"):
            pnbd_slice_sample_cbs("lambda", cbs.drop(columns="t_x"), 0.1, 0.05, **HYPER)


class TestClosedForms:

    def test_palive(self):
        lam, mu, tx, Tcal = 1.4, 0.015, 7.0, 12.0
        expected = 1.0 / (1.0 + mu / (lam + mu) * (np.exp((lam + mu) * (Tcal - tx)) - 1.0))
        assert_allclose(pnbd_palive(tx, Tcal, lam, mu), [expected])

    def test_palive_vectorised(self, cbs):
        p = pnbd_palive(cbs["t_x"], cbs["T_cal"], 0.2, 0.05)
        assert p.shape == (len(cbs),)
        assert np.all((p >= 0) & (p <= 1))

    def test_draw_z_frequency(self, rng):
        n = 20_000
        p = pnbd_palive(7.0, 12.0, 0.3, 0.1)[0]
        z = pnbd_draw_z(np.full(n, 7.0), 12.0, 0.3, 0.1, rng=rng)
        assert z.dtype == bool
        assert abs(z.mean() - p) < 0.015

    def test_draw_tau_ranges(self, rng):
        n = 2000
        z = np.arange(n) % 2 == 0
        tau = pnbd_draw_tau(np.full(n, 8.0), 14.0, 1.2, 0.01, z, rng=rng)
        assert np.all(tau[z] > 14.0)
        assert np.all((tau[~z] >= 8.0) & (tau[~z] <= 14.0))

    def test_draw_tau_churned_mean(self, rng):
        n = 20_000
        lam, mu, tx, Tcal = 1.2, 0.01, 8.0, 14.0
        tau = pnbd_draw_tau(np.full(n, tx), Tcal, lam, mu, np.zeros(n, dtype=bool), rng=rng)
        c, width = lam + mu, Tcal - tx
        expected = tx + 1 / c - width * np.exp(-c * width) / (1 - np.exp(-c * width))
        assert abs(tau.mean() - expected) < 0.025
