"""Tests for the Split-Bregman total variation solver."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from mrf_denoise.algorithms import TVMRF, TVMRFParams, Task
from mrf_denoise.algorithms.tv_mrf import bregman_step, shrink, split_term, tv_energy
from mrf_denoise.lattice import Lattice

from conftest import make_step_pair


class TestComponents:
    def test_shrink(self):
        out = shrink(np.array([-5.0, -0.5, 0.0, 0.5, 5.0]), 1.0)
        np.testing.assert_allclose(out, [-4.0, 0.0, 0.0, 0.0, 4.0])

    def test_split_term_shape_and_balance(self):
        rng = np.random.default_rng(0)
        d_x, b_x = rng.normal(size=(4, 5)), rng.normal(size=(4, 5))
        d_y, b_y = rng.normal(size=(3, 6)), rng.normal(size=(3, 6))
        term = split_term(d_x, b_x, d_y, b_y)
        assert term.shape == (4, 6)
        # каждое ребро входит дважды с противоположными знаками
        assert term.sum() == pytest.approx(0.0, abs=1e-12)

    def test_bregman_step_on_flat_field(self):
        x = np.zeros((3, 3))
        d_x, d_y, b_x, b_y = bregman_step(x, np.zeros((3, 2)), np.zeros((2, 3)), 0.5)
        assert not d_x.any() and not d_y.any() and not b_x.any() and not b_y.any()

    def test_energy(self):
        x = np.array([[0.0, 2.0]])
        data = np.array([[1.0, 1.0]])
        p = TVMRFParams(lambda_=0.5, alpha=3.0, sigma_sq=2.0)
        expected = 0.25 * 4.0 + 3.0 * 2.0 + 2.0 / 4.0
        assert tv_energy(x, data, p) == pytest.approx(expected)


class TestTVSolver:
    def test_constant_pair(self, constant_pair):
        lattice = Lattice.from_images(*constant_pair)
        history = TVMRF().run(lattice)
        assert [r.task for r in history] == [Task.INITIALIZING, Task.OPTIMIZING, Task.CONVERGED]
        np.testing.assert_array_equal(lattice.get_output(), constant_pair[1])

    def test_reports_every_iteration(self):
        original, noisy = make_step_pair(size=16)
        history = TVMRF(TVMRFParams(max_iter=5, sigma_sq=1.0, alpha=3.0)).run(Lattice.from_images(original, noisy))
        optimizing = [r.iteration for r in history if r.task == Task.OPTIMIZING]
        assert optimizing == list(range(1, len(optimizing) + 1))
        assert all(r.energy > 0.0 for r in history if r.task == Task.OPTIMIZING)

    def test_learning_flag_only_warns(self, constant_pair, caplog):
        with caplog.at_level(logging.WARNING, logger="mrf_denoise.algorithms.tv_mrf"):
            history = TVMRF(TVMRFParams(is_learning=True)).run(Lattice.from_images(*constant_pair))
        assert history[-1].task == Task.CONVERGED
        assert any("is_learning" in record.getMessage() for record in caplog.records)

    def test_psnr_improves_on_step_image(self):
        original, noisy = make_step_pair()
        history = TVMRF(TVMRFParams(sigma_sq=1.0, alpha=3.0, max_iter=50)).run(
            Lattice.from_images(original, noisy))
        assert history[-1].psnr > history[0].psnr
