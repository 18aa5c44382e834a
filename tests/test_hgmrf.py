"""Tests for the hierarchical GMRF solver and learning-curve peak detection."""

from __future__ import annotations

import numpy as np
import pytest

from mrf_denoise.algorithms import GMRF, GMRFParams, HGMRF, HGMRFParams, PeakDetector, Task
from mrf_denoise.algorithms.hgmrf import bias_sweep, joint_sweep, spectral_terms
from mrf_denoise.lattice import Lattice

from conftest import make_flat_pair


class TestPeakDetector:
    def test_fires_when_average_gain_drops(self):
        detector = PeakDetector()
        likelihood = 0.0
        for iteration in range(1, 9):
            assert not detector.update(iteration, likelihood)
            likelihood += 1.0
        # приращение падает с 1.0 до 0.5
        assert detector.update(9, likelihood - 0.5)

    def test_needs_full_window(self):
        detector = PeakDetector(window=3)
        assert not detector.update(1, 0.0)
        assert not detector.update(2, 10.0)
        assert not detector.update(3, 15.0)
        assert not detector.update(4, 17.0)
        assert detector.update(5, 18.0)

    def test_sanity_floor_blocks_divergent_curves(self):
        detector = PeakDetector(window=3)
        fired = [detector.update(i, -1e11 * i * i) for i in range(1, 12)]
        assert not any(fired)


class TestHGMRFComponents:
    def test_spectral_terms(self):
        p = HGMRFParams(lambda_=0.5, alpha=0.25, gamma_sq=1.0, sigma_sq=4.0)
        psi_h, chi_h = spectral_terms(np.array([0.0, 2.0]), p)
        np.testing.assert_allclose(psi_h, [0.25 / 1.5, 1.0 / 2.0])
        np.testing.assert_allclose(chi_h, 0.25 + psi_h)

    def test_sweeps_keep_zero_fields(self):
        lattice = Lattice(5, 4)
        u, v, w = np.zeros((4, 5)), np.zeros((4, 5)), np.zeros((4, 5))
        joint_sweep(lattice, u, v, np.zeros((4, 5)), HGMRFParams())
        bias_sweep(lattice, w, v, HGMRFParams())
        assert not u.any() and not v.any() and not w.any()

    def test_joint_sweep_pulls_towards_data(self):
        lattice = Lattice(6, 6)
        data = np.full((6, 6), 10.0)
        u, v = np.zeros((6, 6)), np.zeros((6, 6))
        p = HGMRFParams(sigma_sq=1.0, alpha=0.01, gamma_sq=0.1)
        for _ in range(50):
            joint_sweep(lattice, u, v, data, p)
        assert np.all(u > 5.0)
        assert np.all(u <= 10.0 + 1e-9)


class TestHGMRFSolver:
    def test_constant_pair_fixed_mode(self, constant_pair):
        lattice = Lattice.from_images(*constant_pair)
        history = HGMRF(HGMRFParams(is_learning=False)).run(lattice)
        assert history[-1].task == Task.CONVERGED
        assert history[-1].iteration <= 100
        assert len(history) >= 2

    def test_fixed_mode_matches_gmrf_estimate(self, step_pair):
        common = dict(is_learning=False, sigma_sq=10.0, alpha=0.01)
        gmrf_lattice = Lattice.from_images(*step_pair)
        hgmrf_lattice = Lattice.from_images(*step_pair)
        GMRF(GMRFParams(**common)).run(gmrf_lattice)
        HGMRF(HGMRFParams(**common)).run(hgmrf_lattice)
        np.testing.assert_allclose(hgmrf_lattice.current, gmrf_lattice.current)

    def test_learning_likelihood_does_not_decrease(self):
        # The trajectory is deterministic, so the run truncated at k iterations
        # reports the likelihood of iteration k. The peak detector needs two
        # full windows and cannot stop a run before iteration 9.
        pair = make_flat_pair()
        energies = []
        for max_iter in range(1, 9):
            history = HGMRF(HGMRFParams(max_iter=max_iter)).run(Lattice.from_images(*pair))
            assert history[-1].task == Task.STABLE
            energies.append(history[-1].energy)
        assert len(energies) >= 2
        assert np.isfinite(energies).all()
        for previous, current in zip(energies, energies[1:]):
            assert current >= previous - 1e-5

    def test_learning_report_sequence(self):
        lattice = Lattice.from_images(*make_flat_pair(size=16))
        solver = HGMRF(HGMRFParams(max_iter=3))
        history = solver.run(lattice)
        assert history[0].task == Task.INITIALIZING
        assert history[1].task == Task.MAP_OPTIMIZATION
        assert history[2].task == Task.PARAMETER_ESTIMATION
        assert history[-1].task in (Task.STABLE, Task.OPTIMAL_PEAK_FOUND)
        learned = solver.learned_param
        assert learned.gamma_sq >= 1e-18
        assert learned.sigma_sq >= 0.1
        assert np.isfinite([learned.lambda_, learned.alpha, learned.gamma_sq, learned.sigma_sq]).all()
