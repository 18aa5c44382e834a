"""Tests for immutable parameter records and the algorithm configuration API."""

from __future__ import annotations

import dataclasses
import json

import pytest

from mrf_denoise.algorithms import GMRF, HGMRF, LCMRF, TVMRF
from mrf_denoise.algorithms.params import (
    PARAM_FLOOR,
    SIGMA_SQ_FLOOR,
    GMRFParams,
    HGMRFParams,
    LCMRFParams,
    MRFParams,
    TVMRFParams,
)


class TestDefaults:
    def test_gmrf(self):
        p = GMRFParams()
        assert (p.lambda_, p.alpha, p.sigma_sq, p.max_iter, p.is_learning) == (1e-7, 1e-4, 1000.0, 50, True)
        assert (p.eta_lambda, p.eta_alpha) == (1e-12, 5e-7)

    def test_hgmrf(self):
        p = HGMRFParams()
        assert (p.gamma_sq, p.max_iter, p.eta_alpha, p.eta_gamma2) == (1e-3, 100, 5e-8, 5e-8)

    def test_lc_mrf(self):
        p = LCMRFParams()
        assert (p.alpha, p.sigma_sq, p.s, p.epsilon_map) == (5e-3, 10.0, 30.0, 1.0)
        assert (p.n_pri, p.n_post, p.t_hat_max, p.t_dot_max) == (5, 5, 10, 10)
        assert p.seed is None

    def test_tv(self):
        p = TVMRFParams()
        assert (p.alpha, p.sigma_sq, p.is_learning) == (0.5, 100.0, False)


class TestRecords:
    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            GMRFParams().alpha = 1.0

    def test_updated_returns_new_record(self):
        p = GMRFParams()
        q = p.updated(alpha=0.5)
        assert q.alpha == 0.5
        assert p.alpha == 1e-4
        assert isinstance(q, GMRFParams)

    def test_lambda_key_aliases(self):
        p = GMRFParams.from_dict({"lambda": 1e-3, "max_iter": 7})
        assert p.lambda_ == 1e-3
        assert p.max_iter == 7
        data = p.to_dict()
        assert data["lambda"] == 1e-3
        assert "lambda_" not in data
        assert GMRFParams.from_dict(data) == p

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            GMRFParams.from_dict({"gamma_sq": 1.0})

    def test_from_json(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"lambda": 2e-7, "gamma_sq": 0.5}), encoding="utf-8")
        p = HGMRFParams.from_json(path)
        assert p.lambda_ == 2e-7
        assert p.gamma_sq == 0.5

    @pytest.mark.parametrize(
        "cls, changes",
        [
            (GMRFParams, {"max_iter": 0}),
            (LCMRFParams, {"n_pri": 0}),
            (LCMRFParams, {"t_dot_max": 0}),
            (LCMRFParams, {"epsilon_post": 0.0}),
        ],
    )
    def test_validation(self, cls, changes):
        with pytest.raises(ValueError):
            cls(**changes)

    def test_clamped_floors(self):
        p = MRFParams(lambda_=-1.0, alpha=0.0, sigma_sq=0.01).clamped()
        assert p.lambda_ == PARAM_FLOOR
        assert p.alpha == PARAM_FLOOR
        assert p.sigma_sq == SIGMA_SQ_FLOOR

    def test_hgmrf_clamps_gamma(self):
        p = HGMRFParams(gamma_sq=-5.0).clamped()
        assert p.gamma_sq == PARAM_FLOOR
        assert isinstance(p, HGMRFParams)


class TestAlgorithmConfiguration:
    @pytest.mark.parametrize(
        "cls, name",
        [(GMRF, "GMRF"), (HGMRF, "HGMRF"), (LCMRF, "LC-MRF"), (TVMRF, "rTV-MRF")],
    )
    def test_names_and_timer(self, cls, name):
        solver = cls()
        assert solver.get_name() == name
        assert solver.get_timer() == -1

    def test_dict_params(self):
        solver = GMRF({"alpha": 0.2, "is_learning": False})
        assert solver.param.alpha == 0.2
        assert not solver.param.is_learning

    def test_wrong_record_type(self):
        with pytest.raises(TypeError):
            GMRF(TVMRFParams())

    def test_change_and_get_param(self):
        solver = TVMRF()
        solver.change_param({"alpha": 3.0})
        params = dict(solver.get_param())
        assert params["alpha"] == 3.0
        assert params["lambda"] == 1e-7

    def test_import_param_from_file(self, tmp_path):
        path = tmp_path / "lc.json"
        path.write_text(json.dumps({"s": 2.0, "seed": 11}), encoding="utf-8")
        solver = LCMRF()
        solver.import_param_from_file(str(path))
        assert solver.param.s == 2.0
        assert solver.param.seed == 11
