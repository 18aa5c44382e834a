"""Tests for the numeric guard helpers."""

from __future__ import annotations

import numpy as np
import pytest

from mrf_denoise.utils import EPSILON, IntegrityError, check_integrity, clamp_and_round, safe_denom


class TestSafeDenom:
    def test_large_values_pass_through(self):
        assert safe_denom(5.0) == 5.0
        assert safe_denom(-3.5) == -3.5

    def test_zero_is_positive(self):
        assert safe_denom(0.0) == EPSILON

    def test_negative_zero_is_positive(self):
        assert safe_denom(-0.0) == EPSILON

    def test_tiny_values_keep_sign(self):
        assert safe_denom(1e-14) == EPSILON
        assert safe_denom(-1e-14) == -EPSILON

    def test_array_input(self):
        out = safe_denom(np.array([0.0, -1e-20, 2.0, -7.0]))
        np.testing.assert_array_equal(out, [EPSILON, -EPSILON, 2.0, -7.0])

    def test_scalar_returns_float(self):
        assert isinstance(safe_denom(0.0), float)


class TestClampAndRound:
    @pytest.mark.parametrize(
        "value, expected",
        [(-3.0, 0), (0.49, 0), (2.5, 3), (127.5, 128), (254.5, 255), (300.0, 255)],
    )
    def test_scalar(self, value, expected):
        assert clamp_and_round(value) == expected

    def test_array_is_uint8(self):
        out = clamp_and_round(np.array([[-1.0, 0.5], [100.4, 1000.0]]))
        assert out.dtype == np.uint8
        np.testing.assert_array_equal(out, [[0, 1], [100, 255]])

    def test_every_byte_is_unchanged(self):
        values = np.arange(256)
        np.testing.assert_array_equal(clamp_and_round(values.astype(np.float64)), values)
        for v in range(256):
            assert clamp_and_round(float(v)) == v


class TestCheckIntegrity:
    def test_exact_transfer_passes(self):
        data = np.array([0, 17, 255], dtype=np.uint8)
        check_integrity(data, data.astype(np.float64))

    def test_rounding_tolerated(self):
        check_integrity(np.array([1, 2, 3], dtype=np.uint8), np.array([1.2, 1.9, 3.4]))

    def test_value_mismatch_raises(self):
        with pytest.raises(IntegrityError):
            check_integrity(np.array([1, 2, 3], dtype=np.uint8), np.array([1.0, 2.0, 4.0]))

    def test_size_mismatch_raises(self):
        with pytest.raises(IntegrityError):
            check_integrity(np.array([1, 2, 3], dtype=np.uint8), np.array([1.0, 2.0]))

    def test_is_runtime_error(self):
        assert issubclass(IntegrityError, RuntimeError)
