"""
test_kernels.py
===============

Unit tests for the stateless numeric primitives: Gaussian kernel, angle
wrapping, weighted magnitude mean and the π‑periodic circular mean.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from kernels import (
    HALF_PI,
    circular_mean,
    gaussian,
    weighted_magnitude_mean,
    wrap_angle,
)


def deg(x: float) -> float:
    return math.radians(x)


def in_domain(a) -> bool:
    a = np.asarray(a)
    return bool(np.all(a > -HALF_PI) and np.all(a <= HALF_PI))


# --------------------------------------------------------------------------- #
# Gaussian
# --------------------------------------------------------------------------- #
class TestGaussian:

    def test_peak_value(self):
        assert gaussian(0.0, 1.0) == pytest.approx(1.0 / math.sqrt(2 * math.pi))
        assert gaussian(0.0, 2.0) == pytest.approx(1.0 / (2.0 * math.sqrt(2 * math.pi)))

    def test_formula_with_mean(self):
        x, sigma, mean = 3.0, 1.5, 1.0
        expected = math.exp(-0.5 * ((x - mean) / sigma) ** 2) / (sigma * math.sqrt(2 * math.pi))
        assert gaussian(x, sigma, mean) == pytest.approx(expected)

    def test_symmetric_and_vectorised(self):
        out = gaussian(np.array([-2.0, 0.0, 2.0]), 2.0)
        assert out.shape == (3,)
        assert out[0] == pytest.approx(out[2])
        assert out[1] > out[0]

    def test_rejects_non_positive_sigma(self):
        with pytest.raises(ValueError):
            gaussian(1.0, 0.0)


# --------------------------------------------------------------------------- #
# Angle wrapping
# --------------------------------------------------------------------------- #
class TestWrapAngle:

    @pytest.mark.parametrize(
        "angle, expected",
        [
            (0.0, 0.0),
            (HALF_PI, HALF_PI),
            (-HALF_PI, HALF_PI),
            (math.pi, 0.0),
            (3 * math.pi / 4, -math.pi / 4),
            (-3 * math.pi / 4, math.pi / 4),
        ],
    )
    def test_known_values(self, angle, expected):
        assert float(wrap_angle(angle)) == pytest.approx(expected, abs=1e-12)

    def test_array_stays_in_domain(self):
        rng = np.random.default_rng(0)
        a = rng.uniform(-10, 10, size=1000)
        w = wrap_angle(a)
        assert in_domain(w)
        assert np.allclose(np.cos(2 * w), np.cos(2 * a))

    def test_values_just_above_half_pi(self):
        w = wrap_angle(np.nextafter(HALF_PI, 10.0))
        assert in_domain(w)


# --------------------------------------------------------------------------- #
# Weighted magnitude mean
# --------------------------------------------------------------------------- #
class TestWeightedMagnitudeMean:

    def test_uniform_weights(self):
        assert weighted_magnitude_mean([1.0, 3.0], [1.0, 1.0]) == pytest.approx(2.0)

    def test_weighted(self):
        assert weighted_magnitude_mean([1.0, 4.0], [3.0, 1.0]) == pytest.approx(7.0 / 4.0)

    def test_zero_weights_rejected(self):
        with pytest.raises(ValueError):
            weighted_magnitude_mean([1.0, 2.0], [0.0, 0.0])

    def test_length_mismatch_rejected(self):
        with pytest.raises(ValueError):
            weighted_magnitude_mean([1.0, 2.0], [1.0])

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            weighted_magnitude_mean([], [])


# --------------------------------------------------------------------------- #
# Circular mean
# --------------------------------------------------------------------------- #
class TestCircularMean:

    def test_seam_average_is_vertical(self):
        """+89° and ‑89° are 2° apart across the seam: mean is ~90°, not ~0°."""
        result = circular_mean([deg(89), deg(-89)], [1.0, 1.0])
        assert in_domain(result)
        assert result == pytest.approx(HALF_PI)

    @pytest.mark.parametrize("theta", [0.0, 0.3, -1.2, HALF_PI, -HALF_PI + 0.01])
    def test_single_entry_identity(self, theta):
        assert circular_mean([theta], [0.7]) == pytest.approx(theta, abs=1e-12)

    def test_plain_mean_without_wrap(self):
        assert circular_mean([0.1, 0.3], [1.0, 1.0]) == pytest.approx(0.2)

    def test_magnitudes_scale_weights(self):
        result = circular_mean([0.1, 0.3], [1.0, 1.0], magnitudes=[3.0, 1.0])
        assert result == pytest.approx(0.15)

    def test_magnitude_weighted_across_seam(self):
        # ‑80° unwraps to 100°; (100·1 + 80·3) / 4 = 85°
        result = circular_mean([deg(80), deg(-80)], [1.0, 1.0], magnitudes=[3.0, 1.0])
        assert result == pytest.approx(deg(85))

    def test_mean_past_half_pi_wraps_negative(self):
        # ‑70° → 110°; (110 + 80) / 2 = 95° → ‑85°
        result = circular_mean([deg(80), deg(-70)], [1.0, 1.0])
        assert result == pytest.approx(deg(-85))
        assert in_domain(result)

    def test_order_independent(self):
        angles = np.array([deg(85), deg(-88), deg(70), deg(-60)])
        weights = np.array([1.0, 2.0, 0.5, 1.5])
        ref = circular_mean(angles, weights)
        perm = [2, 0, 3, 1]
        assert circular_mean(angles[perm], weights[perm]) == pytest.approx(ref)

    def test_zero_effective_weight_rejected(self):
        with pytest.raises(ValueError):
            circular_mean([0.1, 0.2], [1.0, 1.0], magnitudes=[0.0, 0.0])

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            circular_mean([], [])

    def test_random_inputs_stay_in_domain(self):
        rng = np.random.default_rng(7)
        for _ in range(200):
            n = int(rng.integers(1, 10))
            a = wrap_angle(rng.uniform(-HALF_PI, HALF_PI, size=n))
            w = rng.uniform(0.01, 1.0, size=n)
            assert in_domain(circular_mean(a, w))
