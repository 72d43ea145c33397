"""
test_orientation_field.py
=========================

Construction‑time invariants of the field grid: cluster remapping, initial
orientation, dimension checks and the double‑buffer contract.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from kernels import HALF_PI
from orientation_field import Cell, build_field, initial_angle, remap_clusters


def make_inputs(h: int = 4, w: int = 5, seed: int = 3):
    rng = np.random.default_rng(seed)
    dx = rng.normal(0, 10, size=(h, w))
    dy = rng.normal(0, 10, size=(h, w))
    labels = rng.integers(100, 103, size=(h, w))
    return dx, dy, labels


# --------------------------------------------------------------------------- #
# Cluster remapping
# --------------------------------------------------------------------------- #
class TestRemapClusters:

    def test_first_appearance_order(self):
        dense, k = remap_clusters(np.array([[7, 7, -3], [42, -3, 7]]))
        assert k == 3
        assert dense.tolist() == [[0, 0, 1], [2, 1, 0]]

    def test_dense_ids_are_valid_indices(self):
        _, _, labels = make_inputs()
        dense, k = remap_clusters(labels)
        assert dense.min() == 0
        assert dense.max() == k - 1
        assert len(np.unique(dense)) == k

    def test_integral_floats_accepted(self):
        dense, k = remap_clusters(np.array([[2.0, 5.0]]))
        assert k == 2
        assert dense.tolist() == [[0, 1]]

    def test_fractional_labels_rejected(self):
        with pytest.raises(ValueError):
            remap_clusters(np.array([[0.5, 1.0]]))

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            remap_clusters(np.zeros((0, 3), dtype=int))


# --------------------------------------------------------------------------- #
# Initial orientation
# --------------------------------------------------------------------------- #
class TestInitialAngle:

    def test_matches_arctangent_of_slope(self):
        dx = np.array([[1.0, -2.0, 0.5]])
        dy = np.array([[1.0, 3.0, -4.0]])
        expected = np.arctan(-dx / dy)
        assert np.allclose(initial_angle(dx, dy), expected)

    def test_vertical_slope_is_half_pi(self):
        out = initial_angle(np.array([[1.0, -1.0]]), np.array([[0.0, 0.0]]))
        assert np.allclose(out, HALF_PI)

    def test_zero_gradient_is_zero(self):
        assert initial_angle(np.zeros((1, 1)), np.zeros((1, 1)))[0, 0] == 0.0


# --------------------------------------------------------------------------- #
# build_field
# --------------------------------------------------------------------------- #
class TestBuildField:

    def test_defaults_from_gradient(self):
        dx, dy, labels = make_inputs()
        field = build_field(dx, dy, labels)

        assert field.shape == dx.shape
        assert field.n_clusters == len(np.unique(labels))
        assert np.allclose(field.magnitude, np.hypot(dx, dy))
        assert np.allclose(field.original_magnitude, field.magnitude)
        assert np.all(field.angle > -HALF_PI) and np.all(field.angle <= HALF_PI)

    def test_supplied_angles_are_wrapped(self):
        dx, dy, labels = make_inputs(1, 3)
        field = build_field(dx, dy, labels, angle=np.array([[math.pi, -HALF_PI, 0.25]]))
        assert np.allclose(field.angle, [[0.0, HALF_PI, 0.25]])

    def test_dimension_mismatch_gradient(self):
        dx, dy, labels = make_inputs()
        with pytest.raises(ValueError, match="dimension mismatch"):
            build_field(dx, dy[:, :-1], labels)

    def test_dimension_mismatch_labels(self):
        dx, dy, labels = make_inputs()
        with pytest.raises(ValueError, match="dimension mismatch"):
            build_field(dx, dy, labels[:-1])

    def test_empty_grid_rejected(self):
        with pytest.raises(ValueError, match="positive size"):
            build_field(np.zeros((0, 4)), np.zeros((0, 4)), np.zeros((0, 4), dtype=int))

    def test_negative_magnitude_rejected(self):
        dx, dy, labels = make_inputs(2, 2)
        with pytest.raises(ValueError, match=">= 0"):
            build_field(dx, dy, labels, magnitude=-np.ones((2, 2)))

    def test_non_finite_gradient_rejected(self):
        dx, dy, labels = make_inputs(2, 2)
        dx[0, 0] = np.nan
        with pytest.raises(ValueError, match="finite"):
            build_field(dx, dy, labels)

    def test_provenance_is_read_only(self):
        field = build_field(*make_inputs())
        with pytest.raises(ValueError):
            field.cluster[0, 0] = 5
        with pytest.raises(ValueError):
            field.original_magnitude[0, 0] = 1.0

    def test_cell_view(self):
        dx, dy, labels = make_inputs()
        field = build_field(dx, dy, labels)
        cell = field.cell(1, 2)
        assert isinstance(cell, Cell)
        assert cell.position == (1, 2)
        assert cell.dx == pytest.approx(dx[1, 2])
        assert cell.magnitude == pytest.approx(math.hypot(dx[1, 2], dy[1, 2]))
        assert 0 <= cell.cluster < field.n_clusters


# --------------------------------------------------------------------------- #
# Double buffering
# --------------------------------------------------------------------------- #
class TestDoubleBuffer:

    def test_writes_invisible_until_swap(self):
        field = build_field(*make_inputs())
        before = field.angle.copy()

        field.begin_sweep()
        assert np.array_equal(field.back_angle, before)
        field.back_angle[0, 0] = 0.123
        field.back_magnitude[0, 0] = 9.0
        assert np.array_equal(field.angle, before)

        field.swap()
        assert field.angle[0, 0] == pytest.approx(0.123)
        assert field.magnitude[0, 0] == pytest.approx(9.0)

    def test_original_magnitude_survives_updates(self):
        field = build_field(*make_inputs())
        orig = field.original_magnitude.copy()
        field.begin_sweep()
        field.back_magnitude[...] = 0.0
        field.swap()
        assert np.array_equal(field.original_magnitude, orig)
