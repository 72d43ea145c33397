"""
bilateral.py
============

Edge‑aware neighbour weighting.

Each candidate neighbour q of a centre pixel p gets

    w(q) = G_s(‖p − q‖) · G_c(‖I(p) − I(q)‖)

where G_s / G_c are zero‑mean Gaussians (`kernels.gaussian`) over grid
distance and photometric (colour / intensity) distance.  The photometric
image is read‑only and identical for every sweep.

Public API
----------
BilateralParams(spatial_sigma=2.0, color_sigma=10.0)
bilateral_weights(center, rows, cols, color_image, params) -> NDArray[np.float64]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from kernels import gaussian

__all__ = ["BilateralParams", "bilateral_weights"]


@dataclass(slots=True, frozen=True)
class BilateralParams:
    spatial_sigma: float = 2.0
    color_sigma: float = 10.0

    def __post_init__(self) -> None:
        if self.spatial_sigma <= 0 or self.color_sigma <= 0:
            raise ValueError(
                f"bilateral sigmas must be > 0, got spatial={self.spatial_sigma}, "
                f"color={self.color_sigma}."
            )


def bilateral_weights(
    center: Tuple[int, int],
    rows: np.ndarray,
    cols: np.ndarray,
    color_image: np.ndarray,
    params: BilateralParams = BilateralParams(),
) -> np.ndarray:
    """
    Weight every candidate position against *center*.

    Parameters
    ----------
    center : tuple[int, int]
        (row, col) of the pixel being updated.
    rows, cols : np.ndarray
        Candidate coordinates (1‑D, same length).
    color_image : np.ndarray
        HxW intensity or HxWxC colour image.
    params : BilateralParams
        Kernel widths.

    Returns
    -------
    np.ndarray
        float64 weights, one per candidate (new array, inputs untouched).
    """
    rows = np.asarray(rows)
    cols = np.asarray(cols)
    r, c = center

    spatial_dist = np.hypot(rows - r, cols - c)

    center_color = np.asarray(color_image[r, c], dtype=np.float64)
    neigh_color = color_image[rows, cols].astype(np.float64)
    diff = neigh_color - center_color
    if diff.ndim == 1:
        color_dist = np.abs(diff)
    else:
        color_dist = np.linalg.norm(diff, axis=-1)

    return gaussian(spatial_dist, params.spatial_sigma) * gaussian(color_dist, params.color_sigma)
