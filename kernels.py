"""
kernels.py
==========

Stateless numeric primitives for orientation averaging.

Orientations are *undirected* line directions, so they live on a circle of
circumference **π** (θ and θ+π describe the same line).  All angles handled
here are kept in the half‑open interval (‑π/2, π/2].

Public API
----------
gaussian(x, sigma, mean=0.0) -> float | NDArray
wrap_angle(a) -> float | NDArray
weighted_magnitude_mean(magnitudes, weights) -> float
circular_mean(angles, weights, magnitudes=None) -> float

Notes
-----
* `circular_mean` cuts the π‑circle inside its largest empty gap and unwraps
  the points before the cut by +π, so a plain weighted mean no longer sees
  a spurious jump at ±π/2.  Averaging +89° and ‑89° therefore gives ~90°,
  not ~0°.
* Effective weight of an angle is `weight × magnitude`: stronger gradients
  dominate the average.
"""

from __future__ import annotations

import numpy as np
from scipy.stats import norm

__all__ = [
    "HALF_PI",
    "gaussian",
    "wrap_angle",
    "weighted_magnitude_mean",
    "circular_mean",
]

HALF_PI: float = np.pi / 2


def gaussian(x, sigma: float, mean: float = 0.0):
    """
    Normal density `exp(-0.5((x-mean)/sigma)^2) / (sigma·sqrt(2π))`.

    Accepts a scalar or an array *x*; returns the same kind.
    """
    if sigma <= 0:
        raise ValueError(f"sigma must be > 0, got {sigma}.")
    return norm.pdf(x, loc=mean, scale=sigma)


def wrap_angle(a):
    """Map any angle (radians) into (‑π/2, π/2] modulo π."""
    wrapped = HALF_PI - np.mod(HALF_PI - np.asarray(a, dtype=np.float64), np.pi)
    # np.mod can round a tiny negative remainder up to exactly π
    return np.where(wrapped <= -HALF_PI, wrapped + np.pi, wrapped)


def _as_1d(name: str, values) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64).ravel()
    if arr.size == 0:
        raise ValueError(f"{name} must not be empty.")
    return arr


def weighted_magnitude_mean(magnitudes, weights) -> float:
    """
    Weighted arithmetic mean `Σ w·m / Σ w`.

    Raises
    ------
    ValueError
        On empty / mismatched input or when the weights sum to zero.
    """
    m = _as_1d("magnitudes", magnitudes)
    w = _as_1d("weights", weights)
    if m.shape != w.shape:
        raise ValueError("magnitudes and weights must have the same length.")

    total = w.sum()
    if not total > 0:
        raise ValueError("weights must have a positive sum.")
    return float(np.dot(w, m) / total)


def _cut_index(sorted_angles: np.ndarray) -> int:
    """
    Index right after the largest gap on the π‑circle.

    Cutting at index *i* gives the contiguous span
    `a[i-1] + π - a[i]` (and `a[-1] - a[0]` for i = 0, i.e. no cut).
    The smallest span is the cut through the largest gap; ties keep the
    earliest index.
    """
    best_idx = 0
    best_span = sorted_angles[-1] - sorted_angles[0]
    for i in range(1, sorted_angles.size):
        span = sorted_angles[i - 1] + np.pi - sorted_angles[i]
        if span < best_span:
            best_span = span
            best_idx = i
    return best_idx


def circular_mean(angles, weights, magnitudes=None) -> float:
    """
    Weighted mean of undirected orientations (period π).

    Parameters
    ----------
    angles : array_like
        Orientations in (‑π/2, π/2].
    weights : array_like
        Non‑negative per‑angle weights (e.g. bilateral weights).
    magnitudes : array_like, optional
        Gradient strengths multiplied into the weights; defaults to 1.

    Returns
    -------
    float
        Mean orientation in (‑π/2, π/2].

    Raises
    ------
    ValueError
        On empty / mismatched input or zero total effective weight.
    """
    a = wrap_angle(_as_1d("angles", angles))
    w = _as_1d("weights", weights)
    m = np.ones_like(a) if magnitudes is None else _as_1d("magnitudes", magnitudes)
    if not (a.shape == w.shape == m.shape):
        raise ValueError("angles, weights and magnitudes must have the same length.")

    order = np.argsort(a, kind="stable")
    a, eff = a[order], (w * m)[order]

    total = eff.sum()
    if not total > 0:
        raise ValueError("effective weights (weight x magnitude) must have a positive sum.")

    cut = _cut_index(a)
    unwrapped = a.copy()
    unwrapped[:cut] += np.pi

    mean = float(np.dot(eff, unwrapped) / total)
    return float(wrap_angle(mean))
