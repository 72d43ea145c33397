"""
neighbors.py
============

Cluster‑ and strength‑constrained neighbour selection.

For a centre pixel p = (r, c) the candidate set is every pixel in the
k×k window around p (clipped to the grid) that

1. belongs to the same cluster as p, and
2. unless the magnitude gate is disabled, has a gate magnitude ≥ that of p.

The gate biases averaging toward equal‑or‑stronger neighbours, so weak
surrounding noise does not blur strong ridges.  p itself always qualifies,
so the candidate set is never empty on a valid field.

All reads target the *front* (snapshot) buffers of the field.

Public API
----------
GATE_SOURCES
NeighborSet
window_bounds(r, c, k, shape) -> (r0, r1, c0, c1)
select_neighbors(field, r, c, k, ignore_magnitude_gate=False,
                 gate="original") -> NeighborSet
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from orientation_field import OrientationField

__all__ = ["GATE_SOURCES", "NeighborSet", "window_bounds", "select_neighbors"]

# "original": magnitude at construction time; "snapshot": previous sweep
GATE_SOURCES = ("original", "snapshot")


@dataclass(slots=True)
class NeighborSet:
    """Parallel arrays describing the qualified neighbours of one pixel."""
    rows: np.ndarray
    cols: np.ndarray
    angles: np.ndarray
    magnitudes: np.ndarray

    @property
    def size(self) -> int:
        return int(self.rows.size)

    @property
    def is_degenerate(self) -> bool:
        return self.size == 1


def window_bounds(r: int, c: int, k: int, shape: Tuple[int, int]) -> Tuple[int, int, int, int]:
    """Inclusive (r0, r1, c0, c1) of the k×k window clipped to *shape*."""
    if k < 1 or k % 2 == 0:
        raise ValueError(f"window size must be odd and >= 1, got {k}.")
    h, w = shape
    half = k // 2
    return max(0, r - half), min(h - 1, r + half), max(0, c - half), min(w - 1, c + half)


def select_neighbors(
    field: OrientationField,
    r: int,
    c: int,
    k: int,
    ignore_magnitude_gate: bool = False,
    gate: str = "original",
) -> NeighborSet:
    """
    Collect the qualified neighbours of (r, c).

    Parameters
    ----------
    field : OrientationField
        Field whose front buffers hold the previous sweep's state.
    r, c : int
        Centre pixel.
    k : int
        Odd window size.
    ignore_magnitude_gate : bool, default False
        If True, every same‑cluster window member qualifies.
    gate : {'original', 'snapshot'}, default 'original'
        Which magnitude the gate compares.

    Returns
    -------
    NeighborSet
        Candidates in row‑major window order (centre included).
    """
    if gate not in GATE_SOURCES:
        raise ValueError(f"Unknown gate source: {gate}. Available: {list(GATE_SOURCES)}")

    r0, r1, c0, c1 = window_bounds(r, c, k, field.shape)
    win = (slice(r0, r1 + 1), slice(c0, c1 + 1))

    mask = field.cluster[win] == field.cluster[r, c]
    if not ignore_magnitude_gate:
        gate_mag = field.original_magnitude if gate == "original" else field.magnitude
        mask &= gate_mag[win] >= gate_mag[r, c]

    local_r, local_c = np.nonzero(mask)
    if local_r.size == 0:
        raise ValueError(f"no qualified neighbour for pixel ({r}, {c}).")

    rows = local_r + r0
    cols = local_c + c0
    return NeighborSet(
        rows=rows,
        cols=cols,
        angles=field.angle[rows, cols],
        magnitudes=field.magnitude[rows, cols],
    )
