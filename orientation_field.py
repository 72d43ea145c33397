"""
orientation_field.py
====================

Per‑pixel data model for the refinement engine.

The grid is stored as parallel 2‑D numpy arrays (one per attribute) rather
than as a matrix of records.  `OrientationField.cell(r, c)` gives a
record view of a single position when one is needed.

Provenance arrays (`cluster`, `dx`, `dy`, `original_magnitude`) are fixed at
construction.  The refined state (`angle`, `magnitude`) is double buffered:

* **front** – read snapshot of the current sweep (`field.angle`,
  `field.magnitude`),
* **back**  – write target of the current sweep (`field.back_angle`,
  `field.back_magnitude`).

A sweep calls `begin_sweep()` (back ← front), writes cells into the back
buffers, then `swap()` publishes them.  No cell ever reads a value written
during the same sweep.

Public API
----------
Cell
OrientationField
remap_clusters(labels) -> (dense_labels, n_clusters)
initial_angle(dx, dy) -> NDArray
build_field(dx, dy, labels, magnitude=None, angle=None) -> OrientationField
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from kernels import wrap_angle

__all__ = [
    "Cell",
    "OrientationField",
    "remap_clusters",
    "initial_angle",
    "build_field",
]

Coord = Tuple[int, int]


@dataclass(slots=True, frozen=True)
class Cell:
    """Read‑only view of one grid position."""
    position: Coord
    cluster: int
    dx: float
    dy: float
    angle: float
    magnitude: float


class OrientationField:
    """Rectangular grid of orientation cells with double‑buffered state."""

    __slots__ = (
        "cluster",
        "dx",
        "dy",
        "original_magnitude",
        "n_clusters",
        "_angle",
        "_magnitude",
        "_front",
    )

    def __init__(
        self,
        cluster: np.ndarray,
        dx: np.ndarray,
        dy: np.ndarray,
        magnitude: np.ndarray,
        angle: np.ndarray,
        n_clusters: int,
    ) -> None:
        self.cluster = cluster
        self.dx = dx
        self.dy = dy
        self.original_magnitude = magnitude.copy()
        self.n_clusters = n_clusters

        self._angle = [angle.copy(), angle.copy()]
        self._magnitude = [magnitude.copy(), magnitude.copy()]
        self._front = 0

        for arr in (self.cluster, self.dx, self.dy, self.original_magnitude):
            arr.setflags(write=False)

    # ------------------------------------------------------------------ #
    # Buffers
    # ------------------------------------------------------------------ #
    @property
    def shape(self) -> Coord:
        return self.cluster.shape  # type: ignore[return-value]

    @property
    def angle(self) -> np.ndarray:
        return self._angle[self._front]

    @property
    def magnitude(self) -> np.ndarray:
        return self._magnitude[self._front]

    @property
    def back_angle(self) -> np.ndarray:
        return self._angle[1 - self._front]

    @property
    def back_magnitude(self) -> np.ndarray:
        return self._magnitude[1 - self._front]

    def begin_sweep(self) -> None:
        """Seed the write buffers with the current state."""
        np.copyto(self.back_angle, self.angle)
        np.copyto(self.back_magnitude, self.magnitude)

    def swap(self) -> None:
        """Publish the write buffers as the new current state."""
        self._front = 1 - self._front

    # ------------------------------------------------------------------ #
    # Record view
    # ------------------------------------------------------------------ #
    def cell(self, r: int, c: int) -> Cell:
        return Cell(
            position=(r, c),
            cluster=int(self.cluster[r, c]),
            dx=float(self.dx[r, c]),
            dy=float(self.dy[r, c]),
            angle=float(self.angle[r, c]),
            magnitude=float(self.magnitude[r, c]),
        )

    def __repr__(self) -> str:
        h, w = self.shape
        return f"OrientationField({h}x{w}, clusters={self.n_clusters})"


# --------------------------------------------------------------------------- #
# Construction helpers
# --------------------------------------------------------------------------- #
def remap_clusters(labels: np.ndarray) -> Tuple[np.ndarray, int]:
    """
    Normalise arbitrary integer labels to dense ids 0..K‑1.

    Ids are assigned in order of first appearance in a row‑major scan.
    """
    lbl = np.asarray(labels)
    if lbl.size == 0:
        raise ValueError("label matrix must not be empty.")
    if not np.issubdtype(lbl.dtype, np.integer):
        if not np.all(np.isfinite(lbl)) or np.any(lbl != np.round(lbl)):
            raise ValueError("cluster labels must be integers.")
        lbl = lbl.astype(np.int64)

    flat = lbl.ravel()
    uniq, first_idx, inverse = np.unique(flat, return_index=True, return_inverse=True)
    # rank unique labels by where they first occur
    order = np.argsort(first_idx, kind="stable")
    rank = np.empty(len(uniq), dtype=np.int32)
    rank[order] = np.arange(len(uniq), dtype=np.int32)
    dense = rank[inverse.ravel()].reshape(lbl.shape)
    return dense, len(uniq)


def initial_angle(dx: np.ndarray, dy: np.ndarray) -> np.ndarray:
    """
    Line orientation `atan(-dx/dy)` taken modulo π into (‑π/2, π/2].

    Evaluated as `arctan2(-dx, dy)` so that dy = 0 gives π/2 and a zero
    gradient gives 0 instead of a division error.
    """
    return wrap_angle(np.arctan2(-np.asarray(dx, np.float64), np.asarray(dy, np.float64)))


def _check_2d(name: str, arr: np.ndarray) -> None:
    if arr.ndim != 2:
        raise ValueError(f"{name} must be 2‑D, got shape {arr.shape}.")
    if arr.shape[0] <= 0 or arr.shape[1] <= 0:
        raise ValueError(f"{name} must have a positive size, got shape {arr.shape}.")


def build_field(
    dx: np.ndarray,
    dy: np.ndarray,
    labels: np.ndarray,
    magnitude: np.ndarray | None = None,
    angle: np.ndarray | None = None,
) -> OrientationField:
    """
    Construct an `OrientationField` from a gradient field and a cluster map.

    Parameters
    ----------
    dx, dy : np.ndarray
        Horizontal / vertical derivative images (HxW).
    labels : np.ndarray
        Integer cluster labels (HxW); arbitrary values, remapped to 0..K‑1.
    magnitude : np.ndarray, optional
        Initial gradient strength; defaults to `hypot(dx, dy)`.
    angle : np.ndarray, optional
        Initial orientation; defaults to `initial_angle(dx, dy)`.  Supplied
        values are wrap‑normalised into (‑π/2, π/2].

    Raises
    ------
    ValueError
        Empty grid, mismatched dimensions, non‑finite values, negative
        magnitude or non‑integer labels.
    """
    dx = np.asarray(dx, dtype=np.float64)
    dy = np.asarray(dy, dtype=np.float64)
    labels = np.asarray(labels)

    _check_2d("dx", dx)
    if dy.shape != dx.shape:
        raise ValueError(f"dimension mismatch: dx {dx.shape} vs dy {dy.shape}.")
    if labels.shape != dx.shape:
        raise ValueError(f"dimension mismatch: gradient {dx.shape} vs labels {labels.shape}.")
    if not (np.all(np.isfinite(dx)) and np.all(np.isfinite(dy))):
        raise ValueError("gradient components must be finite.")

    if magnitude is None:
        magnitude = np.hypot(dx, dy)
    else:
        magnitude = np.asarray(magnitude, dtype=np.float64)
        if magnitude.shape != dx.shape:
            raise ValueError(f"dimension mismatch: gradient {dx.shape} vs magnitude {magnitude.shape}.")
        if not np.all(np.isfinite(magnitude)):
            raise ValueError("magnitude must be finite.")
        if np.any(magnitude < 0):
            raise ValueError("magnitude must be >= 0.")

    if angle is None:
        angle = initial_angle(dx, dy)
    else:
        angle = np.asarray(angle, dtype=np.float64)
        if angle.shape != dx.shape:
            raise ValueError(f"dimension mismatch: gradient {dx.shape} vs angle {angle.shape}.")
        if not np.all(np.isfinite(angle)):
            raise ValueError("angle must be finite.")
        angle = wrap_angle(angle)

    cluster, n_clusters = remap_clusters(labels)

    return OrientationField(
        cluster=cluster,
        dx=dx.copy(),
        dy=dy.copy(),
        magnitude=magnitude,
        angle=angle,
        n_clusters=n_clusters,
    )
