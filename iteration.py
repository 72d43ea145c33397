"""
iteration.py
============

Sweep and iteration driver for orientation‑field refinement.

One **sweep** recomputes every pixel from its qualified neighbourhood:

    select_neighbors  →  bilateral_weights  →  weighted_magnitude_mean
                                            →  circular_mean

All reads hit the field's front buffers and all writes go to its back
buffers, so the result of a sweep does not depend on traversal order and
rows can be processed concurrently.

The **driver** runs exactly N sweeps in two phases:

* iterations 0 .. T‑1 – magnitude gate active (strength‑gated admission),
* iterations T .. N‑1 – gate disabled (every same‑cluster window member).

There is no convergence test.

Public API
----------
use_magnitude_gate(iteration, phase_switch) -> bool
update_cell(field, r, c, k, color_image, ignore_magnitude_gate, params, gate) -> bool
sweep(field, k, color_image, ignore_magnitude_gate, params, gate, workers) -> int
iterate(field, color_image, n_iterations, k=7, phase_switch=20, ...) -> OrientationField
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np

from bilateral import BilateralParams, bilateral_weights
from io_utils import timer
from kernels import circular_mean, weighted_magnitude_mean
from neighbors import select_neighbors
from orientation_field import OrientationField

__all__ = ["use_magnitude_gate", "update_cell", "sweep", "iterate"]

logger = logging.getLogger("iteration")
logger.setLevel(logging.INFO)

IterationCallback = Callable[[int, OrientationField], None]


def use_magnitude_gate(iteration: int, phase_switch: int) -> bool:
    """True while *iteration* (0‑based) is still in the strength‑gated phase."""
    return iteration < phase_switch


def update_cell(
    field: OrientationField,
    r: int,
    c: int,
    k: int,
    color_image: np.ndarray,
    ignore_magnitude_gate: bool,
    params: BilateralParams = BilateralParams(),
    gate: str = "original",
) -> bool:
    """
    Recompute angle / magnitude of (r, c) into the back buffers.

    Returns
    -------
    bool
        False when the cell was left unchanged (single candidate).
    """
    neigh = select_neighbors(field, r, c, k, ignore_magnitude_gate, gate)
    if neigh.is_degenerate:
        return False

    weights = bilateral_weights((r, c), neigh.rows, neigh.cols, color_image, params)
    field.back_magnitude[r, c] = weighted_magnitude_mean(neigh.magnitudes, weights)

    # all‑zero gradient strength carries no orientation: keep the prior angle
    if np.any(weights * neigh.magnitudes > 0):
        field.back_angle[r, c] = circular_mean(neigh.angles, weights, neigh.magnitudes)
    return True


def _sweep_rows(
    field: OrientationField,
    row_range: range,
    k: int,
    color_image: np.ndarray,
    ignore_magnitude_gate: bool,
    params: BilateralParams,
    gate: str,
) -> int:
    updated = 0
    cols = field.shape[1]
    for r in row_range:
        for c in range(cols):
            updated += update_cell(field, r, c, k, color_image, ignore_magnitude_gate, params, gate)
    return updated


def sweep(
    field: OrientationField,
    k: int,
    color_image: np.ndarray,
    ignore_magnitude_gate: bool,
    params: BilateralParams = BilateralParams(),
    gate: str = "original",
    workers: int = 1,
) -> int:
    """
    One full pass over the grid; returns the number of updated cells.

    With *workers* > 1 the rows are split into contiguous blocks handled by a
    thread pool.  Each block writes only its own rows of the back buffers, so
    the result does not depend on *workers*.  The per-cell update is Python
    code holding the GIL; extra threads give little or no speedup.
    """
    h = field.shape[0]
    if color_image.shape[:2] != field.shape:
        raise ValueError(
            f"dimension mismatch: field {field.shape} vs color image {color_image.shape[:2]}."
        )
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}.")

    field.begin_sweep()

    if workers == 1 or h == 1:
        updated = _sweep_rows(field, range(h), k, color_image, ignore_magnitude_gate, params, gate)
    else:
        bounds = np.linspace(0, h, min(workers, h) + 1).astype(int)
        blocks = [range(a, b) for a, b in zip(bounds[:-1], bounds[1:])]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(
                    _sweep_rows, field, blk, k, color_image, ignore_magnitude_gate, params, gate
                )
                for blk in blocks
            ]
            # result() re-raises any worker exception
            updated = sum(f.result() for f in futures)

    field.swap()
    return updated


@timer
def iterate(
    field: OrientationField,
    color_image: np.ndarray,
    n_iterations: int,
    k: int = 7,
    phase_switch: int = 20,
    params: BilateralParams = BilateralParams(),
    gate: str = "original",
    workers: int = 1,
    callback: Optional[IterationCallback] = None,
) -> OrientationField:
    """
    Run exactly *n_iterations* sweeps on *field* (in place).

    Parameters
    ----------
    field : OrientationField
        Field to refine.
    color_image : np.ndarray
        Photometric image used by the bilateral weights.
    n_iterations : int
        Total number of sweeps N (>= 0).
    k : int, default 7
        Odd neighbourhood window size.
    phase_switch : int, default 20
        First iteration T that runs without the magnitude gate.
    params : BilateralParams
        Spatial / colour kernel widths.
    gate : {'original', 'snapshot'}
        Magnitude compared by the gate.
    workers : int, default 1
        Threads per sweep (see `sweep`; same result, little speedup).
    callback : callable, optional
        Called as `callback(i, field)` after sweep *i* (0‑based).

    Returns
    -------
    OrientationField
        The same *field*, holding the refined state.
    """
    if n_iterations < 0:
        raise ValueError(f"n_iterations must be >= 0, got {n_iterations}.")
    if phase_switch < 0:
        raise ValueError(f"phase_switch must be >= 0, got {phase_switch}.")

    for i in range(n_iterations):
        gated = use_magnitude_gate(i, phase_switch)
        updated = sweep(
            field,
            k,
            color_image,
            ignore_magnitude_gate=not gated,
            params=params,
            gate=gate,
            workers=workers,
        )
        logger.info(
            f"iter {i + 1}/{n_iterations} ({'gated' if gated else 'ungated'}): "
            f"{updated} cells updated"
        )
        if callback is not None:
            callback(i, field)

    return field
