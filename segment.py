"""
segment.py
==========

Cluster label maps for the refinement engine.

The engine only averages pixels that share a cluster id.  Label maps are
normally supplied as text matrices (`rows cols` header + values); when
none is available, `label_regions` derives one from the image itself:

1. quantise the gray levels into *levels* equal‑width bands,
2. label 8‑connected (or 4‑connected) components of equal band
   (`skimage.measure.label`),
3. relabel components smaller than *min_area* pixels to the shared
   residual label 0.

Public API
----------
load_labels(path) -> NDArray[np.int64]
save_labels(path, labels) -> Path
label_regions(gray, levels=8, connectivity=2, min_area=1) -> NDArray[np.int32]
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
from skimage.measure import label, regionprops

from io_utils import load_matrix, save_matrix, timer

__all__ = ["load_labels", "save_labels", "label_regions"]

logger = logging.getLogger("segment")
logger.setLevel(logging.INFO)


def load_labels(path: str | Path) -> np.ndarray:
    """Load an integer label matrix written with the `rows cols` header."""
    return load_matrix(path, dtype=np.int64)


def save_labels(path: str | Path, labels: np.ndarray) -> Path:
    return save_matrix(path, np.asarray(labels, dtype=np.int64), fmt="%d")


@timer
def label_regions(
    gray: np.ndarray,
    levels: int = 8,
    connectivity: int = 2,
    min_area: int = 1,
) -> np.ndarray:
    """
    Intensity‑band connected‑component labelling.

    Parameters
    ----------
    gray : np.ndarray
        2‑D uint8 gray‑scale image.
    levels : int, default 8
        Number of equal‑width intensity bands over [0, 255].
    connectivity : {1, 2}, default 2
        1 → 4‑connected, 2 → 8‑connected components.
    min_area : int, default 1
        Components with fewer pixels are merged into label 0.

    Returns
    -------
    np.ndarray
        int32 label map (HxW); regular components are numbered from 1.
    """
    if gray.ndim != 2:
        raise ValueError("gray must be 2‑D.")
    if gray.dtype != np.uint8:
        raise ValueError("gray must be dtype uint8.")
    if not 1 <= levels <= 256:
        raise ValueError(f"levels must be in [1, 256], got {levels}.")
    if connectivity not in (1, 2):
        raise ValueError(f"connectivity must be 1 or 2, got {connectivity}.")

    band = (gray.astype(np.int32) * levels) // 256
    # label() treats 0 as background, so shift bands to 1..levels
    lbl = label(band + 1, background=0, connectivity=connectivity).astype(np.int32)

    if min_area > 1:
        small = [reg.label for reg in regionprops(lbl) if reg.area < min_area]
        if small:
            lbl[np.isin(lbl, small)] = 0
            logger.info(f"{len(small)} components below {min_area} px merged into label 0")

    logger.info(f"label_regions: {len(np.unique(lbl))} labels over {levels} bands")
    return lbl
