"""
visualize.py
============

False‑colour renderings of an orientation field.

* `angle_to_rgb` – hue‑encoded orientation.  The half‑turn (‑π/2, π/2] is
  spread over the full hue circle [0°, 360°), S = V = 1.  The two ends of
  the domain are the same line direction and both render red; there is no
  seam value without a colour.
* `gradient_image` – raw gradient components + cluster id packed into the
  colour channels (R = dx, G = dy, B = cluster).

Angles outside the domain or non‑finite angles are rejected with
`ValueError` rather than rendered as a fallback colour.

Public API
----------
angle_to_rgb(angles) -> NDArray[np.uint8]           # HxWx3, RGB
gradient_image(field) -> NDArray[np.uint8]          # HxWx3, BGR
save_angle_graph(path, field) -> Path
save_gradient_graph(path, field) -> Path
"""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np

from io_utils import save_image
from kernels import HALF_PI
from orientation_field import OrientationField

__all__ = ["angle_to_rgb", "gradient_image", "save_angle_graph", "save_gradient_graph"]

logger = logging.getLogger("visualize")
logger.setLevel(logging.INFO)


def angle_to_rgb(angles: np.ndarray) -> np.ndarray:
    """
    Map orientations in (‑π/2, π/2] to 8‑bit RGB colours.

    Parameters
    ----------
    angles : np.ndarray
        Orientation map in radians (any shape).

    Returns
    -------
    np.ndarray
        uint8 array of shape `angles.shape + (3,)`, channel order RGB.
    """
    a = np.asarray(angles, dtype=np.float64)
    if not np.all(np.isfinite(a)):
        raise ValueError("angles must be finite.")
    if np.any(a <= -HALF_PI) or np.any(a > HALF_PI):
        raise ValueError("angles must lie in (-pi/2, pi/2].")

    hue = np.mod((a + HALF_PI) / np.pi * 360.0, 360.0)

    hsv = np.ones(a.shape + (3,), dtype=np.float32)
    hsv[..., 0] = hue
    # cvtColor wants a 2‑D image
    flat = hsv.reshape(1, -1, 3)
    rgb = cv2.cvtColor(flat, cv2.COLOR_HSV2RGB).reshape(hsv.shape)

    return np.clip(np.rint(rgb * 255.0), 0, 255).astype(np.uint8)


def gradient_image(field: OrientationField) -> np.ndarray:
    """
    Pack dx / dy / cluster into a BGR image.

    dx and dy are scaled by the largest component value in the field;
    negative components render as 0.  The cluster id is stored modulo 256.
    """
    dx = np.asarray(field.dx, dtype=np.float64)
    dy = np.asarray(field.dy, dtype=np.float64)
    max_grad = max(float(dx.max()), float(dy.max()), 0.0)

    h, w = field.shape
    img = np.zeros((h, w, 3), dtype=np.uint8)
    if max_grad > 0:
        img[..., 2] = np.clip(dx / max_grad * 255.0, 0, 255).astype(np.uint8)
        img[..., 1] = np.clip(dy / max_grad * 255.0, 0, 255).astype(np.uint8)
    img[..., 0] = np.mod(field.cluster, 256).astype(np.uint8)
    return img


def save_angle_graph(path: str | Path, field: OrientationField) -> Path:
    """Write the hue‑encoded orientation of *field* to *path*."""
    rgb = angle_to_rgb(field.angle)
    logger.info(f"saving {path}")
    return save_image(cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR), path)


def save_gradient_graph(path: str | Path, field: OrientationField) -> Path:
    """Write the gradient / cluster rendering of *field* to *path*."""
    logger.info(f"saving {path}")
    return save_image(gradient_image(field), path)
