"""
gradients.py
============

Scharr gradient field for the refinement engine.

Input
-----
Gray‑scale image (numpy.ndarray, dtype uint8 or float32/float64, HxW).

Output
------
`GradientField` with float32 derivative images `dx`, `dy`, the gradient
magnitude `sqrt(dx² + dy²)` and the initial line orientation
`atan(-dx/dy)` wrapped into (‑π/2, π/2].

The orientation is that of the *iso‑intensity line* (perpendicular to the
gradient), the natural direction for ridges / texture strokes.
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from io_utils import timer
from orientation_field import initial_angle

__all__ = ["GradientField", "scharr_gradients"]


@dataclass(slots=True)
class GradientField:
    dx: np.ndarray
    dy: np.ndarray
    magnitude: np.ndarray
    angle: np.ndarray


def _validate_input(img: np.ndarray) -> None:
    if img.dtype not in (np.uint8, np.float32, np.float64):
        raise ValueError("Input image must be dtype uint8, float32 or float64.")
    if img.ndim != 2:
        raise ValueError("Input image must be single-channel gray (HxW).")
    if img.size == 0:
        raise ValueError("Input image must not be empty.")


@timer
def scharr_gradients(img: np.ndarray) -> GradientField:
    """
    Compute Scharr derivatives, magnitude and initial orientation.

    Parameters
    ----------
    img : np.ndarray
        Gray‑scale input image (HxW).

    Returns
    -------
    GradientField
        dx, dy, magnitude (float32) and angle (float64, radians).
    """
    _validate_input(img)

    grad_x = cv2.Scharr(img, ddepth=cv2.CV_32F, dx=1, dy=0)
    grad_y = cv2.Scharr(img, ddepth=cv2.CV_32F, dx=0, dy=1)
    magnitude = cv2.magnitude(grad_x, grad_y)

    return GradientField(
        dx=grad_x,
        dy=grad_y,
        magnitude=magnitude,
        angle=initial_angle(grad_x, grad_y),
    )
