"""
io_utils.py
===========

Shared file helpers and the stage timer used across orient_refine.

Contents
--------
* PROJECT_ROOT / RESULTS_DIR - checkout root and the default per-run output
  folder `<root>/results/<YYYYmmdd_HHMMSS>` (only created on first write).
* read_image / save_image - cv2 wrappers; gray or BGR uint8 in, PNG/TIFF out.
* save_matrix / load_matrix - plain-text matrices behind a `rows cols`
  header line (cluster labels, exported angle / magnitude fields).
* @timer - per-stage wall-clock, logged and accumulated into TIMINGS for
  the run.txt summary.
"""

from __future__ import annotations

import logging
import time
import warnings
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Callable, TypeVar

import cv2
import numpy as np

__all__ = [
    "PROJECT_ROOT",
    "RESULTS_DIR",
    "TIMINGS",
    "ensure_dir",
    "read_image",
    "save_image",
    "save_matrix",
    "load_matrix",
    "reset_timings",
    "timer",
]

# --------------------------------------------------------------------------- #
# Path management
# --------------------------------------------------------------------------- #

PROJECT_ROOT: Path = Path(__file__).resolve().parent

# Timestamped results directory (e.g. results/20250729_143015)
_RESULTS_STAMP: str = datetime.now().strftime("%Y%m%d_%H%M%S")
RESULTS_DIR: Path = PROJECT_ROOT / "results" / _RESULTS_STAMP

# timing tracker for log file (run.txt)
TIMINGS: dict[str, float] = {}


def ensure_dir(p: Path) -> Path:
    """Create directory *p* (and parents) if it does not exist. Return *p*."""
    p.mkdir(parents=True, exist_ok=True)
    return p


# --------------------------------------------------------------------------- #
# Image helpers
# --------------------------------------------------------------------------- #


def read_image(path: str | Path, as_gray: bool = True) -> np.ndarray:
    """Read *path* as uint8, single-channel when *as_gray*, else BGR (HxWx3)."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    flag = cv2.IMREAD_GRAYSCALE if as_gray else cv2.IMREAD_COLOR
    img = cv2.imread(str(p), flag)
    if img is None:
        raise IOError(f"cv2 failed to read image: {p}")

    return img


def save_image(img: np.ndarray, path: str | Path) -> Path:
    """
    Write *img* to *path*; the extension picks the codec and missing parent
    folders are created. Float input is taken as [0, 1] and scaled to uint8.
    """
    p = Path(path)
    ensure_dir(p.parent)

    if issubclass(img.dtype.type, np.floating):
        img_to_save = np.clip(img * 255, 0, 255).astype(np.uint8)
    else:
        img_to_save = img

    success = cv2.imwrite(str(p), img_to_save)
    if not success:
        raise IOError(f"cv2 failed to write image: {p}")
    return p


# --------------------------------------------------------------------------- #
# Matrix text files
# --------------------------------------------------------------------------- #


def save_matrix(path: str | Path, matrix: np.ndarray, fmt: str = "%.7g") -> Path:
    """
    Write a 2‑D matrix as text: a `rows cols` header line followed by one
    whitespace‑delimited line per row.
    """
    m = np.asarray(matrix)
    if m.ndim != 2:
        raise ValueError(f"matrix must be 2‑D, got shape {m.shape}.")

    p = Path(path)
    ensure_dir(p.parent)
    rows, cols = m.shape
    np.savetxt(p, m, fmt=fmt, delimiter=" ", header=f"{rows} {cols}", comments="")
    return p


def load_matrix(path: str | Path, dtype: type = float) -> np.ndarray:
    """
    Read a matrix written by `save_matrix` (or any file with the same
    `rows cols` header convention).

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the header is malformed, declares a non‑positive size, or the body
        does not hold exactly rows × cols values, or a value does not parse
        as *dtype* (e.g. a fractional entry in an integer matrix).
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    with p.open() as fh:
        header = fh.readline().split()
    if len(header) != 2:
        raise ValueError(f"{p}: missing 'rows cols' header.")
    try:
        rows, cols = int(header[0]), int(header[1])
    except ValueError as e:
        raise ValueError(f"{p}: header must hold two integers: {e}") from e
    if rows <= 0 or cols <= 0:
        raise ValueError(f"{p}: matrix size must be positive, got {rows}x{cols}.")

    # Kept as text so integer matrices are parsed exactly ("1.5" is rejected).
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)  # empty body
        raw = np.loadtxt(p, dtype=str, skiprows=1, ndmin=2)
    if raw.size != rows * cols:
        raise ValueError(
            f"{p}: expected {rows * cols} values for {rows}x{cols}, found {raw.size}."
        )
    try:
        values = raw.astype(dtype)
    except ValueError as e:
        raise ValueError(f"{p}: non-numeric or non-{np.dtype(dtype).name} value: {e}") from e
    return values.reshape(rows, cols)


# --------------------------------------------------------------------------- #
# Timing decorator
# --------------------------------------------------------------------------- #

_F = TypeVar("_F", bound=Callable[..., object])

logger = logging.getLogger("io_utils")
logger.setLevel(logging.INFO)


def reset_timings() -> None:
    """Erase all stored timing information (useful for tests)."""
    TIMINGS.clear()


def timer(fn: _F) -> _F:
    """Log the runtime of each call to *fn* and add it to TIMINGS[fn.__name__]."""
    @wraps(fn)
    def wrapper(*args, **kwargs):  # type: ignore[override]
        t0 = time.perf_counter()
        out = fn(*args, **kwargs)
        ms = (time.perf_counter() - t0) * 1e3
        TIMINGS[fn.__name__] = TIMINGS.get(fn.__name__, 0.0) + ms
        logger.info("%s took %.2f ms", fn.__name__, ms)
        return out

    return wrapper  # type: ignore[return-value]
