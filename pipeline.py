"""
pipeline.py
===========

High‑level orchestration for the orientation‑field refinement flow.

The `run()` function wires together all previously implemented modules:

1. Read 8‑bit gray image (gradients) and BGR colour image (bilateral weights).
2. Scharr gradients → dx, dy, magnitude, initial orientation.
3. Load the cluster label matrix and check it against the image size.
4. Build the `OrientationField` (labels remapped to 0..K‑1).
5. Save the original magnitude matrix.
6. N refinement sweeps (strength‑gated for the first T, ungated afterwards);
   every `save_step` iterations the current field is exported.
7. Write `run.txt` (parameters + stage timings) to the output folder.

Public API
----------
run(img_path: Path | str,
    labels_path: Path | str,
    cfg: "RefineConfig" | None = None) -> "RefineResult"

`RefineConfig` holds all tunable parameters.  Defaults reproduce the
reference configuration (7×7 window, phase switch after 20 iterations,
spatial σ = 2, colour σ = 10).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from bilateral import BilateralParams
from gradients import scharr_gradients
from io_utils import (
    RESULTS_DIR,
    TIMINGS,
    ensure_dir,
    read_image,
    reset_timings,
    save_matrix,
    timer,
)
from iteration import iterate
from neighbors import GATE_SOURCES
from orientation_field import OrientationField, build_field
from segment import load_labels
from visualize import save_angle_graph, save_gradient_graph

logger = logging.getLogger("pipeline")
logger.setLevel(logging.INFO)


# --------------------------------------------------------------------------- #
# Dataclasses
# --------------------------------------------------------------------------- #
@dataclass(slots=True)
class RefineConfig:
    # Iteration schedule
    iterations: int = 40
    save_step: int = 10         # export every S iterations; 0 → final only
    phase_switch: int = 20      # first ungated iteration

    # Neighbourhood
    window_size: int = 7
    gate: str = "original"      # 'original' | 'snapshot'

    # Bilateral kernel widths
    spatial_sigma: float = 2.0
    color_sigma: float = 10.0

    # Execution
    workers: int = 1

    # Output
    out_dir: Optional[Path] = None  # None → results/<timestamp>
    save_angle_txt: bool = False
    save_magnitude_txt: bool = False

    def validate(self) -> None:
        """Raise ValueError naming the first invalid parameter."""
        if self.iterations < 1:
            raise ValueError(f"iterations must be >= 1, got {self.iterations}.")
        if self.save_step < 0:
            raise ValueError(f"save_step must be >= 0, got {self.save_step}.")
        if self.phase_switch < 0:
            raise ValueError(f"phase_switch must be >= 0, got {self.phase_switch}.")
        if self.window_size < 1 or self.window_size % 2 == 0:
            raise ValueError(f"window_size must be odd and >= 1, got {self.window_size}.")
        if self.gate not in GATE_SOURCES:
            raise ValueError(f"Unknown gate source: {self.gate}. Available: {list(GATE_SOURCES)}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}.")
        self.bilateral_params()

    def bilateral_params(self) -> BilateralParams:
        return BilateralParams(spatial_sigma=self.spatial_sigma, color_sigma=self.color_sigma)

    def resolved_out_dir(self) -> Path:
        return Path(self.out_dir) if self.out_dir is not None else RESULTS_DIR


@dataclass(slots=True)
class RefineResult:
    field: OrientationField
    out_dir: Path
    saved_files: Dict[str, Path] = field(default_factory=dict)


# --------------------------------------------------------------------------- #
# Run‑log helper
# --------------------------------------------------------------------------- #
def _write_run_log(img_path: Path, labels_path: Path, cfg: RefineConfig,
                   result: RefineResult, t_start: datetime) -> Path:
    """Write run.txt capturing runtime parameters & timings."""
    log_path = result.out_dir / "run.txt"
    h, w = result.field.shape
    with log_path.open("w") as f:
        # --- Run meta information ---
        f.write(f"run_start        : {t_start.strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"input_img        : {img_path}\n")
        f.write(f"labels           : {labels_path}\n")
        f.write(f"grid             : {h}x{w}, {result.field.n_clusters} clusters\n")

        # --- Variable parameters used this run ---
        f.write("\n# Refinement parameters\n")
        f.write(f"iterations       : {cfg.iterations}\n")
        f.write(f"save_step        : {cfg.save_step}\n")
        f.write(f"phase_switch     : {cfg.phase_switch}\n")
        f.write(f"window_size      : {cfg.window_size}\n")
        f.write(f"gate             : {cfg.gate}\n")
        f.write(f"spatial_sigma    : {cfg.spatial_sigma}\n")
        f.write(f"color_sigma      : {cfg.color_sigma}\n")
        f.write(f"workers          : {cfg.workers}\n")

        # --- Timing table ---
        f.write("\n# Stage timings (ms)\n")
        total = 0.0
        for name, ms in sorted(TIMINGS.items(), key=lambda x: x[0]):
            f.write(f"{name:<16}: {ms:8.2f}\n")
            total += ms
        f.write("-" * 32 + "\n")
        f.write(f"{'Total':<16}: {total:8.2f}\n")
    return log_path


def _export(field_: OrientationField, out_dir: Path, stem: str, cfg: RefineConfig) -> Dict[str, Path]:
    files = {
        f"{stem}_angle": save_angle_graph(out_dir / f"{stem}.png", field_),
        f"{stem}_grad": save_gradient_graph(out_dir / f"{stem}_grad.png", field_),
    }
    if cfg.save_angle_txt:
        files[f"{stem}_angle_txt"] = save_matrix(out_dir / f"{stem}_angle.txt", field_.angle)
    if cfg.save_magnitude_txt:
        files[f"{stem}_mag_txt"] = save_matrix(out_dir / f"{stem}_mag.txt", field_.magnitude)
    return files


# --------------------------------------------------------------------------- #
# Main pipeline
# --------------------------------------------------------------------------- #
@timer
def run(
    img_path: str | Path,
    labels_path: str | Path,
    cfg: RefineConfig | None = None,
) -> RefineResult:
    """Execute the full refinement pipeline on *img_path*."""
    t_start = datetime.now()
    cfg = cfg or RefineConfig()
    cfg.validate()
    reset_timings()

    img_path = Path(img_path)
    labels_path = Path(labels_path)
    out_dir = ensure_dir(cfg.resolved_out_dir())
    stem = img_path.stem

    # 1. Load images
    gray = read_image(img_path, as_gray=True)
    color = read_image(img_path, as_gray=False)

    # 2. Gradients
    grads = scharr_gradients(gray)

    # 3. Cluster labels
    labels = load_labels(labels_path)
    if labels.shape != gray.shape:
        raise ValueError(
            f"dimension mismatch: image {gray.shape} vs labels {labels.shape} ({labels_path})."
        )

    # 4. Field
    field_ = build_field(grads.dx, grads.dy, labels, magnitude=grads.magnitude, angle=grads.angle)
    logger.info(f"Built {field_!r}")

    result = RefineResult(field=field_, out_dir=out_dir)

    # 5. Original magnitude
    result.saved_files["original_mag"] = save_matrix(
        out_dir / f"{stem}_original_mag.txt", field_.original_magnitude
    )

    # 6. Iterate with periodic export
    def _on_iteration(i: int, f: OrientationField) -> None:
        n = i + 1
        if (cfg.save_step and n % cfg.save_step == 0) or n == cfg.iterations:
            result.saved_files.update(_export(f, out_dir, f"{stem}_{n}_iter", cfg))

    iterate(
        field_,
        color,
        cfg.iterations,
        k=cfg.window_size,
        phase_switch=cfg.phase_switch,
        params=cfg.bilateral_params(),
        gate=cfg.gate,
        workers=cfg.workers,
        callback=_on_iteration,
    )

    # 7. Run log
    result.saved_files["run_log"] = _write_run_log(img_path, labels_path, cfg, result, t_start)
    return result
