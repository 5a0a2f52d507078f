"""Render the relief mesh of an image (or an existing STL) to a PNG.

Usage::

    python scripts/preview_stamp.py logo.png                  # saves stamp_preview.png
    python scripts/preview_stamp.py stamp.stl --out view.png  # preview a written file
    python scripts/preview_stamp.py logo.png --size 20 --elev 50

Requirements: numpy, Pillow, matplotlib
"""
from __future__ import annotations

import argparse
import os
import sys

# Ensure the repo root (parent of scripts/) is importable regardless of cwd
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from stampready import (
    StampError,
    StampSettings,
    build_occupancy,
    extract_mesh,
    load_image_for_size,
    load_stl,
    triangle_normals,
)

_FACE_COLOR = np.array([0.36, 0.42, 0.85])   # indigo
_LIGHT      = np.array([0.3, -0.5, 0.81])


def _load_mesh(path: str, settings: StampSettings) -> np.ndarray:
    if path.lower().endswith(".stl"):
        return load_stl(path)
    pixels = load_image_for_size(path, settings.target_size_mm)
    grid = build_occupancy(pixels, settings)
    return extract_mesh(grid, settings.base_height_mm,
                        settings.extrusion_height_mm, settings.pixel_size_mm)


def render_mesh(tris: np.ndarray, out_path: str, elev: float = 35, azim: float = -60) -> None:
    # skip bottom caps; they are hidden and double the polygon count
    norms = triangle_normals(tris)
    visible = norms[:, 2] > -0.5
    tris, norms = tris[visible], norms[visible]

    diffuse = np.clip(norms @ (_LIGHT / np.linalg.norm(_LIGHT)), 0.0, 1.0)
    shade = 0.35 + 0.65 * diffuse
    face_colors = np.outer(shade, _FACE_COLOR)

    fig = plt.figure(figsize=(6, 6), facecolor="#f8fafc")
    ax = fig.add_subplot(1, 1, 1, projection="3d")
    ax.set_axis_off()
    ax.add_collection3d(Poly3DCollection(tris, facecolors=face_colors, edgecolors="none"))

    lo = tris.reshape(-1, 3).min(axis=0)
    hi = tris.reshape(-1, 3).max(axis=0)
    ax.set_xlim(lo[0], hi[0]); ax.set_ylim(hi[1], lo[1]); ax.set_zlim(lo[2], hi[2])
    ax.set_box_aspect(np.maximum(hi - lo, 1e-6))
    ax.view_init(elev=elev, azim=azim)

    fig.savefig(out_path, dpi=150, bbox_inches="tight", facecolor=fig.get_facecolor())
    plt.close(fig)
    print(f"Saved: {out_path}  ({len(tris)} visible triangles)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Render a stamp relief preview to PNG.")
    parser.add_argument("source", help="Input image or .stl file")
    parser.add_argument("--out", default="stamp_preview.png", help="Output PNG path")
    parser.add_argument("--size", type=float, default=20.0,
                        help="Stamp width in mm for image input (default 20)")
    parser.add_argument("--threshold", type=int, default=128)
    parser.add_argument("--invert", action="store_true")
    parser.add_argument("--elev", type=float, default=35)
    parser.add_argument("--azim", type=float, default=-60)
    args = parser.parse_args(argv)

    try:
        settings = StampSettings(threshold=args.threshold, invert=args.invert,
                                 target_size_mm=args.size)
        tris = _load_mesh(args.source, settings)
    except StampError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    render_mesh(tris, args.out, elev=args.elev, azim=args.azim)
    return 0


if __name__ == "__main__":
    sys.exit(main())
