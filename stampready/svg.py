"""SVG export: occupancy grid → path-based vector document.

Outline tracing is delegated to OpenCV (``cv2.findContours``) on the
2-colour stamp image; this module only assembles the document.  Ink regions
become even-odd filled paths with their holes as sub-paths.

Outlines run along pixel edges, not through pixel centres: a traced region
covers exactly the ink cells the STL raises.  ``findContours`` follows the
centres of border pixels, so the image is first padded and every pixel
doubled.  In the doubled image the pixels ``2c - 1`` and ``2c`` flank the
cell corner ``c``; mapping each contour point to ``ceil(X / 2)`` puts it on
the corner lattice, and the one-pixel diagonal steps OpenCV takes at corners
collapse onto the corner they cut.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np
import numpy.typing as npt

from .bitmap import occupancy_to_rgba
from .errors import EncodingFailureError

logger = logging.getLogger(__name__)

__all__ = ["trace_contours", "trace_svg"]

_UPSCALE = 2


def _lattice_ring(contour: np.ndarray) -> np.ndarray:
    """Map a contour of the padded, doubled mask onto cell corners."""
    pts = contour.reshape(-1, 2).astype(np.int64)
    ring = (pts + 1) // _UPSCALE - 1

    # collapsed diagonal steps leave repeated points
    moved = np.any(ring != np.roll(ring, 1, axis=0), axis=1)
    if moved.any():
        ring = ring[moved]

    if len(ring) > 2:
        d_in = ring - np.roll(ring, 1, axis=0)
        d_out = np.roll(ring, -1, axis=0) - ring
        turn = d_in[:, 0] * d_out[:, 1] - d_in[:, 1] * d_out[:, 0]
        ring = ring[turn != 0]
    return ring


def _perimeter(ring: np.ndarray) -> int:
    """Outline length in cell edges."""
    steps = np.roll(ring, -1, axis=0) - ring
    return int(np.abs(steps).sum())


def trace_contours(grid: npt.ArrayLike, path_omit: int = 1) -> List[List[np.ndarray]]:
    """Trace the ink regions of *grid*.

    Parameters
    ----------
    grid:
        ``(H, W)`` occupancy grid.
    path_omit:
        Speck suppression: outlines whose length is ``path_omit`` cell edges
        or fewer are dropped (an outer outline together with its holes).  A
        lone ink cell has length 4, so the default keeps every cell.

    Returns
    -------
    list
        One entry per kept ink region: ``[outer, hole, hole, ...]``, each an
        ``(N, 2)`` integer array of ``(x, y)`` cell-corner coordinates.

    Raises
    ------
    EncodingFailureError
        If OpenCV rejects the image.
    """
    rgba = occupancy_to_rgba(grid)
    # ink is black in the stamp image; OpenCV traces non-zero pixels
    mask = np.pad(np.where(rgba[:, :, 0] == 0, 255, 0).astype(np.uint8), 1)
    mask = mask.repeat(_UPSCALE, axis=0).repeat(_UPSCALE, axis=1)

    try:
        contours, hierarchy = cv2.findContours(mask, cv2.RETR_CCOMP, cv2.CHAIN_APPROX_SIMPLE)
    except cv2.error as exc:
        raise EncodingFailureError(f"contour tracing failed: {exc}") from exc

    if hierarchy is None or len(contours) == 0:
        return []

    # hierarchy rows: [next, previous, first_child, parent]
    links = hierarchy.reshape(-1, 4)
    regions = []
    for idx, contour in enumerate(contours):
        if links[idx, 3] != -1:
            continue
        outer = _lattice_ring(contour)
        if _perimeter(outer) <= path_omit:
            continue
        rings = [outer]
        child = links[idx, 2]
        while child != -1:
            hole = _lattice_ring(contours[child])
            if _perimeter(hole) > path_omit:
                rings.append(hole)
            child = links[child, 0]
        regions.append(rings)
    return regions


def _ring_to_path(ring: np.ndarray, scale: float) -> str:
    pts = ring.astype(np.float64) * scale
    parts = [f"M {pts[0, 0]:.6g} {pts[0, 1]:.6g}"]
    parts.extend(f"L {x:.6g} {y:.6g}" for x, y in pts[1:])
    parts.append("Z")
    return " ".join(parts)


def trace_svg(
    grid: npt.ArrayLike,
    pixel_size_mm: Optional[float] = None,
    path_omit: int = 1,
) -> str:
    """Vectorise *grid* into an SVG document string.

    A grid without ink (or with only suppressed specks) still yields a
    well-formed document; it just holds no paths.

    Parameters
    ----------
    grid:
        ``(H, W)`` occupancy grid.
    pixel_size_mm:
        When given, coordinates and the document size are in millimetres;
        otherwise in pixels.
    path_omit:
        See :func:`trace_contours`.

    Raises
    ------
    EncodingFailureError
        If OpenCV rejects the image.
    """
    occ = np.asarray(grid, dtype=bool)
    regions = trace_contours(occ, path_omit=path_omit)
    if not regions:
        logger.debug("No ink outlines; writing an empty document")

    h, w = occ.shape
    scale = 1.0 if pixel_size_mm is None else float(pixel_size_mm)
    unit = "" if pixel_size_mm is None else "mm"

    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="http://www.w3.org/2000/svg" version="1.1" '
        f'width="{w * scale:.6g}{unit}" height="{h * scale:.6g}{unit}" '
        f'viewBox="0 0 {w * scale:.6g} {h * scale:.6g}">',
    ]
    for rings in regions:
        d = " ".join(_ring_to_path(ring, scale) for ring in rings)
        lines.append(f'  <path fill="#000000" fill-rule="evenodd" stroke="none" d="{d}"/>')
    lines.append("</svg>")

    logger.debug("Traced %d ink regions", len(regions))
    return "\n".join(lines) + "\n"
