"""Height field over an occupancy grid.

Two elevations only: ``base`` for background cells and ``base + extrusion``
for ink cells.  Every query outside the grid returns ``0``; the mesh
extractor relies on this to raise a wall around the whole image border
without treating edge cells specially.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from .errors import InvalidInputError

_Array = npt.NDArray[np.floating]

__all__ = ["height_at", "height_map"]


def _check_heights(base: float, extrusion: float) -> None:
    if base < 0 or extrusion < 0:
        raise InvalidInputError(
            f"base and extrusion must be >= 0, got base={base}, extrusion={extrusion}"
        )


def height_at(
    grid: npt.ArrayLike,
    base: float,
    extrusion: float,
    x: int,
    y: int,
) -> float:
    """Elevation of cell ``(x, y)``; ``0.0`` when the cell is out of bounds."""
    _check_heights(base, extrusion)
    occ = np.asarray(grid, dtype=bool)
    h, w = occ.shape
    if x < 0 or y < 0 or x >= w or y >= h:
        return 0.0
    return float(base + extrusion) if occ[y, x] else float(base)


def height_map(grid: npt.ArrayLike, base: float, extrusion: float) -> _Array:
    """Vectorised :func:`height_at` over the whole grid plus a zero border.

    Returns
    -------
    numpy.ndarray
        Shape ``(H + 2, W + 2)`` float64 array where ``out[y + 1, x + 1]``
        equals ``height_at(grid, base, extrusion, x, y)`` and the outer ring
        is zero.
    """
    _check_heights(base, extrusion)
    occ = np.asarray(grid, dtype=bool)
    if occ.ndim != 2:
        raise InvalidInputError(f"occupancy grid must be 2-D, got shape {occ.shape}")

    out = np.zeros((occ.shape[0] + 2, occ.shape[1] + 2), dtype=np.float64)
    out[1:-1, 1:-1] = np.where(occ, float(base + extrusion), float(base))
    return out
