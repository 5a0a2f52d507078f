"""Mesh Extractor: height field → closed triangle mesh.

A mesh is a ``(F, 3, 3)`` float64 array, ``mesh[i, j]`` being the j-th vertex
``(x, y, z)`` of triangle *i* in millimetres — the same layout
:func:`stampready.stl.load_stl` returns.  Vertices are wound
counter-clockwise seen from outside; normals are never stored, they are
derived with :func:`triangle_normals`.

Algorithm
---------
Every cell ``(x, y)`` of height ``h`` contributes

* a top cap at ``z = h`` (normal +Z),
* a bottom cap at ``z = 0`` (normal −Z),
* one wall per axis neighbour whose height ``hn`` is **strictly** lower,
  spanning ``hn .. h`` on the shared edge and facing away from the cell.

For two adjacent cells of different height only the higher one satisfies
``h > hn``, so every internal step gets exactly one wall.  Queries outside
the grid return ``0`` (see :func:`stampready.heightfield.height_map`), which
closes the perimeter with the same rule.  Equal neighbours emit nothing.

Each quad ``(v1, v2, v3, v4)`` becomes triangles ``(v1, v2, v3)`` and
``(v1, v3, v4)``.  Output order matches a row-major walk over cells, each
cell emitting top, bottom, north, south, west, east in that order.

Corner-only contact between two ink cells is not repaired; the two blocks
touch along a vertical edge without being connected.
"""

from __future__ import annotations

import logging

import numpy as np
import numpy.typing as npt

from .errors import InvalidInputError
from .heightfield import height_map

logger = logging.getLogger(__name__)

_Array = npt.NDArray[np.floating]

# Cells per vectorised batch; keeps peak memory flat on large grids.
_CHUNK_CELLS = 1 << 16

__all__ = [
    "extract_mesh",
    "triangle_normals",
    "expected_triangle_count",
    "unpaired_edges",
    "is_closed",
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _vec3(x: _Array, y: _Array, z: _Array) -> _Array:
    """Stack *x*, *y*, *z* into a ``(..., 3)`` array."""
    x, y, z = np.broadcast_arrays(x, y, z)
    return np.stack([x, y, z], axis=-1)


def _split_quads(quads: _Array) -> _Array:
    """``(Q, 4, 3)`` quads → ``(2Q, 3, 3)`` triangles, fan from the first vertex."""
    first = quads[:, [0, 1, 2]]
    second = quads[:, [0, 2, 3]]
    return np.stack([first, second], axis=1).reshape(-1, 3, 3)


def _neighbour_heights(padded: _Array) -> tuple[_Array, _Array, _Array]:
    """Cell heights and their N, S, W, E neighbours, flattened row-major."""
    h = padded[1:-1, 1:-1]
    hn = np.stack([
        padded[:-2, 1:-1],   # north  (y - 1)
        padded[2:, 1:-1],    # south  (y + 1)
        padded[1:-1, :-2],   # west   (x - 1)
        padded[1:-1, 2:],    # east   (x + 1)
    ], axis=-1)
    ys, xs = np.indices(h.shape)
    return h.ravel(), hn.reshape(-1, 4), np.stack([xs.ravel(), ys.ravel()], axis=-1)


def _cell_quads(xy: npt.NDArray[np.integer], h: _Array, hn: _Array, cell: float) -> _Array:
    """All six candidate quads of each cell, shape ``(N, 6, 4, 3)``."""
    x0 = xy[:, 0] * cell
    x1 = (xy[:, 0] + 1) * cell
    y0 = xy[:, 1] * cell
    y1 = (xy[:, 1] + 1) * cell
    zero = np.zeros_like(h)
    hN, hS, hW, hE = hn[:, 0], hn[:, 1], hn[:, 2], hn[:, 3]

    top    = [_vec3(x0, y0, h),    _vec3(x1, y0, h),    _vec3(x1, y1, h),  _vec3(x0, y1, h)]
    bottom = [_vec3(x0, y1, zero), _vec3(x1, y1, zero), _vec3(x1, y0, zero), _vec3(x0, y0, zero)]
    north  = [_vec3(x0, y0, hN),   _vec3(x1, y0, hN),   _vec3(x1, y0, h),  _vec3(x0, y0, h)]
    south  = [_vec3(x1, y1, hS),   _vec3(x0, y1, hS),   _vec3(x0, y1, h),  _vec3(x1, y1, h)]
    west   = [_vec3(x0, y1, hW),   _vec3(x0, y0, hW),   _vec3(x0, y0, h),  _vec3(x0, y1, h)]
    east   = [_vec3(x1, y0, hE),   _vec3(x1, y1, hE),   _vec3(x1, y1, h),  _vec3(x1, y0, h)]

    faces = [np.stack(q, axis=1) for q in (top, bottom, north, south, west, east)]
    return np.stack(faces, axis=1)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_mesh(
    grid: npt.ArrayLike,
    base: float,
    extrusion: float,
    cell_size_mm: float,
) -> _Array:
    """Extract the closed stamp mesh of an occupancy grid.

    Parameters
    ----------
    grid:
        ``(H, W)`` bool occupancy grid, ``True`` = ink.
    base:
        Elevation of background cells, ``>= 0``.
    extrusion:
        Extra elevation of ink cells, ``>= 0``.
    cell_size_mm:
        Edge length of one cell, ``> 0``.

    Returns
    -------
    numpy.ndarray
        ``(F, 3, 3)`` float64 triangles.

    Notes
    -----
    O(W·H); each cell yields at most 12 triangles.  An all-ink or
    all-background grid still gives a closed box: caps plus the four
    perimeter walls.
    """
    occ = np.asarray(grid, dtype=bool)
    if occ.ndim != 2 or occ.size == 0:
        raise InvalidInputError(f"occupancy grid must be a non-empty 2-D array, got shape {occ.shape}")
    if not cell_size_mm > 0:
        raise InvalidInputError(f"cell_size_mm must be > 0, got {cell_size_mm}")

    h, hn, xy = _neighbour_heights(height_map(occ, base, extrusion))
    cell = float(cell_size_mm)

    parts = []
    for start in range(0, len(h), _CHUNK_CELLS):
        sl = slice(start, start + _CHUNK_CELLS)
        quads = _cell_quads(xy[sl], h[sl], hn[sl], cell)
        emit = np.concatenate(
            [np.ones((len(quads), 2), dtype=bool), h[sl, None] > hn[sl]], axis=1
        )
        parts.append(_split_quads(quads[emit]))

    mesh = np.concatenate(parts, axis=0)
    logger.debug("Extracted %d triangles from %dx%d grid", len(mesh), occ.shape[1], occ.shape[0])
    return mesh


def triangle_normals(mesh: npt.ArrayLike) -> _Array:
    """Unit normals ``normalize((v2 - v1) x (v3 - v1))`` of every triangle.

    Degenerate (zero-area) triangles get the zero vector, never NaN.
    """
    tris = np.asarray(mesh, dtype=np.float64).reshape(-1, 3, 3)
    e1 = tris[:, 1] - tris[:, 0]
    e2 = tris[:, 2] - tris[:, 0]
    norms = np.cross(e1, e2)
    nlen = np.linalg.norm(norms, axis=1, keepdims=True)
    return norms / np.where(nlen > 0, nlen, 1.0)


def expected_triangle_count(grid: npt.ArrayLike, base: float, extrusion: float) -> int:
    """Triangle count of :func:`extract_mesh` without building the mesh.

    ``2 * (2·W·H + number of (cell, direction) pairs with h > hn)``.
    """
    occ = np.asarray(grid, dtype=bool)
    h, hn, _ = _neighbour_heights(height_map(occ, base, extrusion))
    walls = int(np.count_nonzero(h[:, None] > hn))
    return 2 * (2 * occ.size + walls)


# ---------------------------------------------------------------------------
# Closed-surface checks
# ---------------------------------------------------------------------------

def _directed_edges(mesh: npt.ArrayLike) -> tuple[_Array, _Array]:
    tris = np.asarray(mesh, dtype=np.float64).reshape(-1, 3, 3)
    a = tris[:, [0, 1, 2]].reshape(-1, 3)
    b = tris[:, [1, 2, 0]].reshape(-1, 3)
    return a, b


def unpaired_edges(mesh: npt.ArrayLike) -> _Array:
    """Directed edges without an exactly matching opposite edge.

    Strict check: edge ``a → b`` must be cancelled by an edge ``b → a`` with
    identical endpoints, one for one.  Returns ``(K, 2, 3)`` offending edges
    (empty for a mesh whose edges all pair up).
    """
    a, b = _directed_edges(mesh)
    fwd = np.hstack([a, b])
    rev = np.hstack([b, a])
    keys, inverse = np.unique(np.vstack([fwd, rev]), axis=0, return_inverse=True)
    # +1 per occurrence as an edge, -1 per occurrence as a reversed edge
    weights = np.concatenate([np.ones(len(fwd)), -np.ones(len(rev))])
    balance = np.bincount(inverse.ravel(), weights=weights, minlength=len(keys))
    return keys[balance > 0].reshape(-1, 2, 3)


def is_closed(mesh: npt.ArrayLike) -> bool:
    """True when every edge is cancelled by opposite edges along its line.

    Axis-aligned edges may be split by collinear vertices on the other side
    (a border wall ``0 .. top`` beside walls ``0 .. base`` and
    ``base .. top``); the signed coverage along each line must vanish
    everywhere.  Other edges must pair up exactly.  Zero-length edges are
    ignored.
    """
    a, b = _directed_edges(mesh)
    diff = b - a
    moving = diff != 0
    n_moving = moving.sum(axis=1)

    slanted = n_moving >= 2
    if slanted.any():
        fwd = np.hstack([a[slanted], b[slanted]])
        rev = np.hstack([b[slanted], a[slanted]])
        if not np.array_equal(_sort_rows(fwd), _sort_rows(rev)):
            return False

    aligned = n_moving == 1
    if not aligned.any():
        return True
    a, b, moving = a[aligned], b[aligned], moving[aligned]
    axis = np.argmax(moving, axis=1)
    rows = np.arange(len(a))
    start = a[rows, axis]
    end = b[rows, axis]
    sign = np.where(end > start, 1, -1)

    line = a.copy()
    line[rows, axis] = 0.0
    key = np.column_stack([axis.astype(np.float64), line])

    # +sign where each edge begins covering its line, -sign where it stops
    ev_key = np.vstack([key, key])
    ev_pos = np.concatenate([np.minimum(start, end), np.maximum(start, end)])
    ev_delta = np.concatenate([sign, -sign])

    order = np.lexsort((ev_pos, ev_key[:, 3], ev_key[:, 2], ev_key[:, 1], ev_key[:, 0]))
    ev_key, ev_pos, ev_delta = ev_key[order], ev_pos[order], ev_delta[order]
    coverage = np.cumsum(ev_delta)

    # coverage after the last event at each (line, position) must be zero;
    # every line's events sum to zero, so the running total resets per line
    last = np.ones(len(ev_pos), dtype=bool)
    last[:-1] = (ev_pos[1:] != ev_pos[:-1]) | np.any(ev_key[1:] != ev_key[:-1], axis=1)
    return bool(np.all(coverage[last] == 0))


def _sort_rows(arr: _Array) -> _Array:
    return arr[np.lexsort(arr.T[::-1])]
