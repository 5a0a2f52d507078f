"""Binary STL serialisation.

Layout (all little-endian)
--------------------------
* bytes ``[0, 80)``   header, ignored by readers (zero padded here)
* bytes ``[80, 84)``  ``uint32`` triangle count
* 50 bytes per triangle: ``float32[3]`` normal, ``float32[3][3]`` vertices,
  ``uint16`` attribute (always 0)

A file is well formed iff ``len(data) == 84 + 50 * count``.
"""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path
from typing import Union

import numpy as np
import numpy.typing as npt

from .errors import CapacityExceededError, InvalidInputError
from .mesh import triangle_normals

logger = logging.getLogger(__name__)

HEADER_SIZE = 80
RECORD_SIZE = 50
MAX_TRIANGLES = 2**32 - 1

STL_RECORD_DTYPE = np.dtype([
    ("normal", "<f4", (3,)),
    ("vertices", "<f4", (3, 3)),
    ("attr", "<u2"),
])

__all__ = [
    "HEADER_SIZE",
    "RECORD_SIZE",
    "MAX_TRIANGLES",
    "STL_RECORD_DTYPE",
    "serialize_stl",
    "write_stl",
    "load_stl",
]


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def serialize_stl(mesh: npt.ArrayLike, header: bytes = b"") -> bytes:
    """Encode a ``(F, 3, 3)`` mesh as binary STL.

    Parameters
    ----------
    mesh:
        Triangles as returned by :func:`stampready.mesh.extract_mesh`.
    header:
        Up to 80 bytes written at the start of the file, zero padded.

    Returns
    -------
    bytes
        Exactly ``84 + 50 * F`` bytes.

    Raises
    ------
    CapacityExceededError
        If ``F`` does not fit the ``uint32`` count field.  Checked before any
        buffer is allocated.
    """
    tris = np.asarray(mesh, dtype=np.float64)
    if tris.size == 0:
        tris = tris.reshape(0, 3, 3)
    if tris.ndim != 3 or tris.shape[1:] != (3, 3):
        raise InvalidInputError(f"mesh must have shape (F, 3, 3), got {tris.shape}")
    if len(header) > HEADER_SIZE:
        raise InvalidInputError(f"STL header is limited to {HEADER_SIZE} bytes, got {len(header)}")

    count = len(tris)
    if count > MAX_TRIANGLES:
        raise CapacityExceededError(
            f"{count} triangles do not fit the 32-bit STL count field (max {MAX_TRIANGLES})"
        )

    records = np.zeros(count, dtype=STL_RECORD_DTYPE)
    records["normal"] = triangle_normals(tris)
    records["vertices"] = tris

    data = header.ljust(HEADER_SIZE, b"\x00") + struct.pack("<I", count) + records.tobytes()
    logger.debug("Serialised %d triangles into %d bytes", count, len(data))
    return data


def write_stl(path: Union[str, Path], data: bytes) -> None:
    """Write already-serialised STL *data* to *path* (creates parent directories)."""
    out_dir = os.path.dirname(os.fspath(path))
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    Path(path).write_bytes(data)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def load_stl(path: Union[str, Path]) -> np.ndarray:
    """Load an STL file and return its triangles as a ``(F, 3, 3)`` float64 array.

    Supports both binary and ASCII STL.  Normals are discarded; only vertex
    coordinates are returned.
    """
    raw = Path(path).read_bytes()

    # The size invariant is checked rather than the "solid" keyword, which
    # some CAD tools also write at the start of binary files.
    if len(raw) >= HEADER_SIZE + 4:
        count = struct.unpack_from("<I", raw, HEADER_SIZE)[0]
        if len(raw) == HEADER_SIZE + 4 + RECORD_SIZE * count:
            return _load_binary_stl(raw, count)
    return _load_ascii_stl(raw.decode("ascii", errors="replace"))


def _load_binary_stl(raw: bytes, count: int) -> np.ndarray:
    records = np.frombuffer(raw, dtype=STL_RECORD_DTYPE, count=count, offset=HEADER_SIZE + 4)
    return records["vertices"].astype(np.float64)


def _load_ascii_stl(text: str) -> np.ndarray:
    verts: list[list[float]] = []
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("vertex"):
            parts = line.split()
            verts.append([float(parts[1]), float(parts[2]), float(parts[3])])
    if len(verts) % 3:
        raise InvalidInputError(f"ASCII STL has {len(verts)} vertices, not a multiple of 3")
    return np.array(verts, dtype=np.float64).reshape(-1, 3, 3)
