"""Bitmap Producer: colour image → binary occupancy grid.

Conventions
-----------
* A **pixel grid** is a ``(height, width, 4)`` ``uint8`` RGBA array, row-major
  with the origin at the top-left pixel.
* An **occupancy grid** is a ``(height, width)`` ``bool`` array.  ``True``
  means *ink*, which the mesh extractor always raises above the base plate.
  Polarity is chosen here, through ``invert``, and nowhere downstream.

Image decoding and resizing (:func:`load_image`) use Pillow.  Everything else
is plain numpy and never mutates its inputs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

import numpy as np
import numpy.typing as npt
from PIL import Image, UnidentifiedImageError

from .config import NOZZLE_PITCH_MM, target_resolution
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

_Pixels = npt.NDArray[np.uint8]
_Grid = npt.NDArray[np.bool_]
_Source = Union[str, Path, BinaryIO]

# ITU-R BT.601 luma weights in thousandths; integer sums keep the threshold
# comparison exact (grey 128 has luminance exactly 128).
_LUMA_MILLI = np.array([299, 587, 114], dtype=np.int64)

__all__ = [
    "as_pixel_grid",
    "luminance",
    "produce_occupancy",
    "invert_occupancy",
    "occupancy_to_rgba",
    "load_image",
    "load_image_for_size",
]


# ---------------------------------------------------------------------------
# Pixel grids
# ---------------------------------------------------------------------------

def as_pixel_grid(pixels: npt.ArrayLike) -> _Pixels:
    """Validate *pixels* and return them as a ``(H, W, 4)`` uint8 RGBA array.

    Grayscale ``(H, W)`` and RGB ``(H, W, 3)`` inputs are promoted to RGBA
    with an opaque alpha channel.  The input is never modified; a new array
    is returned whenever a conversion is needed.

    Raises
    ------
    InvalidInputError
        If the array is empty or not an image-shaped array.
    """
    arr = np.asarray(pixels)
    if arr.ndim == 2:
        arr = np.repeat(arr[:, :, None], 3, axis=2)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise InvalidInputError(
            f"pixel grid must have shape (H, W), (H, W, 3) or (H, W, 4), got {arr.shape}"
        )
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise InvalidInputError(f"pixel grid must be non-empty, got {arr.shape[1]}x{arr.shape[0]}")

    arr = np.clip(arr, 0, 255).astype(np.uint8, copy=False)
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


def luminance(pixels: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Per-pixel luminance ``0.299 R + 0.587 G + 0.114 B`` as float64."""
    return _luminance_milli(as_pixel_grid(pixels)) / 1000.0


def _luminance_milli(rgba: _Pixels) -> npt.NDArray[np.int64]:
    return rgba[:, :, :3].astype(np.int64) @ _LUMA_MILLI


# ---------------------------------------------------------------------------
# Occupancy grids
# ---------------------------------------------------------------------------

def produce_occupancy(
    pixels: npt.ArrayLike,
    threshold: int,
    invert: bool = False,
    smoothing: float = 0.0,
) -> _Grid:
    """Threshold *pixels* into an occupancy grid.

    Parameters
    ----------
    pixels:
        Decoded source image, see :func:`as_pixel_grid`.
    threshold:
        Luminance cutoff in ``[0, 255]``.  A pixel is ink when its luminance
        is strictly below the threshold, so a luminance equal to the
        threshold is background.
    invert:
        Flip the result after thresholding.
    smoothing:
        Reserved.  Accepted so callers can pass the full settings surface;
        it does not change the output.

    Returns
    -------
    numpy.ndarray
        Read-only ``(H, W)`` bool array, same dimensions as *pixels*.
    """
    if not 0 <= threshold <= 255:
        raise InvalidInputError(f"threshold must be in [0, 255], got {threshold}")
    if smoothing:
        logger.debug("smoothing=%s requested; denoising is not applied", smoothing)

    grid = _luminance_milli(as_pixel_grid(pixels)) < 1000 * int(threshold)
    if invert:
        grid = ~grid
    grid.flags.writeable = False
    return grid


def invert_occupancy(grid: npt.ArrayLike) -> _Grid:
    """Return the complementary occupancy grid."""
    out = ~_as_occupancy(grid)
    out.flags.writeable = False
    return out


def occupancy_to_rgba(grid: npt.ArrayLike) -> _Pixels:
    """Render *grid* as a 2-colour RGBA buffer (ink black, background white).

    Alpha is always opaque.  This is the preview image of a stamp and the
    buffer handed to the vector tracer.
    """
    occ = _as_occupancy(grid)
    value = np.where(occ, 0, 255).astype(np.uint8)
    rgba = np.empty(occ.shape + (4,), dtype=np.uint8)
    rgba[:, :, :3] = value[:, :, None]
    rgba[:, :, 3] = 255
    return rgba


def _as_occupancy(grid: npt.ArrayLike) -> _Grid:
    occ = np.asarray(grid, dtype=bool)
    if occ.ndim != 2:
        raise InvalidInputError(f"occupancy grid must be 2-D, got shape {occ.shape}")
    if occ.size == 0:
        raise InvalidInputError(f"occupancy grid must be non-empty, got shape {occ.shape}")
    return occ


# ---------------------------------------------------------------------------
# Decoding (Pillow)
# ---------------------------------------------------------------------------

def load_image(
    source: _Source,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> _Pixels:
    """Decode *source* with Pillow and return an RGBA pixel grid.

    Parameters
    ----------
    source:
        Path or binary file object of any Pillow-readable image.
    width, height:
        Target resolution.  With only *width*, the height follows the source
        aspect ratio; with both, the image is resized to exactly that size;
        with neither, the native resolution is kept.

    Raises
    ------
    InvalidInputError
        If the image cannot be decoded or is empty.
    """
    try:
        with Image.open(source) as img:
            img = img.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise InvalidInputError(f"cannot decode image {source!r}: {exc}") from exc

    src_w, src_h = img.size
    if src_w == 0 or src_h == 0:
        raise InvalidInputError(f"decoded image is empty ({src_w}x{src_h})")

    if width is not None and height is None:
        height = max(1, int(round(width * src_h / src_w)))
    if width is not None and height is not None and (width, height) != (src_w, src_h):
        logger.debug("Resizing %dx%d -> %dx%d", src_w, src_h, width, height)
        img = img.resize((width, height), Image.Resampling.BILINEAR)

    return as_pixel_grid(np.asarray(img))


def load_image_for_size(
    source: _Source,
    target_size_mm: float,
    pitch_mm: float = NOZZLE_PITCH_MM,
) -> _Pixels:
    """Decode *source* at the resolution a *target_size_mm* wide stamp needs."""
    try:
        with Image.open(source) as img:
            src_w, src_h = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise InvalidInputError(f"cannot decode image {source!r}: {exc}") from exc

    if hasattr(source, "seek"):
        source.seek(0)
    width, height = target_resolution(target_size_mm, src_w, src_h, pitch_mm)
    return load_image(source, width, height)
