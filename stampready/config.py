"""Request-scoped stamp settings.

Every export call receives a :class:`StampSettings` instance; there is no
module-level "current settings" state.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Tuple

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

# One grid cell per extrusion line of a 0.4 mm nozzle (2.5 px/mm).
NOZZLE_PITCH_MM: float = 0.4

__all__ = ["NOZZLE_PITCH_MM", "StampSettings", "target_resolution"]


@dataclass(frozen=True)
class StampSettings:
    """Recognised options of the stamp pipeline.

    Parameters
    ----------
    threshold:
        Luminance cutoff in ``[0, 255]``; pixels strictly darker are ink.
    invert:
        Flip ink polarity.
    target_size_mm:
        Physical width of the stamp; drives the pixel resolution upstream
        of the occupancy grid (see :func:`target_resolution`).
    base_height_mm:
        Thickness of the flat plate under the whole image.
    extrusion_height_mm:
        Extra height of ink cells above the plate.
    pixel_size_mm:
        Edge length of one grid cell in the output mesh.
    smoothing:
        Reserved denoise strength in ``[0, 5]``.  Accepted, has no effect.
    fix_non_manifold:
        Accepted for compatibility, has no effect.  The wall rule of
        :func:`stampready.mesh.extract_mesh` is closed for edge adjacency;
        corner-only contacts are left as they are.
    """

    threshold: int = 128
    invert: bool = False
    target_size_mm: float = 35.0
    base_height_mm: float = 2.0
    extrusion_height_mm: float = 1.0
    pixel_size_mm: float = NOZZLE_PITCH_MM
    smoothing: float = 0.0
    fix_non_manifold: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, int):
            raise InvalidInputError(f"threshold must be an int, got {self.threshold!r}")
        if not 0 <= self.threshold <= 255:
            raise InvalidInputError(f"threshold must be in [0, 255], got {self.threshold}")
        _require(self.target_size_mm > 0, "target_size_mm", self.target_size_mm, "> 0")
        _require(self.pixel_size_mm > 0, "pixel_size_mm", self.pixel_size_mm, "> 0")
        _require(self.base_height_mm >= 0, "base_height_mm", self.base_height_mm, ">= 0")
        _require(self.extrusion_height_mm >= 0, "extrusion_height_mm",
                 self.extrusion_height_mm, ">= 0")
        _require(0 <= self.smoothing <= 5, "smoothing", self.smoothing, "in [0, 5]")

    def replace(self, **changes: Any) -> "StampSettings":
        """Return a validated copy with *changes* applied."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "StampSettings":
        """Build settings from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            logger.warning("Ignoring unknown stamp settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in mapping.items() if k in known})

    @property
    def top_height_mm(self) -> float:
        """Elevation of an ink cell's top cap."""
        return self.base_height_mm + self.extrusion_height_mm


def _require(ok: bool, name: str, value: float, rule: str) -> None:
    if not ok:
        raise InvalidInputError(f"{name} must be {rule}, got {value}")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def target_resolution(
    size_mm: float,
    source_width: int,
    source_height: int,
    pitch_mm: float = NOZZLE_PITCH_MM,
) -> Tuple[int, int]:
    """Pixel resolution ``(width, height)`` for a stamp *size_mm* wide.

    The width is ``round(size_mm / pitch_mm)``; the height keeps the source
    aspect ratio.  Both are clamped to at least one pixel.

    >>> target_resolution(36.0, 200, 100)
    (90, 45)
    """
    if source_width <= 0 or source_height <= 0:
        raise InvalidInputError(
            f"source image must be non-empty, got {source_width}x{source_height}"
        )
    if size_mm <= 0 or pitch_mm <= 0:
        raise InvalidInputError(f"size and pitch must be > 0, got {size_mm}, {pitch_mm}")

    width = max(1, _round_half_up(size_mm / pitch_mm))
    height = max(1, _round_half_up(width * source_height / source_width))
    return width, height
