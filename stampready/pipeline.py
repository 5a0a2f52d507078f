"""Request-level export functions.

Two independent terminal branches share the occupancy grid:

* STL: grid → height field → mesh → bytes
* SVG: grid → vector tracer → document

Every call is fully parameterised by a :class:`StampSettings`; nothing is
cached between calls.  File variants produce the complete output in memory
first and only then write it, so a failed export leaves no partial file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import numpy as np
import numpy.typing as npt

from .bitmap import as_pixel_grid, load_image_for_size, produce_occupancy
from .config import StampSettings
from .mesh import extract_mesh, is_closed
from .stl import serialize_stl, write_stl
from .svg import trace_svg

logger = logging.getLogger(__name__)

_Path = Union[str, Path]

__all__ = [
    "StampRequest",
    "build_occupancy",
    "export_stl",
    "export_svg",
    "export_stl_file",
    "export_svg_file",
]


@dataclass(frozen=True, eq=False)
class StampRequest:
    """A decoded image together with the settings to process it with."""

    pixels: np.ndarray
    settings: StampSettings = field(default_factory=StampSettings)

    def __post_init__(self) -> None:
        pixels = np.array(as_pixel_grid(self.pixels))
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    def occupancy(self) -> np.ndarray:
        return build_occupancy(self.pixels, self.settings)

    def stl(self) -> bytes:
        return export_stl(self.pixels, self.settings)

    def svg(self) -> str:
        return export_svg(self.pixels, self.settings)


def build_occupancy(pixels: npt.ArrayLike, settings: StampSettings) -> np.ndarray:
    """Threshold *pixels* according to *settings*."""
    return produce_occupancy(
        pixels,
        settings.threshold,
        invert=settings.invert,
        smoothing=settings.smoothing,
    )


def export_stl(pixels: npt.ArrayLike, settings: Optional[StampSettings] = None) -> bytes:
    """Run the mesh branch and return binary STL bytes."""
    settings = settings or StampSettings()
    grid = build_occupancy(pixels, settings)
    mesh = extract_mesh(
        grid,
        settings.base_height_mm,
        settings.extrusion_height_mm,
        settings.pixel_size_mm,
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Closed surface: %s", is_closed(mesh))

    data = serialize_stl(mesh, header=b"stampready binary STL")
    logger.info(
        "STL export: %dx%d grid, %d ink cells, %d triangles, %d bytes",
        grid.shape[1], grid.shape[0], int(grid.sum()), len(mesh), len(data),
    )
    return data


def export_svg(pixels: npt.ArrayLike, settings: Optional[StampSettings] = None) -> str:
    """Run the vector branch and return an SVG document."""
    settings = settings or StampSettings()
    grid = build_occupancy(pixels, settings)
    doc = trace_svg(grid, pixel_size_mm=settings.pixel_size_mm)
    logger.info("SVG export: %dx%d grid, %d characters", grid.shape[1], grid.shape[0], len(doc))
    return doc


def export_stl_file(
    image_path: _Path,
    out_path: _Path,
    settings: Optional[StampSettings] = None,
) -> int:
    """Decode *image_path*, export STL to *out_path*; returns the byte count."""
    settings = settings or StampSettings()
    pixels = load_image_for_size(image_path, settings.target_size_mm)
    data = export_stl(pixels, settings)
    write_stl(out_path, data)
    logger.info("Wrote %s", out_path)
    return len(data)


def export_svg_file(
    image_path: _Path,
    out_path: _Path,
    settings: Optional[StampSettings] = None,
) -> int:
    """Decode *image_path*, export SVG to *out_path*; returns the character count."""
    settings = settings or StampSettings()
    pixels = load_image_for_size(image_path, settings.target_size_mm)
    doc = export_svg(pixels, settings)
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(doc, encoding="utf-8")
    logger.info("Wrote %s", out_path)
    return len(doc)
