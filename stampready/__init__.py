"""
stampready — images to 3D-printable stamps
==========================================

Turns a monochrome raster image into a relief stamp: ink pixels are raised
above a flat base plate and the solid is written as a closed binary STL.
The same occupancy grid can also be traced into an SVG outline.

Pipeline
--------
1. :func:`produce_occupancy` — colour pixels → bool ink grid
2. :func:`height_at` / :func:`height_map` — two-level elevation, 0 outside
3. :func:`extract_mesh` — caps plus one wall per strict height step
4. :func:`serialize_stl` — 84-byte preamble + 50 bytes per triangle

Quick start
-----------

::

    import numpy as np
    from stampready import StampSettings, export_stl

    pixels = np.full((4, 4, 3), 255, dtype=np.uint8)
    pixels[1:3, 1:3] = 0                      # a black 2x2 square of ink
    data = export_stl(pixels, StampSettings(base_height_mm=2.0,
                                            extrusion_height_mm=1.0))
    open("stamp.stl", "wb").write(data)

From an image file::

    from stampready import export_stl_file
    export_stl_file("logo.png", "stamp.stl", StampSettings(target_size_mm=35))

Watertightness
--------------
Walls are emitted only from the higher of two adjacent cells, so each step
gets exactly one wall and the surface closes over edge-adjacent cells.  Ink
cells touching only at a corner are not merged.
"""

from .errors import (
    StampError,
    InvalidInputError,
    CapacityExceededError,
    EncodingFailureError,
)
from .config import NOZZLE_PITCH_MM, StampSettings, target_resolution
from .bitmap import (
    as_pixel_grid,
    luminance,
    produce_occupancy,
    invert_occupancy,
    occupancy_to_rgba,
    load_image,
    load_image_for_size,
)
from .heightfield import height_at, height_map
from .mesh import (
    extract_mesh,
    triangle_normals,
    expected_triangle_count,
    unpaired_edges,
    is_closed,
)
from .stl import serialize_stl, write_stl, load_stl
from .svg import trace_contours, trace_svg
from .pipeline import (
    StampRequest,
    build_occupancy,
    export_stl,
    export_svg,
    export_stl_file,
    export_svg_file,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "StampError",
    "InvalidInputError",
    "CapacityExceededError",
    "EncodingFailureError",

    # Settings
    "NOZZLE_PITCH_MM",
    "StampSettings",
    "target_resolution",

    # Bitmap producer
    "as_pixel_grid",
    "luminance",
    "produce_occupancy",
    "invert_occupancy",
    "occupancy_to_rgba",
    "load_image",
    "load_image_for_size",

    # Height field
    "height_at",
    "height_map",

    # Mesh extraction
    "extract_mesh",
    "triangle_normals",
    "expected_triangle_count",
    "unpaired_edges",
    "is_closed",

    # STL
    "serialize_stl",
    "write_stl",
    "load_stl",

    # SVG
    "trace_contours",
    "trace_svg",

    # Pipeline
    "StampRequest",
    "build_occupancy",
    "export_stl",
    "export_svg",
    "export_stl_file",
    "export_svg_file",
]
