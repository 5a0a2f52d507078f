"""Convert an image into a 3D-printable stamp (STL) and/or an SVG outline.

Usage::

    python scripts/make_stamp.py logo.png                    # writes stamp.stl
    python scripts/make_stamp.py logo.png --svg stamp.svg    # STL + SVG
    python scripts/make_stamp.py logo.png --size 50 --threshold 100 --invert

Requirements: numpy, Pillow, opencv-python-headless (for --svg)
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

# Ensure the repo root (parent of scripts/) is importable regardless of cwd
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stampready import StampError, StampSettings, export_stl_file, export_svg_file


def _build_parser() -> argparse.ArgumentParser:
    defaults = StampSettings()
    parser = argparse.ArgumentParser(
        description="Convert an image into a 3D-printable relief stamp."
    )
    parser.add_argument("image", help="Input image (any format Pillow reads)")
    parser.add_argument("--out", default="stamp.stl", help="Output STL path (default stamp.stl)")
    parser.add_argument("--svg", default=None, help="Also write a traced SVG outline here")
    parser.add_argument("--no-stl", action="store_true", help="Skip the STL export")
    parser.add_argument("--threshold", type=int, default=defaults.threshold,
                        help="Luminance cutoff 0-255; darker pixels are ink (default 128)")
    parser.add_argument("--invert", action="store_true", help="Swap ink and background")
    parser.add_argument("--size", type=float, default=defaults.target_size_mm,
                        help="Stamp width in mm (default 35)")
    parser.add_argument("--base", type=float, default=defaults.base_height_mm,
                        help="Base plate thickness in mm (default 2)")
    parser.add_argument("--extrusion", type=float, default=defaults.extrusion_height_mm,
                        help="Ink relief height in mm (default 1)")
    parser.add_argument("--pixel", type=float, default=defaults.pixel_size_mm,
                        help="Grid cell size in mm (default 0.4)")
    parser.add_argument("--smoothing", type=float, default=defaults.smoothing,
                        help="Reserved denoise strength 0-5 (currently no effect)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    log = logging.getLogger("make_stamp")

    try:
        settings = StampSettings(
            threshold=args.threshold,
            invert=args.invert,
            target_size_mm=args.size,
            base_height_mm=args.base,
            extrusion_height_mm=args.extrusion,
            pixel_size_mm=args.pixel,
            smoothing=args.smoothing,
        )
        if not args.no_stl:
            export_stl_file(args.image, args.out, settings)
        if args.svg:
            export_svg_file(args.image, args.svg, settings)
    except StampError as exc:
        log.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
