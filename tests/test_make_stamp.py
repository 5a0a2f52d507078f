"""Tests for the make_stamp command line script."""

import importlib.util
import struct
from pathlib import Path

import numpy as np
import pytest
from PIL import Image


def _load_script(name: str):
    target = Path(__file__).resolve().parent.parent / "scripts" / f"{name}.py"
    spec = importlib.util.spec_from_file_location(name, target)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load script {name} from {target}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="module")
def make_stamp():
    return _load_script("make_stamp")


@pytest.fixture
def image_path(tmp_path):
    img = np.full((20, 30, 3), 255, dtype=np.uint8)
    img[5:15, 5:25] = 0
    path = tmp_path / "logo.png"
    Image.fromarray(img).save(path)
    return path


class TestMakeStamp:
    def test_writes_stl(self, make_stamp, image_path, tmp_path):
        out = tmp_path / "stamp.stl"
        assert make_stamp.main([str(image_path), "--out", str(out), "--size", "6"]) == 0
        data = out.read_bytes()
        count = struct.unpack_from("<I", data, 80)[0]
        assert len(data) == 84 + 50 * count

    def test_writes_svg_only(self, make_stamp, image_path, tmp_path):
        out = tmp_path / "stamp.stl"
        svg = tmp_path / "stamp.svg"
        rc = make_stamp.main([str(image_path), "--out", str(out), "--svg", str(svg),
                              "--no-stl", "--size", "6"])
        assert rc == 0
        assert svg.is_file()
        assert not out.exists()

    def test_bad_settings_exit_code(self, make_stamp, image_path, tmp_path):
        out = tmp_path / "stamp.stl"
        assert make_stamp.main([str(image_path), "--out", str(out), "--threshold", "400"]) == 1
        assert not out.exists()

    def test_unreadable_image_exit_code(self, make_stamp, tmp_path):
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"nope")
        assert make_stamp.main([str(bad), "--out", str(tmp_path / "x.stl")]) == 1

    def test_oversized_image_exit_code(self, make_stamp, image_path, tmp_path, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
        out = tmp_path / "stamp.stl"
        assert make_stamp.main([str(image_path), "--out", str(out)]) == 1
        assert not out.exists()
