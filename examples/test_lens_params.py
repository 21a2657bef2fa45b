#!/usr/bin/env python3
"""
Tests for lens and panorama configuration: YAML parsing, validation and
derived geometry.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
import yaml
from reproject.lens_params import (LensDirection, LensFormat, LensSpec, PanoramaSpec,
                                   parse_lens_spec, parse_panorama_spec)
from reproject.projection_model import LensFamily
from reproject.sampler import Interpolation

LENS_YAML = """
ifov: 120
ofov: 180
family: equal_area
format: full_frame
center: [320, 200]
radius: 150
angle: 45
background: [0, 0, 255]
virtual_color: 7
"""


def _write(tmp_path, text, name="config.yaml"):
  path = tmp_path / name
  path.write_text(text)
  return str(path)


def test_parse_lens_spec(tmp_path):
  lens_spec = parse_lens_spec(_write(tmp_path, LENS_YAML))
  assert lens_spec.ifov == 120.0 and lens_spec.ofov == 180.0
  assert lens_spec.family is LensFamily.EQUAL_AREA
  assert lens_spec.format is LensFormat.FULL_FRAME
  assert lens_spec.center == (320.0, 200.0)
  assert lens_spec.radius == 150.0
  assert lens_spec.angle == 45.0
  assert lens_spec.background == (0.0, 0.0, 255.0)
  assert lens_spec.virtual_color == 7.0


def test_parse_lens_spec_defaults(tmp_path):
  lens_spec = parse_lens_spec(_write(tmp_path, "ifov: 90\nofov: 150\n"))
  assert lens_spec.family is LensFamily.LINEAR
  assert lens_spec.format is LensFormat.CIRCULAR
  assert lens_spec.center is None and lens_spec.radius is None
  assert lens_spec.angle == 0.0


def test_to_dict_reloads_to_same_lens(tmp_path):
  lens_spec = parse_lens_spec(_write(tmp_path, LENS_YAML))
  reloaded = parse_lens_spec(_write(tmp_path, yaml.safe_dump(lens_spec.to_dict()), "dump.yaml"))
  assert reloaded.to_dict() == lens_spec.to_dict()


def test_direction_selects_fov_constraints(tmp_path):
  # ofov = 180 is a valid fisheye side but not a valid perspective side
  path = _write(tmp_path, "ifov: 120\nofov: 180\ndirection: from_fisheye\n")
  with pytest.raises(ValueError, match="ofov"):
    parse_lens_spec(path)
  assert parse_lens_spec(path, direction=LensDirection.TO_FISHEYE).ofov == 180.0

  lens_spec = parse_lens_spec(_write(tmp_path, "ifov: 180\nofov: 100\ndirection: from_fisheye\n", "undo.yaml"))
  assert lens_spec.ifov == 180.0


@pytest.mark.parametrize("text,message", [
  ("ofov: 180\n", "Missing required parameter"),
  ("ifov: 120\nofov: 180\nfamily: fisheye\n", "lens family"),
  ("ifov: 120\nofov: 180\nangle: -10\n", "angle"),
  ("ifov: 120\nofov: 180\nradius: 0\n", "radius"),
  ("ifov: wide\nofov: 180\n", "numbers"),
  ("ifov: 120\nofov: 180\nbackground: [1, 2, 3, 4, 5]\n", "background"),
  ("ifov: [120\n", "Invalid YAML"),
  ("- 120\n- 180\n", "mapping"),
])
def test_invalid_lens_files(tmp_path, text, message):
  with pytest.raises(ValueError, match=message):
    parse_lens_spec(_write(tmp_path, text))


def test_missing_file(tmp_path):
  with pytest.raises(FileNotFoundError):
    parse_lens_spec(str(tmp_path / "nope.yaml"))
  with pytest.raises(FileNotFoundError):
    parse_panorama_spec(str(tmp_path / "nope.yaml"))


def test_resolve_geometry():
  circular = LensSpec(ifov=120, ofov=180)
  assert circular.resolve_center(640, 480) == (319.5, 239.5)
  assert circular.resolve_radius(640, 480) == 240.0

  full_frame = LensSpec(ifov=120, ofov=180, format='full-frame')
  assert full_frame.resolve_radius(640, 480) == 400.0

  explicit = LensSpec(ifov=120, ofov=180, format=LensFormat.FULL_FRAME, center=(10, 20), radius=100)
  assert explicit.resolve_center(640, 480) == (10.0, 20.0)
  assert explicit.resolve_radius(640, 480) == 100.0


def test_enum_values_accept_either_separator():
  assert LensSpec(ifov=1, ofov=1, family='EQUAL-AREA').family is LensFamily.EQUAL_AREA
  assert LensSpec(ifov=1, ofov=1, format='full_frame').format is LensFormat.FULL_FRAME
  lens_spec = LensSpec(ifov=120, ofov=180)
  lens_spec.validate('to-fisheye')


def test_parse_panorama_spec(tmp_path):
  path = _write(tmp_path, "width: 800\nheight: 400\nbackground: [1, 2, 3]\ninterpolation: nearest\n")
  panorama_spec = parse_panorama_spec(path)
  assert (panorama_spec.width, panorama_spec.height) == (800, 400)
  assert panorama_spec.background == (1.0, 2.0, 3.0)
  assert panorama_spec.interpolation is Interpolation.NEAREST

  defaults = PanoramaSpec()
  assert (defaults.width, defaults.height) == (2048, 1024)
  assert defaults.interpolation is Interpolation.BILINEAR


@pytest.mark.parametrize("text", [
  "width: 800\n",
  "width: wide\nheight: 400\n",
  "width: 800\nheight: 0\n",
  "width: 800.5\nheight: 400\n",
  "width: 800\nheight: 400\ninterpolation: bicubic\n",
])
def test_invalid_panorama_files(tmp_path, text):
  with pytest.raises(ValueError):
    parse_panorama_spec(_write(tmp_path, text))


@pytest.mark.parametrize("center", ["[5]", "[1, 2, 3]", "[1, .nan]", "five", "[a, b]"])
def test_center_needs_two_finite_numbers(tmp_path, center):
  with pytest.raises(ValueError, match="center"):
    parse_lens_spec(_write(tmp_path, f"ifov: 120\nofov: 180\ncenter: {center}\n"))


def test_bad_center_direct():
  with pytest.raises(ValueError, match="two finite numbers"):
    LensSpec(ifov=120, ofov=180, center=(5,))


def test_demo_reports_bad_config_with_exit_status(tmp_path, capsys):
  import demo_fisheye
  config_path = _write(tmp_path, "ifov: 120\nofov: 180\ncenter: [5]\n")
  assert demo_fisheye.main([str(tmp_path / "unused.jpg"), config_path]) == 1
  assert "Error:" in capsys.readouterr().out
