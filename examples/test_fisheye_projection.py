#!/usr/bin/env python3
"""
Tests for FisheyeProjection.

Covers:
1. Lens disk coverage and background fill
2. Radial lens laws in the generated maps
3. Agreement of the reference and vectorized map generators
4. Virtual pixel policies, validation and cancellation
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import threading

import numpy as np
import pytest
from reproject import (CacheManager, FisheyeProjection, LensDirection, LensFamily, LensFormat,
                       LensSpec, ReprojectionCancelled, VirtualPixel, focal_length, reproject_fisheye)

TO_FISHEYE = LensDirection.TO_FISHEYE
FROM_FISHEYE = LensDirection.FROM_FISHEYE


def _offsets(width, height, cx=None, cy=None):
  cx = (width - 1) / 2.0 if cx is None else cx
  cy = (height - 1) / 2.0 if cy is None else cy
  v, u = np.mgrid[0:height, 0:width].astype(np.float64)
  return u - cx, v - cy


def _solid(width, height, color=(128, 128, 128)):
  return np.full((height, width, 3), color, dtype=np.uint8)


def test_solid_source_fills_lens_disk():
  lens_spec = LensSpec(ifov=120, ofov=180, family=LensFamily.LINEAR, format=LensFormat.CIRCULAR,
                       background=(0, 0, 255))
  output = FisheyeProjection(lens_spec).project(_solid(200, 200), TO_FISHEYE)

  assert output.shape == (200, 200, 3) and output.dtype == np.uint8
  xd, yd = _offsets(200, 200)
  inside = np.hypot(xd, yd) <= 100
  assert np.all(output[inside] == (128, 128, 128))
  assert np.all(output[~inside] == (0, 0, 255))


def test_explicit_center_maps_to_itself():
  lens_spec = LensSpec(ifov=100, ofov=180, center=(30, 40), radius=25)
  map_x, map_y, fill_mask = FisheyeProjection(lens_spec).get_projection_maps(100, 80, TO_FISHEYE)
  assert map_x.shape == (80, 100) and map_x.dtype == np.float64
  assert map_x[40, 30] == 30.0 and map_y[40, 30] == 40.0
  assert not fill_mask[40, 30]
  assert fill_mask[40, 56] and not fill_mask[40, 54]


@pytest.mark.parametrize("family", list(LensFamily))
def test_fill_mask_is_outside_of_lens_disk(family):
  lens_spec = LensSpec(ifov=120, ofov=180, family=family, radius=40)
  _, _, fill_mask = FisheyeProjection(lens_spec).get_projection_maps(100, 100, TO_FISHEYE)
  xd, yd = _offsets(100, 100)
  assert np.array_equal(fill_mask, np.hypot(xd, yd) > 40)


def test_full_frame_lens_covers_whole_frame():
  lens_spec = LensSpec(ifov=120, ofov=180, format=LensFormat.FULL_FRAME)
  _, _, fill_mask = FisheyeProjection(lens_spec).get_projection_maps(120, 80, TO_FISHEYE)
  assert not fill_mask.any()


def test_maps_follow_linear_lens_law():
  lens_spec = LensSpec(ifov=120, ofov=160, family=LensFamily.LINEAR)
  map_x, map_y, fill_mask = FisheyeProjection(lens_spec).get_projection_maps(100, 100, TO_FISHEYE)

  xd, yd = _offsets(100, 100)
  rd = np.hypot(xd, yd)
  f = focal_length(100, 120)
  expected = f * np.tan(np.radians(rd / 50.0 * 80.0))

  inside = ~fill_mask
  rr = np.hypot(map_x - 49.5, map_y - 49.5)
  np.testing.assert_allclose(rr[inside], expected[inside], rtol=1e-9)
  # Mapping is radial: source and output offsets point the same way
  assert np.all(np.sign(map_x[inside] - 49.5) == np.sign(xd[inside]))


@pytest.mark.parametrize("direction", [TO_FISHEYE, FROM_FISHEYE])
def test_reference_and_vectorized_maps_agree(direction):
  # The fisheye side gets the wide field of view
  fovs = (100, 150) if direction is TO_FISHEYE else (150, 100)
  lens_spec = LensSpec(ifov=fovs[0], ofov=fovs[1], family=LensFamily.EQUAL_AREA, angle=30)

  reference = FisheyeProjection(lens_spec, use_vectorized=False).get_projection_maps(24, 20, direction)
  vectorized = FisheyeProjection(lens_spec, use_vectorized=True).get_projection_maps(24, 20, direction)

  assert np.array_equal(reference[2], vectorized[2])
  inside = ~reference[2]
  for ref, vec in zip(reference[:2], vectorized[:2]):
    np.testing.assert_allclose(ref[inside], vec[inside], rtol=1e-9, atol=1e-9)


def test_rotation_turns_sampling_direction():
  straight = LensSpec(ifov=90, ofov=90, angle=0)
  turned = LensSpec(ifov=90, ofov=90, angle=90)
  map_x, map_y, _ = FisheyeProjection(straight).get_projection_maps(41, 41, TO_FISHEYE)
  assert map_x[20, 25] > 20 and map_y[20, 25] == pytest.approx(20)

  turned_x, turned_y, _ = FisheyeProjection(turned).get_projection_maps(41, 41, TO_FISHEYE)
  assert turned_x[20, 25] == pytest.approx(20)
  assert turned_y[20, 25] < 20
  # Rotation never changes how far from the center a pixel samples
  assert np.hypot(turned_x[20, 25] - 20, turned_y[20, 25] - 20) == pytest.approx(map_x[20, 25] - 20)


def test_from_fisheye_fills_outside_of_fisheye_coverage():
  lens_spec = LensSpec(ifov=60, ofov=120, background=(9, 9, 9))
  output = FisheyeProjection(lens_spec).project(_solid(100, 100), FROM_FISHEYE)
  assert np.all(output[50, 50] == 128)
  for corner in (output[0, 0], output[0, 99], output[99, 0], output[99, 99], output[50, 0]):
    assert np.all(corner == 9)


def test_round_trip_restores_center_region():
  ramp = np.tile(np.arange(100, dtype=np.float32), (100, 1))
  forward = LensSpec(ifov=90, ofov=120)
  backward = LensSpec(ifov=120, ofov=90)
  cache_manager = CacheManager()

  fisheye_img = FisheyeProjection(forward, cache_manager=cache_manager).project(ramp, TO_FISHEYE)
  restored = FisheyeProjection(backward, cache_manager=cache_manager).project(fisheye_img, FROM_FISHEYE)

  assert restored.dtype == np.float32 and restored.shape == ramp.shape
  xd, yd = _offsets(100, 100)
  center = np.hypot(xd, yd) < 20
  np.testing.assert_allclose(restored[center], ramp[center], atol=0.1)
  assert cache_manager.get_info()['fisheye_projections'] == 2


def test_transparent_policy_adds_alpha():
  lens_spec = LensSpec(ifov=120, ofov=180, background=(0, 0, 255))
  output = FisheyeProjection(lens_spec).project(_solid(100, 100), TO_FISHEYE,
                                                virtual_pixel=VirtualPixel.TRANSPARENT)
  assert output.shape == (100, 100, 4)
  assert np.array_equal(output[50, 50], [128, 128, 128, 255])
  # Inside the disk but far outside the source
  assert np.array_equal(output[50, 0], [0, 0, 0, 0])
  # Outside the disk
  assert np.array_equal(output[0, 0], [0, 0, 255, 255])


def test_constant_policy_uses_virtual_color():
  lens_spec = LensSpec(ifov=120, ofov=180, background=(0, 0, 255), virtual_color=(10, 20, 30))
  output = FisheyeProjection(lens_spec).project(_solid(100, 100), TO_FISHEYE,
                                                virtual_pixel='constant')
  assert np.array_equal(output[50, 0], [10, 20, 30])
  assert np.array_equal(output[50, 50], [128, 128, 128])
  assert np.array_equal(output[0, 0], [0, 0, 255])


def test_gray_source_keeps_layout():
  gray = np.full((60, 60), 77, dtype=np.uint8)
  output = reproject_fisheye(gray, LensSpec(ifov=120, ofov=180), TO_FISHEYE)
  assert output.shape == (60, 60) and output.dtype == np.uint8
  assert output[30, 30] == 77 and output[0, 0] == 0


@pytest.mark.parametrize("kwargs,direction", [
  (dict(ifov=180, ofov=180), TO_FISHEYE),
  (dict(ifov=0, ofov=180), TO_FISHEYE),
  (dict(ifov=120, ofov=190), TO_FISHEYE),
  (dict(ifov=120, ofov=180), FROM_FISHEYE),
  (dict(ifov=120, ofov=180, angle=360), TO_FISHEYE),
  (dict(ifov=120, ofov=180, radius=-5), TO_FISHEYE),
  (dict(ifov=None, ofov=180), TO_FISHEYE),
])
def test_invalid_lens_is_rejected_before_mapping(kwargs, direction):
  projector = FisheyeProjection(LensSpec(**kwargs))
  with pytest.raises(ValueError):
    projector.project(_solid(16, 16), direction)
  assert projector.get_cache_info()['total_cached_projections'] == 0


def test_invalid_options_are_rejected():
  projector = FisheyeProjection(LensSpec(ifov=120, ofov=180))
  with pytest.raises(ValueError):
    projector.project(_solid(16, 16), 'sideways')
  with pytest.raises(ValueError):
    projector.project(_solid(16, 16), TO_FISHEYE, virtual_pixel='tile')
  with pytest.raises(ValueError):
    projector.project(_solid(16, 16), TO_FISHEYE, interpolation='bicubic')
  with pytest.raises(ValueError):
    LensSpec(ifov=120, ofov=180, family='fisheye')


def test_color_must_fit_channels():
  projector = FisheyeProjection(LensSpec(ifov=120, ofov=180, background=(1, 2)))
  with pytest.raises(ValueError):
    projector.project(_solid(16, 16), TO_FISHEYE)


def test_preset_cancel_event_stops_before_any_row():
  cancel_event = threading.Event()
  cancel_event.set()
  projector = FisheyeProjection(LensSpec(ifov=120, ofov=180))

  with pytest.raises(ReprojectionCancelled) as excinfo:
    projector.project(_solid(64, 64), TO_FISHEYE, cancel_event=cancel_event)

  assert not excinfo.value.rows_done.any()
  assert excinfo.value.partial.shape == (64, 64, 3)
  assert not excinfo.value.partial.any()
  assert projector.get_cache_info()['total_cached_projections'] == 0


class CancelAfter(threading.Event):
  """Event that reports itself set after a number of checks."""

  def __init__(self, checks):
    super().__init__()
    self.checks = checks

  def is_set(self):
    self.checks -= 1
    return self.checks < 0


def test_cancel_mid_way_keeps_finished_rows():
  projector = FisheyeProjection(LensSpec(ifov=120, ofov=180))
  source = _solid(64, 64, (200, 100, 50))
  full = projector.project(source, TO_FISHEYE)

  with pytest.raises(ReprojectionCancelled) as excinfo:
    projector.project(source, TO_FISHEYE, cancel_event=CancelAfter(1))

  rows_done = excinfo.value.rows_done
  partial = excinfo.value.partial
  assert rows_done[:32].all() and not rows_done[32:].any()
  assert np.array_equal(partial[:32], full[:32])
  assert not partial[32:].any()


def test_maps_are_cached_per_configuration():
  lens_spec = LensSpec(ifov=120, ofov=180)
  projector = FisheyeProjection(lens_spec)
  first = projector.project(_solid(40, 40), TO_FISHEYE)
  second = projector.project(_solid(40, 40), TO_FISHEYE)
  assert np.array_equal(first, second)

  info = projector.get_cache_info()
  assert info['total_cached_projections'] == 1
  assert info['fisheye_projections'] == 1
  assert info['total_hits'] == 1

  cached_x, _, _ = projector.get_projection_maps(40, 40, TO_FISHEYE)
  assert not cached_x.flags.writeable

  lens_spec.family = LensFamily.STEREOGRAPHIC
  projector.project(_solid(40, 40), TO_FISHEYE)
  assert projector.get_cache_info()['total_cached_projections'] == 2

  projector.clear_cache()
  assert projector.get_cache_info()['total_cached_projections'] == 0
