#!/usr/bin/env python3
"""
Tests for CubePanoramaProjection: face selection, seams and orientation of
the stitched equirectangular panorama.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import threading

import cv2
import numpy as np
import pytest
from reproject import (CacheManager, CubeFace, CubePanoramaProjection, Interpolation, PanoramaSpec,
                       ReprojectionCancelled, reproject_cube_to_panorama)
from reproject.cube_faces import NO_FACE, equirect_directions

FACE_COLORS = {
  CubeFace.LEFT: (255, 0, 0),
  CubeFace.FRONT: (0, 255, 0),
  CubeFace.RIGHT: (0, 0, 255),
  CubeFace.BACK: (255, 255, 0),
  CubeFace.OVER: (255, 0, 255),
  CubeFace.UNDER: (0, 255, 255),
}


def _solid_faces(dim=100):
  return {face: np.full((dim, dim, 3), color, dtype=np.uint8) for face, color in FACE_COLORS.items()}


def _face_labels(panorama):
  """Face whose color each panorama pixel carries, NO_FACE if none matches."""
  labels = np.full(panorama.shape[:2], NO_FACE, dtype=np.int8)
  for face, color in FACE_COLORS.items():
    labels[np.all(panorama == color, axis=2)] = face
  return labels


@pytest.fixture(scope="module")
def solid_panorama():
  return CubePanoramaProjection(PanoramaSpec(width=1000, height=500)).project(_solid_faces())


def test_panorama_has_requested_size(solid_panorama):
  assert solid_panorama.shape == (500, 1000, 3)
  assert solid_panorama.dtype == np.uint8


def test_center_looks_forward_and_top_looks_up(solid_panorama):
  assert tuple(solid_panorama[250, 500]) == FACE_COLORS[CubeFace.FRONT]
  assert np.all(solid_panorama[0] == FACE_COLORS[CubeFace.OVER])
  assert np.all(solid_panorama[-1] == FACE_COLORS[CubeFace.UNDER])
  assert tuple(solid_panorama[250, 250]) == FACE_COLORS[CubeFace.LEFT]
  assert tuple(solid_panorama[250, 750]) == FACE_COLORS[CubeFace.RIGHT]
  assert tuple(solid_panorama[250, 0]) == FACE_COLORS[CubeFace.BACK]


def test_every_pixel_comes_from_exactly_one_face(solid_panorama):
  labels = _face_labels(solid_panorama)
  assert not np.any(labels == NO_FACE)
  for face in CubeFace:
    assert np.any(labels == face)


def test_face_regions_are_contiguous(solid_panorama):
  labels = _face_labels(solid_panorama)
  for face in CubeFace:
    mask = (labels == face).astype(np.uint8)
    num_labels, _ = cv2.connectedComponents(mask, connectivity=8)
    components = num_labels - 1
    if face is CubeFace.BACK:
      # The back face straddles the left/right seam of the panorama
      assert components <= 2
      assert mask[:, 0].any() and mask[:, -1].any()
    else:
      assert components == 1


def test_faces_keep_their_orientation():
  faces = _solid_faces(dim=64)
  faces[CubeFace.FRONT][:, :32] = (10, 10, 10)
  faces[CubeFace.FRONT][:, 32:] = (20, 20, 20)
  faces[CubeFace.OVER][:32] = (30, 30, 30)
  faces[CubeFace.OVER][32:] = (40, 40, 40)

  panorama = CubePanoramaProjection(PanoramaSpec(width=400, height=200),
                                    ).project(faces, interpolation=Interpolation.NEAREST)
  # Left of the panorama center shows the left half of the front face
  assert tuple(panorama[100, 170]) == (10, 10, 10)
  assert tuple(panorama[100, 230]) == (20, 20, 20)
  # Looking up while facing forward shows the half of the over face next to the front
  assert tuple(panorama[20, 200]) == (40, 40, 40)
  assert tuple(panorama[20, 0]) == (30, 30, 30)


def test_reference_and_vectorized_maps_agree():
  spec = PanoramaSpec(width=200, height=100)
  reference = CubePanoramaProjection(spec, use_vectorized=False).get_projection_maps(32)
  vectorized = CubePanoramaProjection(spec, use_vectorized=True).get_projection_maps(32)

  # Only a direction sitting on a cube edge to within rounding may land on
  # the neighboring face; every other pixel must pick the same face
  i, j = np.meshgrid(np.arange(200, dtype=np.float64), np.arange(100, dtype=np.float64))
  components = np.sort(np.abs(np.stack(equirect_directions(i, j, 200, 100))), axis=0)
  on_edge = components[2] - components[1] < 1e-12

  same_face = reference[0] == vectorized[0]
  assert np.all(same_face | on_edge)
  np.testing.assert_allclose(reference[1][same_face], vectorized[1][same_face], atol=1e-9)
  np.testing.assert_allclose(reference[2][same_face], vectorized[2][same_face], atol=1e-9)
  assert np.all((vectorized[1] >= 0) & (vectorized[1] <= 31))
  assert np.all((vectorized[2] >= 0) & (vectorized[2] <= 31))


def test_gray_faces_stay_gray():
  faces = [np.full((16, 16), 10 * (face + 1), dtype=np.uint8) for face in CubeFace]
  panorama = reproject_cube_to_panorama(faces, PanoramaSpec(width=64, height=32))
  assert panorama.shape == (32, 64)
  assert panorama[16, 32] == 10 * (CubeFace.FRONT + 1)
  assert panorama[0, 5] == 10 * (CubeFace.OVER + 1)


def test_mismatched_faces_are_rejected():
  faces = _solid_faces(dim=16)
  faces[CubeFace.BACK] = np.zeros((8, 8, 3), dtype=np.uint8)
  projector = CubePanoramaProjection(PanoramaSpec(width=64, height=32))
  with pytest.raises(ValueError):
    projector.project(faces)
  assert projector.get_cache_info()['total_cached_projections'] == 0


@pytest.mark.parametrize("width,height", [(0, 32), (64, -1), (64.5, 32), ('64', 32)])
def test_invalid_output_size_is_rejected(width, height):
  with pytest.raises(ValueError):
    CubePanoramaProjection(PanoramaSpec(width=width, height=height)).project(_solid_faces(dim=8))


def test_maps_are_shared_through_cache_manager():
  cache_manager = CacheManager()
  spec = PanoramaSpec(width=64, height=32)
  CubePanoramaProjection(spec, cache_manager=cache_manager).project(_solid_faces(dim=16))
  CubePanoramaProjection(spec, cache_manager=cache_manager).project(_solid_faces(dim=16))
  CubePanoramaProjection(spec, cache_manager=cache_manager).project(_solid_faces(dim=8))

  info = cache_manager.get_info()
  assert info['panorama_projections'] == 2
  assert info['fisheye_projections'] == 0
  assert info['total_hits'] == 1


def test_cancelled_panorama_reports_partial_output():
  cancel_event = threading.Event()
  cancel_event.set()
  with pytest.raises(ReprojectionCancelled) as excinfo:
    reproject_cube_to_panorama(_solid_faces(dim=16), PanoramaSpec(width=64, height=32),
                               cancel_event=cancel_event)
  assert excinfo.value.partial.shape == (32, 64, 3)
  assert not excinfo.value.rows_done.any()
