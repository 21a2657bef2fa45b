"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

import threading
import time
from typing import Dict, Optional, Tuple

import numpy as np

from .cache_manager import CacheManager, PANORAMA_PREFIX
from .cube_faces import (NO_FACE, CubeFace, CubeFaceSet, equirect_direction,
                         equirect_directions, select_face, select_faces)
from .lens_params import PanoramaSpec, coerce_enum
from .row_executor import ReprojectionCancelled, run_row_chunks
from .sampler import Interpolation, fill_vector, sample, to_image_dtype
from .virtual_pixel import VirtualPixel


class CubePanoramaProjection:
  """
  Cube-face to equirectangular panorama stitching with cached projection maps.

  Every output pixel is turned into a direction on the unit sphere, the cube
  face that direction strikes is selected, and that face is sampled.
  """

  def __init__(self, panorama_spec: PanoramaSpec, use_vectorized: bool = True,
               cache_manager: Optional[CacheManager] = None):
    """
    Parameters:
    - panorama_spec: PanoramaSpec with the output size, background and interpolation
    - use_vectorized: if True, use fast vectorized map generation; if False, use reference implementation
    - cache_manager: Optional shared cache manager. If None, creates a new one.
    """
    self.panorama_spec = panorama_spec
    self.use_vectorized = use_vectorized
    self.cache_manager = cache_manager if cache_manager is not None else CacheManager()

  def _generate_cache_key(self, face_dim: int) -> str:
    """Generate a unique cache key for projection parameters with panorama prefix."""
    return f"{PANORAMA_PREFIX}{self.panorama_spec.width}x{self.panorama_spec.height}_face{face_dim}"

  def _generate_projection_maps(self, face_dim: int,
                                cancel_event: Optional[threading.Event] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    if self.use_vectorized:
      print("Using vectorized (fast) map generation")
      return self._generate_projection_maps_vectorized(face_dim, cancel_event)
    else:
      print("Using reference (slow but educational) map generation")
      return self._generate_projection_maps_reference(face_dim)

  def _generate_projection_maps_reference(self, face_dim: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Reference implementation: Generate face selection maps using nested loops.

    This mirrors the per-pixel definition directly and is kept for verification.
    """
    start_time = time.time()
    width, height = self.panorama_spec.width, self.panorama_spec.height

    face_index = np.full((height, width), NO_FACE, dtype=np.int8)
    map_x = np.zeros((height, width), dtype=np.float64)
    map_y = np.zeros((height, width), dtype=np.float64)

    print(f"Generating panorama maps: {width}x{height} from {face_dim}x{face_dim} faces")

    for j in range(height):
      for i in range(width):
        hit = select_face(equirect_direction(i, j, width, height), face_dim)
        if hit is None:
          continue
        face, px, py = hit
        face_index[j, i] = face
        map_x[j, i] = px
        map_y[j, i] = py

    map_generation_time = time.time() - start_time
    print(f"\033[33mReference map generation processing time: {map_generation_time:.4f} seconds\033[0m")

    return face_index, map_x, map_y

  def _process_row_chunk(self, row_start: int, row_end: int, face_dim: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Process a chunk of rows for face selection map generation.

    Returns:
    - Tuple of (face_index_chunk, map_x_chunk, map_y_chunk)
    """
    width, height = self.panorama_spec.width, self.panorama_spec.height
    i_coords, j_coords = np.meshgrid(
      np.arange(width, dtype=np.float64),
      np.arange(row_start, row_end, dtype=np.float64)
    )
    xx, yy, zz = equirect_directions(i_coords, j_coords, width, height)
    return select_faces(xx, yy, zz, face_dim)

  def _generate_projection_maps_vectorized(self, face_dim: int,
                                           cancel_event: Optional[threading.Event] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Parallel vectorized implementation over row chunks on a thread pool."""
    start_time = time.time()
    width, height = self.panorama_spec.width, self.panorama_spec.height

    print(f"Generating panorama maps: {width}x{height} from {face_dim}x{face_dim} faces")

    face_index = np.full((height, width), NO_FACE, dtype=np.int8)
    map_x = np.zeros((height, width), dtype=np.float64)
    map_y = np.zeros((height, width), dtype=np.float64)

    def process(row_start: int, row_end: int) -> None:
      chunk_face, chunk_x, chunk_y = self._process_row_chunk(row_start, row_end, face_dim)
      face_index[row_start:row_end] = chunk_face
      map_x[row_start:row_end] = chunk_x
      map_y[row_start:row_end] = chunk_y

    run_row_chunks(height, width, process, cancel_event)

    map_generation_time = time.time() - start_time
    print(f"\033[33mParallel vectorized map generation processing time: {map_generation_time:.4f} seconds\033[0m")

    return face_index, map_x, map_y

  def get_projection_maps(self, face_dim: int,
                          cancel_event: Optional[threading.Event] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Get face selection maps with caching.

    Parameters:
    - face_dim: side length of the cube faces in pixels

    Returns:
    - face_index: CubeFace value per output pixel, NO_FACE where no face is struck
    - map_x, map_y: pixel coordinates on the selected face
    """
    self.panorama_spec.validate()

    cache_key = self._generate_cache_key(face_dim)

    cached_maps = self.cache_manager.get(cache_key)
    if cached_maps is not None:
      print(f"Using cached projection maps: {cache_key}")
      return cached_maps

    maps = self._generate_projection_maps(face_dim, cancel_event)

    self.cache_manager.put(cache_key, *maps)
    print(f"Cached projection maps: {cache_key}")

    return maps

  def project(self, faces, interpolation=None, virtual_pixel=VirtualPixel.EDGE,
              interpolate_alpha: bool = True, cancel_event: Optional[threading.Event] = None) -> np.ndarray:
    """
    Stitch six cube faces into an equirectangular panorama.

    Parameters:
    - faces: CubeFaceSet, or a mapping / sequence accepted by CubeFaceSet
    - interpolation: overrides panorama_spec.interpolation when given
    - virtual_pixel: fallback policy for neighbors past a face edge
    - interpolate_alpha: if False, alpha is sampled nearest-neighbor
    - cancel_event: optional threading.Event checked between row chunks

    Returns:
    - panorama of panorama_spec.height x panorama_spec.width with the faces' channels and dtype

    Raises:
    ValueError for invalid configuration or mismatched faces, before any output is produced.
    ReprojectionCancelled if cancel_event is set before all rows are written.
    """
    if not isinstance(faces, CubeFaceSet):
      faces = CubeFaceSet(faces)
    self.panorama_spec.validate()
    interpolation = coerce_enum(Interpolation, interpolation or self.panorama_spec.interpolation, 'interpolation')
    policy = coerce_enum(VirtualPixel, virtual_pixel, 'virtual pixel')

    reference = faces[CubeFace.FRONT]
    channels = 1 if reference.ndim == 2 else reference.shape[2]
    dtype = reference.dtype
    background = fill_vector(self.panorama_spec.background, channels, dtype)

    width, height = self.panorama_spec.width, self.panorama_spec.height
    output_shape = (height, width) if reference.ndim == 2 else (height, width, channels)
    output = np.zeros(output_shape, dtype=dtype)

    try:
      face_index, map_x, map_y = self.get_projection_maps(faces.dim, cancel_event)
    except ReprojectionCancelled:
      raise ReprojectionCancelled(np.zeros(height, dtype=bool), output)

    self.cache_manager.print_status()

    start_time = time.time()

    def process(row_start: int, row_end: int) -> None:
      rows_face = face_index[row_start:row_end]
      rows_x = map_x[row_start:row_end]
      rows_y = map_y[row_start:row_end]
      values = np.empty(rows_face.shape + (channels,), dtype=np.float64)
      values[rows_face == NO_FACE] = background
      for face, img in faces:
        mask = rows_face == face
        if np.any(mask):
          values[mask] = sample(img, rows_x[mask], rows_y[mask], interpolation, policy,
                                background, interpolate_alpha)
      if reference.ndim == 2:
        values = values[..., 0]
      output[row_start:row_end] = to_image_dtype(values, dtype)

    try:
      run_row_chunks(height, width, process, cancel_event)
    except ReprojectionCancelled as e:
      e.partial = output
      raise

    remap_time = time.time() - start_time
    print(f"\033[33mPanorama remap processing time: {remap_time:.4f} seconds\033[0m")

    return output

  def clear_cache(self):
    """Clear all cached projection maps."""
    self.cache_manager.clear()
    print("Projection map cache cleared")

  def get_cache_info(self) -> Dict[str, int]:
    return self.cache_manager.get_info()


def reproject_cube_to_panorama(faces, panorama_spec: PanoramaSpec, interpolation=None,
                               virtual_pixel=VirtualPixel.EDGE, interpolate_alpha: bool = True,
                               cancel_event: Optional[threading.Event] = None,
                               cache_manager: Optional[CacheManager] = None) -> np.ndarray:
  """
  Stitch six cube faces into an equirectangular panorama.

  Convenience wrapper around CubePanoramaProjection.project.
  """
  projector = CubePanoramaProjection(panorama_spec, cache_manager=cache_manager)
  return projector.project(faces, interpolation, virtual_pixel, interpolate_alpha, cancel_event)
