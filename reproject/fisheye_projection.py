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
from typing import Dict, NamedTuple, Optional, Tuple

import numpy as np

from .cache_manager import CacheManager, FISHEYE_PREFIX
from .lens_params import LensDirection, LensSpec, coerce_enum
from .projection_model import (angle_to_radius, angle_to_source_offset, focal_length,
                               radius_to_angle, source_offset_to_angle)
from .raster_io import normalize_pixel_format
from .row_executor import ReprojectionCancelled, run_row_chunks
from .sampler import Interpolation, fill_vector, sample, to_image_dtype
from .virtual_pixel import VirtualPixel


class LensGeometry(NamedTuple):
  """Per-image-size constants derived from a LensSpec."""
  cx: float
  cy: float
  radius: float
  dim: float
  focal: float
  cos_a: float
  sin_a: float


class FisheyeProjection:
  """
  Fisheye lens simulation with cached projection maps.

  TO_FISHEYE treats the source as a perspective (pinhole) image and renders it
  through the configured lens law; FROM_FISHEYE undoes the lens law and renders
  a perspective view of a fisheye source. The output has the source's size and
  shares its optical center.
  """

  def __init__(self, lens_spec: LensSpec, use_vectorized: bool = True, cache_manager: Optional[CacheManager] = None):
    """
    Initialize FisheyeProjection with lens parameters.

    Parameters:
    - lens_spec: LensSpec object
    - use_vectorized: if True, use fast vectorized map generation; if False, use reference implementation
    - cache_manager: Optional shared cache manager. If None, creates a new one.
    """
    self.lens_spec = lens_spec
    self.use_vectorized = use_vectorized
    self.cache_manager = cache_manager if cache_manager is not None else CacheManager()

  def _geometry(self, width: int, height: int, direction: LensDirection) -> LensGeometry:
    spec = self.lens_spec
    cx, cy = spec.resolve_center(width, height)
    radius = spec.resolve_radius(width, height)
    dim = 2.0 * radius
    # The pinhole side is the input for TO_FISHEYE and the output for FROM_FISHEYE
    perspective_fov = spec.ifov if direction is LensDirection.TO_FISHEYE else spec.ofov
    angle_rad = np.radians(spec.angle)
    return LensGeometry(cx, cy, radius, dim, float(focal_length(dim, perspective_fov)),
                        float(np.cos(angle_rad)), float(np.sin(angle_rad)))

  def _generate_cache_key(self, width: int, height: int, direction: LensDirection) -> str:
    """Generate a unique cache key for projection parameters with fisheye prefix."""
    spec = self.lens_spec
    cx, cy = spec.resolve_center(width, height)
    radius = spec.resolve_radius(width, height)
    return (f"{FISHEYE_PREFIX}{direction.value}_{width}x{height}_ifov{spec.ifov:.3f}_ofov{spec.ofov:.3f}"
            f"_{spec.family.value}_c{cx:.3f},{cy:.3f}_r{radius:.3f}_a{spec.angle:.3f}")

  def _map_offsets(self, xd, yd, geometry: LensGeometry, direction: LensDirection):
    """
    Map destination offsets from the optical center to source coordinates.

    Works on scalars and arrays alike.

    Returns:
    - map_x, map_y: source coordinates
    - fill: True where the pixel gets the background color (outside the lens
      disk or outside the visible field)
    """
    spec = self.lens_spec
    rd = np.hypot(xd, yd)

    # Rotate by -angle; rd is unchanged
    xr = geometry.cos_a * xd + geometry.sin_a * yd
    yr = -geometry.sin_a * xd + geometry.cos_a * yd

    if direction is LensDirection.TO_FISHEYE:
      phi = radius_to_angle(rd, geometry.dim, spec.ofov, spec.family)
      hidden = ~np.isfinite(phi)
      # Inside the disk phi <= ofov/2 <= pi/2; the cap only absorbs rounding at the rim
      phi = np.minimum(np.where(hidden, 0.0, phi), np.pi / 2)
      rr = angle_to_source_offset(phi, geometry.focal)
      fill = hidden | (rd > geometry.radius)
    else:
      phi = source_offset_to_angle(rd, geometry.focal)
      rr = angle_to_radius(phi, geometry.dim, spec.ifov, spec.family)
      fill = ~(rr <= geometry.radius)

    with np.errstate(divide='ignore', invalid='ignore'):
      scale = np.where(rd != 0, rr / np.where(rd != 0, rd, 1.0), 0.0)

    map_x = scale * xr + geometry.cx
    map_y = scale * yr + geometry.cy
    return map_x, map_y, fill

  def _generate_projection_maps(self, width: int, height: int, direction: LensDirection,
                                cancel_event: Optional[threading.Event] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Generate projection maps for the lens.

    Dispatches to either vectorized (fast) or reference (slow but educational) implementation.

    Returns:
    - map_x, map_y, fill_mask
    """
    if self.use_vectorized:
      print("Using vectorized (fast) map generation")
      return self._generate_projection_maps_vectorized(width, height, direction, cancel_event)
    else:
      print("Using reference (slow but educational) map generation")
      return self._generate_projection_maps_reference(width, height, direction)

  def _generate_projection_maps_reference(self, width: int, height: int,
                                          direction: LensDirection) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Reference implementation: Generate projection maps one pixel at a time.

    Slow but easy to follow. Kept for verification and debugging.
    """
    start_time = time.time()
    geometry = self._geometry(width, height, direction)

    map_x = np.zeros((height, width), dtype=np.float64)
    map_y = np.zeros((height, width), dtype=np.float64)
    fill_mask = np.zeros((height, width), dtype=bool)

    print(f"Generating {direction.value} maps: {width}x{height}, {self.lens_spec}")

    for v in range(height):
      for u in range(width):
        xs, ys, fill = self._map_offsets(u - geometry.cx, v - geometry.cy, geometry, direction)
        map_x[v, u] = xs
        map_y[v, u] = ys
        fill_mask[v, u] = fill

    map_generation_time = time.time() - start_time
    print(f"\033[33mReference map generation processing time: {map_generation_time:.4f} seconds\033[0m")

    return map_x, map_y, fill_mask

  def _process_row_chunk(self, row_start: int, row_end: int, width: int, geometry: LensGeometry,
                         direction: LensDirection) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Process a chunk of rows for projection map generation.

    Returns:
    - Tuple of (map_x_chunk, map_y_chunk, fill_mask_chunk)
    """
    u_coords, v_coords = np.meshgrid(
      np.arange(width, dtype=np.float64),
      np.arange(row_start, row_end, dtype=np.float64)
    )
    return self._map_offsets(u_coords - geometry.cx, v_coords - geometry.cy, geometry, direction)

  def _generate_projection_maps_vectorized(self, width: int, height: int, direction: LensDirection,
                                           cancel_event: Optional[threading.Event] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Parallel vectorized implementation: NumPy array operations over row chunks
    on a thread pool.
    """
    start_time = time.time()
    geometry = self._geometry(width, height, direction)

    print(f"Generating {direction.value} maps: {width}x{height}, {self.lens_spec}")
    print(f"Lens radius: {geometry.radius:.1f}px, center: ({geometry.cx:.1f}, {geometry.cy:.1f}), "
          f"focal: {geometry.focal:.1f}px")

    map_x = np.zeros((height, width), dtype=np.float64)
    map_y = np.zeros((height, width), dtype=np.float64)
    fill_mask = np.zeros((height, width), dtype=bool)

    def process(row_start: int, row_end: int) -> None:
      chunk_x, chunk_y, chunk_fill = self._process_row_chunk(row_start, row_end, width, geometry, direction)
      map_x[row_start:row_end] = chunk_x
      map_y[row_start:row_end] = chunk_y
      fill_mask[row_start:row_end] = chunk_fill

    run_row_chunks(height, width, process, cancel_event)

    map_generation_time = time.time() - start_time
    print(f"\033[33mParallel vectorized map generation processing time: {map_generation_time:.4f} seconds\033[0m")

    return map_x, map_y, fill_mask

  def get_projection_maps(self, width: int, height: int, direction=LensDirection.TO_FISHEYE,
                          cancel_event: Optional[threading.Event] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Get projection maps with caching.

    Returns cached maps if available, otherwise validates the lens, generates
    and caches new maps.

    Parameters:
    - width, height: source (and output) image size
    - direction: LensDirection or its string value
    - cancel_event: optional threading.Event checked between row chunks

    Returns:
    - map_x, map_y: source coordinates per output pixel
    - fill_mask: True for output pixels that receive the background color
    """
    direction = coerce_enum(LensDirection, direction, 'direction')
    self.lens_spec.validate(direction)

    cache_key = self._generate_cache_key(width, height, direction)

    cached_maps = self.cache_manager.get(cache_key)
    if cached_maps is not None:
      print(f"Using cached projection maps: {cache_key}")
      return cached_maps

    maps = self._generate_projection_maps(width, height, direction, cancel_event)

    self.cache_manager.put(cache_key, *maps)
    print(f"Cached projection maps: {cache_key}")

    return maps

  def project(self, source: np.ndarray, direction=LensDirection.TO_FISHEYE,
              virtual_pixel=VirtualPixel.EDGE, interpolation=Interpolation.BILINEAR,
              interpolate_alpha: bool = True, cancel_event: Optional[threading.Event] = None) -> np.ndarray:
    """
    Reproject a source image through the lens.

    Parameters:
    - source: source image as numpy array
    - direction: LensDirection.TO_FISHEYE or LensDirection.FROM_FISHEYE
    - virtual_pixel: policy for samples inside the disk but outside the source
    - interpolation: Interpolation.NEAREST or Interpolation.BILINEAR
    - interpolate_alpha: if False, alpha is sampled nearest-neighbor
    - cancel_event: optional threading.Event checked between row chunks

    Returns:
    - reprojected image with the source's size and dtype

    Raises:
    ValueError for invalid configuration, before any output is produced.
    ReprojectionCancelled if cancel_event is set before all rows are written.
    """
    direction = coerce_enum(LensDirection, direction, 'direction')
    policy = coerce_enum(VirtualPixel, virtual_pixel, 'virtual pixel')
    interpolation = coerce_enum(Interpolation, interpolation, 'interpolation')
    self.lens_spec.validate(direction)

    source = normalize_pixel_format(source, with_alpha=policy is VirtualPixel.TRANSPARENT)
    height, width = source.shape[:2]
    channels = 1 if source.ndim == 2 else source.shape[2]
    background = fill_vector(self.lens_spec.background, channels, source.dtype)
    virtual_color = fill_vector(self.lens_spec.virtual_color, channels, source.dtype)

    output = np.zeros_like(source)

    try:
      map_x, map_y, fill_mask = self.get_projection_maps(width, height, direction, cancel_event)
    except ReprojectionCancelled:
      raise ReprojectionCancelled(np.zeros(height, dtype=bool), output)

    self.cache_manager.print_status()

    start_time = time.time()

    def process(row_start: int, row_end: int) -> None:
      values = sample(source, map_x[row_start:row_end], map_y[row_start:row_end],
                      interpolation, policy, virtual_color, interpolate_alpha)
      values[fill_mask[row_start:row_end]] = background
      if source.ndim == 2:
        values = values[..., 0]
      output[row_start:row_end] = to_image_dtype(values, source.dtype)

    try:
      run_row_chunks(height, width, process, cancel_event)
    except ReprojectionCancelled as e:
      e.partial = output
      raise

    remap_time = time.time() - start_time
    print(f"\033[33mFisheye remap processing time: {remap_time:.4f} seconds\033[0m")

    return output

  def clear_cache(self):
    """Clear all cached projection maps."""
    self.cache_manager.clear()
    print("Projection map cache cleared")

  def get_cache_info(self) -> Dict[str, int]:
    return self.cache_manager.get_info()


def reproject_fisheye(source: np.ndarray, lens_spec: LensSpec, direction=LensDirection.TO_FISHEYE,
                      virtual_pixel=VirtualPixel.EDGE, interpolation=Interpolation.BILINEAR,
                      interpolate_alpha: bool = True, cancel_event: Optional[threading.Event] = None,
                      cache_manager: Optional[CacheManager] = None) -> np.ndarray:
  """
  Simulate (or undo) a fisheye lens on one image.

  Convenience wrapper around FisheyeProjection.project; pass a shared
  cache_manager to reuse maps across calls.
  """
  projector = FisheyeProjection(lens_spec, cache_manager=cache_manager)
  return projector.project(source, direction, virtual_pixel, interpolation, interpolate_alpha, cancel_event)
