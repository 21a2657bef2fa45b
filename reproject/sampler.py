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

import time
from enum import Enum

import numpy as np

from .virtual_pixel import VirtualPixel, resolve_pixels

# Coordinates are clamped to this magnitude so integer indexing stays in int64
_COORD_LIMIT = 1e12


class Interpolation(str, Enum):
  """Resampling method used when reading a fractional source coordinate."""
  NEAREST = 'nearest'
  BILINEAR = 'bilinear'


def has_alpha(img: np.ndarray) -> bool:
  """True for gray+alpha and BGRA images."""
  return img.ndim == 3 and img.shape[2] in (2, 4)


def fill_vector(color, channels: int, dtype) -> np.ndarray:
  """
  Expand a fill color to one value per channel.

  Parameters:
  - color: None (black), a scalar, or a sequence of channel values. A sequence
    one value short of an alpha image gets an opaque alpha appended.
  - channels: channel count of the image
  - dtype: image dtype, used for the opaque alpha value

  Returns:
  - float64 array of length channels

  Raises:
  ValueError if the color does not fit the image's channel layout.
  """
  if color is None:
    return np.zeros(channels, dtype=np.float64)
  if np.isscalar(color):
    return np.full(channels, float(color), dtype=np.float64)

  values = [float(c) for c in color]
  if len(values) == channels - 1 and channels in (2, 4):
    opaque = float(np.iinfo(dtype).max) if np.issubdtype(dtype, np.integer) else 1.0
    values.append(opaque)
  if len(values) != channels:
    raise ValueError(f"Fill color {tuple(color)} has {len(values)} values but the image has {channels} channels")
  return np.asarray(values, dtype=np.float64)


def to_image_dtype(values: np.ndarray, dtype) -> np.ndarray:
  """Round and clip float samples back into the image dtype."""
  if np.issubdtype(dtype, np.integer):
    info = np.iinfo(dtype)
    return np.clip(np.rint(values), info.min, info.max).astype(dtype)
  return values.astype(dtype)


def _read(img: np.ndarray, ix: np.ndarray, iy: np.ndarray, policy: VirtualPixel, fill: np.ndarray) -> np.ndarray:
  """Read integer pixels, resolving every index through the policy first."""
  height, width = img.shape[:2]
  rx, ry, inside = resolve_pixels(ix, iy, width, height, policy)

  if inside.all():
    return img[ry, rx].astype(np.float64)

  values = np.empty(ix.shape + (img.shape[2],), dtype=np.float64)
  values[inside] = img[ry[inside], rx[inside]]
  values[~inside] = fill
  return values


def _sample_nearest(img, xs, ys, policy, fill):
  ix = np.floor(xs + 0.5).astype(np.int64)
  iy = np.floor(ys + 0.5).astype(np.int64)
  return _read(img, ix, iy, policy, fill)


def _sample_bilinear(img, xs, ys, policy, fill):
  x0 = np.floor(xs)
  y0 = np.floor(ys)
  wx = (xs - x0)[..., np.newaxis]
  wy = (ys - y0)[..., np.newaxis]
  x0 = x0.astype(np.int64)
  y0 = y0.astype(np.int64)

  c00 = _read(img, x0, y0, policy, fill)
  c10 = _read(img, x0 + 1, y0, policy, fill)
  c01 = _read(img, x0, y0 + 1, policy, fill)
  c11 = _read(img, x0 + 1, y0 + 1, policy, fill)

  return (c00 * (1.0 - wx) * (1.0 - wy)
          + c10 * wx * (1.0 - wy)
          + c01 * (1.0 - wx) * wy
          + c11 * wx * wy)


def sample(img: np.ndarray, xs, ys, interpolation=Interpolation.BILINEAR,
           virtual_pixel=VirtualPixel.EDGE, fill=None, interpolate_alpha: bool = True) -> np.ndarray:
  """
  Sample an image at fractional coordinates.

  Pixel centers sit on integer coordinates. Every neighbor index is resolved
  through the virtual pixel policy before it is read, and each channel is
  blended independently.

  Parameters:
  - img: source image, (H, W) or (H, W, C)
  - xs, ys: arrays of fractional column / row coordinates with equal shapes
  - interpolation: Interpolation.NEAREST or Interpolation.BILINEAR
  - virtual_pixel: VirtualPixel policy for out-of-range neighbors
  - fill: constant fill color (CONSTANT policy and non-finite coordinates)
  - interpolate_alpha: if False, the alpha channel is sampled nearest-neighbor

  Returns:
  - float64 array of shape xs.shape + (C,)
  """
  interpolation = Interpolation(interpolation)
  policy = VirtualPixel(virtual_pixel)
  if img.ndim == 2:
    img = img[:, :, np.newaxis]
  channels = img.shape[2]

  if policy is VirtualPixel.TRANSPARENT:
    fill_values = np.zeros(channels, dtype=np.float64)
  else:
    fill_values = fill_vector(fill, channels, img.dtype)

  xs = np.asarray(xs, dtype=np.float64)
  ys = np.asarray(ys, dtype=np.float64)
  finite = np.isfinite(xs) & np.isfinite(ys)
  xs = np.clip(np.where(finite, xs, 0.0), -_COORD_LIMIT, _COORD_LIMIT)
  ys = np.clip(np.where(finite, ys, 0.0), -_COORD_LIMIT, _COORD_LIMIT)

  if interpolation is Interpolation.NEAREST:
    values = _sample_nearest(img, xs, ys, policy, fill_values)
  else:
    values = _sample_bilinear(img, xs, ys, policy, fill_values)
    if not interpolate_alpha and has_alpha(img):
      values[..., -1] = _sample_nearest(img, xs, ys, policy, fill_values)[..., -1]

  values[~finite] = fill_values
  return values


def apply_projection_maps(img: np.ndarray, map_x: np.ndarray, map_y: np.ndarray,
                          interpolation=Interpolation.BILINEAR, virtual_pixel=VirtualPixel.EDGE,
                          fill=None, interpolate_alpha: bool = True) -> np.ndarray:
  """
  Apply a projection mapping to an image using pre-generated maps.

  Parameters:
  - img: source image as numpy array
  - map_x: array of x coordinates in the source image for each output pixel
  - map_y: array of y coordinates in the source image for each output pixel
  - interpolation, virtual_pixel, fill, interpolate_alpha: see sample()

  Returns:
  - remapped image with map_x's shape and the source's channels and dtype
  """
  if img is None:
    raise ValueError("Input image is None")

  output_height, output_width = map_x.shape

  print(f"Applying projection maps to create {output_width}x{output_height} image")

  start_time = time.time()

  values = sample(img, map_x, map_y, interpolation, virtual_pixel, fill, interpolate_alpha)
  if img.ndim == 2:
    values = values[..., 0]
  result = to_image_dtype(values, img.dtype)

  remap_time = time.time() - start_time
  print(f"\033[33mRemap processing time: {remap_time:.4f} seconds\033[0m")

  return result
