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

from enum import Enum

import numpy as np

# asin arguments this close past +/-1 are rounding noise at the disk rim
_ASIN_SNAP = 1e-12


class LensFamily(str, Enum):
  """Classical fisheye projection laws relating radius to off-axis angle."""
  LINEAR = 'linear'
  EQUAL_AREA = 'equal-area'
  ORTHOGRAPHIC = 'orthographic'
  STEREOGRAPHIC = 'stereographic'


def _snap_unit(arg: np.ndarray) -> np.ndarray:
  """Snap values within _ASIN_SNAP outside [-1, 1] back onto the interval."""
  overshoot = np.abs(arg) - 1.0
  return np.where((overshoot > 0) & (overshoot <= _ASIN_SNAP), np.sign(arg), arg)


def focal_length(dim, fov):
  """
  Pinhole focal length (pixels) for an image of extent dim spanning fov degrees.
  """
  return dim / (2.0 * np.tan(fov * np.pi / 360.0))


def radius_to_angle(r, dim, fov, family):
  """
  Convert radial distance on a fisheye image to the angle from the optical axis.

  Parameters:
  - r: radial distance(s) from the optical center in pixels
  - dim: lens disk diameter in pixels
  - fov: lens field of view in degrees
  - family: LensFamily or its string value

  Returns:
  - phi: angle(s) in radians. NaN where the lens law has no solution, which the
    caller treats as outside the visible field.
  """
  family = LensFamily(family)
  r = np.asarray(r, dtype=np.float64)

  with np.errstate(invalid='ignore'):
    if family is LensFamily.LINEAR:
      return r * (fov * np.pi) / (dim * 180.0)
    if family is LensFamily.EQUAL_AREA:
      return 2.0 * np.arcsin(_snap_unit(r * 2.0 * np.sin(fov * np.pi / 720.0) / dim))
    if family is LensFamily.ORTHOGRAPHIC:
      return np.arcsin(_snap_unit(r * 2.0 * np.sin(fov * np.pi / 360.0) / dim))
    return 2.0 * np.arctan(r * 2.0 * np.tan(fov * np.pi / 720.0) / dim)


def angle_to_radius(phi, dim, fov, family):
  """
  Inverse of radius_to_angle: angle from the optical axis to fisheye radius.

  Parameters:
  - phi: angle(s) in radians
  - dim, fov, family: as in radius_to_angle

  Returns:
  - r: radial distance(s) in pixels
  """
  family = LensFamily(family)
  phi = np.asarray(phi, dtype=np.float64)

  if family is LensFamily.LINEAR:
    return phi * dim * 180.0 / (fov * np.pi)
  if family is LensFamily.EQUAL_AREA:
    return dim * np.sin(phi / 2.0) / (2.0 * np.sin(fov * np.pi / 720.0))
  if family is LensFamily.ORTHOGRAPHIC:
    return dim * np.sin(phi) / (2.0 * np.sin(fov * np.pi / 360.0))
  return dim * np.tan(phi / 2.0) / (2.0 * np.tan(fov * np.pi / 720.0))


def angle_to_source_offset(phi, f):
  """Perspective (pinhole) radial offset for angle phi and focal length f."""
  return f * np.tan(phi)


def source_offset_to_angle(r, f):
  """Inverse pinhole law: angle from the axis for a perspective radial offset."""
  return np.arctan(np.asarray(r, dtype=np.float64) / f)
