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

import math
from enum import IntEnum
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

# Marks directions that strike no face (the zero vector)
NO_FACE = -1


class CubeFace(IntEnum):
  """
  Cube faces, indexed in the conventional left/front/right/back/over/under order.

  Axes: x = forward, y = left, z = up.
  """
  LEFT = 0
  FRONT = 1
  RIGHT = 2
  BACK = 3
  OVER = 4
  UNDER = 5


def coerce_face(key) -> CubeFace:
  """
  Accept a CubeFace, its index, or its name ('left', 'front', ...).

  Raises:
  ValueError naming the valid faces.
  """
  if isinstance(key, CubeFace):
    return key
  try:
    if isinstance(key, str):
      return CubeFace[key.strip().upper()]
    return CubeFace(key)
  except (KeyError, TypeError, ValueError):
    choices = ', '.join(face.name.lower() for face in CubeFace)
    raise ValueError(f"Invalid cube face {key!r}: expected one of {choices}")


class CubeFaceSet:
  """
  Six square cube-face images of equal size, indexed by CubeFace.

  The faces are validated on construction: every face must be square, and all
  faces must share the same dimension, channel count and dtype.
  """

  def __init__(self, faces: Union[Dict, Sequence[np.ndarray]]):
    """
    Parameters:
    - faces: mapping of CubeFace (or face name such as 'front') to image, or a
      sequence of six images in CubeFace order

    Raises:
    ValueError if a face is missing or the faces are not equal-sized squares.
    """
    if isinstance(faces, dict):
      by_face = {}
      for key, img in faces.items():
        by_face[coerce_face(key)] = img
      missing = [face.name.lower() for face in CubeFace if face not in by_face]
      if missing:
        raise ValueError(f"Cube face set is missing faces: {', '.join(missing)}")
      images = [by_face[face] for face in CubeFace]
    else:
      images = list(faces)
      if len(images) != len(CubeFace):
        raise ValueError(f"Cube face set needs exactly 6 images, got {len(images)}")

    self._faces = images
    self.validate()

  def validate(self):
    """Check the square, equal-dimension invariant."""
    reference = None
    for face, img in zip(CubeFace, self._faces):
      if img is None:
        raise ValueError(f"Cube face '{face.name.lower()}' is None")
      height, width = img.shape[:2]
      if width != height:
        raise ValueError(f"Cube face '{face.name.lower()}' is not square: {width}x{height}")
      if width == 0:
        raise ValueError(f"Cube face '{face.name.lower()}' is empty")
      layout = (width, img.shape[2:] if img.ndim == 3 else (), img.dtype)
      if reference is None:
        reference = layout
      elif layout != reference:
        raise ValueError(f"Cube faces differ: '{face.name.lower()}' is {width}x{height} "
                         f"with {img.shape[2:] or '1 channel'} {img.dtype}, expected "
                         f"{reference[0]}x{reference[0]} with {reference[1] or '1 channel'} {reference[2]}")

  @property
  def dim(self) -> int:
    """Side length of every face in pixels."""
    return self._faces[0].shape[1]

  def __getitem__(self, face) -> np.ndarray:
    return self._faces[coerce_face(face)]

  def __iter__(self):
    return iter(zip(CubeFace, self._faces))

  def __len__(self):
    return len(self._faces)


def face_uv_to_pixel(u, v, dim: int):
  """Map face coordinates in [-1, 1] linearly to pixel coordinates in [0, dim-1]."""
  scale = (dim - 1) / 2.0
  return (u + 1.0) * scale, (v + 1.0) * scale


def select_face(direction: Tuple[float, float, float], dim: int) -> Optional[Tuple[CubeFace, float, float]]:
  """
  Find the cube face a direction strikes and the pixel coordinate it hits.

  The dominant axis is the largest absolute component. Exact ties go to y, then
  x, then z; this fixes where the seams between faces fall.

  Parameters:
  - direction: (x, y, z), x forward, y left, z up
  - dim: face side length in pixels

  Returns:
  - (face, px, py), or None for the zero vector
  """
  xx, yy, zz = direction
  xa, ya, za = abs(xx), abs(yy), abs(zz)

  if max(xa, ya, za) == 0:
    return None

  if ya >= xa and ya >= za:
    if yy > 0:
      face, u, v = CubeFace.LEFT, xx / ya, -zz / ya
    else:
      face, u, v = CubeFace.RIGHT, -xx / ya, -zz / ya
  elif xa >= za:
    if xx > 0:
      face, u, v = CubeFace.FRONT, -yy / xa, -zz / xa
    else:
      face, u, v = CubeFace.BACK, yy / xa, -zz / xa
  else:
    if zz > 0:
      face, u, v = CubeFace.OVER, -yy / za, xx / za
    else:
      face, u, v = CubeFace.UNDER, -yy / za, -xx / za

  px, py = face_uv_to_pixel(u, v, dim)
  return face, px, py


def select_faces(xx: np.ndarray, yy: np.ndarray, zz: np.ndarray, dim: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
  """
  Vectorized select_face over arrays of direction components.

  Returns:
  - face_index: int8 array of CubeFace values, NO_FACE for the zero vector
  - px, py: float64 pixel coordinates on the selected face (0 where NO_FACE)
  """
  xa, ya, za = np.abs(xx), np.abs(yy), np.abs(zz)

  y_dominant = (ya >= xa) & (ya >= za)
  x_dominant = ~y_dominant & (xa >= za)
  z_dominant = ~y_dominant & ~x_dominant
  degenerate = np.maximum(np.maximum(xa, ya), za) == 0

  face_index = np.full(xx.shape, NO_FACE, dtype=np.int8)
  u = np.zeros(xx.shape, dtype=np.float64)
  v = np.zeros(xx.shape, dtype=np.float64)

  # Dividing by a zero dominant component only happens on degenerate pixels
  safe_xa = np.where(xa == 0, 1.0, xa)
  safe_ya = np.where(ya == 0, 1.0, ya)
  safe_za = np.where(za == 0, 1.0, za)

  cases = (
    (y_dominant & (yy > 0), CubeFace.LEFT, xx / safe_ya, -zz / safe_ya),
    (y_dominant & ~(yy > 0), CubeFace.RIGHT, -xx / safe_ya, -zz / safe_ya),
    (x_dominant & (xx > 0), CubeFace.FRONT, -yy / safe_xa, -zz / safe_xa),
    (x_dominant & ~(xx > 0), CubeFace.BACK, yy / safe_xa, -zz / safe_xa),
    (z_dominant & (zz > 0), CubeFace.OVER, -yy / safe_za, xx / safe_za),
    (z_dominant & ~(zz > 0), CubeFace.UNDER, -yy / safe_za, -xx / safe_za),
  )
  for mask, face, face_u, face_v in cases:
    mask = mask & ~degenerate
    face_index[mask] = face
    u[mask] = face_u[mask]
    v[mask] = face_v[mask]

  px, py = face_uv_to_pixel(u, v, dim)
  return face_index, px, py


def equirect_direction(i: float, j: float, width: int, height: int) -> Tuple[float, float, float]:
  """
  Unit direction for output pixel (i, j) of a width x height equirectangular image.

  Colatitude runs from 0 at the top row; longitude from pi at the left edge.
  """
  ph = j * (math.pi / height)
  th = math.pi - i * (2.0 * math.pi / width)
  return math.cos(th) * math.sin(ph), math.sin(th) * math.sin(ph), math.cos(ph)


def equirect_directions(i: np.ndarray, j: np.ndarray, width: int, height: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
  """Vectorized equirect_direction."""
  ph = j * (np.pi / height)
  th = np.pi - i * (2.0 * np.pi / width)
  sin_ph = np.sin(ph)
  return np.cos(th) * sin_ph, np.sin(th) * sin_ph, np.cos(ph)
