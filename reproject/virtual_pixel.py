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
from typing import Tuple

import numpy as np


class VirtualPixel(str, Enum):
  """Policy for samples that fall outside the source image."""
  CONSTANT = 'constant'
  EDGE = 'edge'
  MIRROR = 'mirror'
  WRAP = 'wrap'
  TRANSPARENT = 'transparent'


def resolve_index(index: np.ndarray, size: int, policy: VirtualPixel) -> Tuple[np.ndarray, np.ndarray]:
  """
  Resolve integer pixel indices along one axis before any read happens.

  Parameters:
  - index: integer indices, possibly outside [0, size)
  - size: axis length
  - policy: VirtualPixel policy

  Returns:
  - resolved: indices guaranteed to lie in [0, size)
  - inside: True where the resolved index reads real image data. False only for
    CONSTANT and TRANSPARENT, where the caller substitutes the fill value.
  """
  index = np.asarray(index, dtype=np.int64)

  if policy is VirtualPixel.EDGE:
    return np.clip(index, 0, size - 1), np.ones(index.shape, dtype=bool)

  if policy is VirtualPixel.WRAP:
    return np.mod(index, size), np.ones(index.shape, dtype=bool)

  if policy is VirtualPixel.MIRROR:
    # Period 2*size with the edge pixel repeated: ... c b a | a b c | c b a ...
    folded = np.mod(index, 2 * size)
    return np.where(folded >= size, 2 * size - 1 - folded, folded), np.ones(index.shape, dtype=bool)

  inside = (index >= 0) & (index < size)
  return np.where(inside, index, 0), inside


def resolve_pixels(ix: np.ndarray, iy: np.ndarray, width: int, height: int,
                   policy: VirtualPixel) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
  """
  Resolve (x, y) integer pixel indices for a width x height image.

  Returns:
  - rx, ry: in-range indices safe to read
  - inside: mask of samples that read real data (see resolve_index)
  """
  rx, inside_x = resolve_index(ix, width, policy)
  ry, inside_y = resolve_index(iy, height, policy)
  return rx, ry, inside_x & inside_y
