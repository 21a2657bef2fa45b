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

import os
from typing import Dict

import cv2
import numpy as np

from .cube_faces import CubeFaceSet, coerce_face


def load_image(path: str) -> np.ndarray:
  """
  Decode an image file, keeping its channels and bit depth (BGR / BGRA order).

  Raises:
  ValueError if the file cannot be decoded.
  """
  img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
  if img is None:
    raise ValueError(f"Could not load image: {path}")
  print(f"Loaded image {path}: {img.shape[1]}x{img.shape[0]}, {img.dtype}")
  return img


def save_image(path: str, img: np.ndarray) -> str:
  """Encode an image to path; the format follows the file extension."""
  out_dir = os.path.dirname(path)
  if out_dir:
    os.makedirs(out_dir, exist_ok=True)
  if not cv2.imwrite(path, img):
    raise ValueError(f"Could not write image: {path}")
  print(f"Saved: {path}")
  return path


def normalize_pixel_format(img: np.ndarray, with_alpha: bool = False) -> np.ndarray:
  """
  Bring an image into a layout the sampler handles.

  Parameters:
  - img: (H, W) or (H, W, C) array
  - with_alpha: if True, add an opaque alpha channel when the image has none

  Returns:
  - image with 1-4 channels; bool images become uint8 0/255
  """
  if img is None:
    raise ValueError("Input image is None")
  if img.ndim not in (2, 3) or (img.ndim == 3 and img.shape[2] not in (1, 2, 3, 4)):
    raise ValueError(f"Unsupported image shape: {img.shape}")

  if img.dtype == bool:
    img = img.astype(np.uint8) * 255

  if img.ndim == 3 and img.shape[2] == 1:
    img = img[:, :, 0]

  if not with_alpha:
    return img

  if img.ndim == 3 and img.shape[2] in (2, 4):
    return img
  if img.ndim == 3 and img.dtype in (np.uint8, np.uint16, np.float32):
    return cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)

  opaque = np.iinfo(img.dtype).max if np.issubdtype(img.dtype, np.integer) else 1.0
  alpha = np.full(img.shape[:2], opaque, dtype=img.dtype)
  return np.dstack([img, alpha])


def load_cube_faces(paths: Dict) -> CubeFaceSet:
  """
  Load six cube faces.

  Parameters:
  - paths: mapping of CubeFace or face name ('left', 'front', 'right', 'back',
    'over', 'under') to image path

  Returns:
  CubeFaceSet, validated square and equal-sized.
  """
  faces = {}
  for key, path in paths.items():
    faces[coerce_face(key)] = normalize_pixel_format(load_image(path))
  return CubeFaceSet(faces)
