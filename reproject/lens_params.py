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
import numbers
from enum import Enum
from typing import Optional, Tuple

import yaml

from .projection_model import LensFamily
from .sampler import Interpolation


class LensFormat(str, Enum):
  """How the lens circle sits in the frame."""
  CIRCULAR = 'circular'
  FULL_FRAME = 'full-frame'


class LensDirection(str, Enum):
  """Which side of the reprojection is the fisheye image."""
  TO_FISHEYE = 'to_fisheye'
  FROM_FISHEYE = 'from_fisheye'


def coerce_enum(enum_cls, value, name: str):
  """Accept an enum member or its string value; raise ValueError otherwise."""
  if isinstance(value, enum_cls):
    return value
  text = str(value).strip().lower()
  for candidate in (text, text.replace('_', '-'), text.replace('-', '_')):
    try:
      return enum_cls(candidate)
    except ValueError:
      continue
  choices = ', '.join(member.value for member in enum_cls)
  raise ValueError(f"Invalid {name} '{value}': expected one of {choices}")


def _coerce_center(value):
  """Validate an optical center: None or exactly two finite pixel coordinates."""
  if value is None:
    return None
  try:
    center = tuple(float(c) for c in value)
  except (TypeError, ValueError):
    raise ValueError(f"Invalid center={value!r}: expected two numbers [cx, cy]")
  if len(center) != 2 or not all(math.isfinite(c) for c in center):
    raise ValueError(f"Invalid center={value!r}: expected two finite numbers [cx, cy]")
  return center


def _coerce_color(value, name: str):
  """Validate a fill color: None, a scalar, or a sequence of channel values."""
  if value is None:
    return None
  if isinstance(value, numbers.Real) and not isinstance(value, bool):
    return float(value)
  try:
    color = tuple(float(c) for c in value)
  except (TypeError, ValueError):
    raise ValueError(f"Invalid {name} color: {value!r}")
  if not 1 <= len(color) <= 4:
    raise ValueError(f"Invalid {name} color: expected 1 to 4 channel values, got {len(color)}")
  return color


class LensSpec:
  """
  Lens parameters for fisheye simulation.

  Holds the two fields of view, the lens law, the lens format and the optional
  geometry overrides (center, radius, rotation) together with the two constant
  fill colors used outside the lens disk and outside the source coverage.
  """

  def __init__(self, ifov=None, ofov=None, family=LensFamily.LINEAR,
               format=LensFormat.CIRCULAR, center=None, radius=None, angle=0.0,
               background=0, virtual_color=0):
    """
    Initialize lens parameters.

    Parameters:
    - ifov: input field of view in degrees
    - ofov: output field of view in degrees
    - family: lens law (linear, equal-area, orthographic, stereographic)
    - format: 'circular' or 'full-frame'; ignored when radius is given
    - center: optional (cx, cy) optical center in pixels; defaults to the source center
    - radius: optional lens disk radius in pixels; overrides format
    - angle: rotation angle in degrees, 0 <= angle < 360
    - background: fill color outside the lens disk
    - virtual_color: fill color inside the disk but outside the source coverage
    """
    self.ifov = ifov
    self.ofov = ofov
    self.family = coerce_enum(LensFamily, family, 'lens family')
    self.format = coerce_enum(LensFormat, format, 'lens format')
    self.center = _coerce_center(center)
    self.radius = None if radius is None else float(radius)
    self.angle = float(angle)
    self.background = _coerce_color(background, 'background')
    self.virtual_color = _coerce_color(virtual_color, 'virtual')

  def resolve_center(self, width: int, height: int) -> Tuple[float, float]:
    """Optical center in pixel coordinates for an image of the given size."""
    if self.center is not None:
      return self.center
    return ((width - 1) / 2.0, (height - 1) / 2.0)

  def resolve_radius(self, width: int, height: int) -> float:
    """
    Lens disk radius in pixels.

    An explicit radius wins. Otherwise a circular lens fits inside the frame and
    a full-frame lens circumscribes it.
    """
    if self.radius is not None:
      return self.radius
    if self.format is LensFormat.FULL_FRAME:
      return math.hypot(width, height) / 2.0
    return min(width, height) / 2.0

  def validate(self, direction=LensDirection.TO_FISHEYE):
    """
    Validate lens parameters before any pixel is mapped.

    The perspective side must have 0 < fov < 180, the fisheye side 0 < fov <= 180.
    For TO_FISHEYE the input is the perspective side; for FROM_FISHEYE it is the output.

    Raises:
    ValueError naming the violated constraint.
    """
    direction = coerce_enum(LensDirection, direction, 'direction')
    if self.ifov is None or self.ofov is None:
      raise ValueError(f"Both ifov and ofov are required: ifov={self.ifov}, ofov={self.ofov}")

    try:
      ifov = float(self.ifov)
      ofov = float(self.ofov)
    except (TypeError, ValueError):
      raise ValueError(f"Field of view values must be numbers: ifov={self.ifov!r}, ofov={self.ofov!r}")

    if direction is LensDirection.TO_FISHEYE:
      perspective_name, perspective_fov = 'ifov', ifov
      fisheye_name, fisheye_fov = 'ofov', ofov
    else:
      perspective_name, perspective_fov = 'ofov', ofov
      fisheye_name, fisheye_fov = 'ifov', ifov

    if not (0.0 < perspective_fov < 180.0):
      raise ValueError(f"Invalid {perspective_name}={perspective_fov}: perspective field of view must satisfy 0 < fov < 180")
    if not (0.0 < fisheye_fov <= 180.0):
      raise ValueError(f"Invalid {fisheye_name}={fisheye_fov}: fisheye field of view must satisfy 0 < fov <= 180")

    if self.radius is not None and not (self.radius > 0.0 and math.isfinite(self.radius)):
      raise ValueError(f"Invalid radius={self.radius}: radius must be a positive number")

    if not (0.0 <= self.angle < 360.0):
      raise ValueError(f"Invalid angle={self.angle}: rotation angle must satisfy 0 <= angle < 360")

    if self.center is not None and not all(math.isfinite(c) for c in self.center):
      raise ValueError(f"Invalid center={self.center}: center coordinates must be finite")

    self.ifov = ifov
    self.ofov = ofov

  def to_dict(self):
    """Dictionary form, matching the YAML layout read by parse_lens_spec."""
    return {
      'ifov': self.ifov,
      'ofov': self.ofov,
      'family': self.family.value,
      'format': self.format.value,
      'center': None if self.center is None else list(self.center),
      'radius': self.radius,
      'angle': self.angle,
      'background': self.background if not isinstance(self.background, tuple) else list(self.background),
      'virtual_color': self.virtual_color if not isinstance(self.virtual_color, tuple) else list(self.virtual_color)
    }

  def __str__(self):
    """String representation of lens parameters."""
    return (f"LensSpec(ifov={self.ifov}, ofov={self.ofov}, family={self.family.value}, "
            f"format={self.format.value}, center={self.center}, radius={self.radius}, "
            f"angle={self.angle})")

  def __repr__(self):
    return self.__str__()


class PanoramaSpec:
  """Output parameters for cube-face to equirectangular stitching."""

  def __init__(self, width: int = 2048, height: int = 1024, background=0,
               interpolation=Interpolation.BILINEAR):
    self.width = width
    self.height = height
    self.background = _coerce_color(background, 'background')
    self.interpolation = coerce_enum(Interpolation, interpolation, 'interpolation')

  def validate(self):
    """
    Raises:
    ValueError if the output size is not a pair of positive integers.
    """
    for name, value in (('width', self.width), ('height', self.height)):
      if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
        raise ValueError(f"Invalid panorama {name}={value!r}: must be a positive integer")

  def to_dict(self):
    return {
      'width': self.width,
      'height': self.height,
      'background': self.background if not isinstance(self.background, tuple) else list(self.background),
      'interpolation': self.interpolation.value
    }

  def __str__(self):
    return (f"PanoramaSpec(size={self.width}x{self.height}, "
            f"interpolation={self.interpolation.value}, background={self.background})")

  def __repr__(self):
    return self.__str__()


def _load_yaml(filename):
  try:
    with open(filename, 'r') as f:
      data = yaml.safe_load(f)
  except FileNotFoundError:
    raise FileNotFoundError(f"Configuration file not found: {filename}")
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML format in file '{filename}': {e}")
  if not isinstance(data, dict):
    raise ValueError(f"Configuration file '{filename}' must contain a mapping")
  return data


def parse_lens_spec(filename, direction: Optional[str] = None):
  """
  Parse lens parameters from a YAML file and return a validated LensSpec.

  Expected YAML format:

    ifov: 120
    ofov: 180
    family: linear
    format: circular
    center: [320, 240]   # optional
    radius: 200          # optional
    angle: 0
    background: [0, 0, 0]
    virtual_color: [0, 0, 0]
    direction: to_fisheye  # optional, used for validation

  Parameters:
  - filename: path to YAML lens file
  - direction: optional direction override; defaults to the file's 'direction' or to_fisheye

  Returns:
  LensSpec object with loaded parameters.

  Raises:
  ValueError if file format is invalid or parameters are missing.
  FileNotFoundError if the file doesn't exist.
  """
  data = _load_yaml(filename)

  try:
    lens_spec = LensSpec(
      ifov=data['ifov'],
      ofov=data['ofov'],
      family=data.get('family', LensFamily.LINEAR),
      format=data.get('format', LensFormat.CIRCULAR),
      center=data.get('center'),
      radius=data.get('radius'),
      angle=data.get('angle', 0.0),
      background=data.get('background', 0),
      virtual_color=data.get('virtual_color', 0)
    )
    lens_spec.validate(direction or data.get('direction', LensDirection.TO_FISHEYE))
    return lens_spec

  except KeyError as e:
    raise ValueError(f"Missing required parameter in YAML file '{filename}': {e}")
  except (TypeError, ValueError) as e:
    raise ValueError(f"Invalid parameter in YAML file '{filename}': {e}")


def parse_panorama_spec(filename):
  """
  Parse panorama output parameters from a YAML file.

  Expected keys: width, height, background (optional), interpolation (optional).

  Returns:
  Validated PanoramaSpec object.
  """
  data = _load_yaml(filename)

  try:
    panorama_spec = PanoramaSpec(
      width=data['width'],
      height=data['height'],
      background=data.get('background', 0),
      interpolation=data.get('interpolation', Interpolation.BILINEAR)
    )
    panorama_spec.validate()
    return panorama_spec

  except KeyError as e:
    raise ValueError(f"Missing required parameter in YAML file '{filename}': {e}")
  except (TypeError, ValueError) as e:
    raise ValueError(f"Invalid parameter in YAML file '{filename}': {e}")
