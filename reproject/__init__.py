"""
Fisheye and Cube-Panorama Reprojection Core Modules

This package contains the core algorithms for geometric image reprojection:
- Lens and panorama parameter handling and validation
- Fisheye lens laws and the pinhole model
- Cube-face selection for spherical panoramas
- Virtual pixel policies and resampling
- Fisheye simulation and cube-to-equirectangular stitching drivers
"""

from .lens_params import (LensDirection, LensFormat, LensSpec, PanoramaSpec,
                          parse_lens_spec, parse_panorama_spec)
from .projection_model import (LensFamily, angle_to_radius, angle_to_source_offset,
                               focal_length, radius_to_angle, source_offset_to_angle)
from .cube_faces import CubeFace, CubeFaceSet, coerce_face, select_face, select_faces
from .virtual_pixel import VirtualPixel
from .sampler import Interpolation, apply_projection_maps, sample
from .cache_manager import CacheManager
from .row_executor import ReprojectionCancelled
from .fisheye_projection import FisheyeProjection, reproject_fisheye
from .panorama_projection import CubePanoramaProjection, reproject_cube_to_panorama
from .raster_io import load_cube_faces, load_image, normalize_pixel_format, save_image

__all__ = [
  'LensDirection',
  'LensFormat',
  'LensSpec',
  'PanoramaSpec',
  'parse_lens_spec',
  'parse_panorama_spec',
  'LensFamily',
  'angle_to_radius',
  'angle_to_source_offset',
  'focal_length',
  'radius_to_angle',
  'source_offset_to_angle',
  'CubeFace',
  'CubeFaceSet',
  'coerce_face',
  'select_face',
  'select_faces',
  'VirtualPixel',
  'Interpolation',
  'apply_projection_maps',
  'sample',
  'CacheManager',
  'ReprojectionCancelled',
  'FisheyeProjection',
  'reproject_fisheye',
  'CubePanoramaProjection',
  'reproject_cube_to_panorama',
  'load_cube_faces',
  'load_image',
  'normalize_pixel_format',
  'save_image'
]
