import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import numpy as np
from reproject import (CacheManager, FisheyeProjection, LensDirection, LensFamily, LensFormat,
                       LensSpec, VirtualPixel, load_image, save_image)

def create_custom_fisheye_views(image_path="data/perspective_img.jpg"):
  """
  Demonstrate creating custom fisheye views with different lens parameters using FisheyeProjection.
  """
  perspective_img = load_image(image_path)
  img_height, img_width = perspective_img.shape[:2]

  # One cache shared by every projector below
  cache_manager = CacheManager(max_memory_mb=512)

  print("Creating custom fisheye views using FisheyeProjection class...")
  print("This demonstrates the flexibility and caching capabilities of the class.")

  # Full 180° circular fisheye (classic all-sky look)
  print("\n1. Creating circular 180° equal-area fisheye...")
  circular = LensSpec(ifov=120, ofov=180, family=LensFamily.EQUAL_AREA, background=(0, 0, 0))
  circular_projector = FisheyeProjection(circular, cache_manager=cache_manager)
  circular_view = circular_projector.project(perspective_img, LensDirection.TO_FISHEYE)
  save_image("output/fisheye/perspective_img_circular.jpg", circular_view)

  # Full-frame fisheye fills the whole frame, no black corners
  print("\n2. Creating full-frame stereographic fisheye...")
  full_frame = LensSpec(ifov=100, ofov=150, family=LensFamily.STEREOGRAPHIC, format=LensFormat.FULL_FRAME)
  full_frame_view = FisheyeProjection(full_frame, cache_manager=cache_manager).project(
    perspective_img, LensDirection.TO_FISHEYE)
  save_image("output/fisheye/perspective_img_full_frame.jpg", full_frame_view)

  # Off-center lens with an explicit radius, rotated by 30°
  print("\n3. Creating off-center rotated orthographic fisheye...")
  off_center = LensSpec(ifov=90, ofov=180, family=LensFamily.ORTHOGRAPHIC,
                        center=(img_width * 0.4, img_height * 0.5), radius=min(img_width, img_height) * 0.45,
                        angle=30, background=(40, 40, 40))
  off_center_view = FisheyeProjection(off_center, cache_manager=cache_manager).project(
    perspective_img, LensDirection.TO_FISHEYE)
  save_image("output/fisheye/perspective_img_off_center.jpg", off_center_view)

  # Transparent virtual pixels: saved as PNG to keep the alpha channel
  print("\n4. Creating fisheye with transparent out-of-source area...")
  transparent_view = circular_projector.project(perspective_img, LensDirection.TO_FISHEYE,
                                                virtual_pixel=VirtualPixel.TRANSPARENT)
  save_image("output/fisheye/perspective_img_transparent.png", transparent_view)

  # Undo the circular lens again
  print("\n5. Rectifying the circular fisheye back to a perspective view...")
  rectify = LensSpec(ifov=180, ofov=120, family=LensFamily.EQUAL_AREA)
  rectified_view = FisheyeProjection(rectify, cache_manager=cache_manager).project(
    circular_view, LensDirection.FROM_FISHEYE)
  save_image("output/fisheye/perspective_img_rectified.jpg", rectified_view)

  # Demonstrate caching by repeating a projection with same parameters
  print("\n6. Testing cache functionality - repeating first projection...")
  circular_view_cached = circular_projector.project(perspective_img, LensDirection.TO_FISHEYE)

  if np.array_equal(circular_view, circular_view_cached):
    print("✓ Cache working correctly - identical results from cached projection")
  else:
    print("✗ Cache issue - results differ")

  cache_info = cache_manager.get_info()
  print(f"\nCache statistics:")
  print(f"  Cached projections: {cache_info['total_cached_projections']}")
  print(f"  Memory usage: {cache_info['memory_usage_mb']:.2f} MB")

  return [
    "perspective_img_circular.jpg",
    "perspective_img_full_frame.jpg",
    "perspective_img_off_center.jpg",
    "perspective_img_transparent.png",
    "perspective_img_rectified.jpg"
  ]

if __name__ == "__main__":
  custom_files = create_custom_fisheye_views(*sys.argv[1:2])

  print("\n" + "="*60)
  print("FISHEYE LENS DEMONSTRATION COMPLETE")
  print("="*60)
  for i, name in enumerate(custom_files, 1):
    print(f"  {i}. output/fisheye/{name}")
  print("\nThe fisheye simulation allows you to:")
  print("• Choose the lens law (linear, equal-area, orthographic, stereographic)")
  print("• Fit the lens inside the frame (circular) or around it (full-frame)")
  print("• Move, resize and rotate the lens disk")
  print("• Control what appears where the source has no data (virtual pixels)")
