"""
Benchmark script to demonstrate the performance of parallel map generation.

This script compares the map generation time for fisheye simulation and cube
panorama stitching across output sizes, and the vectorized generators against
the per-pixel reference implementations.
"""

import sys
import os
import time
import numpy as np

# Add the parent directory to the path so we can import our modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from reproject.fisheye_projection import FisheyeProjection
from reproject.lens_params import LensDirection, LensSpec, PanoramaSpec
from reproject.panorama_projection import CubePanoramaProjection
from reproject.projection_model import LensFamily

def _report(width, height, total_time, arrays):
  total_pixels = width * height
  pixels_per_second = total_pixels / total_time if total_time > 0 else 0
  print(f"✓ Total processing time: {total_time:.4f} seconds")
  print(f"✓ Pixels processed: {total_pixels:,}")
  print(f"✓ Performance: {pixels_per_second:,.0f} pixels/second")
  print(f"✓ Memory usage: {sum(a.nbytes for a in arrays) / 1024 / 1024:.1f} MB")

def benchmark_projection_performance():
  """Benchmark map generation for both reprojection types."""

  print("=" * 60)
  print("FISHEYE REPROJECTION PARALLEL PROCESSING BENCHMARK")
  print("=" * 60)

  lens_spec = LensSpec(ifov=120, ofov=180, family=LensFamily.EQUAL_AREA, angle=15)
  fisheye_projector = FisheyeProjection(lens_spec, use_vectorized=True)
  panorama_projector = CubePanoramaProjection(PanoramaSpec(), use_vectorized=True)

  # Test different output sizes to show scaling benefits
  test_sizes = [
    (512, 512, "Small"),
    (1024, 1024, "Medium"),
    (2048, 1024, "Large"),
    (4096, 2048, "Very Large")
  ]

  print("\n" + "=" * 60)
  print("FISHEYE SIMULATION BENCHMARKS")
  print("=" * 60)

  for width, height, size_name in test_sizes:
    print(f"\n{size_name} image size: {width}x{height}")
    print("-" * 40)

    start_time = time.time()
    maps = fisheye_projector.get_projection_maps(width, height, LensDirection.TO_FISHEYE)
    _report(width, height, time.time() - start_time, maps)

  print("\n" + "=" * 60)
  print("CUBE PANORAMA BENCHMARKS")
  print("=" * 60)

  for width, height, size_name in test_sizes:
    print(f"\n{size_name} panorama size: {width}x{height}")
    print("-" * 40)

    panorama_projector.panorama_spec = PanoramaSpec(width=width, height=height)
    start_time = time.time()
    maps = panorama_projector.get_projection_maps(width // 4)
    _report(width, height, time.time() - start_time, maps)

  print("\n" + "=" * 60)
  print("REFERENCE VS VECTORIZED")
  print("=" * 60)

  reference_projector = FisheyeProjection(lens_spec, use_vectorized=False)
  start_time = time.time()
  reference_maps = reference_projector.get_projection_maps(256, 256, LensDirection.TO_FISHEYE)
  reference_time = time.time() - start_time

  vectorized_projector = FisheyeProjection(lens_spec, use_vectorized=True)
  start_time = time.time()
  vectorized_maps = vectorized_projector.get_projection_maps(256, 256, LensDirection.TO_FISHEYE)
  vectorized_time = time.time() - start_time

  inside = ~reference_maps[2]
  max_difference = max(np.max(np.abs(r[inside] - v[inside])) for r, v in zip(reference_maps[:2], vectorized_maps[:2]))
  print(f"✓ Reference: {reference_time:.4f} s, vectorized: {vectorized_time:.4f} s "
        f"({reference_time / max(vectorized_time, 1e-9):.1f}x speedup)")
  print(f"✓ Maximum map difference: {max_difference:.2e} px")

  # Display cache information
  print("\n" + "=" * 60)
  print("CACHE PERFORMANCE")
  print("=" * 60)

  for name, projector in (("Fisheye", fisheye_projector), ("Panorama", panorama_projector)):
    cache_info = projector.get_cache_info()
    print(f"{name} cache:")
    print(f"  ✓ Cached projections: {cache_info['total_cached_projections']}")
    print(f"  ✓ Memory usage: {cache_info['memory_usage_mb']:.1f} MB")

  print(f"\nTesting cache hit performance...")
  print("-" * 40)

  start_time = time.time()
  fisheye_projector.get_projection_maps(1024, 1024, LensDirection.TO_FISHEYE)
  print(f"✓ Fisheye cache hit time: {time.time() - start_time:.6f} seconds")

  start_time = time.time()
  panorama_projector.get_projection_maps(1024)
  print(f"✓ Panorama cache hit time: {time.time() - start_time:.6f} seconds")

if __name__ == "__main__":
  benchmark_projection_performance()
