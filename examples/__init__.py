"""
Fisheye Reprojection Examples

This package contains example scripts and tests for the reprojection engine:
- Fisheye lens simulation examples and benchmarks
- Tests for the lens laws, sampler, cube faces, cache and both projections
"""
