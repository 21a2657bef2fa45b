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

import numpy as np
import threading
import time
from collections import OrderedDict
from typing import Dict, Tuple, Optional, Any

FISHEYE_PREFIX = 'fisheye_'
PANORAMA_PREFIX = 'panorama_'


def _nbytes_mb(arrays: Tuple[np.ndarray, ...]) -> float:
  return sum(a.nbytes for a in arrays) / (1024 * 1024)


class CacheManager:
  """
  Thread-safe LRU cache manager for reprojection maps.

  Fisheye entries hold (map_x, map_y, fill_mask); panorama entries hold
  (face_index, map_x, map_y). Entries are stored as read-only copies so a
  caller can never alter a cached map in place.
  """

  def __init__(self, max_memory_mb: Optional[float] = None):
    """
    Initialize the cache manager with LRU eviction strategy.

    Parameters:
    - max_memory_mb: Optional maximum memory usage in MB. If None, no limit is enforced.
    """
    # OrderedDict keeps access order for LRU
    self._cache: OrderedDict[str, Tuple[Tuple[np.ndarray, ...], float]] = OrderedDict()
    self._max_memory_mb = max_memory_mb
    self._lock = threading.RLock()
    self._access_count = 0
    self._hit_count = 0
    self._eviction_count = 0

  def get(self, cache_key: str) -> Optional[Tuple[np.ndarray, ...]]:
    """
    Retrieve cached maps with LRU update.

    Returns:
    - Tuple of map arrays if found, None otherwise
    """
    with self._lock:
      self._access_count += 1

      if cache_key in self._cache:
        arrays, _ = self._cache[cache_key]
        self._cache[cache_key] = (arrays, time.time())
        self._cache.move_to_end(cache_key)
        self._hit_count += 1
        return arrays

      return None

  def put(self, cache_key: str, *arrays: np.ndarray) -> None:
    """
    Store maps in cache with LRU eviction when needed.

    Parameters:
    - cache_key: unique identifier for the maps
    - arrays: the map arrays to store together
    """
    frozen = []
    for a in arrays:
      copy = np.array(a, copy=True)
      copy.setflags(write=False)
      frozen.append(copy)
    frozen = tuple(frozen)

    with self._lock:
      new_memory_mb = _nbytes_mb(frozen)
      current_time = time.time()

      if cache_key in self._cache:
        self._cache[cache_key] = (frozen, current_time)
        self._cache.move_to_end(cache_key)
        return

      if self._max_memory_mb is not None:
        current_memory = self._calculate_total_memory_mb()

        # Evict least recently used entries until the new one fits
        while (current_memory + new_memory_mb > self._max_memory_mb and
               len(self._cache) > 0):
          lru_key, (lru_arrays, _) = self._cache.popitem(last=False)
          freed_memory = _nbytes_mb(lru_arrays)
          current_memory -= freed_memory
          self._eviction_count += 1

          print(f"LRU evicted: {lru_key} (freed {freed_memory:.1f} MB)")

        if current_memory + new_memory_mb > self._max_memory_mb:
          print(f"Warning: Cannot add cache entry - exceeds memory limit even after eviction "
                f"({self._max_memory_mb:.1f} MB)")
          return

      self._cache[cache_key] = (frozen, current_time)

  def remove(self, cache_key: str) -> bool:
    """
    Remove a specific cache entry.

    Returns:
    - True if the entry was found and removed, False otherwise
    """
    with self._lock:
      if cache_key in self._cache:
        del self._cache[cache_key]
        return True
      return False

  def clear(self) -> None:
    """Clear all cached maps."""
    with self._lock:
      self._cache.clear()

  def contains(self, cache_key: str) -> bool:
    with self._lock:
      return cache_key in self._cache

  def get_info(self) -> Dict[str, Any]:
    """
    Get cache statistics.

    Returns:
    - Dictionary with entry counts per projection type, memory usage and LRU stats
    """
    with self._lock:
      total_memory_bytes = 0
      fisheye_count = 0
      panorama_count = 0

      for key, (arrays, _) in self._cache.items():
        total_memory_bytes += sum(a.nbytes for a in arrays)
        if key.startswith(FISHEYE_PREFIX):
          fisheye_count += 1
        elif key.startswith(PANORAMA_PREFIX):
          panorama_count += 1

      return {
        'total_cached_projections': len(self._cache),
        'fisheye_projections': fisheye_count,
        'panorama_projections': panorama_count,
        'memory_usage_bytes': total_memory_bytes,
        'memory_usage_mb': total_memory_bytes / (1024 * 1024),
        'max_memory_mb': self._max_memory_mb,
        'memory_limit_enabled': self._max_memory_mb is not None,
        'total_accesses': self._access_count,
        'total_hits': self._hit_count,
        'total_evictions': self._eviction_count
      }

  def print_status(self) -> None:
    """Print current cache status in a human-readable format."""
    info = self.get_info()
    print(f"Cache status: {info['total_cached_projections']} projections "
          f"({info['fisheye_projections']} fisheye, {info['panorama_projections']} panorama), "
          f"{info['memory_usage_mb']:.1f} MB")

    if info['memory_limit_enabled']:
      usage_percent = (info['memory_usage_mb'] / info['max_memory_mb']) * 100
      print(f"Cache memory usage: {usage_percent:.1f}% of {info['max_memory_mb']:.1f} MB limit")

  def _calculate_total_memory_mb(self) -> float:
    return sum(_nbytes_mb(arrays) for arrays, _ in self._cache.values())

  def get_cache_keys(self, prefix: Optional[str] = None) -> list:
    """
    Get all cache keys in LRU order (least recently used first), optionally filtered by prefix.
    """
    with self._lock:
      if prefix is None:
        return list(self._cache.keys())
      return [key for key in self._cache.keys() if key.startswith(prefix)]
