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

import multiprocessing
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import numpy as np


class ReprojectionCancelled(Exception):
  """
  Raised when a reprojection is cancelled part way through.

  Attributes:
  - rows_done: bool array, True for output rows that were fully written
  - partial: the output buffer; rows not done are zero-filled
  """

  def __init__(self, rows_done: np.ndarray, partial: Optional[np.ndarray] = None):
    super().__init__(f"Reprojection cancelled after {int(rows_done.sum())} of {len(rows_done)} rows")
    self.rows_done = rows_done
    self.partial = partial


def plan_row_chunks(height: int) -> Tuple[int, List[Tuple[int, int]]]:
  """
  Split height rows into chunks for the worker pool.

  Returns:
  - (num_workers, [(row_start, row_end), ...])
  """
  num_cores = min(multiprocessing.cpu_count(), 8)  # Cap at 8 threads to avoid overhead
  min_chunk_size = 32  # Minimum rows per chunk for cache efficiency
  chunk_size = max(min_chunk_size, height // (num_cores * 2))  # 2x cores for better load balancing
  row_ranges = [(row_start, min(row_start + chunk_size, height))
                for row_start in range(0, height, chunk_size)]
  return num_cores, row_ranges


def run_row_chunks(height: int, width: int, process_chunk: Callable[[int, int], None],
                   cancel_event: Optional[threading.Event] = None) -> np.ndarray:
  """
  Run process_chunk(row_start, row_end) over every row chunk of an image.

  Each chunk writes only its own rows, so chunks run concurrently without
  locking. The cancel event is checked before each chunk starts.

  Parameters:
  - height, width: output dimensions
  - process_chunk: callable writing rows [row_start, row_end) of its output
  - cancel_event: optional threading.Event; when set, remaining chunks are skipped

  Returns:
  - rows_done: bool array of length height

  Raises:
  ReprojectionCancelled if the event was set before every chunk ran.
  """
  num_cores, row_ranges = plan_row_chunks(height)
  rows_done = np.zeros(height, dtype=bool)

  def run_chunk(row_start: int, row_end: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
      return
    process_chunk(row_start, row_end)
    rows_done[row_start:row_end] = True

  # For small images, use single-threaded processing to avoid overhead
  if height < 128 or width < 128:
    print("Using single-threaded processing for small image")
    for row_start, row_end in row_ranges:
      run_chunk(row_start, row_end)
  else:
    print(f"Using {num_cores} threads over {len(row_ranges)} row chunks")
    with ThreadPoolExecutor(max_workers=num_cores) as executor:
      futures = [executor.submit(run_chunk, row_start, row_end) for row_start, row_end in row_ranges]
      for future in futures:
        future.result()

  if not rows_done.all():
    raise ReprojectionCancelled(rows_done)

  return rows_done
