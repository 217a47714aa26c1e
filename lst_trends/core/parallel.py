"""
Tile-Parallel Execution

Runs an independent per-tile function over a TileGrid on a thread pool.
The per-tile work is vectorized NumPy, which runs outside the GIL.
"""

import os
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, TypeVar

from .tile_grid import Tile, TileGrid

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TileExecutor:
    """
    Parallel processing manager for tile-wise work.

    Example:
        >>> executor = TileExecutor(max_workers=4)
        >>> results = executor.map(solve_tile, TileGrid(grid, tile_size=256))
    """

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers or os.cpu_count() or 1
        logger.debug(f"Initialized tile executor with {self.max_workers} workers")

    def map(self, func: Callable[[Tile], T], tiles: TileGrid) -> List[T]:
        """Apply `func` to every tile; results come back in tile order."""
        if self.max_workers == 1 or len(tiles) == 1:
            return [func(tile) for tile in tiles]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(func, tiles))
