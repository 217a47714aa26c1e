"""
Pixel Tiling for Per-Pixel Work

Splits a raster grid into rectangular pixel windows. Per-pixel operations
(regression, masking) never look at neighbouring pixels, so every window
can be solved on its own and in any order.
"""

from dataclasses import dataclass
from typing import Iterator, List, Tuple
import math
import logging

from .raster import GridSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tile:
    """
    One pixel window of a TileGrid.

    Attributes:
        id: "<row>_<col>" position in the tile layout
        row, col: Tile indices
        pixel_bounds: (x_min, y_min, x_max, y_max), max exclusive
    """
    id: str
    row: int
    col: int
    pixel_bounds: Tuple[int, int, int, int]

    @property
    def slices(self) -> Tuple[slice, slice]:
        """Index expression selecting this window from an (H, W) array."""
        x_min, y_min, x_max, y_max = self.pixel_bounds
        return slice(y_min, y_max), slice(x_min, x_max)

    @property
    def shape(self) -> Tuple[int, int]:
        x_min, y_min, x_max, y_max = self.pixel_bounds
        return y_max - y_min, x_max - x_min


class TileGrid:
    """
    Row-major layout of square pixel tiles covering a grid.

    Edge tiles are clipped to the grid, so tiles never overlap and together
    cover every pixel exactly once.

    Example:
        >>> tiles = TileGrid(image.grid, tile_size=512)
        >>> for tile in tiles:
        ...     rows, cols = tile.slices
        ...     solve(stack[:, rows, cols])
    """

    def __init__(self, grid: GridSpec, tile_size: int = 512):
        if tile_size < 1:
            raise ValueError(f"tile_size must be >= 1, got {tile_size}")
        self.grid = grid
        self.tile_size = tile_size
        self.n_rows = max(1, math.ceil(grid.height / tile_size))
        self.n_cols = max(1, math.ceil(grid.width / tile_size))
        self._tiles = self._layout()

        logger.debug(
            f"Tiled {grid.shape} into {self.n_rows}x{self.n_cols} windows of {tile_size}px"
        )

    def _layout(self) -> List[Tile]:
        size = self.tile_size
        height, width = self.grid.shape
        return [
            Tile(
                id=f"{row}_{col}",
                row=row,
                col=col,
                pixel_bounds=(
                    col * size,
                    row * size,
                    min((col + 1) * size, width),
                    min((row + 1) * size, height),
                ),
            )
            for row in range(self.n_rows)
            for col in range(self.n_cols)
        ]

    def __len__(self) -> int:
        return len(self._tiles)

    def __iter__(self) -> Iterator[Tile]:
        return iter(self._tiles)
