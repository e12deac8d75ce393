import numpy as np

from tilemapforge import PixelSource

# 16 distinct colors, every channel a multiple of 8 so direct-color
# extraction keeps them unchanged.
PALETTE16 = [(i * 16, (i * 40) % 256 // 8 * 8, 248 - i * 8) for i in range(16)]


def pattern_tile(seed):
    """An 8x8 tile that is not symmetric under any flip and differs from every
    flip of the pattern tiles for other seeds (mod 16)."""
    y, x = np.mgrid[0:8, 0:8]
    return ((x + 3 * y + seed) % 16).astype(np.int32)


def flip(cells, flip_x=False, flip_y=False):
    if flip_x:
        cells = cells[:, ::-1]
    if flip_y:
        cells = cells[::-1, :]
    return np.ascontiguousarray(cells)


def grid_from_tiles(rows):
    """Join a list of rows of 8x8 tiles into one index image."""
    return np.vstack([np.hstack(row) for row in rows])


def indexed_source(grid, palette=PALETTE16, bit_depth=4):
    return PixelSource.from_indices(grid, palette, bit_depth)


def direct_source(grid, palette=PALETTE16):
    colors = np.array(palette, dtype=np.uint8)
    return PixelSource(colors[np.asarray(grid)])
