import numpy as np

from .color import pack_rgb, quantize_array, unpack_rgb
from .errors import InvalidInputError, UnsupportedFormatError
from .tile import TILE_SIZE, TileArena

MAX_TILES = 0x400


def check_dimensions(width, height, max_tiles=MAX_TILES):
    """Validate image dimensions before any tile storage is allocated."""
    if width < TILE_SIZE or height < TILE_SIZE:
        raise InvalidInputError(f"Image must be at least {TILE_SIZE}x{TILE_SIZE} pixels, got {width}x{height}.")
    if width % TILE_SIZE or height % TILE_SIZE:
        raise InvalidInputError(f"Image dimensions must be multiples of {TILE_SIZE}, got {width}x{height}.")
    tile_count = (width // TILE_SIZE) * (height // TILE_SIZE)
    if tile_count > max_tiles:
        raise InvalidInputError(
            f"Image is too large: {tile_count} tiles, ensure it has no more than {max_tiles}.")
    return width // TILE_SIZE, height // TILE_SIZE


def split_tiles(pixels, tiles_x, tiles_y):
    """Rearrange an (H, W, ...) grid into (tiles, 8, 8, ...) in row-major tile order."""
    trailing = pixels.shape[2:]
    blocks = pixels.reshape((tiles_y, TILE_SIZE, tiles_x, TILE_SIZE) + trailing)
    blocks = blocks.swapaxes(1, 2)
    return blocks.reshape((tiles_y * tiles_x, TILE_SIZE, TILE_SIZE) + trailing)


def join_tiles(cells, tiles_x, tiles_y):
    """Inverse of ``split_tiles``."""
    trailing = cells.shape[3:]
    blocks = cells.reshape((tiles_y, tiles_x, TILE_SIZE, TILE_SIZE) + trailing)
    blocks = blocks.swapaxes(1, 2)
    return blocks.reshape((tiles_y * TILE_SIZE, tiles_x * TILE_SIZE) + trailing)


def _pixel_position(flat_index, tiles_x):
    tile, cell = divmod(int(flat_index), TILE_SIZE * TILE_SIZE)
    ty, tx = divmod(tile, tiles_x)
    cy, cx = divmod(cell, TILE_SIZE)
    return (tx * TILE_SIZE + cx, ty * TILE_SIZE + cy)


def index_by_palette(packed, palette, tiles_x=None):
    """Map packed 0xRRGGBB values to the first palette slot holding that exact color.

    ``packed`` is either an (n, 8, 8) tile array laid out ``tiles_x`` tiles per
    row, or an (height, width) image; the layout is only used to report where
    an unknown color was found.
    """
    slots = {}
    for i, color in enumerate(palette):
        slots.setdefault(int(pack_rgb(color)), i)

    flat = packed.reshape(-1)
    values, first_seen, inverse = np.unique(flat, return_index=True, return_inverse=True)
    lut = np.zeros(len(values), dtype=np.int32)
    for i, value in enumerate(values):
        slot = slots.get(int(value))
        if slot is None:
            color = unpack_rgb(value)
            if tiles_x:
                position = _pixel_position(first_seen[i], tiles_x)
            else:
                y, x = divmod(int(first_seen[i]), packed.shape[-1])
                position = (x, y)
            raise UnsupportedFormatError(
                f"Color {color} at {position} is not in the image palette.", color=color, position=position)
        lut[i] = slot
    return lut[inverse].reshape(packed.shape)


def index_by_first_seen(packed):
    """Build a palette in first-seen order and return ``(indices, palette)``."""
    flat = packed.reshape(-1)
    values, first_seen, inverse = np.unique(flat, return_index=True, return_inverse=True)
    order = np.argsort(first_seen, kind='stable')
    rank = np.empty(len(values), dtype=np.int32)
    rank[order] = np.arange(len(values), dtype=np.int32)
    palette = [unpack_rgb(values[i]) for i in order]
    return rank[inverse].reshape(packed.shape), palette


class TileExtractor:
    """Slices a pixel source into 8x8 tiles of palette indices.

    Indexed sources keep their palette verbatim and every pixel is looked up
    by exact color. Direct-color sources are reduced to 8 steps per channel
    and get a palette built in the order colors are first met, scanning
    tiles row-major and pixels row-major inside each tile.
    """

    def __init__(self, max_tiles=MAX_TILES):
        self.max_tiles = max_tiles

    def extract(self, source):
        tiles_x, tiles_y = check_dimensions(source.width, source.height, self.max_tiles)
        rgb_tiles = split_tiles(source.rgb, tiles_x, tiles_y)

        if source.is_indexed:
            palette = list(source.palette)
            cells = index_by_palette(pack_rgb(rgb_tiles), palette, tiles_x)
        else:
            cells, palette = index_by_first_seen(pack_rgb(quantize_array(rgb_tiles)))

        return TileArena.from_array(cells), palette


def extract_tiles(source, max_tiles=MAX_TILES):
    return TileExtractor(max_tiles).extract(source)
