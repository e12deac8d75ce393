import numpy as np

from . import bitmap, console
from .errors import InvalidInputError
from .extractor import join_tiles
from .quantizer import OctreeQuantizer
from .tile import TILE_SIZE, TileArena


class Tileset:
    """Unique tiles sharing one palette."""

    def __init__(self, tiles, palette):
        if not isinstance(tiles, TileArena):
            tiles = TileArena.from_array(tiles)
        self._tiles = tiles
        self._palette = [tuple(int(c) for c in color) for color in palette]

    @classmethod
    def create(cls, source, allow_flipping=True, workers=1, progress=False):
        """Build ``(Tileset, Tilemap)`` from a pixel source."""
        from .dedup import build_tileset

        return build_tileset(source, allow_flipping, workers, progress)

    @property
    def tiles(self):
        return self._tiles

    @property
    def palette(self):
        return list(self._palette)

    def __len__(self):
        return len(self._tiles)

    def __getitem__(self, index):
        return self._tiles.tile(index)

    def __iter__(self):
        return iter(self._tiles)

    # --- Layout helpers ---
    def get_perfect_columns(self):
        """Every column count that lays the tiles out as a full rectangle."""
        count = len(self._tiles)
        return [i for i in range(1, count + 1) if count % i == 0]

    def perfect_sizes(self):
        count = len(self._tiles)
        return [(columns, count // columns) for columns in self.get_perfect_columns()]

    def rows_for(self, columns):
        if columns <= 0:
            raise InvalidInputError(f"columns must be positive, got {columns}.")
        return -(-len(self._tiles) // columns)

    def to_indices(self, columns):
        """Palette-index image of the tiles, ``columns`` per row; unused cells are 0."""
        rows = self.rows_for(columns)
        cells = np.zeros((rows * columns, TILE_SIZE, TILE_SIZE), dtype=np.int32)
        cells[:len(self._tiles)] = self._tiles.cells()
        return join_tiles(cells, columns, rows)

    def render(self, columns):
        """RGB (height, width, 3) image of the tiles, ``columns`` per row."""
        colors = np.zeros((max(len(self._palette), 1), 3), dtype=np.uint8)
        if self._palette:
            colors[:len(self._palette)] = self._palette
        return colors[self.to_indices(columns)]

    # --- Color reduction ---
    def reduce_colors(self, max_colors, metric='rgb'):
        """Reduce the palette to at most ``max_colors`` entries, remapping every tile."""
        if max_colors <= 0:
            raise InvalidInputError(f"max_colors must be positive, got {max_colors}.")
        if len(self._palette) <= max_colors:
            return

        quantizer = OctreeQuantizer(metric)
        colors = np.array(self._palette, dtype=np.uint8)
        quantizer.add(colors[self._tiles.cells().reshape(-1)])
        reduced = quantizer.reduced_palette(max_colors)
        lut = [quantizer.nearest_index(color) for color in self._palette]

        self._tiles.remap(lut)
        self._palette = reduced

    # --- Export ---
    def encode_bitmap(self, columns, bit_depth=None):
        return bitmap.encode_bitmap(self.to_indices(columns), self._palette, bit_depth)

    def save_bitmap(self, filename, columns, bit_depth=None):
        bitmap.write_bitmap(filename, self.to_indices(columns), self._palette, bit_depth)

    def encode_console_tiles(self, nibble_order=console.DEFAULT_NIBBLE_ORDER):
        return console.encode_tiles(self._tiles.cells(), len(self._palette), nibble_order=nibble_order)

    def save_console_tiles(self, filename, nibble_order=console.DEFAULT_NIBBLE_ORDER):
        console.write_tiles(filename, self._tiles.cells(), len(self._palette), nibble_order=nibble_order)

    def save_console_palette(self, filename):
        console.write_palette(filename, self._palette)
