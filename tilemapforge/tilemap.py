from dataclasses import dataclass

import numpy as np

from .errors import InvalidInputError
from .extractor import join_tiles
from .tile import flip_cells


@dataclass(frozen=True)
class TilemapEntry:
    """Reference from one map cell to a unique tile."""

    index: int = 0
    flip_x: bool = False
    flip_y: bool = False


class Tilemap:
    """A width x height grid of ``TilemapEntry`` values, stored row-major."""

    def __init__(self, width, height):
        if width <= 0 or height <= 0:
            raise InvalidInputError(f"Tilemap dimensions must be positive, got {width}x{height}.")
        self.width = width
        self.height = height
        self._entries = [TilemapEntry()] * (width * height)

    def _flat_index(self, key):
        if isinstance(key, tuple):
            x, y = key
            if not (0 <= x < self.width and 0 <= y < self.height):
                raise IndexError(f"Position ({x}, {y}) is outside the {self.width}x{self.height} tilemap")
            return x + y * self.width
        if not (0 <= key < len(self._entries)):
            raise IndexError(f"Entry {key} is outside the {len(self._entries)}-entry tilemap")
        return key

    def __getitem__(self, key):
        return self._entries[self._flat_index(key)]

    def __setitem__(self, key, entry):
        if not isinstance(entry, TilemapEntry):
            entry = TilemapEntry(*entry)
        self._entries[self._flat_index(key)] = entry

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __eq__(self, other):
        if not isinstance(other, Tilemap):
            return NotImplemented
        return (self.width, self.height, self._entries) == (other.width, other.height, other._entries)

    __hash__ = None

    def max_index(self):
        return max(entry.index for entry in self._entries)

    def render_indices(self, tileset):
        """Rebuild the full source index grid by drawing every entry with its flips."""
        cells = tileset.tiles.cells()
        if self.max_index() >= len(cells):
            raise InvalidInputError(
                f"Tilemap references tile {self.max_index()} but the tileset holds {len(cells)} tiles.")
        out = np.empty((len(self._entries),) + cells.shape[1:], dtype=cells.dtype)
        for i, entry in enumerate(self._entries):
            out[i] = flip_cells(cells[entry.index], entry.flip_x, entry.flip_y)
        return join_tiles(out, self.width, self.height)
