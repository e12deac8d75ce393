import numpy as np

from .errors import InvalidInputError

TILE_SIZE = 8
TILE_CELLS = TILE_SIZE * TILE_SIZE
CELL_DTYPE = np.int32


def flip_cells(cells, flip_x=False, flip_y=False):
    """View of an (..., 8, 8) cell array with its coordinates mirrored."""
    if flip_x:
        cells = cells[..., :, ::-1]
    if flip_y:
        cells = cells[..., ::-1, :]
    return cells


def _check_coords(x, y):
    if not (0 <= x < TILE_SIZE):
        raise IndexError(f"x must be in 0..{TILE_SIZE - 1}, got {x}")
    if not (0 <= y < TILE_SIZE):
        raise IndexError(f"y must be in 0..{TILE_SIZE - 1}, got {y}")


class Tile:
    """An 8x8 block of palette indices.

    Tiles are values: the constructor copies its input, and every cell reads
    as 0 until written. Cells are addressed as ``tile[x, y]``.
    """

    __slots__ = ('_cells',)

    def __init__(self, pixels=None):
        self._cells = None
        if pixels is not None:
            cells = np.array(pixels, dtype=CELL_DTYPE)
            if cells.size != TILE_CELLS:
                raise InvalidInputError(f"Expected {TILE_CELLS} cells of pixel data, got {cells.size}.")
            self._cells = cells.reshape(TILE_SIZE, TILE_SIZE)

    def _storage(self):
        if self._cells is None:
            self._cells = np.zeros((TILE_SIZE, TILE_SIZE), dtype=CELL_DTYPE)
        return self._cells

    def __getitem__(self, xy):
        x, y = xy
        _check_coords(x, y)
        if self._cells is None:
            return 0
        return int(self._cells[y, x])

    def __setitem__(self, xy, value):
        x, y = xy
        _check_coords(x, y)
        self._storage()[y, x] = value

    @property
    def pixels(self):
        """A copy of the cells as an (8, 8) array indexed ``[y, x]``."""
        return self._storage().copy()

    def copy(self):
        return Tile(self._storage())

    def flipped(self, flip_x=False, flip_y=False):
        return Tile(flip_cells(self._storage(), flip_x, flip_y))

    def compare(self, other, flip_x=False, flip_y=False):
        """True when this tile equals ``other`` mirrored by the given flips."""
        mine = self._storage()
        theirs = flip_cells(other._storage(), flip_x, flip_y)
        for y in range(TILE_SIZE):
            for x in range(TILE_SIZE):
                if mine[y, x] != theirs[y, x]:
                    return False
        return True

    def __eq__(self, other):
        if not isinstance(other, Tile):
            return NotImplemented
        return bool(np.array_equal(self._storage(), other._storage()))

    __hash__ = None

    def __repr__(self):
        return f"Tile({self._storage().tolist()!r})"


class TileArena:
    """Flat storage for a sequence of tiles addressed by index.

    Tiles go in and come out by value; cells are changed only through
    ``set_pixel`` or ``remap``, so no caller ever holds a live reference
    into the buffer.
    """

    def __init__(self, capacity=16):
        self._buffer = np.zeros((max(capacity, 1), TILE_SIZE, TILE_SIZE), dtype=CELL_DTYPE)
        self._count = 0

    @classmethod
    def from_array(cls, cells):
        cells = np.asarray(cells, dtype=CELL_DTYPE)
        if cells.ndim != 3 or cells.shape[1:] != (TILE_SIZE, TILE_SIZE):
            raise InvalidInputError(f"Expected an (n, 8, 8) cell array, got shape {cells.shape}.")
        arena = cls(len(cells))
        arena._buffer[:len(cells)] = cells
        arena._count = len(cells)
        return arena

    def __len__(self):
        return self._count

    def _check_index(self, index):
        if not (0 <= index < self._count):
            raise IndexError(f"Tile index {index} out of range for {self._count} tiles")

    def _grow(self):
        bigger = np.zeros((len(self._buffer) * 2,) + self._buffer.shape[1:], dtype=CELL_DTYPE)
        bigger[:self._count] = self._buffer[:self._count]
        self._buffer = bigger

    def append(self, tile):
        if self._count == len(self._buffer):
            self._grow()
        if isinstance(tile, Tile):
            tile = tile._storage()
        self._buffer[self._count] = tile
        self._count += 1
        return self._count - 1

    def tile(self, index):
        self._check_index(index)
        return Tile(self._buffer[index])

    def __getitem__(self, index):
        return self.tile(index)

    def __iter__(self):
        for i in range(self._count):
            yield Tile(self._buffer[i])

    def get_pixel(self, index, x, y):
        self._check_index(index)
        _check_coords(x, y)
        return int(self._buffer[index, y, x])

    def set_pixel(self, index, x, y, value):
        self._check_index(index)
        _check_coords(x, y)
        self._buffer[index, y, x] = value

    def cells(self, start=0, stop=None):
        """Read-only (n, 8, 8) view of tiles ``start`` to ``stop``."""
        stop = self._count if stop is None else min(stop, self._count)
        view = self._buffer[start:stop]
        view.flags.writeable = False
        return view

    def remap(self, lut):
        """Replace every cell value ``v`` with ``lut[v]`` in one step."""
        lut = np.asarray(lut, dtype=CELL_DTYPE)
        self._buffer[:self._count] = lut[self._buffer[:self._count]]

    def copy(self):
        return TileArena.from_array(self._buffer[:self._count])
