"""Tile deduplication.

Every raw tile is compared against the unique tiles found so far, in
ascending index order, trying the identity first and then (when flipping is
allowed) a horizontal flip, a vertical flip and both flips. The first match
wins; a tile that matches nothing becomes a new unique tile.
"""

from multiprocessing.pool import ThreadPool

import numpy as np
from tqdm import tqdm

from .errors import InvalidInputError
from .extractor import TileExtractor
from .tile import TILE_SIZE, TileArena, flip_cells
from .tilemap import Tilemap, TilemapEntry
from .tileset import Tileset

# (flip_x, flip_y) in match priority order.
ORIENTATIONS = ((False, False), (True, False), (False, True), (True, True))

# Below this many unique tiles a single search beats dispatching to the pool.
PARALLEL_MIN_CANDIDATES = 256


def find_match(cells, candidates, allow_flipping=True):
    """Return ``(index, flip_x, flip_y)`` of the first candidate matching ``cells``, or None.

    ``candidates`` is an (n, 8, 8) array. A candidate matches when its cells,
    mirrored by the flips, equal ``cells`` cell for cell.
    """
    if len(candidates) == 0:
        return None
    orientations = ORIENTATIONS if allow_flipping else ORIENTATIONS[:1]
    hits = np.stack(
        [(flip_cells(candidates, fx, fy) == cells).all(axis=(1, 2)) for fx, fy in orientations],
        axis=1)
    matched = hits.any(axis=1)
    if not matched.any():
        return None
    index = int(np.argmax(matched))
    flip_x, flip_y = orientations[int(np.argmax(hits[index]))]
    return index, flip_x, flip_y


class Deduplicator:
    """Collapses a raw tile sequence into unique tiles plus a tilemap.

    With ``workers`` > 1 the candidate list is split into contiguous chunks
    searched on a thread pool; the lowest chunk with a match decides, so the
    result is identical to the sequential search.
    """

    def __init__(self, allow_flipping=True, workers=1, progress=False):
        self.allow_flipping = allow_flipping
        self.workers = max(1, workers or 1)
        self.progress = progress

    def _search(self, pool, cells, candidates):
        if pool is None or len(candidates) < PARALLEL_MIN_CANDIDATES:
            return find_match(cells, candidates, self.allow_flipping)

        chunk = -(-len(candidates) // self.workers)
        starts = list(range(0, len(candidates), chunk))
        results = pool.map(
            lambda start: find_match(cells, candidates[start:start + chunk], self.allow_flipping),
            starts)
        for start, result in zip(starts, results):
            if result is not None:
                index, flip_x, flip_y = result
                return start + index, flip_x, flip_y
        return None

    def deduplicate(self, raw_tiles, palette, map_width=None):
        """Return ``(Tileset, Tilemap)`` for ``raw_tiles`` laid out ``map_width`` tiles per row."""
        count = len(raw_tiles)
        if count == 0:
            raise InvalidInputError("Cannot deduplicate an empty tile sequence.")
        if map_width is None:
            map_width = count
        if map_width <= 0 or count % map_width:
            raise InvalidInputError(f"{count} tiles cannot be laid out {map_width} tiles per row.")

        raw_cells = raw_tiles.cells()
        tilemap = Tilemap(map_width, count // map_width)
        unique = TileArena(count)
        unique.append(raw_cells[0])
        tilemap[0] = TilemapEntry()

        pool = ThreadPool(self.workers) if self.workers > 1 else None
        try:
            for i in tqdm(range(1, count), desc="   Deduplicating tiles", unit="tile",
                          disable=not self.progress, leave=False):
                match = self._search(pool, raw_cells[i], unique.cells())
                if match is None:
                    tilemap[i] = TilemapEntry(unique.append(raw_cells[i]))
                else:
                    tilemap[i] = TilemapEntry(*match)
        finally:
            if pool is not None:
                pool.close()
                pool.join()

        return Tileset(unique, palette), tilemap


def build_tileset(source, allow_flipping=True, workers=1, progress=False):
    """Extract and deduplicate ``source`` in one call."""
    raw_tiles, palette = TileExtractor().extract(source)
    deduplicator = Deduplicator(allow_flipping, workers, progress)
    return deduplicator.deduplicate(raw_tiles, palette, source.width // TILE_SIZE)
