"""Convert images into deduplicated 8x8 tiles, tilemaps and palettes.

The pipeline runs ``PixelSource`` -> ``TileExtractor`` -> ``Deduplicator``
and produces a ``Tileset`` and a ``Tilemap`` that can be written as a BMP
sheet or as raw console tile, screen-entry and palette data.
"""

__version__ = "0.1.0"

from .dedup import Deduplicator, build_tileset
from .errors import (
    CapacityExceededError,
    InvalidInputError,
    StateViolationError,
    TileForgeError,
    UnsupportedFormatError,
)
from .extractor import MAX_TILES, TileExtractor, extract_tiles
from .pixelsource import PixelSource
from .quantizer import OctreeQuantizer, reduce_palette
from .sprite import Sprite, SpriteState
from .tile import TILE_SIZE, Tile, TileArena
from .tilemap import Tilemap, TilemapEntry
from .tileset import Tileset

__all__ = [
    "CapacityExceededError",
    "Deduplicator",
    "InvalidInputError",
    "MAX_TILES",
    "OctreeQuantizer",
    "PixelSource",
    "Sprite",
    "SpriteState",
    "StateViolationError",
    "TILE_SIZE",
    "Tile",
    "TileArena",
    "TileExtractor",
    "TileForgeError",
    "Tilemap",
    "TilemapEntry",
    "Tileset",
    "UnsupportedFormatError",
    "build_tileset",
    "extract_tiles",
    "reduce_palette",
]
