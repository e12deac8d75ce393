"""Console-native binary layouts: packed tiles, screen entries and palettes.

Tiles (no header, tiles in tileset order):
    4bpp  32 bytes per tile. Rows top to bottom, 4 bytes per row, two
          pixels per byte. With ``nibble_order='high'`` the left pixel of
          each pair is stored in the high nibble; ``'low'`` stores it in the
          low nibble, which is the order GBA video hardware reads.
    8bpp  64 bytes per tile, one byte per pixel, rows top to bottom.

Screen entries: one little-endian 16-bit word per map cell, row-major.
    bits 0-9 tile index, bit 10 horizontal flip, bit 11 vertical flip,
    bits 12-15 palette bank.

Palette: one little-endian 16-bit word per color, ``0bbbbbgggggrrrrr``.
"""

import struct

import numpy as np

from .color import bgr555_to_rgb, rgb_to_bgr555
from .errors import CapacityExceededError, InvalidInputError, UnsupportedFormatError
from .tile import TILE_SIZE
from .tilemap import Tilemap, TilemapEntry

DEFAULT_NIBBLE_ORDER = 'high'
NIBBLE_ORDERS = ('high', 'low')
MAX_COLORS = {4: 16, 8: 256}
BYTES_PER_TILE = {4: 32, 8: 64}

MAX_SCREEN_TILE = 0x3FF
MAX_PALETTE_BANK = 0x0F
FLIP_X_BIT = 1 << 10
FLIP_Y_BIT = 1 << 11


def choose_tile_depth(palette_size):
    if palette_size <= MAX_COLORS[4]:
        return 4
    if palette_size <= MAX_COLORS[8]:
        return 8
    raise CapacityExceededError(
        f"Tileset has too many colors to save: {palette_size} (the hardware supports at most {MAX_COLORS[8]}).",
        colors=palette_size, limit=MAX_COLORS[8])


def _check_depth(bpp, palette_size=None):
    if bpp not in MAX_COLORS:
        raise UnsupportedFormatError(f"Unsupported tile depth: {bpp}bpp. Expected 4 or 8.")
    if palette_size is not None and palette_size > MAX_COLORS[bpp]:
        raise CapacityExceededError(
            f"A {bpp}bpp tile holds {MAX_COLORS[bpp]} colors, the palette has {palette_size}.",
            colors=palette_size, limit=MAX_COLORS[bpp])


def _check_nibble_order(nibble_order):
    if nibble_order not in NIBBLE_ORDERS:
        raise InvalidInputError(f"nibble_order must be one of {NIBBLE_ORDERS}, got '{nibble_order}'.")


# --- Tiles ---
def encode_tiles(cells, palette_size, bpp=None, nibble_order=DEFAULT_NIBBLE_ORDER):
    """Pack an (n, 8, 8) array of palette indices into console tile bytes."""
    cells = np.asarray(cells, dtype=np.int32)
    if cells.ndim != 3 or cells.shape[1:] != (TILE_SIZE, TILE_SIZE):
        raise InvalidInputError(f"Expected an (n, 8, 8) cell array, got shape {cells.shape}.")
    if bpp is None:
        bpp = choose_tile_depth(palette_size)
    _check_depth(bpp, palette_size)
    _check_nibble_order(nibble_order)

    if bpp == 8:
        return cells.astype(np.uint8).tobytes()

    left, right = cells[..., 0::2], cells[..., 1::2]
    if nibble_order == 'high':
        packed = (left << 4) | right
    else:
        packed = (right << 4) | left
    return packed.astype(np.uint8).tobytes()


def decode_tiles(data, bpp, nibble_order=DEFAULT_NIBBLE_ORDER):
    _check_depth(bpp)
    _check_nibble_order(nibble_order)
    size = BYTES_PER_TILE[bpp]
    if len(data) % size:
        raise UnsupportedFormatError(f"{len(data)} bytes is not a whole number of {bpp}bpp tiles.")
    raw = np.frombuffer(data, dtype=np.uint8).astype(np.int32)

    if bpp == 8:
        return raw.reshape(-1, TILE_SIZE, TILE_SIZE)

    raw = raw.reshape(-1, TILE_SIZE, TILE_SIZE // 2)
    cells = np.empty((len(raw), TILE_SIZE, TILE_SIZE), dtype=np.int32)
    high, low = raw >> 4, raw & 0x0F
    if nibble_order == 'high':
        cells[..., 0::2], cells[..., 1::2] = high, low
    else:
        cells[..., 0::2], cells[..., 1::2] = low, high
    return cells


def write_tiles(filename, cells, palette_size, bpp=None, nibble_order=DEFAULT_NIBBLE_ORDER):
    data = encode_tiles(cells, palette_size, bpp, nibble_order)
    with open(filename, 'wb') as f:
        f.write(data)
    return len(data)


# --- Screen entries ---
def encode_tilemap(tilemap, palette_bank=0):
    if not (0 <= palette_bank <= MAX_PALETTE_BANK):
        raise InvalidInputError(f"palette_bank must be in 0..{MAX_PALETTE_BANK}, got {palette_bank}.")
    words = []
    for entry in tilemap:
        if entry.index > MAX_SCREEN_TILE:
            raise CapacityExceededError(
                f"Tile index {entry.index} does not fit a screen entry (maximum {MAX_SCREEN_TILE}).",
                limit=MAX_SCREEN_TILE)
        word = entry.index | (palette_bank << 12)
        if entry.flip_x:
            word |= FLIP_X_BIT
        if entry.flip_y:
            word |= FLIP_Y_BIT
        words.append(word)
    return struct.pack(f'<{len(words)}H', *words)


def decode_tilemap(data, width, height):
    count = width * height
    if len(data) != count * 2:
        raise UnsupportedFormatError(f"Expected {count * 2} bytes for a {width}x{height} map, got {len(data)}.")
    tilemap = Tilemap(width, height)
    for i, word in enumerate(struct.unpack(f'<{count}H', data)):
        tilemap[i] = TilemapEntry(word & MAX_SCREEN_TILE, bool(word & FLIP_X_BIT), bool(word & FLIP_Y_BIT))
    return tilemap


def write_tilemap(filename, tilemap, palette_bank=0):
    data = encode_tilemap(tilemap, palette_bank)
    with open(filename, 'wb') as f:
        f.write(data)
    return len(data)


# --- Palette ---
def encode_palette(palette):
    if len(palette) > MAX_COLORS[8]:
        raise CapacityExceededError(
            f"Palette has {len(palette)} colors, the hardware supports at most {MAX_COLORS[8]}.",
            colors=len(palette), limit=MAX_COLORS[8])
    return struct.pack(f'<{len(palette)}H', *(rgb_to_bgr555(color) for color in palette))


def decode_palette(data):
    if len(data) % 2:
        raise UnsupportedFormatError(f"Palette data must be a whole number of 16-bit colors, got {len(data)} bytes.")
    return [bgr555_to_rgb(word) for word in struct.unpack(f'<{len(data) // 2}H', data)]


def write_palette(filename, palette):
    data = encode_palette(palette)
    with open(filename, 'wb') as f:
        f.write(data)
    return len(data)
