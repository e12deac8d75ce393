"""Uncompressed BMP encoding for 4, 8 and 24 bits per pixel.

Layout (little-endian):
    14-byte file header   'BM', file size, signature, pixel data offset
    40-byte info header   size, width, height, planes=1, depth, compression=0,
                          image size, 2835, 2835, color table entries, 0
    color table           indexed depths only, blue, green, red, 255 per entry
    pixel data            bottom-up rows, each padded to a multiple of 4 bytes
"""

import struct
from collections import namedtuple

import numpy as np

from .errors import CapacityExceededError, InvalidInputError, UnsupportedFormatError

BITMAP_MAGIC = b'BM'
BITMAP_SIGNATURE = 0x293A
BITMAP_RESOLUTION = 2835
FILE_HEADER = struct.Struct('<2sIII')
INFO_HEADER = struct.Struct('<IiiHHIIiiII')
HEADER_SIZE = FILE_HEADER.size + INFO_HEADER.size
SUPPORTED_BIT_DEPTHS = (4, 8, 24)

DecodedBitmap = namedtuple('DecodedBitmap', 'width height bit_depth palette indices rgb')


def choose_bit_depth(palette_size):
    if palette_size <= 16:
        return 4
    if palette_size <= 256:
        return 8
    return 24


def color_table_size(bit_depth):
    return 0 if bit_depth == 24 else 1 << bit_depth


def row_size(width, bit_depth):
    return ((bit_depth * width + 31) // 32) * 4


def _palette_array(palette):
    colors = np.zeros((max(len(palette), 1), 3), dtype=np.uint8)
    if len(palette):
        colors[:len(palette)] = palette
    return colors


def _pack_rows(indices, palette, bit_depth):
    if bit_depth == 4:
        if indices.shape[1] % 2:
            # The last pixel of an odd row lands in the high nibble of an extra byte.
            indices = np.pad(indices, ((0, 0), (0, 1)))
        return ((indices[:, 0::2] << 4) | indices[:, 1::2]).astype(np.uint8)
    if bit_depth == 8:
        return indices.astype(np.uint8)
    bgr = _palette_array(palette)[indices][..., ::-1]
    return bgr.reshape(indices.shape[0], -1)


def encode_bitmap(indices, palette, bit_depth=None):
    """Encode an (height, width) palette-index image as BMP file bytes.

    ``bit_depth`` defaults to the smallest of 4, 8 or 24 that holds the palette.
    """
    indices = np.asarray(indices, dtype=np.int64)
    if indices.ndim != 2 or indices.size == 0:
        raise InvalidInputError(f"Expected a non-empty (height, width) index array, got shape {indices.shape}.")
    if bit_depth is None:
        bit_depth = choose_bit_depth(len(palette))
    if bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise UnsupportedFormatError(f"Unsupported bitmap depth: {bit_depth}. Expected one of {SUPPORTED_BIT_DEPTHS}.")

    table_entries = color_table_size(bit_depth)
    if table_entries and len(palette) > table_entries:
        raise CapacityExceededError(
            f"A {bit_depth}bpp bitmap holds {table_entries} colors, the palette has {len(palette)}.",
            colors=len(palette), limit=table_entries)
    highest = int(indices.max())
    if indices.min() < 0 or highest >= max(len(palette), 1):
        raise InvalidInputError(f"Pixel index {highest} is outside the {len(palette)}-color palette.")

    height, width = indices.shape
    stride = row_size(width, bit_depth)
    image_size = stride * height
    data_offset = HEADER_SIZE + table_entries * 4

    packed = _pack_rows(indices, palette, bit_depth)
    rows = np.zeros((height, stride), dtype=np.uint8)
    rows[:, :packed.shape[1]] = packed

    table = bytearray()
    for i in range(table_entries):
        r, g, b = palette[i] if i < len(palette) else (0, 0, 0)
        table += bytes([b, g, r, 0xFF])

    return b''.join([
        FILE_HEADER.pack(BITMAP_MAGIC, data_offset + image_size, BITMAP_SIGNATURE, data_offset),
        INFO_HEADER.pack(INFO_HEADER.size, width, height, 1, bit_depth, 0, image_size,
                         BITMAP_RESOLUTION, BITMAP_RESOLUTION, table_entries, 0),
        bytes(table),
        rows[::-1].tobytes(),
    ])


def write_bitmap(filename, indices, palette, bit_depth=None):
    data = encode_bitmap(indices, palette, bit_depth)
    with open(filename, 'wb') as f:
        f.write(data)
    return len(data)


def read_bitmap(data):
    """Decode an uncompressed 4, 8 or 24 bpp BMP into a ``DecodedBitmap``."""
    if len(data) < HEADER_SIZE:
        raise UnsupportedFormatError("File is too short to be a bitmap.")
    magic, _file_size, _signature, data_offset = FILE_HEADER.unpack_from(data, 0)
    if magic != BITMAP_MAGIC:
        raise UnsupportedFormatError(f"Not a bitmap file (magic {magic!r}).")
    (header_size, width, height, _planes, bit_depth, compression, _image_size,
     _xres, _yres, colors_used, _important) = INFO_HEADER.unpack_from(data, FILE_HEADER.size)
    if bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise UnsupportedFormatError(f"Unsupported bitmap depth: {bit_depth}.")
    if compression != 0:
        raise UnsupportedFormatError(f"Compressed bitmaps are not supported (compression {compression}).")

    top_down = height < 0
    height = abs(height)
    palette = None
    if bit_depth != 24:
        entries = colors_used or color_table_size(bit_depth)
        table_offset = FILE_HEADER.size + header_size
        palette = []
        for i in range(entries):
            b, g, r, _ = data[table_offset + i * 4: table_offset + i * 4 + 4]
            palette.append((r, g, b))

    stride = row_size(width, bit_depth)
    end = data_offset + stride * height
    if len(data) < end:
        raise UnsupportedFormatError(f"Bitmap pixel data is truncated ({len(data)} of {end} bytes).")
    rows = np.frombuffer(data, dtype=np.uint8, count=stride * height, offset=data_offset).reshape(height, stride)
    if not top_down:
        rows = rows[::-1]

    if bit_depth == 4:
        indices = np.empty((height, stride * 2), dtype=np.int32)
        indices[:, 0::2] = rows >> 4
        indices[:, 1::2] = rows & 0x0F
        indices = indices[:, :width]
    elif bit_depth == 8:
        indices = rows[:, :width].astype(np.int32)
    else:
        rgb = rows[:, :width * 3].reshape(height, width, 3)[..., ::-1].copy()
        return DecodedBitmap(width, height, bit_depth, None, None, rgb)

    rgb = _palette_array(palette)[np.minimum(indices, max(len(palette) - 1, 0))]
    return DecodedBitmap(width, height, bit_depth, palette, indices, rgb)
