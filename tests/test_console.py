import os
import struct
import tempfile
import unittest

import numpy as np

from tilemapforge import Tilemap, TilemapEntry
from tilemapforge import console
from tilemapforge.errors import CapacityExceededError, InvalidInputError, UnsupportedFormatError

from .helpers import pattern_tile


def ramp_tile():
    cells = np.zeros((1, 8, 8), dtype=np.int32)
    cells[0, 0] = [1, 2, 3, 4, 5, 6, 7, 8]
    return cells


class TileEncodingTest(unittest.TestCase):
    def test_high_nibble_holds_left_pixel(self):
        data = console.encode_tiles(ramp_tile(), 16)
        self.assertEqual(len(data), 32)
        self.assertEqual(data[:4], bytes([0x12, 0x34, 0x56, 0x78]))
        self.assertEqual(data[4:], bytes(28))

    def test_low_nibble_order(self):
        data = console.encode_tiles(ramp_tile(), 16, nibble_order='low')
        self.assertEqual(data[:4], bytes([0x21, 0x43, 0x65, 0x87]))

    def test_8bpp_is_one_byte_per_pixel(self):
        cells = np.stack([pattern_tile(0), pattern_tile(1) + 200])
        data = console.encode_tiles(cells, 256)
        self.assertEqual(len(data), 128)
        self.assertEqual(data[64:72], bytes((pattern_tile(1)[0] + 200).tolist()))

    def test_depth_follows_palette_size(self):
        cells = np.zeros((3, 8, 8), dtype=np.int32)
        self.assertEqual(len(console.encode_tiles(cells, 16)), 3 * 32)
        self.assertEqual(len(console.encode_tiles(cells, 17)), 3 * 64)

    def test_too_many_colors(self):
        with self.assertRaises(CapacityExceededError) as ctx:
            console.encode_tiles(np.zeros((1, 8, 8)), 300)
        self.assertEqual(ctx.exception.colors, 300)
        self.assertEqual(ctx.exception.limit, 256)
        with self.assertRaises(CapacityExceededError):
            console.encode_tiles(np.zeros((1, 8, 8)), 17, bpp=4)

    def test_failed_write_creates_no_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            filename = os.path.join(tmp, 'tiles.img.bin')
            with self.assertRaises(CapacityExceededError):
                console.write_tiles(filename, np.zeros((1, 8, 8)), 300)
            self.assertFalse(os.path.exists(filename))

    def test_bad_arguments(self):
        with self.assertRaises(InvalidInputError):
            console.encode_tiles(ramp_tile(), 16, nibble_order='middle')
        with self.assertRaises(UnsupportedFormatError):
            console.encode_tiles(ramp_tile(), 4, bpp=2)
        with self.assertRaises(InvalidInputError):
            console.encode_tiles(np.zeros((8, 8)), 16)

    def test_decode_reverses_encode(self):
        cells = np.stack([pattern_tile(seed) for seed in range(5)])
        for order in console.NIBBLE_ORDERS:
            data = console.encode_tiles(cells, 16, nibble_order=order)
            self.assertTrue(np.array_equal(console.decode_tiles(data, 4, order), cells))
        self.assertTrue(np.array_equal(console.decode_tiles(console.encode_tiles(cells, 256), 8), cells))

    def test_decode_rejects_partial_tiles(self):
        with self.assertRaises(UnsupportedFormatError):
            console.decode_tiles(bytes(33), 4)


class ScreenEntryTest(unittest.TestCase):
    def test_entry_bits(self):
        tilemap = Tilemap(2, 2)
        tilemap[0, 0] = TilemapEntry(5, True, False)
        tilemap[1, 0] = TilemapEntry(1023, True, True)
        tilemap[0, 1] = TilemapEntry(7, False, True)
        data = console.encode_tilemap(tilemap)
        self.assertEqual(struct.unpack('<4H', data), (0x0405, 0x0FFF, 0x0807, 0x0000))

    def test_palette_bank(self):
        tilemap = Tilemap(1, 1)
        tilemap[0] = TilemapEntry(3)
        self.assertEqual(console.encode_tilemap(tilemap, palette_bank=2), bytes([0x03, 0x20]))
        with self.assertRaises(InvalidInputError):
            console.encode_tilemap(tilemap, palette_bank=16)

    def test_index_limit(self):
        tilemap = Tilemap(1, 1)
        tilemap[0] = TilemapEntry(1024)
        with self.assertRaises(CapacityExceededError):
            console.encode_tilemap(tilemap)

    def test_decode(self):
        tilemap = Tilemap(3, 1)
        tilemap[1] = TilemapEntry(9, False, True)
        tilemap[2] = TilemapEntry(12, True, True)
        data = console.encode_tilemap(tilemap)
        self.assertEqual(console.decode_tilemap(data, 3, 1), tilemap)
        with self.assertRaises(UnsupportedFormatError):
            console.decode_tilemap(data, 2, 1)

    def test_write_tilemap(self):
        tilemap = Tilemap(4, 2)
        with tempfile.TemporaryDirectory() as tmp:
            filename = os.path.join(tmp, 'screen.map.bin')
            self.assertEqual(console.write_tilemap(filename, tilemap), 16)
            self.assertEqual(os.path.getsize(filename), 16)


class PaletteTest(unittest.TestCase):
    def test_bgr555_words(self):
        data = console.encode_palette([(255, 255, 255), (255, 0, 0), (0, 0, 255), (0, 0, 0)])
        self.assertEqual(struct.unpack('<4H', data), (0x7FFF, 0x001F, 0x7C00, 0x0000))

    def test_low_bits_are_dropped(self):
        self.assertEqual(console.decode_palette(console.encode_palette([(13, 250, 7)])), [(8, 248, 0)])

    def test_too_many_colors(self):
        with self.assertRaises(CapacityExceededError):
            console.encode_palette([(0, 0, 0)] * 257)
        self.assertEqual(len(console.encode_palette([(0, 0, 0)] * 256)), 512)

    def test_decode_rejects_odd_length(self):
        with self.assertRaises(UnsupportedFormatError):
            console.decode_palette(bytes(3))


if __name__ == "__main__":
    unittest.main()
