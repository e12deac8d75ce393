import contextlib
import io
import os
import tempfile
import unittest

import numpy as np
from PIL import Image

from tilemapforge import cli
from tilemapforge.bitmap import read_bitmap

from .helpers import PALETTE16, flip, grid_from_tiles, pattern_tile


def run_main(argv):
    out = io.StringIO()
    with contextlib.redirect_stdout(out):
        code = cli.main(argv)
    return code, out.getvalue()


class CliTest(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        a, b = pattern_tile(0), pattern_tile(4)
        grid = grid_from_tiles([
            [a, flip(a, flip_x=True), b],
            [b, a, flip(b, flip_y=True)],
        ])
        rgb = np.array(PALETTE16, dtype=np.uint8)[grid]
        self.input_image = os.path.join(self.tmp.name, 'level.png')
        Image.fromarray(rgb, 'RGB').save(self.input_image)
        self.output_dir = os.path.join(self.tmp.name, 'out')

    def output(self, suffix):
        return os.path.join(self.output_dir, 'level' + suffix)

    def test_writes_every_output(self):
        code, text = run_main([self.input_image, '--output-dir', self.output_dir, '--quiet'])
        self.assertEqual(code, 0, text)
        self.assertIn("Final tile count: 2", text)

        for suffix in ('.bmp', '.img.bin', '.map.bin', '.pal.bin', '_tileset.png', '_reconstructed.png'):
            self.assertTrue(os.path.exists(self.output(suffix)), suffix)

        self.assertEqual(os.path.getsize(self.output('.map.bin')), 6 * 2)
        self.assertEqual(os.path.getsize(self.output('.img.bin')), 2 * 32)
        self.assertEqual(os.path.getsize(self.output('.pal.bin')), 16 * 2)

        with open(self.output('.bmp'), 'rb') as f:
            sheet = read_bitmap(f.read())
        self.assertEqual((sheet.width, sheet.height), (16, 8))

        with Image.open(self.output('_reconstructed.png')) as image:
            reconstructed = np.array(image.convert('RGB'))
        with Image.open(self.input_image) as image:
            original = np.array(image.convert('RGB'))
        self.assertTrue(np.array_equal(reconstructed, original))

    def test_options(self):
        code, text = run_main([
            self.input_image, '--output-dir', self.output_dir, '--output-basename', 'stage1',
            '--no-flip', '--no-preview', '--max-colors', '4', '--nibble-order', 'low', '--quiet',
        ])
        self.assertEqual(code, 0, text)
        self.assertTrue(os.path.exists(os.path.join(self.output_dir, 'stage1.bmp')))
        self.assertFalse(os.path.exists(os.path.join(self.output_dir, 'stage1_tileset.png')))
        self.assertLessEqual(os.path.getsize(os.path.join(self.output_dir, 'stage1.pal.bin')), 4 * 2)

    def test_bad_dimensions(self):
        bad = os.path.join(self.tmp.name, 'bad.png')
        Image.new('RGB', (12, 12)).save(bad)
        code, text = run_main([bad, '--output-dir', self.output_dir])
        self.assertEqual(code, 1)
        self.assertIn("Error:", text)
        self.assertFalse(os.path.exists(os.path.join(self.output_dir, 'bad.bmp')))

    def test_missing_file(self):
        missing = os.path.join(self.tmp.name, 'missing.png')
        code, text = run_main([missing])
        self.assertEqual(code, 1)
        self.assertIn("not found", text)

    def test_pick_columns(self):
        class FakeTileset:
            def __init__(self, columns):
                self.columns = columns

            def get_perfect_columns(self):
                return self.columns

        self.assertEqual(cli.pick_columns(FakeTileset([1, 2, 3, 4, 6, 8, 12, 24])), 12)
        self.assertEqual(cli.pick_columns(FakeTileset([1, 17])), 1)
        self.assertEqual(cli.pick_columns(FakeTileset([1, 2]), requested=5), 5)


if __name__ == "__main__":
    unittest.main()
