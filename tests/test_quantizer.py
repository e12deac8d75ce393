import unittest

import numpy as np

from tilemapforge.errors import InvalidInputError, StateViolationError
from tilemapforge.quantizer import OctreeQuantizer, reduce_palette


class OctreeQuantizerTest(unittest.TestCase):
    def _random_colors(self, count, seed=1234):
        rng = np.random.default_rng(seed)
        return rng.integers(0, 256, size=(count, 3), dtype=np.uint8)

    def test_never_returns_more_than_requested(self):
        quantizer = OctreeQuantizer()
        quantizer.add(self._random_colors(500))
        for max_colors in (1, 2, 7, 16, 64, 256):
            palette = quantizer.reduced_palette(max_colors)
            self.assertLessEqual(len(palette), max_colors)
            self.assertGreater(len(palette), 0)

    def test_small_palette_is_returned_unchanged(self):
        colors = [(200, 16, 16), (0, 0, 0), (16, 200, 16), (255, 255, 255), (16, 16, 200)]
        quantizer = OctreeQuantizer()
        quantizer.add(colors)
        self.assertEqual(quantizer.reduced_palette(5), colors)
        self.assertEqual(quantizer.reduced_palette(16), colors)

    def test_reduction_is_deterministic(self):
        colors = self._random_colors(300, seed=7)
        first = OctreeQuantizer()
        first.add(colors)
        second = OctreeQuantizer()
        second.add(colors)
        self.assertEqual(first.reduced_palette(12), second.reduced_palette(12))

    def test_rejects_non_positive_sizes(self):
        quantizer = OctreeQuantizer()
        quantizer.add([(1, 2, 3)])
        with self.assertRaises(InvalidInputError):
            quantizer.reduced_palette(0)
        with self.assertRaises(InvalidInputError):
            quantizer.reduced_palette(-4)

    def test_single_color_is_pixel_weighted_average(self):
        quantizer = OctreeQuantizer()
        quantizer.add_color((0, 0, 0), 3)
        quantizer.add_color((100, 100, 100), 1)
        self.assertEqual(quantizer.reduced_palette(1), [(25, 25, 25)])

    def test_least_used_branches_are_folded_first(self):
        quantizer = OctreeQuantizer()
        quantizer.add_color((0, 0, 0), 10)
        quantizer.add_color((0, 0, 8), 1)
        quantizer.add_color((255, 255, 255), 10)
        self.assertEqual(quantizer.reduced_palette(2), [(0, 0, 0), (255, 255, 255)])

    def test_nearest_index_requires_a_palette(self):
        quantizer = OctreeQuantizer()
        quantizer.add([(1, 2, 3)])
        with self.assertRaises(StateViolationError):
            quantizer.nearest_index((1, 2, 3))

    def test_nearest_index_prefers_first_entry_on_ties(self):
        quantizer = OctreeQuantizer()
        quantizer.add([(0, 0, 0), (20, 0, 0)])
        self.assertEqual(quantizer.reduced_palette(2), [(0, 0, 0), (20, 0, 0)])
        self.assertEqual(quantizer.nearest_index((10, 0, 0)), 0)
        self.assertEqual(quantizer.nearest_index((11, 0, 0)), 1)
        self.assertEqual(quantizer.nearest_index((20, 0, 0)), 1)

    def test_color_count_counts_distinct_colors(self):
        quantizer = OctreeQuantizer()
        quantizer.add([(1, 1, 1), (1, 1, 1), (2, 2, 2)])
        self.assertEqual(quantizer.color_count, 2)

    def test_unknown_metric_is_rejected(self):
        with self.assertRaises(InvalidInputError):
            OctreeQuantizer(metric='cie2000')

    def test_reduce_palette_maps_every_input_color(self):
        colors = [(0, 0, 0), (8, 8, 8), (240, 240, 240), (248, 248, 248)]
        palette, lut = reduce_palette(colors, 2)
        self.assertEqual(len(palette), 2)
        self.assertEqual(lut[0], lut[1])
        self.assertEqual(lut[2], lut[3])
        self.assertNotEqual(lut[0], lut[2])


if __name__ == "__main__":
    unittest.main()
