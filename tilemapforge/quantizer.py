"""Octree color reduction.

Colors are filed into an eight level tree keyed by successive bit planes of
the red, green and blue channels (most significant bit first). Reduction
folds the least referenced branches into their parent, deepest level first,
until no more than the requested number of leaves remain.
"""

import numpy as np

from .color import get_color_distance_function, find_closest_color_index, pack_rgb, unpack_rgb
from .errors import InvalidInputError, StateViolationError

MAX_DEPTH = 8


class _OctreeNode:
    __slots__ = ('level', 'order', 'children', 'pixel_count', 'red', 'green', 'blue')

    def __init__(self, level, order):
        self.level = level
        self.order = order
        self.children = [None] * 8
        self.pixel_count = 0
        self.red = 0
        self.green = 0
        self.blue = 0

    @property
    def is_leaf(self):
        return self.level == MAX_DEPTH

    def average_color(self):
        n = self.pixel_count
        return (self.red // n, self.green // n, self.blue // n)


def _child_index(rgb, level):
    shift = 7 - level
    r, g, b = rgb
    return (((r >> shift) & 1) << 2) | (((g >> shift) & 1) << 1) | ((b >> shift) & 1)


class OctreeQuantizer:
    """Accumulates colors and reduces them to a bounded palette.

    ``add`` may be called any number of times; ``reduced_palette`` does not
    consume the accumulated statistics, so it can be asked for several
    different sizes. ``nearest_index`` answers against the palette computed
    by the most recent ``reduced_palette`` call.
    """

    def __init__(self, metric='rgb'):
        self._color_dist_func = get_color_distance_function(metric)
        self._next_order = 0
        self._root = self._new_node(0)
        self._levels = [[] for _ in range(MAX_DEPTH)]
        self._levels[0].append(self._root)
        self._palette = None
        self._lookup_cache = {}

    def _new_node(self, level):
        node = _OctreeNode(level, self._next_order)
        self._next_order += 1
        return node

    def add(self, colors):
        """Add a sequence of RGB colors (or an (N, 3) array) in scan order."""
        arr = np.asarray(colors, dtype=np.uint8).reshape(-1, 3)
        if len(arr) == 0:
            return
        packed = pack_rgb(arr)
        unique_values, first_seen, counts = np.unique(packed, return_index=True, return_counts=True)
        for i in np.argsort(first_seen, kind='stable'):
            self.add_color(unpack_rgb(unique_values[i]), int(counts[i]))

    def add_color(self, rgb, count=1):
        rgb = tuple(int(c) for c in rgb)
        node = self._root
        for level in range(MAX_DEPTH):
            node.pixel_count += count
            node.red += rgb[0] * count
            node.green += rgb[1] * count
            node.blue += rgb[2] * count
            idx = _child_index(rgb, level)
            child = node.children[idx]
            if child is None:
                child = self._new_node(level + 1)
                node.children[idx] = child
                if child.level < MAX_DEPTH:
                    self._levels[child.level].append(child)
            node = child
        node.pixel_count += count
        node.red += rgb[0] * count
        node.green += rgb[1] * count
        node.blue += rgb[2] * count

    @property
    def color_count(self):
        """Number of distinct colors added so far."""
        return self._leaf_count(self._root)

    def _leaf_count(self, node):
        if node.is_leaf:
            return 1
        return sum(self._leaf_count(child) for child in node.children if child is not None)

    def reduced_palette(self, max_colors):
        """Return at most ``max_colors`` representative colors.

        The palette is ordered by the first time any color folded into each
        entry was added, so a color set that already fits is returned as-is.
        """
        if max_colors <= 0:
            raise InvalidInputError(f"max_colors must be positive, got {max_colors}.")

        # Leaves currently below each internal node, updated bottom-up as we fold.
        leaves_below = {}
        merged = set()
        self._refresh_counts(MAX_DEPTH, leaves_below, merged)
        total_leaves = leaves_below[id(self._root)]

        for level in range(MAX_DEPTH - 1, -1, -1):
            if total_leaves <= max_colors:
                break
            candidates = sorted(self._levels[level], key=lambda n: (n.pixel_count, n.order))
            for node in candidates:
                if total_leaves <= max_colors:
                    break
                total_leaves -= leaves_below[id(node)] - 1
                merged.add(id(node))
            self._refresh_counts(level, leaves_below, merged)

        leaves = []
        self._collect_leaves(self._root, merged, leaves)
        leaves.sort(key=lambda n: n.order)
        self._palette = [n.average_color() for n in leaves]
        self._lookup_cache = {}
        return list(self._palette)

    def _refresh_counts(self, merged_level, leaves_below, merged):
        for level in range(merged_level - 1, -1, -1):
            for node in self._levels[level]:
                count = 0
                for child in node.children:
                    if child is None:
                        continue
                    if child.is_leaf or id(child) in merged:
                        count += 1
                    else:
                        count += leaves_below[id(child)]
                leaves_below[id(node)] = count

    def _collect_leaves(self, node, merged, out):
        if node.is_leaf or id(node) in merged:
            if node.pixel_count:
                out.append(node)
            return
        for child in node.children:
            if child is not None:
                self._collect_leaves(child, merged, out)

    @property
    def palette(self):
        if self._palette is None:
            raise StateViolationError("reduced_palette() must be called before the palette is available.")
        return list(self._palette)

    def nearest_index(self, rgb):
        """Index of the closest color in the last reduced palette; the first entry wins ties."""
        if self._palette is None:
            raise StateViolationError("reduced_palette() must be called before nearest_index().")
        key = tuple(int(c) for c in rgb)
        idx = self._lookup_cache.get(key)
        if idx is None:
            idx = find_closest_color_index(key, self._palette, self._color_dist_func)
            self._lookup_cache[key] = idx
        return idx


def reduce_palette(colors, max_colors, metric='rgb'):
    """Reduce ``colors`` and return ``(palette, lut)`` where ``lut[i]`` is the new index of ``colors[i]``."""
    quantizer = OctreeQuantizer(metric)
    quantizer.add(colors)
    palette = quantizer.reduced_palette(max_colors)
    lut = np.array([quantizer.nearest_index(c) for c in colors], dtype=np.int32)
    return palette, lut
