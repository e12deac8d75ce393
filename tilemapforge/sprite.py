"""Free-size indexed images with an explicit write-staging state."""

import enum
from contextlib import contextmanager

import numpy as np

from . import bitmap
from .color import pack_rgb, quantize_array
from .errors import InvalidInputError, StateViolationError
from .extractor import index_by_first_seen, index_by_palette
from .tile import flip_cells


class SpriteState(enum.Enum):
    UNLOCKED = 'unlocked'
    LOCKED = 'locked'


class Sprite:
    """An index buffer, its palette and a cached RGB rendering.

    Pixels can be read at any time but only written between ``lock()`` and
    ``unlock()``. ``unlock()`` rebuilds the RGB cache; the cache cannot be
    read, and the sprite cannot be saved, while it is locked.

    Sprites cut from another sprite copy the pixels but share the palette
    list, which is never modified in place: ``swap_colors`` gives the sprite
    its own copy before changing it.
    """

    def __init__(self, width, height, palette, pixels=None):
        if width <= 0 or height <= 0:
            raise InvalidInputError(f"Sprite dimensions must be positive, got {width}x{height}.")
        self._width = width
        self._height = height
        self._palette = palette
        if pixels is None:
            self._pixels = np.zeros((height, width), dtype=np.int32)
        else:
            self._pixels = np.array(pixels, dtype=np.int32).reshape(height, width)
        self._state = SpriteState.UNLOCKED
        self._rendered = self._render()

    @classmethod
    def blank(cls, width, height, palette):
        return cls(width, height, [tuple(color) for color in palette])

    @classmethod
    def from_source(cls, source):
        """Index a pixel source; indexed sources keep their palette."""
        if source.is_indexed:
            pixels = index_by_palette(pack_rgb(source.rgb), source.palette)
            palette = list(source.palette)
        else:
            pixels, palette = index_by_first_seen(pack_rgb(quantize_array(source.rgb)))
        return cls(source.width, source.height, palette, pixels)

    @classmethod
    def from_region(cls, source, x, y, width, height):
        """Copy a region of ``source``; cells outside it read as index 0."""
        sprite = cls(width, height, source._palette)
        src_x0, src_y0 = max(x, 0), max(y, 0)
        src_x1, src_y1 = min(x + width, source.width), min(y + height, source.height)
        if src_x0 < src_x1 and src_y0 < src_y1:
            sprite._pixels[src_y0 - y:src_y1 - y, src_x0 - x:src_x1 - x] = \
                source._pixels[src_y0:src_y1, src_x0:src_x1]
            sprite._rendered = sprite._render()
        return sprite

    # --- Properties ---
    @property
    def width(self):
        return self._width

    @property
    def height(self):
        return self._height

    @property
    def palette(self):
        return list(self._palette)

    @property
    def pixels(self):
        return self._pixels.copy()

    @property
    def state(self):
        return self._state

    @property
    def locked(self):
        return self._state is SpriteState.LOCKED

    @property
    def rendered(self):
        """The (height, width, 3) RGB cache."""
        if self.locked:
            raise StateViolationError("The rendered image is stale while the sprite is locked.")
        return self._rendered.copy()

    # --- Staging ---
    def lock(self):
        if self.locked:
            return
        self._state = SpriteState.LOCKED

    def unlock(self):
        if not self.locked:
            return
        self._rendered = self._render()
        self._state = SpriteState.UNLOCKED

    @contextmanager
    def editing(self):
        """Lock for the duration of a ``with`` block, unlocking on every exit path."""
        self.lock()
        try:
            yield self
        finally:
            self.unlock()

    def _require_locked(self, action):
        if not self.locked:
            raise StateViolationError(f"Cannot {action}: the sprite is not locked.")

    def _render(self):
        colors = np.zeros((max(len(self._palette), 1), 3), dtype=np.uint8)
        if self._palette:
            colors[:len(self._palette)] = self._palette
        return colors[np.clip(self._pixels, 0, len(colors) - 1)]

    # --- Pixels ---
    def _check_coords(self, x, y):
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise IndexError(f"Pixel ({x}, {y}) is outside the {self._width}x{self._height} sprite")

    def get_pixel(self, x, y):
        self._check_coords(x, y)
        return int(self._pixels[y, x])

    def set_pixel(self, x, y, palette_index):
        self._require_locked("set a pixel")
        self._check_coords(x, y)
        if not (0 <= palette_index < len(self._palette)):
            raise InvalidInputError(f"Palette index {palette_index} is outside the {len(self._palette)}-color palette.")
        self._pixels[y, x] = palette_index

    def clear(self):
        """Set every pixel to the first palette entry."""
        self._require_locked("clear")
        self._pixels[:] = 0

    def swap_colors(self, color1, color2, remap_pixels=True):
        """Exchange two palette slots.

        With ``remap_pixels`` the pixels follow their colors, so the image
        looks the same; without it the pixels keep their indices and the two
        colors trade places on screen.
        """
        self._require_locked("swap colors")
        for index in (color1, color2):
            if not (0 <= index < len(self._palette)):
                raise InvalidInputError(f"Palette index {index} is outside the {len(self._palette)}-color palette.")

        palette = list(self._palette)
        palette[color1], palette[color2] = palette[color2], palette[color1]
        self._palette = palette

        if remap_pixels:
            first = self._pixels == color1
            second = self._pixels == color2
            self._pixels[first] = color2
            self._pixels[second] = color1

    def compare(self, other, flip_x=False, flip_y=False):
        """True when this sprite, mirrored by the given flips, equals ``other`` pixel for pixel."""
        if other.width != self._width or other.height != self._height:
            return False
        mine = flip_cells(self._pixels, flip_x, flip_y)
        return bool(np.array_equal(mine, other._pixels))

    # --- Export ---
    def encode_bitmap(self, bit_depth=None):
        if self.locked:
            raise StateViolationError("Cannot save a locked sprite.")
        return bitmap.encode_bitmap(self._pixels, self._palette, bit_depth)

    def save(self, filename, bit_depth=None):
        data = self.encode_bitmap(bit_depth)
        with open(filename, 'wb') as f:
            f.write(data)
