"""Adapters that expose decoded images as plain pixel grids."""

import numpy as np
from PIL import Image

from .errors import InvalidInputError, UnsupportedFormatError

INDEXED_BIT_DEPTHS = (1, 4, 8)


class PixelSource:
    """A rectangular grid of decoded RGB pixels.

    Indexed sources additionally carry the palette the pixels were drawn from
    and its declared bit depth (1, 4 or 8). The palette is padded with black
    to exactly ``2 ** bit_depth`` entries.
    """

    def __init__(self, rgb, palette=None, bit_depth=None):
        rgb = np.asarray(rgb, dtype=np.uint8)
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise InvalidInputError(f"Expected an (height, width, 3) pixel array, got shape {rgb.shape}.")
        self.rgb = rgb
        self.palette = None
        self.bit_depth = None

        if palette is not None:
            if bit_depth not in INDEXED_BIT_DEPTHS:
                raise UnsupportedFormatError(
                    f"Unsupported indexed bit depth: {bit_depth}. Expected one of {INDEXED_BIT_DEPTHS}.")
            size = 1 << bit_depth
            palette = [tuple(int(c) for c in color) for color in palette]
            if len(palette) > size:
                raise UnsupportedFormatError(
                    f"A {bit_depth}bpp palette holds {size} colors, got {len(palette)}.")
            self.palette = palette + [(0, 0, 0)] * (size - len(palette))
            self.bit_depth = bit_depth

    @property
    def width(self):
        return self.rgb.shape[1]

    @property
    def height(self):
        return self.rgb.shape[0]

    @property
    def is_indexed(self):
        return self.palette is not None

    @classmethod
    def from_indices(cls, indices, palette, bit_depth):
        indices = np.asarray(indices)
        colors = np.zeros((max(len(palette), 1), 3), dtype=np.uint8)
        if len(palette):
            colors[:len(palette)] = palette
        if indices.size and indices.max() >= len(colors):
            raise InvalidInputError(f"Pixel index {int(indices.max())} is outside the {len(palette)}-color palette.")
        return cls(colors[indices], palette=palette, bit_depth=bit_depth)

    @classmethod
    def from_image(cls, image: Image.Image):
        if image.mode == '1':
            rgb = np.array(image.convert('RGB'), dtype=np.uint8)
            return cls(rgb, palette=[(0, 0, 0), (255, 255, 255)], bit_depth=1)

        if image.mode == 'P':
            flat = image.getpalette() or []
            palette = [tuple(flat[i:i+3]) for i in range(0, len(flat) - 2, 3)]
            if len(palette) <= 2:
                bit_depth = 1
            elif len(palette) <= 16:
                bit_depth = 4
            else:
                bit_depth = 8
            rgb = np.array(image.convert('RGB'), dtype=np.uint8)
            return cls(rgb, palette=palette[:256], bit_depth=bit_depth)

        if image.mode != 'RGB':
            image = image.convert('RGB')
        return cls(np.array(image, dtype=np.uint8))

    @classmethod
    def open(cls, filepath):
        with Image.open(filepath) as image:
            image.load()
            return cls.from_image(image)
