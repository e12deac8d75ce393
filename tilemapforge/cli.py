#!/usr/bin/env python3

import argparse
import os
import sys
from dataclasses import dataclass

import numpy as np
from PIL import Image

from . import __version__, console
from .color import COLOR_METRICS
from .dedup import Deduplicator
from .errors import CapacityExceededError, TileForgeError
from .extractor import TileExtractor
from .pixelsource import PixelSource
from .tile import TILE_SIZE
from .tileset import Tileset

SCRIPT_NAME = "Tilemap Forge"
DEFAULT_TILES_PER_ROW = 16


# --- Splash Screen ---
def print_splash_screen(script_name, script_version):
    COLOR_BLUE_DARK = '\033[34m'
    COLOR_BLUE_BRIGHT = '\033[94m'
    COLOR_ORANGE_DARK = '\033[33m'
    COLOR_ORANGE_BRIGHT = '\033[93m'
    COLOR_TITLE = '\033[1;97m'
    COLOR_RESET = '\033[0m'

    if not sys.stdout.isatty():
        COLOR_BLUE_DARK = COLOR_BLUE_BRIGHT = COLOR_ORANGE_DARK = ""
        COLOR_ORANGE_BRIGHT = COLOR_TITLE = COLOR_RESET = ""

    block_char = "█" * 2
    b_dark = f"{COLOR_BLUE_DARK}{block_char}{COLOR_RESET}"
    b_bright = f"{COLOR_BLUE_BRIGHT}{block_char}{COLOR_RESET}"
    o_dark = f"{COLOR_ORANGE_DARK}{block_char}{COLOR_RESET}"
    o_bright = f"{COLOR_ORANGE_BRIGHT}{block_char}{COLOR_RESET}"

    print()
    print(f"{b_dark}{o_bright}{b_dark}")
    print(f"{o_bright}{b_bright}{o_dark}  {COLOR_TITLE}{script_name}{COLOR_RESET} (v{script_version})")
    print(f"{b_dark}{o_dark}{b_dark}")
    print("-" * 60)


@dataclass
class ForgeOptions:
    """Settings for one conversion, built from the command line."""

    input_image: str
    output_dir: str = "."
    output_basename: str = None
    allow_flipping: bool = True
    columns: int = None
    max_colors: int = None
    color_metric: str = 'rgb'
    bitmap_depth: int = None
    nibble_order: str = console.DEFAULT_NIBBLE_ORDER
    workers: int = 1
    preview: bool = True
    progress: bool = True

    @classmethod
    def from_args(cls, args):
        return cls(
            input_image=args.input_image,
            output_dir=args.output_dir,
            output_basename=args.output_basename,
            allow_flipping=not args.no_flip,
            columns=args.columns,
            max_colors=args.max_colors,
            color_metric=args.color_metric,
            bitmap_depth=args.bitmap_depth,
            nibble_order=args.nibble_order,
            workers=args.workers,
            preview=not args.no_preview,
            progress=not args.quiet,
        )

    @property
    def basename(self):
        if self.output_basename:
            return self.output_basename
        return os.path.splitext(os.path.basename(self.input_image))[0]


def build_parser():
    parser = argparse.ArgumentParser(
        prog="tilemapforge",
        description="Convert an image into deduplicated 8x8 tiles, a tilemap and a palette.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument("input_image", help="Input image file path (dimensions must be multiples of 8)")
    parser.add_argument("--output-dir", default=".", help="Directory for output files (defaults to current directory).")
    parser.add_argument("--output-basename", help="Basename for output files (defaults to the input file's name).")
    parser.add_argument("--no-flip", action="store_true", help="Do not reuse tiles through horizontal/vertical flips.")
    parser.add_argument("--columns", type=int, help="Tiles per row in the tileset bitmap.\n"
                                                    "Defaults to the largest exact divisor of the tile count up to 16.")
    parser.add_argument("--max-colors", type=int, help="Reduce the palette to at most this many colors (octree).")
    parser.add_argument("--color-metric", choices=list(COLOR_METRICS), default='rgb',
                        help="Color distance used when mapping colors to a reduced palette. Default: rgb")
    parser.add_argument("--bitmap-depth", type=int, choices=[4, 8, 24],
                        help="Force the tileset bitmap depth instead of picking it from the palette size.")
    parser.add_argument("--nibble-order", choices=list(console.NIBBLE_ORDERS), default=console.DEFAULT_NIBBLE_ORDER,
                        help="Which nibble holds the left pixel in 4bpp console tiles.\n"
                             "  high (default): left pixel in bits 4-7.\n"
                             "  low: left pixel in bits 0-3 (GBA hardware order).")
    parser.add_argument("--workers", type=int, default=1, help="Threads used to search for duplicate tiles. Default: 1")
    parser.add_argument("--no-preview", action="store_true", help="Skip the PNG preview images.")
    parser.add_argument("--quiet", action="store_true", help="Hide progress bars.")
    return parser


def pick_columns(tileset, requested=None):
    if requested:
        return requested
    fitting = [c for c in tileset.get_perfect_columns() if c <= DEFAULT_TILES_PER_ROW]
    return fitting[-1]


def save_previews(full_output_path, tileset, tilemap, columns):
    Image.fromarray(tileset.render(columns), 'RGB').save(f"{full_output_path}_tileset.png")

    colors = np.array(tileset.palette, dtype=np.uint8)
    indices = tilemap.render_indices(tileset)
    Image.fromarray(colors[indices], 'RGB').save(f"{full_output_path}_reconstructed.png")


def run(options):
    print("1. Loading source image...")
    source = PixelSource.open(options.input_image)
    kind = f"indexed {source.bit_depth}bpp" if source.is_indexed else "direct color"
    print(f"   [INFO] {source.width}x{source.height} pixels, {kind}.")

    print("2. Extracting tiles...")
    raw_tiles, palette = TileExtractor().extract(source)
    print(f"   [INFO] Image contains a total of {len(raw_tiles)} tiles (including duplicates).")
    print(f"   [INFO] Palette holds {len(palette)} colors.")

    if options.max_colors is not None:
        print(f"3. Reducing palette to at most {options.max_colors} colors...")
        staging = Tileset(raw_tiles, palette)
        staging.reduce_colors(options.max_colors, options.color_metric)
        raw_tiles, palette = staging.tiles, staging.palette
        print(f"   [INFO] Palette now holds {len(palette)} colors.")
    else:
        print("3. Keeping source palette.")

    flip_text = "with" if options.allow_flipping else "without"
    print(f"4. Deduplicating tiles {flip_text} flipping...")
    deduplicator = Deduplicator(options.allow_flipping, options.workers, options.progress)
    tileset, tilemap = deduplicator.deduplicate(raw_tiles, palette, source.width // TILE_SIZE)
    print(f"   [INFO] Optimization complete. Final tile count: {len(tileset)}")

    columns = pick_columns(tileset, options.columns)
    print(f"   [INFO] Perfect column counts: {tileset.get_perfect_columns()}; using {columns}.")

    print("5. Generating output files...")
    os.makedirs(options.output_dir, exist_ok=True)
    full_output_path = os.path.join(options.output_dir, options.basename)

    tileset.save_bitmap(f"{full_output_path}.bmp", columns, options.bitmap_depth)
    print(f"   [INFO] Wrote {options.basename}.bmp")
    try:
        tileset.save_console_tiles(f"{full_output_path}.img.bin", options.nibble_order)
        tileset.save_console_palette(f"{full_output_path}.pal.bin")
        console.write_tilemap(f"{full_output_path}.map.bin", tilemap)
        print(f"   [INFO] Wrote {options.basename}.img.bin, .pal.bin and .map.bin")
    except CapacityExceededError as e:
        print(f"Warning: Skipping console output. {e}")

    if options.preview:
        print("6. Generating visual outputs...")
        save_previews(full_output_path, tileset, tilemap, columns)

    print("\nProcessing complete.")
    return tileset, tilemap


def main(argv=None):
    args = build_parser().parse_args(argv)
    options = ForgeOptions.from_args(args)
    print_splash_screen(SCRIPT_NAME, __version__)

    try:
        run(options)
    except FileNotFoundError:
        print(f"Error: Input image '{options.input_image}' not found.")
        return 1
    except (TileForgeError, OSError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
