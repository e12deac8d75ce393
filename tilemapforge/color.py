# --- Color Helpers ---
import numpy as np

from .errors import InvalidInputError

COLOR_STEP = 8


def quantize_color(rgb):
    """Round every channel down to a multiple of 8."""
    r, g, b = rgb
    return (r // COLOR_STEP * COLOR_STEP, g // COLOR_STEP * COLOR_STEP, b // COLOR_STEP * COLOR_STEP)


def quantize_array(rgb_array):
    return (np.asarray(rgb_array, dtype=np.uint8) // COLOR_STEP) * COLOR_STEP


def pack_rgb(rgb_array):
    """Pack an (..., 3) array of channels into (...) 24-bit integers 0xRRGGBB."""
    rgb_array = np.asarray(rgb_array, dtype=np.uint32)
    return (rgb_array[..., 0] << 16) | (rgb_array[..., 1] << 8) | rgb_array[..., 2]


def unpack_rgb(value):
    value = int(value)
    return ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)


# --- Color Difference Functions ---
def color_distance_rgb(c1_rgb255, c2_rgb255):
    r1, g1, b1 = c1_rgb255
    r2, g2, b2 = c2_rgb255
    return (r1-r2)**2 + (g1-g2)**2 + (b1-b2)**2


def color_distance_weighted_rgb(c1_rgb255, c2_rgb255):
    r1, g1, b1 = c1_rgb255
    r2, g2, b2 = c2_rgb255
    dr, dg, db = r1-r2, g1-g2, b1-b2
    return (30*dr)**2 + (59*dg)**2 + (11*db)**2


COLOR_METRICS = {
    'rgb': color_distance_rgb,
    'weighted-rgb': color_distance_weighted_rgb,
}


def get_color_distance_function(metric_name):
    try:
        return COLOR_METRICS[metric_name]
    except KeyError:
        raise InvalidInputError(
            f"Unknown color metric '{metric_name}'. Expected one of: {', '.join(COLOR_METRICS)}."
        ) from None


def find_closest_color_index(rgb, palette, color_dist_func=color_distance_rgb):
    """Index of the palette entry closest to ``rgb``; the first entry wins ties."""
    min_dist = float('inf')
    best_idx = 0
    for idx, candidate in enumerate(palette):
        dist = color_dist_func(rgb, candidate)
        if dist < min_dist:
            min_dist = dist
            best_idx = idx
        if dist == 0:
            break
    return best_idx


# --- 15-bit console colors ---
def rgb_to_bgr555(rgb):
    r, g, b = rgb
    return ((b >> 3) << 10) | ((g >> 3) << 5) | (r >> 3)


def bgr555_to_rgb(value):
    r = (value & 0x1F) << 3
    g = ((value >> 5) & 0x1F) << 3
    b = ((value >> 10) & 0x1F) << 3
    return (r, g, b)
