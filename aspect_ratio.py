"""
Aspect ratio utilities for the image generation backend.

The backend only produces a fixed set of output aspect ratios. These helpers
contain no network or imaging dependencies and can be unit tested on their own.
"""

# Supported output ratios, in lookup order. Order matters: on an exact tie the
# entry listed first wins.
SUPPORTED_RATIOS = (
    ("21:9", 21 / 9),
    ("16:9", 16 / 9),
    ("5:4", 5 / 4),
    ("4:3", 4 / 3),
    ("3:2", 3 / 2),
    ("1:1", 1.0),
    ("4:5", 4 / 5),
    ("3:4", 3 / 4),
    ("2:3", 2 / 3),
    ("9:16", 9 / 16),
)

DEFAULT_RATIO = "1:1"

# Ratios closer than this count as matching
ADJUSTMENT_TOLERANCE = 0.01


def _closest_ratio(ratio):
    closest_name, closest_value = SUPPORTED_RATIOS[0]
    min_diff = abs(ratio - closest_value)

    for name, value in SUPPORTED_RATIOS:
        diff = abs(ratio - value)
        if diff < min_diff:
            min_diff = diff
            closest_name, closest_value = name, value

    return closest_name, closest_value, min_diff


def resolve(width, height):
    """
    Select the supported aspect ratio closest to the given dimensions.

    Args:
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        str: Ratio label such as "16:9"; "1:1" for invalid dimensions
    """
    if width <= 0 or height <= 0:
        return DEFAULT_RATIO

    name, _, _ = _closest_ratio(width / height)
    return name


def format_ratio(ratio):
    """Format a real ratio as a table label when it matches one, else as "N.NN:1"."""
    for name, value in SUPPORTED_RATIOS:
        if abs(ratio - value) < ADJUSTMENT_TOLERANCE:
            return name
    return f"{ratio:.2f}:1"


def calculate_aspect_ratio_adjustment(width, height):
    """
    Calculate how a selection must grow to match the closest supported ratio.

    The selection is only ever expanded, never cropped: a selection that is
    too narrow gains width, one that is too wide gains height.

    Args:
        width: Selection width in pixels
        height: Selection height in pixels

    Returns:
        dict: {
            'original_width', 'original_height': Input size,
            'adjusted_width', 'adjusted_height': Size after adjustment,
            'original_ratio': Label of the input ratio,
            'closest_ratio': Label of the supported ratio to use,
            'needs_adjustment': Whether the size changed
        }
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Selection dimensions must be positive, got {width}x{height}")

    current_ratio = width / height
    closest_name, closest_value, min_diff = _closest_ratio(current_ratio)
    needs_adjustment = min_diff > ADJUSTMENT_TOLERANCE

    adjusted_width, adjusted_height = width, height
    if needs_adjustment:
        if closest_value > current_ratio:
            # Need wider
            adjusted_width = round(height * closest_value)
        else:
            # Need taller
            adjusted_height = round(width / closest_value)

    return {
        'original_width': width,
        'original_height': height,
        'adjusted_width': adjusted_width,
        'adjusted_height': adjusted_height,
        'original_ratio': format_ratio(current_ratio),
        'closest_ratio': closest_name,
        'needs_adjustment': needs_adjustment
    }
