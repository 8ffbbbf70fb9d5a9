import math

from cover_scanner.core.region_geometry import BoundingBox
from dataclasses                        import dataclass

LINE_RESOLUTION = 1000

@dataclass
class TextFragment:
    """
    A recognized string and its box in the cropped image's normalized space.
    """
    text       : str
    box        : BoundingBox
    confidence : float | None = None

def group_lines(
    fragments          : list[TextFragment],
    resolution         : int  = LINE_RESOLUTION,
    bottom_left_origin : bool = False
) -> list[list[TextFragment]]:
    """
    Groups fragments into reading-order lines.

    Fragments whose vertical centers fall into the same 1/resolution band share a line, which
    absorbs sub-pixel jitter between fragments of one printed line. Lines run top to bottom,
    ordered by the top edge of the first fragment placed in them; fragments within a line run
    left to right.

    Args:
        fragments          : Recognized fragments; blank strings are ignored
        resolution         : Number of vertical bands in the unit square
        bottom_left_origin : Whether fragment boxes use a bottom-left origin (y grows upward)

    Returns:
        list: Lines, each a list of fragments
    """
    lines = {}

    for fragment in fragments:
        if not fragment.text.strip():
            continue

        box = fragment.box.flipped_vertically() if bottom_left_origin else fragment.box
        key = math.floor(box.mid_y * resolution)
        lines.setdefault(key, {'top': box.min_y, 'members': []})
        lines[key]['members'].append((box.min_x, fragment))

    ordered_keys = sorted(lines, key = lambda key: (lines[key]['top'], key))
    return [
        [fragment for _, fragment in sorted(lines[key]['members'], key = lambda member: member[0])]
        for key in ordered_keys
    ]

def reconstruct_reading_order(
    fragments          : list[TextFragment],
    resolution         : int  = LINE_RESOLUTION,
    bottom_left_origin : bool = False
) -> str:
    """
    Joins fragments into text: a space between fragments of one line, a newline between lines.
    An empty fragment list gives an empty string.
    """
    return '\n'.join(
        ' '.join(fragment.text.strip() for fragment in line)
        for line in group_lines(fragments, resolution = resolution, bottom_left_origin = bottom_left_origin)
    )
