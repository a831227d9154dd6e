"""
Pass color values.

pass.json expects colors as `rgb(r, g, b)` strings. Input may be anything
PIL.ImageColor understands (CSS names, #rgb, #rrggbb, rgb()/rgba(), percent
forms) or an [r, g, b] sequence.
"""
from typing import Sequence, Tuple, Union

from PIL import ImageColor

ColorValue = Union[str, Sequence[int]]


def _is_channel(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 255


def get_rgb(value: ColorValue) -> Tuple[int, int, int]:
    """
    Convert a color value into an (r, g, b) tuple. Alpha is ignored.

    Raises:
        ValueError: On an unknown format or out of range channel
    """
    if isinstance(value, str):
        color = value.strip()
        if color.lower() == "transparent":
            return (0, 0, 0)
        try:
            rgb = ImageColor.getrgb(color)
        except ValueError as e:
            raise ValueError(
                f'Invalid color value "{value}": unknown format - must be something like '
                '\'blue\', "#FFF", "rgba(200, 60, 60, 0.3)", "rgb(200, 200, 200)", "rgb(0%, 0%, 100%)"'
            ) from e
        return tuple(rgb[:3])

    if isinstance(value, (list, tuple)):
        if len(value) not in (3, 4):
            raise ValueError(f"RGB colors array must have length 3 or 4, received {len(value)}")
        if not all(_is_channel(n) for n in value[:3]):
            raise ValueError(f"RGB colors array must consist only integers between 0 and 255, received {list(value)}")
        return tuple(value[:3])

    raise ValueError(f"Invalid color value {value!r}")


def to_pass_color(value: ColorValue) -> str:
    """Normalise a color value to the `rgb(r, g, b)` form used in pass.json."""
    r, g, b = get_rgb(value)
    return f"rgb({r}, {g}, {b})"
