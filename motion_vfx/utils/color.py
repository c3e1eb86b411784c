"""
Indicator colors.

Colors in the YAML configuration may be written as "#RRGGBB[AA]" hex, as a
"R, G, B[, A]" string, or as a list of 0-255 integers or 0.0-1.0 floats.
Everything is converted to an RGBA tuple of 0-255 ints.
"""

import re
from typing import Sequence, Tuple, Union

Color = Tuple[int, int, int, int]  # RGBA
ColorInput = Union[str, Sequence[Union[int, float]]]

GREEN: Color = (0, 255, 0, 255)
RED: Color = (255, 0, 0, 255)

_HEX = re.compile(r'#?((?:[0-9a-fA-F]{2}){3,4})')
_COMPONENT_SPLIT = re.compile(r'\s*,\s*')


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize_color(components: Sequence[Union[int, float]]) -> Color:
    """
    Convert 3 or 4 numeric components to a clamped RGBA tuple.

    Components are read as 0.0-1.0 floats only when every one of them is a
    float inside that range; anything else is read on the 0-255 scale.

    Raises:
        ValueError: If there are fewer than 3 or more than 4 components
    """
    if not 3 <= len(components) <= 4:
        raise ValueError(f"Color needs 3 or 4 components, got {len(components)}")

    unit_scale = all(isinstance(c, float) and 0.0 <= c <= 1.0 for c in components)
    scaled = [c * 255 if unit_scale else c for c in components]
    rgba = [max(0, min(255, int(round(c)))) for c in scaled]
    if len(rgba) == 3:
        rgba.append(255)
    return (rgba[0], rgba[1], rgba[2], rgba[3])


def _parse_text(text: str) -> Color:
    text = text.strip()
    match = _HEX.fullmatch(text)
    if match:
        digits = match.group(1)
        values = [int(digits[i:i + 2], 16) for i in range(0, len(digits), 2)]
        return normalize_color(values)

    body = text.strip("()[] ")
    parts = _COMPONENT_SPLIT.split(body) if body else []
    try:
        numbers = [float(p) if '.' in p else int(p) for p in parts]
    except ValueError:
        raise ValueError(f"Invalid color format: {text!r}") from None
    if not 3 <= len(numbers) <= 4 or any(n < 0 for n in numbers):
        raise ValueError(f"Invalid color format: {text!r}")
    return normalize_color(numbers)


def parse_color(color: ColorInput) -> Color:
    """
    Parse a configured color.

    Args:
        color: Hex string, component string, or a list/tuple of components

    Returns:
        RGBA tuple with values 0-255

    Raises:
        ValueError: If the value is not a recognizable color
    """
    if isinstance(color, str):
        return _parse_text(color)
    if isinstance(color, (list, tuple)):
        return normalize_color(tuple(color))
    raise ValueError(f"Unsupported color type: {type(color).__name__}")


def lerp_color(start: Color, end: Color, t: float) -> Color:
    """Blend from ``start`` (t=0) to ``end`` (t=1); ``t`` is clamped."""
    t = clamp01(t)
    r, g, b, a = (int(round(s + (e - s) * t)) for s, e in zip(start, end))
    return (r, g, b, a)
