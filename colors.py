# colors.py
"""Color and gradient geometry helpers shared by the style transformers."""

import math
from typing import Optional

GRADIENT_TYPES = ("GRADIENT_LINEAR", "GRADIENT_RADIAL", "GRADIENT_ANGULAR", "GRADIENT_DIAMOND")

_EPSILON = 1e-10


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _channels(color: dict) -> tuple:
    return (
        _round_half_up(color.get("r", 0) * 255),
        _round_half_up(color.get("g", 0) * 255),
        _round_half_up(color.get("b", 0) * 255),
    )


def _alpha(color: dict, opacity: float = 1) -> float:
    # Paint opacity and the color's own alpha channel are multiplicative.
    return _round_half_up(opacity * color.get("a", 1) * 100) / 100


def _fmt_number(value: float):
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def convert_color(color: dict, opacity: float = 1) -> dict:
    """Convert a Figma RGBA color to ``{"hex": "#RRGGBB", "opacity": a}``."""
    r, g, b = _channels(color)
    return {"hex": f"#{r:02X}{g:02X}{b:02X}", "opacity": _alpha(color, opacity)}


def format_rgba_color(color: dict, opacity: float = 1) -> str:
    r, g, b = _channels(color)
    return f"rgba({r}, {g}, {b}, {_fmt_number(_alpha(color, opacity))})"


def format_paint_color(color: dict, opacity: float = 1) -> str:
    """Hex for fully opaque colors, rgba() otherwise."""
    converted = convert_color(color, opacity)
    if converted["opacity"] == 1:
        return converted["hex"]
    return format_rgba_color(color, opacity)


def hex_to_rgba(hex_color: str, opacity: float = 1) -> str:
    hex_color = hex_color.replace("#", "")
    if len(hex_color) == 3:
        hex_color = "".join(c * 2 for c in hex_color)

    r = int(hex_color[0:2], 16)
    g = int(hex_color[2:4], 16)
    b = int(hex_color[4:6], 16)
    valid_opacity = min(max(opacity, 0), 1)
    return f"rgba({r}, {g}, {b}, {_fmt_number(valid_opacity)})"


def pixel_round(num) -> float:
    """Round a pixel value to two decimal places."""
    if isinstance(num, bool) or not isinstance(num, (int, float)) or math.isnan(num):
        raise TypeError("Input must be a valid number")
    return _fmt_number(round(float(num), 2))


def generate_css_shorthand(values: dict, ignore_zero: bool = True, suffix: str = "px") -> Optional[str]:
    """
    Collapse top/right/bottom/left values into a CSS shorthand.

    {10, 10, 10, 10} -> "10px"
    {10, 20, 10, 20} -> "10px 20px"
    {10, 20, 30, 40} -> "10px 20px 30px 40px"
    """
    top = _fmt_number(values.get("top", 0))
    right = _fmt_number(values.get("right", 0))
    bottom = _fmt_number(values.get("bottom", 0))
    left = _fmt_number(values.get("left", 0))

    if ignore_zero and top == 0 and right == 0 and bottom == 0 and left == 0:
        return None
    if top == right == bottom == left:
        return f"{top}{suffix}"
    if top == bottom and right == left:
        return f"{top}{suffix} {right}{suffix}"
    return f"{top}{suffix} {right}{suffix} {bottom}{suffix} {left}{suffix}"


# ---------------------------------------------------------------------------
# Gradients
# ---------------------------------------------------------------------------

def _css_angle(start: dict, end: dict) -> int:
    # Figma handles are y-down; CSS 0deg points up and grows clockwise.
    angle = math.degrees(math.atan2(end["y"] - start["y"], end["x"] - start["x"])) + 90
    return _round_half_up(angle % 360) % 360


def _percent(value: float) -> int:
    return _round_half_up(value * 100)


def _literal_stops(stops: list) -> str:
    return ", ".join(
        f"{format_paint_color(stop['color'])} {_percent(stop.get('position', 0))}%"
        for stop in stops
    )


def find_extended_line_intersections(start: dict, end: dict) -> list:
    """
    Intersect the infinite line through two handles with the unit square.

    Returns the sorted line parameters ``t`` (0 at ``start``, 1 at ``end``) of
    the boundary crossings.
    """
    dx = end["x"] - start["x"]
    dy = end["y"] - start["y"]
    if abs(dx) < _EPSILON and abs(dy) < _EPSILON:
        return []

    candidates = []
    if abs(dy) > _EPSILON:
        for edge_y in (0.0, 1.0):
            t = (edge_y - start["y"]) / dy
            x = start["x"] + t * dx
            if -_EPSILON <= x <= 1 + _EPSILON:
                candidates.append(t)
    if abs(dx) > _EPSILON:
        for edge_x in (0.0, 1.0):
            t = (edge_x - start["x"]) / dx
            y = start["y"] + t * dy
            if -_EPSILON <= y <= 1 + _EPSILON:
                candidates.append(t)

    unique = []
    for t in sorted(candidates):
        if not unique or abs(t - unique[-1]) > _EPSILON:
            unique.append(t)
    return unique


def _map_linear(stops: list, start: dict, end: dict) -> tuple:
    dx = end["x"] - start["x"]
    dy = end["y"] - start["y"]
    if math.hypot(dx, dy) == 0:
        return _literal_stops(stops), "0deg"

    geometry = f"{_css_angle(start, end)}deg"
    intersections = find_extended_line_intersections(start, end)
    if len(intersections) < 2:
        return _literal_stops(stops), geometry

    line_start, line_end = intersections[0], intersections[-1]
    span = line_end - line_start
    mapped = []
    for stop in stops:
        relative = (stop.get("position", 0) - line_start) / span
        relative = min(max(relative, 0.0), 1.0)
        mapped.append(f"{format_paint_color(stop['color'])} {_percent(relative)}%")
    return ", ".join(mapped), geometry


def map_gradient_stops(paint: dict) -> tuple:
    """Return ``(stops, geometry)`` CSS fragments for a gradient paint."""
    gradient_type = paint.get("type")
    stops = paint.get("gradientStops") or []
    handles = paint.get("gradientHandlePositions") or []

    if gradient_type not in GRADIENT_TYPES:
        raise ValueError(f"Unknown gradient type: {gradient_type}")
    if len(handles) < 2:
        return _literal_stops(stops), "0deg"

    center, edge = handles[0], handles[1]
    if gradient_type == "GRADIENT_LINEAR":
        return _map_linear(stops, center, edge)

    position = f"{_percent(center['x'])}% {_percent(center['y'])}%"
    if gradient_type == "GRADIENT_RADIAL":
        return _literal_stops(stops), f"circle at {position}"
    if gradient_type == "GRADIENT_ANGULAR":
        if math.hypot(edge["x"] - center["x"], edge["y"] - center["y"]) == 0:
            angle = 0
        else:
            angle = _css_angle(center, edge)
        return _literal_stops(stops), f"from {angle}deg at {position}"
    return _literal_stops(stops), f"ellipse at {position}"


def gradient_to_css(paint: dict) -> str:
    stops, geometry = map_gradient_stops(paint)
    gradient_type = paint["type"]
    if gradient_type == "GRADIENT_LINEAR":
        return f"linear-gradient({geometry}, {stops})"
    if gradient_type == "GRADIENT_ANGULAR":
        return f"conic-gradient({geometry}, {stops})"
    # Diamond gradients have no CSS equivalent; an ellipse is the closest match.
    return f"radial-gradient({geometry}, {stops})"
