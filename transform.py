# transform.py

import hashlib
import json
import logging

from colors import (
    GRADIENT_TYPES,
    convert_color,
    format_paint_color,
    format_rgba_color,
    generate_css_shorthand,
    gradient_to_css,
    pixel_round,
)

logger = logging.getLogger(__name__)

IDENTITY_TRANSFORM = [[1, 0, 0], [0, 1, 0]]


def _compact(values: dict) -> dict:
    return {k: v for k, v in values.items() if v is not None}


def is_visible(element: dict) -> bool:
    return element.get("visible", True) is not False


def has_children(node: dict) -> bool:
    children = node.get("children")
    return isinstance(children, list) and len(children) > 0


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def is_frame(node) -> bool:
    return isinstance(node, dict) and isinstance(node.get("clipsContent"), bool)


def is_layout(node) -> bool:
    box = node.get("absoluteBoundingBox") if isinstance(node, dict) else None
    return isinstance(box, dict) and all(
        isinstance(box.get(k), (int, float)) for k in ("x", "y", "width", "height")
    )


def is_in_auto_layout_flow(node: dict, parent) -> bool:
    return (
        is_frame(parent)
        and parent.get("layoutMode", "NONE") not in (None, "NONE")
        and node.get("layoutPositioning") != "ABSOLUTE"
    )


def _direction(axis: str, mode: str) -> str:
    if axis == "primary":
        return "horizontal" if mode == "row" else "vertical"
    return "vertical" if mode == "row" else "horizontal"


def _children_stretch(children: list, axis: str, mode: str) -> bool:
    if not children:
        return False
    direction = _direction(axis, mode)
    sizing_key = "layoutSizingHorizontal" if direction == "horizontal" else "layoutSizingVertical"
    for child in children:
        if child.get("layoutPositioning") == "ABSOLUTE":
            continue
        if child.get(sizing_key) != "FILL":
            return False
    return True


def convert_align(axis_align, children=None, axis=None, mode="none"):
    if mode != "none" and axis and _children_stretch(children or [], axis, mode):
        return "stretch"
    return {
        "MAX": "flex-end",
        "CENTER": "center",
        "SPACE_BETWEEN": "space-between",
        "BASELINE": "baseline",
    }.get(axis_align)


def convert_self_align(align):
    return {"MAX": "flex-end", "CENTER": "center", "STRETCH": "stretch"}.get(align)


def convert_sizing(sizing):
    return {"FIXED": "fixed", "FILL": "fill", "HUG": "hug"}.get(sizing)


def _frame_values(node: dict) -> dict:
    if not is_frame(node):
        return {"mode": "none"}

    layout_mode = node.get("layoutMode")
    if not layout_mode or layout_mode == "NONE":
        mode = "none"
    else:
        mode = "row" if layout_mode == "HORIZONTAL" else "column"
    values = {"mode": mode}

    overflow = node.get("overflowDirection") or ""
    overflow_scroll = [axis for axis, flag in (("x", "HORIZONTAL"), ("y", "VERTICAL")) if flag in overflow]
    if overflow_scroll:
        values["overflowScroll"] = overflow_scroll

    if mode == "none":
        return values

    children = node.get("children") or []
    values["justifyContent"] = convert_align(node.get("primaryAxisAlignItems", "MIN"), children, "primary", mode)
    values["alignItems"] = convert_align(node.get("counterAxisAlignItems", "MIN"), children, "counter", mode)
    values["alignSelf"] = convert_self_align(node.get("layoutAlign"))
    values["wrap"] = True if node.get("layoutWrap") == "WRAP" else None
    values["gap"] = f"{node['itemSpacing']}px" if node.get("itemSpacing") else None

    padding = {
        "top": node.get("paddingTop") or 0,
        "right": node.get("paddingRight") or 0,
        "bottom": node.get("paddingBottom") or 0,
        "left": node.get("paddingLeft") or 0,
    }
    values["padding"] = generate_css_shorthand(padding)
    return _compact(values)


def _dimensions(node: dict, mode: str) -> dict:
    box = node["absoluteBoundingBox"]
    horizontal = node.get("layoutSizingHorizontal")
    vertical = node.get("layoutSizingVertical")
    dimensions = {}

    if mode == "row":
        if not node.get("layoutGrow") and horizontal == "FIXED":
            dimensions["width"] = box["width"]
        if node.get("layoutAlign") != "STRETCH" and vertical == "FIXED":
            dimensions["height"] = box["height"]
    elif mode == "column":
        if node.get("layoutAlign") != "STRETCH" and horizontal == "FIXED":
            dimensions["width"] = box["width"]
        if not node.get("layoutGrow") and vertical == "FIXED":
            dimensions["height"] = box["height"]
        if node.get("preserveRatio") and box["height"]:
            dimensions["aspectRatio"] = pixel_round(box["width"] / box["height"])
    else:
        if not horizontal or horizontal == "FIXED":
            dimensions["width"] = box["width"]
        if not vertical or vertical == "FIXED":
            dimensions["height"] = box["height"]

    for key in ("width", "height"):
        if key in dimensions:
            dimensions[key] = pixel_round(dimensions[key])
    return dimensions


def _layout_values(node: dict, parent, mode: str) -> dict:
    if not is_layout(node):
        return {}

    values = {}
    sizing = _compact({
        "horizontal": convert_sizing(node.get("layoutSizingHorizontal")),
        "vertical": convert_sizing(node.get("layoutSizingVertical")),
    })
    if sizing:
        values["sizing"] = sizing

    if is_frame(parent) and not is_in_auto_layout_flow(node, parent):
        if node.get("layoutPositioning") == "ABSOLUTE":
            values["position"] = "absolute"
        if is_layout(parent):
            box, parent_box = node["absoluteBoundingBox"], parent["absoluteBoundingBox"]
            values["locationRelativeToParent"] = {
                "x": pixel_round(box["x"] - parent_box["x"]),
                "y": pixel_round(box["y"] - parent_box["y"]),
            }

    dimensions = _dimensions(node, mode)
    if dimensions:
        values["dimensions"] = dimensions
    return values


def build_simplified_layout(node: dict, parent: dict = None) -> dict:
    """
    Normalized box/flow description of a node.

    An empty dict means the node carries no layout information worth keeping.
    """
    layout = _frame_values(node)
    layout.update(_layout_values(node, parent, layout["mode"]))
    if layout == {"mode": "none"}:
        return {}
    return layout


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def is_text_node(node: dict) -> bool:
    return node.get("type") == "TEXT"


def has_text_style(node: dict) -> bool:
    style = node.get("style")
    return isinstance(style, dict) and len(style) > 0


def extract_node_text(node: dict):
    return node.get("characters") or None


def extract_text_style(node: dict) -> dict:
    if not has_text_style(node):
        return {}

    style = node["style"]
    font_size = style.get("fontSize")
    line_height = None
    if style.get("lineHeightPx") and font_size:
        line_height = f"{pixel_round(style['lineHeightPx'] / font_size)}em"
    letter_spacing = None
    if style.get("letterSpacing") and font_size:
        letter_spacing = f"{pixel_round(style['letterSpacing'] / font_size * 100)}%"

    return _compact({
        "fontFamily": style.get("fontFamily"),
        "fontWeight": style.get("fontWeight"),
        "fontSize": font_size,
        "lineHeight": line_height,
        "letterSpacing": letter_spacing,
        "textCase": style.get("textCase"),
        "textAlignHorizontal": style.get("textAlignHorizontal"),
        "textAlignVertical": style.get("textAlignVertical"),
    })


# ---------------------------------------------------------------------------
# Paints
# ---------------------------------------------------------------------------

def transform_hash(transform) -> str:
    """Short stable hash of an image transform, used to name cropped variants."""
    canonical = json.dumps(transform, separators=(",", ":"))
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()[:6]


def _tile_size(scaling_factor) -> str:
    if scaling_factor is None:
        return "auto"
    if isinstance(scaling_factor, bool) or not isinstance(scaling_factor, (int, float)) or scaling_factor <= 0:
        logger.warning(f"Ignoring invalid TILE scaling factor {scaling_factor!r}")
        return "auto"
    return (
        f"calc(var(--original-width) * {scaling_factor}) "
        f"calc(var(--original-height) * {scaling_factor})"
    )


def translate_scale_mode(scale_mode: str, is_background: bool, scaling_factor=None) -> tuple:
    """Map a Figma scale mode to CSS properties plus image processing needs."""
    processing = {"needsCropping": False, "requiresImageDimensions": False}

    if scale_mode == "FILL":
        css = {"backgroundSize": "cover", "backgroundRepeat": "no-repeat"} if is_background else {"objectFit": "cover"}
    elif scale_mode == "FIT":
        css = {"backgroundSize": "contain", "backgroundRepeat": "no-repeat"} if is_background else {"objectFit": "contain"}
    elif scale_mode == "STRETCH":
        css = {"backgroundSize": "100% 100%", "backgroundRepeat": "no-repeat"} if is_background else {"objectFit": "fill"}
    elif scale_mode == "TILE":
        # An <img> cannot tile, so TILE is always emitted as a background.
        css = {"backgroundRepeat": "repeat", "backgroundSize": _tile_size(scaling_factor)}
        processing["requiresImageDimensions"] = True
    else:
        css = {}
    return css, processing


def _is_identity(transform) -> bool:
    try:
        return all(
            abs(transform[row][col] - IDENTITY_TRANSFORM[row][col]) < 1e-9
            for row in range(2)
            for col in range(3)
        )
    except (TypeError, IndexError, KeyError):
        return False


def _parse_image_paint(raw: dict, has_children: bool) -> dict:
    scale_mode = raw.get("scaleMode")
    css, processing = translate_scale_mode(scale_mode, has_children, raw.get("scalingFactor"))

    transform = raw.get("imageTransform")
    if transform and not _is_identity(transform):
        processing["needsCropping"] = True
        processing["cropTransform"] = transform
        processing["filenameSuffix"] = transform_hash(transform)

    fill = _compact({
        "type": "IMAGE",
        "imageRef": raw.get("imageRef"),
        "scaleMode": scale_mode,
        "scalingFactor": raw.get("scalingFactor"),
    })
    fill.update(css)
    fill["imageDownloadArguments"] = processing
    return fill


def parse_paint(raw: dict, has_children: bool = False):
    """
    Convert a Figma paint to its simplified form.

    Solids become a hex or rgba() string; gradients, patterns and images
    become descriptor dicts. Unknown paint types raise ``ValueError``.
    """
    paint_type = raw.get("type")

    if paint_type == "SOLID":
        return format_paint_color(raw["color"], raw.get("opacity", 1))

    if paint_type in GRADIENT_TYPES:
        return _compact({
            "type": paint_type,
            "gradient": gradient_to_css(raw),
            "gradientHandlePositions": raw.get("gradientHandlePositions"),
            "gradientStops": [
                {"position": stop.get("position"), "color": convert_color(stop["color"])}
                for stop in raw.get("gradientStops") or []
            ],
        })

    if paint_type == "IMAGE":
        return _parse_image_paint(raw, has_children)

    if paint_type == "PATTERN":
        pattern = {"type": "PATTERN"}
        source_id = raw.get("sourceNodeId")
        if source_id:
            pattern["patternSource"] = _compact({
                "nodeId": source_id,
                "tileType": raw.get("tileType"),
                "scalingFactor": raw.get("scalingFactor"),
            })
        return pattern

    raise ValueError(f"Unknown paint type: {paint_type}")


# ---------------------------------------------------------------------------
# Strokes, effects, corners
# ---------------------------------------------------------------------------

def build_simplified_strokes(node: dict, has_children: bool = False) -> dict:
    strokes = {"colors": []}
    if isinstance(node.get("strokes"), list):
        strokes["colors"] = [parse_paint(s, has_children) for s in node["strokes"] if is_visible(s)]

    weight = node.get("strokeWeight")
    if isinstance(weight, (int, float)) and weight > 0:
        strokes["strokeWeight"] = f"{weight}px"

    dashes = node.get("strokeDashes")
    if isinstance(dashes, list) and dashes:
        strokes["strokeDashes"] = dashes

    individual = node.get("individualStrokeWeights")
    if isinstance(individual, dict):
        shorthand = generate_css_shorthand(individual)
        if shorthand:
            strokes["strokeWeight"] = shorthand

    return strokes


def _shadow(effect: dict) -> str:
    offset = effect.get("offset") or {}
    shadow = (
        f"{offset.get('x', 0)}px {offset.get('y', 0)}px "
        f"{effect.get('radius', 0)}px {effect.get('spread') or 0}px "
        f"{format_rgba_color(effect.get('color') or {})}"
    )
    return f"inset {shadow}" if effect["type"] == "INNER_SHADOW" else shadow


def _blur(effect: dict) -> str:
    return f"blur({effect.get('radius', 0)}px)"


def build_simplified_effects(node: dict) -> dict:
    effects = [e for e in node.get("effects") or [] if is_visible(e)]
    if not effects:
        return {}

    shadows = [_shadow(e) for e in effects if e.get("type") == "DROP_SHADOW"]
    shadows += [_shadow(e) for e in effects if e.get("type") == "INNER_SHADOW"]
    blur = " ".join(_blur(e) for e in effects if e.get("type") == "LAYER_BLUR")
    backdrop = " ".join(_blur(e) for e in effects if e.get("type") == "BACKGROUND_BLUR")

    result = {}
    if shadows:
        result["textShadow" if is_text_node(node) else "boxShadow"] = ", ".join(shadows)
    if blur:
        result["filter"] = blur
    if backdrop:
        result["backdropFilter"] = backdrop
    return result


def build_border_radius(node: dict):
    radii = node.get("rectangleCornerRadii")
    if isinstance(radii, list) and len(radii) == 4 and all(isinstance(r, (int, float)) for r in radii):
        return " ".join(f"{r}px" for r in radii)
    radius = node.get("cornerRadius")
    if isinstance(radius, (int, float)) and not isinstance(radius, bool):
        return f"{radius}px"
    return None


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------

def _property_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_component_info(node: dict) -> dict:
    if node.get("type") != "INSTANCE":
        return {}

    info = {}
    if node.get("componentId"):
        info["componentId"] = node["componentId"]

    properties = node.get("componentProperties")
    if properties:
        info["componentProperties"] = [
            {"name": name, "value": _property_value(prop.get("value")), "type": prop.get("type")}
            for name, prop in properties.items()
        ]
    return info
