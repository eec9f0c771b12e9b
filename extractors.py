# extractors.py
"""
Composable per-node extractors and the style registry they write into.

An extractor is any callable ``(node, result, context) -> None``. It reads the
raw Figma node, mutates the simplified ``result`` dict in place and may record
style values in ``context.global_vars``.
"""

import json
import random
import string
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from transform import (
    build_border_radius,
    build_component_info,
    build_simplified_effects,
    build_simplified_layout,
    build_simplified_strokes,
    extract_node_text,
    extract_text_style,
    has_children,
    has_text_style,
    is_text_node,
    parse_paint,
)

_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_var_id(prefix: str = "var") -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}_{suffix}"


def canonical_json(value) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class GlobalVars:
    """Per-traversal registry mapping generated ids to deduplicated style values."""

    def __init__(self):
        self.styles: Dict[str, object] = {}
        self._ids_by_key: Dict[str, str] = {}

    def find_or_create(self, value, prefix: str) -> str:
        key = canonical_json(value)
        existing = self._ids_by_key.get(key)
        if existing:
            return existing

        var_id = generate_var_id(prefix)
        while var_id in self.styles:
            var_id = generate_var_id(prefix)

        self.styles[var_id] = value
        self._ids_by_key[key] = var_id
        return var_id

    def __len__(self):
        return len(self.styles)

    def to_dict(self) -> dict:
        return {"styles": dict(self.styles)}


@dataclass
class TraversalContext:
    global_vars: GlobalVars = field(default_factory=GlobalVars)
    current_depth: int = 0
    parent: Optional[dict] = None

    def child(self, parent: dict) -> "TraversalContext":
        return replace(self, current_depth=self.current_depth + 1, parent=parent)


ExtractorFn = Callable[[dict, dict, TraversalContext], None]


def layout_extractor(node: dict, result: dict, context: TraversalContext) -> None:
    layout = build_simplified_layout(node, context.parent)
    if layout:
        result["layout"] = context.global_vars.find_or_create(layout, "layout")


def text_extractor(node: dict, result: dict, context: TraversalContext) -> None:
    if is_text_node(node):
        text = extract_node_text(node)
        if text:
            result["text"] = text

    if has_text_style(node):
        result["textStyle"] = context.global_vars.find_or_create(extract_text_style(node), "style")


def visuals_extractor(node: dict, result: dict, context: TraversalContext) -> None:
    # Image fills render as backgrounds on containers and as <img> on leaves.
    container = has_children(node)

    fills = node.get("fills")
    if isinstance(fills, list) and fills:
        simplified = [parse_paint(fill, container) for fill in fills]
        result["fills"] = context.global_vars.find_or_create(simplified, "fill")

    strokes = build_simplified_strokes(node, container)
    if strokes["colors"]:
        result["strokes"] = context.global_vars.find_or_create(strokes, "stroke")

    effects = build_simplified_effects(node)
    if effects:
        result["effects"] = context.global_vars.find_or_create(effects, "effect")

    opacity = node.get("opacity")
    if isinstance(opacity, (int, float)) and opacity != 1:
        result["opacity"] = opacity

    radius = build_border_radius(node)
    if radius:
        result["borderRadius"] = radius


def component_extractor(node: dict, result: dict, context: TraversalContext) -> None:
    result.update(build_component_info(node))


ALL_EXTRACTORS: List[ExtractorFn] = [layout_extractor, text_extractor, visuals_extractor, component_extractor]
LAYOUT_AND_TEXT: List[ExtractorFn] = [layout_extractor, text_extractor]
CONTENT_ONLY: List[ExtractorFn] = [text_extractor]
VISUALS_ONLY: List[ExtractorFn] = [visuals_extractor]
LAYOUT_ONLY: List[ExtractorFn] = [layout_extractor]
