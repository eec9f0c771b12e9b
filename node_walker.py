# node_walker.py

from typing import Callable, List, Optional, Sequence, Tuple

from extractors import ExtractorFn, GlobalVars, TraversalContext
from transform import is_visible

NodeFilter = Callable[[dict], bool]


def should_process_node(node: dict, node_filter: Optional[NodeFilter] = None) -> bool:
    if not isinstance(node, dict) or not is_visible(node):
        return False
    if node_filter is not None and not node_filter(node):
        return False
    return True


def should_traverse_children(context: TraversalContext, max_depth: Optional[int] = None) -> bool:
    return max_depth is None or context.current_depth < max_depth


def process_node(
    node: dict,
    extractors: Sequence[ExtractorFn],
    context: TraversalContext,
    max_depth: Optional[int] = None,
    node_filter: Optional[NodeFilter] = None,
) -> Optional[dict]:
    """Simplify one node and, depth permitting, its visible descendants."""
    if not should_process_node(node, node_filter):
        return None

    result = {
        "id": node.get("id"),
        "name": node.get("name"),
        "type": "IMAGE-SVG" if node.get("type") == "VECTOR" else node.get("type"),
    }
    for extractor in extractors:
        extractor(node, result, context)

    if should_traverse_children(context, max_depth):
        child_context = context.child(node)
        children = []
        for child in node.get("children") or []:
            simplified = process_node(child, extractors, child_context, max_depth, node_filter)
            if simplified is not None:
                children.append(simplified)
        if children:
            result["children"] = children

    return result


def extract_from_design(
    nodes: Sequence[dict],
    extractors: Sequence[ExtractorFn],
    max_depth: Optional[int] = None,
    node_filter: Optional[NodeFilter] = None,
    global_vars: Optional[GlobalVars] = None,
) -> Tuple[List[dict], GlobalVars]:
    """
    Walk the raw node trees once, depth-first and in document order.

    Every extractor runs against every visited node. A node rejected by
    ``node_filter`` (or hidden) is dropped together with its subtree, and
    nothing deeper than ``max_depth`` levels below a root is visited.
    """
    if max_depth is not None and max_depth < 0:
        raise ValueError(f"max_depth must be >= 0, got {max_depth}")

    context = TraversalContext(global_vars=global_vars if global_vars is not None else GlobalVars())
    simplified = []
    for node in nodes:
        result = process_node(node, extractors, context, max_depth, node_filter)
        if result is not None:
            simplified.append(result)
    return simplified, context.global_vars
