# design_extractor.py

from typing import Sequence

from extractors import ALL_EXTRACTORS, ExtractorFn
from node_walker import NodeFilter, extract_from_design
from transform import is_visible


def simplify_components(components: dict) -> dict:
    return {
        comp_id: {k: v for k, v in {
            "id": comp_id,
            "key": comp.get("key"),
            "name": comp.get("name"),
            "componentSetId": comp.get("componentSetId"),
        }.items() if v is not None}
        for comp_id, comp in (components or {}).items()
    }


def simplify_component_sets(component_sets: dict) -> dict:
    return {
        set_id: {k: v for k, v in {
            "id": set_id,
            "key": comp_set.get("key"),
            "name": comp_set.get("name"),
            "description": comp_set.get("description") or None,
        }.items() if v is not None}
        for set_id, comp_set in (component_sets or {}).items()
    }


def parse_api_response(response: dict) -> dict:
    """
    Normalize a ``GET /files/:key`` or ``GET /files/:key/nodes`` response.

    Returns the metadata, the root nodes to walk and the merged component tables.
    """
    components = {}
    component_sets = {}

    if "nodes" in response:
        entries = [entry for entry in (response.get("nodes") or {}).values() if entry]
        for entry in entries:
            components.update(entry.get("components") or {})
            component_sets.update(entry.get("componentSets") or {})
        roots = [entry["document"] for entry in entries if entry.get("document")]
    elif "document" in response:
        components.update(response.get("components") or {})
        component_sets.update(response.get("componentSets") or {})
        roots = response["document"].get("children") or []
    else:
        raise ValueError("Figma response has neither 'document' nor 'nodes'")

    return {
        "metadata": {
            "name": response.get("name"),
            "lastModified": response.get("lastModified"),
            "thumbnailUrl": response.get("thumbnailUrl") or "",
        },
        "nodes": [node for node in roots if is_visible(node)],
        "components": components,
        "componentSets": component_sets,
    }


def simplify_raw_figma_object(
    response: dict,
    extractors: Sequence[ExtractorFn] = ALL_EXTRACTORS,
    max_depth: int = None,
    node_filter: NodeFilter = None,
) -> dict:
    parsed = parse_api_response(response)
    nodes, global_vars = extract_from_design(
        parsed["nodes"], extractors, max_depth=max_depth, node_filter=node_filter
    )

    design = dict(parsed["metadata"])
    design["nodes"] = nodes
    design["components"] = simplify_components(parsed["components"])
    design["componentSets"] = simplify_component_sets(parsed["componentSets"])
    design["globalVars"] = global_vars.to_dict()
    return design
