"""Shared pytest fixtures for the Figma simplifier tests."""

import pytest


def solid(r=0.0, g=0.0, b=0.0, a=1.0, opacity=None, visible=True):
    paint = {"type": "SOLID", "visible": visible, "color": {"r": r, "g": g, "b": b, "a": a}}
    if opacity is not None:
        paint["opacity"] = opacity
    return paint


def frame(node_id, children=None, **fields):
    node = {
        "id": node_id,
        "name": f"Frame {node_id}",
        "type": "FRAME",
        "clipsContent": False,
        "absoluteBoundingBox": {"x": 0, "y": 0, "width": 100, "height": 100},
        "children": children or [],
    }
    node.update(fields)
    return node


def rectangle(node_id, **fields):
    node = {
        "id": node_id,
        "name": f"Rect {node_id}",
        "type": "RECTANGLE",
        "absoluteBoundingBox": {"x": 0, "y": 0, "width": 10, "height": 10},
    }
    node.update(fields)
    return node


def chain(depth, prefix="n"):
    """A single path of frames ``depth`` levels deep below the root."""
    node = rectangle(f"{prefix}{depth}", fills=[solid(r=depth / 10)])
    for level in range(depth - 1, -1, -1):
        node = frame(f"{prefix}{level}", children=[node], fills=[solid(g=level / 10)])
    return node


@pytest.fixture
def text_node():
    return {
        "id": "2:1",
        "name": "Title",
        "type": "TEXT",
        "characters": "Hello world",
        "absoluteBoundingBox": {"x": 10, "y": 10, "width": 120, "height": 24},
        "style": {
            "fontFamily": "Inter",
            "fontWeight": 600,
            "fontSize": 16,
            "lineHeightPx": 24,
            "letterSpacing": 0.32,
            "textAlignHorizontal": "LEFT",
            "textAlignVertical": "TOP",
        },
        "fills": [solid()],
    }


@pytest.fixture
def file_response(text_node):
    page = {
        "id": "0:1",
        "name": "Page 1",
        "type": "CANVAS",
        "children": [
            frame("1:1", children=[text_node], fills=[solid(r=1)]),
            frame("1:2", fills=[solid(r=1)]),
        ],
    }
    hidden_page = {"id": "0:2", "name": "Hidden", "type": "CANVAS", "visible": False, "children": []}
    return {
        "name": "Landing page",
        "lastModified": "2024-05-01T10:00:00Z",
        "thumbnailUrl": "https://example.com/thumb.png",
        "document": {"id": "0:0", "type": "DOCUMENT", "children": [page, hidden_page]},
        "components": {
            "3:1": {"key": "abc", "name": "Button", "componentSetId": "3:0", "description": ""},
        },
        "componentSets": {
            "3:0": {"key": "set", "name": "Buttons", "description": "All buttons"},
        },
    }


@pytest.fixture
def nodes_response(text_node):
    return {
        "name": "Landing page",
        "lastModified": "2024-05-01T10:00:00Z",
        "nodes": {
            "1:1": {
                "document": frame("1:1", children=[text_node]),
                "components": {"3:1": {"key": "abc", "name": "Button"}},
                "componentSets": {},
            },
            "1:2": {
                "document": frame("1:2"),
                "components": {"3:2": {"key": "def", "name": "Icon"}},
                "componentSets": {"3:0": {"key": "set", "name": "Buttons"}},
            },
        },
    }
