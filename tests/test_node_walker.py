"""Tests for the single-pass tree walk."""

from collections import Counter

import pytest

from conftest import chain, frame, rectangle
from extractors import ALL_EXTRACTORS, GlobalVars
from node_walker import extract_from_design


def depth_of(node, level=0):
    children = node.get("children") or []
    return max([depth_of(child, level + 1) for child in children], default=level)


def ids(nodes):
    found = []
    for node in nodes:
        found.append(node["id"])
        found.extend(ids(node.get("children") or []))
    return found


class TestDepthLimit:
    def test_unlimited_visits_whole_chain(self):
        nodes, _ = extract_from_design([chain(3)], ALL_EXTRACTORS)
        assert ids(nodes) == ["n0", "n1", "n2", "n3"]
        assert depth_of(nodes[0]) == 3

    def test_max_depth_limits_descent(self):
        nodes, global_vars = extract_from_design([chain(3)], ALL_EXTRACTORS, max_depth=1)
        assert ids(nodes) == ["n0", "n1"]
        assert depth_of(nodes[0]) == 1
        fills = [key for key in global_vars.styles if key.startswith("fill_")]
        assert len(fills) == 2

    def test_zero_depth_keeps_only_roots(self):
        nodes, _ = extract_from_design([chain(2), chain(2, prefix="m")], ALL_EXTRACTORS, max_depth=0)
        assert [node["id"] for node in nodes] == ["n0", "m0"]
        assert all("children" not in node for node in nodes)

    def test_negative_depth_rejected(self):
        with pytest.raises(ValueError):
            extract_from_design([chain(1)], ALL_EXTRACTORS, max_depth=-1)


class TestFiltering:
    def test_rejected_node_drops_its_subtree(self):
        root = frame("root", children=[chain(2, prefix="a"), chain(2, prefix="b")])
        nodes, _ = extract_from_design([root], ALL_EXTRACTORS, node_filter=lambda n: n["id"] != "a1")
        assert ids(nodes) == ["root", "a0", "b0", "b1", "b2"]

    def test_hidden_nodes_dropped(self):
        root = frame("root", children=[rectangle("shown"), rectangle("hidden", visible=False)])
        nodes, _ = extract_from_design([root], ALL_EXTRACTORS)
        assert ids(nodes) == ["root", "shown"]

    def test_rejected_root_yields_nothing(self):
        nodes, global_vars = extract_from_design([chain(2)], ALL_EXTRACTORS, node_filter=lambda n: False)
        assert nodes == []
        assert len(global_vars) == 0


class TestVisiting:
    def test_each_extractor_sees_each_node_once(self):
        visits = Counter()

        def first(node, result, context):
            visits[("first", node["id"])] += 1

        def second(node, result, context):
            visits[("second", node["id"])] += 1

        extract_from_design([chain(3)], [first, second])
        assert len(visits) == 8
        assert set(visits.values()) == {1}

    def test_pre_order_document_order(self):
        root = frame("r", children=[frame("a", children=[rectangle("a1")]), rectangle("b")])
        order = []
        extract_from_design([root], [lambda node, result, context: order.append(node["id"])])
        assert order == ["r", "a", "a1", "b"]

    def test_context_tracks_depth_and_parent(self):
        seen = {}

        def record(node, result, context):
            parent_id = context.parent["id"] if context.parent else None
            seen[node["id"]] = (context.current_depth, parent_id)

        extract_from_design([chain(2)], [record])
        assert seen == {"n0": (0, None), "n1": (1, "n0"), "n2": (2, "n1")}

    def test_vector_reported_as_svg(self):
        nodes, _ = extract_from_design([{"id": "v", "name": "Icon", "type": "VECTOR"}], [])
        assert nodes == [{"id": "v", "name": "Icon", "type": "IMAGE-SVG"}]

    def test_registry_can_be_shared(self):
        global_vars = GlobalVars()
        _, first = extract_from_design([chain(1)], ALL_EXTRACTORS, global_vars=global_vars)
        _, second = extract_from_design([chain(1, prefix="m")], ALL_EXTRACTORS, global_vars=global_vars)
        assert first is second is global_vars
