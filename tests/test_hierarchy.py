"""Tests for cascading edits, insert, delete and reorder on a section/task tree."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from models.node import WeightedNode
from engine.hierarchy import (
    children_of,
    descendant_ids,
    target_total_for,
    cascade,
    rescale_tree,
    insert_node,
    delete_node,
    move_node,
)
from engine.weight_allocator import weight_total


def make_node(node_id, weight=0.0, parent_id=None):
    return WeightedNode(id=node_id, natural_key=node_id, name=node_id, weight=weight, parent_id=parent_id)


def make_tree():
    """S1 (60) -> T1 (30) -> T1a (10), T1b (20); S1 -> T2 (30); S2 (40) -> U1 (40)."""
    return [
        make_node("S1", 60),
        make_node("T1", 30, "S1"),
        make_node("T1a", 10, "T1"),
        make_node("T1b", 20, "T1"),
        make_node("T2", 30, "S1"),
        make_node("S2", 40),
        make_node("U1", 40, "S2"),
    ]


def weights(tree):
    return {n.id: n.weight for n in tree}


def assert_consistent(tree, root_total):
    assert abs(weight_total(children_of(tree, None)) - root_total) < 1e-6
    for parent in tree:
        kids = children_of(tree, parent.id)
        if kids:
            assert abs(weight_total(kids) - parent.weight) < 1e-6


class TestHelpers:
    def test_descendants(self):
        assert descendant_ids(make_tree(), "S1") == {"T1", "T1a", "T1b", "T2"}
        assert descendant_ids(make_tree(), "U1") == set()

    def test_target_total(self):
        tree = make_tree()
        by_id = {n.id: n for n in tree}
        assert target_total_for(tree, by_id["S2"], 100) == 100
        assert target_total_for(tree, by_id["T1"], 100) == 60
        assert target_total_for(tree, by_id["T1a"], 100) == 30


class TestCascade:
    def test_section_edit_rescales_all_subtrees(self):
        result = cascade(make_tree(), "S1", 80, 100)
        w = weights(result)

        assert w["S1"] == 80
        assert abs(w["S2"] - 20) < 1e-9
        assert abs(w["T1"] - 40) < 1e-9
        assert abs(w["T2"] - 40) < 1e-9
        assert abs(w["T1a"] - 40 / 3) < 1e-9
        assert abs(w["T1b"] - 80 / 3) < 1e-9
        assert abs(w["U1"] - 20) < 1e-9
        assert_consistent(result, 100)

    def test_task_edit_stays_in_section(self):
        result = cascade(make_tree(), "T1", 45, 100)
        w = weights(result)

        assert w["T1"] == 45
        assert w["T2"] == 15
        assert abs(w["T1a"] - 15) < 1e-9
        assert abs(w["T1b"] - 30) < 1e-9
        assert w["S1"] == 60
        assert w["S2"] == 40
        assert_consistent(result, 100)

    def test_parent_at_zero_zeroes_descendants(self):
        result = cascade(make_tree(), "S1", 0, 100)
        w = weights(result)

        assert w["S1"] == 0
        assert w["T1"] == w["T2"] == w["T1a"] == w["T1b"] == 0
        assert w["S2"] == 100
        assert w["U1"] == 100

    def test_proportions_preserved_below(self):
        result = cascade(make_tree(), "S2", 70, 100)
        w = weights(result)

        # S1 shrinks to 30, T1a:T1b stays 1:2
        assert abs(w["T1b"] / w["T1a"] - 2) < 1e-9
        assert_consistent(result, 100)

    def test_order_preserved(self):
        tree = make_tree()
        result = cascade(tree, "T2", 10, 100)
        assert [n.id for n in result] == [n.id for n in tree]

    def test_unknown_id(self):
        with pytest.raises(KeyError):
            cascade(make_tree(), "nope", 10, 100)


class TestRescaleTree:
    def test_scales_everything(self):
        result = rescale_tree(make_tree(), 200)
        w = weights(result)

        assert abs(w["S1"] - 120) < 1e-9
        assert abs(w["S2"] - 80) < 1e-9
        assert abs(w["T1"] - 60) < 1e-9
        assert abs(w["T1a"] - 20) < 1e-9
        assert abs(w["U1"] - 80) < 1e-9
        assert_consistent(result, 200)

    def test_empty_tree(self):
        assert rescale_tree([], 100) == []


class TestInsertNode:
    def test_below_skips_descendants(self):
        new = make_node("N")
        result = insert_node(make_tree(), new, "below", "T1", 100)

        ids = [n.id for n in result]
        assert ids.index("N") == ids.index("T1b") + 1
        assert next(n for n in result if n.id == "N").parent_id == "S1"

    def test_below_rebalances_group(self):
        result = insert_node(make_tree(), make_node("N"), "below", "T1", 100)
        w = weights(result)

        assert abs(w["N"] - 20) < 1e-9
        assert abs(w["T1"] - 20) < 1e-9
        assert abs(w["T2"] - 20) < 1e-9
        assert abs(w["T1a"] - 20 / 3) < 1e-9
        assert_consistent(result, 100)

    def test_above(self):
        result = insert_node(make_tree(), make_node("N"), "above", "T2", 100)

        ids = [n.id for n in result]
        assert ids.index("N") == ids.index("T2") - 1
        assert next(n for n in result if n.id == "N").parent_id == "S1"

    def test_subtask_goes_after_last_child(self):
        result = insert_node(make_tree(), make_node("N"), "subtask", "T1", 100)

        ids = [n.id for n in result]
        assert ids.index("N") == ids.index("T1b") + 1
        node = next(n for n in result if n.id == "N")
        assert node.parent_id == "T1"
        assert abs(node.weight - 10) < 1e-9
        assert_consistent(result, 100)

    def test_end_appends_root(self):
        result = insert_node(make_tree(), make_node("S3"), "end", None, 100)

        assert result[-1].id == "S3"
        assert result[-1].parent_id is None
        assert abs(result[-1].weight - 100 / 3) < 1e-9
        assert_consistent(result, 100)

    def test_into_empty_tree(self):
        result = insert_node([], make_node("S1"), "end", None, 500)

        assert weights(result) == {"S1": 500.0}

    def test_without_rebalance(self):
        tree = make_tree()
        result = insert_node(tree, make_node("N", 99), "below", "T2", 100, rebalance=False)
        w = weights(result)

        assert w["N"] == 0
        assert w["T1"] == 30
        assert w["T2"] == 30

    def test_unknown_relative(self):
        with pytest.raises(KeyError):
            insert_node(make_tree(), make_node("N"), "above", "nope", 100)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            insert_node(make_tree(), make_node("N"), "sideways", "T1", 100)


class TestDeleteNode:
    def test_removes_descendants(self):
        result = delete_node(make_tree(), "T1", 100)

        ids = {n.id for n in result}
        assert ids == {"S1", "T2", "S2", "U1"}
        assert weights(result)["T2"] == 60

    def test_section_weight_goes_back_to_siblings(self):
        result = delete_node(make_tree(), "S2", 100)
        w = weights(result)

        assert "U1" not in w
        assert w["S1"] == 100
        assert w["T1"] == 50
        assert w["T2"] == 50
        assert_consistent(result, 100)

    def test_last_child(self):
        result = delete_node(make_tree(), "U1", 100)
        assert weights(result)["S2"] == 40

    def test_unknown_id(self):
        with pytest.raises(KeyError):
            delete_node(make_tree(), "nope", 100)


class TestMoveNode:
    def test_reorder(self):
        tree = [make_node("A"), make_node("B"), make_node("C")]
        assert [n.id for n in move_node(tree, 0, 2)] == ["B", "C", "A"]
        assert [n.id for n in move_node(tree, 2, 0)] == ["C", "A", "B"]

    def test_input_untouched(self):
        tree = [make_node("A"), make_node("B")]
        move_node(tree, 0, 1)
        assert [n.id for n in tree] == ["A", "B"]


if __name__ == "__main__":
    import pytest
    pytest.main([__file__, "-v"])
