"""Tests for sibling weight redistribution."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from models.node import WeightedNode
from engine.weight_allocator import (
    weight_total,
    is_weight_valid,
    clamp_weight,
    distribute_remaining,
    redistribute,
    rebalance_with_new,
)
from engine.explainer import explain_redistribution


def make_node(node_id="A", weight=0.0, parent_id=None, enabled=True):
    return WeightedNode(id=node_id, natural_key=node_id, name=f"Item {node_id}",
                        weight=weight, parent_id=parent_id, enabled=enabled)


def weights(nodes):
    return {n.id: n.weight for n in nodes}


class TestDistributeRemaining:
    def test_proportional_scaling(self):
        nodes = [make_node("A", 20), make_node("B", 30), make_node("C", 50)]
        result = distribute_remaining(nodes, 50)

        w = weights(result)
        assert abs(w["A"] - 10) < 1e-9
        assert abs(w["B"] - 15) < 1e-9
        assert abs(w["C"] - 25) < 1e-9

    def test_zero_siblings_split_equally(self):
        nodes = [make_node("A", 0), make_node("B", 0)]
        result = distribute_remaining(nodes, 10)

        assert weights(result) == {"A": 5.0, "B": 5.0}

    def test_last_item_takes_remainder(self):
        nodes = [make_node("A", 1), make_node("B", 1), make_node("C", 1)]
        result = distribute_remaining(nodes, 100)

        assert abs(weight_total(result) - 100) < 1e-9
        assert abs(result[-1].weight - (100 - result[0].weight - result[1].weight)) < 1e-9

    def test_negative_target_becomes_zero(self):
        nodes = [make_node("A", 5), make_node("B", 5)]
        result = distribute_remaining(nodes, -3)

        assert all(n.weight == 0 for n in result)

    def test_empty_group(self):
        assert distribute_remaining([], 100) == []

    def test_input_not_mutated(self):
        nodes = [make_node("A", 20), make_node("B", 80)]
        distribute_remaining(nodes, 50)

        assert weights(nodes) == {"A": 20, "B": 80}


class TestRedistribute:
    def test_edit_rebalances_siblings(self):
        nodes = [make_node("A", 20), make_node("B", 30), make_node("C", 50)]
        result = redistribute(nodes, "A", 10, 100)

        w = weights(result)
        assert w["A"] == 10
        assert abs(w["B"] - 33.75) < 1e-9
        assert abs(w["C"] - 56.25) < 1e-9

    def test_sum_invariant(self):
        nodes = [make_node("A", 12.5), make_node("B", 17.5), make_node("C", 22.5), make_node("D", 47.5)]
        for new in (0, 3.3, 33.333, 99.99, 100):
            result = redistribute(nodes, "B", new, 100)
            assert abs(weight_total(result) - 100) < 1e-6
            assert all(n.weight >= 0 for n in result)

    def test_order_preserved(self):
        nodes = [make_node("A", 20), make_node("B", 30), make_node("C", 50)]
        result = redistribute(nodes, "C", 10, 100)

        assert [n.id for n in result] == ["A", "B", "C"]

    def test_value_clamped_to_total(self):
        nodes = [make_node("A", 50), make_node("B", 50)]
        result = redistribute(nodes, "A", 150, 100)

        assert weights(result) == {"A": 100.0, "B": 0.0}

    def test_negative_value_clamped_to_zero(self):
        nodes = [make_node("A", 50), make_node("B", 50)]
        result = redistribute(nodes, "A", -5, 100)

        assert weights(result) == {"A": 0.0, "B": 100.0}

    def test_single_item_takes_total(self):
        result = redistribute([make_node("A", 10)], "A", 40, 100)

        assert result[0].weight == 100

    def test_zero_siblings_equal_split(self):
        nodes = [make_node("A", 100), make_node("B", 0), make_node("C", 0)]
        result = redistribute(nodes, "A", 40, 100)

        w = weights(result)
        assert w["B"] == 30
        assert w["C"] == 30

    def test_unknown_id(self):
        with pytest.raises(KeyError):
            redistribute([make_node("A", 100)], "Z", 10, 100)

    def test_custom_group_total(self):
        nodes = [make_node("A", 30, "S"), make_node("B", 30, "S")]
        result = redistribute(nodes, "A", 45, 60)

        assert weights(result) == {"A": 45.0, "B": 15.0}


class TestRebalanceWithNew:
    def test_new_item_gets_equal_share(self):
        nodes = [make_node("A", 50), make_node("B", 50), make_node("N", 0)]
        result = rebalance_with_new(nodes, "N", 100)

        w = weights(result)
        assert abs(w["N"] - 100 / 3) < 1e-9
        assert abs(w["A"] - w["B"]) < 1e-9
        assert abs(weight_total(result) - 100) < 1e-9

    def test_unknown_new_id(self):
        with pytest.raises(KeyError):
            rebalance_with_new([make_node("A", 100)], "N", 100)


class TestValidity:
    def test_within_tolerance(self):
        assert is_weight_valid([make_node("A", 60), make_node("B", 39.95)], 100, 0.1)

    def test_outside_tolerance(self):
        assert not is_weight_valid([make_node("A", 60), make_node("B", 39.8)], 100, 0.1)

    def test_clamp(self):
        assert clamp_weight(120, 100) == 100
        assert clamp_weight(-1, 100) == 0
        assert clamp_weight(42, 100) == 42


class TestExplainRedistribution:
    def test_steps_cover_each_sibling(self):
        before = [make_node("A", 20), make_node("B", 30), make_node("C", 50)]
        after = redistribute(before, "A", 10, 100)
        steps = explain_redistribution(before, after, "A", 10, 100)

        assert steps[0].startswith("Step 1")
        assert any("Item B" in s for s in steps)
        assert "Last item lock" in steps[-1]
        assert "56.25" in steps[-1]

    def test_clamp_is_noted(self):
        before = [make_node("A", 50), make_node("B", 50)]
        after = redistribute(before, "A", 150, 100)
        steps = explain_redistribution(before, after, "A", 150, 100)

        assert any(s.startswith("Note") for s in steps)


if __name__ == "__main__":
    import pytest
    pytest.main([__file__, "-v"])
