"""Tests for scope weight normalization and the standard presets."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from models.node import WeightedNode
from models.project_type import ProjectType
from engine.scope_normalizer import (
    normalize,
    toggle_node,
    edit_scope_weight,
    active_set_for,
    apply_standard_activation,
    apply_standard_weights,
)
from engine.template_sync import master_base_weights
from engine.weight_allocator import weight_total
from engine.explainer import explain_normalization
from config.defaults import STANDARD_WEIGHTS


def make_stage(code, weight=0.0, enabled=True, position=1):
    return WeightedNode(id=f"id-{code}", natural_key=code, name=code,
                        weight=weight, enabled=enabled, position=position)


def make_master():
    return [make_stage(code, w, position=i + 1) for i, (code, w) in enumerate(STANDARD_WEIGHTS.items())]


def make_scope(enabled_codes):
    return [
        make_stage(code, 0.0, enabled=code in enabled_codes, position=i + 1)
        for i, code in enumerate(STANDARD_WEIGHTS)
    ]


def weights(nodes):
    return {n.natural_key: n.weight for n in nodes}


class TestNormalize:
    def test_design_scope(self):
        bases = master_base_weights(make_master())
        result = normalize(make_scope({"KO", "SD", "DD", "ED", "HO"}), bases)
        w = weights(result)

        assert abs(w["KO"] - 8) < 1e-9
        assert abs(w["SD"] - 20) < 1e-9
        assert abs(w["DD"] - 28) < 1e-9
        assert abs(w["ED"] - 36) < 1e-9
        assert abs(w["HO"] - 8) < 1e-9
        assert w["PC"] == 0
        assert w["CN"] == 0

    def test_enabled_sum_is_total(self):
        bases = master_base_weights(make_master())
        for enabled in ({"KO"}, {"PC", "CN"}, set(STANDARD_WEIGHTS)):
            result = normalize(make_scope(enabled), bases)
            assert abs(weight_total(result) - 100) < 1e-9

    def test_zero_bases_equal_split(self):
        bases = {"KO": 0, "SD": 0, "DD": 0}
        nodes = [make_stage("KO"), make_stage("SD"), make_stage("DD", enabled=False)]
        w = weights(normalize(nodes, bases))

        assert w["KO"] == 50
        assert w["SD"] == 50
        assert w["DD"] == 0

    def test_missing_base_counts_as_zero(self):
        bases = {"KO": 10}
        w = weights(normalize([make_stage("KO"), make_stage("NEW")], bases))

        assert w["KO"] == 100
        assert w["NEW"] == 0

    def test_nothing_enabled(self):
        bases = master_base_weights(make_master())
        result = normalize(make_scope(set()), bases)
        assert all(n.weight == 0 for n in result)

    def test_explanation(self):
        bases = master_base_weights(make_master())
        result = normalize(make_scope({"KO", "SD"}), bases)
        steps = explain_normalization(result, bases)

        assert "KO, SD" in steps[0]
        assert len(steps) == 3


class TestToggleNode:
    def test_enabling_renormalizes_and_renumbers(self):
        bases = master_base_weights(make_master())
        scope = normalize(make_scope({"KO", "SD", "DD", "ED", "HO"}), bases)
        result = toggle_node(scope, "id-PC", bases)
        by_key = {n.natural_key: n for n in result}

        assert by_key["PC"].enabled
        assert abs(by_key["KO"].weight - 5 / 75 * 100) < 1e-9
        assert abs(weight_total(result) - 100) < 1e-9
        assert by_key["PC"].code == "05-PC"
        assert by_key["CN"].code == "00-CN"
        assert by_key["HO"].code == "06-HO"

    def test_disabling(self):
        bases = master_base_weights(make_master())
        scope = normalize(make_scope({"KO", "SD"}), bases)
        result = toggle_node(scope, "id-SD", bases)

        assert weights(result)["KO"] == 100
        assert weights(result)["SD"] == 0

    def test_unknown_id(self):
        with pytest.raises(KeyError):
            toggle_node(make_scope({"KO"}), "nope", {})


class TestEditScopeWeight:
    def test_only_enabled_absorb(self):
        bases = master_base_weights(make_master())
        scope = normalize(make_scope({"KO", "SD", "DD", "ED", "HO"}), bases)
        result = edit_scope_weight(scope, "id-KO", 20)
        w = weights(result)

        assert w["KO"] == 20
        assert w["PC"] == 0
        assert w["CN"] == 0
        assert abs(weight_total(result) - 100) < 1e-9

    def test_disabled_is_noop(self):
        bases = master_base_weights(make_master())
        scope = normalize(make_scope({"KO", "SD"}), bases)
        assert edit_scope_weight(scope, "id-CN", 40) == scope

    def test_out_of_range_is_noop(self):
        bases = master_base_weights(make_master())
        scope = normalize(make_scope({"KO", "SD"}), bases)
        assert edit_scope_weight(scope, "id-KO", 120) == scope
        assert edit_scope_weight(scope, "id-KO", -1) == scope


class TestStandardPresets:
    def test_active_set_by_code(self):
        assert active_set_for(ProjectType("bld", "BLD", "Build Only")) == ["KO", "PC", "CN", "HO"]
        assert active_set_for(ProjectType("dsn", "DSN", "Design Only")) == ["KO", "SD", "DD", "ED", "HO"]

    def test_active_set_by_name(self):
        assert active_set_for(ProjectType("int", "INT", "Interior Design")) == ["KO", "SD", "DD", "ED", "HO"]
        assert len(active_set_for(ProjectType("x", "X", "Turnkey"))) == 7

    def test_apply_standard_activation(self):
        bases = master_base_weights(make_master())
        scope = make_scope(set(STANDARD_WEIGHTS))
        result = apply_standard_activation(scope, ProjectType("bld", "BLD", "Build Only"), bases)

        enabled = [n.natural_key for n in result if n.enabled]
        assert enabled == ["KO", "PC", "CN", "HO"]
        assert abs(weight_total(result) - 100) < 1e-9
        assert abs(weights(result)["CN"] - 25 / 47.5 * 100) < 1e-9

    def test_apply_standard_weights(self):
        stages = [make_stage("KO", 50), make_stage("SD", 50), make_stage("ZZ", 10)]
        w = weights(apply_standard_weights(stages))

        assert w == {"KO": 5.0, "SD": 12.5, "ZZ": 0.0}


if __name__ == "__main__":
    import pytest
    pytest.main([__file__, "-v"])
