"""Tests for the store-backed sync service: load, reset, save, failure reload."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from models.node import WeightedNode
from models.project_type import ProjectType
from data.store import InMemoryTemplateStore
from data.errors import RecordNotFound, StoreError
from data.sync_service import ScopeSyncService, kind_of, split_by_kind, TREE_KINDS
from data.sample_data import seed_store, task_scope_key
from engine.weight_allocator import weight_total


def make_stage(code, weight=0.0, enabled=True, position=1, node_id=None):
    return WeightedNode(id=node_id or code, natural_key=code, name=code,
                        weight=weight, enabled=enabled, position=position)


def make_store(derived=None, fail_on=None):
    """Master "m" with KO 50 / SD 30 / DD 20, derived scope "d"."""
    store = InMemoryTemplateStore()
    for i, (code, w) in enumerate([("KO", 50), ("SD", 30), ("DD", 20)]):
        store.create("stage", "m", make_stage(code, w, position=i + 1))
    for node in derived or []:
        store.create("stage", "d", node)
    store.fail_on = set(fail_on or [])
    return store


def make_derived():
    return [
        make_stage("KO", 0, True, 1, "d-ko"),
        make_stage("SD", 0, True, 2, "d-sd"),
        make_stage("XX", 40, True, 3, "d-xx"),
    ]


class TestInMemoryStore:
    def test_list_sorted_by_position(self):
        store = InMemoryTemplateStore()
        store.create("stage", "s", make_stage("B", position=2))
        store.create("stage", "s", make_stage("A", position=1))
        assert [n.natural_key for n in store.list("stage", "s")] == ["A", "B"]

    def test_create_assigns_id_on_clash(self):
        store = InMemoryTemplateStore()
        store.create("stage", "s", make_stage("A", node_id="x"))
        second = store.create("stage", "s", make_stage("B", node_id="x"))
        assert second.id != "x"

    def test_returns_copies(self):
        store = make_store()
        store.list("stage", "m")[0].weight = 99
        assert store.list("stage", "m")[0].weight == 50

    def test_update_unknown_record(self):
        with pytest.raises(RecordNotFound):
            make_store().update("stage", "nope", "m", {"weight": 1})

    def test_update_unknown_field(self):
        with pytest.raises(StoreError):
            make_store().update("stage", "KO", "m", {"colour": "red"})

    def test_unknown_kind(self):
        with pytest.raises(StoreError):
            InMemoryTemplateStore().list("phase", "m")

    def test_bulk_update_rewrites_positions(self):
        store = make_store()
        nodes = list(reversed(store.list("stage", "m")))
        assert store.bulk_update("stage", "m", nodes)
        assert [(n.natural_key, n.position) for n in store.list("stage", "m")] == [
            ("DD", 1), ("SD", 2), ("KO", 3)]


class TestLoadScope:
    def test_sync_and_normalize(self):
        store = make_store(make_derived())
        loaded = ScopeSyncService(store).load_scope("stage", "d", "m")

        assert loaded.ok
        by_key = {n.natural_key: n for n in loaded.nodes}
        assert set(by_key) == {"KO", "SD", "DD"}
        assert by_key["DD"].enabled is False
        assert abs(by_key["KO"].weight - 62.5) < 1e-9
        assert abs(by_key["SD"].weight - 37.5) < 1e-9
        assert by_key["DD"].weight == 0
        assert [n.code for n in loaded.nodes] == ["01-KO", "02-SD", "00-DD"]

        stored = {n.natural_key for n in store.list("stage", "d")}
        assert stored == {"KO", "SD", "DD"}
        assert [n.natural_key for n in loaded.sync.deleted] == ["XX"]

    def test_base_weights_from_master(self):
        loaded = ScopeSyncService(make_store(make_derived())).load_scope("stage", "d", "m")
        assert loaded.base_weights == {"KO": 50.0, "SD": 30.0, "DD": 20.0}

    def test_master_scope_not_normalized(self):
        store = InMemoryTemplateStore()
        store.create("stage", "m", make_stage("KO", 50, position=1))
        store.create("stage", "m", make_stage("SD", 30, position=2))
        loaded = ScopeSyncService(store).load_scope("stage", "m", "m")

        assert [n.weight for n in loaded.nodes] == [50, 30]
        assert [n.code for n in loaded.nodes] == ["01-KO", "02-SD"]
        assert loaded.sync is None

    def test_empty_scope_gets_every_stage_disabled(self):
        store = make_store()
        loaded = ScopeSyncService(store).load_scope("stage", "d", "m")

        assert len(store.list("stage", "d")) == 3
        assert all(not n.enabled for n in loaded.nodes)
        assert all(n.code.startswith("00-") for n in loaded.nodes)

    def test_new_items_enabled_option(self):
        service = ScopeSyncService(make_store(), new_enabled=True)
        loaded = service.load_scope("stage", "d", "m")

        assert all(n.enabled for n in loaded.nodes)
        assert abs(weight_total(loaded.nodes) - 100) < 1e-9

    def test_second_load_has_no_changes(self):
        service = ScopeSyncService(make_store(make_derived()))
        service.load_scope("stage", "d", "m")
        again = service.load_scope("stage", "d", "m")

        assert again.ok
        assert not again.sync.created
        assert not again.sync.deleted

    def test_guard_makes_reentry_a_noop(self):
        store = make_store(make_derived())
        service = ScopeSyncService(store)
        service.guard.acquire("d")

        assert service.load_scope("stage", "d", "m") is None
        assert {n.natural_key for n in store.list("stage", "d")} == {"KO", "SD", "XX"}

        service.guard.release("d")
        assert service.load_scope("stage", "d", "m") is not None

    def test_failed_store_call_reloads(self):
        store = make_store(make_derived(), fail_on={"d-xx"})
        loaded = ScopeSyncService(store).load_scope("stage", "d", "m")

        assert not loaded.ok
        assert "reloaded" in loaded.message
        keys = {n.natural_key for n in loaded.nodes}
        assert "XX" in keys
        assert keys == {n.natural_key for n in store.list("stage", "d")}

        by_key = {n.natural_key: n for n in loaded.nodes}
        assert by_key["DD"].enabled is False
        assert by_key["DD"].weight == 0
        assert by_key["DD"].code == "00-DD"
        assert abs(by_key["KO"].weight - 62.5) < 1e-9
        assert all(n.code for n in loaded.nodes)

    def test_key_spelling_taken_from_master(self):
        derived = [make_stage("ko", 0, True, 1, "d-ko"), make_stage("SD", 0, True, 2, "d-sd")]
        store = make_store(derived)
        loaded = ScopeSyncService(store).load_scope("stage", "d", "m")

        by_key = {n.natural_key: n for n in loaded.nodes}
        assert set(by_key) == {"KO", "SD", "DD"}
        assert abs(by_key["KO"].weight - 62.5) < 1e-9
        assert abs(by_key["SD"].weight - 37.5) < 1e-9
        assert loaded.sync.deleted == []
        stored = next(n for n in store.list("stage", "d") if n.id == "d-ko")
        assert stored.natural_key == "KO"


class TestResetScope:
    def test_standard_activation(self):
        store = seed_store()
        service = ScopeSyncService(store)
        build_only = next(t for t in store.list_project_types() if t.code == "BLD")

        reset = service.reset_scope("stage", "bld", "dnb", build_only)

        enabled = [n.abbr for n in reset.nodes if n.enabled]
        assert enabled == ["KO", "PC", "CN", "HO"]
        assert abs(weight_total(reset.nodes) - 100) < 1e-9
        # Not saved until the user saves
        assert not any(n.enabled for n in store.list("stage", "bld"))


class TestSave:
    def test_save_nodes_rounds_weights(self):
        store = make_store(make_derived())
        service = ScopeSyncService(store)
        loaded = service.load_scope("stage", "d", "m")
        nodes = [n.with_weight(100 / 3) if n.enabled else n for n in loaded.nodes]

        outcome = service.save_nodes("stage", "d", nodes)

        assert outcome.ok
        stored = {n.natural_key: n for n in store.list("stage", "d")}
        assert stored["KO"].weight == 33.33
        assert stored["KO"].code == "01-KO"

    def test_partial_failure_reloads(self):
        store = make_store(make_derived())
        service = ScopeSyncService(store)
        loaded = service.load_scope("stage", "d", "m")
        store.fail_on = {"d-sd"}
        nodes = [n.with_weight(12.0) for n in loaded.nodes]

        outcome = service.save_nodes("stage", "d", nodes)

        assert not outcome.ok
        assert outcome.failed_ids == ["d-sd"]
        stored = {n.natural_key: n for n in outcome.nodes}
        assert stored["KO"].weight == 12.0
        assert stored["SD"].weight == 0

    def test_replace_tree_rejected(self):
        store = make_store(fail_on={"KO"})
        outcome = ScopeSyncService(store).replace_tree("stage", "m", store.list("stage", "m"))

        assert not outcome.ok
        assert [n.weight for n in outcome.nodes] == [50, 30, 20]


class TestStageTrees:
    def test_kind_of(self):
        section = WeightedNode(id="s", natural_key="KO-01")
        task = WeightedNode(id="t", natural_key="t", parent_id="s")
        assert kind_of(section, TREE_KINDS) == "section"
        assert kind_of(task, TREE_KINDS) == "task"
        assert kind_of(task, ("stage",)) == "stage"
        assert [len(v) for v in split_by_kind([section, task], TREE_KINDS).values()] == [1, 1]

    def test_load_tree_links_tasks_to_own_sections(self):
        store = seed_store()
        service = ScopeSyncService(store)
        loaded = service.load_tree(task_scope_key("dsn", "KO"), task_scope_key("dnb", "KO"))

        assert loaded.ok
        sections = store.list("section", "dsn/KO")
        tasks = store.list("task", "dsn/KO")
        assert len(sections) == 8
        assert len(tasks) == 27
        section_ids = {s.id for s in sections}
        assert all(t.parent_id in section_ids for t in tasks)
        # Derived records get their own ids
        assert not section_ids & {s.id for s in store.list("section", "dnb/KO")}

    def test_save_tree_splits_kinds(self):
        store = seed_store()
        service = ScopeSyncService(store)
        tree = service.load_tree("dnb/KO", "dnb/KO").nodes
        first_section = tree[0]
        tree = [n.with_weight(n.weight + 1) if n.id == first_section.id else n for n in tree]

        outcome = service.save_tree("dnb/KO", tree)

        assert outcome.ok
        assert len(store.list("section", "dnb/KO")) == 8
        assert len(store.list("task", "dnb/KO")) == 27
        stored = next(s for s in store.list("section", "dnb/KO") if s.id == first_section.id)
        assert stored.weight == first_section.weight + 1


if __name__ == "__main__":
    import pytest
    pytest.main([__file__, "-v"])
