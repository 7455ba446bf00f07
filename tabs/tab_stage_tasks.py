"""Tab 3: Stage Tasks - sections and the task tree of one stage."""

import uuid
from typing import Dict, List

import pandas as pd
import streamlit as st

from data.session_store import (
    get_service, get_task_tree, set_task_tree, get_master_stages, mark_dirty, is_dirty,
    add_audit_entry, get_rule_config,
)
from data.sample_data import task_scope_key
from models.node import WeightedNode
from engine.hierarchy import (
    cascade, rescale_tree, insert_node, delete_node, move_node, children_of, target_total_for,
)
from engine.renumber import renumber
from engine.weight_allocator import weight_total, is_weight_valid
from engine.explainer import explain_redistribution
from components.charts import sibling_weight_bar
from components.metrics_cards import render_metric_row, render_alert_card
from components.tables import render_change_table, render_styled_table, change_df
from config.defaults import INSERT_MODES, SECTION_TOTAL_DEFAULT

INSERT_LABELS = {
    "end": "New section at the end",
    "above": "Above the selected item",
    "below": "Below the selected item",
    "subtask": "Inside the selected item (last child)",
}


def _dirty_key(tree_key: str) -> str:
    return f"tasks:{tree_key}"


def _depths(tree: List[WeightedNode]) -> Dict[str, int]:
    by_id = {n.id: n for n in tree}
    depths: Dict[str, int] = {}
    for n in tree:
        depth, current, seen = 0, n, set()
        while current.parent_id in by_id and current.id not in seen:
            seen.add(current.id)
            current = by_id[current.parent_id]
            depth += 1
        depths[n.id] = depth
    return depths


def _root_total(tree: List[WeightedNode], stage_weight: float) -> float:
    """Sections keep their stored total; an empty sheet starts from the stage weight (x100)."""
    roots = children_of(tree, None)
    total = weight_total(roots)
    if total > 0:
        return total
    if stage_weight > 0:
        return stage_weight * 100
    return get_rule_config().get("section_total_default", SECTION_TOTAL_DEFAULT)


def _invalid_groups(tree: List[WeightedNode], tolerance: float) -> List[WeightedNode]:
    """Parents whose children do not add up to the parent's weight."""
    bad = []
    for parent in tree:
        kids = children_of(tree, parent.id)
        if kids and not is_weight_valid(kids, parent.weight, tolerance):
            bad.append(parent)
    return bad


def _label(tree: List[WeightedNode]):
    by_id = {n.id: n for n in tree}
    return lambda i: f"{by_id[i].code}  {by_id[i].name}"


def _set(tree_key: str, tree: List[WeightedNode], prefix: str):
    set_task_tree(tree_key, renumber(tree, prefix=prefix))
    mark_dirty(_dirty_key(tree_key))


def render(sidebar_state):
    """Render the Stage Tasks tab."""
    st.header("Stage Tasks")

    project_type = sidebar_state.project_type
    master = sidebar_state.master_type
    stage_code = sidebar_state.stage_code
    if project_type is None or master is None or not stage_code:
        st.info("Select a project type and a stage in the sidebar.")
        return

    tree_key = task_scope_key(project_type.id, stage_code)
    master_key = task_scope_key(master.id, stage_code)
    is_master = sidebar_state.is_master

    tree = get_task_tree(tree_key)
    if tree is None:
        loaded = get_service().load_tree(tree_key, master_key)
        if loaded is None:
            st.info("A sync for this stage is already running. Try again in a moment.")
            return
        if not loaded.ok:
            st.error(loaded.message)
        elif loaded.sync is not None and loaded.sync.has_changes:
            st.info(
                f"Synced with the master: {len(loaded.sync.created)} added, "
                f"{len(loaded.sync.updated)} updated, {len(loaded.sync.deleted)} removed."
            )
        tree = renumber(loaded.nodes, prefix=stage_code)
        set_task_tree(tree_key, tree)

    master_stages = get_master_stages() or get_service().store.list("stage", master.scope_key)
    stage = next((s for s in master_stages if s.abbr == stage_code), None)
    stage_weight = stage.weight if stage else 0.0
    root_total = _root_total(tree, stage_weight)

    config = get_rule_config()
    tolerance = config.get("save_tolerance", 0.1)

    st.caption(
        f"{stage.name if stage else stage_code} for **{project_type.name}**. Section weights are x100 "
        f"(500 = 5.00% of the project); tasks split their section's weight."
    )
    if not is_master:
        st.caption("Structure is owned by the master; here you can only tune weights.")

    sections = children_of(tree, None)
    invalid = _invalid_groups(tree, tolerance)
    render_metric_row([
        {"label": "Sections", "value": len(sections)},
        {"label": "Tasks", "value": len(tree) - len(sections)},
        {"label": "Section Total", "value": f"{weight_total(sections):.2f}"},
        {"label": "Stage Weight x100", "value": f"{stage_weight * 100:.2f}"},
    ])
    for parent in invalid:
        render_alert_card(
            f"{parent.code}: children add up to {weight_total(children_of(tree, parent.id)):.2f}, "
            f"expected {parent.weight:.2f}.",
            level="error",
        )

    # --- Tree view ---
    depths = _depths(tree)
    if tree:
        view_df = pd.DataFrame([{
            "Code": n.code,
            "Name": ("    " * depths[n.id]) + n.name,
            "Weight": round(n.weight, 4),
            "Share of Parent": f"{(n.weight / target_total_for(tree, n, root_total)):.1%}"
            if target_total_for(tree, n, root_total) else "0.0%",
        } for n in tree])
        render_styled_table(view_df, title="Tree", height=min(600, 38 + 35 * len(tree)))
    else:
        st.info("No sections yet for this stage.")

    label = _label(tree)

    # --- Weight edit with cascade ---
    if tree:
        st.subheader("Edit Weight")
        st.caption("Siblings absorb the change proportionally and every subtree below is rescaled.")
        col1, col2, col3 = st.columns([3, 2, 1])
        with col1:
            edit_id = st.selectbox("Item", [n.id for n in tree], format_func=label,
                                   key=f"task_edit_item_{tree_key}")
        current = next(n for n in tree if n.id == edit_id)
        group_total = target_total_for(tree, current, root_total)
        with col2:
            new_weight = st.number_input(
                f"Weight (of {group_total:.2f})", min_value=0.0, max_value=float(group_total),
                value=float(round(current.weight, 4)), step=1.0,
                key=f"task_edit_value_{tree_key}_{edit_id}",
            )
        with col3:
            st.write("")
            if st.button("Apply", type="primary", key=f"btn_task_edit_{tree_key}"):
                before = children_of(tree, current.parent_id)
                updated = cascade(tree, edit_id, new_weight, root_total)
                after = children_of(updated, current.parent_id)
                st.session_state["tasks_last_edit"] = (before, after, edit_id, new_weight, group_total)
                _set(tree_key, updated, stage_code)
                add_audit_entry("weight_edit", tree_key, "weight", f"{current.weight:.2f}",
                                f"{new_weight:.2f}", node_key=current.natural_key)
                st.rerun()

        last_edit = st.session_state.get("tasks_last_edit")
        if last_edit and any(n.id == last_edit[2] for n in tree):
            before, after, edited_id, requested, total = last_edit
            with st.expander("Last redistribution", expanded=False):
                render_change_table(change_df(before, after))
                for step in explain_redistribution(before, after, edited_id, requested, total):
                    st.text(step)

        group = children_of(tree, current.parent_id)
        st.plotly_chart(
            sibling_weight_bar(group, group_total, title=f"Siblings of {current.code}"),
            use_container_width=True,
        )

    if stage and tree and is_master:
        if st.button(f"Scale sections to the stage weight ({stage_weight * 100:.0f})",
                     key=f"btn_task_rescale_{tree_key}"):
            _set(tree_key, rescale_tree(tree, stage_weight * 100), stage_code)
            add_audit_entry("rescale", tree_key, "section_total", f"{root_total:.2f}",
                            f"{stage_weight * 100:.2f}")
            st.rerun()

    st.divider()

    # --- Structure (master only) ---
    if is_master:
        st.subheader("Structure")
        col_insert, col_edit = st.columns(2)

        with col_insert:
            with st.form(f"insert_form_{tree_key}", clear_on_submit=True):
                name = st.text_input("Name")
                mode = st.selectbox("Placement", INSERT_MODES, format_func=INSERT_LABELS.get)
                relative_id = st.selectbox(
                    "Relative to", [n.id for n in tree], format_func=label,
                ) if tree else None
                if st.form_submit_button("Insert"):
                    if not name:
                        st.warning("Enter a name.")
                    elif mode != "end" and relative_id is None:
                        st.warning("Select the item to insert relative to.")
                    else:
                        is_section = mode == "end" or (
                            mode in ("above", "below")
                            and next(n for n in tree if n.id == relative_id).parent_id is None
                        )
                        key = f"{stage_code}-{uuid.uuid4().hex[:6].upper()}" if is_section \
                            else uuid.uuid4().hex[:12]
                        new_node = WeightedNode(id=uuid.uuid4().hex, natural_key=key, name=name)
                        updated = insert_node(tree, new_node, mode, relative_id, root_total)
                        _set(tree_key, updated, stage_code)
                        add_audit_entry("insert", tree_key, "node", "", name, node_key=key,
                                        rationale=INSERT_LABELS[mode])
                        st.rerun()

        with col_edit:
            if tree:
                target_id = st.selectbox("Item", [n.id for n in tree], format_func=label,
                                         key=f"task_struct_item_{tree_key}")
                target = next(n for n in tree if n.id == target_id)
                siblings = children_of(tree, target.parent_id)
                pos = next(i for i, s in enumerate(siblings) if s.id == target_id)

                col_up, col_down, col_del = st.columns(3)
                with col_up:
                    if st.button("Move Up", disabled=pos == 0, key=f"btn_task_up_{tree_key}"):
                        index = {n.id: i for i, n in enumerate(tree)}
                        moved = move_node(tree, index[target_id], index[siblings[pos - 1].id])
                        _set(tree_key, moved, stage_code)
                        st.rerun()
                with col_down:
                    if st.button("Move Down", disabled=pos == len(siblings) - 1,
                                 key=f"btn_task_down_{tree_key}"):
                        index = {n.id: i for i, n in enumerate(tree)}
                        # Place after the next sibling, which is moved in front of this one
                        moved = move_node(tree, index[siblings[pos + 1].id], index[target_id])
                        _set(tree_key, moved, stage_code)
                        st.rerun()
                with col_del:
                    if st.button("Delete", type="secondary", key=f"btn_task_delete_{tree_key}"):
                        updated = delete_node(tree, target_id, root_total)
                        _set(tree_key, updated, stage_code)
                        add_audit_entry("delete", tree_key, "node", target.name, "deleted",
                                        node_key=target.natural_key,
                                        rationale="Removed with its descendants")
                        st.rerun()

        st.divider()

    # --- Actions ---
    col_discard, col_save = st.columns(2)
    with col_discard:
        if st.button("Reload & Sync", key=f"btn_task_discard_{tree_key}"):
            set_task_tree(tree_key, None)
            mark_dirty(_dirty_key(tree_key), False)
            st.session_state.pop("tasks_last_edit", None)
            st.rerun()
    with col_save:
        if st.button("Save", type="primary", key=f"btn_task_save_{tree_key}",
                     disabled=bool(invalid) or not is_dirty(_dirty_key(tree_key))):
            outcome = get_service().save_tree(tree_key, tree)
            set_task_tree(tree_key, renumber(outcome.nodes, prefix=stage_code))
            mark_dirty(_dirty_key(tree_key), False)
            if outcome.ok:
                add_audit_entry("save", tree_key, "tree", "", f"{len(tree)} items")
                st.success(outcome.message)
            else:
                st.error(outcome.message)
