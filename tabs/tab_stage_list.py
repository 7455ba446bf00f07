"""Tab 1: Stage List - master stage catalogue and default weights."""

import uuid
from dataclasses import replace

import pandas as pd
import streamlit as st

from data.session_store import (
    get_service, get_master_stages, set_master_stages, mark_dirty, is_dirty,
    add_audit_entry, get_rule_config, clear_derived_cache,
)
from models.node import WeightedNode
from engine.weight_allocator import redistribute, is_weight_valid
from engine.hierarchy import move_node
from engine.renumber import renumber_stages
from engine.scope_normalizer import apply_standard_weights
from engine.explainer import explain_redistribution
from components.charts import weight_donut
from components.metrics_cards import render_weight_status
from components.tables import render_change_table, change_df
from config.defaults import TOTAL_WEIGHT, STAGE_CATEGORIES

DIRTY_KEY = "stage_list"


def _load(sidebar_state):
    master = sidebar_state.master_type
    stages = get_master_stages()
    if stages is None:
        loaded = get_service().load_scope("stage", master.scope_key, master.scope_key)
        if loaded is None:
            st.info("Master stages are being loaded, try again in a moment.")
            return None
        stages = loaded.nodes
        set_master_stages(stages)
    return stages


def _reposition(stages):
    return renumber_stages([replace(s, position=i + 1) for i, s in enumerate(stages)])


def _render_add_form(stages, master):
    with st.form("add_stage_form", clear_on_submit=True):
        code = st.text_input("Stage code (e.g. PM)").strip().upper()
        name = st.text_input("Stage name")
        category = st.selectbox("Category", sorted(set(STAGE_CATEGORIES.values())))
        if st.form_submit_button("Add Stage"):
            if not code or not name:
                st.warning("Enter a code and a name.")
            elif any(s.natural_key == code for s in stages):
                st.warning(f"Stage code {code} already exists.")
            else:
                position = max((s.position for s in stages), default=0) + 1
                new_stage = WeightedNode(
                    id=uuid.uuid4().hex, natural_key=code, name=name,
                    weight=0.0, category=category, position=position,
                )
                set_master_stages(renumber_stages(stages + [new_stage]))
                mark_dirty(DIRTY_KEY)
                add_audit_entry("insert", master.scope_key, "stage", "", code, node_key=code)
                st.rerun()


def render(sidebar_state):
    """Render the Stage List tab."""
    st.header("Stage List")

    master = sidebar_state.master_type
    if master is None:
        st.info("No master project type. Add a Design & Build type in Admin & Governance.")
        return

    st.caption(
        f"Master stages of **{master.name}**. Default weights are the base every "
        "project type's scope weights are derived from."
    )

    stages = _load(sidebar_state)
    if stages is None:
        return
    if not stages:
        st.info("No master stages yet. Add one here or load a stage list in Admin & Governance.")
        _render_add_form(stages, master)
        return

    config = get_rule_config()
    tolerance = config.get("save_tolerance", 0.1)
    valid = render_weight_status(stages, TOTAL_WEIGHT, tolerance, label="Default Weight Total")

    col_table, col_chart = st.columns([3, 2])

    with col_table:
        table_df = pd.DataFrame([{
            "Code": s.code,
            "Name": s.name,
            "Category": s.category,
            "Default Weight (%)": round(s.weight, 2),
        } for s in stages])

        edited = st.data_editor(
            table_df,
            disabled=["Code", "Default Weight (%)"],
            use_container_width=True,
            key="edit_master_stages",
            num_rows="fixed",
        )

        if st.button("Apply Name/Category Changes", key="btn_apply_stage_meta"):
            changed = False
            updated = []
            for i, s in enumerate(stages):
                row = edited.iloc[i]
                name, category = str(row["Name"]), str(row["Category"])
                if name != s.name or category != s.category:
                    add_audit_entry(
                        "edit", master.scope_key, "name/category",
                        f"{s.name}/{s.category}", f"{name}/{category}",
                        node_key=s.natural_key,
                    )
                    s = replace(s, name=name, category=category)
                    changed = True
                updated.append(s)
            if changed:
                set_master_stages(updated)
                mark_dirty(DIRTY_KEY)
                st.rerun()
            else:
                st.info("No changes detected.")

    with col_chart:
        st.plotly_chart(weight_donut(stages, "Default Weights"), use_container_width=True)

    st.divider()

    # --- Weight edit with auto-balance ---
    st.subheader("Edit Default Weight")
    st.caption("The other stages absorb the difference proportionally; the last one takes the remainder.")

    col1, col2, col3 = st.columns([2, 2, 1])
    with col1:
        edit_id = st.selectbox(
            "Stage",
            [s.id for s in stages],
            format_func=lambda i: next(f"{s.code} {s.name}" for s in stages if s.id == i),
            key="master_weight_stage",
        )
    current = next(s for s in stages if s.id == edit_id)
    with col2:
        new_weight = st.number_input(
            "New weight (%)", min_value=0.0, max_value=TOTAL_WEIGHT,
            value=float(round(current.weight, 2)), step=0.5,
            key=f"master_weight_value_{edit_id}",
        )
    with col3:
        st.write("")
        apply = st.button("Apply", key="btn_master_weight", type="primary")

    if apply:
        updated = redistribute(stages, edit_id, new_weight, TOTAL_WEIGHT)
        add_audit_entry(
            "weight_edit", master.scope_key, "weight",
            f"{current.weight:.2f}", f"{new_weight:.2f}",
            node_key=current.natural_key, rationale="Master default weight auto-balance",
        )
        st.session_state["master_last_edit"] = (stages, updated, edit_id, new_weight)
        set_master_stages(updated)
        mark_dirty(DIRTY_KEY)
        st.rerun()

    last_edit = st.session_state.get("master_last_edit")
    if last_edit:
        before, after, edited_id, requested = last_edit
        with st.expander("Last redistribution", expanded=False):
            render_change_table(change_df(before, after))
            for step in explain_redistribution(before, after, edited_id, requested, TOTAL_WEIGHT):
                st.text(step)

    st.divider()

    # --- Structure ---
    st.subheader("Structure")
    col_add, col_move, col_delete = st.columns(3)

    with col_add:
        _render_add_form(stages, master)

    with col_move:
        index_of = {s.id: i for i, s in enumerate(stages)}
        move_id = st.selectbox(
            "Move stage", [s.id for s in stages],
            format_func=lambda i: stages[index_of[i]].code, key="move_stage_select",
        )
        to_pos = st.number_input("To position", 1, len(stages), index_of[move_id] + 1, key="move_stage_to")
        if st.button("Move", key="btn_move_stage"):
            moved = move_node(stages, index_of[move_id], int(to_pos) - 1)
            set_master_stages(_reposition(moved))
            mark_dirty(DIRTY_KEY)
            st.rerun()

    with col_delete:
        del_id = st.selectbox(
            "Delete stage", [s.id for s in stages],
            format_func=lambda i: next(s.code for s in stages if s.id == i), key="delete_stage_select",
        )
        st.caption("Other weights are kept; rebalance before saving.")
        if st.button("Delete Stage", type="secondary", key="btn_delete_stage"):
            doomed = next(s for s in stages if s.id == del_id)
            remaining = [s for s in stages if s.id != del_id]
            set_master_stages(_reposition(remaining))
            mark_dirty(DIRTY_KEY)
            add_audit_entry("delete", master.scope_key, "stage", doomed.natural_key, "deleted",
                            node_key=doomed.natural_key)
            st.rerun()

    st.divider()

    # --- Actions ---
    col_reset, col_discard, col_save = st.columns(3)
    with col_reset:
        if st.button("Reset to Standard Weights", key="btn_master_reset"):
            set_master_stages(apply_standard_weights(stages))
            mark_dirty(DIRTY_KEY)
            add_audit_entry("reset", master.scope_key, "weight", "custom", "standard",
                            rationale="Standard waterfall weights")
            st.rerun()
    with col_discard:
        if st.button("Discard Changes", key="btn_master_discard", disabled=not is_dirty(DIRTY_KEY)):
            set_master_stages(None)
            mark_dirty(DIRTY_KEY, False)
            st.session_state.pop("master_last_edit", None)
            st.rerun()
    with col_save:
        if st.button("Save", type="primary", key="btn_master_save",
                     disabled=not (valid and is_dirty(DIRTY_KEY))):
            if not is_weight_valid(stages, TOTAL_WEIGHT, tolerance):
                st.error("Default weights must add up to 100% before saving.")
            else:
                outcome = get_service().replace_tree("stage", master.scope_key, stages)
                set_master_stages(renumber_stages(outcome.nodes))
                if outcome.ok:
                    mark_dirty(DIRTY_KEY, False)
                    clear_derived_cache()
                    add_audit_entry("save", master.scope_key, "stages", "", f"{len(stages)} stages")
                    st.success("Master stages saved. Project types pick the changes up on next load.")
                else:
                    st.error(outcome.message)
