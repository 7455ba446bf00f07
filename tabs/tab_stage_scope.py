"""Tab 2: Stage Scope - which stages a project type uses and their share of the project."""

import pandas as pd
import streamlit as st

from data.session_store import (
    get_service, get_scope, set_scope, mark_dirty, is_dirty, add_audit_entry, get_rule_config,
)
from models.sync import ScopeLoad
from engine.scope_normalizer import toggle_node, edit_scope_weight
from engine.renumber import renumber_stages
from engine.weight_allocator import is_weight_valid
from engine.explainer import explain_normalization
from components.charts import scope_comparison_bar
from components.metrics_cards import render_weight_status
from components.tables import render_weight_table, nodes_to_df
from config.defaults import TOTAL_WEIGHT


def _dirty_key(scope_key: str) -> str:
    return f"scope:{scope_key}"


def _report_sync(scope: ScopeLoad):
    if not scope.ok:
        st.error(scope.message)
        return
    result = scope.sync
    if result is None or not result.has_changes:
        return
    parts = []
    if result.created:
        parts.append(f"{len(result.created)} new stage(s) added as inactive: "
                     f"{', '.join(n.abbr for n in result.created)}")
    if result.deleted:
        parts.append(f"{len(result.deleted)} stage(s) removed")
    if result.updated:
        parts.append(f"{len(result.updated)} stage(s) updated from the master")
    st.info("Synced with the master. " + "; ".join(parts) + ".")


def _load(scope_key: str, master_key: str):
    scope = get_scope(scope_key)
    if scope is None:
        scope = get_service().load_scope("stage", scope_key, master_key)
        if scope is None:
            return None
        set_scope(scope_key, scope)
        for node in scope.sync.created if scope.sync else []:
            add_audit_entry("sync", scope_key, "stage", "", "created", node_key=node.natural_key)
        for node in scope.sync.deleted if scope.sync else []:
            add_audit_entry("sync", scope_key, "stage", node.natural_key, "deleted", node_key=node.natural_key)
    return scope


def _update(scope: ScopeLoad, nodes, message: str = ""):
    set_scope(scope.scope_key, ScopeLoad(
        scope.scope_key, nodes, scope.base_weights, sync=None, ok=True, message=message,
    ))
    mark_dirty(_dirty_key(scope.scope_key))


def render(sidebar_state):
    """Render the Stage Scope tab."""
    st.header("Stage Scope")

    project_type = sidebar_state.project_type
    master = sidebar_state.master_type
    if project_type is None or master is None:
        st.info("Select a project type. A master (Design & Build) type is required.")
        return

    if sidebar_state.is_master:
        st.info(
            f"**{master.name}** is the master scope: every stage is part of it and its "
            "weights are the default weights. Edit them in the Stage List tab."
        )
        return

    scope_key = project_type.scope_key
    scope = _load(scope_key, master.scope_key)
    if scope is None:
        st.info("A sync for this project type is already running. Try again in a moment.")
        return
    _report_sync(scope)

    nodes = scope.nodes
    if not nodes:
        st.info("The master has no stages yet.")
        return

    config = get_rule_config()
    tolerance = config.get("save_tolerance", 0.1)
    enabled = [n for n in nodes if n.enabled]
    valid = render_weight_status(nodes, TOTAL_WEIGHT, tolerance, label="Scope Weight Total")

    # --- Active toggles ---
    st.subheader(f"Stages of {project_type.name}")
    st.caption("Turning a stage on or off recomputes every active stage's share of the master defaults.")

    toggle_df = pd.DataFrame([{
        "Code": n.code,
        "Name": n.name,
        "Active": n.enabled,
        "Master Default (%)": round(scope.base_weights.get(n.natural_key, 0.0), 2),
        "Scope Weight (%)": round(n.weight, 2),
    } for n in nodes])

    edited = st.data_editor(
        toggle_df,
        disabled=["Code", "Name", "Master Default (%)", "Scope Weight (%)"],
        use_container_width=True,
        # Fresh editor per flag state so stale edits are not replayed
        key=f"scope_toggles_{scope_key}_{''.join('1' if n.enabled else '0' for n in nodes)}",
        num_rows="fixed",
    )

    flipped = [n for i, n in enumerate(nodes) if bool(edited.iloc[i]["Active"]) != n.enabled]
    if flipped:
        updated = nodes
        for n in flipped:
            updated = toggle_node(updated, n.id, scope.base_weights)
            add_audit_entry("toggle", scope_key, "enabled", str(n.enabled), str(not n.enabled),
                            node_key=n.natural_key)
        _update(scope, updated)
        st.rerun()

    # --- Manual override ---
    if enabled:
        with st.expander("Manual weight override", expanded=False):
            st.caption("Only active stages absorb the difference.")
            col1, col2, col3 = st.columns([2, 2, 1])
            with col1:
                edit_id = st.selectbox(
                    "Stage", [n.id for n in enabled],
                    format_func=lambda i: next(f"{n.code} {n.name}" for n in enabled if n.id == i),
                    key=f"scope_weight_stage_{scope_key}",
                )
            current = next(n for n in enabled if n.id == edit_id)
            with col2:
                new_weight = st.number_input(
                    "Weight (%)", min_value=0.0, max_value=TOTAL_WEIGHT,
                    value=float(round(current.weight, 2)), step=0.5,
                    key=f"scope_weight_value_{scope_key}_{edit_id}",
                )
            with col3:
                st.write("")
                if st.button("Apply", key=f"btn_scope_weight_{scope_key}"):
                    _update(scope, edit_scope_weight(nodes, edit_id, new_weight))
                    add_audit_entry("weight_edit", scope_key, "weight", f"{current.weight:.2f}",
                                    f"{new_weight:.2f}", node_key=current.natural_key,
                                    rationale="Manual scope override")
                    st.rerun()

    col_chart, col_explain = st.columns([3, 2])
    with col_chart:
        st.plotly_chart(
            scope_comparison_bar(scope.base_weights, nodes, project_type.name),
            use_container_width=True,
        )
    with col_explain:
        st.markdown("**How the weights were derived**")
        for step in explain_normalization(nodes, scope.base_weights):
            st.text(step)

    st.divider()

    # --- Actions ---
    col_resync, col_reset, col_save = st.columns(3)
    with col_resync:
        if st.button("Reload & Sync", key=f"btn_scope_resync_{scope_key}"):
            set_scope(scope_key, None)
            mark_dirty(_dirty_key(scope_key), False)
            st.rerun()
    with col_reset:
        if st.button("Reset to Standard", key=f"btn_scope_reset_{scope_key}"):
            reset = get_service().reset_scope("stage", scope_key, master.scope_key, project_type)
            if reset is None:
                st.info("A sync for this project type is already running.")
            elif not reset.ok:
                set_scope(scope_key, reset)
                st.error(reset.message)
            else:
                set_scope(scope_key, reset)
                mark_dirty(_dirty_key(scope_key))
                add_audit_entry("reset", scope_key, "enabled", "custom", "standard",
                                rationale=reset.message)
                st.rerun()
    with col_save:
        if st.button("Save", type="primary", key=f"btn_scope_save_{scope_key}",
                     disabled=not (valid and is_dirty(_dirty_key(scope_key)))):
            if not is_weight_valid(nodes, TOTAL_WEIGHT, tolerance):
                st.error("Active stage weights must add up to 100% before saving.")
            else:
                outcome = get_service().save_nodes("stage", scope_key, nodes)
                set_scope(scope_key, ScopeLoad(
                    scope_key, renumber_stages(outcome.nodes), scope.base_weights,
                    ok=outcome.ok, message=outcome.message,
                ))
                if outcome.ok:
                    mark_dirty(_dirty_key(scope_key), False)
                    add_audit_entry("save", scope_key, "stages", "", f"{len(enabled)} active")
                    st.success(outcome.message)
                else:
                    mark_dirty(_dirty_key(scope_key), False)
                    st.error(outcome.message)

    with st.expander("Stored values", expanded=False):
        render_weight_table(nodes_to_df(nodes))
