"""Tab 4: Admin & Governance - template upload, project types, rule config, audit trail."""

import streamlit as st
import pandas as pd

from data.loader import load_file, load_multi_sheet_excel, parse_stages, build_stage_trees
from data.validator import validate_stages, validate_sections, validate_tasks, validate_cross_file
from data.sample_data import (
    generate_stages_df, generate_sections_df, generate_tasks_df, seed_store, task_scope_key,
)
from data.session_store import (
    get_service, get_store, get_audit_log, get_rule_config, set_rule_config, add_audit_entry,
    reset_store, clear_derived_cache, set_master_stages,
)
from models.project_type import ProjectType
from engine.weight_allocator import weight_total
from config.defaults import SAVE_TOLERANCE, NEW_ITEM_ENABLED_DEFAULT, SECTION_TOTAL_DEFAULT


def _load_and_validate(stages_df, sections_df, tasks_df, fallback_stage):
    """Validate uploaded sheets and replace the master templates."""
    errors = []
    warnings = []

    results = [validate_stages(stages_df)]
    if sections_df is not None:
        results.append(validate_sections(sections_df))
    if tasks_df is not None:
        results.append(validate_tasks(tasks_df))

    for r in results:
        errors.extend(r.errors)
        warnings.extend(r.warnings)

    if not errors and sections_df is not None and tasks_df is not None:
        cross = validate_cross_file(sections_df, tasks_df)
        warnings.extend(cross.warnings)

    if errors:
        for e in errors:
            st.error(e)
        return False

    for w in warnings:
        st.warning(w)

    service = get_service()
    master = service.master_type()
    if master is None:
        st.error("No master project type (Design & Build or Build Only) to import into.")
        return False

    # Parse and store
    stages = parse_stages(stages_df)
    outcome = service.replace_tree("stage", master.scope_key, stages)
    if not outcome.ok:
        st.error(outcome.message)
        return False

    trees = {}
    if sections_df is not None and tasks_df is not None:
        trees = build_stage_trees(sections_df, tasks_df, fallback_stage)
    known = {s.abbr for s in stages}
    for stage_code, tree in trees.items():
        if stage_code not in known:
            st.warning(f"Sections for unknown stage {stage_code} were skipped.")
            continue
        saved = service.save_tree(task_scope_key(master.id, stage_code), tree)
        if not saved.ok:
            st.error(f"{stage_code}: {saved.message}")

    set_master_stages(None)
    clear_derived_cache()
    add_audit_entry("upload", master.scope_key, "all_templates", "", "uploaded", rationale="Template upload")

    n_nodes = sum(len(t) for t in trees.values())
    st.success(f"Templates loaded: {len(stages)} stages, {n_nodes} sections/tasks in {len(trees)} stage(s)")

    # --- Immediate weight health check ---
    st.divider()
    st.subheader("Template Health Check")
    total = weight_total(stages)
    col1, col2, col3 = st.columns(3)
    col1.metric("Stages", len(stages))
    col2.metric("Default Weight Total", f"{total:.2f}%")
    col3.metric("Stage Sheets", len(trees))

    if abs(total - 100.0) >= get_rule_config().get("save_tolerance", SAVE_TOLERANCE):
        st.warning(
            f"Default weights add up to {total:.2f}%. Scope weights are still normalized, "
            "but rebalance the master in the Stage List tab before saving it."
        )
    else:
        st.success("Default weights add up to 100%.")

    return True


def render(sidebar_state):
    """Render the Admin & Governance tab."""
    st.header("Admin & Governance")

    # --- Data Upload Section ---
    st.subheader("Template Upload")

    upload_mode = st.radio(
        "Upload mode",
        ["Single Excel file (3 tabs)", "Separate files"],
        horizontal=True,
        key="upload_mode",
    )
    fallback_stage = sidebar_state.stage_code or ""

    if upload_mode == "Single Excel file (3 tabs)":
        st.caption(
            "Upload one `.xlsx` file with three sheets named: "
            "**Stages**, **Sections**, **Tasks** "
            "(also accepts aliases like 'Stage List', 'Stage Sections', 'WBS', etc.)"
        )
        single_file = st.file_uploader(
            "Excel workbook with 3 tabs",
            type=["xlsx"],
            key="upload_single",
        )

        if st.button("Upload & Validate", type="primary", key="btn_upload_single"):
            if single_file:
                try:
                    s_df, sec_df, t_df = load_multi_sheet_excel(single_file)
                    _load_and_validate(s_df, sec_df, t_df, fallback_stage)
                except Exception as e:
                    st.error(f"Error loading file: {e}")
            else:
                st.warning("Please upload an Excel file.")

    else:
        col1, col2, col3 = st.columns(3)
        with col1:
            stages_file = st.file_uploader("Stage List", type=["csv", "xlsx"], key="upload_stages")
        with col2:
            sections_file = st.file_uploader("Sections (optional)", type=["csv", "xlsx"], key="upload_sections")
        with col3:
            tasks_file = st.file_uploader("Tasks (optional)", type=["csv", "xlsx"], key="upload_tasks")
        st.caption(
            f"Sections without a Stage Code column are imported into the stage selected "
            f"in the sidebar ({fallback_stage or 'none'})."
        )

        if st.button("Upload & Validate", type="primary", key="btn_upload_multi"):
            if not stages_file:
                st.warning("Please upload at least the stage list.")
            elif bool(sections_file) != bool(tasks_file):
                st.warning("Upload sections and tasks together.")
            else:
                try:
                    s_df = load_file(stages_file)
                    sec_df = load_file(sections_file) if sections_file else None
                    t_df = load_file(tasks_file) if tasks_file else None
                    _load_and_validate(s_df, sec_df, t_df, fallback_stage)
                except Exception as e:
                    st.error(f"Error loading files: {e}")

    col_sample, col_reset = st.columns(2)
    with col_sample:
        if st.button("Load Sample Templates", key="btn_sample"):
            _load_and_validate(generate_stages_df(), generate_sections_df(), generate_tasks_df(), "KO")
    with col_reset:
        if st.button("Reset Workspace", type="secondary", key="btn_reset_workspace"):
            reset_store(seed_store())
            add_audit_entry("reset", "global", "workspace", "", "sample", rationale="Workspace reset")
            st.rerun()

    st.divider()

    # --- Project Types ---
    st.subheader("Project Types")

    service = get_service()
    master = service.master_type()
    types = get_store().list_project_types()
    if types:
        st.dataframe(pd.DataFrame([{
            "ID": t.id,
            "Code": t.code,
            "Name": t.name,
            "Role": "Master" if master and t.id == master.id else "Derived",
        } for t in types]), use_container_width=True)

    with st.expander("Add Project Type", expanded=False):
        new_code = st.text_input("Code (e.g. INT)", key="new_type_code").strip().upper()
        new_name = st.text_input("Name", key="new_type_name")
        if st.button("Create Project Type", key="btn_create_type"):
            if not new_code or not new_name:
                st.warning("Please enter a code and a name.")
            elif any(t.code == new_code or t.id == new_code.lower() for t in types):
                st.warning(f"Project type {new_code} already exists.")
            else:
                get_store().add_project_type(ProjectType(id=new_code.lower(), code=new_code, name=new_name))
                add_audit_entry("create", new_code.lower(), "project_type", "", new_name)
                st.success(f"Project type '{new_name}' created. Its stages sync from the master on first view.")
                st.rerun()

    st.divider()

    # --- Rule Configuration ---
    st.subheader("Rule Configuration")

    config = get_rule_config()

    save_tolerance = st.slider(
        "Save tolerance (weight units)",
        min_value=0.01, max_value=1.0,
        value=float(config.get("save_tolerance", SAVE_TOLERANCE)),
        step=0.01,
        key="cfg_save_tolerance",
        help="Save stays disabled while a weight total is further than this from its target.",
    )
    new_item_enabled = st.checkbox(
        "New master stages start active in derived scopes",
        value=bool(config.get("new_item_enabled", NEW_ITEM_ENABLED_DEFAULT)),
        key="cfg_new_item_enabled",
        help="When off, stages added to the master appear inactive until a scope turns them on "
             "or is reset to standard.",
    )
    section_total = st.number_input(
        "Section total for an empty stage sheet (x100)",
        min_value=100.0, max_value=100000.0,
        value=float(config.get("section_total_default", SECTION_TOTAL_DEFAULT)),
        step=100.0,
        key="cfg_section_total",
    )

    if st.button("Save Rule Configuration"):
        new_config = {
            "save_tolerance": save_tolerance,
            "new_item_enabled": new_item_enabled,
            "section_total_default": section_total,
        }
        set_rule_config(new_config)
        add_audit_entry("config_change", "global", "rule_config", str(config), str(new_config))
        st.success("Rule configuration saved.")

    st.divider()

    # --- Audit Trail ---
    st.subheader("Audit Trail")

    audit_log = get_audit_log()
    if audit_log:
        audit_data = []
        for entry in reversed(audit_log):
            audit_data.append({
                "Timestamp": entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                "Action": entry.action,
                "Scope": entry.scope_key,
                "Item": entry.node_key or "—",
                "Field": entry.field_changed,
                "Old Value": entry.old_value[:50],
                "New Value": entry.new_value[:50],
                "Rationale": entry.rationale,
            })
        audit_df = pd.DataFrame(audit_data)
        st.dataframe(audit_df, use_container_width=True, height=300)

        csv = audit_df.to_csv(index=False)
        st.download_button("Export Audit Log (CSV)", csv, "audit_log.csv", "text/csv")
    else:
        st.info("No audit entries yet.")
