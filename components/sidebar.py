"""Global sidebar controls for project type and stage selection."""

import streamlit as st
from dataclasses import dataclass
from typing import Optional
from models.project_type import ProjectType
from data.session_store import get_service, get_active_type_id, set_active_type_id, get_dirty_keys


@dataclass
class SidebarState:
    project_type: Optional[ProjectType]
    master_type: Optional[ProjectType]
    stage_code: Optional[str]

    @property
    def is_master(self) -> bool:
        return (
            self.project_type is not None
            and self.master_type is not None
            and self.project_type.id == self.master_type.id
        )


def render_sidebar() -> SidebarState:
    """Render the global sidebar controls and return current state."""
    service = get_service()
    project_types = service.store.list_project_types()
    master = service.master_type()

    with st.sidebar:
        st.title("Stage Weight Planner")
        st.divider()

        if not project_types:
            st.warning("No project types defined - go to Admin tab")
            return SidebarState(project_type=None, master_type=master, stage_code=None)

        # Project type selector
        type_names = {t.id: t.name for t in project_types}
        type_ids = list(type_names.keys())

        current_id = get_active_type_id()
        if current_id not in type_ids:
            current_id = master.id if master else type_ids[0]

        selected_id = st.selectbox(
            "Project Type",
            options=type_ids,
            format_func=lambda x: type_names.get(x, x),
            index=type_ids.index(current_id),
            key="sidebar_project_type",
        )

        if selected_id != get_active_type_id():
            set_active_type_id(selected_id)

        # Stage selector for the task sheet, from the master stage list
        stage_code = None
        if master:
            stages = service.store.list("stage", master.scope_key)
            stage_codes = [s.abbr for s in stages]
            if stage_codes:
                stage_code = st.selectbox(
                    "Stage (task sheet)",
                    options=stage_codes,
                    format_func=lambda c: next((f"{c} - {s.name}" for s in stages if s.abbr == c), c),
                    key="sidebar_stage",
                )

        st.divider()

        selected = next(t for t in project_types if t.id == selected_id)
        if master and selected.id == master.id:
            st.success("Master scope: edits here propagate to every project type")
        elif master:
            st.info(f"Derived scope: synced from {master.name}")
        else:
            st.error("No master project type (Design & Build or Build Only) defined")

        dirty = get_dirty_keys()
        if dirty:
            st.caption(f"Unsaved changes: {', '.join(dirty)}")

    return SidebarState(
        project_type=selected,
        master_type=master,
        stage_code=stage_code,
    )
