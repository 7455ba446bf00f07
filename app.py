"""Stage Weight Planner - Streamlit entry point."""

import logging
import streamlit as st
import sys
import os

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from components.sidebar import render_sidebar
from data.session_store import initialize_session_state
from tabs import (
    tab_stage_list,
    tab_stage_scope,
    tab_stage_tasks,
    tab_admin_governance,
)

logging.basicConfig(
    level=os.environ.get("STAGE_PLANNER_LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def main():
    st.set_page_config(
        page_title="Stage Weight Planner",
        page_icon="📐",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    initialize_session_state()
    sidebar_state = render_sidebar()

    tab1, tab2, tab3, tab4 = st.tabs([
        "📋 Stage List",
        "🎯 Stage Scope",
        "🧩 Stage Tasks",
        "⚙️ Admin & Governance",
    ])

    with tab1:
        tab_stage_list.render(sidebar_state)
    with tab2:
        tab_stage_scope.render(sidebar_state)
    with tab3:
        tab_stage_tasks.render(sidebar_state)
    with tab4:
        tab_admin_governance.render(sidebar_state)


if __name__ == "__main__":
    main()
