"""Styled dataframe display helpers."""

import streamlit as st
import pandas as pd
from typing import List, Optional
from models.node import WeightedNode


def nodes_to_df(nodes: List[WeightedNode], depth_by_id: Optional[dict] = None) -> pd.DataFrame:
    """Flat table of nodes; names are indented by depth when depth_by_id is given."""
    rows = []
    for n in nodes:
        indent = "    " * (depth_by_id or {}).get(n.id, 0)
        rows.append({
            "Code": n.code,
            "Name": f"{indent}{n.name}",
            "Weight": round(float(n.weight), 4),
            "Active": n.enabled,
        })
    return pd.DataFrame(rows)


def render_styled_table(
    df: pd.DataFrame,
    title: Optional[str] = None,
    height: Optional[int] = None,
    use_container_width: bool = True,
):
    """Render a styled, non-editable dataframe."""
    if title:
        st.subheader(title)
    st.dataframe(df, height=height, use_container_width=use_container_width)


def render_weight_table(df: pd.DataFrame, active_column: str = "Active"):
    """Render a weight table with disabled rows greyed out."""
    def grey_disabled(row):
        if active_column in row and not row[active_column]:
            return ["color: #999999"] * len(row)
        return [""] * len(row)

    if active_column in df.columns:
        styled = df.style.apply(grey_disabled, axis=1).format({"Weight": "{:.2f}"})
        st.dataframe(styled, use_container_width=True)
    else:
        st.dataframe(df, use_container_width=True)


def render_change_table(df: pd.DataFrame, change_column: str = "Change"):
    """Render a before/after table with positive/negative highlighting."""
    def color_change(val):
        try:
            v = float(val)
            if v > 0:
                return "color: #155724; font-weight: bold"
            elif v < 0:
                return "color: #cc0000; font-weight: bold"
        except (ValueError, TypeError):
            pass
        return ""

    if change_column in df.columns:
        styled = df.style.map(color_change, subset=[change_column])
        st.dataframe(styled, use_container_width=True)
    else:
        st.dataframe(df, use_container_width=True)


def change_df(before: List[WeightedNode], after: List[WeightedNode]) -> pd.DataFrame:
    """Weight deltas by node, for nodes present in both lists."""
    old = {n.id: n for n in before}
    rows = []
    for n in after:
        if n.id not in old:
            continue
        delta = round(n.weight - old[n.id].weight, 4)
        rows.append({
            "Code": n.code,
            "Name": n.name,
            "Before": round(old[n.id].weight, 4),
            "After": round(n.weight, 4),
            "Change": delta,
        })
    return pd.DataFrame(rows)
