"""Plotly chart builders for the Stage Weight Planner."""

import plotly.express as px
import plotly.graph_objects as go
import pandas as pd
from typing import Dict, List
from models.node import WeightedNode


def weight_donut(nodes: List[WeightedNode], title: str = "Weight Distribution") -> go.Figure:
    """Donut chart of the enabled nodes' weights."""
    enabled = [n for n in nodes if n.enabled and n.weight > 0]
    total = sum(n.weight for n in enabled)
    fig = go.Figure(data=[go.Pie(
        labels=[n.code or n.natural_key for n in enabled],
        values=[n.weight for n in enabled],
        hovertext=[n.name for n in enabled],
        hole=0.6,
        textinfo="percent+label",
        sort=False,
    )])
    fig.update_layout(
        title=title,
        height=350,
        showlegend=False,
        annotations=[dict(text=f"{total:.2f}", x=0.5, y=0.5, font_size=16, showarrow=False)],
    )
    return fig


def sibling_weight_bar(
    nodes: List[WeightedNode],
    target_total: float,
    title: str = "Sibling Weights",
) -> go.Figure:
    """Horizontal bar of one sibling group, with the share of the group total."""
    df = pd.DataFrame([{
        "Code": n.code or n.natural_key,
        "Name": n.name,
        "Weight": n.weight,
        "Share": (n.weight / target_total) if target_total else 0.0,
    } for n in nodes])
    if df.empty:
        return go.Figure()

    fig = px.bar(
        df, x="Weight", y="Code",
        orientation="h",
        hover_data=["Name"],
        title=title,
        color="Share",
        color_continuous_scale=["#4A90D9", "#F5C542", "#E8734A"],
        range_color=[0, 1],
    )
    fig.update_layout(height=max(300, len(df) * 30), yaxis_type="category", yaxis_autorange="reversed")
    fig.update_traces(texttemplate="%{x:.2f}", textposition="auto")
    return fig


def scope_comparison_bar(
    master_weights: Dict[str, float],
    scope_nodes: List[WeightedNode],
    scope_label: str = "Scope",
) -> go.Figure:
    """Grouped bar of master default weights against a scope's normalized weights."""
    fig = go.Figure()
    labels = [n.abbr for n in scope_nodes]
    fig.add_trace(go.Bar(
        name="Master default",
        x=labels,
        y=[master_weights.get(n.natural_key, 0.0) for n in scope_nodes],
        marker_color="#4A90D9",
    ))
    fig.add_trace(go.Bar(
        name=scope_label,
        x=labels,
        y=[n.weight for n in scope_nodes],
        marker_color="#E8734A",
    ))
    fig.update_layout(
        barmode="group",
        title="Master vs Scope Weights",
        xaxis_title="Stage",
        yaxis_title="Weight (%)",
        height=400,
    )
    return fig
