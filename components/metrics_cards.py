"""Reusable KPI metric card widgets."""

import streamlit as st
from typing import List
from models.node import WeightedNode
from engine.weight_allocator import weight_total, is_weight_valid


def render_metric_row(metrics: list[dict]):
    """Render a row of metric cards.

    Each metric dict should have: label, value, and optionally delta, delta_color.
    """
    cols = st.columns(len(metrics))
    for col, m in zip(cols, metrics):
        with col:
            delta = m.get("delta")
            delta_color = m.get("delta_color", "normal")
            st.metric(
                label=m["label"],
                value=m["value"],
                delta=delta,
                delta_color=delta_color,
            )


def render_alert_card(message: str, level: str = "warning"):
    """Render an alert card with appropriate styling."""
    if level == "error":
        st.error(message, icon="🔴")
    elif level == "warning":
        st.warning(message, icon="🟡")
    else:
        st.info(message, icon="🔵")


def render_weight_status(
    nodes: List[WeightedNode],
    target: float,
    tolerance: float,
    label: str = "Total Weight",
) -> bool:
    """Total/target/enabled cards plus an alert when the total is off. Returns validity."""
    total = weight_total(nodes)
    valid = is_weight_valid(nodes, target, tolerance)
    enabled = sum(1 for n in nodes if n.enabled)
    render_metric_row([
        {"label": label, "value": f"{total:.2f}",
         "delta": f"{total - target:+.2f}" if not valid else None, "delta_color": "inverse"},
        {"label": "Target", "value": f"{target:.2f}"},
        {"label": "Enabled", "value": f"{enabled}/{len(nodes)}"},
    ])
    if not valid:
        render_alert_card(
            f"Weights add up to {total:.2f}, expected {target:.2f}. Saving is disabled.",
            level="error",
        )
    return valid
