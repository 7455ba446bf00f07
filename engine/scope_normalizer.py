"""Scope weights: each enabled stage's share of the master default weights."""

from dataclasses import replace
from typing import Dict, List, Optional
from models.node import WeightedNode
from models.project_type import ProjectType
from engine.template_sync import KeyFn, natural_key
from engine.weight_allocator import redistribute
from engine.renumber import renumber_stages
from config.defaults import (
    TOTAL_WEIGHT, STANDARD_WEIGHTS, SCOPE_ACTIVE_SETS, MASTER_TYPE_CODES,
)


def normalize(
    derived_nodes: List[WeightedNode],
    master_base_weights: Dict[str, float],
    key_fn: KeyFn = natural_key,
    total: float = TOTAL_WEIGHT,
) -> List[WeightedNode]:
    """Recompute scope weights from the master bases over the enabled subset.

    Disabled stages get 0. When every enabled base is 0 the total is split
    equally across the enabled stages.
    """
    enabled = [n for n in derived_nodes if n.enabled]
    enabled_sum = sum(float(master_base_weights.get(key_fn(n), 0) or 0) for n in enabled)

    result = []
    for n in derived_nodes:
        if not n.enabled:
            weight = 0.0
        elif enabled_sum > 0:
            base = float(master_base_weights.get(key_fn(n), 0) or 0)
            weight = (base / enabled_sum) * total
        else:
            weight = total / len(enabled)
        result.append(replace(n, weight=weight))
    return result


def toggle_node(
    nodes: List[WeightedNode],
    node_id: str,
    master_base_weights: Dict[str, float],
    key_fn: KeyFn = natural_key,
) -> List[WeightedNode]:
    """Flip one stage on or off, then renormalize and renumber the scope."""
    if not any(n.id == node_id for n in nodes):
        raise KeyError(node_id)
    flipped = [replace(n, enabled=not n.enabled) if n.id == node_id else n for n in nodes]
    return renumber_stages(normalize(flipped, master_base_weights, key_fn))


def edit_scope_weight(
    nodes: List[WeightedNode],
    node_id: str,
    new_weight: float,
    total: float = TOTAL_WEIGHT,
) -> List[WeightedNode]:
    """Manual override of one enabled stage; only enabled stages absorb the difference.

    Editing a disabled stage, or a value outside [0, total], leaves the scope unchanged.
    """
    target = next((n for n in nodes if n.id == node_id), None)
    if target is None:
        raise KeyError(node_id)
    if not target.enabled or new_weight < 0 or new_weight > total:
        return list(nodes)

    enabled = [n for n in nodes if n.enabled]
    updated = {n.id: n for n in redistribute(enabled, node_id, new_weight, total)}
    return [updated.get(n.id, n) for n in nodes]


def active_set_for(project_type: ProjectType) -> List[str]:
    """Stage codes a project type enables by default, from its code or its name."""
    code = project_type.code or ""
    name = project_type.name.lower()
    if code == "DSN" or ("design" in name and "build" not in name):
        return SCOPE_ACTIVE_SETS["DSN"]
    if code == "BLD" or ("build" in name and "design" not in name):
        return SCOPE_ACTIVE_SETS["BLD"]
    return SCOPE_ACTIVE_SETS[MASTER_TYPE_CODES[0]]


def apply_standard_activation(
    nodes: List[WeightedNode],
    project_type: ProjectType,
    master_base_weights: Optional[Dict[str, float]] = None,
    key_fn: KeyFn = natural_key,
) -> List[WeightedNode]:
    """Reset to standard: enable exactly the preset stages of the project type."""
    active = set(active_set_for(project_type))
    flagged = [replace(n, enabled=n.abbr in active) for n in nodes]
    if master_base_weights is None:
        master_base_weights = {key_fn(n): n.weight for n in nodes}
    return renumber_stages(normalize(flagged, master_base_weights, key_fn))


def apply_standard_weights(master_nodes: List[WeightedNode]) -> List[WeightedNode]:
    """Reset master default weights to the standard table; unknown codes get 0."""
    return [replace(n, weight=STANDARD_WEIGHTS.get(n.abbr, 0.0)) for n in master_nodes]
