"""Generates human-readable explanations for weight redistribution and scope normalization."""

from typing import Dict, List
from models.node import WeightedNode
from engine.template_sync import KeyFn, natural_key


def explain_redistribution(
    before: List[WeightedNode],
    after: List[WeightedNode],
    edited_id: str,
    requested_weight: float,
    total: float,
) -> List[str]:
    """Produce step-by-step explanation for a sibling redistribution."""
    steps = []
    old = {n.id: n for n in before}
    new = {n.id: n for n in after}
    edited = new[edited_id]

    steps.append(
        f"Step 1 - Edit: {edited.name or edited.natural_key} set to {requested_weight:.2f} "
        f"(group total {total:.2f})"
    )

    if edited.weight != requested_weight:
        steps.append(f"Note: Value clamped to [0, {total:.2f}] => {edited.weight:.2f}")

    others = [n for n in before if n.id != edited_id]
    remaining = total - edited.weight
    old_sum = sum(n.weight for n in others)
    steps.append(
        f"Step 2 - Remaining: {total:.2f} - {edited.weight:.2f} = {remaining:.2f} "
        f"to share across {len(others)} sibling(s) (previous sum {old_sum:.2f})"
    )

    if not others:
        steps.append("Step 3 - Single item: it carries the whole total.")
        return steps

    if old_sum == 0:
        steps.append("Step 3 - Previous weights were all zero => equal split")
    else:
        for n in others[:-1]:
            steps.append(
                f"Step 3 - {n.name or n.natural_key}: {old[n.id].weight:.2f} / {old_sum:.2f} "
                f"x {remaining:.2f} = {new[n.id].weight:.2f}"
            )

    last = others[-1]
    steps.append(
        f"Step 4 - Last item lock: {last.name or last.natural_key} takes the remainder "
        f"= {new[last.id].weight:.2f}"
    )
    return steps


def explain_normalization(
    nodes: List[WeightedNode],
    master_base_weights: Dict[str, float],
    key_fn: KeyFn = natural_key,
) -> List[str]:
    """Explain how each enabled stage's scope weight follows from the master defaults."""
    enabled = [n for n in nodes if n.enabled]
    if not enabled:
        return ["No stages enabled in this scope."]

    enabled_sum = sum(master_base_weights.get(key_fn(n), 0) for n in enabled)
    steps = [
        f"Step 1 - Enabled stages: {', '.join(n.abbr for n in enabled)} "
        f"(default weight sum {enabled_sum:.2f})"
    ]

    if enabled_sum == 0:
        steps.append(
            f"Step 2 - All defaults are zero => equal split {100 / len(enabled):.2f} each"
        )
        return steps

    for n in enabled:
        base = master_base_weights.get(key_fn(n), 0)
        steps.append(f"Step 2 - {n.abbr}: {base:.2f} / {enabled_sum:.2f} x 100 = {n.weight:.2f}")
    return steps
