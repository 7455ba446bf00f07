"""Sibling weight redistribution with a fixed total and a last-item lock."""

from typing import Iterable, List, Optional
from models.node import WeightedNode
from config.defaults import TOTAL_WEIGHT, SAVE_TOLERANCE, FLOAT_EPSILON


def weight_total(nodes: Iterable[WeightedNode]) -> float:
    return sum(float(n.weight or 0) for n in nodes)


def is_weight_valid(
    nodes: Iterable[WeightedNode],
    target: float = TOTAL_WEIGHT,
    tolerance: float = SAVE_TOLERANCE,
) -> bool:
    """True when the weights are close enough to the target to allow saving."""
    return abs(weight_total(nodes) - target) < tolerance


def clamp_weight(value: float, total: float) -> float:
    return max(0.0, min(float(value), float(total)))


def distribute_remaining(siblings: List[WeightedNode], target_total: float) -> List[WeightedNode]:
    """Scale siblings proportionally so they sum to target_total.

    Every sibling except the last gets its proportional share of the old
    weights; the last one takes whatever is left so the sum is exact. When the
    old weights are all zero the target is split equally.
    """
    if not siblings:
        return []

    target_total = max(0.0, float(target_total))
    total_old = weight_total(siblings)
    result = []
    assigned = 0.0

    for s in siblings[:-1]:
        if total_old == 0:
            share = target_total / len(siblings)
        else:
            share = (float(s.weight or 0) / total_old) * target_total
        share = max(0.0, share)
        result.append(s.with_weight(share))
        assigned += share

    # Last item lock
    last_weight = target_total - assigned
    if -FLOAT_EPSILON < last_weight < 0:
        last_weight = 0.0
    last_weight = max(0.0, last_weight)
    result.append(siblings[-1].with_weight(last_weight))

    return result


def redistribute(
    siblings: List[WeightedNode],
    edited_id: str,
    new_weight: float,
    total: float = TOTAL_WEIGHT,
) -> List[WeightedNode]:
    """Set one sibling's weight and rebalance the others to keep the total.

    Returns a new list in the input order. Children are not touched; see
    engine.hierarchy.cascade for that.
    """
    edited = _find(siblings, edited_id)
    if edited is None:
        raise KeyError(edited_id)

    others = [s for s in siblings if s.id != edited_id]
    if not others:
        return [edited.with_weight(max(0.0, float(total)))]

    clamped = clamp_weight(new_weight, total)
    remaining = float(total) - clamped
    updated = {s.id: s for s in distribute_remaining(others, remaining)}

    return [
        s.with_weight(clamped) if s.id == edited_id else updated[s.id]
        for s in siblings
    ]


def rebalance_with_new(
    siblings: List[WeightedNode],
    new_id: str,
    total: float,
) -> List[WeightedNode]:
    """Give a freshly inserted sibling an equal share and scale the rest down."""
    if _find(siblings, new_id) is None:
        raise KeyError(new_id)

    equal_share = float(total) / len(siblings)
    return redistribute(siblings, new_id, equal_share, total)


def _find(nodes: List[WeightedNode], node_id: str) -> Optional[WeightedNode]:
    return next((n for n in nodes if n.id == node_id), None)
