"""Hierarchical display codes ("03", "03-02", "KO-01-02", "01-KO")."""

from dataclasses import replace
from typing import Dict, List, Optional, Tuple
from models.node import WeightedNode
from config.defaults import DISABLED_ORDINAL, CODE_SEPARATOR


def _join(parent_code: str, ordinal: str) -> str:
    return f"{parent_code}{CODE_SEPARATOR}{ordinal}" if parent_code else ordinal


def renumber(
    tree: List[WeightedNode],
    prefix: str = "",
    active_only: bool = False,
) -> List[WeightedNode]:
    """Assign two-digit ordinals per sibling group, in stored order.

    The result is flattened depth-first (each parent followed by its subtree).
    With active_only, disabled nodes do not advance the counter and get "00".
    Nodes whose parent is missing from the tree are numbered as roots.
    """
    ids = {n.id for n in tree}
    groups: Dict[Optional[str], List[WeightedNode]] = {}
    for n in tree:
        key = n.parent_id if n.parent_id in ids else None
        groups.setdefault(key, []).append(n)

    result: List[WeightedNode] = []
    seen = set()

    def traverse(parent_id: Optional[str], parent_code: str):
        counter = 1
        for node in groups.get(parent_id, []):
            if node.id in seen:
                continue
            seen.add(node.id)
            if active_only and not node.enabled:
                ordinal = DISABLED_ORDINAL
            else:
                ordinal = f"{counter:02d}"
                counter += 1
            code = _join(parent_code, ordinal)
            result.append(replace(node, code=code))
            traverse(node.id, code)

    traverse(None, prefix)

    # Cycles never reach the root walk; keep them rather than drop data
    result.extend(n for n in tree if n.id not in seen)
    return result


def renumber_stages(stages: List[WeightedNode]) -> List[WeightedNode]:
    """Scope stage list: fixed waterfall order by position, "NN-ABBR" codes.

    Disabled stages keep their place and read "00-ABBR".
    """
    ordered = sorted(stages, key=lambda s: s.position)
    counter = 1
    result = []
    for stage in ordered:
        if stage.enabled:
            number = f"{counter:02d}"
            counter += 1
        else:
            number = DISABLED_ORDINAL
        result.append(replace(stage, code=f"{number}{CODE_SEPARATOR}{stage.abbr}"))
    return result


def split_display_code(display_code: str, fallback_abbr: str = "") -> Tuple[str, str]:
    """"01-KO" -> ("01", "KO"). Missing parts fall back to "00" and fallback_abbr."""
    number, _, abbr = (display_code or "").partition(CODE_SEPARATOR)
    return number or DISABLED_ORDINAL, abbr or fallback_abbr
