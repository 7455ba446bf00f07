"""Tree-aware weight edits: cascade to descendants, insert, delete, reorder."""

from collections import deque
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Set
from models.node import WeightedNode
from engine.weight_allocator import distribute_remaining, redistribute, rebalance_with_new
from config.defaults import TOTAL_WEIGHT


def children_of(tree: List[WeightedNode], parent_id: Optional[str]) -> List[WeightedNode]:
    return [n for n in tree if n.parent_id == parent_id]


def descendant_ids(tree: List[WeightedNode], node_id: str) -> Set[str]:
    """Ids of every node below node_id (not including it)."""
    found: Set[str] = set()
    frontier = [node_id]
    while frontier:
        current = frontier.pop()
        for n in tree:
            if n.parent_id == current and n.id not in found:
                found.add(n.id)
                frontier.append(n.id)
    return found


def target_total_for(
    tree: List[WeightedNode],
    node: WeightedNode,
    root_total: float = TOTAL_WEIGHT,
) -> float:
    """The sum a node's sibling group must reach: the parent's weight, or root_total."""
    if node.is_root:
        return root_total
    parent = next((n for n in tree if n.id == node.parent_id), None)
    if parent is None:
        return root_total
    return float(parent.weight or 0)


def _merge(tree: List[WeightedNode], updated: Iterable[WeightedNode]) -> List[WeightedNode]:
    by_id = {n.id: n for n in updated}
    return [by_id.get(n.id, n) for n in tree]


def _scale_descendants(tree: List[WeightedNode], parent_ids: Iterable[str]) -> List[WeightedNode]:
    """Breadth-first: resize each parent's children to sum to the parent's weight."""
    working: Dict[str, WeightedNode] = {n.id: n for n in tree}
    order = [n.id for n in tree]
    queue = deque(parent_ids)
    visited: Set[str] = set()

    while queue:
        pid = queue.popleft()
        if pid in visited or pid not in working:
            continue
        visited.add(pid)

        children = [working[i] for i in order if working[i].parent_id == pid]
        if not children:
            continue
        for child in distribute_remaining(children, working[pid].weight):
            working[child.id] = child
            queue.append(child.id)

    return [working[i] for i in order]


def cascade(
    tree: List[WeightedNode],
    edited_id: str,
    new_weight: float,
    root_total: float = TOTAL_WEIGHT,
) -> List[WeightedNode]:
    """Edit one node's weight, rebalance its siblings, then rescale every subtree below them."""
    edited = next((n for n in tree if n.id == edited_id), None)
    if edited is None:
        raise KeyError(edited_id)

    siblings = children_of(tree, edited.parent_id)
    target = target_total_for(tree, edited, root_total)
    old_weights = {s.id: s.weight for s in siblings}

    new_siblings = redistribute(siblings, edited_id, new_weight, target)
    changed = [
        s.id for s in new_siblings
        if s.id == edited_id or s.weight != old_weights[s.id]
    ]

    return _scale_descendants(_merge(tree, new_siblings), changed)


def rescale_tree(tree: List[WeightedNode], target_total: float) -> List[WeightedNode]:
    """Resize the root group to a new total (e.g. a section weight edit) and cascade."""
    roots = children_of(tree, None)
    if not roots:
        return list(tree)
    scaled = distribute_remaining(roots, target_total)
    return _scale_descendants(_merge(tree, scaled), [r.id for r in scaled])


def _insert_index(tree: List[WeightedNode], mode: str, relative_id: Optional[str]) -> int:
    if mode == "end" or relative_id is None:
        return len(tree)

    rel_index = next((i for i, n in enumerate(tree) if n.id == relative_id), None)
    if rel_index is None:
        raise KeyError(relative_id)

    if mode == "above":
        return rel_index

    below = descendant_ids(tree, relative_id)
    if mode == "subtask":
        last = rel_index
        for i, n in enumerate(tree):
            if n.id in below:
                last = max(last, i)
        return last + 1

    if mode == "below":
        i = rel_index + 1
        while i < len(tree) and tree[i].id in below:
            i += 1
        return i

    raise ValueError(f"Unsupported insert mode: {mode}")


def insert_node(
    tree: List[WeightedNode],
    new_node: WeightedNode,
    mode: str = "end",
    relative_id: Optional[str] = None,
    root_total: float = TOTAL_WEIGHT,
    rebalance: bool = True,
) -> List[WeightedNode]:
    """Insert a node relative to another one.

    Modes: "end" appends under new_node.parent_id, "above"/"below" become a
    sibling of relative_id, "subtask" becomes its last child. With rebalance
    the new node gets an equal share of its group and the other siblings (and
    their subtrees) shrink to make room.
    """
    index = _insert_index(tree, mode, relative_id)

    parent_id = new_node.parent_id
    if mode == "subtask":
        parent_id = relative_id
    elif mode in ("above", "below") and relative_id is not None:
        parent_id = next(n for n in tree if n.id == relative_id).parent_id

    node = replace(new_node, parent_id=parent_id, weight=0.0)
    result = list(tree)
    result.insert(index, node)

    if not rebalance:
        return result

    siblings = children_of(result, parent_id)
    target = target_total_for(result, node, root_total)
    rebalanced = rebalance_with_new(siblings, node.id, target)
    return _scale_descendants(_merge(result, rebalanced), [s.id for s in rebalanced])


def delete_node(
    tree: List[WeightedNode],
    node_id: str,
    root_total: float = TOTAL_WEIGHT,
) -> List[WeightedNode]:
    """Remove a node with all its descendants and hand its weight back to its siblings."""
    node = next((n for n in tree if n.id == node_id), None)
    if node is None:
        raise KeyError(node_id)

    doomed = descendant_ids(tree, node_id) | {node_id}
    remaining = [n for n in tree if n.id not in doomed]

    siblings = children_of(remaining, node.parent_id)
    if not siblings:
        return remaining

    target = target_total_for(remaining, node, root_total)
    scaled = distribute_remaining(siblings, target)
    return _scale_descendants(_merge(remaining, scaled), [s.id for s in scaled])


def move_node(tree: List[WeightedNode], from_index: int, to_index: int) -> List[WeightedNode]:
    """Array reorder (drag-and-drop result). Parents are kept; codes need a renumber."""
    result = list(tree)
    moved = result.pop(from_index)
    result.insert(to_index, moved)
    return result
