"""Master-to-scope structural reconciliation by natural key."""

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple
from models.node import WeightedNode
from models.project_type import ProjectType
from models.sync import SyncResult
from config.defaults import MASTER_TYPE_CODES, NEW_ITEM_ENABLED_DEFAULT

logger = logging.getLogger(__name__)

KeyFn = Callable[[WeightedNode], str]


def natural_key(node: WeightedNode) -> str:
    return node.natural_key


def _norm(key: str) -> str:
    return (key or "").strip().upper()


def _new_id(node: WeightedNode) -> str:
    return uuid.uuid4().hex


def dedupe(
    derived: List[WeightedNode],
    key_fn: KeyFn = natural_key,
) -> Tuple[List[WeightedNode], List[WeightedNode]]:
    """Keep the first node per natural key. Returns (kept, duplicates)."""
    seen: Set[str] = set()
    kept, duplicates = [], []
    for node in derived:
        key = _norm(key_fn(node))
        if key in seen:
            duplicates.append(node)
        else:
            seen.add(key)
            kept.append(node)
    if duplicates:
        logger.info("Collapsed %d duplicate record(s): %s",
                    len(duplicates), [key_fn(d) for d in duplicates])
    return kept, duplicates


def sync(
    master: List[WeightedNode],
    derived: List[WeightedNode],
    key_fn: KeyFn = natural_key,
    id_factory: Callable[[WeightedNode], str] = _new_id,
    new_enabled: bool = NEW_ITEM_ENABLED_DEFAULT,
) -> SyncResult:
    """Reconcile a derived collection against the master.

    Matched nodes take the master's structural fields (natural key spelling,
    name, category, position, code, parent) and keep their own enabled flag and weight.
    Master nodes missing from the derived side are created disabled with the
    master weight as their default. Derived nodes with no master match are
    deleted. The reconciled list follows the master order.
    """
    kept, duplicates = dedupe(derived, key_fn)
    derived_map: Dict[str, WeightedNode] = {_norm(key_fn(d)): d for d in kept}
    master_keys = {_norm(key_fn(m)) for m in master}

    # Master id -> derived id, so parent links can be translated
    id_map: Dict[str, str] = {}
    pending: List[Tuple[WeightedNode, Optional[WeightedNode]]] = []
    for m in master:
        d = derived_map.get(_norm(key_fn(m)))
        id_map[m.id] = d.id if d else id_factory(m)
        pending.append((m, d))

    result = SyncResult(duplicates=list(duplicates))

    for m, d in pending:
        parent_id = id_map.get(m.parent_id) if m.parent_id else None
        if d is None:
            created = WeightedNode(
                id=id_map[m.id],
                natural_key=m.natural_key,
                name=m.name,
                weight=m.weight,
                enabled=new_enabled,
                parent_id=parent_id,
                category=m.category,
                position=m.position,
                code=m.code,
                abbr=m.abbr,
            )
            result.created.append(created)
            result.reconciled.append(created)
            continue

        if d.structural_fields() != m.structural_fields() or d.parent_id != parent_id:
            updated = replace(
                d,
                natural_key=m.natural_key,
                name=m.name,
                category=m.category,
                position=m.position,
                code=m.code,
                abbr=m.abbr,
                parent_id=parent_id,
            )
            result.updated.append(updated)
            result.reconciled.append(updated)
        else:
            result.reconciled.append(d)

    orphans = [d for d in kept if _norm(key_fn(d)) not in master_keys]
    result.deleted = orphans + list(duplicates)

    logger.debug("Sync: %d created, %d updated, %d deleted",
                 len(result.created), len(result.updated), len(result.deleted))
    return result


def master_base_weights(
    master: List[WeightedNode],
    key_fn: KeyFn = natural_key,
) -> Dict[str, float]:
    """Default weights of the master keyed by natural key."""
    return {key_fn(m): float(m.weight or 0) for m in master}


def find_master_type(project_types: List[ProjectType]) -> Optional[ProjectType]:
    """Design & Build is the master scope; Build Only is the fallback."""
    def is_design_build(t: ProjectType) -> bool:
        name = t.name.lower()
        return t.code == MASTER_TYPE_CODES[0] or ("design" in name and "build" in name)

    def is_build(t: ProjectType) -> bool:
        name = t.name.lower()
        return t.code == MASTER_TYPE_CODES[1] or ("build" in name and "design" not in name)

    for match in (is_design_build, is_build):
        found = next((t for t in project_types if match(t)), None)
        if found is not None:
            return found
    return None


class SyncGuard:
    """Per-collection re-entrancy token. A second sync for a busy key is a no-op."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Set[str] = set()

    def acquire(self, key: str) -> bool:
        with self._lock:
            if key in self._active:
                return False
            self._active.add(key)
            return True

    def release(self, key: str):
        with self._lock:
            self._active.discard(key)

    @contextmanager
    def hold(self, key: str) -> Iterator[bool]:
        """Yields True when this caller owns the key, False when a sync is already running."""
        acquired = self.acquire(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)
