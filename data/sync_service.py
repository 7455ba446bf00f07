"""Load, reconcile and persist scopes through the template store.

The engine functions are pure; this module is the only place that talks to
the store. Store calls of one pass are dispatched concurrently with no
cross-record transaction. When any of them is rejected, the scope is reloaded
from the store and the in-memory result is discarded.

Sections and tasks of a stage are reconciled together as one tree, so that
root tasks keep pointing at the section records of their own scope.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from models.node import WeightedNode
from models.project_type import ProjectType
from models.sync import SaveOutcome, ScopeLoad
from engine.template_sync import SyncGuard, find_master_type, master_base_weights, sync
from engine.scope_normalizer import normalize, apply_standard_activation
from engine.renumber import renumber_stages
from data.errors import StoreError
from data.store import TemplateStore
from config.defaults import SYNC_MAX_WORKERS, NEW_ITEM_ENABLED_DEFAULT

logger = logging.getLogger(__name__)

StoreCall = Tuple[str, Callable[[], object]]

TREE_KINDS = ("section", "task")


def structural_patch(node: WeightedNode) -> dict:
    return {
        "natural_key": node.natural_key,
        "name": node.name,
        "category": node.category,
        "position": node.position,
        "code": node.code,
        "abbr": node.abbr,
        "parent_id": node.parent_id,
    }


def config_patch(node: WeightedNode) -> dict:
    return {
        "weight": round(float(node.weight), 2),
        "enabled": node.enabled,
        "code": node.code,
        "position": node.position,
    }


def kind_of(node: WeightedNode, kinds: Sequence[str]) -> str:
    """Record kind of a node in a mixed tree: roots are the first kind, the rest the second."""
    if len(kinds) == 1 or node.is_root:
        return kinds[0]
    return kinds[1]


def split_by_kind(nodes: Sequence[WeightedNode], kinds: Sequence[str]) -> Dict[str, List[WeightedNode]]:
    grouped: Dict[str, List[WeightedNode]] = {k: [] for k in kinds}
    for n in nodes:
        grouped[kind_of(n, kinds)].append(n)
    return grouped


class ScopeSyncService:
    def __init__(
        self,
        store: TemplateStore,
        guard: Optional[SyncGuard] = None,
        max_workers: int = SYNC_MAX_WORKERS,
        new_enabled: bool = NEW_ITEM_ENABLED_DEFAULT,
    ):
        self.store = store
        self.guard = guard or SyncGuard()
        self.max_workers = max_workers
        self.new_enabled = new_enabled

    def master_type(self) -> Optional[ProjectType]:
        return find_master_type(self.store.list_project_types())

    def _list(self, kinds: Sequence[str], scope_key: str) -> List[WeightedNode]:
        nodes: List[WeightedNode] = []
        for kind in kinds:
            nodes.extend(self.store.list(kind, scope_key))
        return nodes

    def _dispatch(self, calls: Sequence[StoreCall]) -> List[str]:
        """Run store calls concurrently. Returns the ids whose call was rejected."""
        failed: List[str] = []
        if not calls:
            return failed
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {pool.submit(fn): node_id for node_id, fn in calls}
            for future in as_completed(futures):
                try:
                    future.result()
                except StoreError as e:
                    logger.error("Store call for %s failed: %s", futures[future], e)
                    failed.append(futures[future])
        return failed

    def _present(
        self,
        kinds: Sequence[str],
        nodes: List[WeightedNode],
        bases: dict,
        is_master: bool = False,
    ) -> List[WeightedNode]:
        # Only derived stage scopes are normalized to the 100% total; the master
        # keeps its default weights, sections and tasks keep what they carry
        if tuple(kinds) != ("stage",):
            return list(nodes)
        if is_master:
            return renumber_stages(nodes)
        return renumber_stages(normalize(nodes, bases))

    def _load(self, kinds: Sequence[str], scope_key: str, master_key: str) -> Optional[ScopeLoad]:
        with self.guard.hold(scope_key) as acquired:
            if not acquired:
                logger.info("Sync already running for %s, trigger ignored", scope_key)
                return None

            master = self._list(kinds, master_key)
            bases = master_base_weights(master)

            if scope_key == master_key:
                return ScopeLoad(scope_key, self._present(kinds, master, bases, is_master=True), bases)

            derived = self._list(kinds, scope_key)
            result = sync(master, derived, new_enabled=self.new_enabled)

            calls: List[StoreCall] = []
            for d in result.deleted:
                calls.append((d.id, partial(self.store.delete, kind_of(d, kinds), d.id, scope_key)))
            for u in result.updated:
                calls.append((u.id, partial(
                    self.store.update, kind_of(u, kinds), u.id, scope_key, structural_patch(u))))
            for c in result.created:
                calls.append((c.id, partial(self.store.create, kind_of(c, kinds), scope_key, c)))

            failed = self._dispatch(calls)
            if failed:
                reloaded = self._list(kinds, scope_key)
                return ScopeLoad(
                    scope_key, self._present(kinds, reloaded, bases), bases, sync=result, ok=False,
                    message=f"Sync failed for {len(failed)} record(s); scope reloaded from the store.",
                )

            nodes = result.reconciled
            if result.has_changes:
                logger.info(
                    "Synced %s: %d created, %d updated, %d deleted",
                    scope_key, len(result.created), len(result.updated), len(result.deleted),
                )
                nodes = self._list(kinds, scope_key)
            return ScopeLoad(scope_key, self._present(kinds, nodes, bases), bases, sync=result)

    def load_scope(self, kind: str, scope_key: str, master_key: str) -> Optional[ScopeLoad]:
        """Sync a scope against the master, persist the structural changes, normalize.

        Returns None when a sync for the same scope is already running.
        """
        return self._load((kind,), scope_key, master_key)

    def load_tree(self, scope_key: str, master_key: str) -> Optional[ScopeLoad]:
        """Sections and tasks of one stage, synced against the master stage as a single tree."""
        return self._load(TREE_KINDS, scope_key, master_key)

    def reset_scope(
        self,
        kind: str,
        scope_key: str,
        master_key: str,
        project_type: ProjectType,
    ) -> Optional[ScopeLoad]:
        """Sync, then enable the standard stage set of the project type. Not saved yet."""
        loaded = self.load_scope(kind, scope_key, master_key)
        if loaded is None or not loaded.ok:
            return loaded
        loaded.nodes = apply_standard_activation(loaded.nodes, project_type, loaded.base_weights)
        loaded.message = f"Reset {project_type.name} to its standard stages."
        return loaded

    def save_nodes(self, kind: str, scope_key: str, nodes: Sequence[WeightedNode]) -> SaveOutcome:
        """Persist weights, flags and codes with one concurrent update per record."""
        calls = [
            (n.id, partial(self.store.update, kind, n.id, scope_key, config_patch(n)))
            for n in nodes
        ]
        failed = self._dispatch(calls)
        reloaded = self.store.list(kind, scope_key)
        if failed:
            return SaveOutcome(
                ok=False,
                nodes=reloaded,
                message=f"Failed to save {len(failed)} record(s); changes discarded and reloaded.",
                failed_ids=failed,
            )
        logger.info("Saved %d %s record(s) for %s", len(nodes), kind, scope_key)
        return SaveOutcome(ok=True, nodes=reloaded, message="Saved.")

    def replace_tree(self, kind: str, scope_key: str, nodes: Sequence[WeightedNode]) -> SaveOutcome:
        """Replace every record of a scope in one bulk call."""
        ok = self.store.bulk_update(kind, scope_key, nodes)
        reloaded = self.store.list(kind, scope_key)
        if not ok:
            logger.error("Bulk update of %s for %s rejected", kind, scope_key)
            return SaveOutcome(ok=False, nodes=reloaded, message="Save rejected; tree reloaded from the store.")
        return SaveOutcome(ok=True, nodes=reloaded, message="Saved.")

    def save_tree(self, scope_key: str, nodes: Sequence[WeightedNode]) -> SaveOutcome:
        """Replace the sections and tasks of one stage scope."""
        grouped = split_by_kind(nodes, TREE_KINDS)
        rejected = [k for k in TREE_KINDS if not self.store.bulk_update(k, scope_key, grouped[k])]
        reloaded = self._list(TREE_KINDS, scope_key)
        if rejected:
            logger.error("Bulk update of %s for %s rejected", rejected, scope_key)
            return SaveOutcome(ok=False, nodes=reloaded, message="Save rejected; tree reloaded from the store.")
        logger.info("Saved %d tree record(s) for %s", len(nodes), scope_key)
        return SaveOutcome(ok=True, nodes=reloaded, message="Saved.")
