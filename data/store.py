"""Template store interface and the in-memory implementation used by the UI and tests."""

import copy
import logging
import threading
from dataclasses import fields as dataclass_fields
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from models.node import WeightedNode
from models.project_type import ProjectType
from data.errors import RecordNotFound, StoreError
from config.defaults import RECORD_KINDS

logger = logging.getLogger(__name__)

_NODE_FIELDS = {f.name for f in dataclass_fields(WeightedNode)}


class TemplateStore(Protocol):
    def list(self, kind: str, scope_key: str) -> List[WeightedNode]:
        raise NotImplementedError

    def create(self, kind: str, scope_key: str, node: WeightedNode) -> WeightedNode:
        raise NotImplementedError

    def update(self, kind: str, node_id: str, scope_key: str, fields: dict) -> None:
        raise NotImplementedError

    def delete(self, kind: str, node_id: str, scope_key: str) -> None:
        raise NotImplementedError

    def bulk_update(self, kind: str, scope_key: str, nodes: Sequence[WeightedNode]) -> bool:
        raise NotImplementedError

    def list_project_types(self) -> List[ProjectType]:
        raise NotImplementedError


class InMemoryTemplateStore:
    """Dict-backed store. Ids listed in fail_on make create/update/delete raise StoreError."""

    def __init__(self, fail_on: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, str], List[WeightedNode]] = {}
        self._project_types: List[ProjectType] = []
        self._counter = 0
        self.fail_on: Set[str] = set(fail_on or [])

    # --- Project types ---

    def add_project_type(self, project_type: ProjectType):
        with self._lock:
            self._project_types.append(project_type)

    def list_project_types(self) -> List[ProjectType]:
        with self._lock:
            return copy.deepcopy(self._project_types)

    # --- Records ---

    def _bucket(self, kind: str, scope_key: str) -> List[WeightedNode]:
        if kind not in RECORD_KINDS:
            raise StoreError(f"Unknown record kind: {kind}")
        return self._records.setdefault((kind, scope_key), [])

    def _check(self, node_id: str):
        if node_id in self.fail_on:
            raise StoreError(f"Store rejected operation on {node_id}")

    def _next_id(self, kind: str) -> str:
        self._counter += 1
        return f"{kind}-{self._counter}"

    def list(self, kind: str, scope_key: str) -> List[WeightedNode]:
        with self._lock:
            bucket = self._bucket(kind, scope_key)
            return copy.deepcopy(sorted(bucket, key=lambda n: n.position))

    def create(self, kind: str, scope_key: str, node: WeightedNode) -> WeightedNode:
        self._check(node.id)
        with self._lock:
            bucket = self._bucket(kind, scope_key)
            record = copy.deepcopy(node)
            used = {n.id for n in bucket}
            if not record.id or record.id in used:
                record.id = self._next_id(kind)
            bucket.append(record)
            return copy.deepcopy(record)

    def update(self, kind: str, node_id: str, scope_key: str, fields: dict) -> None:
        self._check(node_id)
        unknown = set(fields) - _NODE_FIELDS
        if unknown:
            raise StoreError(f"Unknown fields: {sorted(unknown)}")
        with self._lock:
            bucket = self._bucket(kind, scope_key)
            record = next((n for n in bucket if n.id == node_id), None)
            if record is None:
                raise RecordNotFound(f"{kind} {node_id} not found in {scope_key}")
            for name, value in fields.items():
                setattr(record, name, value)

    def delete(self, kind: str, node_id: str, scope_key: str) -> None:
        self._check(node_id)
        with self._lock:
            bucket = self._bucket(kind, scope_key)
            index = next((i for i, n in enumerate(bucket) if n.id == node_id), None)
            if index is None:
                raise RecordNotFound(f"{kind} {node_id} not found in {scope_key}")
            bucket.pop(index)

    def bulk_update(self, kind: str, scope_key: str, nodes: Sequence[WeightedNode]) -> bool:
        """Replace every record of the scope; positions are rewritten 1..n."""
        if any(n.id in self.fail_on for n in nodes):
            logger.warning("Bulk update of %s/%s rejected", kind, scope_key)
            return False
        with self._lock:
            replaced = []
            for idx, n in enumerate(nodes):
                record = copy.deepcopy(n)
                record.position = idx + 1
                if not record.id:
                    record.id = self._next_id(kind)
                replaced.append(record)
            self._records[(kind, scope_key)] = replaced
        return True
