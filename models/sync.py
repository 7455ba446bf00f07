from dataclasses import dataclass, field
from typing import Dict, List, Optional

from models.node import WeightedNode


@dataclass
class SyncResult:
    created: List[WeightedNode] = field(default_factory=list)
    updated: List[WeightedNode] = field(default_factory=list)
    deleted: List[WeightedNode] = field(default_factory=list)     # Orphans and duplicates
    duplicates: List[WeightedNode] = field(default_factory=list)  # Subset of deleted
    reconciled: List[WeightedNode] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.created or self.updated or self.deleted)


@dataclass
class SaveOutcome:
    """Result of persisting a tree through the template store."""
    ok: bool
    nodes: List[WeightedNode] = field(default_factory=list)
    message: str = ""
    failed_ids: List[str] = field(default_factory=list)


@dataclass
class ScopeLoad:
    """A scope as shown in the settings screen after load (and sync)."""
    scope_key: str
    nodes: List[WeightedNode] = field(default_factory=list)
    base_weights: Dict[str, float] = field(default_factory=dict)
    sync: Optional[SyncResult] = None
    ok: bool = True
    message: str = ""
