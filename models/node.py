from dataclasses import dataclass, replace
from typing import Optional


@dataclass
class WeightedNode:
    id: str
    natural_key: str               # Cross-scope identity, e.g. "KO" or "KO-01"
    name: str = ""
    weight: float = 0.0            # Percent of the parent (or of the scope total for roots)
    enabled: bool = True
    parent_id: Optional[str] = None
    category: str = ""
    position: int = 0
    code: str = ""                 # Display code, always recomputed by the renumberer
    abbr: str = ""                 # Stage code suffix ("01-KO" -> "KO")

    def __post_init__(self):
        if not self.abbr:
            self.abbr = self.natural_key

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def with_weight(self, weight: float) -> "WeightedNode":
        return replace(self, weight=weight)

    def structural_fields(self) -> tuple:
        """Fields owned by the master collection."""
        return (self.natural_key, self.name, self.category, self.position, self.code, self.abbr)
