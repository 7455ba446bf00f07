from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class AuditEntry:
    timestamp: datetime
    action: str              # "weight_edit", "toggle", "sync", "reset", "save", "upload", "insert", "delete"
    scope_key: str
    node_key: Optional[str]
    field_changed: str
    old_value: str
    new_value: str
    rationale: str = ""
