from models.node import WeightedNode
from models.project_type import ProjectType
from models.sync import SyncResult, SaveOutcome, ScopeLoad
from models.audit import AuditEntry
