from dataclasses import dataclass


@dataclass
class ProjectType:
    id: str
    code: str    # "DNB", "DSN", "BLD"
    name: str

    @property
    def scope_key(self) -> str:
        return self.id
