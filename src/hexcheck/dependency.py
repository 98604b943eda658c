from dataclasses import dataclass
from typing import Optional

from .versioning import is_newer


@dataclass(frozen=True)
class Dependency:
    """A dependency declared in a manifest, with its 0-based line offset."""

    name: str
    version: str
    line: int
    source_file: str = ""


@dataclass(frozen=True)
class CheckResult:
    """Outcome of looking up one dependency in the registry."""

    dependency: Dependency
    latest_version: Optional[str] = None

    @property
    def has_update(self) -> bool:
        if not self.latest_version:
            return False
        return is_newer(self.dependency.version, self.latest_version)
