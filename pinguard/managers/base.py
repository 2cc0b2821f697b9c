from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple

from pinguard.core.model import DependencyNode, PolicyConfig


@dataclass(frozen=True)
class DependencySelector:
    """
    Scope and optional filters applied while the tree is built.
    Direct dependencies are always kept, pruning only happens for transitive ones.
    """
    excluded_scopes: Tuple[str, ...] = ()
    exclude_optionals: bool = False

    @classmethod
    def from_policy(cls, policy: PolicyConfig) -> "DependencySelector":
        return cls(tuple(policy.excluded_scopes), policy.exclude_optionals)

    def select(self, scope: str, optional: bool, depth: int) -> bool:
        if depth <= 1:
            return True
        if scope in self.excluded_scopes:
            return False
        if optional and self.exclude_optionals:
            return False
        return True


class PackageManager(ABC):
    """Base class inherited by all resolvers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly ecosystem name (e.g., Maven, PyPI)."""
        pass

    @property
    @abstractmethod
    def lock_files(self) -> List[str]:
        """List of exact filenames to check."""
        pass

    def detect(self, files: List[str]) -> bool:
        """
        Returns True if this manager supports the current directory.
        Default implementation checks for exact match in lock_files.
        """
        for lock_file in self.lock_files:
            if lock_file in files:
                return True
        return False

    @abstractmethod
    def get_dependencies(self, selector: DependencySelector) -> DependencyNode:
        pass
