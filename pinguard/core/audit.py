import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from pinguard.core.errors import PolicyViolation, ResolutionFailure
from pinguard.core.matcher import ArtifactExclusionMatcher
from pinguard.core.model import DependencyNode, PolicyConfig, Violation
from pinguard.core.walker import DependencyTreeWalker
from pinguard.managers.base import DependencySelector, PackageManager


@dataclass(frozen=True)
class AuditReport:
    violations: Tuple[Violation, ...] = ()

    @property
    def count(self) -> int:
        return len(self.violations)

    @property
    def passed(self) -> bool:
        return self.count == 0

    def render(self) -> str:
        if self.passed:
            return ""

        noun = "dependency" if self.count == 1 else "dependencies"
        lines = [f"Found {self.count} {noun} with dynamic versions."]
        lines.extend(v.describe() for v in self.violations)
        return "\n".join(lines)

    def raise_for_violations(self) -> None:
        if not self.passed:
            raise PolicyViolation(self.render())


def run_audit(root: DependencyNode, policy: PolicyConfig, matcher: Optional[ArtifactExclusionMatcher] = None) -> AuditReport:
    """Audits an already resolved tree. Configuration problems fail before the walk starts."""
    if matcher is None:
        policy.validate()
        matcher = ArtifactExclusionMatcher(policy.ignores)

    walker = DependencyTreeWalker(policy, matcher)
    violations = walker.walk(root)

    logging.info(f"Audit of {root.artifact} done. {len(violations)} violations.")
    return AuditReport(tuple(violations))


def resolve(manager: PackageManager, policy: PolicyConfig) -> DependencyNode:
    """Asks the resolver for the tree, pruning excluded scopes and optionals while it is built."""
    selector = DependencySelector.from_policy(policy)

    logging.info(f"Resolving dependencies with {manager.name}")
    try:
        root = manager.get_dependencies(selector)
    except ResolutionFailure:
        raise
    except Exception as e:
        logging.error(f"Resolver error: {e}")
        raise ResolutionFailure("Could not retrieve dependency metadata for project") from e

    return root


def audit_project(manager: PackageManager, policy: PolicyConfig) -> AuditReport:
    policy.validate()
    matcher = ArtifactExclusionMatcher(policy.ignores)
    return run_audit(resolve(manager, policy), policy, matcher)
