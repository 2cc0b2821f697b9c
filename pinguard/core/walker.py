import enum
import logging
from contextlib import contextmanager
from typing import Iterator, List

from pinguard.core.classifier import classify
from pinguard.core.matcher import ArtifactExclusionMatcher
from pinguard.core.model import DependencyNode, PolicyConfig, Violation


class Visit(enum.Enum):
    CONTINUE = "continue"
    SKIP_SUBTREE = "skip-subtree"


class DependencyTreeWalker:
    """
    Depth-first walk over a resolved tree collecting banned dynamic versions.

    The root is the project itself and is never checked. Every other node is either
    excluded (not checked, children still walked), banned (recorded, children not walked)
    or accepted. Excluded and accepted nodes sit on the ancestor path while their
    children are visited.
    """

    def __init__(self, policy: PolicyConfig, matcher: ArtifactExclusionMatcher):
        self.policy = policy
        self.matcher = matcher
        self.path: List[DependencyNode] = []
        self.violations: List[Violation] = []

    def walk(self, root: DependencyNode) -> List[Violation]:
        logging.debug(f"Walking dependency tree of {root.artifact}")
        for child in root.children:
            self._visit(child)
        return self.violations

    def _visit(self, node: DependencyNode) -> None:
        if self.visit_enter(node) is Visit.SKIP_SUBTREE:
            return

        with self._frame(node):
            # One children iterator per node on the path, trees may be deeper than the recursion limit
            stack: List[Iterator[DependencyNode]] = [iter(node.children)]
            while stack:
                child = next(stack[-1], None)
                if child is None:
                    stack.pop()
                    # node itself is popped by the frame
                    if stack:
                        self.path.pop()
                    continue

                if self.visit_enter(child) is Visit.SKIP_SUBTREE:
                    continue

                self.path.append(child)
                stack.append(iter(child.children))

    @contextmanager
    def _frame(self, node: DependencyNode) -> Iterator[None]:
        depth = len(self.path)
        self.path.append(node)
        try:
            yield
        finally:
            del self.path[depth:]

    def is_excluded(self, node: DependencyNode) -> bool:
        if node.scope in self.policy.excluded_scopes:
            return True
        if node.optional and self.policy.exclude_optionals:
            return True
        return self.matcher.matches(node)

    def visit_enter(self, node: DependencyNode) -> Visit:
        logging.debug(f"Found node {node} with version constraint {node.constraint}")

        if self.is_excluded(node):
            return Visit.CONTINUE

        reason = classify(node.constraint, self.policy)
        if reason is None:
            return Visit.CONTINUE

        violation = Violation(node, tuple(self.path), node.constraint, reason)
        self.violations.append(violation)
        logging.warning(violation.describe())
        return Visit.SKIP_SUBTREE
