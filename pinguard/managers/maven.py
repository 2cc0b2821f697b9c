import logging
import os
import re
import subprocess
import tempfile
from typing import List, Optional

from pinguard.core.errors import ResolutionFailure
from pinguard.core.model import Artifact, DependencyNode, InvalidVersionSpecification, VersionConstraint
from pinguard.managers.base import DependencySelector, PackageManager

# "|  " or "   " per level, then "+- " or "\- " in front of the node itself
_LINE = re.compile(r"^(?P<indent>(?:[| ]  )*)(?P<marker>[+\\]- )?(?P<body>\S.*)$")
_CONSTRAINT = re.compile(r"version selected from constraint (\S+)\)(?:\s|$)")


class MavenManager(PackageManager):
    @property
    def name(self) -> str:
        return "Maven"

    @property
    def lock_files(self) -> list[str]:
        return ["pom.xml"]

    def get_dependencies(self, selector: DependencySelector) -> DependencyNode:
        logging.debug("Starting mvn dependency:tree ...")

        try:
            with tempfile.TemporaryDirectory() as tmp:
                output_file = os.path.join(tmp, "dependency-tree.txt")
                subprocess.check_output(
                    ["mvn", "-B", "-q", "dependency:tree", "-Dverbose",
                     "-DoutputType=text", f"-DoutputFile={output_file}"],
                    text=True,
                    timeout=600,
                    stderr=subprocess.STDOUT
                )
                with open(output_file, "r", encoding="utf-8") as f:
                    content = f.read()

        except subprocess.CalledProcessError as e:
            logging.error(f"Maven Error: {e.output}")
            raise ResolutionFailure(f"Fail to read Maven dependencies: {e}") from e
        except (OSError, subprocess.TimeoutExpired) as e:
            logging.error(f"Maven Error: {e}")
            raise ResolutionFailure(f"Fail to read Maven dependencies: {e}") from e

        logging.debug(f"Tree obtained. Processing {len(content)} bytes...")
        return self.parse_tree(content, selector)

    def parse_tree(self, content: str, selector: DependencySelector) -> DependencyNode:
        root: Optional[DependencyNode] = None
        parents: List[DependencyNode] = []
        pruned_at: Optional[int] = None

        for line in content.splitlines():
            match = _LINE.match(line.rstrip())
            if not match:
                continue

            depth = len(match.group("indent")) // 3 + (1 if match.group("marker") else 0)
            body = match.group("body")

            # Verbose output lists omitted duplicates and conflicts in parentheses
            if body.startswith("("):
                continue

            if pruned_at is not None:
                if depth > pruned_at:
                    continue
                pruned_at = None

            node = self._parse_node(body, is_root=(depth == 0))

            if depth == 0:
                if root is not None:
                    raise ResolutionFailure("Maven tree output contains more than one root.")
                root = node
                root.expanded = True
                parents = [root]
                continue

            if root is None or depth > len(parents):
                raise ResolutionFailure(f"Unexpected indentation in Maven tree: {line!r}")

            if not selector.select(node.scope, node.optional, depth):
                logging.debug(f"Pruned {node} at depth {depth}")
                pruned_at = depth
                continue

            del parents[depth:]
            parents[-1].children.append(node)
            parents.append(node)

        if root is None:
            raise ResolutionFailure("Maven tree output is empty.")

        return root

    @staticmethod
    def _parse_node(body: str, is_root: bool) -> DependencyNode:
        coordinate, _, notes = body.partition(" ")
        parts = coordinate.split(":")

        scope = ""
        if not is_root:
            if len(parts) not in (5, 6):
                raise ResolutionFailure(f"Invalid coordinate in Maven tree: {coordinate!r}")
            scope = parts.pop()
        elif len(parts) not in (4, 5):
            raise ResolutionFailure(f"Invalid project coordinate in Maven tree: {coordinate!r}")

        group, name, type_ = parts[0], parts[1], parts[2]
        classifier = parts[3] if len(parts) == 5 else ""
        version = parts[-1]

        declared = _CONSTRAINT.search(notes)
        constraint_text = declared.group(1) if declared else version

        try:
            constraint = VersionConstraint.parse(constraint_text)
        except InvalidVersionSpecification as e:
            raise ResolutionFailure(f"Invalid version constraint for {coordinate}: {e}") from e

        return DependencyNode(
            Artifact(group, name, version, type_, classifier),
            constraint,
            scope=scope,
            optional="(optional)" in notes,
        )
