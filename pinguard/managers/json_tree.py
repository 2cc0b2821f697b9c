import json
import logging
import os
from typing import Any, Dict

from pinguard.core.errors import ResolutionFailure
from pinguard.core.model import Artifact, DependencyNode, InvalidVersionSpecification, VersionConstraint
from pinguard.managers.base import DependencySelector, PackageManager

TREE_FILE = "dependency-tree.json"


class JsonTreeManager(PackageManager):
    """Reads the tree written by ``mvn dependency:tree -DoutputType=json``."""

    @property
    def name(self) -> str:
        return "Dependency Tree (JSON)"

    @property
    def lock_files(self) -> list[str]:
        return [TREE_FILE]

    def get_dependencies(self, selector: DependencySelector) -> DependencyNode:
        if not os.path.exists(TREE_FILE):
            raise ResolutionFailure(f"{TREE_FILE} not found.")

        logging.debug(f"Parsing {TREE_FILE}...")
        try:
            with open(TREE_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ResolutionFailure(f"Error reading {TREE_FILE}: {e}") from e

        counter = {"nodes": 0}

        def build_tree(current_data: Dict[str, Any], depth=0):
            node = self._to_node(current_data)
            node.expanded = (depth == 0)
            counter["nodes"] += 1

            for child_data in current_data.get("children", []):
                child_scope = child_data.get("scope", "compile")
                child_optional = self._flag(child_data.get("optional"))
                if not selector.select(child_scope, child_optional, depth + 1):
                    logging.debug(f"Pruned {child_data.get('artifactId')} at depth {depth + 1}")
                    continue
                node.children.append(build_tree(child_data, depth + 1))
            return node

        root_node = build_tree(data)
        root_node.scope = ""
        logging.debug(f"JSON tree built. {counter['nodes']} nodes.")
        return root_node

    @staticmethod
    def _flag(value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)

    def _to_node(self, data: Dict[str, Any]) -> DependencyNode:
        try:
            group = data["groupId"]
            name = data["artifactId"]
        except KeyError as e:
            raise ResolutionFailure(f"Dependency entry without {e.args[0]} in {TREE_FILE}") from e

        version = data.get("version", "")
        constraint_text = data.get("versionConstraint") or version

        try:
            constraint = VersionConstraint.parse(constraint_text)
        except InvalidVersionSpecification as e:
            raise ResolutionFailure(f"Invalid version constraint for {group}:{name}: {e}") from e

        return DependencyNode(
            Artifact(group, name, version, data.get("type") or "jar", data.get("classifier") or ""),
            constraint,
            scope=data.get("scope") or "compile",
            optional=self._flag(data.get("optional")),
        )
