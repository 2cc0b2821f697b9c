import os
import re
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

from pinguard.core.errors import ResolutionFailure
from pinguard.core.model import LATEST, Artifact, DependencyNode, InvalidVersionSpecification, VersionConstraint
from pinguard.managers.base import DependencySelector, PackageManager

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

GROUP = "pypi"

# Matches: package==1.0, package[extra]>=1.0,<2, package
re_req = re.compile(r'^([a-zA-Z0-9\-_.]+)\s*(\[[^\]]*\])?\s*([^;#@]*)(@)?')
re_clause = re.compile(r'^(===|==|~=|!=|<=|>=|<|>)\s*(\S+)$')
re_operator_space = re.compile(r'(===|==|~=|!=|<=|>=|<|>|\^|~)\s+')
re_clause_sep = re.compile(r'[\s,]+')


def _bump(version: str) -> str:
    """1.4 -> 1.5, 2 -> 3. Only the leading digits of the last component count."""
    parts = version.split(".")
    digits = re.match(r"\d+", parts[-1])
    if not digits:
        return version
    parts[-1] = str(int(digits.group()) + 1)
    return ".".join(parts)


def _range(lower: Optional[Tuple[str, bool]], upper: Optional[Tuple[str, bool]]) -> str:
    if lower and upper and lower == upper and lower[1]:
        return f"[{lower[0]}]"
    opening = "[" if lower and lower[1] else "("
    closing = "]" if upper and upper[1] else ")"
    return f"{opening}{lower[0] if lower else ''},{upper[0] if upper else ''}{closing}"


def pep440_to_constraint(specifier: str) -> str:
    """Translates a PEP 440 specifier set into a version constraint (fixed, range or LATEST)."""
    specifier = specifier.strip()
    if not specifier:
        return LATEST

    lower = upper = None
    pinned = None
    for clause in specifier.split(","):
        match = re_clause.match(clause.strip())
        if not match:
            logging.warning(f"Ignoring unsupported specifier {clause.strip()!r}")
            continue

        op, ver = match.groups()
        if op in ("==", "===") and not ver.endswith(".*"):
            pinned = ver
            lower = upper = (ver, True)
        elif op == "==":
            base = ver[:-2]
            lower, upper = (base, True), (_bump(base), False)
        elif op == "~=":
            prefix = ver.rsplit(".", 1)[0]
            lower = (ver, True)
            upper = (_bump(prefix), False) if prefix != ver else upper
        elif op == ">=":
            lower = (ver, True)
        elif op == ">":
            lower = (ver, False)
        elif op == "<=":
            upper = (ver, True)
        elif op == "<":
            upper = (ver, False)
        else:
            logging.debug(f"Specifier {clause.strip()} does not narrow the range, skipped.")

    if pinned is not None and lower == upper == (pinned, True):
        return pinned
    if lower is None and upper is None:
        return LATEST
    return _range(lower, upper)


def _poetry_clause(clause: str) -> str:
    """Rewrites one Poetry clause as PEP 440 clauses, "" when it allows anything."""
    if clause in ("", "*"):
        return ""

    if clause.startswith("^"):
        ver = clause[1:]
        parts = ver.split(".")
        # ^0.2.3 only allows 0.2.x, ^0.0.3 only 0.0.3
        index = next((i for i, p in enumerate(parts) if p != "0"), len(parts) - 1)
        return f">={ver},<{_bump('.'.join(parts[:index + 1]))}"

    if clause.startswith("~") and not clause.startswith("~="):
        ver = clause[1:]
        parts = ver.split(".")
        prefix = ".".join(parts[:2]) if len(parts) > 1 else parts[0]
        return f">={ver},<{_bump(prefix)}"

    if clause[0].isdigit():
        return f"=={clause}"

    return clause


def poetry_to_constraint(constraint: str) -> str:
    alternatives = constraint.split("||")
    if len(alternatives) > 1:
        translated = [poetry_to_constraint(a) for a in alternatives]
        if LATEST in translated:
            return LATEST
        # One restriction per alternative, pinned versions become [x]
        return ",".join(t if t[0] in "[(" else f"[{t}]" for t in translated)

    # ">= 1.0 <2.0" and ">=1.0,<2.0" both mean AND
    clauses = re_clause_sep.split(re_operator_space.sub(r"\1", constraint.strip()))
    return pep440_to_constraint(",".join(filter(None, (_poetry_clause(c) for c in clauses))))


class PythonManager(PackageManager):
    @property
    def name(self) -> str:
        return "PyPI (Pip)"

    @property
    def lock_files(self) -> list[str]:
        return ["poetry.lock", "pyproject.toml"]

    def detect(self, files: list[str]) -> bool:
        if super().detect(files):
            return True

        for f in files:
            if "requirements" in f and f.endswith(".txt"):
                return True

        return False

    def get_dependencies(self, selector: DependencySelector) -> DependencyNode:
        try:
            if os.path.exists("poetry.lock"):
                return self._parse_poetry(selector)

            req_files = sorted(f for f in os.listdir(".") if "requirements" in f and f.endswith(".txt"))
            if req_files:
                return self._parse_requirements(req_files, selector)

            elif os.path.exists("pyproject.toml"):
                return self._parse_pyproject(selector)

        except tomllib.TOMLDecodeError as e:
            raise ResolutionFailure(f"Invalid TOML: {e}") from e

        raise ResolutionFailure("No Python dependency file found.")

    @staticmethod
    def _node(name: str, constraint_text: str, scope="compile", optional=False) -> DependencyNode:
        try:
            constraint = VersionConstraint.parse(constraint_text)
        except InvalidVersionSpecification as e:
            raise ResolutionFailure(f"Invalid version constraint for {name}: {e}") from e
        return DependencyNode(Artifact(GROUP, name, constraint_text, "dist"), constraint, scope=scope, optional=optional)

    @staticmethod
    def _root(name: str, version: str = "") -> DependencyNode:
        return DependencyNode(Artifact(GROUP, name, version, "project"), VersionConstraint.parse(version),
                              scope="", expanded=True)

    @staticmethod
    def _attach(root: DependencyNode, node: DependencyNode, selector: DependencySelector):
        if selector.select(node.scope, node.optional, 1):
            root.children.append(node)

    def _parse_poetry(self, selector: DependencySelector) -> DependencyNode:
        logging.debug("Parsing poetry.lock...")
        with open("poetry.lock", "rb") as f:
            data = tomllib.load(f)

        root = self._root("Poetry Project")
        for pkg in data.get("package", []):
            name = pkg.get("name")
            version = pkg.get("version")
            if name and version:
                scope = "test" if pkg.get("category") == "dev" else "compile"
                self._attach(root, self._node(name, version, scope, bool(pkg.get("optional"))), selector)

        return root

    def _parse_requirement(self, line: str, scope="compile", optional=False) -> Optional[DependencyNode]:
        match = re_req.match(line.strip())
        if not match:
            return None

        name = match.group(1)
        if match.group(4):
            # Direct references (pkg @ url) carry no version at all
            return self._node(name, "", scope, optional)
        return self._node(name, pep440_to_constraint(match.group(3)), scope, optional)

    def _parse_requirements(self, filenames: list[str], selector: DependencySelector) -> DependencyNode:
        logging.debug(f"Parsing requirements files: {filenames}")

        display_name = filenames[0] if len(filenames) == 1 else f"Requirements ({len(filenames)} files)"
        root = self._root(display_name)

        for filename in filenames:
            scope = "test" if re.search(r"dev|test", filename) else "compile"
            try:
                with open(filename, "r", encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if not line or line.startswith(("#", "-")): continue

                        node = self._parse_requirement(line, scope)
                        if node:
                            self._attach(root, node, selector)
            except OSError as e:
                raise ResolutionFailure(f"Error reading {filename}: {e}") from e

        return root

    def _parse_pyproject(self, selector: DependencySelector) -> DependencyNode:
        logging.debug("Parsing pyproject.toml (PEP 621)...")
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)

        project = data.get("project", {})
        poetry = data.get("tool", {}).get("poetry", {})
        project_name = project.get("name") or poetry.get("name") or "Python Project"

        root = self._root(project_name, str(project.get("version") or poetry.get("version") or ""))

        # PEP 621
        for dep_str in project.get("dependencies", []):
            node = self._parse_requirement(dep_str)
            if node:
                self._attach(root, node, selector)

        for deps in project.get("optional-dependencies", {}).values():
            for dep_str in deps:
                node = self._parse_requirement(dep_str, optional=True)
                if node:
                    self._attach(root, node, selector)

        # Poetry (Legacy)
        for name, spec, scope in self._poetry_dependencies(poetry):
            if name == "python": continue
            if isinstance(spec, dict):
                node = self._node(name, poetry_to_constraint(spec["version"]) if "version" in spec else "",
                                  scope, bool(spec.get("optional")))
            else:
                node = self._node(name, poetry_to_constraint(str(spec)), scope)
            self._attach(root, node, selector)

        return root

    @staticmethod
    def _poetry_dependencies(poetry: Dict[str, Any]) -> List[Tuple[str, Any, str]]:
        found = [(n, s, "compile") for n, s in poetry.get("dependencies", {}).items()]
        found += [(n, s, "test") for n, s in poetry.get("dev-dependencies", {}).items()]
        for group in poetry.get("group", {}).values():
            found += [(n, s, "test") for n, s in group.get("dependencies", {}).items()]
        return found
