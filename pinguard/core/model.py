import hashlib
import re
from dataclasses import dataclass, field
from functools import total_ordering
from typing import List, Optional, Tuple

from pinguard.core.errors import ConfigurationError

LATEST = "LATEST"
RELEASE = "RELEASE"
SNAPSHOT_SUFFIX = "-SNAPSHOT"

KNOWN_SCOPES = ("compile", "provided", "runtime", "test", "system", "import")

# Qualifiers sorted the way Maven orders them, "" is a plain release
_QUALIFIERS = ["alpha", "beta", "milestone", "rc", "snapshot", "", "sp"]
_QUALIFIER_ALIASES = {"a": "alpha", "b": "beta", "m": "milestone", "cr": "rc", "ga": "", "final": "", "release": ""}
_RELEASE_ITEM = (1, 0, "")


class InvalidVersionSpecification(ValueError):
    pass


def _item_key(token: str) -> Tuple[int, int, str]:
    if token.isdigit():
        number = int(token)
        return _RELEASE_ITEM if number == 0 else (4, number, "")

    name = _QUALIFIER_ALIASES.get(token, token)
    if name not in _QUALIFIERS:
        return (3, 0, name)

    rank = _QUALIFIERS.index(name)
    if name == "":
        return _RELEASE_ITEM
    if name == "sp":
        return (2, 0, "")
    return (0, rank, "")


@total_ordering
class Version:
    """A version string ordered like Maven's generic version scheme."""

    def __init__(self, text: str):
        self.text = text.strip()
        items = [_item_key(t) for t in re.findall(r"\d+|[a-zA-Z]+", self.text.lower())]
        while items and items[-1] == _RELEASE_ITEM:
            items.pop()
        self._key = tuple(items)

    def _padded(self, other: "Version"):
        size = max(len(self._key), len(other._key))
        mine = self._key + (_RELEASE_ITEM,) * (size - len(self._key))
        theirs = other._key + (_RELEASE_ITEM,) * (size - len(other._key))
        return mine, theirs

    def __eq__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        mine, theirs = self._padded(other)
        return mine == theirs

    def __lt__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        mine, theirs = self._padded(other)
        return mine < theirs

    def __hash__(self):
        return hash(self._key)

    def __str__(self):
        return self.text

    def __repr__(self):
        return f"Version({self.text!r})"


@dataclass(frozen=True)
class Bound:
    version: Version
    inclusive: bool


@dataclass(frozen=True)
class Restriction:
    lower: Optional[Bound]
    upper: Optional[Bound]

    def contains(self, version: Version) -> bool:
        if self.lower is not None:
            if version < self.lower.version:
                return False
            if version == self.lower.version and not self.lower.inclusive:
                return False
        if self.upper is not None:
            if version > self.upper.version:
                return False
            if version == self.upper.version and not self.upper.inclusive:
                return False
        return True

    def __str__(self):
        if self.lower is not None and self.upper is not None and self.lower == self.upper:
            return f"[{self.lower.version}]"
        left = "" if self.lower is None else str(self.lower.version)
        right = "" if self.upper is None else str(self.upper.version)
        opening = "[" if self.lower is not None and self.lower.inclusive else "("
        closing = "]" if self.upper is not None and self.upper.inclusive else ")"
        return f"{opening}{left},{right}{closing}"


_RESTRICTION = re.compile(r"\s*([\[(])([^\[\]()]*)([\])])\s*(,|$)")


@dataclass(frozen=True)
class VersionRange:
    restrictions: Tuple[Restriction, ...]

    @property
    def lower_bound(self) -> Optional[Bound]:
        return self.restrictions[0].lower

    @property
    def upper_bound(self) -> Optional[Bound]:
        return self.restrictions[-1].upper

    def contains(self, version: Version) -> bool:
        return any(r.contains(version) for r in self.restrictions)

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        restrictions = []
        position = 0
        text = text.strip()

        while position < len(text):
            match = _RESTRICTION.match(text, position)
            if not match:
                raise InvalidVersionSpecification(f"Invalid version range {text!r}")
            restrictions.append(cls._parse_restriction(match.group(1), match.group(2), match.group(3), text))
            position = match.end()

        if not restrictions or text.endswith(","):
            raise InvalidVersionSpecification(f"Invalid version range {text!r}")

        restrictions.sort(key=lambda r: (r.lower is not None, r.lower.version if r.lower else Version("")))
        return cls(tuple(restrictions))

    @staticmethod
    def _parse_restriction(opening: str, body: str, closing: str, text: str) -> Restriction:
        lower_inclusive = opening == "["
        upper_inclusive = closing == "]"

        if "," not in body:
            # [1.0] pins a single version and must be closed on both sides
            if not (lower_inclusive and upper_inclusive) or not body.strip():
                raise InvalidVersionSpecification(f"Single version must be surrounded by []: {text!r}")
            bound = Bound(Version(body), True)
            return Restriction(bound, bound)

        left, _, right = body.partition(",")
        if "," in right:
            raise InvalidVersionSpecification(f"Invalid version range {text!r}")

        lower = Bound(Version(left), lower_inclusive) if left.strip() else None
        upper = Bound(Version(right), upper_inclusive) if right.strip() else None

        if lower is not None and upper is not None:
            if upper.version < lower.version:
                raise InvalidVersionSpecification(f"Range defies version ordering: {text!r}")
            if lower.version == upper.version and not (lower.inclusive and upper.inclusive):
                raise InvalidVersionSpecification(f"Range is empty: {text!r}")

        return Restriction(lower, upper)

    def __str__(self):
        return ",".join(str(r) for r in self.restrictions)


@dataclass(frozen=True)
class VersionConstraint:
    raw: str
    version: Optional[Version] = None
    range: Optional[VersionRange] = None

    @classmethod
    def parse(cls, text: Optional[str]) -> "VersionConstraint":
        raw = (text or "").strip()
        if not raw:
            return cls(raw)
        if raw[0] in "[(":
            return cls(raw, range=VersionRange.parse(raw))
        return cls(raw, version=Version(raw))

    @property
    def alias(self) -> Optional[str]:
        if self.version is not None and self.version.text in (LATEST, RELEASE):
            return self.version.text
        return None

    def __str__(self):
        return self.raw


@dataclass(frozen=True)
class Artifact:
    group: str
    name: str
    version: str
    type: str = "jar"
    classifier: str = ""

    def __str__(self):
        parts = [self.group, self.name, self.type]
        if self.classifier:
            parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)


@dataclass
class DependencyNode:
    artifact: Artifact
    constraint: VersionConstraint
    scope: str = "compile"
    optional: bool = False
    children: List['DependencyNode'] = field(default_factory=list)

    # UI
    expanded: bool = False

    @classmethod
    def of(cls, coordinate: str, scope: str = "compile", optional: bool = False,
           children: Optional[List['DependencyNode']] = None) -> 'DependencyNode':
        """Builds a node from ``group:name[:type[:classifier]]:version``."""
        parts = coordinate.split(":")
        if len(parts) < 3 or len(parts) > 5:
            raise InvalidVersionSpecification(f"Invalid coordinate {coordinate!r}")

        group, name, version = parts[0], parts[1], parts[-1]
        type_ = parts[2] if len(parts) >= 4 else "jar"
        classifier = parts[3] if len(parts) == 5 else ""

        return cls(
            Artifact(group, name, version, type_, classifier),
            VersionConstraint.parse(version),
            scope=scope,
            optional=optional,
            children=list(children or []),
        )

    def __str__(self):
        return f"{self.artifact} ({self.scope})" if self.scope else str(self.artifact)


@dataclass(frozen=True)
class PolicyConfig:
    allow_snapshots: bool = False
    allow_latest: bool = False
    allow_release: bool = False
    allow_ranges: bool = False
    allow_ranges_with_identical_bounds: bool = False
    exclude_optionals: bool = False
    excluded_scopes: Tuple[str, ...] = ()
    ignores: Tuple[str, ...] = ()

    def validate(self) -> None:
        for scope in self.excluded_scopes:
            if not isinstance(scope, str) or not scope.strip():
                raise ConfigurationError(f"Excluded scopes must be non-empty names, got {scope!r}")
            if scope not in KNOWN_SCOPES:
                raise ConfigurationError(
                    f"Unknown scope {scope!r} in excluded scopes (expected one of {', '.join(KNOWN_SCOPES)})"
                )
        for pattern in self.ignores:
            if not isinstance(pattern, str):
                raise ConfigurationError(f"Exclusion patterns must be strings, got {pattern!r}")

    def cache_id(self) -> str:
        return hashlib.sha256(repr(self).encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class Violation:
    node: DependencyNode
    path: Tuple[DependencyNode, ...]
    constraint: VersionConstraint
    reason: str = ""

    def describe(self) -> str:
        via = ""
        if self.path:
            via = " via " + " -> ".join(str(n.artifact) for n in self.path)
        return f"Dependency {self.node}{via} is referenced with a banned dynamic version {self.constraint}"
