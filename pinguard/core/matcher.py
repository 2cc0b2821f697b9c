import fnmatch
import logging
from typing import Iterable, List, Optional

from pinguard.core.errors import ConfigurationError
from pinguard.core.model import DependencyNode, InvalidVersionSpecification, VersionRange

# group:artifact:version:type:scope:classifier
MAX_SEGMENTS = 6


class ArtifactPattern:
    def __init__(self, pattern: str):
        self.pattern = pattern.strip()
        if not self.pattern:
            raise ConfigurationError("Exclusion pattern must not be empty.")

        self.segments = self.pattern.split(":")
        if len(self.segments) > MAX_SEGMENTS:
            raise ConfigurationError(f"Exclusion pattern contains too many delimiters: {pattern!r}")
        if any(not segment.strip() for segment in self.segments):
            raise ConfigurationError(f"Exclusion pattern or its part is empty: {pattern!r}")

        self.version_range: Optional[VersionRange] = None
        if len(self.segments) > 2 and self.segments[2][:1] in ("[", "("):
            try:
                self.version_range = VersionRange.parse(self.segments[2])
            except InvalidVersionSpecification as e:
                raise ConfigurationError(f"Invalid version range in exclusion pattern {pattern!r}: {e}") from e

    def matches(self, node: DependencyNode) -> bool:
        artifact = node.artifact
        values = [
            artifact.group,
            artifact.name,
            artifact.version,
            artifact.type,
            node.scope or "compile",
            artifact.classifier or "",
        ]

        for index, segment in enumerate(self.segments):
            if index == 2 and self.version_range is not None and node.constraint.version is not None:
                if not self.version_range.contains(node.constraint.version):
                    return False
            elif not self._segment_matches(segment, values[index]):
                return False
        return True

    @staticmethod
    def _segment_matches(segment: str, value: str) -> bool:
        if segment == "*":
            return True
        if "*" in segment or "?" in segment:
            return fnmatch.fnmatchcase(value, segment)
        return segment == value

    def __repr__(self):
        return f"ArtifactPattern({self.pattern!r})"


class ArtifactExclusionMatcher:
    """Decides whether a node is exempt from the dynamic version check."""

    def __init__(self, patterns: Iterable[str]):
        self.patterns: List[ArtifactPattern] = [ArtifactPattern(p) for p in patterns]
        logging.debug(f"Exclusion matcher built with {len(self.patterns)} patterns.")

    def matches(self, node: DependencyNode) -> bool:
        for pattern in self.patterns:
            if pattern.matches(node):
                logging.debug(f"{node.artifact} excluded by {pattern.pattern}")
                return True
        return False
