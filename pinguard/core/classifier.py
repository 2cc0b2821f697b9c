import logging
from typing import Callable, List, NamedTuple, Optional

from pinguard.core.model import LATEST, RELEASE, SNAPSHOT_SUFFIX, PolicyConfig, VersionConstraint


class Rule(NamedTuple):
    reason: str
    applies: Callable[[VersionConstraint], bool]
    allowed: Callable[[PolicyConfig], bool]


def _fixed(text: str) -> Callable[[VersionConstraint], bool]:
    return lambda c: c.version is not None and c.version.text == text


def _is_snapshot(c: VersionConstraint) -> bool:
    return c.version is not None and c.version.text.endswith(SNAPSHOT_SUFFIX)


def _is_single_point(c: VersionConstraint) -> bool:
    if c.range is None or c.range.lower_bound is None:
        return False
    return c.range.lower_bound == c.range.upper_bound


def _is_range(c: VersionConstraint) -> bool:
    return c.range is not None


# Evaluated top to bottom, the first rule that applies decides.
RULES: List[Rule] = [
    Rule("latest", _fixed(LATEST), lambda p: p.allow_latest),
    Rule("release", _fixed(RELEASE), lambda p: p.allow_release),
    Rule("snapshot", _is_snapshot, lambda p: p.allow_snapshots),
    Rule("single-point range", _is_single_point, lambda p: p.allow_ranges or p.allow_ranges_with_identical_bounds),
    Rule("range", _is_range, lambda p: p.allow_ranges),
]


def classify(constraint: VersionConstraint, policy: PolicyConfig) -> Optional[str]:
    """
    Returns the reason why the constraint is a banned dynamic version, or None when it is allowed.
    """
    if constraint.version is None and constraint.range is None:
        logging.warning(f"Unexpected version constraint found: {constraint.raw!r}")
        return None

    for rule in RULES:
        if rule.applies(constraint):
            return None if rule.allowed(policy) else rule.reason

    return None


def is_banned(constraint: VersionConstraint, policy: PolicyConfig) -> bool:
    return classify(constraint, policy) is not None
