class PinguardError(Exception):
    """Base class for every failure reported by pinguard."""


class ConfigurationError(PinguardError):
    """The policy or one of its patterns is unusable. Raised before any traversal."""


class ResolutionFailure(PinguardError):
    """The dependency resolver could not produce a tree."""


class PolicyViolation(PinguardError):
    """One or more rules failed. The message is the full, aggregated report."""
