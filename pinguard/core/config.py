import logging
import os
import sys
from dataclasses import fields, replace
from typing import Any, Dict, Optional

from pinguard.core.errors import ConfigurationError
from pinguard.core.model import PolicyConfig

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

CONFIG_FILE = "pinguard.toml"
PYPROJECT_FILE = "pyproject.toml"

# allow-ranges-with-identical-bounds -> allow_ranges_with_identical_bounds
KEYS = {f.name.replace("_", "-"): f.name for f in fields(PolicyConfig)}
LIST_KEYS = {"excluded_scopes", "ignores"}


def read_table(path: str = ".") -> Dict[str, Any]:
    """Returns the raw policy table, or an empty dict when no configuration exists."""
    standalone = os.path.join(path, CONFIG_FILE)
    pyproject = os.path.join(path, PYPROJECT_FILE)

    try:
        if os.path.exists(standalone):
            logging.debug(f"Reading policy from {standalone}")
            with open(standalone, "rb") as f:
                return tomllib.load(f)

        if os.path.exists(pyproject):
            with open(pyproject, "rb") as f:
                table = tomllib.load(f).get("tool", {}).get("pinguard", {})
            if table:
                logging.debug(f"Reading policy from [tool.pinguard] in {pyproject}")
            return table

    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in policy configuration: {e}") from e

    return {}


def policy_from_table(table: Dict[str, Any], base: Optional[PolicyConfig] = None) -> PolicyConfig:
    values = {}
    for key, value in table.items():
        field_name = KEYS.get(key)
        if field_name is None:
            raise ConfigurationError(f"Unknown policy option {key!r}")

        if field_name in LIST_KEYS:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigurationError(f"Policy option {key!r} must be a list of strings")
            values[field_name] = tuple(value)
        else:
            if not isinstance(value, bool):
                raise ConfigurationError(f"Policy option {key!r} must be true or false")
            values[field_name] = value

    policy = replace(base or PolicyConfig(), **values)
    policy.validate()
    return policy


def load_policy(path: str = ".", overrides: Optional[Dict[str, Any]] = None) -> PolicyConfig:
    """
    Loads the policy for the project at ``path``.

    ``pinguard.toml`` wins over ``[tool.pinguard]`` in ``pyproject.toml``. Overrides use the
    same kebab-case keys as the file and are applied on top of it.
    """
    policy = policy_from_table(read_table(path))
    if overrides:
        policy = policy_from_table(overrides, base=policy)
    logging.info(f"Policy loaded: {policy}")
    return policy
