import os
from .json_tree import JsonTreeManager
from .maven import MavenManager
from .python import PythonManager

# An exported tree wins over running the build tool
MANAGERS = [
    JsonTreeManager(),
    MavenManager(),
    PythonManager(),
]


def detect_manager():
    """Checks files in the current directory and returns the correct manager."""
    files = os.listdir(".")

    for manager in MANAGERS:
        if manager.detect(files):
            return manager

    return None
