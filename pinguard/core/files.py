import hashlib
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from pinguard.core.errors import ConfigurationError, PolicyViolation

NULL_FILE_MESSAGE = "(an empty filename was given and allowNulls is false)"


def probe_filesystem_case_sensitive() -> bool:
    """
    Creates a temporary file and looks it up with an upper-cased name.
    The temp directory may not share the case rules of the checked paths.
    """
    lower = None
    try:
        handle, lower = tempfile.mkstemp(prefix="pinguard_probe")
        os.close(handle)
        upper = os.path.join(os.path.dirname(lower), os.path.basename(lower).upper())
        return not os.path.exists(upper)
    except OSError:
        logging.warning("Failed to determine filesystem case sensitivity")
        return True
    finally:
        if lower and os.path.exists(lower):
            os.remove(lower)


class RequireFiles(ABC):
    """Compares a list of files against a requirement and fails with every offending path."""

    error_message = ""

    def __init__(self, files: Sequence[Optional[str]] = (), allow_nulls: bool = False, satisfy_any: bool = False,
                 case_sensitive: bool = True, message: Optional[str] = None,
                 filesystem_case_sensitive: Optional[bool] = None):
        self.files = list(files)
        self.allow_nulls = allow_nulls
        self.satisfy_any = satisfy_any
        self.case_sensitive = case_sensitive
        self.message = message
        if filesystem_case_sensitive is None:
            filesystem_case_sensitive = probe_filesystem_case_sensitive()
        self.filesystem_case_sensitive = filesystem_case_sensitive

    @abstractmethod
    def check_file(self, file: Optional[str]) -> bool:
        pass

    def execute(self) -> None:
        if not self.allow_nulls and not self.files:
            raise ConfigurationError("The file list is empty and Null files are disabled.")

        failures: List[Optional[str]] = []
        for file in self.files:
            if not self.allow_nulls and file is None:
                failures.append(file)
            elif not self.check_file(file):
                failures.append(file)

        if self.satisfy_any:
            if len(failures) == len(self.files):
                self._fail(failures)
        elif failures:
            self._fail(failures)

    def _fail(self, failures: List[Optional[str]]) -> None:
        lines = []
        if self.message:
            lines.append(self.message)
        lines.append(self.error_message)
        for file in failures:
            lines.append(os.path.abspath(file) if file is not None else NULL_FILE_MESSAGE)
        raise PolicyViolation("\n".join(lines))

    def cache_id(self) -> str:
        return hashlib.sha256(repr(self.files).encode("utf-8")).hexdigest()[:16]

    def exists(self, file: str) -> bool:
        if self.filesystem_case_sensitive:
            return self._check_on_case_sensitive_fs(file)
        return self._check_on_case_insensitive_fs(file)

    def _check_on_case_sensitive_fs(self, file: str) -> bool:
        if self.case_sensitive:
            return os.path.exists(file)

        logging.warning("Case-insensitive checks on a case-sensitive filesystem are restricted to the name only")
        parent = os.path.dirname(os.path.abspath(file))
        if not os.path.isdir(parent):
            logging.warning(f"Cannot find parent folder for '{file}', path casing?")
            return False

        name = os.path.basename(file).lower()
        return any(child.lower() == name for child in os.listdir(parent))

    def _check_on_case_insensitive_fs(self, file: str) -> bool:
        if not self.case_sensitive:
            return os.path.exists(file)

        if not os.path.lexists(file):
            return False
        return self._listed_with_exact_case(file)

    @staticmethod
    def _listed_with_exact_case(file: str) -> bool:
        """
        The filesystem finds ``README.MD`` for ``README.md``, so every component of the
        absolute path is looked up in its parent's listing instead. Symbolic links are not followed.
        """
        path = os.path.abspath(file)
        parent = os.path.dirname(path)
        while parent != path:
            if os.path.basename(path) not in os.listdir(parent):
                logging.debug(f"'{os.path.basename(path)}' not listed in '{parent}' with the same case")
                return False
            path, parent = parent, os.path.dirname(parent)
        return True

    def __repr__(self):
        return (f"{type(self).__name__}(message={self.message!r}, files={self.files!r}, "
                f"allow_nulls={self.allow_nulls}, satisfy_any={self.satisfy_any}, "
                f"case_sensitive={self.case_sensitive}, filesystem_case_sensitive={self.filesystem_case_sensitive})")


class RequireFilesExist(RequireFiles):
    error_message = "Some required files are missing:"

    def check_file(self, file: Optional[str]) -> bool:
        if file is None:
            # only reached when nulls are allowed
            return True
        try:
            return self.exists(file)
        except OSError as e:
            logging.warning(f"Failed to fully check for file '{file}' due to exception '{e}'")
            return False


class RequireFilesDontExist(RequireFiles):
    error_message = "Some files should not exist:"

    def check_file(self, file: Optional[str]) -> bool:
        if file is None:
            return True
        try:
            return not self.exists(file)
        except OSError as e:
            logging.warning(f"Failed to fully check for file '{file}' due to exception '{e}'")
            return False
