import logging
import os
from typing import Optional, Set

from .dependencies import DependencyTracker, is_declaration
from .registry import FileRecord, VirtualFileRegistry

logger = logging.getLogger(__name__)


def file_exists(path: str) -> bool:
    """Check a file exists in the file system."""
    return os.path.isfile(path)


def read_file(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


class OnDemandFileLoader:
    """
    Resolves any path the compiler asks about by consulting the registry first and the
    file system second. Files found on disk are registered at their next version; nothing
    is ever invented, so a file missing from both places is reported as `None`.

    Files that came from disk stay tied to it: once one disappears, its record is
    dropped on the next lookup. Build targets set through the registry have no such tie.
    """

    def __init__(self, files: VirtualFileRegistry, dependencies: DependencyTracker):
        self.files = files
        self.dependencies = dependencies
        self._from_disk: Set[str] = set()

    def _forget(self, path: str) -> None:
        self.files.remove(path)
        self._from_disk.discard(path)

    def resolve(self, path: str, requested_by: Optional[str] = None) -> Optional[str]:
        """
        Returns the text snapshot for `path`, loading it from disk when needed.
        `requested_by` names the build target currently being emitted, if any.
        """
        record = self.files.get(path)

        if record is not None and path in self._from_disk and not file_exists(path):
            logger.debug("%s is gone from disk, dropping it from the registry", path)
            self._forget(path)
            return None

        if record is None:
            if not file_exists(path):
                self._forget(path)
                return None

            try:
                text = read_file(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Could not read %s: %s", path, e)
                return None

            record = self.files.set(path, text)
            self._from_disk.add(path)
            logger.debug("Loaded %s from disk", path)

        # Make the build target refresh when any external declaration changes.
        if requested_by and requested_by != path and is_declaration(path):
            self.dependencies.record(requested_by, path)

        return record.text

    def file_exists(self, path: str) -> bool:
        if path in self._from_disk and not file_exists(path):
            self._forget(path)
            return False
        return path in self.files or file_exists(path)

    def refresh(self, path: str) -> Optional[FileRecord]:
        """Re-reads a registered file from disk, dropping it when it has disappeared."""
        if path not in self.files:
            return None

        try:
            text = read_file(path)
        except FileNotFoundError:
            logger.debug("%s was deleted, dropping it from the registry", path)
            self._forget(path)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not reload %s: %s", path, e)
            return None

        return self.files.set(path, text)
