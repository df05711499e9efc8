import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    """A versioned text snapshot of one file as the compiler currently sees it."""

    path: str
    version: int
    text: str


class VirtualFileRegistry:
    """
    In-memory map from absolute file path to the text the compiler should see.

    Records are immutable; every mutation replaces the record with a new one whose
    version is one higher. The compiler service reads the version to decide whether
    a file needs re-analysis, so two reads of the same version must see the same text.
    A removed path keeps its last version, so a path that comes back continues from
    there instead of reusing a version that once meant different text.
    This class never touches the file system.
    """

    def __init__(self):
        self._records: Dict[str, FileRecord] = {}
        self._last_versions: Dict[str, int] = {}

    def get(self, path: str) -> Optional[FileRecord]:
        return self._records.get(path)

    def set(self, path: str, text: str) -> FileRecord:
        """
        Creates the record at version 0, or replaces its text and increments the version.
        Identical text still bumps the version, and so does re-adding a removed path.
        """
        last = self._last_versions.get(path)
        version = 0 if last is None else last + 1
        record = FileRecord(path=path, version=version, text=text)
        self._records[path] = record
        self._last_versions[path] = version
        logger.debug("Registered %s at version %d", path, version)
        return record

    def remove(self, path: str) -> None:
        if self._records.pop(path, None) is not None:
            logger.debug("Removed %s from the registry", path)

    def paths(self) -> List[str]:
        return list(self._records)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[FileRecord]:
        return iter(list(self._records.values()))
