import logging
from typing import Dict, List, Set

logger = logging.getLogger(__name__)

DECLARATION_SUFFIX = ".d.ts"


def is_declaration(path: str) -> bool:
    """Checks if a file is a type declaration file."""
    return path.endswith(DECLARATION_SUFFIX)


class DependencyTracker:
    """
    Records which declaration files were pulled in while compiling each build target.

    The build tool only watches the files it imports itself. Declaration files reached
    through type information are invisible to it, so the edges recorded here are what
    gets reported back to the build tool as extra inputs, and what a watch notification
    is routed through to find the targets that need rebuilding.
    """

    def __init__(self):
        self._edges: Dict[str, Set[str]] = {}

    def record(self, target: str, dependency: str) -> None:
        dependencies = self._edges.setdefault(target, set())
        if dependency not in dependencies:
            dependencies.add(dependency)
            logger.debug("%s now depends on %s", target, dependency)

    def clear(self, target: str) -> None:
        """Forgets the edges of a target, before it is compiled again."""
        self._edges.pop(target, None)

    def dependencies_of(self, target: str) -> List[str]:
        return sorted(self._edges.get(target, ()))

    def dependents_of(self, dependency: str) -> List[str]:
        return sorted(target for target, deps in self._edges.items() if dependency in deps)

    def targets(self) -> List[str]:
        return sorted(self._edges)
