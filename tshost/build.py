"""
The build-tool facing side of the host: per-file compile requests, the watch-cycle
hook and the program-wide diagnostics hook.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from .config import BuildConfig
from .diagnostics import DiagnosticError
from .exceptions import EmissionError
from .session_registry import DEFAULT_SESSIONS, SessionRegistry, session_key

logger = logging.getLogger(__name__)


class BuildCallbacks(Protocol):
    def add_dependency(self, file_name: str) -> None: ...

    def emit_warning(self, message: str) -> None: ...

    def emit_error(self, message: str) -> None: ...


@dataclass
class CompileRequest:
    resource_path: str
    content: str
    source_map_requested: bool = False
    build_context: str = ""
    query: str = ""


@dataclass
class CompileResult:
    code: Optional[str] = None
    source_map: Optional[Dict[str, Any]] = None
    declaration: Optional[str] = None
    error: Optional[Exception] = None
    dependencies: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class IncrementalCompilerHost:
    """Serves compile requests from a registry of long-lived compilation sessions."""

    def __init__(self, sessions: Optional[SessionRegistry] = None):
        self.sessions = sessions if sessions is not None else DEFAULT_SESSIONS

    def compile(self, request: CompileRequest, callbacks: Optional[BuildCallbacks] = None) -> CompileResult:
        """Compiles one file. A failing file never resets the shared session."""
        key = session_key(request.build_context, request.query)
        build_config = BuildConfig(
            context=request.build_context,
            resource_path=request.resource_path,
            query=request.query,
            source_map=request.source_map_requested,
            emit_error=callbacks.emit_error if callbacks is not None else None,
        )
        session = self.sessions.get_or_create(key, build_config)

        emitted = session.update_and_emit(request.resource_path, request.content)

        if callbacks is not None:
            for dependency in emitted.dependencies:
                callbacks.add_dependency(dependency)

        javascript = emitted.javascript
        if emitted.emit_skipped or javascript is None:
            logger.debug("Emission skipped for %s", request.resource_path)
            return CompileResult(error=EmissionError(request.resource_path), dependencies=emitted.dependencies)

        source_map = None
        if request.source_map_requested and emitted.source_map is not None:
            source_map = json.loads(emitted.source_map.text)
            source_map["sources"] = [request.resource_path]
            source_map["file"] = request.resource_path
            source_map["sourcesContent"] = [request.content]

        return CompileResult(
            code=javascript.text,
            source_map=source_map,
            declaration=emitted.declaration_text,
            dependencies=emitted.dependencies,
        )

    def on_watch_run(self, mtimes: Mapping[str, Any]) -> List[str]:
        """
        Watch-cycle hook. Declaration files must be refreshed before the build tool
        re-runs any request, because type information propagates upward while the
        build tool reloads from the top down.
        """
        affected: Dict[str, None] = {}
        for session in self.sessions.sessions():
            affected.update(dict.fromkeys(session.invalidate(mtimes)))
        return list(affected)

    def collect_diagnostics(self, compilation: Any = None) -> Tuple[List[DiagnosticError], List[DiagnosticError]]:
        """
        Gathers semantic problems as warnings and syntax problems as errors for every
        session, including files outside the build tool's knowledge. When a compilation
        object is given, they are pushed onto its `warnings` and `errors` lists.
        """
        warnings: List[DiagnosticError] = []
        errors: List[DiagnosticError] = []

        for session in self.sessions.sessions():
            for diagnostic in session.get_diagnostics():
                target = warnings if diagnostic.severity == "warning" else errors
                target.append(DiagnosticError(diagnostic))

        if compilation is not None:
            compilation.warnings.extend(warnings)
            compilation.errors.extend(errors)
        return warnings, errors
