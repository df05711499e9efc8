import logging
import os
import threading
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import CompilerOptions, ParsedConfig
from .diagnostics import BareDiagnostic, PositionedDiagnostic, translate
from .files import DependencyTracker, OnDemandFileLoader, VirtualFileRegistry, is_declaration
from .service import OutputFile, load_compiler

logger = logging.getLogger(__name__)


@dataclass
class EmitResult:
    """What the compiler produced for one build target."""

    emit_skipped: bool
    outputs: List[OutputFile] = field(default_factory=list)
    declaration_text: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)

    @property
    def javascript(self) -> Optional[OutputFile]:
        return next((o for o in self.outputs if o.name.endswith(".js")), None)

    @property
    def source_map(self) -> Optional[OutputFile]:
        return next((o for o in self.outputs if o.name.endswith(".map")), None)


class SessionServiceHost:
    """
    The host interface the compiler service calls back into. It answers every question
    about files from the session's registry, falling back to the on-demand loader.
    """

    def __init__(self, session: "CompilationSession"):
        self.session = session

    def get_script_file_names(self) -> List[str]:
        # Return all file names, not just the configured ones. The build tool may have
        # traversed through a plain JavaScript file back to a TypeScript file, and if that
        # file is missing here the compiler reports it as not found.
        names = dict.fromkeys(self.session.config.file_names)
        names.update(dict.fromkeys(self.session.files.paths()))
        return list(names)

    def get_script_version(self, file_name: str) -> Optional[str]:
        record = self.session.files.get(file_name)
        return str(record.version) if record is not None else None

    def get_script_snapshot(self, file_name: str, requested_by: Optional[str] = None) -> Optional[str]:
        return self.session.loader.resolve(file_name, requested_by=requested_by)

    def get_current_directory(self) -> str:
        return self.session.context

    def get_new_line(self) -> str:
        return os.linesep

    def get_compilation_settings(self) -> CompilerOptions:
        return self.session.config.options

    def get_default_lib_file_name(self, options: CompilerOptions) -> str:
        return self.session.compiler.get_default_lib_file_path(options)

    def file_exists(self, file_name: str) -> bool:
        return self.session.loader.file_exists(file_name)


class CompilationSession:
    """
    One long-lived compiler service bound to one private file registry.

    Sessions are created once per configuration and reused for every file compiled under
    it, so that the compiler only re-analyses what changed between requests.
    """

    def __init__(self, key: str, config: ParsedConfig, context: str, compiler: Union[ModuleType, Any, None] = None):
        self.key = key
        self.config = config
        self.context = context
        self.compiler = compiler if compiler is not None else load_compiler()

        self.files = VirtualFileRegistry()
        self.dependencies = DependencyTracker()
        self.loader = OnDemandFileLoader(self.files, self.dependencies)
        self.host = SessionServiceHost(self)
        self.service = self.compiler.create_language_service(self.host)

        # Registry mutations for one session are serialised.
        self._lock = threading.RLock()

    def update_and_emit(self, path: str, text: str) -> EmitResult:
        """Sets the text of a build target and asks the compiler to emit it."""
        with self._lock:
            if path not in self.files:
                # First sight of a build target: it starts life as the empty file.
                self.files.set(path, "")
            record = self.files.set(path, text)
            logger.debug("Emitting %s at version %d", path, record.version)

            self.dependencies.clear(path)
            output = self.service.get_emit_output(path)

            result = EmitResult(emit_skipped=output.emit_skipped, dependencies=self.dependencies.dependencies_of(path))
            if output.emit_skipped:
                return result

            for output_file in output.output_files:
                if is_declaration(output_file.name):
                    result.declaration_text = output_file.text
                else:
                    result.outputs.append(output_file)
            return result

    def invalidate(self, changed: Mapping[str, Any]) -> List[str]:
        """
        Applies one watch cycle. Every changed declaration file known to the registry is
        reloaded from disk before the next request is served. Returns the build targets
        that depended on a reloaded file.
        """
        affected: Dict[str, None] = {}
        with self._lock:
            for file_name in changed:
                if file_name not in self.files or not is_declaration(file_name):
                    continue

                record = self.loader.refresh(file_name)
                if record is not None:
                    logger.debug("Reloaded %s at version %d", file_name, record.version)
                affected.update(dict.fromkeys(self.dependencies.dependents_of(file_name)))
        return list(affected)

    def get_diagnostics(self) -> List[Union[PositionedDiagnostic, BareDiagnostic]]:
        """
        Collects diagnostics for the whole program. Semantic problems do not prevent
        emission, so they are reported as warnings; syntax errors make the output
        unusable and are reported as errors.
        """
        with self._lock:
            program = self.service.get_program()
            diagnostics = [translate(d, self.context, "warning") for d in program.get_semantic_diagnostics()]
            diagnostics.extend(translate(d, self.context, "error") for d in program.get_syntactic_diagnostics())
            return diagnostics
