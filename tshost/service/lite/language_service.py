import logging
import os
from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple

from ...config import CompilerOptions
from ..protocol import EmitOutput, LanguageServiceHost, OutputFile, ServiceDiagnostic
from .checker import FILE_NOT_FOUND, check_source_file
from .classes import SourceFile
from .emitter import build_source_map, emit_declaration, emit_javascript, output_file_names
from .parser import parse_source_file

logger = logging.getLogger(__name__)

RELATIVE_PREFIXES = ("./", "../", "/")
SOURCE_EXTENSIONS = (".ts", ".tsx", ".d.ts")
EMITTABLE_EXTENSIONS = (".ts", ".tsx")


class LiteProgram:
    """A consistent snapshot of every file reachable from the host's root files."""

    def __init__(
        self,
        options: CompilerOptions,
        source_files: Dict[str, SourceFile],
        resolved_modules: Dict[Tuple[str, str], Optional[str]],
        resolved_references: Dict[Tuple[str, str], Optional[str]],
        lib_file: Optional[str] = None,
        missing_root_files: Optional[List[str]] = None,
    ):
        self.options = options
        self.source_files = source_files
        self.resolved_modules = resolved_modules
        self.resolved_references = resolved_references
        self.lib_file = lib_file
        self.missing_root_files = missing_root_files or []

    @property
    def ambient_modules(self) -> Set[str]:
        return {name for source_file in self.source_files.values() for name in source_file.ambient_modules}

    def get_source_file(self, file_name: str) -> Optional[SourceFile]:
        return self.source_files.get(file_name)

    def get_source_files(self) -> List[SourceFile]:
        return list(self.source_files.values())

    def resolve_module(self, module_name: str, containing_file: str) -> Optional[str]:
        resolved = self.resolved_modules.get((containing_file, module_name))
        if resolved is None and module_name in self.ambient_modules:
            return module_name
        return resolved

    def resolve_reference(self, source_file: SourceFile, reference: str) -> Optional[str]:
        return self.resolved_references.get((source_file.file_name, reference))

    def get_syntactic_diagnostics(self) -> List[ServiceDiagnostic]:
        return [
            ServiceDiagnostic(message_text=problem.message, file=source_file, start=problem.start, length=1, code=problem.code)
            for source_file in self.source_files.values()
            for problem in source_file.parse_errors
        ]

    def get_semantic_diagnostics(self) -> List[ServiceDiagnostic]:
        diagnostics = [ServiceDiagnostic(message_text=f"File '{name}' not found.", code=FILE_NOT_FOUND) for name in self.missing_root_files]
        for source_file in self.source_files.values():
            if source_file.file_name == self.lib_file:
                continue
            diagnostics.extend(check_source_file(source_file, self.resolve_module, self.resolve_reference))
        return diagnostics


class LiteLanguageService:
    """
    Answers emit and diagnostic requests by pulling file texts from its host.

    Parsed files are cached by version stamp. A file is parsed again only when the host
    reports a different version for it, so repeated requests within a session only pay
    for the files that changed.
    """

    def __init__(self, host: LanguageServiceHost):
        self.host = host
        self._cache: Dict[str, SourceFile] = {}

    # --- Files ---

    def _get_source_file(self, file_name: str, requested_by: Optional[str]) -> Optional[SourceFile]:
        # The snapshot comes first: it may register the file, which is what gives it a version.
        text = self.host.get_script_snapshot(file_name, requested_by)
        if text is None:
            self._cache.pop(file_name, None)
            return None

        version = self.host.get_script_version(file_name)
        cached = self._cache.get(file_name)
        if cached is not None and version is not None and cached.version == version:
            return cached

        logger.debug("Parsing %s (version %s)", file_name, version)
        source_file = parse_source_file(file_name, text, version)
        self._cache[file_name] = source_file
        return source_file

    def _first_existing(self, candidates: List[str]) -> Optional[str]:
        return next((c for c in candidates if self.host.file_exists(c)), None)

    def resolve_module(self, module_name: str, containing_file: str) -> Optional[str]:
        directory = os.path.dirname(containing_file)

        if module_name.startswith(RELATIVE_PREFIXES):
            base = os.path.normpath(os.path.join(directory, module_name))
            candidates = []
            if base.endswith(SOURCE_EXTENSIONS):
                candidates.append(base)
            if base.endswith(".js"):
                candidates.extend(base[:-3] + ext for ext in SOURCE_EXTENSIONS)
            candidates.extend(base + ext for ext in SOURCE_EXTENSIONS)
            candidates.extend(os.path.join(base, "index" + ext) for ext in (".ts", ".d.ts"))
            return self._first_existing(candidates)

        while True:
            node_modules = os.path.join(directory, "node_modules")
            found = self._first_existing(
                [
                    os.path.join(node_modules, module_name + ".d.ts"),
                    os.path.join(node_modules, module_name, "index.d.ts"),
                    os.path.join(node_modules, "@types", module_name, "index.d.ts"),
                ]
            )
            if found is not None:
                return found
            parent = os.path.dirname(directory)
            if parent == directory:
                return None
            directory = parent

    def resolve_reference(self, containing_file: str, reference: str) -> Optional[str]:
        path = os.path.normpath(os.path.join(os.path.dirname(containing_file), reference))
        return path if self.host.file_exists(path) else None

    # --- Program ---

    def _synchronize(self, target: Optional[str] = None) -> LiteProgram:
        """
        Brings every reachable file up to date. Everything reachable from `target` is
        fetched on its behalf first, so that the host can attribute declaration files to
        it; the remaining root files are fetched afterwards without a requester.
        """
        options = self.host.get_compilation_settings()
        lib_file = None if options.no_lib else self.host.get_default_lib_file_name(options)

        queue: Deque[Tuple[str, Optional[str], bool]] = deque()
        if target is not None:
            queue.append((target, target, True))
        if lib_file is not None:
            queue.append((lib_file, target, False))
        roots_queued = False

        source_files: Dict[str, SourceFile] = {}
        resolved_modules: Dict[Tuple[str, str], Optional[str]] = {}
        resolved_references: Dict[Tuple[str, str], Optional[str]] = {}
        missing: List[str] = []
        visited: Set[str] = set()

        while True:
            if not queue:
                if roots_queued:
                    break
                # The target's closure is complete; only now move on to the other roots.
                queue.extend((name, None, True) for name in self.host.get_script_file_names())
                roots_queued = True
                continue
            file_name, requested_by, is_root = queue.popleft()
            if file_name in visited:
                continue
            visited.add(file_name)

            source_file = self._get_source_file(file_name, requested_by)
            if source_file is None:
                if is_root and file_name != target:
                    missing.append(file_name)
                continue
            source_files[file_name] = source_file

            for declaration in source_file.imports:
                resolved = self.resolve_module(declaration.module_name, file_name)
                resolved_modules[(file_name, declaration.module_name)] = resolved
                if resolved is not None:
                    queue.append((resolved, requested_by, False))

            for reference in source_file.references:
                resolved = self.resolve_reference(file_name, reference.file_name)
                resolved_references[(file_name, reference.file_name)] = resolved
                if resolved is not None:
                    queue.append((resolved, requested_by, False))

        # Forget parses of files that dropped out of the program.
        self._cache = {name: sf for name, sf in self._cache.items() if name in source_files}
        return LiteProgram(options, source_files, resolved_modules, resolved_references, lib_file, missing)

    def get_program(self) -> LiteProgram:
        return self._synchronize()

    def _new_line(self, options: CompilerOptions) -> str:
        if options.new_line == "crlf":
            return "\r\n"
        if options.new_line == "lf":
            return "\n"
        return self.host.get_new_line()

    def get_emit_output(self, file_name: str) -> EmitOutput:
        program = self._synchronize(file_name)
        source_file = program.get_source_file(file_name)

        if source_file is None or source_file.is_declaration_file or not file_name.endswith(EMITTABLE_EXTENSIONS):
            return EmitOutput(emit_skipped=True)
        if source_file.parse_errors:
            logger.debug("Not emitting %s: it has syntax errors", file_name)
            return EmitOutput(emit_skipped=True)

        options = program.options
        new_line = self._new_line(options)
        javascript_name, map_name, declaration_name = output_file_names(file_name)

        javascript = emit_javascript(source_file, options, new_line)
        output_files = []
        if options.source_map:
            line_count = source_file.text.count("\n") + 1
            output_files.append(OutputFile(map_name, build_source_map(javascript_name, file_name, line_count)))
            if javascript and not javascript.endswith(("\n", "\r")):
                javascript += new_line
            javascript += f"//# sourceMappingURL={os.path.basename(map_name)}"
        output_files.append(OutputFile(javascript_name, javascript))

        if options.declaration:
            output_files.append(OutputFile(declaration_name, emit_declaration(source_file, new_line)))
        return EmitOutput(emit_skipped=False, output_files=output_files)
