"""
The contract between a compilation session and the compiler service it wraps.

A session supplies a `LanguageServiceHost`; a compiler module turns it into a
`LanguageService`. The data types below are what flows back across the boundary.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Tuple, Union


class LineIndexed(Protocol):
    """A source file as seen by a diagnostic: it knows its name and its own line starts."""

    file_name: str

    def get_line_and_character_of_position(self, position: int) -> Tuple[int, int]: ...


@dataclass
class DiagnosticMessageChain:
    """A message with nested causes, e.g. a type error explained by a deeper mismatch."""

    message_text: str
    next: List["DiagnosticMessageChain"] = field(default_factory=list)


@dataclass
class ServiceDiagnostic:
    """A positional diagnostic as reported by the compiler service."""

    message_text: Union[str, DiagnosticMessageChain]
    file: Optional[LineIndexed] = None
    start: Optional[int] = None
    length: Optional[int] = None
    category: str = "error"
    code: int = 0


@dataclass
class OutputFile:
    name: str
    text: str


@dataclass
class EmitOutput:
    emit_skipped: bool
    output_files: List[OutputFile] = field(default_factory=list)


class Program(Protocol):
    def get_semantic_diagnostics(self) -> List[ServiceDiagnostic]: ...

    def get_syntactic_diagnostics(self) -> List[ServiceDiagnostic]: ...


class LanguageServiceHost(Protocol):
    def get_script_file_names(self) -> List[str]: ...

    def get_script_version(self, file_name: str) -> Optional[str]: ...

    def get_script_snapshot(self, file_name: str, requested_by: Optional[str] = None) -> Optional[str]: ...

    def get_current_directory(self) -> str: ...

    def get_new_line(self) -> str: ...

    def get_compilation_settings(self) -> Any: ...

    def get_default_lib_file_name(self, options: Any) -> str: ...

    def file_exists(self, file_name: str) -> bool: ...


class LanguageService(Protocol):
    def get_emit_output(self, file_name: str) -> EmitOutput: ...

    def get_program(self) -> Program: ...
