"""
The semantic checks of the bundled language service. They are deliberately few:
missing modules and referenced files, redeclared block-scoped variables, and
literal initializers that contradict a primitive annotation.
"""

from typing import Callable, Dict, List, Optional

from ..protocol import ServiceDiagnostic
from .classes import SourceFile

PRIMITIVE_TYPES = ("number", "string", "boolean")

CANNOT_FIND_MODULE = 2307
CANNOT_REDECLARE = 2451
NOT_ASSIGNABLE = 2322
FILE_NOT_FOUND = 6053

ModuleResolver = Callable[[str, str], Optional[str]]
ReferenceResolver = Callable[[SourceFile, str], Optional[str]]


def _diagnostic(source_file: SourceFile, start: int, length: int, code: int, message: str) -> ServiceDiagnostic:
    return ServiceDiagnostic(message_text=message, file=source_file, start=start, length=length, category="error", code=code)


def check_imports(source_file: SourceFile, resolve_module: ModuleResolver) -> List[ServiceDiagnostic]:
    diagnostics = []
    for declaration in source_file.imports:
        if declaration.kind == "side_effect":
            continue
        if resolve_module(declaration.module_name, source_file.file_name) is None:
            span = declaration.module_span
            message = f"Cannot find module '{declaration.module_name}' or its corresponding type declarations."
            diagnostics.append(_diagnostic(source_file, span.start, span.end - span.start, CANNOT_FIND_MODULE, message))
    return diagnostics


def check_references(source_file: SourceFile, resolve_reference: ReferenceResolver) -> List[ServiceDiagnostic]:
    diagnostics = []
    for reference in source_file.references:
        if resolve_reference(source_file, reference.file_name) is None:
            span = reference.span
            message = f"File '{reference.file_name}' not found."
            diagnostics.append(_diagnostic(source_file, span.start, span.end - span.start, FILE_NOT_FOUND, message))
    return diagnostics


def check_redeclarations(source_file: SourceFile) -> List[ServiceDiagnostic]:
    """Every occurrence of a `let`/`const` name declared more than once at top level is reported."""
    occurrences: Dict[str, int] = {}
    for declaration in source_file.declarations:
        if declaration.kind in ("let", "const", "var"):
            occurrences[declaration.name] = occurrences.get(declaration.name, 0) + 1

    diagnostics = []
    for declaration in source_file.declarations:
        if declaration.kind not in ("let", "const") or occurrences[declaration.name] < 2:
            continue
        span = declaration.name_span
        message = f"Cannot redeclare block-scoped variable '{declaration.name}'."
        diagnostics.append(_diagnostic(source_file, span.start, span.end - span.start, CANNOT_REDECLARE, message))
    return diagnostics


def check_initializers(source_file: SourceFile) -> List[ServiceDiagnostic]:
    diagnostics = []
    for declaration in source_file.declarations:
        declared, actual = declaration.annotation, declaration.initializer_type
        if declared not in PRIMITIVE_TYPES or actual is None or actual == declared:
            continue
        span = declaration.name_span
        message = f"Type '{actual}' is not assignable to type '{declared}'."
        diagnostics.append(_diagnostic(source_file, span.start, span.end - span.start, NOT_ASSIGNABLE, message))
    return diagnostics


def check_source_file(
    source_file: SourceFile, resolve_module: ModuleResolver, resolve_reference: ReferenceResolver
) -> List[ServiceDiagnostic]:
    if source_file.parse_errors:
        return []
    diagnostics = check_imports(source_file, resolve_module)
    diagnostics.extend(check_references(source_file, resolve_reference))
    diagnostics.extend(check_redeclarations(source_file))
    diagnostics.extend(check_initializers(source_file))
    return sorted(diagnostics, key=lambda d: d.start)
