"""
Converts the compiler service's positional diagnostics into build-tool-agnostic records.

A diagnostic either points at a place in a file (`PositionedDiagnostic`) or it does
not (`BareDiagnostic`); the two are modelled as a tagged union so formatting is total.
"""

import os
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .service.protocol import DiagnosticMessageChain, ServiceDiagnostic

Severity = Literal["error", "warning"]


class PositionedDiagnostic(BaseModel):
    kind: Literal["positioned"] = "positioned"
    message: str
    file_path: str
    line: int
    column: int
    severity: Severity = "error"


class BareDiagnostic(BaseModel):
    kind: Literal["bare"] = "bare"
    message: str
    severity: Severity = "error"


Diagnostic = Annotated[Union[PositionedDiagnostic, BareDiagnostic], Field(discriminator="kind")]


def flatten_message_text(message_text: Union[str, DiagnosticMessageChain], new_line: str = "\n") -> str:
    """Flattens a message chain into one string, indenting each nested cause by two spaces."""
    if isinstance(message_text, str):
        return message_text

    lines: List[str] = []

    def _walk(chain: DiagnosticMessageChain, depth: int):
        lines.append("  " * depth + chain.message_text)
        for child in chain.next:
            _walk(child, depth + 1)

    _walk(message_text, 0)
    return new_line.join(lines)


def to_request_path(context: str, file_name: str) -> str:
    """Rewrites an absolute path relative to the build context, in module-request form."""
    relative = os.path.relpath(file_name, context).replace(os.sep, "/")
    if relative.startswith("../") or relative == "..":
        return relative
    return "./" + relative


def translate(diagnostic: ServiceDiagnostic, context: str, severity: Severity = "error") -> Union[PositionedDiagnostic, BareDiagnostic]:
    message = flatten_message_text(diagnostic.message_text)

    if diagnostic.file is not None and diagnostic.start is not None:
        line, character = diagnostic.file.get_line_and_character_of_position(diagnostic.start)
        return PositionedDiagnostic(
            message=message,
            file_path=to_request_path(context, diagnostic.file.file_name),
            line=line + 1,
            column=character + 1,
            severity=severity,
        )

    return BareDiagnostic(message=message, severity=severity)


def format_diagnostic(diagnostic: Union[PositionedDiagnostic, BareDiagnostic]) -> str:
    """Format a diagnostic object into a string."""
    if isinstance(diagnostic, PositionedDiagnostic):
        return f"({diagnostic.line},{diagnostic.column}): {diagnostic.message}"
    return diagnostic.message


class DiagnosticError(Exception):
    """A build-tool compatible error wrapping one translated diagnostic."""

    name = "DiagnosticError"

    def __init__(self, diagnostic: Union[PositionedDiagnostic, BareDiagnostic]):
        self.diagnostic = diagnostic
        self.message = format_diagnostic(diagnostic)
        self.file: Optional[str] = diagnostic.file_path if isinstance(diagnostic, PositionedDiagnostic) else None
        super().__init__(self.message)
