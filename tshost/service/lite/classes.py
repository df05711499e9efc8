"""
Defines the data structures produced by the parser stage of the bundled language service.

A `SourceFile` does not hold a full syntax tree. It records exactly what the later
stages need: where the type-only syntax is (so the emitter can cut it out), what the
file imports, references, declares and exports, and which names it uses as values.
All positions are 0-based character offsets into the file's text.
"""

from bisect import bisect_right
from typing import List, Literal, Optional, Set, Tuple

from pydantic import BaseModel, Field, PrivateAttr

DeclarationKind = Literal["let", "const", "var", "function", "interface", "type"]


class Span(BaseModel):
    """Represents a half-open range of character offsets in the source text."""

    start: int
    end: int


class SyntaxProblem(BaseModel):
    start: int
    message: str
    code: int = 1005


class FileReference(BaseModel):
    """A `/// <reference path="..." />` directive."""

    file_name: str
    span: Span


class ImportBinding(BaseModel):
    imported: str
    local: str


class ImportDeclaration(BaseModel):
    kind: Literal["named", "default", "namespace", "side_effect"]
    module_name: str
    module_literal: str
    module_span: Span
    span: Span
    bindings: List[ImportBinding] = Field(default_factory=list)
    type_only: bool = False


class Declaration(BaseModel):
    name: str
    name_span: Span
    kind: DeclarationKind
    exported: bool = False
    ambient: bool = False
    annotation: Optional[str] = None
    initializer_type: Optional[str] = None
    signature: Optional[str] = None
    text: Optional[str] = None
    has_body: bool = True


class SourceFile(BaseModel):
    """The parsed form of one file, valid for exactly one version of its text."""

    file_name: str
    text: str
    version: Optional[str] = None

    imports: List[ImportDeclaration] = Field(default_factory=list)
    references: List[FileReference] = Field(default_factory=list)
    declarations: List[Declaration] = Field(default_factory=list)
    ambient_modules: List[str] = Field(default_factory=list)
    value_names: Set[str] = Field(default_factory=set)

    type_spans: List[Span] = Field(default_factory=list)
    export_keyword_spans: List[Span] = Field(default_factory=list)
    binding_keyword_spans: List[Span] = Field(default_factory=list)

    parse_errors: List[SyntaxProblem] = Field(default_factory=list)

    _line_starts: List[int] = PrivateAttr(default_factory=list)

    @property
    def is_declaration_file(self) -> bool:
        return self.file_name.endswith(".d.ts")

    def get_line_and_character_of_position(self, position: int) -> Tuple[int, int]:
        """Converts an offset into a 0-based (line, character) pair."""
        if not self._line_starts:
            self._line_starts = [0] + [i + 1 for i, char in enumerate(self.text) if char == "\n"]
        position = max(0, min(position, len(self.text)))
        line = bisect_right(self._line_starts, position) - 1
        return line, position - self._line_starts[line]
