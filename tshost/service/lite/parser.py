import logging
import os
import re
from typing import List, Optional, Union

from lark import Lark, Token, Tree
from lark.exceptions import LarkError, UnexpectedCharacters, UnexpectedEOF, UnexpectedInput

from .classes import (
    Declaration,
    FileReference,
    ImportBinding,
    ImportDeclaration,
    SourceFile,
    Span,
    SyntaxProblem,
)

logger = logging.getLogger(__name__)

LARK_PARSER = None

try:
    from importlib.resources import files as pkg_files

    typescript_grammar = (pkg_files("tshost.service.lite") / "typescript.lark").read_text()
    LARK_PARSER = Lark(typescript_grammar, start="start", parser="earley", propagate_positions=True)
except (ImportError, OSError):
    # Fallback for environments where the package data is not importable as a resource
    grammar_path = os.path.join(os.path.dirname(__file__), "typescript.lark")
    with open(grammar_path, "r") as f:
        typescript_grammar = f.read()
    LARK_PARSER = Lark(typescript_grammar, start="start", parser="earley", propagate_positions=True)

REFERENCE_PATTERN = re.compile(r"""^[ \t]*///[ \t]*<reference\s+path\s*=\s*(["'])(?P<path>.+?)\1\s*/>""", re.MULTILINE)

Node = Union[Tree, Token]

# Statements that carry no runtime meaning at all.
TYPE_ONLY_STATEMENTS = ("interface_decl", "type_alias_decl", "ambient_decl")


def _start(node: Node) -> int:
    if isinstance(node, Token):
        return node.start_pos
    return node.meta.start_pos


def _end(node: Node) -> int:
    if isinstance(node, Token):
        return node.end_pos
    return node.meta.end_pos


def _is_tree(node: Node, *names: str) -> bool:
    return isinstance(node, Tree) and node.data in names


def _first_tree(children: List[Node], name: str) -> Optional[Tree]:
    return next((c for c in children if _is_tree(c, name)), None)


def _tokens(children: List[Node], token_type: str) -> List[Token]:
    return [c for c in children if isinstance(c, Token) and c.type == token_type]


def _unquote(literal: str) -> str:
    return literal[1:-1]


def _translate_lark_error(err: LarkError, text: str) -> SyntaxProblem:
    """Turns a lark failure into a positioned syntax problem."""
    if isinstance(err, UnexpectedEOF):
        return SyntaxProblem(start=len(text), message="Unexpected end of text.", code=1126)

    if isinstance(err, UnexpectedCharacters):
        position = err.pos_in_stream
        if text[position:].strip() == "":
            return SyntaxProblem(start=len(text), message="Unexpected end of text.", code=1126)
        return SyntaxProblem(start=position, message=f"Unexpected token '{text[position]}'.", code=1012)

    if isinstance(err, UnexpectedInput) and err.pos_in_stream is not None and err.pos_in_stream >= 0:
        return SyntaxProblem(start=err.pos_in_stream, message="';' expected.")

    return SyntaxProblem(start=0, message=f"Could not parse file: {err}", code=1005)


class SourceFileBuilder:
    """
    Walks a lark parse tree and records the facts the checker and emitter rely on.
    Top-level statements describe what a file imports, declares and exports; a full
    recursive walk then collects every region of type-only syntax.
    """

    def __init__(self, source_file: SourceFile):
        self.source_file = source_file
        self.text = source_file.text

    def _span(self, node: Node) -> Span:
        return Span(start=_start(node), end=_end(node))

    def _slice(self, start: int, end: int) -> str:
        return self.text[start:end]

    def build(self, tree: Tree) -> SourceFile:
        for statement in tree.children:
            self._statement(statement)
        self._walk(tree, None)
        return self.source_file

    # --- Top-level statements ---

    def _statement(self, node: Node, exported: bool = False):
        if not isinstance(node, Tree):
            return

        if node.data == "import_decl":
            self._import(node)
        elif node.data == "side_effect_import":
            literal = _tokens(node.children, "STRING")[0]
            self.source_file.imports.append(
                ImportDeclaration(
                    kind="side_effect",
                    module_name=_unquote(literal.value),
                    module_literal=literal.value,
                    module_span=self._span(literal),
                    span=self._span(node),
                )
            )
        elif node.data == "export_decl":
            export_token, inner = node.children[0], node.children[-1]
            if _is_tree(inner, "variable_statement") or (_is_tree(inner, "function_decl") and self._has_body(inner)):
                self.source_file.export_keyword_spans.append(Span(start=_start(export_token), end=_start(inner)))
            self._statement(inner, exported=True)
        elif node.data == "variable_statement":
            self._variables(node, exported, ambient=False)
        elif node.data == "function_decl":
            self._function(node, exported, ambient=False)
        elif node.data in ("interface_decl", "type_alias_decl"):
            self._type_declaration(node, exported, ambient=False)
        elif node.data == "ambient_decl":
            self._ambient(node.children[-1], exported)

    def _import(self, node: Tree):
        literal = _tokens(node.children, "STRING")[0]
        clause = next(c for c in node.children if isinstance(c, Tree))
        declaration = ImportDeclaration(
            kind="named",
            module_name=_unquote(literal.value),
            module_literal=literal.value,
            module_span=self._span(literal),
            span=self._span(node),
            type_only=bool(_tokens(node.children, "TYPE")),
        )

        if clause.data == "default_import":
            declaration.kind = "default"
            declaration.bindings.append(ImportBinding(imported="default", local=clause.children[0].value))
        elif clause.data == "namespace_import":
            declaration.kind = "namespace"
            declaration.bindings.append(ImportBinding(imported="*", local=_tokens(clause.children, "NAME")[0].value))
        else:
            for specifier in clause.children:
                imported = specifier.children[0].value
                local = _tokens(specifier.children, "NAME")
                declaration.bindings.append(ImportBinding(imported=imported, local=local[0].value if local else imported))

        self.source_file.imports.append(declaration)

    def _variables(self, node: Tree, exported: bool, ambient: bool):
        kind = node.children[0].value
        declarators = [c for c in node.children if _is_tree(c, "variable_declarator", "ambient_binding")]
        for declarator in declarators:
            name = declarator.children[0]
            annotation = _first_tree(declarator.children, "type_annotation")
            initializer = next((c for c in declarator.children[1:] if not _is_tree(c, "type_annotation")), None)
            self.source_file.declarations.append(
                Declaration(
                    name=name.value,
                    name_span=self._span(name),
                    kind=kind,
                    exported=exported,
                    ambient=ambient,
                    annotation=self._annotation_text(annotation),
                    initializer_type=self._literal_type(initializer),
                )
            )

    def _function(self, node: Tree, exported: bool, ambient: bool):
        name = _tokens(node.children, "NAME")[0]
        self.source_file.declarations.append(
            Declaration(
                name=name.value,
                name_span=self._span(name),
                kind="function",
                exported=exported,
                ambient=ambient,
                signature=self._signature(node.children),
                has_body=self._has_body(node),
            )
        )

    def _type_declaration(self, node: Tree, exported: bool, ambient: bool):
        name = _tokens(node.children, "NAME")[0]
        self.source_file.declarations.append(
            Declaration(
                name=name.value,
                name_span=self._span(name),
                kind="interface" if node.data == "interface_decl" else "type",
                exported=exported,
                ambient=ambient,
                text=self._slice(_start(node), _end(node)),
            )
        )

    def _ambient(self, node: Tree, exported: bool):
        if node.data == "ambient_variable":
            self._variables(node, exported, ambient=True)
        elif node.data == "ambient_function":
            self._function(node, exported, ambient=True)
        elif node.data in ("interface_decl", "type_alias_decl"):
            self._type_declaration(node, exported, ambient=True)
        elif node.data == "ambient_module":
            module_name = node.children[1]
            if module_name.type == "STRING":
                self.source_file.ambient_modules.append(_unquote(module_name.value))

    # --- Helpers for declarations ---

    @staticmethod
    def _has_body(node: Tree) -> bool:
        return _is_tree(node.children[-1], "block")

    def _annotation_text(self, annotation: Optional[Tree]) -> Optional[str]:
        if annotation is None:
            return None
        colon = annotation.children[0]
        return self._slice(_end(colon), _end(annotation)).strip()

    def _literal_type(self, node: Optional[Node]) -> Optional[str]:
        if isinstance(node, Token):
            return {"NUMBER": "number", "STRING": "string", "TRUE": "boolean", "FALSE": "boolean"}.get(node.type)
        if _is_tree(node, "unary") and node.children[0].value in ("-", "+"):
            operand = node.children[1]
            if isinstance(operand, Token) and operand.type == "NUMBER":
                return "number"
        return None

    def _parameter_text(self, parameter: Tree) -> str:
        rest = "..." if _tokens(parameter.children, "REST") else ""
        name = _tokens(parameter.children, "NAME")[0].value
        annotation = _first_tree(parameter.children, "type_annotation")
        has_default = any(
            not (isinstance(c, Token) and c.type in ("REST", "NAME", "QUESTION")) and not _is_tree(c, "type_annotation")
            for c in parameter.children
        )
        optional = "?" if _tokens(parameter.children, "QUESTION") or has_default else ""
        return f"{rest}{name}{optional}: {self._annotation_text(annotation) or 'any'}"

    def _signature(self, children: List[Node]) -> str:
        """Renders `<T>(a: A, b?: B): R` with every position typed, as a declaration needs."""
        type_parameters = _first_tree(children, "type_parameters")
        parameters = _first_tree(children, "parameters")
        return_type = _first_tree(children, "type_annotation")

        rendered = self._slice(_start(type_parameters), _end(type_parameters)) if type_parameters is not None else ""
        params = [self._parameter_text(p) for p in parameters.children] if parameters is not None else []
        return f"{rendered}({', '.join(params)}): {self._annotation_text(return_type) or 'any'}"

    # --- Type-only regions and value uses ---

    def _add_type_span(self, start: int, end: int):
        self.source_file.type_spans.append(Span(start=start, end=end))

    def _walk(self, node: Node, parent: Optional[Tree]):
        if not isinstance(node, Tree):
            return

        whole_statement = node.data in TYPE_ONLY_STATEMENTS or (node.data == "function_decl" and not self._has_body(node))
        if whole_statement:
            outer = parent if _is_tree(parent, "export_decl") else node
            self._add_type_span(_start(outer), _end(outer))
            return

        if node.data in ("type_annotation", "type_parameters"):
            self._add_type_span(_start(node), _end(node))
            return

        if node.data == "type_assertion":
            start = _start(node)
            while start > 0 and self.text[start - 1] in " \t":
                start -= 1
            self._add_type_span(start, _end(node))
            return

        if node.data == "parameter":
            for question in _tokens(node.children, "QUESTION"):
                self._add_type_span(question.start_pos, question.end_pos)
        elif node.data in ("identifier", "shorthand_property"):
            self.source_file.value_names.add(node.children[0].value)
        elif node.data == "variable_statement":
            keyword = node.children[0]
            if keyword.value in ("let", "const"):
                self.source_file.binding_keyword_spans.append(self._span(keyword))

        for child in node.children:
            self._walk(child, node)


def parse_source_file(file_name: str, text: str, version: Optional[str] = None) -> SourceFile:
    """Parses one file. Syntax errors are recorded on the result, never raised."""
    source_file = SourceFile(file_name=file_name, text=text, version=version)

    for match in REFERENCE_PATTERN.finditer(text):
        source_file.references.append(
            FileReference(file_name=match.group("path"), span=Span(start=match.start("path"), end=match.end("path")))
        )

    try:
        tree = LARK_PARSER.parse(text)
    except LarkError as e:
        problem = _translate_lark_error(e, text)
        logger.debug("Syntax error in %s at offset %d: %s", file_name, problem.start, problem.message)
        source_file.parse_errors.append(problem)
        return source_file

    return SourceFileBuilder(source_file).build(tree)
