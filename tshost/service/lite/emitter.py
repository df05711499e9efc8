"""
Produces JavaScript, source maps and declaration files from a parsed `SourceFile`.

JavaScript is emitted by editing the original text rather than printing a tree:
type-only regions are cut out, imports and exports are rewritten for the target
module system, and `let`/`const` become `var` for old targets. Every edit keeps
the newlines it removes, so line N of the output is line N of the input.
"""

import json
import posixpath
import re
from typing import List, Tuple

from pydantic import BaseModel

from ...config import CompilerOptions
from .classes import Declaration, ImportDeclaration, SourceFile, Span

COMMONJS_MODULE_KINDS = ("commonjs", "none")
VALUE_KINDS = ("let", "const", "var", "function")


class Edit(BaseModel):
    span: Span
    replacement: str = ""


def _newlines(segment: str) -> str:
    return "".join(char for char in segment if char in "\r\n")


def apply_edits(text: str, edits: List[Edit]) -> str:
    """
    Applies non-overlapping edits left to right. An edit starting inside one already
    applied is dropped. Newlines inside a replaced region are kept after the replacement.
    """
    pieces: List[str] = []
    position = 0
    for edit in sorted(edits, key=lambda e: (e.span.start, -e.span.end)):
        if edit.span.start < position:
            continue
        pieces.append(text[position : edit.span.start])
        pieces.append(edit.replacement)
        pieces.append(_newlines(text[edit.span.start : edit.span.end]))
        position = edit.span.end
    pieces.append(text[position:])
    return "".join(pieces)


def output_base(file_name: str) -> str:
    for suffix in (".d.ts", ".tsx", ".ts"):
        if file_name.endswith(suffix):
            return file_name[: -len(suffix)]
    return file_name


def output_file_names(file_name: str) -> Tuple[str, str, str]:
    """Returns the JavaScript, source map and declaration names for a source file."""
    base = output_base(file_name)
    return base + ".js", base + ".js.map", base + ".d.ts"


def _module_alias(module_name: str) -> str:
    stem = re.sub(r"[^A-Za-z0-9_$]", "_", posixpath.basename(module_name)) or "module"
    if stem[0].isdigit():
        stem = "_" + stem
    return stem + "_1"


def _rewrite_import(declaration: ImportDeclaration, used: List[str], options: CompilerOptions) -> str:
    """Renders an import as `require` calls on a single line."""
    keyword = "var" if options.is_es5_or_lower else "const"
    require = f"require({declaration.module_literal})"

    if declaration.kind == "side_effect":
        return f"{require};"
    if declaration.kind == "namespace":
        return f"{keyword} {declaration.bindings[0].local} = {require};"
    if declaration.kind == "default":
        return f"{keyword} {declaration.bindings[0].local} = {require}.default;"

    alias = _module_alias(declaration.module_name)
    bindings = [f"{b.local} = {alias}.{b.imported}" for b in declaration.bindings if b.local in used]
    return f"{keyword} {alias} = {require}, {', '.join(bindings)};"


def _named_import(declaration: ImportDeclaration, used: List[str]) -> str:
    specifiers = [b.imported if b.imported == b.local else f"{b.imported} as {b.local}" for b in declaration.bindings if b.local in used]
    return f"import {{ {', '.join(specifiers)} }} from {declaration.module_literal};"


def _import_edits(source_file: SourceFile, options: CompilerOptions) -> List[Edit]:
    edits: List[Edit] = []
    commonjs = options.module in COMMONJS_MODULE_KINDS

    for declaration in source_file.imports:
        used = [b.local for b in declaration.bindings if b.local in source_file.value_names]

        # Imports whose bindings only appear in type positions do not survive emission.
        if declaration.kind != "side_effect" and (declaration.type_only or not used):
            edits.append(Edit(span=declaration.span))
        elif commonjs:
            edits.append(Edit(span=declaration.span, replacement=_rewrite_import(declaration, used, options)))
        elif declaration.kind == "named" and len(used) < len(declaration.bindings):
            edits.append(Edit(span=declaration.span, replacement=_named_import(declaration, used)))
    return edits


def exported_values(source_file: SourceFile) -> List[Declaration]:
    return [d for d in source_file.declarations if d.exported and not d.ambient and d.kind in VALUE_KINDS and d.has_body]


def emit_javascript(source_file: SourceFile, options: CompilerOptions, new_line: str = "\n") -> str:
    edits = [Edit(span=span) for span in source_file.type_spans]
    edits.extend(_import_edits(source_file, options))

    if options.is_es5_or_lower:
        edits.extend(Edit(span=span, replacement="var") for span in source_file.binding_keyword_spans)

    trailer: List[str] = []
    if options.module in COMMONJS_MODULE_KINDS:
        edits.extend(Edit(span=span) for span in source_file.export_keyword_spans)
        trailer = [f"exports.{d.name} = {d.name};" for d in exported_values(source_file)]

    output = apply_edits(source_file.text, edits)
    if trailer:
        if output and not output.endswith(("\n", "\r")):
            output += new_line
        output += new_line.join(trailer) + new_line
    return output


def build_source_map(javascript_name: str, source_name: str, line_count: int) -> str:
    """
    Maps every source line onto the same output line, column 0 to column 0. The first
    segment is `AAAA`; each later line only advances the source line, hence `AACA`.
    """
    mappings = ";".join(["AAAA"] + ["AACA"] * (line_count - 1)) if line_count > 0 else ""
    return json.dumps(
        {
            "version": 3,
            "file": posixpath.basename(javascript_name),
            "sourceRoot": "",
            "sources": [posixpath.basename(source_name)],
            "names": [],
            "mappings": mappings,
        }
    )


def _declaration_line(declaration: Declaration, prefix: str) -> str:
    if declaration.kind in ("interface", "type"):
        return f"{prefix}{declaration.text}"
    if declaration.kind == "function":
        return f"{prefix}declare function {declaration.name}{declaration.signature};"
    value_type = declaration.annotation or declaration.initializer_type or "any"
    return f"{prefix}declare {declaration.kind} {declaration.name}: {value_type};"


def emit_declaration(source_file: SourceFile, new_line: str = "\n") -> str:
    """Renders the `.d.ts` for a source file: its public declarations with types only."""
    is_module = bool(source_file.imports) or any(d.exported for d in source_file.declarations)
    declarations = [d for d in source_file.declarations if d.exported or not is_module]
    overloaded = {d.name for d in declarations if d.kind == "function" and not d.has_body}
    prefix = "export " if is_module else ""

    body = [_declaration_line(d, prefix) for d in declarations if not (d.name in overloaded and d.has_body)]

    # Keep the imports the public surface still refers to.
    rendered = "\n".join(body)
    imports = []
    for declaration in source_file.imports:
        if any(re.search(rf"\b{re.escape(b.local)}\b", rendered) for b in declaration.bindings):
            imports.append(source_file.text[declaration.span.start : declaration.span.end])

    lines = imports + body
    if is_module and not body:
        lines.append("export {};")
    return new_line.join(lines) + new_line
