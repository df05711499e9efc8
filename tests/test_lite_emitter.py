import json

import pytest

from tshost.config import CompilerOptions
from tshost.service.lite.classes import Span
from tshost.service.lite.emitter import Edit, apply_edits, build_source_map, emit_declaration, emit_javascript, output_file_names
from tshost.service.lite.parser import parse_source_file

ES5_COMMONJS = CompilerOptions()
ES2015_ESM = CompilerOptions(target="es2015", module="esnext")


def emit(text: str, options: CompilerOptions = ES5_COMMONJS) -> str:
    return emit_javascript(parse_source_file("/p/a.ts", text), options)


# --- 1. Type Stripping ---


@pytest.mark.parametrize(
    "source, expected",
    [
        ("let x=1", "var x=1"),
        ("let x: number = 1", "var x = 1"),
        ("let n = (x as any);", "var n = (x);"),
        ("function f(a?: string) {}", "function f(a) {}"),
        ("function id<T>(value: T): T { return value; }", "function id(value) { return value; }"),
        ("interface P { x: number }\nlet p: P = { x: 1 };", "\nvar p = { x: 1 };"),
        ("function f(a: string): void;\nfunction f(a: any) {}", "\nfunction f(a) {}"),
        ("const f = (a: number): number => a * 2;", "var f = (a) => a * 2;"),
    ],
)
def test_strips_type_syntax(source, expected):
    assert emit(source) == expected


def test_modern_targets_keep_block_scoped_bindings():
    assert emit("const y: string = 'a';", ES2015_ESM) == "const y = 'a';"


def test_line_structure_is_preserved():
    source = "type A = {\n  a: number;\n};\nlet a = 1;"

    output = emit(source)

    assert output == "\n\n\nvar a = 1;"
    assert output.count("\n") == source.count("\n")


# --- 2. Imports & Exports ---


def test_type_only_imports_are_elided():
    assert emit('import { T } from "./t";\nlet a: T = null;') == "\nvar a = null;"


def test_import_type_is_always_elided():
    assert emit('import type { f } from "./f";\nf();') == "\nf();"


@pytest.mark.parametrize(
    "source, expected",
    [
        ('import { f } from "./f";\nf();', 'var f_1 = require("./f"), f = f_1.f;\nf();'),
        ('import { f as g } from "./lib/f-utils";\ng();', 'var f_utils_1 = require("./lib/f-utils"), g = f_utils_1.f;\ng();'),
        ('import d from "./d";\nd();', 'var d = require("./d").default;\nd();'),
        ('import * as ns from "ns";\nns.run();', 'var ns = require("ns");\nns.run();'),
        ('import "./polyfill";', 'require("./polyfill");'),
    ],
)
def test_commonjs_import_rewriting(source, expected):
    assert emit(source) == expected


def test_es_modules_keep_imports_but_drop_type_bindings():
    source = 'import { T, f } from "./m";\nlet a: T = f();'

    assert emit(source, ES2015_ESM) == 'import { f } from "./m";\nlet a = f();'


def test_commonjs_exports_are_appended():
    source = "export function add(a: number, b: number): number { return a + b; }"

    assert emit(source) == "function add(a, b) { return a + b; }\nexports.add = add;\n"


def test_es_module_exports_are_kept():
    assert emit("export const a: number = 1;", ES2015_ESM) == "export const a = 1;"


def test_exported_types_vanish():
    assert emit("export interface P { x: number }\nexport let p = 1;") == "\nvar p = 1;\nexports.p = p;\n"


# --- 3. Edits, Names & Source Maps ---


def test_nested_edits_are_skipped():
    edits = [Edit(span=Span(start=0, end=10)), Edit(span=Span(start=2, end=4), replacement="zz")]

    assert apply_edits("0123456789ab", edits) == "ab"


def test_removed_newlines_survive():
    assert apply_edits("a\nb\nc", [Edit(span=Span(start=1, end=4), replacement="X")]) == "aX\n\nc"


def test_output_file_names():
    assert output_file_names("/p/a.ts") == ("/p/a.js", "/p/a.js.map", "/p/a.d.ts")
    assert output_file_names("/p/view.tsx") == ("/p/view.js", "/p/view.js.map", "/p/view.d.ts")


def test_source_map_is_an_identity_line_mapping():
    source_map = json.loads(build_source_map("/p/a.js", "/p/a.ts", 3))

    assert source_map["version"] == 3
    assert source_map["file"] == "a.js"
    assert source_map["sources"] == ["a.ts"]
    assert source_map["mappings"] == "AAAA;AACA;AACA"


# --- 4. Declarations ---


def test_declaration_output_for_a_module():
    source = "export const n: number = 1;\nexport function add(a: number, b = 2): number { return a + b; }\nexport interface P { x: number }\nconst hidden = 3;"

    output = emit_declaration(parse_source_file("/p/a.ts", source))

    assert output == (
        "export declare const n: number;\n"
        "export declare function add(a: number, b?: any): number;\n"
        "export interface P { x: number }\n"
    )


def test_declaration_output_keeps_only_the_overloads():
    source = "export function f(a: string): string;\nexport function f(a: number): number;\nexport function f(a: any) { return a; }"

    output = emit_declaration(parse_source_file("/p/a.ts", source))

    assert output == "export declare function f(a: string): string;\nexport declare function f(a: number): number;\n"


def test_declaration_output_keeps_referenced_imports():
    source = 'import { Shape } from "./shapes";\nexport let s: Shape = null;'

    output = emit_declaration(parse_source_file("/p/a.ts", source))

    assert output == 'import { Shape } from "./shapes";\nexport declare let s: Shape;\n'


def test_declaration_output_for_a_script():
    output = emit_declaration(parse_source_file("/p/a.ts", "let a = 1;\nfunction f(x: string) { return x; }"))

    assert output == "declare let a: number;\ndeclare function f(x: string): any;\n"


def test_module_without_public_declarations():
    output = emit_declaration(parse_source_file("/p/a.ts", 'import { f } from "./f";\nf();'))

    assert output == "export {};\n"
